import logging
from dataclasses import dataclass
from enum import Enum

from .car import CarIniFile
from ..core.errors import InvalidCarError, MissingMandatoryProperty, PropertyParseError
from ..core.ini import Ini, get_mandatory_property, set_float, set_value

logger = logging.getLogger(__name__)


class DriveType(Enum):
    RWD = "RWD"
    FWD = "FWD"
    AWD = "AWD"
    AWD2 = "AWD2"

    @classmethod
    def from_string(cls, value: str) -> 'DriveType':
        try:
            return cls(value)
        except ValueError:
            raise PropertyParseError(value)

    def mechanical_efficiency(self) -> float:
        return _MECHANICAL_EFFICIENCY[self]


_MECHANICAL_EFFICIENCY = {
    DriveType.RWD: 0.85,
    DriveType.FWD: 0.9,
    DriveType.AWD: 0.75,
    DriveType.AWD2: 0.75,
}


class Drivetrain(CarIniFile):
    FILENAME = "drivetrain.ini"


def _mandatory_field(ini: Ini, section: str, key: str, parser=str):
    try:
        return get_mandatory_property(ini, section, key, parser)
    except MissingMandatoryProperty:
        raise InvalidCarError(f"Missing {section}.{key} in {Drivetrain.FILENAME}")


def _int_field(ini: Ini, section: str, key: str) -> int:
    return int(_mandatory_field(ini, section, key, float))


@dataclass
class Traction:
    drive_type: DriveType

    @classmethod
    def load_from_ini(cls, ini: Ini) -> 'Traction':
        return cls(DriveType.from_string(_mandatory_field(ini, "TRACTION", "TYPE")))

    def update_car_data(self, drivetrain: Drivetrain) -> None:
        drivetrain.ini.set_value("TRACTION", "TYPE", self.drive_type.value)


@dataclass
class AutoShifter:
    up: int
    down: int
    slip_threshold: float
    gas_cutoff_time: float

    @classmethod
    def load_from_ini(cls, ini: Ini) -> 'AutoShifter':
        return cls(
            up=_int_field(ini, "AUTO_SHIFTER", "UP"),
            down=_int_field(ini, "AUTO_SHIFTER", "DOWN"),
            slip_threshold=_mandatory_field(ini, "AUTO_SHIFTER", "SLIP_THRESHOLD", float),
            gas_cutoff_time=_mandatory_field(ini, "AUTO_SHIFTER", "GAS_CUTOFF_TIME", float),
        )

    def update_car_data(self, drivetrain: Drivetrain) -> None:
        ini = drivetrain.ini
        set_value(ini, "AUTO_SHIFTER", "UP", self.up)
        set_value(ini, "AUTO_SHIFTER", "DOWN", self.down)
        set_float(ini, "AUTO_SHIFTER", "SLIP_THRESHOLD", self.slip_threshold, 2)
        set_float(ini, "AUTO_SHIFTER", "GAS_CUTOFF_TIME", self.gas_cutoff_time, 2)


@dataclass
class Clutch:
    max_torque: int

    @classmethod
    def load_from_ini(cls, ini: Ini) -> 'Clutch':
        return cls(_int_field(ini, "CLUTCH", "MAX_TORQUE"))

    def update_car_data(self, drivetrain: Drivetrain) -> None:
        set_value(drivetrain.ini, "CLUTCH", "MAX_TORQUE", self.max_torque)
