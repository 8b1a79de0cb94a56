from dataclasses import dataclass

from .car import CarIniFile
from ..core.errors import InvalidCarError, MissingMandatoryProperty
from ..core.ini import Ini, get_mandatory_property, set_float, set_value


class Ai(CarIniFile):
    """ai.ini; optional, not every car ships one."""
    FILENAME = "ai.ini"


@dataclass
class Gears:
    up: int
    down: int
    slip_threshold: float
    gas_cutoff_time: float

    @classmethod
    def load_from_ini(cls, ini: Ini) -> 'Gears':
        try:
            return cls(
                up=int(get_mandatory_property(ini, "GEARS", "UP", float)),
                down=int(get_mandatory_property(ini, "GEARS", "DOWN", float)),
                slip_threshold=get_mandatory_property(ini, "GEARS", "SLIP_THRESHOLD", float),
                gas_cutoff_time=get_mandatory_property(ini, "GEARS", "GAS_CUTOFF_TIME", float),
            )
        except MissingMandatoryProperty as e:
            raise InvalidCarError(f"Missing {e.section}.{e.key} in {Ai.FILENAME}")

    def update_car_data(self, ai: Ai) -> None:
        set_value(ai.ini, "GEARS", "UP", self.up)
        set_value(ai.ini, "GEARS", "DOWN", self.down)
        set_float(ai.ini, "GEARS", "SLIP_THRESHOLD", self.slip_threshold, 2)
        set_float(ai.ini, "GEARS", "GAS_CUTOFF_TIME", self.gas_cutoff_time, 2)
