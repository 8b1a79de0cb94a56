import logging
from enum import Enum
from typing import Optional

from .car import CarIniFile
from ..core.errors import PropertyParseError
from ..core.ini import get_value, set_float, set_value

logger = logging.getLogger(__name__)


class CarVersion(Enum):
    V1 = '1'
    V2 = '2'
    CSP_EXTENDED_2 = 'extended-2'

    @classmethod
    def from_string(cls, value: str) -> 'CarVersion':
        for version in cls:
            if version.value == value:
                return version
        raise PropertyParseError(value)


class CarIniData(CarIniFile):
    """car.ini: version, screen name, mass and fuel settings."""
    FILENAME = "car.ini"

    def version(self) -> Optional[CarVersion]:
        raw = self.ini.get_value("HEADER", "VERSION")
        if raw is None:
            return None
        return CarVersion.from_string(raw)

    def set_version(self, version: CarVersion) -> None:
        self.ini.set_value("HEADER", "VERSION", version.value)

    def screen_name(self) -> Optional[str]:
        return self.ini.get_value("INFO", "SCREEN_NAME")

    def set_screen_name(self, name: str) -> None:
        self.ini.set_value("INFO", "SCREEN_NAME", name)

    def total_mass(self) -> Optional[int]:
        val = get_value(self.ini, "BASIC", "TOTALMASS", float)
        return int(val) if val is not None else None

    def set_total_mass(self, mass: int) -> None:
        set_value(self.ini, "BASIC", "TOTALMASS", mass)

    def fuel_consumption(self) -> Optional[float]:
        return get_value(self.ini, "FUEL", "CONSUMPTION", float)

    def set_fuel_consumption(self, consumption: float) -> None:
        set_float(self.ini, "FUEL", "CONSUMPTION", consumption, 4)

    def clear_fuel_consumption(self) -> None:
        self.ini.remove_value("FUEL", "CONSUMPTION")

    def fuel(self) -> Optional[int]:
        return get_value(self.ini, "FUEL", "FUEL", int)

    def max_fuel(self) -> Optional[int]:
        return get_value(self.ini, "FUEL", "MAX_FUEL", int)
