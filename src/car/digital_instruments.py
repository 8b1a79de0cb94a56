import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .car import CarIniFile
from ..core.errors import InvalidCarError
from ..core.ini import Ini, get_mandatory_property, set_float, set_value
from ..utils.formatting import format_number
from ..utils.numeric import round_half_away, round_to_nearest_hundred

logger = logging.getLogger(__name__)


class DigitalInstruments(CarIniFile):
    FILENAME = "digital_instruments.ini"


def rounded_percentage_of(num: int, of: int) -> int:
    return round_half_away((num / of) * 100)


def percentage_of(percentage: int, of: int) -> float:
    return of * (percentage / 100)


def _rescale(rpm: int, old_limiter: int, new_limiter: int) -> int:
    return round_to_nearest_hundred(percentage_of(rounded_percentage_of(rpm, old_limiter), new_limiter))


@dataclass
class Led:
    index: int
    object_name: str
    rpm_switch: int
    emissive: Tuple[float, float, float]
    diffuse: float
    blink_switch: int
    blink_hz: int

    @staticmethod
    def section_name_for(index: int) -> str:
        return f"LED_{index}"

    @property
    def section_name(self) -> str:
        return self.section_name_for(self.index)

    @classmethod
    def load_from_ini(cls, ini: Ini, index: int) -> 'Led':
        s = cls.section_name_for(index)
        emissive_text = get_mandatory_property(ini, s, "EMISSIVE")
        try:
            emissive = tuple(float(part) for part in emissive_text.split(','))
        except ValueError as e:
            raise InvalidCarError(f"Cannot parse emissive elements as numbers. {e}")
        if len(emissive) < 3:
            raise InvalidCarError(f"{s}.EMISSIVE needs 3 elements, got '{emissive_text}'")
        return cls(
            index=index,
            object_name=get_mandatory_property(ini, s, "OBJECT_NAME"),
            rpm_switch=int(get_mandatory_property(ini, s, "RPM_SWITCH", float)),
            emissive=emissive[:3],
            diffuse=get_mandatory_property(ini, s, "DIFFUSE", float),
            blink_switch=int(get_mandatory_property(ini, s, "BLINK_SWITCH", float)),
            blink_hz=int(get_mandatory_property(ini, s, "BLINK_HZ", float)),
        )

    def update_ini(self, ini: Ini) -> None:
        s = self.section_name
        ini.set_value(s, "OBJECT_NAME", self.object_name)
        set_value(ini, s, "RPM_SWITCH", self.rpm_switch)
        ini.set_value(s, "EMISSIVE", ','.join(format_number(float(c)) for c in self.emissive))
        set_float(ini, s, "DIFFUSE", self.diffuse, 2)
        set_value(ini, s, "BLINK_SWITCH", self.blink_switch)
        set_value(ini, s, "BLINK_HZ", self.blink_hz)


def count_shift_leds(ini: Ini) -> int:
    count = 0
    while ini.contains_section(Led.section_name_for(count)):
        count += 1
    return count


class ShiftLights:
    def __init__(self, leds: List[Led]):
        self.leds = leds

    @classmethod
    def load_from_ini(cls, ini: Ini) -> Optional['ShiftLights']:
        count = count_shift_leds(ini)
        if count == 0:
            return None
        return cls([Led.load_from_ini(ini, idx) for idx in range(count)])

    def num_leds(self) -> int:
        return len(self.leds)

    def update_limiter(self, old_limiter: int, new_limiter: int) -> None:
        """Move every switch point proportionally from the old limiter to the new one."""
        for led in self.leds:
            if led.rpm_switch == old_limiter:
                led.rpm_switch = new_limiter
            else:
                led.rpm_switch = _rescale(led.rpm_switch, old_limiter, new_limiter)

            if old_limiter < led.blink_switch < new_limiter:
                led.blink_switch = new_limiter + 100
            elif led.blink_switch == old_limiter:
                led.blink_switch = new_limiter
            else:
                led.blink_switch = _rescale(led.blink_switch, old_limiter, new_limiter)

    def update_car_data(self, instruments: DigitalInstruments) -> None:
        for led in self.leds:
            led.update_ini(instruments.ini)
