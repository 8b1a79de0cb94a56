"""Boost controllers stored in ctrl_turbo{N}.ini alongside engine.ini."""
import logging
from enum import Enum
from typing import List, Optional

from .car import Car, CarIniFile
from ..core.errors import InvalidCarError, LutParseError, MissingMandatoryProperty, PropertyParseError
from ..core.ini import Ini, get_mandatory_property, set_float, set_value
from ..core.lut import LutPairs, LutProperty

logger = logging.getLogger(__name__)


class ControllerInput(Enum):
    RPMS = "RPMS"
    GAS = "GAS"
    GEAR = "GEAR"

    @classmethod
    def from_string(cls, value: str) -> 'ControllerInput':
        try:
            return cls(value)
        except ValueError:
            raise PropertyParseError(value)


class ControllerCombinator(Enum):
    ADD = "ADD"
    MULT = "MULT"

    @classmethod
    def from_string(cls, value: str) -> 'ControllerCombinator':
        try:
            return cls(value)
        except ValueError:
            raise PropertyParseError(value)


def controller_ini_filename(turbo_index: int) -> str:
    return f"ctrl_turbo{turbo_index}.ini"


def controller_section_name(index: int) -> str:
    return f"CONTROLLER_{index}"


class TurboController:
    def __init__(self, index: int, input_type: ControllerInput, combinator: ControllerCombinator,
                 lut: LutPairs, filter_value: float, up_limit: float, down_limit: float):
        self.index = index
        self.input = input_type
        self.combinator = combinator
        self.lut = LutProperty.new_inline(self.section_name, "LUT", lut)
        self.filter = filter_value
        self.up_limit = up_limit
        self.down_limit = down_limit

    @property
    def section_name(self) -> str:
        return controller_section_name(self.index)

    @classmethod
    def load_from_file(cls, idx: int, controller_file: 'TurboControllerFile') -> 'TurboController':
        section_name = controller_section_name(idx)
        ini = controller_file.ini
        try:
            lut = LutProperty.mandatory_from_ini(section_name, "LUT", ini, controller_file.data_interface)
        except (LutParseError, MissingMandatoryProperty) as e:
            raise InvalidCarError(f"Failed to load turbo controller with index {idx}: {e}")
        return cls(
            idx,
            ControllerInput.from_string(get_mandatory_property(ini, section_name, "INPUT")),
            ControllerCombinator.from_string(get_mandatory_property(ini, section_name, "COMBINATOR")),
            lut.to_list(),
            get_mandatory_property(ini, section_name, "FILTER", float),
            get_mandatory_property(ini, section_name, "UP_LIMIT", float),
            get_mandatory_property(ini, section_name, "DOWN_LIMIT", float),
        )

    def get_lut(self) -> LutProperty:
        return self.lut

    def update_ini(self, ini: Ini, data_interface) -> None:
        s = self.section_name
        set_value(ini, s, "INPUT", self.input.value)
        set_value(ini, s, "COMBINATOR", self.combinator.value)
        self.lut.update_car_data(ini, data_interface)
        set_float(ini, s, "FILTER", self.filter, 3)
        set_value(ini, s, "UP_LIMIT", self.up_limit)
        set_value(ini, s, "DOWN_LIMIT", self.down_limit)


class TurboControllerFile(CarIniFile):
    """One ctrl_turbo{N}.ini; the filename depends on the turbo it controls."""

    def __init__(self, car: Car, turbo_index: int, ini: Optional[Ini] = None):
        super().__init__(car, ini if ini is not None else Ini())
        self.turbo_index = turbo_index
        self.controllers: List[TurboController] = []

    @property
    def filename(self) -> str:
        return controller_ini_filename(self.turbo_index)

    @classmethod
    def from_car(cls, car: Car, turbo_index: int = 0) -> Optional['TurboControllerFile']:
        data = car.data_interface.get_file(controller_ini_filename(turbo_index))
        if data is None:
            return None
        return cls(car, turbo_index, Ini.load_from_bytes(data))

    @classmethod
    def delete_from_car(cls, car: Car, turbo_index: int) -> None:
        car.data_interface.delete(controller_ini_filename(turbo_index))

    def num_controller_sections(self) -> int:
        return len(self.ini.get_section_names_with_prefix("CONTROLLER_"))

    def load_controllers(self) -> List[TurboController]:
        return [TurboController.load_from_file(idx, self)
                for idx in self.ini.get_section_names_with_prefix("CONTROLLER_")]

    def add_controller(self, controller: TurboController) -> None:
        self.controllers.append(controller)
        controller.update_ini(self.ini, self.data_interface)

    def write(self) -> None:
        self.car.data_interface.write_file(self.filename, self.ini.to_bytes())


def delete_all_turbo_controllers(car: Car) -> int:
    """Delete every ctrl_turbo{N}.ini, returning how many were removed."""
    idx = 0
    while car.data_interface.contains_file(controller_ini_filename(idx)):
        logger.info("Deleting %s", controller_ini_filename(idx))
        TurboControllerFile.delete_from_car(car, idx)
        idx += 1
    return idx
