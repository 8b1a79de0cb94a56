"""engine.ini sections edited by an engine swap."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .car import CarIniFile
from ..core.errors import InvalidCarError, LutParseError, MissingMandatoryProperty, PropertyParseError
from ..core.ini import Ini, get_mandatory_property, get_value, set_float, set_value
from ..core.lut import LutPairs, LutProperty

logger = logging.getLogger(__name__)


class Engine(CarIniFile):
    FILENAME = "engine.ini"


@dataclass
class EngineData:
    SECTION_NAME = "ENGINE_DATA"

    altitude_sensitivity: float
    inertia: float
    limiter: int
    limiter_hz: int
    minimum: int

    @classmethod
    def load_from_ini(cls, ini: Ini) -> 'EngineData':
        s = cls.SECTION_NAME
        return cls(
            altitude_sensitivity=get_mandatory_property(ini, s, "ALTITUDE_SENSITIVITY", float),
            inertia=get_mandatory_property(ini, s, "INERTIA", float),
            limiter=int(get_mandatory_property(ini, s, "LIMITER", float)),
            limiter_hz=int(get_mandatory_property(ini, s, "LIMITER_HZ", float)),
            minimum=int(get_mandatory_property(ini, s, "MINIMUM", float)),
        )

    def update_car_data(self, engine: Engine) -> None:
        s = self.SECTION_NAME
        set_float(engine.ini, s, "ALTITUDE_SENSITIVITY", self.altitude_sensitivity, 2)
        set_float(engine.ini, s, "INERTIA", self.inertia, 3)
        set_value(engine.ini, s, "LIMITER", self.limiter)
        set_value(engine.ini, s, "LIMITER_HZ", self.limiter_hz)
        set_value(engine.ini, s, "MINIMUM", self.minimum)


@dataclass
class Damage:
    SECTION_NAME = "DAMAGE"

    rpm_threshold: int
    rpm_damage_k: int
    turbo_boost_threshold: Optional[float] = None
    turbo_damage_k: Optional[int] = None

    @classmethod
    def load_from_ini(cls, ini: Ini) -> 'Damage':
        s = cls.SECTION_NAME
        turbo_damage_k = get_value(ini, s, "TURBO_DAMAGE_K", float)
        return cls(
            rpm_threshold=int(get_mandatory_property(ini, s, "RPM_THRESHOLD", float)),
            rpm_damage_k=int(get_mandatory_property(ini, s, "RPM_DAMAGE_K", float)),
            turbo_boost_threshold=get_value(ini, s, "TURBO_BOOST_THRESHOLD", float),
            turbo_damage_k=int(turbo_damage_k) if turbo_damage_k is not None else None,
        )

    def update_car_data(self, engine: Engine) -> None:
        s = self.SECTION_NAME
        set_value(engine.ini, s, "RPM_THRESHOLD", self.rpm_threshold)
        set_value(engine.ini, s, "RPM_DAMAGE_K", self.rpm_damage_k)
        if self.turbo_boost_threshold is not None:
            set_float(engine.ini, s, "TURBO_BOOST_THRESHOLD", self.turbo_boost_threshold, 2)
        else:
            engine.ini.remove_value(s, "TURBO_BOOST_THRESHOLD")
        if self.turbo_damage_k is not None:
            set_value(engine.ini, s, "TURBO_DAMAGE_K", self.turbo_damage_k)
        else:
            engine.ini.remove_value(s, "TURBO_DAMAGE_K")


@dataclass
class CoastCurve:
    """Engine braking defined by a single reference point."""
    HEADER_KEY = "COAST_CURVE"
    COAST_REF = "FROM_COAST_REF"
    SECTION_NAME = "COAST_REF"

    rpm: int
    torque: int
    non_linearity: float = 0.0

    @classmethod
    def load_from_ini(cls, ini: Ini) -> 'CoastCurve':
        curve_type = get_mandatory_property(ini, "HEADER", cls.HEADER_KEY)
        if curve_type != cls.COAST_REF:
            raise PropertyParseError(curve_type)
        s = cls.SECTION_NAME
        return cls(
            rpm=int(get_mandatory_property(ini, s, "RPM", float)),
            torque=int(get_mandatory_property(ini, s, "TORQUE", float)),
            non_linearity=get_mandatory_property(ini, s, "NON_LINEARITY", float),
        )

    def update_car_data(self, engine: Engine) -> None:
        engine.ini.set_value("HEADER", self.HEADER_KEY, self.COAST_REF)
        s = self.SECTION_NAME
        set_value(engine.ini, s, "RPM", self.rpm)
        set_value(engine.ini, s, "TORQUE", self.torque)
        set_float(engine.ini, s, "NON_LINEARITY", self.non_linearity, 2)


class PowerCurve:
    """The torque lut referenced by HEADER.POWER_CURVE (rpm -> Nm at the wheels)."""

    def __init__(self, lut: LutProperty):
        self.lut = lut

    @classmethod
    def load_from_engine(cls, engine: Engine) -> 'PowerCurve':
        try:
            lut = LutProperty.mandatory_from_ini("HEADER", "POWER_CURVE", engine.ini,
                                                 engine.data_interface, key_type=_int_key)
        except (LutParseError, MissingMandatoryProperty) as e:
            raise InvalidCarError(f"Failed to load power curve lut from ini. {e}")
        return cls(lut)

    def get_lut(self) -> LutProperty:
        return self.lut

    def update(self, data: LutPairs) -> LutPairs:
        return self.lut.update(data)

    def update_car_data(self, engine: Engine) -> None:
        self.lut.update_car_data(engine.ini, engine.data_interface)


def _int_key(raw: str) -> int:
    return int(float(raw))


@dataclass
class TurboSection:
    index: int
    lag_dn: float = 0.99
    lag_up: float = 0.965
    max_boost: float = 1.0
    wastegate: float = 1.0
    display_max_boost: float = 1.0
    reference_rpm: int = 3000
    gamma: float = 1.0
    cockpit_adjustable: int = 0

    @staticmethod
    def section_name_for(index: int) -> str:
        return f"TURBO_{index}"

    @property
    def section_name(self) -> str:
        return self.section_name_for(self.index)

    @classmethod
    def load_from_ini(cls, ini: Ini, index: int) -> 'TurboSection':
        s = cls.section_name_for(index)
        return cls(
            index=index,
            lag_dn=get_mandatory_property(ini, s, "LAG_DN", float),
            lag_up=get_mandatory_property(ini, s, "LAG_UP", float),
            max_boost=get_mandatory_property(ini, s, "MAX_BOOST", float),
            wastegate=get_mandatory_property(ini, s, "WASTEGATE", float),
            display_max_boost=get_mandatory_property(ini, s, "DISPLAY_MAX_BOOST", float),
            reference_rpm=int(get_mandatory_property(ini, s, "REFERENCE_RPM", float)),
            gamma=get_mandatory_property(ini, s, "GAMMA", float),
            cockpit_adjustable=int(get_mandatory_property(ini, s, "COCKPIT_ADJUSTABLE", float)),
        )

    def update_ini(self, ini: Ini) -> None:
        s = self.section_name
        set_float(ini, s, "LAG_DN", self.lag_dn, 3)
        set_float(ini, s, "LAG_UP", self.lag_up, 3)
        set_float(ini, s, "MAX_BOOST", self.max_boost, 2)
        set_float(ini, s, "WASTEGATE", self.wastegate, 2)
        set_float(ini, s, "DISPLAY_MAX_BOOST", self.display_max_boost, 2)
        set_value(ini, s, "REFERENCE_RPM", self.reference_rpm)
        set_float(ini, s, "GAMMA", self.gamma, 2)
        set_value(ini, s, "COCKPIT_ADJUSTABLE", self.cockpit_adjustable)


def count_turbo_sections(ini: Ini) -> int:
    count = 0
    while ini.contains_section(TurboSection.section_name_for(count)):
        count += 1
    return count


@dataclass
class Turbo:
    bov_pressure_threshold: Optional[float] = None
    sections: List[TurboSection] = field(default_factory=list)

    @classmethod
    def load_from_ini(cls, ini: Ini) -> Optional['Turbo']:
        """None when the engine has no TURBO_N sections."""
        count = count_turbo_sections(ini)
        if count == 0:
            return None
        return cls(
            bov_pressure_threshold=get_value(ini, "BOV", "PRESSURE_THRESHOLD", float),
            sections=[TurboSection.load_from_ini(ini, idx) for idx in range(count)],
        )

    def add_section(self, section: TurboSection) -> None:
        self.sections.append(section)

    def clear_sections(self) -> None:
        self.sections.clear()

    def clear_bov_threshold(self) -> None:
        self.bov_pressure_threshold = None

    def update_car_data(self, engine: Engine) -> None:
        ini = engine.ini
        for idx in range(count_turbo_sections(ini)):
            ini.remove_section(TurboSection.section_name_for(idx))
        if self.bov_pressure_threshold is not None:
            set_float(ini, "BOV", "PRESSURE_THRESHOLD", self.bov_pressure_threshold, 2)
        else:
            ini.remove_section("BOV")
        for section in self.sections:
            section.update_ini(ini)


@dataclass
class ExtendedFuelConsumptionBaseData:
    SECTION_NAME = "ENGINE_DATA"

    idle_throttle: Optional[float] = None
    idle_cutoff: Optional[int] = None
    mechanical_efficiency: Optional[float] = None

    @classmethod
    def load_from_ini(cls, ini: Ini) -> 'ExtendedFuelConsumptionBaseData':
        s = cls.SECTION_NAME
        idle_cutoff = get_value(ini, s, "IDLE_CUTOFF", float)
        return cls(
            idle_throttle=get_value(ini, s, "IDLE_THROTTLE", float),
            idle_cutoff=int(idle_cutoff) if idle_cutoff is not None else None,
            mechanical_efficiency=get_value(ini, s, "MECHANICAL_EFFICIENCY", float),
        )

    def update_ini(self, ini: Ini) -> None:
        s = self.SECTION_NAME
        if self.idle_throttle is not None:
            set_float(ini, s, "IDLE_THROTTLE", self.idle_throttle, 3)
        elif ini.section_contains_property(s, "IDLE_THROTTLE"):
            ini.remove_value(s, "IDLE_THROTTLE")
        if self.idle_cutoff is not None:
            set_value(ini, s, "IDLE_CUTOFF", self.idle_cutoff)
        elif ini.section_contains_property(s, "IDLE_CUTOFF"):
            ini.remove_value(s, "IDLE_CUTOFF")
        if self.mechanical_efficiency is not None:
            set_float(ini, s, "MECHANICAL_EFFICIENCY", self.mechanical_efficiency, 3)
        elif ini.section_contains_property(s, "MECHANICAL_EFFICIENCY"):
            ini.remove_value(s, "MECHANICAL_EFFICIENCY")


class FuelConsumptionFlowRate:
    """Extended physics fuel model: kg/hr flow by rpm, capped at MAX_FUEL_FLOW."""
    SECTION_NAME = "FUEL_CONSUMPTION"
    LUT_KEY = "MAX_FUEL_FLOW_LUT"

    def __init__(self, base_data: ExtendedFuelConsumptionBaseData,
                 max_fuel_flow_lut: Optional[LutProperty], max_fuel_flow: int):
        self.base_data = base_data
        self.max_fuel_flow_lut = max_fuel_flow_lut
        self.max_fuel_flow = max_fuel_flow

    @classmethod
    def new(cls, idle_throttle: float, idle_cutoff: int, mechanical_efficiency: float,
            max_fuel_flow_lut: Optional[LutPairs], max_fuel_flow: int) -> 'FuelConsumptionFlowRate':
        lut = None
        if max_fuel_flow_lut is not None:
            lut = LutProperty.new_inline(cls.SECTION_NAME, cls.LUT_KEY, max_fuel_flow_lut)
        return cls(ExtendedFuelConsumptionBaseData(idle_throttle, idle_cutoff, mechanical_efficiency),
                   lut, max_fuel_flow)

    @classmethod
    def load_from_engine(cls, engine: Engine) -> Optional['FuelConsumptionFlowRate']:
        max_flow = get_value(engine.ini, cls.SECTION_NAME, "MAX_FUEL_FLOW", float)
        if max_flow is None:
            return None
        lut = LutProperty.optional_from_ini(cls.SECTION_NAME, cls.LUT_KEY, engine.ini,
                                            engine.data_interface, key_type=_int_key)
        return cls(ExtendedFuelConsumptionBaseData.load_from_ini(engine.ini), lut, int(max_flow))

    def lut_values(self) -> LutPairs:
        return self.max_fuel_flow_lut.to_list() if self.max_fuel_flow_lut else []

    def update_car_data(self, engine: Engine) -> None:
        ini = engine.ini
        self.base_data.update_ini(ini)
        ini.remove_section(self.SECTION_NAME)
        set_value(ini, self.SECTION_NAME, "MAX_FUEL_FLOW", self.max_fuel_flow)
        set_value(ini, self.SECTION_NAME, "LOG_FUEL_FLOW", 0)
        if self.max_fuel_flow_lut is not None:
            self.max_fuel_flow_lut.update_car_data(ini, engine.data_interface)
