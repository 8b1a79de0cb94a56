"""Derive simulator physics values from exported engine data.

Two calculators share one interface:

* ``RecordCalculator``: a sandbox ``EngineRecord`` plus the BeamNG engine jbeam
  and the exported car file (engines packaged as BeamNG mods).
* ``CurveDataCalculator``: a ``CurveDataSource`` from a direct export.
"""
import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from ..car.drivetrain import DriveType
from ..car.engine import CoastCurve, Damage, FuelConsumptionFlowRate, Turbo, TurboSection
from ..car.turbo_ctrl import ControllerCombinator, ControllerInput, TurboController
from ..config import TURBO_CONTROLLER_INDEX
from ..core.constants import (
    COAST_V2_VERSION_NUM, COAST_V3_VERSION_NUM, DIRECT_EXPORT_MAX_FLOW_FALLBACK,
    ENGINE_JBEAM_KEY_PREFIX, EXPORT_RESPONSIVENESS_VERSION_NUM, FIRST_AL_RIMA_VERSION_NUM,
    INERTIA_AT_FULL_RESPONSE, INERTIA_AT_ZERO_RESPONSE, INERTIA_MAX, INERTIA_MIN,
    MAX_FLOW_FALLBACK_FRACTION, NA_ASPIRATION_PREFIX, NO_OPTION_PREFIX,
    SUPERCHARGER_ASPIRATION_PREFIXES,
)
from ..core import jbeam
from ..core.beamng import BeamNGMod, CarFileReader, json_car_file_reader
from ..core.errors import DecodeError, EngineCraneError, FabricationError, FabricationErrorKind, ValidationError
from ..core.models import CurveDataSource, EngineRecord, RecordSource, SandboxVersion
from ..core.validation import AutomationSandboxCrossChecker, car_file_variant
from ..crate_engine.crate_engine import CrateEngine
from ..crate_engine.data import DirectExportData
from ..utils.numeric import (
    clamp, kw_to_bhp, lerp, normal_lerp, power_kw, round_float_to, round_half_away,
)

logger = logging.getLogger(__name__)

TorquePairs = List[Tuple[int, int]]

IDLE_THROTTLE = 0.03
TURBO_LAG_DN = 0.99
TURBO_LAG_UP = 0.965
TURBO_GAMMA = 2.5
SUPERCHARGER_GAMMA = 1.0
CONTROLLER_FILTER = 0.95
CONTROLLER_UP_LIMIT = 10000.0
CONTROLLER_DOWN_LIMIT = 0.0
GASOLINE_LHV_KJ_PER_KG = 43400.0
FUEL_DENSITY = 750.0


def normalise_boost_value(boost: float, decimal_places: int) -> float:
    return round_float_to(max(0.0, boost), decimal_places)


def missing_section(name: str, resource: str) -> FabricationError:
    return FabricationError(FabricationErrorKind.MISSING_DATA_SECTION, name, resource)


def invalid_data(name: str, reason: str) -> FabricationError:
    return FabricationError(FabricationErrorKind.INVALID_DATA, name, reason)


def taper_curve(curve: List[Tuple[int, float]]) -> List[Tuple[int, float]]:
    """Extend a wheel torque curve by two steps: half the last value, then zero."""
    if len(curve) < 2:
        raise invalid_data("torque curve", "needs at least two points to taper")
    increment = curve[-1][0] - curve[-2][0]
    last_rpm, last_val = curve[-1]
    curve.append((last_rpm + increment, last_val / 2))
    curve.append((last_rpm + 2 * increment, 0.0))
    return curve


def fold_max_boost(boost_values: List[float], start_idx: int, decimal_places: int,
                   boost_target: float = math.inf) -> Tuple[int, float]:
    """Find the reference index and max boost of a boost curve.

    The reference index only moves on for a boost that is higher at 1 decimal
    place and doesn't exceed ``boost_target``; the max follows every 2 decimal
    place increase.
    """
    ref_idx = start_idx
    max_boost = normalise_boost_value(boost_values[start_idx], decimal_places)
    for idx in range(len(boost_values)):
        val = boost_values[idx]
        if normalise_boost_value(val, 2) > max_boost:
            if normalise_boost_value(val, 2) <= boost_target and \
                    normalise_boost_value(val, 1) > normalise_boost_value(max_boost, 1):
                ref_idx = idx
            max_boost = val
    return ref_idx, max_boost


def build_turbo(max_boost: float, reference_rpm: int, gamma: float) -> Turbo:
    turbo = Turbo()
    turbo.add_section(TurboSection(
        index=0,
        lag_dn=TURBO_LAG_DN,
        lag_up=TURBO_LAG_UP,
        max_boost=max_boost,
        wastegate=max_boost,
        display_max_boost=math.ceil(max_boost * 10) / 10,
        reference_rpm=reference_rpm,
        gamma=gamma,
        cockpit_adjustable=0,
    ))
    return turbo


def build_boost_controller(rpm_values, boost_values) -> TurboController:
    lut = []
    for rpm, boost in zip(rpm_values, boost_values):
        lut.append((float(rpm), round_float_to(boost, 3) if boost > 0 else 0.0))
    return TurboController(TURBO_CONTROLLER_INDEX, ControllerInput.RPMS, ControllerCombinator.ADD,
                           lut, CONTROLLER_FILTER, CONTROLLER_UP_LIMIT, CONTROLLER_DOWN_LIMIT)


class EngineParameterCalculator(ABC):
    """Everything an engine swap writes, derived from one engine's data."""

    @abstractmethod
    def engine_weight(self) -> int:
        pass

    @abstractmethod
    def inertia(self) -> float:
        pass

    @abstractmethod
    def idle_speed(self) -> Optional[float]:
        pass

    @abstractmethod
    def limiter(self) -> float:
        pass

    @abstractmethod
    def basic_fuel_consumption(self) -> float:
        pass

    @abstractmethod
    def fuel_flow_consumption(self, mechanical_efficiency: float) -> FuelConsumptionFlowRate:
        pass

    @abstractmethod
    def engine_torque_curve(self) -> TorquePairs:
        pass

    @abstractmethod
    def peak_torque(self) -> int:
        pass

    @abstractmethod
    def engine_bhp_power_curve(self) -> TorquePairs:
        pass

    @abstractmethod
    def peak_bhp(self) -> int:
        pass

    @abstractmethod
    def is_naturally_aspirated(self) -> bool:
        pass

    @abstractmethod
    def wheel_torque_curve(self, drivetrain_efficiency: float) -> List[Tuple[int, float]]:
        pass

    @abstractmethod
    def get_max_boost_params(self, decimal_places: int) -> Tuple[int, float]:
        pass

    @abstractmethod
    def create_turbo(self) -> Optional[Turbo]:
        pass

    @abstractmethod
    def create_turbo_controller(self) -> Optional[TurboController]:
        pass

    @abstractmethod
    def coast_data(self) -> CoastCurve:
        pass

    @abstractmethod
    def damage(self) -> Damage:
        pass

    def wheel_torque_for(self, drive_type: DriveType) -> List[Tuple[int, float]]:
        return self.wheel_torque_curve(drive_type.mechanical_efficiency())

    def _required_idle(self) -> float:
        idle = self.idle_speed()
        if idle is None:
            raise missing_section("idle speed", "engine data")
        return idle


class RecordCalculator(EngineParameterCalculator):
    """Calculations over a sandbox record, the engine jbeam and the exported car file."""

    def __init__(self, car_file: Dict[str, Any], engine_jbeam: Dict[str, Any], record: EngineRecord):
        self.car_file = car_file
        self.engine_jbeam = engine_jbeam
        self.record = record

    def engine_weight(self) -> int:
        return round_half_away(self.record.weight)

    def _engine_jbeam_key(self) -> str:
        for key in self.engine_jbeam:
            if key.startswith(ENGINE_JBEAM_KEY_PREFIX):
                return key
        return ENGINE_JBEAM_KEY_PREFIX.rstrip('_')

    def _main_engine_map(self) -> Dict[str, Any]:
        engine_section = _get_object(self.engine_jbeam, self._engine_jbeam_key(), "main jbeam engine file")
        return _get_object(engine_section, "mainEngine", "main jbeam engine file")

    def inertia(self) -> float:
        value = self._main_engine_map().get("inertia")
        if value is None:
            raise missing_section("inertia", "mainEngine")
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        if isinstance(value, str):
            # e.g. "$=0.15*$inertia_scale"
            trimmed = value.split("*$")[0].rsplit("$=")[-1]
            try:
                return float(trimmed)
            except ValueError:
                raise invalid_data("inertia", f"couldn't parse a number from {value}")
        raise invalid_data("inertia", "expected to be a number or string")

    def idle_speed(self) -> Optional[float]:
        if not self.record.rpm_curve:
            return self.record.idle_speed
        return max(self.record.idle_speed, self.record.rpm_curve[0])

    def limiter(self) -> float:
        return self.record.max_rpm

    def basic_fuel_consumption(self) -> float:
        fuel_use_per_hour = (self.record.peak_power * self.record.econ) / FUEL_DENSITY
        fuel_use_per_sec = fuel_use_per_hour / 3600
        return (fuel_use_per_sec * 1000) / self.record.peak_power_rpm

    def _fuel_use_per_sec_at(self, rpm_index: int) -> float:
        # econ curve holds BSFC in g/kWh, power curve kW
        return (self.record.econ_curve[rpm_index] / 3600000) * (self.record.power_curve[rpm_index] * 1000)

    def fuel_flow_lut(self) -> List[Tuple[int, int]]:
        return [(int(rpm), round_half_away(self._fuel_use_per_sec_at(idx) * 3.6))
                for idx, rpm in enumerate(self.record.rpm_curve)]

    def max_fuel_flow(self) -> int:
        num_entries = len(self.record.rpm_curve)
        idx = min(math.ceil(num_entries * MAX_FLOW_FALLBACK_FRACTION), num_entries - 1)
        return round_half_away(self._fuel_use_per_sec_at(idx) * 3.6)

    def fuel_flow_consumption(self, mechanical_efficiency: float) -> FuelConsumptionFlowRate:
        return FuelConsumptionFlowRate.new(
            IDLE_THROTTLE,
            round_half_away(self._required_idle() + 100),
            mechanical_efficiency,
            self.fuel_flow_lut(),
            self.max_fuel_flow(),
        )

    def engine_torque_curve(self) -> TorquePairs:
        return [(int(rpm), round_half_away(self.record.torque_curve[idx]))
                for idx, rpm in enumerate(self.record.rpm_curve)]

    def peak_torque(self) -> int:
        return round_half_away(self.record.peak_torque)

    def engine_bhp_power_curve(self) -> TorquePairs:
        return [(int(rpm), round_half_away(kw_to_bhp(self.record.power_curve[idx])))
                for idx, rpm in enumerate(self.record.rpm_curve)]

    def peak_bhp(self) -> int:
        return round_half_away(kw_to_bhp(self.record.peak_power))

    def is_naturally_aspirated(self) -> bool:
        return self.record.aspiration.startswith(NA_ASPIRATION_PREFIX)

    def wheel_torque_curve(self, drivetrain_efficiency: float) -> List[Tuple[int, float]]:
        out = []
        if self.is_naturally_aspirated():
            logger.info("Writing torque curve for NA engine")
            for idx, rpm in enumerate(self.record.rpm_curve):
                out.append((int(rpm), float(round_half_away(self.record.torque_curve[idx] * drivetrain_efficiency))))
        else:
            logger.info("Writing torque curve for turbo engine")
            for idx, rpm in enumerate(self.record.rpm_curve):
                boost = max(0.0, self.record.boost_curve[idx])
                adjusted = round_half_away((self.record.torque_curve[idx] / (1 + boost)) * drivetrain_efficiency)
                logger.debug("Adjusted %s@%d for boost pressure %s to %d",
                             self.record.torque_curve[idx], int(rpm), 1 + boost, adjusted)
                out.append((int(rpm), float(adjusted)))
        return taper_curve(out)

    def get_max_boost_params(self, decimal_places: int) -> Tuple[int, float]:
        if self.is_naturally_aspirated():
            return 0, 0.0
        ref_idx, max_boost = fold_max_boost(self.record.boost_curve, 0, decimal_places)
        return round_half_away(self.record.rpm_curve[ref_idx]), round_float_to(max_boost, decimal_places)

    def create_turbo(self) -> Optional[Turbo]:
        if self.is_naturally_aspirated():
            return None
        ref_rpm, max_boost = self.get_max_boost_params(3)
        return build_turbo(max_boost, ref_rpm, TURBO_GAMMA)

    def create_turbo_controller(self) -> Optional[TurboController]:
        if self.is_naturally_aspirated():
            return None
        return build_boost_controller(self.record.rpm_curve, self.record.boost_curve)

    def _car_file_game_version(self) -> int:
        variant = car_file_variant(self.car_file)
        if variant is None or "GameVersion" not in variant:
            raise missing_section("'Car.Variant.GameVersion'", "Automation car file")
        try:
            return int(float(variant["GameVersion"]))
        except (TypeError, ValueError):
            raise invalid_data("'Car.Variant.GameVersion'", "expected to be a number")

    def coast_data(self) -> CoastCurve:
        version = self._car_file_game_version()
        engine_map = self._main_engine_map()
        dynamic_friction = _get_number(engine_map, "dynamicFriction", "mainEngine")
        angular_velocity = (self.record.max_rpm * 2 * math.pi) / 60
        if version < COAST_V2_VERSION_NUM:
            logger.info("Using v1 coast calculation for version %d", version)
            static_friction = _get_number(engine_map, "friction", "mainEngine")
            torque = angular_velocity * dynamic_friction + 2 * static_friction
        elif version >= COAST_V3_VERSION_NUM:
            logger.info("Using v3 coast calculation for version %d", version)
            static_friction = _get_number(engine_map, "friction", "mainEngine")
            brake_torque = _get_number(engine_map, "engineBrakeTorque", "mainEngine")
            torque = angular_velocity * dynamic_friction + brake_torque + static_friction
        else:
            logger.info("Using v2 coast calculation for version %d", version)
            brake_torque = _get_number(engine_map, "engineBrakeTorque", "mainEngine")
            torque = angular_velocity * dynamic_friction + brake_torque
        return CoastCurve(round_half_away(self.record.max_rpm), round_half_away(torque), 0.0)

    def damage(self) -> Damage:
        _, max_boost = self.get_max_boost_params(2)
        return Damage(
            rpm_threshold=round_half_away(self.limiter() + 200),
            rpm_damage_k=1,
            turbo_boost_threshold=float(math.ceil(max_boost)),
            turbo_damage_k=0 if self.record.aspiration == NA_ASPIRATION_PREFIX else 4,
        )


class CurveDataCalculator(EngineParameterCalculator):
    """Calculations over a direct export's typed data."""

    def __init__(self, data: CurveDataSource):
        self.data = data

    # -------- lookups --------

    def lookup_float(self, group: str, key: str) -> float:
        group_map = self.data.float_data.get(group)
        if group_map is None:
            raise missing_section(f"Group {group}", "float_data")
        if key not in group_map:
            raise missing_section(key, "float_data")
        return group_map[key]

    def lookup_string(self, group: str, key: str) -> str:
        group_map = self.data.string_data.get(group)
        if group_map is None:
            raise missing_section(f"Group {group}", "string_data")
        if key not in group_map:
            raise missing_section(key, "string_data")
        return group_map[key]

    def lookup_curve(self, name: str) -> Dict[int, float]:
        curve = self.data.get_curve(name)
        if curve is None:
            raise missing_section(name, "curve_data")
        return curve

    def _curve_point(self, curve: Dict[int, float], name: str, idx: int) -> float:
        if idx not in curve:
            raise invalid_data(name, f"curve has no entry for index {idx}")
        return curve[idx]

    # -------- calculations --------

    def game_version(self) -> float:
        try:
            return self.lookup_float("Info", "GameVersion")
        except FabricationError as e:
            logger.warning("Failed to determine game version: %s", e)
            return 0.0

    def engine_weight(self) -> int:
        return round_half_away(self.lookup_float("Results", "Weight"))

    def inertia(self) -> float:
        if self.game_version() >= EXPORT_RESPONSIVENESS_VERSION_NUM:
            try:
                responsiveness = self.lookup_float("Results", "ExportResponsiveness")
                logger.info("Using ExportResponsiveness for inertia")
            except FabricationError:
                responsiveness = self.lookup_float("Results", "Responsiveness")
            # Values run well outside 0-1200, so clamp the output rather than the input
            inertia = lerp(INERTIA_AT_ZERO_RESPONSE, INERTIA_AT_FULL_RESPONSE, responsiveness / 1200)
            return clamp(inertia, INERTIA_MIN, INERTIA_MAX)
        responsiveness = self.lookup_float("Results", "Responsiveness")
        return normal_lerp(INERTIA_AT_ZERO_RESPONSE, INERTIA_AT_FULL_RESPONSE, responsiveness / 100, 0.2)

    def idle_speed(self) -> Optional[float]:
        try:
            result_idle = self.lookup_float("Results", "IdleRPM")
            rpm_curve = self.lookup_curve("RPM")
        except FabricationError:
            return None
        return max(result_idle, rpm_curve.get(1, result_idle))

    def limiter(self) -> float:
        return self.lookup_float("Results", "MaxRPM")

    def basic_fuel_consumption(self) -> float:
        econ_eff = self.lookup_float("Results", "EconEff") / 100
        bsfc = (3600 / (econ_eff * GASOLINE_LHV_KJ_PER_KG)) * 1000
        fuel_use_per_hour = (self.lookup_float("Results", "PeakPower") * bsfc) / FUEL_DENSITY
        fuel_use_per_sec = fuel_use_per_hour / 3600
        return (fuel_use_per_sec * 1000) / self.lookup_float("Results", "PeakPowerRPM")

    def fuel_flow_consumption(self, mechanical_efficiency: float) -> FuelConsumptionFlowRate:
        rpm_curve = self.lookup_curve("RPM")
        idle_cutoff = round_half_away(self._required_idle() + 100)
        try:
            fuel_curve = self.lookup_curve("FuelUsage")
        except FabricationError as e:
            logger.warning("Failed to load fuel usage curve data: %s", e)
            logger.info("Using fallback fuel flow calculation")
            return FuelConsumptionFlowRate.new(IDLE_THROTTLE, idle_cutoff, mechanical_efficiency,
                                               None, DIRECT_EXPORT_MAX_FLOW_FALLBACK)
        # The fuel curve can start later than the rpm curve; both end at max rpm
        lut = []
        max_fuel_flow = None
        for rpm, kg_per_sec in zip(reversed(list(rpm_curve.values())), reversed(list(fuel_curve.values()))):
            flow = round_half_away(kg_per_sec * 3600)
            if max_fuel_flow is None or flow > max_fuel_flow:
                max_fuel_flow = flow
            lut.append((int(rpm), flow))
        lut.reverse()
        return FuelConsumptionFlowRate.new(IDLE_THROTTLE, idle_cutoff, mechanical_efficiency,
                                           lut, max_fuel_flow if max_fuel_flow is not None else 0)

    def engine_torque_curve(self) -> TorquePairs:
        rpm_curve = self.lookup_curve("RPM")
        torque_curve = self.lookup_curve("Torque")
        return [(round_half_away(rpm), round_half_away(self._curve_point(torque_curve, "Torque", idx)))
                for idx, rpm in rpm_curve.items()]

    def peak_torque(self) -> int:
        return round_half_away(self.lookup_float("Results", "PeakTorque"))

    def engine_bhp_power_curve(self) -> TorquePairs:
        rpm_curve = self.lookup_curve("RPM")
        torque_curve = self.lookup_curve("Torque")
        out = []
        for idx, rpm in rpm_curve.items():
            kw = power_kw(self._curve_point(torque_curve, "Torque", idx), rpm)
            out.append((int(rpm), round_half_away(kw_to_bhp(kw))))
        return out

    def peak_bhp(self) -> int:
        return round_half_away(kw_to_bhp(self.lookup_float("Results", "PeakPower")))

    def is_naturally_aspirated(self) -> bool:
        return self.lookup_string("Parts", "Aspiration").startswith(NA_ASPIRATION_PREFIX)

    def is_supercharged_or_twincharged(self) -> bool:
        try:
            aspiration_type = self.lookup_string("Parts", "AspirationType")
        except FabricationError:
            return False
        return aspiration_type.startswith(SUPERCHARGER_ASPIRATION_PREFIXES)

    def wheel_torque_curve(self, drivetrain_efficiency: float) -> List[Tuple[int, float]]:
        rpm_curve = self.lookup_curve("RPM")
        torque_curve = self.lookup_curve("Torque")
        out = []
        if self.is_naturally_aspirated():
            logger.info("Writing torque curve for NA engine")
            for idx, rpm in rpm_curve.items():
                torque = self._curve_point(torque_curve, "Torque", idx)
                out.append((int(rpm), float(round_half_away(torque * drivetrain_efficiency))))
        else:
            logger.info("Writing torque curve for turbo engine")
            boost_curve = self.lookup_curve("Boost")
            for idx, rpm in rpm_curve.items():
                torque = self._curve_point(torque_curve, "Torque", idx)
                boost = max(0.0, self._curve_point(boost_curve, "Boost", idx))
                adjusted = round_half_away((torque / (1 + boost)) * drivetrain_efficiency)
                logger.debug("Adjusted %s@%d for boost pressure %s to %d", torque, int(rpm), 1 + boost, adjusted)
                out.append((int(rpm), float(adjusted)))
        return taper_curve(out)

    def _boost_target(self) -> float:
        try:
            item2 = self.lookup_string("Parts", "AspirationItem2")
            num_chargers = 1 if item2.startswith(NO_OPTION_PREFIX) else 2
        except FabricationError:
            logger.warning("Failed to determine number of forced induction chargers; assuming 1")
            num_chargers = 1
        try:
            target = self.lookup_float("Tune", "ChargerMaxBoost1")
        except FabricationError:
            logger.warning("Failed to determine max boost of forced induction charger 1; "
                           "falling back to only consider boost curve data")
            return math.inf
        if num_chargers > 1:
            try:
                target += self.lookup_float("Tune", "ChargerMaxBoost2")
            except FabricationError:
                logger.warning("Failed to determine max boost of forced induction charger 2; "
                               "only charger 1 will be considered for boost target")
        return target

    def get_max_boost_params(self, decimal_places: int) -> Tuple[int, float]:
        if self.is_naturally_aspirated():
            return 0, 0.0
        rpm_curve = self.lookup_curve("RPM")
        boost_curve = self.lookup_curve("Boost")
        indices = list(boost_curve.keys())
        values = list(boost_curve.values())
        if 1 not in boost_curve:
            raise invalid_data("Boost", "curve has no entry for index 1")
        start = indices.index(1)
        if self.game_version() >= FIRST_AL_RIMA_VERSION_NUM:
            logger.info("Using Al-Rima max boost calculations")
            ref_pos, max_boost = fold_max_boost(values, start, decimal_places, self._boost_target())
        else:
            logger.info("Using legacy max boost calculations")
            ref_pos, max_boost = fold_max_boost(values, start, decimal_places)
        ref_rpm = self._curve_point(rpm_curve, "RPM", indices[ref_pos])
        return round_half_away(ref_rpm), round_float_to(max_boost, decimal_places)

    def create_turbo(self) -> Optional[Turbo]:
        if self.is_naturally_aspirated():
            return None
        ref_rpm, max_boost = self.get_max_boost_params(3)
        if self.is_supercharged_or_twincharged():
            # Boost is left almost entirely to the controller
            return build_turbo(max_boost, round_half_away(self._required_idle() + 100), SUPERCHARGER_GAMMA)
        return build_turbo(max_boost, ref_rpm, TURBO_GAMMA)

    def create_turbo_controller(self) -> Optional[TurboController]:
        if self.is_naturally_aspirated():
            return None
        rpm_curve = self.lookup_curve("RPM")
        boost_curve = self.lookup_curve("Boost")
        boosts = [self._curve_point(boost_curve, "Boost", idx) for idx in rpm_curve]
        return build_boost_controller(rpm_curve.values(), boosts)

    def approx_engine_brake_torque(self) -> float:
        # Motoring torque of a 4 stroke at ~1 bar MEP: T = MEP * V / (2 * pi * 2)
        displacement_litres = self.lookup_float("Tune", "Displacement")
        return (100000 * (displacement_litres / 1000)) / (2 * math.pi * 2)

    def coast_data(self) -> CoastCurve:
        friction_curve = self.lookup_curve("Friction")
        if not friction_curve:
            raise missing_section("Friction", "curve_data")
        max_friction = list(friction_curve.values())[-1]
        torque = max_friction + self.approx_engine_brake_torque()
        return CoastCurve(int(self.limiter()), round_half_away(torque), 0.0)

    def damage(self) -> Damage:
        _, max_boost = self.get_max_boost_params(2)
        return Damage(
            rpm_threshold=round_half_away(self.limiter() + 200),
            rpm_damage_k=1,
            turbo_boost_threshold=float(math.ceil(max_boost)),
            turbo_damage_k=0 if self.is_naturally_aspirated() else 4,
        )


def _get_object(data: Dict[str, Any], key: str, resource: str) -> Dict[str, Any]:
    if key not in data:
        raise missing_section(key, resource)
    value = data[key]
    if not isinstance(value, dict):
        raise invalid_data(f"{key} in {resource}.", "expected to be an object")
    return value


def _get_number(data: Dict[str, Any], key: str, resource: str) -> float:
    if key not in data:
        raise missing_section(key, resource)
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise invalid_data(key, "expected to be a number")
    return float(value)


# -------- factories --------

def from_curve_data(data: CurveDataSource) -> CurveDataCalculator:
    return CurveDataCalculator(data)


def from_crate_engine(crate_path, car_file_reader: CarFileReader = json_car_file_reader
                      ) -> EngineParameterCalculator:
    try:
        crate_engine = CrateEngine.from_file(crate_path)
    except EngineCraneError as e:
        raise FabricationError(FabricationErrorKind.FAILED_TO_LOAD, str(crate_path), str(e))
    logger.info("Loaded crate engine %s (%s)", crate_engine.name, crate_engine.source.display_name)
    data = crate_engine.data
    if isinstance(data, DirectExportData):
        return CurveDataCalculator(data.curve_data)

    if not data.car_file_data:
        raise FabricationError(FabricationErrorKind.MISSING_DATA_SOURCE, "Automation car file")
    car_file = car_file_reader(data.car_file_data)
    jbeam_data = data.main_engine_jbeam_data()
    if jbeam_data is None:
        raise FabricationError(FabricationErrorKind.MISSING_DATA_SOURCE, "Main engine JBeam file")
    try:
        engine_jbeam = jbeam.load_bytes(jbeam_data)
    except ValueError as e:
        raise invalid_data(data.main_engine_jbeam_filename, str(e))
    return RecordCalculator(car_file, engine_jbeam, data.record)


def from_beam_ng_mod(mod_path, record_source: RecordSource,
                     car_file_reader: CarFileReader = json_car_file_reader) -> RecordCalculator:
    """Build a calculator from a mod zip, checking it against the sandbox record it was made from."""
    try:
        mod = BeamNGMod.load_from_path(mod_path)
    except EngineCraneError as e:
        raise FabricationError(FabricationErrorKind.FAILED_TO_LOAD, str(mod_path), str(e))
    car_file = mod.read_car_file(car_file_reader)
    if car_file is None:
        raise FabricationError(FabricationErrorKind.MISSING_DATA_SOURCE, "Automation car file")
    variant = car_file_variant(car_file) or {}
    for key in ("GameVersion", "UID"):
        if key not in variant:
            raise missing_section(f"'Car.Variant.{key}'", "Automation car file")
    try:
        version = int(float(variant["GameVersion"]))
    except (TypeError, ValueError):
        raise invalid_data("'Car.Variant.GameVersion'", "expected to be a number")
    uid = str(variant["UID"])
    sandbox_version = SandboxVersion.from_version_number(version)
    logger.info("Engine %s version %d uses the %s sandbox", uid, version, sandbox_version.value)

    if len(uid) < 5:
        raise invalid_data("'Car.Variant.UID'", f"engine uid {uid} is too short")
    if mod.main_engine_jbeam_filename(uid) is None:
        raise FabricationError(FabricationErrorKind.MISSING_DATA_SOURCE, "Main engine JBeam file")
    try:
        jbeam_filename, engine_jbeam = mod.main_engine_jbeam(uid)
    except DecodeError as e:
        raise invalid_data("Main engine JBeam file", e.reason)
    logger.info("Using %s as the main engine jbeam", jbeam_filename)

    record = record_source.lookup(uid, sandbox_version)
    if record is None:
        raise missing_section(f"engine {uid}", "sandbox db")
    try:
        AutomationSandboxCrossChecker(car_file, record).validate()
    except ValidationError as e:
        raise FabricationError(
            FabricationErrorKind.VALIDATION, "Automation data",
            f"{e}. The engine data saved in Automation doesn't match the BeamNG mod data. "
            f"The mod may be out-of-date; try recreating a mod with the latest engine version")
    if not record.rpm_curve:
        raise missing_section("curve data", "sandbox db")
    return RecordCalculator(car_file, engine_jbeam, record)
