"""Engine data as exported by the authoring tool.

Two shapes exist: ``EngineRecord`` is a full sandbox row (looked up through a
``RecordSource``), ``CurveDataSource`` is the typed bag produced by direct exports.
"""
import hashlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Protocol

from .constants import (
    LEGACY_SANDBOX_VERSION_LIMIT, ELLISBURY_SANDBOX_VERSION_NUM
)
from ..utils.formatting import format_number
from ..utils.numeric import round_float_to, round_half_away

logger = logging.getLogger(__name__)


class SandboxVersion(Enum):
    LEGACY = 'Legacy'
    FOUR_DOT_TWO = '4.2'
    ELLISBURY = 'Ellisbury'

    @classmethod
    def from_version_number(cls, version: int) -> 'SandboxVersion':
        if version >= ELLISBURY_SANDBOX_VERSION_NUM:
            return cls.ELLISBURY
        if version < LEGACY_SANDBOX_VERSION_LIMIT:
            return cls.LEGACY
        return cls.FOUR_DOT_TWO


# -------- Display names for the tool's internal identifiers --------

BLOCK_CONFIGS = {
    "EngBlock_V16_Name": "90° V16",
    "EngBlock_V10_Name": "90° V10",
    "EngBlock_V8_Name": "90° V8",
    "EngBlock_V6_V90_Name": "90° V6",
    "EngBlock_V12_Name": "60° V12",
    "EngBlock_V8_V60_Name": "60° V8",
    "EngBlock_V6_Name": "60° V6",
    "EngBlock_Inl6_Name": "Inline 6",
    "EngBlock_Inl5_Name": "Inline 5",
    "EngBlock_Inl4_Name": "Inline 4",
    "EngBlock_Inl3_Name": "Inline 3",
    "EngBlock_Box6_Name": "Boxer 6",
    "EngBlock_Box4_Name": "Boxer 4",
}

HEAD_CONFIGS = {
    "Head_PushRod_Name": "OHV",
    "Head_OHC_Name": "SOHC",
    "Head_DirectOHC_Name": "DAOHC",
    "Head_DuelOHC_Name": "DOHC",
}

VALVES = {
    "ValveCount_2_Name": "2v",
    "ValveCount_3_Name": "3v",
    "ValveCount_4_Name": "4v",
    "ValveCount_5_Name": "5v",
}

ASPIRATION_TYPES = {
    "Aspiration_Natural_Name": "Naturally Aspirated",
    "Aspiration_Turbo_Name": "Turbocharged",
}


def block_config_name(raw: str) -> str:
    return BLOCK_CONFIGS.get(raw, raw)


def head_config_name(raw: str) -> str:
    return HEAD_CONFIGS.get(raw, raw)


def valves_name(raw: str) -> str:
    return VALVES.get(raw, raw)


def valves_from_count(count: int) -> str:
    return f"{count}v" if 2 <= count <= 5 else str(count)


def aspiration_name(raw: str) -> str:
    return ASPIRATION_TYPES.get(raw, raw)


def internal_days_to_year(days: int) -> int:
    return 1940 + int(days / 360)


def _checksum_text(val) -> bytes:
    return format_number(val).encode('utf-8')


def _rounded_text(val: float) -> bytes:
    return _checksum_text(round_float_to(val, 10))


def sha256_to_string(digest: bytes) -> str:
    # Upper-case hex without zero padding, matching checksums stored in existing crate files
    return ''.join(f"{b:X}" for b in digest)


@dataclass
class EngineRecord:
    """One engine variant row from the authoring tool's sandbox."""
    uuid: str
    family_version: int
    variant_version: int
    family_uuid: str
    family_name: str
    variant_name: str
    family_game_days: int
    variant_game_days: int
    family_quality: int
    block_config: str
    block_material: str
    block_type: str
    head_type: str
    head_material: str
    valves: str
    vvl: str
    max_bore: float
    max_stroke: float
    crank: str
    conrods: str
    pistons: str
    vvt: str
    aspiration: str
    intercooler_setting: float
    fuel_system_type: str
    fuel_system: str
    intake_manifold: str
    intake: str
    headers: str
    exhaust_count: str
    exhaust_bypass_valves: str
    cat: str
    muffler_1: str
    muffler_2: str
    bore: float
    stroke: float
    capacity: float
    compression: float
    cam_profile_setting: float
    vvl_cam_profile_setting: float
    rpm_limit: float
    ignition_timing_setting: float
    exhaust_diameter: float
    quality_bottom_end: int
    quality_top_end: int
    quality_aspiration: int
    quality_fuel_system: int
    quality_exhaust: int
    adjusted_afr: float
    average_cruise_econ: float
    cooling_required: float
    econ: float
    econ_eff: float
    min_econ: float
    worst_econ: float
    emissions: float
    engineering_cost: float
    engineering_time: float
    idle: float
    idle_speed: float
    mttf: float
    man_hours: float
    material_cost: float
    noise: float
    peak_boost: float
    performance_index: float
    ron: float
    responsiveness: float
    service_cost: float
    smoothness: float
    tooling_costs: float
    total_cost: float
    weight: float
    peak_torque_rpm: float
    peak_torque: float
    peak_power: float
    peak_power_rpm: float
    max_rpm: float
    rpm_curve: List[float] = field(default_factory=list)
    power_curve: List[float] = field(default_factory=list)
    torque_curve: List[float] = field(default_factory=list)
    boost_curve: List[float] = field(default_factory=list)
    econ_curve: List[float] = field(default_factory=list)
    econ_eff_curve: List[float] = field(default_factory=list)
    fuel_type: Optional[str] = None
    fuel_leaded: Optional[int] = None
    afr: Optional[float] = None
    afr_lean: Optional[float] = None
    balance_shaft: Optional[str] = None
    spring_stiffness: Optional[float] = None
    listed_octane: Optional[int] = None
    tune_octane_offset: Optional[int] = None
    aspiration_setup: Optional[str] = None
    aspiration_item_1: Optional[str] = None
    aspiration_item_2: Optional[str] = None
    aspiration_item_suboption_1: Optional[str] = None
    aspiration_item_suboption_2: Optional[str] = None
    aspiration_boost_control: Optional[str] = None
    charger_size_1: Optional[float] = None
    charger_size_2: Optional[float] = None
    charger_tune_1: Optional[float] = None
    charger_tune_2: Optional[float] = None
    charger_max_boost_1: Optional[float] = None
    charger_max_boost_2: Optional[float] = None
    turbine_size_1: Optional[float] = None
    turbine_size_2: Optional[float] = None
    peak_boost_rpm: Optional[float] = None
    reliability_post_engineering: Optional[float] = None

    CURVE_FIELDS = ('rpm_curve', 'power_curve', 'torque_curve',
                    'boost_curve', 'econ_curve', 'econ_eff_curve')

    def friendly_name(self) -> str:
        return f"{self.family_name} - {self.variant_name}"

    def family_build_year(self) -> int:
        return internal_days_to_year(self.family_game_days)

    def variant_build_year(self) -> int:
        return internal_days_to_year(self.variant_game_days)

    def capacity_cc(self) -> int:
        return round_half_away(self.capacity * 1000.0)

    def validate_curves(self) -> List[str]:
        """Return a list of problems with the curve data, empty if consistent."""
        problems = []
        lengths = {name: len(getattr(self, name)) for name in self.CURVE_FIELDS}
        if len(set(lengths.values())) > 1:
            problems.append(f"Curve lengths differ: {lengths}")
        rpm = self.rpm_curve
        if any(b < a for a, b in zip(rpm, rpm[1:])):
            problems.append("RPM curve is not non-decreasing")
        return problems

    # -------- checksums --------

    def family_data_checksum_data(self) -> bytes:
        h = hashlib.sha256()
        h.update(_checksum_text(self.family_version))
        h.update(self.family_uuid.encode())
        h.update(self.family_name.encode())
        h.update(_checksum_text(self.family_game_days))
        h.update(_checksum_text(self.family_quality))
        for val in (self.block_config, self.block_material, self.block_type,
                    self.head_type, self.head_material, self.valves):
            h.update(val.encode())
        h.update(_rounded_text(self.max_stroke))
        h.update(_rounded_text(self.max_bore))
        return h.digest()

    def family_data_checksum(self) -> str:
        return sha256_to_string(self.family_data_checksum_data())

    def variant_data_checksum_data(self) -> bytes:
        h = hashlib.sha256()
        h.update(_checksum_text(self.variant_version))
        for val in (self.family_uuid, self.uuid, self.variant_name):
            h.update(val.encode())
        h.update(_checksum_text(self.variant_game_days))
        for val in (self.vvl, self.crank, self.conrods, self.pistons, self.vvt, self.aspiration):
            h.update(val.encode())
        h.update(_rounded_text(self.intercooler_setting))
        h.update(self.fuel_system_type.encode())
        h.update(self.fuel_system.encode())
        if self.fuel_type is not None:
            h.update(self.fuel_type.encode())
        if self.fuel_leaded is not None:
            h.update(_checksum_text(self.fuel_leaded))
        for val in (self.intake_manifold, self.intake, self.headers, self.exhaust_count,
                    self.exhaust_bypass_valves, self.cat, self.muffler_1, self.muffler_2):
            h.update(val.encode())
        for val in (self.bore, self.stroke, self.capacity, self.compression,
                    self.cam_profile_setting, self.vvl_cam_profile_setting):
            h.update(_rounded_text(val))
        for val in (self.afr, self.afr_lean):
            if val is not None:
                h.update(_rounded_text(val))
        for val in (self.rpm_limit, self.ignition_timing_setting, self.exhaust_diameter):
            h.update(_rounded_text(val))
        for val in (self.quality_bottom_end, self.quality_top_end, self.quality_aspiration,
                    self.quality_fuel_system, self.quality_exhaust):
            h.update(_checksum_text(val))
        if self.balance_shaft is not None:
            h.update(self.balance_shaft.encode())
        if self.spring_stiffness is not None:
            h.update(_rounded_text(self.spring_stiffness))
        for val in (self.listed_octane, self.tune_octane_offset):
            if val is not None:
                h.update(_checksum_text(val))
        for val in (self.aspiration_setup, self.aspiration_item_1, self.aspiration_item_2,
                    self.aspiration_item_suboption_1, self.aspiration_item_suboption_2,
                    self.aspiration_boost_control):
            if val is not None:
                h.update(val.encode())
        for val in (self.charger_size_1, self.charger_size_2, self.charger_tune_1,
                    self.charger_tune_2, self.charger_max_boost_1, self.charger_max_boost_2,
                    self.turbine_size_1, self.turbine_size_2):
            if val is not None:
                h.update(_rounded_text(val))
        return h.digest()

    def variant_data_checksum(self) -> str:
        return sha256_to_string(self.variant_data_checksum_data())

    def result_data_checksum_data(self) -> bytes:
        h = hashlib.sha256()
        for val in (self.adjusted_afr, self.average_cruise_econ, self.cooling_required,
                    self.econ, self.econ_eff, self.min_econ, self.worst_econ, self.emissions,
                    self.engineering_cost, self.engineering_time, self.idle, self.idle_speed,
                    self.mttf, self.man_hours, self.material_cost, self.noise, self.peak_boost,
                    self.performance_index, self.ron):
            h.update(_checksum_text(val))
        if self.reliability_post_engineering is not None:
            h.update(_checksum_text(self.reliability_post_engineering))
        # service_cost appears twice in the stored checksum layout
        for val in (self.responsiveness, self.service_cost, self.smoothness, self.service_cost,
                    self.tooling_costs, self.total_cost, self.weight, self.peak_torque_rpm,
                    self.peak_torque, self.peak_power, self.peak_power_rpm, self.max_rpm):
            h.update(_checksum_text(val))
        if self.peak_boost_rpm is not None:
            h.update(_checksum_text(self.peak_boost_rpm))
        return h.digest()

    def result_data_checksum(self) -> str:
        return sha256_to_string(self.result_data_checksum_data())

    def automation_data_hash(self) -> bytes:
        """sha-256 over the family, variant and result checksum data."""
        h = hashlib.sha256()
        h.update(self.family_data_checksum_data())
        h.update(self.variant_data_checksum_data())
        h.update(self.result_data_checksum_data())
        return h.digest()


class RecordSource(Protocol):
    """Looks up sandbox engine records; the sandbox database itself lives elsewhere."""

    def lookup(self, uid: str, sandbox_version: SandboxVersion) -> Optional[EngineRecord]:
        ...


class DictRecordSource:
    """In-memory RecordSource keyed by (uid, SandboxVersion), or by uid for any version."""

    def __init__(self, records: Optional[Dict] = None):
        self.records: Dict = dict(records or {})

    def add(self, record: EngineRecord, sandbox_version: Optional[SandboxVersion] = None) -> None:
        key = (record.uuid, sandbox_version) if sandbox_version else record.uuid
        self.records[key] = record

    def lookup(self, uid: str, sandbox_version: SandboxVersion) -> Optional[EngineRecord]:
        record = self.records.get((uid, sandbox_version))
        if record is None:
            record = self.records.get(uid)
        return record


@dataclass
class CurveDataSource:
    """Typed engine data from a direct export.

    string_data[group][key] -> str, float_data[group][key] -> float,
    curve_data[name] -> {index: value}. Curve indices start at 1.
    """
    string_data: Dict[str, Dict[str, str]] = field(default_factory=dict)
    float_data: Dict[str, Dict[str, float]] = field(default_factory=dict)
    curve_data: Dict[str, Dict[int, float]] = field(default_factory=dict)

    def get_string(self, group: str, key: str) -> Optional[str]:
        return self.string_data.get(group, {}).get(key)

    def get_float(self, group: str, key: str) -> Optional[float]:
        return self.float_data.get(group, {}).get(key)

    def get_curve(self, name: str) -> Optional[Dict[int, float]]:
        curve = self.curve_data.get(name)
        if curve is None:
            return None
        return dict(sorted(curve.items()))

    def curve_values(self, name: str) -> List[float]:
        curve = self.get_curve(name)
        return list(curve.values()) if curve else []

    def game_version(self) -> Optional[int]:
        val = self.get_float("Info", "GameVersion")
        return int(val) if val is not None else None

    def name(self) -> str:
        family = self.get_string("Info", "FamilyName") or ""
        variant = self.get_string("Info", "VariantName") or ""
        return f"{family} - {variant}"
