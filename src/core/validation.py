"""Cross check of an exported car file against the sandbox record it claims to describe.

The car file is an opaque nested mapping produced elsewhere, e.g.::

    {"Car": {"Version": 2301100000, "Family": {...}, "Variant": {...}}}
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from .constants import LEGACY_CAR_FILE_VERSION_LIMIT
from .errors import ValidationError
from .models import EngineRecord
from ..utils.numeric import round_float_to, round_half_away

logger = logging.getLogger(__name__)

STR = 'str'
INT = 'int'
FLOAT = 'float'

# (record attribute, car file key, comparison kind, optional)
_FAMILY_COMMON: List[Tuple[str, str, str, bool]] = [
    ('family_version', 'GameVersion', INT, False),
    ('family_uuid', 'UID', STR, False),
    ('family_name', 'Name', STR, False),
    ('family_game_days', 'InternalDays', INT, False),
]

LEGACY_FAMILY_CHECKS = _FAMILY_COMMON + [
    ('block_config', 'BlockConfig', STR, False),
    ('block_material', 'BlockMaterial', STR, False),
    ('block_type', 'BlockType', STR, False),
    ('head_type', 'Head', STR, False),
    ('head_material', 'HeadMaterial', STR, False),
    ('vvl', 'VVL', STR, False),
    ('valves', 'Valves', STR, False),
    ('max_stroke', 'Stroke', FLOAT, False),
    ('max_bore', 'Bore', FLOAT, False),
]

FAMILY_CHECKS = _FAMILY_COMMON + [
    ('family_quality', 'QualityFamily', INT, False),
    ('block_config', 'BlockConfig', STR, False),
    ('block_material', 'BlockMaterial', STR, False),
    ('block_type', 'BlockType', STR, False),
    ('head_type', 'Head', STR, False),
    ('head_material', 'HeadMaterial', STR, False),
    ('valves', 'Valves', STR, False),
    ('max_stroke', 'Stroke', FLOAT, False),
    ('max_bore', 'Bore', FLOAT, False),
]


def _variant_checks(legacy: bool) -> List[Tuple[str, str, str, bool]]:
    checks = [
        ('variant_version', 'GameVersion', INT, False),
        ('family_uuid', 'FUID', STR, False),
        ('uuid', 'UID', STR, False),
        ('variant_name', 'Name', STR, False),
        ('variant_game_days', 'InternalDays', INT, False),
    ]
    if not legacy:
        checks.append(('vvl', 'VVL', STR, False))
    checks += [
        ('crank', 'Crank', STR, False),
        ('conrods', 'Conrods', STR, False),
        ('pistons', 'Pistons', STR, False),
        ('vvt', 'VVT', STR, False),
        ('aspiration', 'AspirationType', STR, False),
        ('intercooler_setting', 'IntercoolerSetting', FLOAT, False),
        ('fuel_system_type', 'FuelSystemType', STR, False),
        ('fuel_system', 'FuelSystem', STR, False),
        ('fuel_type', 'FuelType', STR, True),
    ]
    if not legacy:
        checks.append(('fuel_leaded', 'FuelLeaded', INT, True))
    checks += [
        ('intake_manifold', 'IntakeManifold', STR, False),
        ('intake', 'Intake', STR, False),
        ('headers', 'Headers', STR, False),
        ('exhaust_count', 'ExhaustCount', STR, False),
        ('exhaust_bypass_valves', 'ExhaustBypassValves', STR, False),
        ('cat', 'Cat', STR, False),
        ('muffler_1', 'Muffler1', STR, False),
        ('muffler_2', 'Muffler2', STR, False),
        ('bore', 'Bore', FLOAT, False),
        ('stroke', 'Stroke', FLOAT, False),
        ('capacity', 'Capacity', FLOAT, False),
        ('compression', 'Compression', FLOAT, False),
        ('cam_profile_setting', 'CamProfileSetting', FLOAT, False),
        ('vvl_cam_profile_setting', 'VVLCamProfileSetting', FLOAT, False),
        ('afr', 'AFR', FLOAT, True),
        ('afr_lean', 'AFRLean', FLOAT, True),
        ('rpm_limit', 'RPMLimit', FLOAT, False),
        ('ignition_timing_setting', 'IgnitionTimingSetting', FLOAT, False),
        ('exhaust_diameter', 'ExhaustDiameter', FLOAT, False),
        ('quality_bottom_end', 'QualityBottomEnd', INT, False),
        ('quality_top_end', 'QualityTopEnd', INT, False),
        ('quality_aspiration', 'QualityAspiration', INT, False),
        ('quality_fuel_system', 'QualityFuelSystem', INT, False),
        ('quality_exhaust', 'QualityExhaust', INT, False),
    ]
    if not legacy:
        checks += [
            ('balance_shaft', 'BalanceShaft', STR, True),
            ('spring_stiffness', 'SpringStiffnessSetting', FLOAT, True),
            ('listed_octane', 'ListedOctane', INT, True),
            ('tune_octane_offset', 'TuneOctaneOffset', INT, True),
            ('aspiration_setup', 'AspirationSetup', STR, True),
            ('aspiration_item_1', 'AspirationItemOption_1', STR, True),
            ('aspiration_item_2', 'AspirationItemOption_2', STR, True),
            ('aspiration_item_suboption_1', 'AspirationItemSubOption_1', STR, True),
            ('aspiration_item_suboption_2', 'AspirationItemSubOption_2', STR, True),
            ('aspiration_boost_control', 'AspirationBoostControl', STR, True),
            ('charger_size_1', 'ChargerSize_1', FLOAT, True),
            ('charger_size_2', 'ChargerSize_2', FLOAT, True),
            ('charger_tune_1', 'ChargerTune_1', FLOAT, True),
            ('charger_tune_2', 'ChargerTune_2', FLOAT, True),
            ('charger_max_boost_1', 'ChargerMaxBoost_1', FLOAT, True),
            ('charger_max_boost_2', 'ChargerMaxBoost_2', FLOAT, True),
            ('turbine_size_1', 'TurbineSize_1', FLOAT, True),
            ('turbine_size_2', 'TurbineSize_2', FLOAT, True),
        ]
    return checks


LEGACY_VARIANT_CHECKS = _variant_checks(legacy=True)
VARIANT_CHECKS = _variant_checks(legacy=False)


def _as_number(key: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(key, message=f"{key}: '{value}' is not a number")


class AutomationSandboxCrossChecker:
    """Checks that the Family/Variant attributes of a car file match an EngineRecord."""

    def __init__(self, car_file: Dict[str, Any], record: EngineRecord, float_precision: int = 10):
        self.car_file = car_file
        self.record = record
        self.float_precision = float_precision

    def _car_section(self) -> Dict[str, Any]:
        car = self.car_file.get("Car")
        if not isinstance(car, dict):
            raise ValidationError("Car", message="Car file is missing the Car section")
        return car

    def _sub_section(self, name: str) -> Dict[str, Any]:
        section = self._car_section().get(name)
        if not isinstance(section, dict):
            raise ValidationError(name, message=f"Car file is missing the Car.{name} section")
        return section

    def is_legacy(self) -> bool:
        version = self._car_section().get("Version")
        if version is None:
            return False
        return round_half_away(_as_number("Version", version)) < LEGACY_CAR_FILE_VERSION_LIMIT

    def validate(self) -> None:
        """Raise ValidationError on the first mismatch."""
        if self.is_legacy():
            logger.info("Validating against legacy car file rules")
            self._run_checks("Family", LEGACY_FAMILY_CHECKS)
            self._run_checks("Variant", LEGACY_VARIANT_CHECKS)
        else:
            self._run_checks("Family", FAMILY_CHECKS)
            self._run_checks("Variant", VARIANT_CHECKS)

    def _run_checks(self, section_name: str, checks) -> None:
        section = self._sub_section(section_name)
        for attr, key, kind, optional in checks:
            expected = getattr(self.record, attr)
            if optional and expected is None:
                continue
            self._check(section_name, section, key, kind, expected)

    def _check(self, section_name: str, section: Dict[str, Any], key: str, kind: str, expected) -> None:
        if key not in section:
            raise ValidationError(key, message=f"Car file section {section_name} is missing attribute {key}")
        actual = section[key]
        logger.debug("Checking %s", key)
        if kind == STR:
            if str(expected) != str(actual):
                raise ValidationError(key, expected, actual)
        elif kind == INT:
            actual_int = round_half_away(_as_number(key, actual))
            if int(expected) != actual_int:
                raise ValidationError(key, expected, actual_int)
        else:
            actual_num = _as_number(key, actual)
            if round_float_to(expected, self.float_precision) != round_float_to(actual_num, self.float_precision):
                raise ValidationError(key, expected, actual_num)


def car_file_variant(car_file: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    car = car_file.get("Car")
    if not isinstance(car, dict):
        return None
    variant = car.get("Variant")
    return variant if isinstance(variant, dict) else None
