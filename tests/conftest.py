import json
import zipfile
import pytest

from src.core.acd import AcdArchive
from src.core.models import CurveDataSource, EngineRecord
from src.core.validation import FAMILY_CHECKS, VARIANT_CHECKS

ENGINE_UID = "abcde12345"
NA_VERSION = 2301100000

CAR_INI = """[HEADER]
VERSION=2

[INFO]
SCREEN_NAME=Test Car

[BASIC]
TOTALMASS=1200			; kg with driver and fuel

[FUEL]
CONSUMPTION=0.0030
FUEL=30
MAX_FUEL=50
"""

ENGINE_INI = """[HEADER]
VERSION=1
POWER_CURVE=power.lut			; power curve file
COAST_CURVE=FROM_COAST_REF

[ENGINE_DATA]
ALTITUDE_SENSITIVITY=0.1
INERTIA=0.120
LIMITER=7000
LIMITER_HZ=30
MINIMUM=900

[COAST_REF]
RPM=7000
TORQUE=60
NON_LINEARITY=0

[TURBO_0]
LAG_DN=0.99
LAG_UP=0.965
MAX_BOOST=1.2
WASTEGATE=1.2
DISPLAY_MAX_BOOST=1.2
REFERENCE_RPM=4000
GAMMA=2.5
COCKPIT_ADJUSTABLE=0

[BOV]
PRESSURE_THRESHOLD=0.5

[DAMAGE]
TURBO_BOOST_THRESHOLD=1.50
TURBO_DAMAGE_K=5
RPM_THRESHOLD=7200
RPM_DAMAGE_K=1
"""

POWER_LUT = "0|100\n1000|150\n7000|200\n"

DRIVETRAIN_INI = """[TRACTION]
TYPE=RWD

[AUTO_SHIFTER]
UP=6800
DOWN=4500
SLIP_THRESHOLD=0.95
GAS_CUTOFF_TIME=0.28

[CLUTCH]
MAX_TORQUE=250
"""

AI_INI = """[GEARS]
UP=6800
DOWN=4500
SLIP_THRESHOLD=0.95
GAS_CUTOFF_TIME=0.28
"""

DIGITAL_INSTRUMENTS_INI = """[LED_0]
OBJECT_NAME=LED_0
RPM_SWITCH=5600
EMISSIVE=10,0,0
DIFFUSE=0.50
BLINK_SWITCH=7000
BLINK_HZ=10

[LED_1]
OBJECT_NAME=LED_1
RPM_SWITCH=7000
EMISSIVE=10,0,0
DIFFUSE=0.50
BLINK_SWITCH=7000
BLINK_HZ=10
"""

CTRL_TURBO_INI = """[CONTROLLER_0]
INPUT=RPMS
COMBINATOR=ADD
LUT=(0=0|7000=1.2)
FILTER=0.950
UP_LIMIT=10000
DOWN_LIMIT=0
"""

UI_CAR_JSON = {
    "name": "Test Car",
    "brand": "Test",
    "tags": ["#Street", "rwd"],
    "specs": {"bhp": "150bhp", "torque": "200Nm", "weight": "1200kg",
              "topspeed": "220km/h", "acceleration": "7.5s 0-100", "pwratio": "8.00kg/hp", "range": 500},
    "torqueCurve": [["0", "100"], ["7000", "200"]],
    "powerCurve": [["0", "0"], ["7000", "200"]],
}

DATA_FILES = {
    "car.ini": CAR_INI,
    "engine.ini": ENGINE_INI,
    "power.lut": POWER_LUT,
    "drivetrain.ini": DRIVETRAIN_INI,
    "ai.ini": AI_INI,
    "digital_instruments.ini": DIGITAL_INSTRUMENTS_INI,
    "ctrl_turbo0.ini": CTRL_TURBO_INI,
}

RECORD_DEFAULTS = dict(
    uuid=ENGINE_UID,
    family_version=NA_VERSION,
    variant_version=NA_VERSION,
    family_uuid="fam0012345",
    family_name="Test Family",
    variant_name="Test Variant",
    family_game_days=21600,
    variant_game_days=21960,
    family_quality=0,
    block_config="EngBlock_V8_Name",
    block_material="Aluminium",
    block_type="Block_Type_Name",
    head_type="Head_DuelOHC_Name",
    head_material="Aluminium",
    valves="ValveCount_4_Name",
    vvl="VVL_None",
    max_bore=90.5,
    max_stroke=85.5,
    crank="Crank_Forged",
    conrods="Conrods_Forged",
    pistons="Pistons_Forged",
    vvt="VVT_Intake",
    aspiration="Aspiration_Natural",
    intercooler_setting=0.5,
    fuel_system_type="FuelSystemType_Injection",
    fuel_system="FuelSystem_Multi_Port",
    intake_manifold="Intake_Manifold_Performance",
    intake="Intake_Performance",
    headers="Headers_Tubular",
    exhaust_count="Exhaust_Dual",
    exhaust_bypass_valves="Bypass_None",
    cat="Cat_Three_Way",
    muffler_1="Muffler_Straight",
    muffler_2="Muffler_None",
    bore=88.0,
    stroke=82.0,
    capacity=3.99,
    compression=10.5,
    cam_profile_setting=50.0,
    vvl_cam_profile_setting=0.0,
    rpm_limit=6000.0,
    ignition_timing_setting=40.0,
    exhaust_diameter=60.0,
    quality_bottom_end=0,
    quality_top_end=0,
    quality_aspiration=0,
    quality_fuel_system=0,
    quality_exhaust=0,
    adjusted_afr=13.1,
    average_cruise_econ=10.2,
    cooling_required=1.1,
    econ=260.0,
    econ_eff=31.5,
    min_econ=250.0,
    worst_econ=300.0,
    emissions=100.0,
    engineering_cost=20.0,
    engineering_time=50.0,
    idle=0.7,
    idle_speed=800.0,
    mttf=1000.0,
    man_hours=40.0,
    material_cost=800.0,
    noise=40.0,
    peak_boost=0.0,
    performance_index=30.0,
    ron=95.0,
    responsiveness=50.0,
    service_cost=15.0,
    smoothness=30.0,
    tooling_costs=10.0,
    total_cost=1000.0,
    weight=150.0,
    peak_torque_rpm=1000.0,
    peak_torque=290.0,
    peak_power=80.0,
    peak_power_rpm=3000.0,
    max_rpm=6000.0,
    rpm_curve=[1000.0, 2000.0, 3000.0, 4000.0, 5000.0],
    power_curve=[30.0, 60.0, 80.0, 70.0, 50.0],
    torque_curve=[286.0, 286.0, 255.0, 167.0, 95.0],
    boost_curve=[0.0, 0.0, 0.0, 0.0, 0.0],
    econ_curve=[300.0, 280.0, 260.0, 270.0, 290.0],
    econ_eff_curve=[25.0, 28.0, 31.5, 30.0, 27.0],
    fuel_type="Fuel_Type_Premium",
)

ENGINE_JBEAM = {
    "Camso_Engine_abcde": {
        "information": {"name": "Test V8", "value": 1000},
        "mainEngine": {
            "inertia": "$=0.15*$inertia_scale",
            "friction": 20,
            "dynamicFriction": 0.02,
            "engineBrakeTorque": 30,
        },
    }
}


@pytest.fixture
def make_record():
    """Factory for EngineRecord; keyword arguments override the defaults."""
    def _make(**overrides):
        values = dict(RECORD_DEFAULTS)
        for name in EngineRecord.CURVE_FIELDS:
            values[name] = list(values[name])
        values.update(overrides)
        return EngineRecord(**values)
    return _make


@pytest.fixture
def make_car_file():
    """Factory for a car file dict that agrees with a record."""
    def _make(record, version=2300000000, **variant_overrides):
        family = {key: getattr(record, attr) for attr, key, _, optional in FAMILY_CHECKS
                  if not (optional and getattr(record, attr) is None)}
        variant = {key: getattr(record, attr) for attr, key, _, optional in VARIANT_CHECKS
                   if not (optional and getattr(record, attr) is None)}
        variant.update(variant_overrides)
        return {"Car": {"Version": version, "Family": family, "Variant": variant}}
    return _make


@pytest.fixture
def engine_jbeam():
    return json.loads(json.dumps(ENGINE_JBEAM))


@pytest.fixture
def make_mod(tmp_path, make_car_file):
    """Factory writing a BeamNG mod zip for a record."""
    def _make(record, name="test_mod.zip", car_file=None, jbeam=None, include_car_file=True):
        path = tmp_path / name
        with zipfile.ZipFile(path, "w") as mod:
            mod.writestr("mod_info/ABCDE/info.json", json.dumps({"title": "Test V8"}))
            if include_car_file:
                mod.writestr("vehicles/test/test.car",
                             json.dumps(car_file if car_file is not None else make_car_file(record)))
            mod.writestr("vehicles/test/camso_engine_abcde.jbeam",
                         json.dumps(jbeam if jbeam is not None else ENGINE_JBEAM))
            mod.writestr("vehicles/test/camso_engine_structure_abcde.jbeam", "{}")
            mod.writestr("LICENSE.txt", "All rights reserved")
        return path
    return _make


@pytest.fixture
def make_curve_data():
    """Factory for a turbocharged direct export; keyword groups are merged over the defaults."""
    def _make(version=2412240000, float_data=None, string_data=None, curve_data=None):
        floats = {
            "Info": {"GameVersion": float(version), "VariantYear": 2020.0},
            "Results": {"Weight": 180.4, "MaxRPM": 7000.0, "IdleRPM": 850.0, "PeakPower": 300.0,
                        "PeakPowerRPM": 6500.0, "PeakTorque": 500.0, "PeakTorqueRPM": 4000.0,
                        "EconEff": 30.0, "Responsiveness": 50.0, "ExportResponsiveness": 600.0},
            "Tune": {"Displacement": 2.0, "ChargerMaxBoost1": 1.0},
        }
        strings = {
            "Info": {"FamilyName": "Dawn", "VariantName": "Turbo"},
            "Parts": {"Aspiration": "Aspiration_Turbo_Name", "AspirationType": "Aspiration_Turbo",
                      "AspirationItem2": "NoOption_Name", "BlockConfig": "EngBlock_Inl4_Name",
                      "Head": "Head_DuelOHC_Name", "Valves": "ValveCount_4_Name",
                      "FuelType": "Premium"},
        }
        curves = {
            "RPM": {1: 1000.0, 2: 3000.0, 3: 5000.0, 4: 7000.0},
            "Torque": {1: 200.0, 2: 400.0, 3: 500.0, 4: 450.0},
            "Boost": {1: 0.5, 2: 1.2, 3: 1.0, 4: 0.9},
            "Friction": {1: 10.0, 2: 20.0, 3: 25.0, 4: 30.0},
            "FuelUsage": {1: 0.001, 2: 0.002, 3: 0.003, 4: 0.0025},
        }
        for target, extra in ((floats, float_data), (strings, string_data)):
            for group, values in (extra or {}).items():
                target.setdefault(group, {}).update(values)
        curves.update(curve_data or {})
        return CurveDataSource(string_data=strings, float_data=floats, curve_data=curves)
    return _make


@pytest.fixture
def make_car(tmp_path):
    """Factory for a car folder with an unpacked data dir, or a data.acd when packed=True."""
    def _make(name="test_car", packed=False, data_files=None, ui=None):
        root = tmp_path / name
        root.mkdir()
        files = dict(DATA_FILES)
        files.update(data_files or {})
        files = {k: v for k, v in files.items() if v is not None}
        if packed:
            archive = AcdArchive(root / "data.acd",
                                 {k: v.encode("utf-8") for k, v in files.items()})
            archive.write()
        else:
            data_dir = root / "data"
            data_dir.mkdir()
            for filename, content in files.items():
                (data_dir / filename).write_text(content, encoding="utf-8")
        ui_dir = root / "ui"
        ui_dir.mkdir()
        (ui_dir / "ui_car.json").write_text(json.dumps(ui if ui is not None else UI_CAR_JSON),
                                            encoding="utf-8")
        return root
    return _make


@pytest.fixture
def data_files():
    """The default car data file texts, for tests that start from a modified copy."""
    return dict(DATA_FILES)
