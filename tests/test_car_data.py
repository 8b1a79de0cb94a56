"""Tests for the typed views over a car's ini and json files."""
import json
import pytest

from src.car.ai import Ai, Gears
from src.car.car import Car
from src.car.car_ini import CarIniData, CarVersion
from src.car.digital_instruments import DigitalInstruments, ShiftLights
from src.car.drivetrain import AutoShifter, Clutch, DriveType, Drivetrain, Traction
from src.car.engine import (
    CoastCurve, Damage, Engine, EngineData, FuelConsumptionFlowRate, PowerCurve, Turbo, TurboSection,
)
from src.car.turbo_ctrl import (
    ControllerCombinator, ControllerInput, TurboController, TurboControllerFile,
    delete_all_turbo_controllers,
)
from src.car.ui import UiInfo
from src.core.data_interface import ArchiveInterface, DirectoryInterface
from src.core.errors import InvalidCarError, MissingMandatoryProperty, PropertyParseError
from src.core.ini import Ini


class TestCar:

    def test_prefers_data_dir(self, make_car):
        car = Car.load_from_path(make_car())
        assert isinstance(car.data_interface, DirectoryInterface)
        assert car.folder_name == "test_car"

    def test_archive(self, make_car):
        car = Car.load_from_path(make_car(packed=True))
        assert isinstance(car.data_interface, ArchiveInterface)
        assert CarIniData.mandatory_from_car(car).screen_name() == "Test Car"

    def test_not_a_car(self, tmp_path):
        (tmp_path / "empty_car").mkdir()
        with pytest.raises(InvalidCarError):
            Car.load_from_path(tmp_path / "empty_car")
        with pytest.raises(InvalidCarError):
            Car.load_from_path(tmp_path / "missing")

    def test_missing_ini(self, make_car):
        car = Car.load_from_path(make_car(data_files={"ai.ini": None}))
        assert Ai.from_car(car) is None
        with pytest.raises(InvalidCarError):
            Ai.mandatory_from_car(car)


class TestCarIni:

    def test_values(self, make_car):
        car_ini = CarIniData.mandatory_from_car(Car.load_from_path(make_car()))
        assert car_ini.version() == CarVersion.V2
        assert car_ini.total_mass() == 1200
        assert car_ini.fuel_consumption() == pytest.approx(0.003)
        assert car_ini.fuel() == 30
        assert car_ini.max_fuel() == 50

    def test_updates(self, make_car):
        car_ini = CarIniData.mandatory_from_car(Car.load_from_path(make_car()))
        car_ini.set_version(CarVersion.CSP_EXTENDED_2)
        car_ini.set_total_mass(1250)
        car_ini.set_fuel_consumption(0.0025679)
        assert car_ini.ini.get_value("HEADER", "VERSION") == "extended-2"
        assert car_ini.ini.get_value("BASIC", "TOTALMASS") == "1250"
        assert car_ini.ini.get_value("FUEL", "CONSUMPTION") == "0.0026"
        assert "TOTALMASS=1250\t\t\t; kg with driver and fuel" in car_ini.ini.to_string()
        car_ini.clear_fuel_consumption()
        assert car_ini.fuel_consumption() is None

    def test_unknown_version(self):
        with pytest.raises(PropertyParseError):
            CarVersion.from_string("7")


class TestEngine:

    @pytest.fixture
    def engine(self, make_car):
        return Engine.mandatory_from_car(Car.load_from_path(make_car()))

    def test_engine_data(self, engine):
        data = EngineData.load_from_ini(engine.ini)
        assert data.limiter == 7000
        assert data.minimum == 900
        assert data.inertia == pytest.approx(0.12)
        data.inertia = 0.15
        data.limiter = 6000
        data.update_car_data(engine)
        assert engine.ini.get_value("ENGINE_DATA", "INERTIA") == "0.150"
        assert engine.ini.get_value("ENGINE_DATA", "LIMITER") == "6000"

    def test_damage(self, engine):
        damage = Damage.load_from_ini(engine.ini)
        assert damage == Damage(7200, 1, 1.5, 5)
        Damage(6200, 1, None, None).update_car_data(engine)
        assert engine.ini.get_value("DAMAGE", "RPM_THRESHOLD") == "6200"
        assert not engine.ini.section_contains_property("DAMAGE", "TURBO_BOOST_THRESHOLD")
        assert not engine.ini.section_contains_property("DAMAGE", "TURBO_DAMAGE_K")

    def test_coast_curve(self, engine):
        assert CoastCurve.load_from_ini(engine.ini) == CoastCurve(7000, 60, 0.0)
        CoastCurve(6000, 55).update_car_data(engine)
        assert engine.ini.get_value("COAST_REF", "TORQUE") == "55"
        assert engine.ini.get_value("COAST_REF", "NON_LINEARITY") == "0.00"

    def test_missing_coast_curve(self):
        ini = Ini.load_from_string("[HEADER]\nVERSION=1\n[COAST_REF]\nRPM=7000\nTORQUE=60\nNON_LINEARITY=0\n")
        with pytest.raises(MissingMandatoryProperty) as exc_info:
            CoastCurve.load_from_ini(ini)
        assert str(exc_info.value) == "HEADER-COAST_CURVE is missing"

    def test_power_curve(self, engine):
        power_curve = PowerCurve.load_from_engine(engine)
        assert power_curve.get_lut().to_list() == [(0, 100.0), (1000, 150.0), (7000, 200.0)]
        power_curve.update([(1000, 243.0), (2000, 121.5), (3000, 0.0)])
        power_curve.update_car_data(engine)
        assert engine.data_interface.get_file("power.lut") == b"1000\t243\n2000\t121.5\n3000\t0\n"

    def test_power_curve_missing_file(self, make_car):
        engine = Engine.mandatory_from_car(Car.load_from_path(make_car(data_files={"power.lut": None})))
        with pytest.raises(InvalidCarError):
            PowerCurve.load_from_engine(engine)

    def test_turbo(self, engine):
        turbo = Turbo.load_from_ini(engine.ini)
        assert turbo.bov_pressure_threshold == pytest.approx(0.5)
        assert len(turbo.sections) == 1
        assert turbo.sections[0].reference_rpm == 4000

        turbo.clear_sections()
        turbo.clear_bov_threshold()
        turbo.update_car_data(engine)
        assert not engine.ini.contains_section("TURBO_0")
        assert not engine.ini.contains_section("BOV")
        assert Turbo.load_from_ini(engine.ini) is None

    def test_turbo_section_written(self, engine):
        turbo = Turbo(sections=[TurboSection(0, max_boost=0.8, wastegate=0.8, display_max_boost=0.8,
                                             reference_rpm=3000, gamma=2.5)])
        turbo.update_car_data(engine)
        assert engine.ini.get_value("TURBO_0", "MAX_BOOST") == "0.80"
        assert engine.ini.get_value("TURBO_0", "LAG_UP") == "0.965"
        assert engine.ini.get_value("TURBO_0", "REFERENCE_RPM") == "3000"

    def test_fuel_flow(self, engine):
        FuelConsumptionFlowRate.new(0.03, 900, 0.85, [(1000, 9), (2000, 17)], 21).update_car_data(engine)
        ini = engine.ini
        assert ini.get_value("ENGINE_DATA", "IDLE_THROTTLE") == "0.030"
        assert ini.get_value("ENGINE_DATA", "IDLE_CUTOFF") == "900"
        assert ini.get_value("ENGINE_DATA", "MECHANICAL_EFFICIENCY") == "0.850"
        assert ini.get_value("FUEL_CONSUMPTION", "MAX_FUEL_FLOW") == "21"
        assert ini.get_value("FUEL_CONSUMPTION", "MAX_FUEL_FLOW_LUT") == "(1000=9|2000=17)"

        loaded = FuelConsumptionFlowRate.load_from_engine(engine)
        assert loaded.max_fuel_flow == 21
        assert loaded.lut_values() == [(1000, 9.0), (2000, 17.0)]

    def test_no_fuel_flow(self, engine):
        assert FuelConsumptionFlowRate.load_from_engine(engine) is None


class TestTurboController:

    def test_load(self, make_car):
        car = Car.load_from_path(make_car())
        controllers = TurboControllerFile.from_car(car, 0).load_controllers()
        assert len(controllers) == 1
        controller = controllers[0]
        assert controller.input == ControllerInput.RPMS
        assert controller.combinator == ControllerCombinator.ADD
        assert controller.get_lut().to_list() == [(0.0, 0.0), (7000.0, 1.2)]
        assert controller.filter == pytest.approx(0.95)

    def test_delete_all(self, make_car):
        car = Car.load_from_path(make_car())
        assert delete_all_turbo_controllers(car) == 1
        assert not car.data_interface.contains_file("ctrl_turbo0.ini")
        assert delete_all_turbo_controllers(car) == 0

    def test_delete_does_not_parse(self, make_car):
        car = Car.load_from_path(make_car(data_files={"ctrl_turbo0.ini": "[CONTROLLER_0\n"}))
        TurboControllerFile.delete_from_car(car, 0)
        assert not car.data_interface.contains_file("ctrl_turbo0.ini")

    def test_write_new(self, make_car):
        car = Car.load_from_path(make_car(data_files={"ctrl_turbo0.ini": None}))
        controller_file = TurboControllerFile(car, 0)
        controller_file.add_controller(TurboController(0, ControllerInput.RPMS, ControllerCombinator.ADD,
                                                       [(1000.0, 0.1), (2000.0, 0.5)], 0.95, 10000.0, 0.0))
        controller_file.write()
        text = car.data_interface.get_file("ctrl_turbo0.ini").decode()
        assert text == ("[CONTROLLER_0]\nINPUT=RPMS\nCOMBINATOR=ADD\nLUT=(1000=0.1|2000=0.5)\n"
                        "FILTER=0.950\nUP_LIMIT=10000\nDOWN_LIMIT=0")

    def test_bad_input(self):
        with pytest.raises(PropertyParseError):
            ControllerInput.from_string("BOOST")


class TestDrivetrain:

    def test_sections(self, make_car):
        drivetrain = Drivetrain.mandatory_from_car(Car.load_from_path(make_car()))
        assert Traction.load_from_ini(drivetrain.ini).drive_type == DriveType.RWD
        shifter = AutoShifter.load_from_ini(drivetrain.ini)
        assert (shifter.up, shifter.down) == (6800, 4500)
        assert Clutch.load_from_ini(drivetrain.ini).max_torque == 250

    def test_missing_traction(self, make_car):
        drivetrain = Drivetrain.mandatory_from_car(
            Car.load_from_path(make_car(data_files={"drivetrain.ini": "[CLUTCH]\nMAX_TORQUE=250\n"})))
        with pytest.raises(InvalidCarError):
            Traction.load_from_ini(drivetrain.ini)

    @pytest.mark.parametrize("drive_type, efficiency", [
        (DriveType.FWD, 0.9), (DriveType.RWD, 0.85), (DriveType.AWD, 0.75),
    ])
    def test_mechanical_efficiency(self, drive_type, efficiency):
        assert drive_type.mechanical_efficiency() == efficiency

    def test_ai_gears(self, make_car):
        ai = Ai.mandatory_from_car(Car.load_from_path(make_car()))
        gears = Gears.load_from_ini(ai.ini)
        gears.up, gears.down = 5820, 4200
        gears.update_car_data(ai)
        assert ai.ini.get_value("GEARS", "UP") == "5820"
        assert ai.ini.get_value("GEARS", "SLIP_THRESHOLD") == "0.95"


class TestShiftLights:

    @pytest.fixture
    def shift_lights(self, make_car):
        instruments = DigitalInstruments.mandatory_from_car(Car.load_from_path(make_car()))
        return ShiftLights.load_from_ini(instruments.ini), instruments

    def test_lower_limiter(self, shift_lights):
        lights, _ = shift_lights
        lights.update_limiter(7000, 6000)
        assert [led.rpm_switch for led in lights.leds] == [4800, 6000]
        assert [led.blink_switch for led in lights.leds] == [6000, 6000]

    def test_raise_limiter(self, shift_lights):
        lights, _ = shift_lights
        lights.leds[0].blink_switch = 6500
        lights.update_limiter(6000, 7000)
        assert lights.leds[0].rpm_switch == 6500
        assert lights.leds[0].blink_switch == 7100

    def test_written(self, shift_lights):
        lights, instruments = shift_lights
        lights.update_limiter(7000, 6000)
        lights.update_car_data(instruments)
        assert instruments.ini.get_value("LED_0", "RPM_SWITCH") == "4800"
        assert instruments.ini.get_value("LED_0", "EMISSIVE") == "10,0,0"

    def test_no_leds(self):
        assert ShiftLights.load_from_ini(Ini.load_from_string("[OTHER]\nX=1\n")) is None


class TestUiInfo:

    def test_load_flattens_raw_newlines(self, tmp_path):
        path = tmp_path / "ui_car.json"
        path.write_text('{"name": "Car", "description": "line one\nline two\tend"}', encoding="utf-8")
        ui = UiInfo.load(path)
        assert ui.description() == "line one line two  end"

    def test_specs_and_curves(self, make_car):
        ui = UiInfo.from_car(Car.load_from_path(make_car()))
        assert ui.name() == "Test Car"
        assert ui.has_tag("rwd")
        ui.update_spec("bhp", "107bhp")
        ui.update_torque_curve([(1000, 286), (2000, 286)])
        assert list(ui.specs())[-1] == "bhp"
        assert ui.torque_curve() == [["1000", "286"], ["2000", "286"]]
        ui.write()
        written = json.loads(ui.path.read_text(encoding="utf-8"))
        assert written["specs"]["bhp"] == "107bhp"

    def test_tags(self, make_car):
        ui = UiInfo.from_car(Car.load_from_path(make_car()))
        assert ui.add_tag_if_unique("engine crane")
        assert not ui.add_tag_if_unique("engine crane")
        assert ui.tags() == ["#Street", "rwd", "engine crane"]

    def test_not_json(self, tmp_path):
        path = tmp_path / "ui_car.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(InvalidCarError):
            UiInfo.load(path)
