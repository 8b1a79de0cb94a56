"""Apply a calculated engine to an existing car, or to a fresh copy of one.

Loading the car, its traction type, car.ini and the engine.ini edits must all
succeed; drivetrain, ai, shift light and ui updates are logged and skipped on
failure. Nothing in the data folder changes until the final commit.
"""
import logging
import shutil
from pathlib import Path
from typing import Optional

from .calculator import EngineParameterCalculator
from ..car.ai import Ai, Gears
from ..car.car import Car
from ..car.car_ini import CarIniData, CarVersion
from ..car.clone import create_new_car_spec
from ..car.digital_instruments import DigitalInstruments, ShiftLights
from ..car.drivetrain import AutoShifter, Clutch, Drivetrain, Traction
from ..car.engine import Engine, EngineData, PowerCurve, Turbo
from ..car.turbo_ctrl import TurboControllerFile, delete_all_turbo_controllers
from ..car.ui import UiInfo
from ..config import BLANK_SPEC_VALUE, DEFAULT_MINIMUM_RPM, TURBO_CONTROLLER_INDEX, PhysicsLevel, SwapSettings
from ..core.constants import (
    AUTOSHIFT_DOWN_PERCENT, AUTOSHIFT_UP_PERCENT, CLUTCH_TORQUE_HEADROOM, CLUTCH_TORQUE_MULTIPLE,
)
from ..core.errors import EngineCraneError, FabricationError, FabricationErrorKind
from ..utils.formatting import format_number
from ..utils.numeric import round_float_to, round_half_away, round_up_to_nearest_multiple

logger = logging.getLogger(__name__)


def shift_points(limiter: int):
    """Up and down shift rpms for a limiter, as used by the auto shifter and ai."""
    base = limiter // 100
    return base * AUTOSHIFT_UP_PERCENT, base * AUTOSHIFT_DOWN_PERCENT


def _failed(kind: FabricationErrorKind, resource: str, err: Exception) -> FabricationError:
    return FabricationError(kind, resource, str(err))


def swap_engine(car_path, calculator: EngineParameterCalculator,
                settings: Optional[SwapSettings] = None) -> None:
    settings = settings or SwapSettings()
    car_path = Path(car_path)

    logger.info("Loading car %s", car_path)
    try:
        car = Car.load_from_path(car_path)
        drivetrain = Drivetrain.mandatory_from_car(car)
    except EngineCraneError as e:
        raise _failed(FabricationErrorKind.FAILED_TO_LOAD, str(car_path), e)
    try:
        drive_type = Traction.load_from_ini(drivetrain.ini).drive_type
    except EngineCraneError:
        raise FabricationError(FabricationErrorKind.MISSING_DATA_SECTION, "Traction", Drivetrain.FILENAME)
    mechanical_efficiency = drive_type.mechanical_efficiency()
    logger.info("Existing car is %s with assumed mechanical efficiency of %s",
                drive_type.value, mechanical_efficiency)

    new_limiter = round_half_away(calculator.limiter())
    mass = _update_car_ini(car, calculator, settings)

    logger.info("Clearing existing turbo controllers")
    try:
        delete_all_turbo_controllers(car)
    except EngineCraneError as e:
        logger.warning("Failed to clear turbo controllers. %s", e)

    old_limiter = _update_engine_ini(car, calculator, settings, mechanical_efficiency, new_limiter)

    controller = calculator.create_turbo_controller()
    if controller is not None:
        logger.info("Writing turbo controller with index %d", TURBO_CONTROLLER_INDEX)
        controller_file = TurboControllerFile(car, TURBO_CONTROLLER_INDEX)
        try:
            controller_file.add_controller(controller)
            controller_file.write()
        except EngineCraneError as e:
            raise _failed(FabricationErrorKind.FAILED_TO_WRITE, controller_file.filename, e)

    _update_drivetrain(car, calculator, settings, new_limiter)
    _update_ai(car, new_limiter)
    _update_shift_lights(car, old_limiter, new_limiter)
    _update_ui(car, calculator, mass)

    try:
        car.commit()
    except EngineCraneError as e:
        raise _failed(FabricationErrorKind.FAILED_TO_WRITE, str(car_path), e)
    logger.info("Engine swap into %s complete", car.folder_name)


def _update_car_ini(car: Car, calculator: EngineParameterCalculator, settings: SwapSettings) -> Optional[int]:
    try:
        ini_data = CarIniData.mandatory_from_car(car)
    except EngineCraneError as e:
        raise _failed(FabricationErrorKind.FAILED_TO_LOAD, CarIniData.FILENAME, e)

    if settings.minimum_physics_level == PhysicsLevel.BASE_GAME:
        logger.info("Using base game physics")
        ini_data.set_fuel_consumption(calculator.basic_fuel_consumption())
    else:
        logger.info("Using CSP extended physics")
        ini_data.set_version(CarVersion.CSP_EXTENDED_2)
        ini_data.clear_fuel_consumption()

    if settings.current_engine_weight is not None:
        current_mass = ini_data.total_mass()
        if current_mass is None:
            logger.error("Existing car doesn't have a total mass property")
        else:
            new_mass = current_mass + calculator.engine_weight() - settings.current_engine_weight
            if new_mass <= 0:
                logger.error("Invalid existing engine weight (%d). Would result in negative total mass",
                             settings.current_engine_weight)
            else:
                logger.info("Updating total mass to %d based off a provided existing engine weight of %d",
                            new_mass, settings.current_engine_weight)
                ini_data.set_total_mass(new_mass)

    logger.info("Writing car ini files")
    ini_data.write()
    return ini_data.total_mass()


def _update_engine_ini(car: Car, calculator: EngineParameterCalculator, settings: SwapSettings,
                       mechanical_efficiency: float, new_limiter: int) -> int:
    try:
        engine = Engine.mandatory_from_car(car)
    except EngineCraneError as e:
        raise _failed(FabricationErrorKind.FAILED_TO_LOAD, Engine.FILENAME, e)

    if settings.minimum_physics_level == PhysicsLevel.CSP_EXTENDED:
        calculator.fuel_flow_consumption(mechanical_efficiency).update_car_data(engine)

    try:
        engine_data = EngineData.load_from_ini(engine.ini)
    except EngineCraneError as e:
        raise _failed(FabricationErrorKind.FAILED_TO_LOAD, EngineData.SECTION_NAME, e)
    try:
        engine_data.inertia = calculator.inertia()
    except FabricationError as e:
        logger.warning("Failed to calculate new inertia value. %s. existing value will be used", e)
    old_limiter = engine_data.limiter
    engine_data.limiter = new_limiter
    idle = calculator.idle_speed()
    if idle is None:
        logger.warning("Failed to calculate idle rpm. Using %d as value", DEFAULT_MINIMUM_RPM)
        engine_data.minimum = DEFAULT_MINIMUM_RPM
    else:
        engine_data.minimum = round_half_away(idle)
    engine_data.update_car_data(engine)

    calculator.damage().update_car_data(engine)
    calculator.coast_data().update_car_data(engine)

    try:
        power_curve = PowerCurve.load_from_engine(engine)
    except EngineCraneError as e:
        raise _failed(FabricationErrorKind.MISSING_DATA_SECTION, "HEADER.POWER_CURVE", e)
    power_curve.update(calculator.wheel_torque_curve(mechanical_efficiency))
    power_curve.update_car_data(engine)

    new_turbo = calculator.create_turbo()
    if new_turbo is not None:
        logger.info("The new engine has a turbo")
        new_turbo.update_car_data(engine)
    else:
        logger.info("The new engine doesn't have a turbo")
        try:
            old_turbo = Turbo.load_from_ini(engine.ini)
        except EngineCraneError as e:
            raise _failed(FabricationErrorKind.FAILED_TO_LOAD, f"Turbo from {Engine.FILENAME}", e)
        if old_turbo is not None:
            logger.info("Removing old engine turbo parameters")
            old_turbo.clear_sections()
            old_turbo.clear_bov_threshold()
            old_turbo.update_car_data(engine)

    logger.info("Writing engine ini files")
    engine.write()
    return old_limiter


def _update_drivetrain(car: Car, calculator: EngineParameterCalculator, settings: SwapSettings,
                       new_limiter: int) -> None:
    logger.info("Updating drivetrain ini files")
    try:
        drivetrain = Drivetrain.mandatory_from_car(car)
    except EngineCraneError as e:
        logger.error("Failed to load drivetrain. %s", e)
        return
    try:
        autoshifter = AutoShifter.load_from_ini(drivetrain.ini)
        autoshifter.up, autoshifter.down = shift_points(new_limiter)
        autoshifter.update_car_data(drivetrain)
    except EngineCraneError as e:
        logger.error("Failed to update drivetrain autoshifter. %s", e)

    if settings.update_clutch:
        try:
            clutch = Clutch.load_from_ini(drivetrain.ini)
            peak_torque = calculator.peak_torque()
            if peak_torque > clutch.max_torque:
                clutch.max_torque = round_up_to_nearest_multiple(peak_torque + CLUTCH_TORQUE_HEADROOM,
                                                                 CLUTCH_TORQUE_MULTIPLE)
                logger.info("Raising clutch max torque to %d", clutch.max_torque)
            clutch.update_car_data(drivetrain)
        except EngineCraneError as e:
            logger.error("Failed to update clutch MAX_TORQUE. %s", e)

    logger.info("Writing drivetrain ini files")
    drivetrain.write()


def _update_ai(car: Car, new_limiter: int) -> None:
    logger.info("Updating ai ini files")
    try:
        ai = Ai.from_car(car)
        if ai is None:
            logger.error("Failed to load ai data")
            return
        gears = Gears.load_from_ini(ai.ini)
        gears.up, gears.down = shift_points(new_limiter)
        gears.update_car_data(ai)
        ai.write()
    except EngineCraneError as e:
        logger.error("Failed to update ai shift points. %s", e)


def _update_shift_lights(car: Car, old_limiter: int, new_limiter: int) -> None:
    try:
        instruments = DigitalInstruments.from_car(car)
        if instruments is None:
            return
        logger.info("Updating digital instruments files")
        shift_lights = ShiftLights.load_from_ini(instruments.ini)
        if shift_lights is None:
            return
        shift_lights.update_limiter(old_limiter, new_limiter)
        shift_lights.update_car_data(instruments)
        instruments.write()
    except EngineCraneError as e:
        logger.warning("Failed to update shift lights in %s. %s", DigitalInstruments.FILENAME, e)


def _update_ui(car: Car, calculator: EngineParameterCalculator, mass: Optional[int]) -> None:
    logger.info("Updating ui components")
    try:
        ui_info = UiInfo.from_car(car)
    except EngineCraneError as e:
        logger.error("Failed to load ui files. %s", e)
        return
    try:
        peak_bhp = calculator.peak_bhp()
        ui_info.update_power_curve(calculator.engine_bhp_power_curve())
        ui_info.update_torque_curve(calculator.engine_torque_curve())
        ui_info.update_spec("bhp", f"{peak_bhp}bhp")
        ui_info.update_spec("torque", f"{calculator.peak_torque()}Nm")
        if mass is not None and peak_bhp:
            ui_info.update_spec("weight", f"{mass}kg")
            ui_info.update_spec("pwratio", f"{format_number(round_float_to(mass / peak_bhp, 2))}kg/hp")
        else:
            ui_info.update_spec("weight", BLANK_SPEC_VALUE)
            ui_info.update_spec("pwratio", BLANK_SPEC_VALUE)
        for key in ("acceleration", "range", "topspeed"):
            ui_info.update_spec(key, BLANK_SPEC_VALUE)
        logger.info("Writing car ui files")
        ui_info.write()
    except EngineCraneError as e:
        logger.error("Failed to write ui files. %s", e)


def create_derivative(base_car_path, spec_name: str, calculator: EngineParameterCalculator,
                      settings: Optional[SwapSettings] = None) -> Path:
    """Clone base_car_path as a new spec and swap the engine into the clone.

    The clone is removed again if the swap fails.
    """
    settings = settings or SwapSettings()
    new_car_path = create_new_car_spec(base_car_path, spec_name, settings.unpack_data)
    try:
        swap_engine(new_car_path, calculator, settings)
    except Exception:
        logger.error("Engine swap into %s failed; removing it", new_car_path)
        shutil.rmtree(new_car_path, ignore_errors=True)
        raise
    return new_car_path
