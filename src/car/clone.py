"""Create a new car folder as a copy of an existing one."""
import logging
import os
import shutil
from pathlib import Path

from .car import Car
from .car_ini import CarIniData
from .ui import UiInfo
from ..config import ENGINE_CRANE_CAR_TAG
from ..core.acd import AcdArchive
from ..core.constants import ACD_FILENAME, DATA_DIRNAME
from ..core.errors import CarAlreadyExistsError, DataIOError, InvalidCarError, NoSuchCarError
from ..core.ini import Ini

logger = logging.getLogger(__name__)

CAR_SPECIFIC_SUFFIXES = ('.kn5', '.bank')


def derivative_folder_name(existing_name: str, spec_name: str) -> str:
    """'ks_car' + 'Stage 2 Turbo' gives 'ks_car_stage_2_turbo'."""
    return f"{existing_name}_{'_'.join(spec_name.lower().split())}"


def clone_existing_car(existing_car_path, new_car_path, unpack_data: bool) -> None:
    existing_car_path = Path(existing_car_path)
    new_car_path = Path(new_car_path)
    existing_car_name = existing_car_path.name

    if existing_car_path.resolve() == new_car_path.resolve():
        raise CarAlreadyExistsError(f"Cannot clone car to its existing location. ({existing_car_path})")
    try:
        new_car_path.mkdir()
    except FileExistsError:
        raise CarAlreadyExistsError(f"Car {new_car_path} directory already exists")
    except OSError as e:
        raise DataIOError(new_car_path, f"failed to create directory. {e}")

    try:
        _clone_contents(existing_car_path, new_car_path, existing_car_name, unpack_data)
    except Exception as e:
        logger.error("Clone of %s failed. %s", existing_car_path, e)
        shutil.rmtree(new_car_path, ignore_errors=True)
        raise


def _clone_contents(existing_car_path: Path, new_car_path: Path, existing_car_name: str,
                    unpack_data: bool) -> None:
    try:
        shutil.copytree(existing_car_path, new_car_path, dirs_exist_ok=True)
    except (OSError, shutil.Error) as e:
        raise DataIOError(existing_car_path, f"failed to copy car. {e}")

    data_path = new_car_path / DATA_DIRNAME
    acd_path = new_car_path / ACD_FILENAME
    if not data_path.is_dir():
        if not acd_path.is_file():
            raise InvalidCarError(f"{existing_car_path} doesn't contain a data dir or {ACD_FILENAME} file")
        logger.info("No data dir present in %s. Data will be extracted from %s", new_car_path, ACD_FILENAME)
        AcdArchive.load_from_acd_file_with_key(acd_path, existing_car_name).unpack()

    fix_car_specific_filenames(new_car_path, existing_car_name)
    update_car_sfx(new_car_path, existing_car_name)

    if unpack_data:
        if acd_path.exists():
            logger.info("Deleting %s as data will be invalid after clone completion", acd_path)
            try:
                acd_path.unlink()
            except OSError as e:
                logger.warning("Failed to delete %s. %s", acd_path, e)
    else:
        logger.info("Packing %s into an .acd file", data_path)
        AcdArchive.create_from_data_dir(data_path).write()
        logger.info("Deleting %s as data will be invalid after clone completion", data_path)
        shutil.rmtree(data_path)


def fix_car_specific_filenames(car_path: Path, name_to_change: str) -> None:
    """Rename model and sound bank files and rewrite lods.ini for the new folder name."""
    new_car_name = car_path.name
    paths_to_update = []
    for dirpath, _, filenames in os.walk(car_path):
        for filename in filenames:
            path = Path(dirpath) / filename
            if filename.startswith(name_to_change) and filename.endswith(CAR_SPECIFIC_SUFFIXES):
                paths_to_update.append(path)
            elif filename == "lods.ini":
                _update_lods_ini(path, name_to_change, new_car_name)

    for path in paths_to_update:
        new_path = path.with_name(path.name.replace(name_to_change, new_car_name))
        logger.info("Changing %s to %s", path, new_path.name)
        path.rename(new_path)


def _update_lods_ini(path: Path, name_to_change: str, new_car_name: str) -> None:
    lod_ini = Ini.load_from_file(path)
    idx = 0
    while lod_ini.section_contains_property(f"LOD_{idx}", "FILE"):
        section = f"LOD_{idx}"
        logger.info("Updating %s", section)
        old_value = lod_ini.get_value(section, "FILE")
        lod_ini.set_value(section, "FILE", old_value.replace(name_to_change, new_car_name))
        idx += 1
    lod_ini.write_to_file(path)


def update_car_sfx(car_path: Path, name_to_change: str) -> None:
    guids_path = car_path / "sfx" / "GUIDs.txt"
    if not guids_path.is_file():
        logger.warning("%s doesn't exist; sound references left unchanged", guids_path)
        return
    car_name = car_path.name
    logger.info("Updating contents of '%s'. Replacing refs to '%s' with '%s'",
                guids_path, name_to_change, car_name)
    try:
        lines = guids_path.read_text(encoding='utf-8', errors='replace').splitlines()
        guids_path.write_text(''.join(f"{line.replace(name_to_change, car_name)}\n" for line in lines),
                              encoding='utf-8')
    except OSError as e:
        raise DataIOError(guids_path, f"failed to update sfx references. {e}")


def create_new_car_spec(existing_car_path, spec_name: str, unpack_data: bool) -> Path:
    """Clone a car into a sibling folder named after spec_name and update its ui naming."""
    existing_car_path = Path(existing_car_path)
    existing_car_name = existing_car_path.name
    if not existing_car_path.exists():
        raise NoSuchCarError(existing_car_name)
    new_car_name = derivative_folder_name(existing_car_name, spec_name)
    new_car_path = existing_car_path.parent / new_car_name
    if new_car_path.exists():
        raise CarAlreadyExistsError(new_car_name)
    logger.info("Cloning %s to %s", existing_car_path, new_car_path)
    clone_existing_car(existing_car_path, new_car_path, unpack_data)
    try:
        update_car_ui_data(new_car_path, spec_name, existing_car_name)
    except Exception:
        shutil.rmtree(new_car_path, ignore_errors=True)
        raise
    return new_car_path


def update_car_ui_data(car_path, new_suffix: str, parent_car_folder_name: str) -> None:
    car_path = Path(car_path)
    car = Car.load_from_path(car_path)
    car_ini = CarIniData.mandatory_from_car(car)
    existing_name = car_ini.screen_name() or car_path.name
    new_name = f"{existing_name} {new_suffix}"
    logger.info("Updating screen name and ui data from %s to %s", existing_name, new_name)
    car_ini.set_screen_name(new_name)
    car_ini.write()
    car.commit()

    ui_info = UiInfo.from_car(car)
    ui_info.set_name(new_name)
    existing_parent = ui_info.parent()
    if existing_parent is None:
        logger.info("Updating parent name")
        ui_info.set_parent(parent_car_folder_name)
    else:
        logger.info("Parent name already set to %s", existing_parent)
    if ui_info.add_tag_if_unique(ENGINE_CRANE_CAR_TAG):
        logger.info("Added %s tag", ENGINE_CRANE_CAR_TAG)
    else:
        logger.info("%s already present in tags", ENGINE_CRANE_CAR_TAG)
    ui_info.write()
