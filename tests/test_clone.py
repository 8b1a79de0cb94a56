"""Tests for cloning a car folder into a new spec."""
import json
import pytest

from src.car.car import Car
from src.car.clone import clone_existing_car, create_new_car_spec, derivative_folder_name
from src.core.acd import AcdArchive
from src.core.data_interface import ArchiveInterface, DirectoryInterface
from src.core.errors import CarAlreadyExistsError, NoSuchCarError
from src.core.ini import Ini


@pytest.fixture
def base_car(make_car):
    """A car with a model, lods.ini and sound bank references to its own folder name."""
    def _make(packed=False):
        root = make_car("base_car", packed=packed)
        (root / "base_car.kn5").write_bytes(b"model")
        (root / "base_car_lod_b.kn5").write_bytes(b"lod")
        (root / "lods.ini").write_text("[LOD_0]\nFILE=base_car.kn5\nOUT=45\n\n[LOD_1]\nFILE=base_car_lod_b.kn5\n",
                                       encoding="utf-8")
        sfx = root / "sfx"
        sfx.mkdir()
        (sfx / "base_car.bank").write_bytes(b"bank")
        (sfx / "GUIDs.txt").write_text("{abc} event:/cars/base_car/engine_ext\n{def} bus:/cars/base_car\n",
                                       encoding="utf-8")
        return root
    return _make


@pytest.mark.parametrize("spec_name, expected", [
    ("Stage 2", "base_car_stage_2"),
    ("  Stage   2  Turbo ", "base_car_stage_2_turbo"),
    ("GT", "base_car_gt"),
])
def test_derivative_folder_name(spec_name, expected):
    assert derivative_folder_name("base_car", spec_name) == expected


class TestCloneExistingCar:

    def test_renames_car_specific_files(self, base_car):
        root = base_car()
        new_path = root.parent / "base_car_stage_2"
        clone_existing_car(root, new_path, unpack_data=True)

        assert (new_path / "base_car_stage_2.kn5").read_bytes() == b"model"
        assert (new_path / "base_car_stage_2_lod_b.kn5").is_file()
        assert (new_path / "sfx" / "base_car_stage_2.bank").is_file()
        assert not (new_path / "base_car.kn5").exists()

        lods = Ini.load_from_file(new_path / "lods.ini")
        assert lods.get_value("LOD_0", "FILE") == "base_car_stage_2.kn5"
        assert lods.get_value("LOD_0", "OUT") == "45"
        assert lods.get_value("LOD_1", "FILE") == "base_car_stage_2_lod_b.kn5"

        guids = (new_path / "sfx" / "GUIDs.txt").read_text(encoding="utf-8")
        assert guids == ("{abc} event:/cars/base_car_stage_2/engine_ext\n"
                         "{def} bus:/cars/base_car_stage_2\n")

    def test_original_is_untouched(self, base_car):
        root = base_car()
        clone_existing_car(root, root.parent / "copy_car", unpack_data=True)
        assert (root / "base_car.kn5").is_file()
        assert Ini.load_from_file(root / "lods.ini").get_value("LOD_0", "FILE") == "base_car.kn5"

    def test_unpack_keeps_data_dir(self, base_car):
        root = base_car()
        new_path = root.parent / "copy_car"
        clone_existing_car(root, new_path, unpack_data=True)
        assert isinstance(Car.load_from_path(new_path).data_interface, DirectoryInterface)
        assert not (new_path / "data.acd").exists()

    def test_packs_with_new_key(self, base_car):
        root = base_car()
        new_path = root.parent / "copy_car"
        clone_existing_car(root, new_path, unpack_data=False)
        assert not (new_path / "data").exists()
        car = Car.load_from_path(new_path)
        assert isinstance(car.data_interface, ArchiveInterface)
        assert car.data_interface.get_file("car.ini") is not None

    def test_packed_source_is_unpacked(self, base_car):
        root = base_car(packed=True)
        new_path = root.parent / "copy_car"
        clone_existing_car(root, new_path, unpack_data=True)
        assert (new_path / "data" / "engine.ini").is_file()
        assert not (new_path / "data.acd").exists()

    def test_packed_source_is_repacked(self, base_car):
        root = base_car(packed=True)
        new_path = root.parent / "copy_car"
        clone_existing_car(root, new_path, unpack_data=False)
        archive = AcdArchive.load_from_acd_file(new_path / "data.acd")
        assert archive.contains_file("engine.ini")

    def test_existing_target(self, base_car):
        root = base_car()
        (root.parent / "copy_car").mkdir()
        with pytest.raises(CarAlreadyExistsError):
            clone_existing_car(root, root.parent / "copy_car", True)

    def test_clone_onto_itself(self, base_car):
        root = base_car()
        with pytest.raises(CarAlreadyExistsError):
            clone_existing_car(root, root, True)

    def test_missing_guids_is_fine(self, make_car):
        root = make_car("plain_car")
        clone_existing_car(root, root.parent / "plain_copy", True)
        assert (root.parent / "plain_copy" / "data" / "car.ini").is_file()


class TestCreateNewCarSpec:

    def test_ui_and_screen_name(self, base_car):
        new_path = create_new_car_spec(base_car(), "Stage 2", unpack_data=True)
        assert new_path.name == "base_car_stage_2"
        car_ini = Ini.load_from_file(new_path / "data" / "car.ini")
        assert car_ini.get_value("INFO", "SCREEN_NAME") == "Test Car Stage 2"
        ui = json.loads((new_path / "ui" / "ui_car.json").read_text(encoding="utf-8"))
        assert ui["name"] == "Test Car Stage 2"
        assert ui["parent"] == "base_car"
        assert ui["tags"] == ["#Street", "rwd", "engine crane"]

    def test_existing_parent_is_kept(self, make_car):
        root = make_car("base_car", ui={"name": "Test Car", "parent": "other_car", "tags": ["engine crane"]})
        new_path = create_new_car_spec(root, "Stage 2", unpack_data=True)
        ui = json.loads((new_path / "ui" / "ui_car.json").read_text(encoding="utf-8"))
        assert ui["parent"] == "other_car"
        assert ui["tags"] == ["engine crane"]

    def test_packed(self, base_car):
        new_path = create_new_car_spec(base_car(), "Stage 2", unpack_data=False)
        assert not (new_path / "data").exists()
        car_ini = Ini.load_from_bytes(
            AcdArchive.load_from_acd_file(new_path / "data.acd").get_file_data("car.ini"))
        assert car_ini.get_value("INFO", "SCREEN_NAME") == "Test Car Stage 2"

    def test_missing_base(self, tmp_path):
        with pytest.raises(NoSuchCarError):
            create_new_car_spec(tmp_path / "nope", "Stage 2", True)

    def test_spec_already_exists(self, base_car):
        root = base_car()
        create_new_car_spec(root, "Stage 2", True)
        with pytest.raises(CarAlreadyExistsError):
            create_new_car_spec(root, "Stage 2", True)
