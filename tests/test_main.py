"""Tests for running json job files."""
import dataclasses
import json
from unittest.mock import MagicMock, patch

import pytest

from src.car.car import Car
from src.core.errors import ConfigError, FabricationError
from src.core.ini import Ini
from src.crate_engine.crate_engine import CrateEngine
from src.crate_engine.metadata import DataSource
from src.main import list_crate_engines, load_curve_data, load_record_source, main, run_job


@pytest.fixture
def curve_data_file(tmp_path, make_curve_data):
    data = make_curve_data()
    path = tmp_path / "export.json"
    path.write_text(json.dumps(dataclasses.asdict(data)), encoding="utf-8")
    return path


@pytest.fixture
def records_file(tmp_path, make_record):
    path = tmp_path / "records.json"
    path.write_text(json.dumps({"records": [dataclasses.asdict(make_record())]}), encoding="utf-8")
    return path


@pytest.fixture
def write_job(tmp_path):
    def _write(job):
        path = tmp_path / "job.json"
        path.write_text(json.dumps(job), encoding="utf-8")
        return str(path)
    return _write


def test_load_curve_data(curve_data_file, make_curve_data):
    assert load_curve_data(curve_data_file) == make_curve_data()


def test_load_record_source(records_file, make_record):
    record = make_record()
    assert load_record_source(records_file).lookup(record.uuid, None) == record


def test_load_bad_record(tmp_path):
    path = tmp_path / "records.json"
    path.write_text(json.dumps({"records": [{"uuid": "abc"}]}), encoding="utf-8")
    with pytest.raises(ConfigError):
        load_record_source(path)


def test_swap_job(make_car, curve_data_file):
    car_path = make_car()
    run_job({"action": "swap", "car": str(car_path), "engine": {"direct_export": str(curve_data_file)}})
    engine = Ini.load_from_bytes(Car.load_from_path(car_path).data_interface.get_file("engine.ini"))
    assert engine.get_value("ENGINE_DATA", "LIMITER") == "7000"
    assert engine.contains_section("TURBO_0")


def test_derivative_job_from_mod(make_car, make_record, make_mod, records_file):
    base_path = make_car("base_car")
    run_job({
        "action": "derivative",
        "base_car": str(base_path),
        "spec_name": "V8",
        "engine": {"beamng_mod": str(make_mod(make_record())), "records": str(records_file)},
        "settings": {"unpack_data": True},
    })
    engine = Ini.load_from_file(base_path.parent / "base_car_v8" / "data" / "engine.ini")
    assert engine.get_value("ENGINE_DATA", "LIMITER") == "6000"


def test_crate_job_then_swap(tmp_path, make_car, curve_data_file):
    run_job({"action": "crate", "engine": {"direct_export": str(curve_data_file)},
             "output": str(tmp_path / "dawn")})
    crate_path = tmp_path / "dawn.eng"
    assert CrateEngine.from_file(crate_path).source == DataSource.DIRECT_EXPORT

    car_path = make_car()
    run_job({"action": "swap", "car": str(car_path), "engine": {"crate": str(crate_path)}})
    engine = Ini.load_from_bytes(Car.load_from_path(car_path).data_interface.get_file("engine.ini"))
    assert engine.get_value("ENGINE_DATA", "LIMITER") == "7000"


def test_plot_is_written(tmp_path, make_car, curve_data_file):
    plt = MagicMock()
    fig, ax = MagicMock(), MagicMock()
    plt.subplots.return_value = (fig, ax)
    plot_path = str(tmp_path / "lut.png")
    with patch('src.utils.plotting._ensure_matplotlib', return_value=plt):
        run_job({"action": "swap", "car": str(make_car()),
                 "engine": {"direct_export": str(curve_data_file)}, "plot": plot_path})
    fig.savefig.assert_called_once_with(plot_path)


def test_list_job(tmp_path, curve_data_file):
    engines = tmp_path / "engines"
    engines.mkdir()
    run_job({"action": "crate", "engine": {"direct_export": str(curve_data_file)},
             "output": str(engines / "dawn")})
    (engines / "notes.txt").write_text("not an engine", encoding="utf-8")
    run_job({"action": "list", "path": str(engines)})

    found = list_crate_engines({"path": str(engines), "source": "direct_export"})
    assert [path.name for path, _ in found] == ["dawn.eng"]
    assert found[0][1].source == DataSource.DIRECT_EXPORT
    assert list_crate_engines({"path": str(engines), "source": "beam_ng_mod"}) == []


@pytest.mark.parametrize("job", [
    {"action": "swap", "car": "x"},
    {"action": "list"},
    {"action": "list", "path": ".", "source": "steam"},
    {"action": "swap", "car": "x", "engine": {}},
    {"action": "swap", "car": "x", "engine": {"beamng_mod": "mod.zip"}},
    {"action": "crate", "engine": {"crate": "x.eng"}, "output": "y"},
])
def test_invalid_jobs(job):
    with pytest.raises(ConfigError):
        run_job(job)


def test_unknown_action(curve_data_file):
    with pytest.raises(ConfigError):
        run_job({"action": "tune", "engine": {"direct_export": str(curve_data_file)}})


def test_missing_car(tmp_path, curve_data_file):
    with pytest.raises(FabricationError):
        run_job({"action": "swap", "car": str(tmp_path / "nope"),
                 "engine": {"direct_export": str(curve_data_file)}})


class TestMain:

    def test_usage(self):
        assert main([]) == 2

    def test_success(self, make_car, curve_data_file, write_job):
        job = write_job({"action": "swap", "car": str(make_car()),
                         "engine": {"direct_export": str(curve_data_file)}, "log_level": "info"})
        assert main([job]) == 0

    def test_failure(self, tmp_path, curve_data_file, write_job):
        job = write_job({"action": "swap", "car": str(tmp_path / "nope"),
                         "engine": {"direct_export": str(curve_data_file)}})
        assert main([job]) == 1

    def test_missing_job_file(self, tmp_path):
        assert main([str(tmp_path / "nope.json")]) == 1
