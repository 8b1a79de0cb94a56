"""Run one engine crane job described by a json file.

Example job::

    {
        "action": "derivative",
        "base_car": "content/cars/ks_mazda_mx5_nd",
        "spec_name": "V6 Swap",
        "engine": {"crate": "engines/dawn_v6.eng"},
        "settings": {"minimum_physics_level": "csp_extended", "current_engine_weight": 110}
    }

``action`` is one of ``swap`` (needs ``car``), ``derivative`` (needs
``base_car`` and ``spec_name``), ``crate`` (needs ``output``) or ``list``
(needs ``path``, a folder of crate engines, and takes an optional ``source`` of
``beam_ng_mod`` or ``direct_export``). Every action but ``list`` needs an ``engine``
which holds one of ``crate``, ``direct_export`` (json CurveDataSource) or
``beamng_mod`` together with ``records`` (json list of engine records).
"""
import sys
import logging
from pathlib import Path

from src.config import DEFAULT_LOG_FORMAT, SwapSettings, load_json_file
from src.core.beamng import json_car_file_reader
from src.core.errors import ConfigError, EngineCraneError
from src.core.models import CurveDataSource, DictRecordSource, EngineRecord
from src.crate_engine.crate_engine import CrateEngine, CrateEngineFilter, find_crate_engines
from src.crate_engine.metadata import DataSource
from src.fabricator import calculator
from src.fabricator.orchestrator import create_derivative, swap_engine

logger = logging.getLogger(__name__)


def load_record_source(path) -> DictRecordSource:
    records = load_json_file(path).get("records", [])
    source = DictRecordSource()
    for entry in records:
        try:
            source.add(EngineRecord(**entry))
        except TypeError as e:
            raise ConfigError(f"Invalid engine record in {path}. {e}")
    return source


def load_curve_data(path) -> CurveDataSource:
    data = load_json_file(path)
    curves = {name: {int(idx): float(val) for idx, val in curve.items()}
              for name, curve in data.get("curve_data", {}).items()}
    return CurveDataSource(string_data=data.get("string_data", {}),
                           float_data=data.get("float_data", {}),
                           curve_data=curves)


def build_calculator(engine: dict) -> calculator.EngineParameterCalculator:
    if "crate" in engine:
        return calculator.from_crate_engine(engine["crate"], json_car_file_reader)
    if "direct_export" in engine:
        return calculator.from_curve_data(load_curve_data(engine["direct_export"]))
    if "beamng_mod" in engine:
        if "records" not in engine:
            raise ConfigError("'beamng_mod' engines also need a 'records' file")
        return calculator.from_beam_ng_mod(engine["beamng_mod"], load_record_source(engine["records"]),
                                           json_car_file_reader)
    raise ConfigError("engine must contain one of 'crate', 'direct_export' or 'beamng_mod'")


def _required(job: dict, key: str):
    if key not in job:
        raise ConfigError(f"'{job.get('action')}' job is missing '{key}'")
    return job[key]


def build_crate_engine(engine: dict) -> CrateEngine:
    if "direct_export" in engine:
        return CrateEngine.from_direct_export(load_curve_data(engine["direct_export"]))
    if "beamng_mod" in engine and "records" in engine:
        return CrateEngine.from_beam_ng_mod(engine["beamng_mod"], load_record_source(engine["records"]),
                                            json_car_file_reader)
    raise ConfigError("crate jobs need 'direct_export' or 'beamng_mod' with 'records'")


def list_crate_engines(job: dict) -> list:
    source = job.get("source")
    crate_filter = CrateEngineFilter()
    if source is not None:
        try:
            crate_filter.source = DataSource[str(source).upper()]
        except KeyError:
            raise ConfigError(f"Unknown crate engine source '{source}'. "
                              f"Expected one of {', '.join(s.name.lower() for s in DataSource)}")
    found = find_crate_engines(_required(job, "path"), crate_filter)
    for path, metadata in found:
        logger.info("%s: '%s' (%s, version %d)", path.name, metadata.name,
                    metadata.source.display_name, metadata.data_version)
    logger.info("Found %d crate engine(s)", len(found))
    return found


def run_job(job: dict) -> None:
    action = job.get("action")
    if action == "list":
        list_crate_engines(job)
        return
    engine = _required(job, "engine")
    if action == "crate":
        crate_engine = build_crate_engine(engine)
        path = crate_engine.write_to_file(_required(job, "output"))
        logger.info("Created crate engine '%s' at %s", crate_engine.name, path)
        return

    settings = SwapSettings.from_dict(job.get("settings", {}))
    engine_calculator = build_calculator(engine)
    if action == "swap":
        swap_engine(_required(job, "car"), engine_calculator, settings)
    elif action == "derivative":
        new_car = create_derivative(_required(job, "base_car"), _required(job, "spec_name"),
                                    engine_calculator, settings)
        logger.info("Created %s", new_car)
    else:
        raise ConfigError(f"Unknown action '{action}'. Expected swap, derivative, crate or list")

    plot_path = job.get("plot")
    if plot_path:
        from src.utils.plotting import plot_power_curve_lut
        plot_power_curve_lut(engine_calculator.wheel_torque_curve(0.85),
                             [(rpm, float(t)) for rpm, t in engine_calculator.engine_torque_curve()],
                             title=Path(plot_path).stem, output_path=plot_path)


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("usage: python run.py <job.json>", file=sys.stderr)
        return 2
    try:
        job = load_json_file(argv[0])
        logging.getLogger().setLevel(job.get("log_level", "INFO").upper())
        run_job(job)
    except EngineCraneError as e:
        logger.error("%s", e)
        return 1
    return 0


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format=DEFAULT_LOG_FORMAT,
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

if __name__ == "__main__":
    sys.exit(main())
