"""Crate engines: engine data packaged once and fitted to any number of cars.

File layout::

    [u16 LE metadata version][metadata][payload]
"""
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from .codec import BinaryReader, BinaryWriter
from .data import BeamNGModData, DirectExportData
from .metadata import CrateEngineMetadata, DataSource
from ..core import jbeam
from ..core.beamng import CarFileReader
from ..core.constants import CRATE_ENGINE_SIZE_LIMIT, CRATE_ENGINE_SUFFIX, ENGINE_JBEAM_KEY_PREFIX
from ..core.errors import CrateEngineError, DataIOError, DecodeError
from ..core.models import (
    CurveDataSource, RecordSource, aspiration_name, block_config_name, head_config_name, valves_name,
)
from ..utils.numeric import round_half_away

logger = logging.getLogger(__name__)

CrateEngineData = Union[BeamNGModData, DirectExportData]


def engine_name_from_jbeam(engine_jbeam: dict) -> Optional[str]:
    engine_key = next((k for k in engine_jbeam if k.startswith(ENGINE_JBEAM_KEY_PREFIX)), "Camso_Engine")
    section = engine_jbeam.get(engine_key)
    if not isinstance(section, dict):
        return None
    info = section.get("information")
    if not isinstance(info, dict):
        return None
    name = info.get("name")
    return name if isinstance(name, str) else None


class CrateEngine:
    def __init__(self, metadata: CrateEngineMetadata, data: CrateEngineData):
        self.metadata = metadata
        self.data = data

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def version(self) -> int:
        return self.metadata.data_version

    @property
    def source(self) -> DataSource:
        return self.metadata.source

    # -------- creation --------

    @classmethod
    def from_beam_ng_mod(cls, mod_path, record_source: RecordSource,
                         car_file_reader: CarFileReader) -> 'CrateEngine':
        mod_path = Path(mod_path)
        data = BeamNGModData.from_beam_ng_mod(mod_path, record_source, car_file_reader)
        name = None
        jbeam_data = data.main_engine_jbeam_data()
        if jbeam_data is not None:
            try:
                name = engine_name_from_jbeam(jbeam.load_bytes(jbeam_data))
            except ValueError as e:
                logger.warning("Couldn't read engine name from %s. %s", data.main_engine_jbeam_filename, e)
        if name is None:
            name = mod_path.stem

        engine_jbeam_hash = data.jbeam_data_hash()
        if engine_jbeam_hash is None:
            logger.warning("Failed to calculate engine jbeam data hash")

        record = data.record
        metadata = CrateEngineMetadata(
            data_version=data.version,
            automation_version=record.variant_version,
            name=name,
            automation_data_hash=data.automation_data_hash(),
            engine_jbeam_hash=engine_jbeam_hash,
            build_year=record.variant_build_year(),
            block_config=block_config_name(record.block_config),
            head_config=head_config_name(record.head_type),
            valves=valves_name(record.valves),
            aspiration=aspiration_name(record.aspiration),
            fuel=record.fuel_type if record.fuel_type is not None else "Unknown",
            capacity=record.capacity_cc(),
            peak_power=round_half_away(record.peak_power),
            peak_power_rpm=round_half_away(record.peak_power_rpm),
            peak_torque=round_half_away(record.peak_torque),
            peak_torque_rpm=round_half_away(record.peak_torque_rpm),
            max_rpm=round_half_away(record.max_rpm),
            source=DataSource.BEAM_NG_MOD,
        )
        return cls(metadata, data)

    @classmethod
    def from_direct_export(cls, curve_data: CurveDataSource, exporter_script_version: int = 0,
                           car_file_data: Optional[bytes] = None) -> 'CrateEngine':
        data = DirectExportData(curve_data, exporter_script_version, car_file_data)

        def float_or_zero(group: str, key: str) -> float:
            val = curve_data.get_float(group, key)
            return val if val is not None else 0.0

        def string_or(group: str, key: str, default: str) -> str:
            val = curve_data.get_string(group, key)
            return val if val is not None else default

        metadata = CrateEngineMetadata(
            data_version=data.version,
            automation_version=curve_data.game_version() or 0,
            name=curve_data.name(),
            automation_data_hash=None,
            engine_jbeam_hash=None,
            build_year=int(float_or_zero("Info", "VariantYear")),
            block_config=block_config_name(string_or("Parts", "BlockConfig", "Unknown")),
            head_config=head_config_name(string_or("Parts", "Head", "Unknown")),
            valves=valves_name(string_or("Parts", "Valves", "Unknown")),
            aspiration=aspiration_name(string_or("Parts", "Aspiration", "Unknown")),
            fuel=string_or("Parts", "FuelType", "Unknown"),
            capacity=round_half_away(float_or_zero("Tune", "Displacement") * 1000),
            peak_power=round_half_away(float_or_zero("Results", "PeakPower")),
            peak_power_rpm=round_half_away(float_or_zero("Results", "PeakPowerRPM")),
            peak_torque=round_half_away(float_or_zero("Results", "PeakTorque")),
            peak_torque_rpm=round_half_away(float_or_zero("Results", "PeakTorqueRPM")),
            max_rpm=round_half_away(float_or_zero("Results", "MaxRPM")),
            source=DataSource.DIRECT_EXPORT,
        )
        return cls(metadata, data)

    # -------- serialization --------

    def to_bytes(self) -> bytes:
        writer = BinaryWriter(self.name)
        self.metadata.serialize_into(writer)
        self.data.serialize_into(writer)
        return writer.getvalue()

    @classmethod
    def from_bytes(cls, data: bytes, what: str = '<crate engine>') -> 'CrateEngine':
        reader = BinaryReader(data, what)
        metadata = CrateEngineMetadata.from_reader(reader)
        if metadata.source == DataSource.BEAM_NG_MOD:
            payload = BeamNGModData.from_reader(reader, metadata.data_version)
        else:
            payload = DirectExportData.from_reader(reader, metadata.data_version)
        if reader.remaining():
            logger.warning("%d trailing bytes after crate engine data in %s", reader.remaining(), what)
        return cls(metadata, payload)

    @classmethod
    def from_file(cls, path) -> 'CrateEngine':
        path = Path(path)
        return cls.from_bytes(_read_limited(path), str(path))

    @staticmethod
    def metadata_from_file(path) -> CrateEngineMetadata:
        """Decode only the header; the payload may be a version this build can't read."""
        path = Path(path)
        return CrateEngineMetadata.from_reader(BinaryReader(_read_limited(path), str(path)))

    def write_to_file(self, path) -> Path:
        path = Path(path)
        if path.suffix != f".{CRATE_ENGINE_SUFFIX}":
            path = path.with_name(f"{path.name}.{CRATE_ENGINE_SUFFIX}")
        data = self.to_bytes()
        try:
            path.write_bytes(data)
        except OSError as e:
            raise DataIOError(path, f"failed to write crate engine. {e}")
        logger.info("Wrote %s (%d bytes)", path, len(data))
        return path


def _read_limited(path: Path) -> bytes:
    try:
        size = path.stat().st_size
        if size > CRATE_ENGINE_SIZE_LIMIT:
            raise DecodeError(path, f"file size {size} exceeds limit of {CRATE_ENGINE_SIZE_LIMIT} bytes")
        return path.read_bytes()
    except OSError as e:
        raise DataIOError(path, f"failed to read crate engine. {e}")


@dataclass
class CrateEngineFilter:
    """Restrict discovered engines by source and/or payload version; None matches anything."""
    source: Optional[DataSource] = None
    data_version: Optional[int] = None

    def matches(self, metadata: CrateEngineMetadata) -> bool:
        if self.source is not None and metadata.source != self.source:
            return False
        if self.data_version is not None and metadata.data_version != self.data_version:
            return False
        return True


def find_crate_engines(path, crate_filter: Optional[CrateEngineFilter] = None
                       ) -> List[Tuple[Path, CrateEngineMetadata]]:
    """List the crate engines in a directory by reading their headers."""
    path = Path(path)
    crate_filter = crate_filter or CrateEngineFilter()
    found = []
    try:
        entries = sorted(os.scandir(path), key=lambda e: e.name)
    except OSError as e:
        raise DataIOError(path, f"failed to list crate engines. {e}")
    for entry in entries:
        if not entry.is_file() or not entry.name.endswith(f".{CRATE_ENGINE_SUFFIX}"):
            continue
        engine_path = Path(entry.path)
        try:
            metadata = CrateEngine.metadata_from_file(engine_path)
        except (CrateEngineError, DecodeError, DataIOError) as e:
            logger.warning("Skipping %s. %s", engine_path, e)
            continue
        if crate_filter.matches(metadata):
            found.append((engine_path, metadata))
    return found
