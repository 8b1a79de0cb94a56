"""Crate engine payloads. Which one follows the metadata is given by its ``source``."""
import hashlib
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .codec import BinaryReader, BinaryWriter, read_dataclass, read_typed, write_dataclass, write_typed
from ..core.beamng import BeamNGMod, CarFileReader
from ..core.errors import CrateEngineError, UnsupportedVersionError, ValidationError
from ..core.models import CurveDataSource, EngineRecord, RecordSource, SandboxVersion
from ..core.validation import AutomationSandboxCrossChecker, car_file_variant

logger = logging.getLogger(__name__)


@dataclass
class BeamNGModData:
    """Everything needed to rebuild an engine from a BeamNG mod, without the mod."""
    VERSION = 1

    mod_info_json: Optional[bytes]
    main_engine_jbeam_filename: str
    jbeam_files: Dict[str, bytes]
    car_file_data: bytes
    record: EngineRecord
    license_data: Optional[str] = None

    @property
    def version(self) -> int:
        return self.VERSION

    def main_engine_jbeam_data(self) -> Optional[bytes]:
        return self.jbeam_files.get(self.main_engine_jbeam_filename)

    def automation_data_hash(self) -> bytes:
        return self.record.automation_data_hash()

    def jbeam_data_hash(self) -> Optional[bytes]:
        data = self.main_engine_jbeam_data()
        if data is None:
            return None
        return hashlib.sha256(data).digest()

    def serialize_into(self, writer: BinaryWriter) -> None:
        write_dataclass(writer, self)

    @classmethod
    def from_reader(cls, reader: BinaryReader, version: int) -> 'BeamNGModData':
        if version != cls.VERSION:
            raise UnsupportedVersionError("BeamNG mod crate data", version)
        return read_dataclass(reader, cls)

    @classmethod
    def from_beam_ng_mod(cls, mod_path, record_source: RecordSource, car_file_reader: CarFileReader,
                         cross_check: bool = True) -> 'BeamNGModData':
        mod = BeamNGMod.load_from_path(mod_path)
        if mod.car_file_data is None:
            raise CrateEngineError("Failed to load .car file from mod. File is missing")
        car_file = car_file_reader(mod.car_file_data)
        variant = car_file_variant(car_file)
        if variant is None:
            raise CrateEngineError("Failed to find Car.Variant section in .car file")
        uid = variant.get("UID")
        if not isinstance(uid, str):
            raise CrateEngineError("No UID in Car.Variant section")
        if len(uid) < 5:
            raise CrateEngineError(f"Invalid engine uuid found {uid}")
        logger.info("Engine uuid: %s", uid)
        try:
            version = int(float(variant["GameVersion"]))
        except (KeyError, TypeError, ValueError):
            raise CrateEngineError("Missing GameVersion attribute from Variant info")

        filename = mod.main_engine_jbeam_filename(uid)
        if filename is None:
            raise CrateEngineError("Failed to find the main engine data")
        logger.info("Found main engine data file: %s", filename)

        sandbox_version = SandboxVersion.from_version_number(version)
        logger.info("Engine version number %d deduced as %s", version, sandbox_version.value)
        record = record_source.lookup(uid, sandbox_version)
        if record is None:
            raise CrateEngineError(f"No engine found with uuid {uid}")

        if cross_check:
            try:
                AutomationSandboxCrossChecker(car_file, record).validate()
            except ValidationError as e:
                raise CrateEngineError(f"{e}. The BeamNG mod may be out-of-date; "
                                       f"try recreating a mod with the latest engine version")

        if mod.info_json is None:
            logger.warning("Couldn't read info.json from %s", mod.path)
        return cls(mod.info_json, filename, dict(mod.jbeam_files), mod.car_file_data,
                   record, mod.license_data)


@dataclass
class DirectExportData:
    """A direct export's typed data.

    Version 1 payloads stored flat ``Group.Key`` maps and curves as plain lists;
    they are converted to the grouped layout when read. New files are always
    written as the current version.
    """
    VERSION = 2

    curve_data: CurveDataSource
    exporter_script_version: int = 0
    car_file_data: Optional[bytes] = None

    @property
    def version(self) -> int:
        return self.VERSION

    def serialize_into(self, writer: BinaryWriter) -> None:
        writer.u32(self.exporter_script_version)
        write_dataclass(writer, self.curve_data)
        writer.option(self.car_file_data, writer.blob)

    @classmethod
    def from_reader(cls, reader: BinaryReader, version: int) -> 'DirectExportData':
        if version == 1:
            return cls._from_v1_reader(reader)
        if version != cls.VERSION:
            raise UnsupportedVersionError("direct export crate data", version)
        exporter_script_version = reader.u32()
        curve_data = read_dataclass(reader, CurveDataSource)
        car_file_data = reader.option(reader.blob)
        return cls(curve_data, exporter_script_version, car_file_data)

    @classmethod
    def _from_v1_reader(cls, reader: BinaryReader) -> 'DirectExportData':
        exporter_script_version = reader.u32()
        flat_strings = read_typed(reader, Dict[str, str])
        flat_floats = read_typed(reader, Dict[str, float])
        flat_curves = reader.mapping(reader.string, lambda: read_typed(reader, List[float]))
        car_file_data = reader.option(reader.blob)
        curve_data = CurveDataSource(
            string_data=_group_flat_map(flat_strings),
            float_data=_group_flat_map(flat_floats),
            curve_data={name: {idx: val for idx, val in enumerate(values, start=1)}
                        for name, values in flat_curves.items()},
        )
        return cls(curve_data, exporter_script_version, car_file_data)


def _group_flat_map(flat: dict) -> dict:
    grouped = {}
    for key, value in flat.items():
        group, _, name = key.partition('.')
        if not name:
            group, name = '', group
        grouped.setdefault(group, {})[name] = value
    return grouped


def write_v1_direct_export(writer: BinaryWriter, data: DirectExportData) -> None:
    """Write the flat version 1 layout."""
    writer.u32(data.exporter_script_version)
    source = data.curve_data
    write_typed(writer, {f"{g}.{k}": v for g, m in source.string_data.items() for k, v in m.items()},
                Dict[str, str])
    write_typed(writer, {f"{g}.{k}": v for g, m in source.float_data.items() for k, v in m.items()},
                Dict[str, float])
    writer.mapping({name: source.curve_values(name) for name in source.curve_data},
                   writer.string, lambda values: write_typed(writer, values, List[float]))
    writer.option(data.car_file_data, writer.blob)
