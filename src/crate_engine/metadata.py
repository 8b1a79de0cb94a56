"""Crate engine header: a u16 schema version followed by the metadata record.

The metadata is readable without understanding the payload that follows it,
so listings can show engines written by newer versions.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .codec import BinaryReader, BinaryWriter
from ..core.errors import UnsupportedVersionError

logger = logging.getLogger(__name__)

METADATA_VERSION_V1 = 1
CURRENT_METADATA_VERSION = METADATA_VERSION_V1


class DataSource(Enum):
    BEAM_NG_MOD = 1
    DIRECT_EXPORT = 2

    @property
    def display_name(self) -> str:
        return {DataSource.BEAM_NG_MOD: "BeamNG Mod",
                DataSource.DIRECT_EXPORT: "Direct Automation Export"}[self]


@dataclass
class CrateEngineMetadata:
    data_version: int
    automation_version: int
    name: str
    automation_data_hash: Optional[bytes]
    engine_jbeam_hash: Optional[bytes]
    build_year: int
    block_config: str
    head_config: str
    valves: str
    aspiration: str
    fuel: str
    capacity: int
    peak_power: int
    peak_power_rpm: int
    peak_torque: int
    peak_torque_rpm: int
    max_rpm: int
    source: DataSource = DataSource.BEAM_NG_MOD

    @property
    def metadata_version(self) -> int:
        return METADATA_VERSION_V1

    def block_description(self) -> str:
        return f"{self.block_config} {self.head_config} {self.valves}"

    def serialize_into(self, writer: BinaryWriter) -> None:
        writer.u16(self.metadata_version)
        writer.u16(self.data_version)
        writer.u64(self.automation_version)
        writer.string(self.name)
        writer.hash32(self.automation_data_hash)
        writer.hash32(self.engine_jbeam_hash)
        writer.u16(self.build_year)
        for val in (self.block_config, self.head_config, self.valves, self.aspiration, self.fuel):
            writer.string(val)
        for val in (self.capacity, self.peak_power, self.peak_power_rpm,
                    self.peak_torque, self.peak_torque_rpm, self.max_rpm):
            writer.u32(val)
        writer.u16(self.source.value)

    @classmethod
    def from_reader(cls, reader: BinaryReader) -> 'CrateEngineMetadata':
        version = reader.u16()
        if version != METADATA_VERSION_V1:
            raise UnsupportedVersionError("crate engine metadata", version)
        data_version = reader.u16()
        automation_version = reader.u64()
        name = reader.string()
        automation_data_hash = reader.hash32()
        engine_jbeam_hash = reader.hash32()
        build_year = reader.u16()
        block_config, head_config, valves, aspiration, fuel = (reader.string() for _ in range(5))
        capacity, peak_power, peak_power_rpm, peak_torque, peak_torque_rpm, max_rpm = \
            (reader.u32() for _ in range(6))
        source_id = reader.u16()
        try:
            source = DataSource(source_id)
        except ValueError:
            raise UnsupportedVersionError("crate engine data source", source_id)
        return cls(data_version, automation_version, name, automation_data_hash, engine_jbeam_hash,
                   build_year, block_config, head_config, valves, aspiration, fuel, capacity,
                   peak_power, peak_power_rpm, peak_torque, peak_torque_rpm, max_rpm, source)
