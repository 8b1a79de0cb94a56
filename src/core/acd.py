"""Reading and writing of the obfuscated per-car ``data.acd`` archive.

The archive is keyed on the name of the folder that contains it, so the key is
never stored alongside the data. Key derivation credit goes to Luigi Auriemma's
quickBMS script.
"""
import logging
import os
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .constants import (
    ACD_FILENAME, DATA_DIRNAME, DLC_MARKER, DLC_HEADER_SIZE, DLC_PACK_IDS,
    LEN_STRUCT, PAYLOAD_GROUP_SIZE, MIN_KEY_FOLDER_NAME_LEN
)
from .errors import DecodeError, EncodeError, KeyDerivationError, DataIOError

logger = logging.getLogger(__name__)


class DlcPack(Enum):
    DREAM_PACK_1 = 'DreamPack1'
    DREAM_PACK_2 = 'DreamPack2'
    DREAM_PACK_3 = 'DreamPack3'
    JAPANESE_CAR_PACK = 'JapaneseCarPack'
    RED_PACK = 'RedPack'
    TRIPL3_PACK = 'TRIPL3Pack'
    PORSCHE_PACK_1 = 'PorschePack1'
    PORSCHE_PACK_2 = 'PorschePack2'
    PORSCHE_PACK_3 = 'PorschePack3'
    READY_TO_RACE = 'ReadytoRace'
    FERRARI_PACK = 'FerrariPack'
    UNKNOWN = 'Unknown'

    @classmethod
    def from_bytes(cls, pack_id: bytes) -> 'DlcPack':
        name = DLC_PACK_IDS.get(bytes(pack_id))
        if name is None:
            return cls.UNKNOWN
        return cls(name)


def _trunc_div(a: int, b: int) -> int:
    # Integer division rounding toward zero
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


def _trunc_mod(a: int, b: int) -> int:
    return a - b * _trunc_div(a, b)


def derive_key(folder_name: str) -> str:
    """Derive the 8 component archive key from a car folder name.

    Args:
        folder_name: Name of the folder holding data.acd (e.g. 'abarth500').

    Returns:
        A key like '7-248-6-221-246-250-21-49'.

    Raises:
        KeyDerivationError: if the name is too short to index or a divisor is zero.
    """
    chars = [ord(c) for c in folder_name]
    # Loop bounds follow the name's encoded length, lookups its characters
    n = len(folder_name.encode('utf-8'))
    if n < MIN_KEY_FOLDER_NAME_LEN:
        raise KeyDerivationError(folder_name, n)

    def at(idx: int) -> int:
        if idx < 0 or idx >= len(chars):
            raise KeyDerivationError(folder_name, idx)
        return chars[idx]

    def div(a: int, b: int, idx: int) -> int:
        if b == 0:
            raise KeyDerivationError(folder_name, idx)
        return _trunc_div(a, b)

    components: List[int] = []

    components.append(sum(chars))

    k2 = 0
    for idx in range(0, n - 1, 2):
        k2 = k2 * at(idx)
        k2 = k2 - at(idx + 1)
    components.append(k2)

    k3 = 0
    for idx in range(1, n - 3, 3):
        k3 *= at(idx)
        k3 = div(k3, at(idx + 1) + 0x1b, idx + 1)
        k3 += -0x1b - at(idx - 1)
    components.append(k3)

    k4 = 0x1683
    for c in chars[1:]:
        k4 -= c
    components.append(k4)

    k5 = 0x42
    for idx in range(1, n - 4, 4):
        tmp = (at(idx) + 0xf) * k5
        k5 = (at(idx - 1) + 0xf) * tmp + 0x16
    components.append(k5)

    k6 = 0x65
    for c in chars[:n - 2:2]:
        k6 -= c
    components.append(k6)

    k7 = 0xab
    for idx, c in enumerate(chars[:n - 2:2]):
        if c == 0:
            raise KeyDerivationError(folder_name, idx * 2)
        k7 = _trunc_mod(k7, c)
    components.append(k7)

    k8 = 0xab
    for idx in range(0, n - 1):
        k8 = div(k8, at(idx), idx)
        k8 += at(idx + 1)
    components.append(k8)

    # Python ints are two's complement under &, so negative folds mask like i128
    return '-'.join(str(val & 0xff) for val in components)


def _key_bytes(key: str) -> List[int]:
    return [ord(c) for c in key]


def decode_archive(data: bytes, key: str, path='<memory>') -> Tuple[Dict[str, bytes], Optional[bytes]]:
    """Decode archive bytes into an ordered {filename: content} mapping.

    Returns:
        (files, dlc_id) where dlc_id is the raw 4 byte pack id or None.
    """
    key_vals = _key_bytes(key)
    if not key_vals:
        raise DecodeError(path, "empty extraction key")

    files: Dict[str, bytes] = {}
    dlc_id = None
    pos = 0
    total = len(data)

    if data[:len(DLC_MARKER)] == DLC_MARKER:
        if total < DLC_HEADER_SIZE:
            raise DecodeError(path, "truncated DLC pack id")
        dlc_id = bytes(data[len(DLC_MARKER):DLC_HEADER_SIZE])
        pos = DLC_HEADER_SIZE

    def read_length(what: str) -> int:
        nonlocal pos
        if pos + LEN_STRUCT.size > total:
            raise DecodeError(path, f"truncated {what} at offset {pos}")
        (val,) = LEN_STRUCT.unpack_from(data, pos)
        pos += LEN_STRUCT.size
        return val

    while pos < total:
        name_len = read_length("filename length")
        if pos + name_len > total:
            raise DecodeError(path, f"filename length {name_len} exceeds remaining bytes at offset {pos}")
        raw_name = bytes(data[pos:pos + name_len])
        try:
            filename = raw_name.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecodeError(path, f"non UTF-8 filename at offset {pos}. {e}")
        pos += name_len

        content_len = read_length(f"{filename} content length")
        packed_len = content_len * PAYLOAD_GROUP_SIZE
        if pos + packed_len > total:
            raise DecodeError(path, f"{filename} content length {content_len} exceeds remaining bytes")

        packed = data[pos:pos + packed_len:PAYLOAD_GROUP_SIZE]
        key_len = len(key_vals)
        files[filename] = bytes((b - key_vals[i % key_len]) & 0xff for i, b in enumerate(packed))
        pos += packed_len
        logger.debug("%s - %d bytes", filename, content_len)

    return files, dlc_id


def encode_archive(files: Dict[str, bytes], key: str, dlc_id: Optional[bytes] = None) -> bytes:
    """Encode an ordered {filename: content} mapping, preserving iteration order."""
    key_vals = _key_bytes(key)
    key_len = len(key_vals)
    out = bytearray()
    if dlc_id is not None:
        out.extend(DLC_MARKER)
        out.extend(dlc_id)
    for filename, content in files.items():
        name_bytes = filename.encode('utf-8')
        out.extend(LEN_STRUCT.pack(len(name_bytes)))
        out.extend(name_bytes)
        out.extend(LEN_STRUCT.pack(len(content)))
        packed = bytearray(len(content) * PAYLOAD_GROUP_SIZE)
        for i, b in enumerate(content):
            packed[i * PAYLOAD_GROUP_SIZE] = (b + key_vals[i % key_len]) & 0xff
        out.extend(packed)
    return bytes(out)


def _parent_folder_name(acd_path: Path) -> str:
    parent = acd_path.resolve().parent.name
    if not parent:
        raise DataIOError(acd_path, "archive has no parent folder to derive a key from")
    return parent


def _atomic_write(path: Path, data: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=path.name, suffix='.tmp')
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(tmp_name, str(path))
    except OSError:
        if os.path.exists(tmp_name):
            os.remove(tmp_name)
        raise


@dataclass
class AcdArchive:
    acd_path: Path
    files: Dict[str, bytes] = field(default_factory=dict)
    dlc_id: Optional[bytes] = None

    @property
    def dlc_pack(self) -> Optional[DlcPack]:
        if self.dlc_id is None:
            return None
        return DlcPack.from_bytes(self.dlc_id)

    @classmethod
    def load_from_acd_file(cls, acd_path) -> 'AcdArchive':
        acd_path = Path(acd_path)
        return cls.load_from_acd_file_with_key(acd_path, _parent_folder_name(acd_path))

    @classmethod
    def load_from_acd_file_with_key(cls, acd_path, folder_name: str) -> 'AcdArchive':
        acd_path = Path(acd_path)
        key = derive_key(folder_name)
        try:
            data = acd_path.read_bytes()
        except OSError as e:
            raise DataIOError(acd_path, f"failed to read archive. {e}")
        files, dlc_id = decode_archive(data, key, acd_path)
        logger.info("Loaded %d files from %s", len(files), acd_path)
        return cls(acd_path, files, dlc_id)

    @classmethod
    def create_from_data_dir(cls, data_dir_path) -> 'AcdArchive':
        """Build an archive next to a data/ dir from the files directly inside it."""
        data_dir_path = Path(data_dir_path)
        if not data_dir_path.is_dir():
            raise DataIOError(data_dir_path, "not a directory")
        files = {}
        for entry in sorted(data_dir_path.iterdir()):
            if entry.is_file():
                files[entry.name] = entry.read_bytes()
        return cls(data_dir_path.parent / ACD_FILENAME, files)

    def get_file_data(self, filename: str) -> Optional[bytes]:
        return self.files.get(filename)

    def contains_file(self, filename: str) -> bool:
        return filename in self.files

    def update_file_data(self, filename: str, data: bytes) -> Optional[bytes]:
        old = self.files.get(filename)
        self.files[filename] = bytes(data)
        return old

    def delete_file(self, filename: str) -> Optional[bytes]:
        return self.files.pop(filename, None)

    def to_bytes(self, folder_name: Optional[str] = None) -> bytes:
        if folder_name is None:
            folder_name = _parent_folder_name(self.acd_path)
        return encode_archive(self.files, derive_key(folder_name), self.dlc_id)

    def unpack(self) -> Path:
        return self.unpack_to(self.acd_path.parent / DATA_DIRNAME)

    def unpack_to(self, out_path) -> Path:
        out_path = Path(out_path)
        try:
            out_path.mkdir(parents=True, exist_ok=True)
            for filename, content in self.files.items():
                (out_path / filename).write_bytes(content)
        except OSError as e:
            raise DataIOError(out_path, f"failed to unpack archive. {e}")
        logger.info("Unpacked %s to %s", self.acd_path, out_path)
        return out_path

    def write(self) -> None:
        self.write_to(self.acd_path)

    def write_to(self, out_path) -> None:
        out_path = Path(out_path)
        data = self.to_bytes(_parent_folder_name(out_path))
        try:
            _atomic_write(out_path, data)
        except OSError as e:
            raise EncodeError(out_path, str(e))
