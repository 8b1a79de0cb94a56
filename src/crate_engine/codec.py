"""Little-endian binary encoding used inside crate engine files.

Strings and byte blobs carry a u64 length prefix, optionals a one byte tag
(0 = absent, 1 = present), maps a u64 entry count followed by key/value pairs.
Dataclasses are encoded field by field in declaration order, driven by the
field annotations.
"""
import dataclasses
import struct
import typing
from typing import Any, Callable, Dict, Optional

from ..core.errors import DecodeError, EncodeError

U8 = struct.Struct('<B')
U16 = struct.Struct('<H')
U32 = struct.Struct('<I')
U64 = struct.Struct('<Q')
I64 = struct.Struct('<q')
F64 = struct.Struct('<d')

HASH_LEN = 32


class BinaryWriter:
    def __init__(self, what: str = '<crate engine>'):
        self.what = what
        self.buf = bytearray()

    def getvalue(self) -> bytes:
        return bytes(self.buf)

    def _pack(self, fmt: struct.Struct, val) -> None:
        try:
            self.buf += fmt.pack(val)
        except struct.error as e:
            raise EncodeError(self.what, f"{val!r} doesn't fit '{fmt.format}'. {e}")

    def u8(self, val: int) -> None:
        self._pack(U8, val)

    def u16(self, val: int) -> None:
        self._pack(U16, val)

    def u32(self, val: int) -> None:
        self._pack(U32, val)

    def u64(self, val: int) -> None:
        self._pack(U64, val)

    def i64(self, val: int) -> None:
        self._pack(I64, val)

    def f64(self, val: float) -> None:
        self._pack(F64, float(val))

    def boolean(self, val: bool) -> None:
        self.u8(1 if val else 0)

    def raw(self, data: bytes) -> None:
        self.buf += data

    def blob(self, data: bytes) -> None:
        self.u64(len(data))
        self.buf += data

    def string(self, val: str) -> None:
        self.blob(val.encode('utf-8'))

    def option(self, val, write: Callable[[Any], None]) -> None:
        if val is None:
            self.u8(0)
        else:
            self.u8(1)
            write(val)

    def hash32(self, digest: Optional[bytes]) -> None:
        if digest is not None and len(digest) != HASH_LEN:
            raise EncodeError(self.what, f"hash must be {HASH_LEN} bytes, got {len(digest)}")
        self.option(digest, self.raw)

    def mapping(self, data: Dict, write_key: Callable, write_value: Callable) -> None:
        self.u64(len(data))
        for key, value in data.items():
            write_key(key)
            write_value(value)


class BinaryReader:
    def __init__(self, data: bytes, what: str = '<crate engine>', pos: int = 0):
        self.data = data
        self.what = what
        self.pos = pos

    def remaining(self) -> int:
        return len(self.data) - self.pos

    def take(self, n: int) -> bytes:
        if n < 0 or self.pos + n > len(self.data):
            raise DecodeError(self.what, f"unexpected end of data reading {n} bytes at offset {self.pos}")
        out = self.data[self.pos:self.pos + n]
        self.pos += n
        return out

    def _unpack(self, fmt: struct.Struct):
        return fmt.unpack(self.take(fmt.size))[0]

    def u8(self) -> int:
        return self._unpack(U8)

    def u16(self) -> int:
        return self._unpack(U16)

    def u32(self) -> int:
        return self._unpack(U32)

    def u64(self) -> int:
        return self._unpack(U64)

    def i64(self) -> int:
        return self._unpack(I64)

    def f64(self) -> float:
        return self._unpack(F64)

    def boolean(self) -> bool:
        val = self.u8()
        if val > 1:
            raise DecodeError(self.what, f"invalid bool value {val} at offset {self.pos - 1}")
        return val == 1

    def blob(self) -> bytes:
        return self.take(self.u64())

    def string(self) -> str:
        raw = self.blob()
        try:
            return raw.decode('utf-8')
        except UnicodeDecodeError as e:
            raise DecodeError(self.what, f"invalid utf-8 string. {e}")

    def option(self, read: Callable[[], Any]):
        tag = self.u8()
        if tag == 0:
            return None
        if tag != 1:
            raise DecodeError(self.what, f"invalid option tag {tag} at offset {self.pos - 1}")
        return read()

    def hash32(self) -> Optional[bytes]:
        return self.option(lambda: self.take(HASH_LEN))

    def mapping(self, read_key: Callable, read_value: Callable) -> Dict:
        count = self.u64()
        if count > self.remaining():
            raise DecodeError(self.what, f"map of {count} entries exceeds remaining data")
        out = {}
        for _ in range(count):
            key = read_key()
            out[key] = read_value()
        return out


# -------- annotation driven encoding --------

def _optional_inner(tp):
    args = typing.get_args(tp)
    if typing.get_origin(tp) is typing.Union and len(args) == 2 and type(None) in args:
        return args[0] if args[1] is type(None) else args[1]
    return None


def write_typed(writer: BinaryWriter, value, tp) -> None:
    inner = _optional_inner(tp)
    if inner is not None:
        writer.option(value, lambda v: write_typed(writer, v, inner))
        return
    origin = typing.get_origin(tp)
    if origin is list:
        (item_tp,) = typing.get_args(tp)
        writer.u64(len(value))
        for item in value:
            write_typed(writer, item, item_tp)
    elif origin is dict:
        key_tp, value_tp = typing.get_args(tp)
        writer.mapping(value, lambda k: write_typed(writer, k, key_tp),
                       lambda v: write_typed(writer, v, value_tp))
    elif tp is str:
        writer.string(value)
    elif tp is bool:
        writer.boolean(value)
    elif tp is int:
        writer.i64(value)
    elif tp is float:
        writer.f64(value)
    elif tp is bytes:
        writer.blob(value)
    elif dataclasses.is_dataclass(tp):
        write_dataclass(writer, value)
    else:
        raise EncodeError(writer.what, f"no encoding for {tp}")


def read_typed(reader: BinaryReader, tp):
    inner = _optional_inner(tp)
    if inner is not None:
        return reader.option(lambda: read_typed(reader, inner))
    origin = typing.get_origin(tp)
    if origin is list:
        (item_tp,) = typing.get_args(tp)
        count = reader.u64()
        if count > reader.remaining():
            raise DecodeError(reader.what, f"list of {count} items exceeds remaining data")
        return [read_typed(reader, item_tp) for _ in range(count)]
    if origin is dict:
        key_tp, value_tp = typing.get_args(tp)
        return reader.mapping(lambda: read_typed(reader, key_tp), lambda: read_typed(reader, value_tp))
    if tp is str:
        return reader.string()
    if tp is bool:
        return reader.boolean()
    if tp is int:
        return reader.i64()
    if tp is float:
        return reader.f64()
    if tp is bytes:
        return reader.blob()
    if dataclasses.is_dataclass(tp):
        return read_dataclass(reader, tp)
    raise DecodeError(reader.what, f"no decoding for {tp}")


def write_dataclass(writer: BinaryWriter, obj) -> None:
    hints = typing.get_type_hints(type(obj))
    for f in dataclasses.fields(obj):
        write_typed(writer, getattr(obj, f.name), hints[f.name])


def read_dataclass(reader: BinaryReader, cls):
    hints = typing.get_type_hints(cls)
    values = {f.name: read_typed(reader, hints[f.name]) for f in dataclasses.fields(cls)}
    return cls(**values)
