"""Lookup tables: ordered (key, value) pairs stored in a ``.lut`` file or inline in an ini value.

File form, one pair per line::

    1000|150
    2000	180   ; '|' or whitespace separated, ';' starts a comment

Inline form, used as an ini property value::

    (0=0.12|0.97=13|1=0.40)
"""
import logging
from bisect import bisect_left
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .errors import LutParseError, MissingMandatoryProperty
from .ini import Ini
from ..utils.formatting import format_number

logger = logging.getLogger(__name__)

LutPairs = List[Tuple]


class LutType(Enum):
    FILE = 'file'
    INLINE = 'inline'
    PATH_ONLY = 'path_only'


def _convert(raw: str, converter: Callable, line_num: int):
    cleaned = ''.join(raw.split())
    try:
        return converter(cleaned)
    except (ValueError, TypeError):
        raise ValueError(f"Cannot convert '{raw}' on line {line_num} to {getattr(converter, '__name__', converter)}")


def parse_lut_text(text: str, key_type: Callable = float, value_type: Callable = float) -> LutPairs:
    """Parse file-form lut text. Raises ValueError on a malformed or unparsable row."""
    pairs = []
    for line_num, line in enumerate(text.splitlines(), start=1):
        line = line.split(';', 1)[0].strip()
        if not line:
            continue
        if '|' in line:
            fields = line.split('|')
        else:
            fields = line.split()
        if len(fields) < 2:
            raise ValueError(f"Expected a key and value on line {line_num}, got '{line}'")
        pairs.append((_convert(fields[0], key_type, line_num),
                      _convert(fields[1], value_type, line_num)))
    return pairs


def parse_lut_bytes(data: bytes, key_type: Callable = float, value_type: Callable = float) -> LutPairs:
    return parse_lut_text(data.decode('utf-8', errors='replace'), key_type, value_type)


def write_lut_bytes(pairs: LutPairs) -> bytes:
    return ''.join(f"{format_number(k)}\t{format_number(v)}\n" for k, v in pairs).encode('utf-8')


def parse_inline_lut(value: str, key_type: Callable = float, value_type: Callable = float) -> LutPairs:
    body = value.strip()
    if body.startswith('(') and body.endswith(')'):
        body = body[1:-1]
    pairs = []
    for idx, entry in enumerate(body.split('|'), start=1):
        if not entry.strip():
            continue
        if '=' not in entry:
            raise ValueError(f"Entry {idx} '{entry}' has no '=' separator")
        key, val = entry.split('=', 1)
        pairs.append((_convert(key, key_type, idx), _convert(val, value_type, idx)))
    return pairs


def write_inline_lut(pairs: LutPairs) -> str:
    return "(" + "|".join(f"{format_number(k)}={format_number(v)}" for k, v in pairs) + ")"


@dataclass
class LutProperty:
    """A lut referenced by ``[section] key`` in an ini file."""
    section_name: str
    property_name: str
    lut_type: LutType
    data: LutPairs = field(default_factory=list)
    filename: Optional[str] = None

    @classmethod
    def from_property_value(cls, section_name: str, property_name: str, value: str, data_interface,
                            key_type: Callable = float, value_type: Callable = float) -> 'LutProperty':
        try:
            if value.startswith('('):
                return cls(section_name, property_name, LutType.INLINE,
                           parse_inline_lut(value, key_type, value_type))
            file_data = data_interface.get_original_file(value)
            if file_data is None:
                raise LutParseError(section_name, property_name,
                                    f"Failed to load {value} from data source. No such file")
            return cls(section_name, property_name, LutType.FILE,
                       parse_lut_bytes(file_data, key_type, value_type), filename=value)
        except ValueError as e:
            raise LutParseError(section_name, property_name, str(e))

    @classmethod
    def mandatory_from_ini(cls, section_name: str, property_name: str, ini: Ini, data_interface,
                           key_type: Callable = float, value_type: Callable = float) -> 'LutProperty':
        value = ini.get_value(section_name, property_name)
        if value is None:
            raise MissingMandatoryProperty(section_name, property_name)
        return cls.from_property_value(section_name, property_name, value, data_interface,
                                       key_type, value_type)

    @classmethod
    def optional_from_ini(cls, section_name: str, property_name: str, ini: Ini, data_interface,
                          key_type: Callable = float, value_type: Callable = float) -> Optional['LutProperty']:
        value = ini.get_value(section_name, property_name)
        if value is None:
            return None
        return cls.from_property_value(section_name, property_name, value, data_interface,
                                       key_type, value_type)

    @classmethod
    def path_only(cls, section_name: str, property_name: str, ini: Ini) -> 'LutProperty':
        value = ini.get_value(section_name, property_name)
        if value is None:
            raise MissingMandatoryProperty(section_name, property_name)
        return cls(section_name, property_name, LutType.PATH_ONLY, filename=value)

    @classmethod
    def new_file(cls, section_name: str, property_name: str, filename: str, data: LutPairs) -> 'LutProperty':
        return cls(section_name, property_name, LutType.FILE, list(data), filename)

    @classmethod
    def new_inline(cls, section_name: str, property_name: str, data: LutPairs) -> 'LutProperty':
        return cls(section_name, property_name, LutType.INLINE, list(data))

    def update(self, data: LutPairs) -> LutPairs:
        if self.lut_type == LutType.PATH_ONLY:
            return []
        old = self.data
        self.data = list(data)
        return old

    def to_list(self) -> LutPairs:
        return list(self.data)

    def values(self) -> list:
        return [v for _, v in self.data]

    def num_entries(self) -> int:
        return len(self.data)

    def property_value(self) -> str:
        if self.lut_type == LutType.INLINE:
            return write_inline_lut(self.data)
        return self.filename

    def update_car_data(self, ini: Ini, data_interface) -> None:
        """Point the ini property at this lut and stage the lut file if it has one."""
        ini.set_value(self.section_name, self.property_name, self.property_value())
        if self.lut_type == LutType.FILE:
            data_interface.write_file(self.filename, write_lut_bytes(self.data))

    def delete_from_car_data(self, ini: Ini, data_interface) -> None:
        ini.remove_value(self.section_name, self.property_name)
        if self.lut_type == LutType.FILE and self.filename:
            data_interface.delete(self.filename)


class LutInterpolator:
    """Linear interpolation over a lut sorted by key; None outside the key range."""

    def __init__(self, data: LutPairs):
        self.data = [(float(k), float(v)) for k, v in data]
        self._keys = [k for k, _ in self.data]

    @classmethod
    def from_lut(cls, lut: LutProperty) -> 'LutInterpolator':
        return cls(lut.to_list())

    def get_value(self, key: float) -> Optional[float]:
        if not self.data:
            return None
        if key < self._keys[0] or key > self._keys[-1]:
            return None
        idx = bisect_left(self._keys, key)
        k2, v2 = self.data[idx]
        if k2 == key:
            return v2
        k1, v1 = self.data[idx - 1]
        return v1 + (key - k1) / (k2 - k1) * (v2 - v1)
