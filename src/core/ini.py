"""Layout preserving reader/writer for the simulator's ini dialect.

Every line of the input is kept: sections, properties and comments are parsed
into objects, anything else (blank lines, stray text) is kept verbatim. Writing
an unmodified Ini gives back the input text byte for byte.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from .constants import TOP_LEVEL_SECTION, COMMENT_SYMBOLS
from .errors import IniParseError, MissingMandatoryProperty, DataIOError
from ..utils.formatting import format_float, format_value

logger = logging.getLogger(__name__)


class LineType(Enum):
    SECTION_NAME = 'section'
    KEY_VALUE = 'property'
    COMMENT = 'comment'
    IGNORE = 'ignore'


def _find_comment(line: str, start: int = 0) -> int:
    positions = [line.find(sym, start) for sym in COMMENT_SYMBOLS]
    positions = [p for p in positions if p != -1]
    return min(positions) if positions else -1


def get_line_type(line: str) -> LineType:
    """Classify a line by whichever of '[', '=' or a comment symbol comes first."""
    trimmed = line.strip()
    if not trimmed or trimmed.startswith('='):
        return LineType.IGNORE
    candidates = []
    for pos, line_type in ((line.find('['), LineType.SECTION_NAME),
                           (line.find('='), LineType.KEY_VALUE),
                           (_find_comment(line), LineType.COMMENT)):
        if pos != -1:
            candidates.append((pos, line_type))
    if not candidates:
        return LineType.IGNORE
    return min(candidates, key=lambda c: c[0])[1]


@dataclass
class Comment:
    value: str
    symbol: str = '#'
    indentation: str = ''

    @classmethod
    def from_line(cls, line: str) -> Optional['Comment']:
        idx = _find_comment(line)
        if idx == -1:
            return None
        return cls(value=line[idx + 1:], symbol=line[idx], indentation=line[:idx])

    def to_string(self) -> str:
        return f"{self.indentation}{self.symbol}{self.value}"


@dataclass
class Property:
    key: str
    value: str
    indentation: str = ''
    comment: Optional[Comment] = None
    key_padding: str = ''    # between key and '='
    value_padding: str = ''  # between '=' and value
    trailing: str = ''       # after the value when there's no comment

    @classmethod
    def from_line(cls, line: str) -> 'Property':
        delimiter_pos = line.find('=')
        if delimiter_pos == -1:
            raise IniParseError(f"Cannot find property delimiter in '{line}'")
        raw_key = line[:delimiter_pos]
        key = raw_key.strip()
        if not key:
            raise IniParseError(f"Cannot find valid property name in '{line}'")
        indentation = raw_key[:len(raw_key) - len(raw_key.lstrip())]
        key_padding = raw_key[len(raw_key.rstrip()):]

        rest = line[delimiter_pos + 1:]
        comment = None
        trailing = ''
        comment_pos = _find_comment(rest)
        if comment_pos == -1:
            raw_value = rest
        else:
            raw_value = rest[:comment_pos]
        value = raw_value.strip()
        value_padding = raw_value[:len(raw_value) - len(raw_value.lstrip())]
        value_tail = raw_value[len(raw_value.rstrip()):] if value else ''
        if comment_pos == -1:
            trailing = value_tail
        else:
            comment = Comment(value=rest[comment_pos + 1:], symbol=rest[comment_pos],
                              indentation=value_tail)
        return cls(key, value, indentation, comment, key_padding, value_padding, trailing)

    def to_string(self) -> str:
        out = f"{self.indentation}{self.key}{self.key_padding}={self.value_padding}{self.value}"
        if self.comment is not None:
            return out + self.comment.to_string()
        return out + self.trailing


@dataclass
class RawLine:
    text: str

    def to_string(self) -> str:
        return self.text


Line = Union[Property, Comment, RawLine]


@dataclass
class Section:
    name: str
    indentation: str = ''
    name_comment: Optional[Comment] = None
    name_trailing: str = ''
    has_header: bool = True
    lines: List[Line] = field(default_factory=list)
    property_map: Dict[str, Property] = field(default_factory=dict)

    @classmethod
    def from_line(cls, line: str) -> 'Section':
        open_pos = line.find('[')
        if open_pos == -1:
            raise IniParseError(f"No opening '[' for section name found in '{line}'")
        close_pos = line.find(']', open_pos)
        if close_pos == -1:
            raise IniParseError(f"No closing ']' for section name found in '{line}'")
        tail = line[close_pos + 1:]
        name_comment = Comment.from_line(tail)
        return cls(name=line[open_pos + 1:close_pos],
                   indentation=line[:open_pos],
                   name_comment=name_comment,
                   name_trailing='' if name_comment else tail)

    @property
    def comments(self) -> List[Comment]:
        return [line for line in self.lines if isinstance(line, Comment)]

    def get_property(self, key: str) -> Optional[Property]:
        return self.property_map.get(key)

    def contains_property(self, key: str) -> bool:
        return key in self.property_map

    def add_line(self, line: Line) -> None:
        # Parse order, so a repeated key resolves to its last occurrence
        self.lines.append(line)
        if isinstance(line, Property):
            self.property_map[line.key] = line

    def add_property(self, prop: Property) -> None:
        insert_at = len(self.lines)
        while insert_at > 0 and isinstance(self.lines[insert_at - 1], RawLine) \
                and not self.lines[insert_at - 1].text.strip():
            insert_at -= 1
        self.lines.insert(insert_at, prop)
        self.property_map[prop.key] = prop

    def add_comment(self, comment: Comment) -> None:
        self.lines.append(comment)

    def remove_property(self, key: str) -> Optional[Property]:
        prop = self.property_map.pop(key, None)
        if prop is not None:
            self.lines = [line for line in self.lines
                          if not (isinstance(line, Property) and line.key == key)]
        return prop

    def to_lines(self) -> List[str]:
        out = []
        if self.has_header:
            header = f"{self.indentation}[{self.name}]"
            header += self.name_comment.to_string() if self.name_comment else self.name_trailing
            out.append(header)
        out.extend(line.to_string() for line in self.lines)
        return out


class Ini:
    def __init__(self):
        self.sections: List[Section] = [Section(TOP_LEVEL_SECTION, has_header=False)]
        self._section_map: Dict[str, Section] = {TOP_LEVEL_SECTION: self.sections[0]}
        self.trailing_newline = False

    @classmethod
    def load_from_string(cls, text: str) -> 'Ini':
        ini = cls()
        ini.parse(text)
        return ini

    @classmethod
    def load_from_bytes(cls, data: bytes) -> 'Ini':
        return cls.load_from_string(data.decode('utf-8', errors='replace'))

    @classmethod
    def load_from_file(cls, path) -> 'Ini':
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise DataIOError(path, f"failed to read ini file. {e}")
        return cls.load_from_bytes(data)

    def parse(self, text: str) -> None:
        lines = text.split('\n')
        self.trailing_newline = len(lines) > 1 and lines[-1] == ''
        if self.trailing_newline:
            lines.pop()
        elif lines == ['']:
            lines = []

        current = self.sections[-1]
        for line_num, line in enumerate(lines, start=1):
            line_type = get_line_type(line)
            try:
                if line_type == LineType.SECTION_NAME:
                    current = Section.from_line(line)
                    self._add_section(current)
                elif line_type == LineType.KEY_VALUE:
                    current.add_line(Property.from_line(line))
                elif line_type == LineType.COMMENT:
                    current.add_line(Comment.from_line(line))
                else:
                    current.add_line(RawLine(line))
            except IniParseError as e:
                raise IniParseError(f"Line {line_num}: {e}")

    def _add_section(self, section: Section) -> None:
        if section.name in self._section_map:
            logger.warning("Duplicate section [%s]; later values take precedence", section.name)
        self.sections.append(section)
        self._section_map[section.name] = section

    def to_string(self) -> str:
        out_lines: List[str] = []
        for section in self.sections:
            out_lines.extend(section.to_lines())
        text = '\n'.join(out_lines)
        if self.trailing_newline and out_lines:
            text += '\n'
        return text

    def to_bytes(self) -> bytes:
        return self.to_string().encode('utf-8')

    def write_to_file(self, path) -> None:
        path = Path(path)
        try:
            path.write_bytes(self.to_bytes())
        except OSError as e:
            raise DataIOError(path, f"failed to write ini file. {e}")

    # -------- section queries --------

    def contains_section(self, name: str) -> bool:
        return name in self._section_map

    def get_section(self, name: str) -> Optional[Section]:
        return self._section_map.get(name)

    def get_section_names(self) -> List[str]:
        return [s.name for s in self.sections if s.has_header]

    def section_contains_property(self, section_name: str, key: str) -> bool:
        section = self._section_map.get(section_name)
        return section is not None and section.contains_property(key)

    def get_section_names_with_prefix(self, prefix: str) -> Dict[int, str]:
        found = {}
        for name in self.get_section_names():
            idx = section_name_to_idx(name, prefix)
            if idx is not None:
                found[idx] = name
        return dict(sorted(found.items()))

    def get_max_idx_for_section_with_prefix(self, prefix: str) -> Optional[int]:
        indices = self.get_section_names_with_prefix(prefix)
        if not indices:
            return None
        return max(indices)

    # -------- mutation --------

    def get_value(self, section_name: str, key: str) -> Optional[str]:
        section = self._section_map.get(section_name)
        if section is None:
            return None
        prop = section.get_property(key)
        return prop.value if prop is not None else None

    def set_value(self, section_name: str, key: str, value: str) -> Optional[str]:
        """Set a value, returning the previous one if the property existed."""
        section = self._section_map.get(section_name)
        if section is None:
            section = Section(section_name)
            self._add_section(section)
        prop = section.get_property(key)
        if prop is None:
            section.add_property(Property(key, value, indentation=section.indentation))
            return None
        old_value = prop.value
        prop.value = value
        if not value:
            prop.trailing = ''
        return old_value

    def remove_value(self, section_name: str, key: str) -> Optional[str]:
        section = self._section_map.get(section_name)
        if section is None:
            return None
        prop = section.remove_property(key)
        return prop.value if prop is not None else None

    def remove_section(self, section_name: str) -> Optional[Section]:
        section = self._section_map.pop(section_name, None)
        if section is None:
            return None
        self.sections = [s for s in self.sections if s.name != section_name or not s.has_header]
        if section_name == TOP_LEVEL_SECTION:
            # The unnamed block always exists, it just gets emptied
            self.sections.insert(0, Section(TOP_LEVEL_SECTION, has_header=False))
            self._section_map[TOP_LEVEL_SECTION] = self.sections[0]
        return section


def section_name_to_idx(section_name: str, prefix: str) -> Optional[int]:
    """'GEAR_10' with prefix 'GEAR_' gives 10, a bare 'GEAR_' gives 0."""
    if not section_name.startswith(prefix):
        return None
    digits = ''.join(c for c in section_name[len(prefix):] if c.isdigit())
    if not digits:
        return 0
    return int(digits)


def get_value(ini: Ini, section: str, key: str, parser: Callable = str):
    """Typed lookup returning None for a missing property or an unparsable value."""
    raw = ini.get_value(section, key)
    if raw is None:
        return None
    try:
        return parser(raw)
    except (ValueError, TypeError):
        return None


def get_number(ini: Ini, section: str, key: str) -> Optional[float]:
    return get_value(ini, section, key, float)


def get_string(ini: Ini, section: str, key: str) -> Optional[str]:
    return get_value(ini, section, key, str)


def get_mandatory_property(ini: Ini, section: str, key: str, parser: Callable = str):
    val = get_value(ini, section, key, parser)
    if val is None:
        raise MissingMandatoryProperty(section, key)
    return val


def set_value(ini: Ini, section: str, key: str, val) -> Optional[str]:
    return ini.set_value(section, key, format_value(val))


def set_float(ini: Ini, section: str, key: str, val: float, precision: int) -> Optional[str]:
    return ini.set_value(section, key, format_float(val, precision))
