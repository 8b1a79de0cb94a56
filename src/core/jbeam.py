"""Reader for BeamNG .jbeam files: JSON with comments and optional commas."""
import json
import logging
import re
from typing import Any, Dict

logger = logging.getLogger(__name__)

_URL_SCHEMES = ('https://', 'http://', 'file://', 'local://')

# Applied in order; later patterns rely on earlier fixes
_MISSING_COMMA_PATTERNS = [
    (re.compile(r'(\]|})\s*?(\{|\[)'), r'\1,\2'),
    (re.compile(r'(}|])\s*"'), r'\1,"'),
    (re.compile(r'"{'), r'", {'),
    (re.compile(r'"\s+("|\{)'), r'",\1'),
    (re.compile(r'(false|true|null)\s+"'), r'\1,"'),
    (re.compile(r',\s*,'), r','),
    (re.compile(r'("[a-zA-Z0-9_]*")\s(-?[0-9\[])'), r'\1, \2'),
    (re.compile(r'(\d\.*\d*)\s*{'), r'\1, {'),
    (re.compile(r'([0-9])\n'), r'\1,\n'),
    (re.compile(r'(-?[0-9])\s+(-?[0-9])'), r'\1,\2'),
    (re.compile(r'([0-9])\s*("[a-zA-Z0-9_]*")'), r'\1, \2'),
    (re.compile(r'("[a-zA-Z0-9_$.]*")\s*("[a-zA-Z0-9_$.]*")'), r'\1, \2'),
    (re.compile(r':(false|true)("[a-zA-Z_]+")'), r':\1, \2'),
    (re.compile(r'([,\[:\s])\+(\d)'), r'\1\2'),
]

_TRAILING_COMMA = re.compile(r',\s*?(]|})')


def strip_comments(content: str) -> str:
    placeholders = {}
    for idx, scheme in enumerate(_URL_SCHEMES):
        placeholder = f"<<<SCHEME_{idx}>>>"
        placeholders[placeholder] = scheme
        content = content.replace(scheme, placeholder)
    content = re.sub(r'(?<!/)/\*[\s\S]*?\*/', '', content)
    content = re.sub(r'//.*$', '', content, flags=re.MULTILINE)
    for placeholder, scheme in placeholders.items():
        content = content.replace(placeholder, scheme)
    return content


def add_missing_commas(content: str) -> str:
    for pattern, replacement in _MISSING_COMMA_PATTERNS:
        content = pattern.sub(replacement, content)
    return content


def remove_trailing_commas(content: str) -> str:
    for bad, good in ((',,', ','), ('[,', '['), ('{,', '{'), (',:', ':')):
        content = content.replace(bad, good)
    content = _TRAILING_COMMA.sub(r'\1', content)
    stripped = content.rstrip()
    if stripped.endswith(','):
        content = stripped[:-1]
    return content


def loads(text: str) -> Dict[str, Any]:
    """Parse jbeam text. Raises ValueError if it can't be repaired into JSON."""
    content = remove_trailing_commas(add_missing_commas(strip_comments(text)))
    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError("jbeam root is not an object")
    return data


def load_bytes(data: bytes) -> Dict[str, Any]:
    return loads(data.decode('utf-8', errors='replace'))
