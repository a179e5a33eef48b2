"""
Line protocol encoding and decoding.

A point renders as one line:

    name[,tag=value[,...]] field=value[,...] [timestamp]

Backslash, comma, double quote and space are escaped with a backslash in
names, keys and string values; the equals sign is left as is. String values
are wrapped in double quotes; booleans, numbers and datetimes are written
bare. Line breaks cannot be represented and are rejected.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Tuple

from .errors import InvalidPoint, LineProtocolError, UnsupportedValueType
from .point import DEFAULT_PRECISION, Point, Value, from_unix_time, to_unix_time

RESERVED = '\\," '

LINE_BREAKS = "\r\n"

_ESCAPES = str.maketrans({ch: "\\" + ch for ch in RESERVED})

_INT_RE = re.compile(r"^-?\d+i?$")
_FLOAT_RE = re.compile(r"^-?\d+\.\d+$")


def escape(text: str) -> str:
    """Prefix every reserved character with a backslash."""
    return text.translate(_ESCAPES)


def unescape(text: str) -> str:
    """Drop the backslash in front of every escaped character."""
    out = []
    chars = iter(text)
    for ch in chars:
        if ch == "\\":
            ch = next(chars, "")
            if not ch:
                raise LineProtocolError("Dangling escape in %r" % text)
        out.append(ch)
    return "".join(out)


def _has_line_break(text: str) -> bool:
    return any(ch in text for ch in LINE_BREAKS)


def _format_float(key: str, value: float) -> str:
    if not math.isfinite(value):
        raise UnsupportedValueType(key, value)
    text = repr(value)
    if "e" in text or "E" in text:
        text = format(Decimal(text), "f")
    if "." not in text:
        text += ".0"
    return text


def _format_decimal(key: str, value: Decimal) -> str:
    if not value.is_finite():
        raise UnsupportedValueType(key, value)
    text = format(value, "f")
    if "." not in text:
        text += ".0"
    return text


def format_value(key: str, value: Value, precision: str = DEFAULT_PRECISION) -> str:
    """Render a tag or field value as line protocol text."""
    # bool is a subclass of int and has to be checked first
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(key, value)
    if isinstance(value, Decimal):
        return _format_decimal(key, value)
    if isinstance(value, str):
        if _has_line_break(value):
            raise UnsupportedValueType(key, value)
        return '"' + escape(value) + '"'
    if isinstance(value, datetime):
        return str(to_unix_time(value, precision))
    raise UnsupportedValueType(key, value)


def _format_pairs(items, precision: str) -> str:
    pairs = []
    for key, value in items:
        if not isinstance(key, str) or not key:
            raise InvalidPoint("Keys must be non-empty strings, got %r" % (key,))
        if _has_line_break(key):
            raise InvalidPoint("Key %r contains a line break" % key)
        pairs.append(escape(key) + "=" + format_value(key, value, precision))
    return ",".join(pairs)


def encode_point(point: Point, precision: str = DEFAULT_PRECISION) -> str:
    """
    Encode a single point as one line of line protocol.

    Raises InvalidPoint when the point has no name or no fields, and
    UnsupportedValueType when a tag or field value has no representation.
    """
    if not point.name:
        raise InvalidPoint("Point name is required")
    if _has_line_break(point.name):
        raise InvalidPoint("Point name %r contains a line break" % point.name)
    if not point.fields:
        raise InvalidPoint("Point %r has no fields" % point.name)

    key = escape(point.name)
    if point.tags:
        key += "," + _format_pairs(point.tags.items(), precision)

    line = key + " " + _format_pairs(point.fields.items(), precision)

    timestamp = point.timestamp
    if isinstance(timestamp, datetime):
        line += " " + str(to_unix_time(timestamp, precision))
    elif isinstance(timestamp, int) and not isinstance(timestamp, bool):
        line += " " + str(timestamp)
    elif timestamp is not None:
        raise UnsupportedValueType("timestamp", timestamp)
    return line


def encode_batch(points: Iterable[Point], precision: str = DEFAULT_PRECISION) -> str:
    """Encode points into a newline separated payload, without a trailing newline."""
    return "\n".join(encode_point(point, precision) for point in points)


@dataclass
class WriteRequest:
    """Ordered points submitted in one write."""

    points: List[Point] = field(default_factory=list)
    precision: str = DEFAULT_PRECISION

    def get_lines(self) -> str:
        """Return the write payload for all points."""
        return encode_batch(self.points, self.precision)


def _split(text: str, sep: str) -> List[str]:
    """Split on sep where it is neither escaped nor inside a quoted value."""
    parts = []
    current = []
    quoted = False
    escaped = False
    for ch in text:
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            quoted = not quoted
        elif ch == sep and not quoted:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    if quoted or escaped:
        raise LineProtocolError("Unterminated value in %r" % text)
    parts.append("".join(current))
    return parts


def parse_value(text: str) -> Value:
    """Parse a single rendered value back into a Python value."""
    if len(text) >= 2 and text[0] == '"' and text[-1] == '"':
        return unescape(text[1:-1])
    if text == "true":
        return True
    if text == "false":
        return False
    if _INT_RE.match(text):
        return int(text.rstrip("i"))
    if _FLOAT_RE.match(text):
        return float(text)
    raise LineProtocolError("Cannot parse value %r" % text)


def _parse_pairs(items: List[str]) -> List[Tuple[str, Value]]:
    pairs = []
    for item in items:
        # keys may hold a bare "=", values never do outside quotes
        parts = _split(item, "=")
        key = "=".join(parts[:-1])
        if len(parts) < 2 or not key:
            raise LineProtocolError("Expected key=value, got %r" % item)
        pairs.append((unescape(key), parse_value(parts[-1])))
    return pairs


def decode_point(line: str, precision: str = DEFAULT_PRECISION) -> Point:
    """
    Parse a line produced by encode_point back into a Point.

    Datetime and Decimal values come back in their numeric form, and the
    timestamp as an aware UTC datetime.
    """
    sections = _split(line.rstrip("\r\n"), " ")
    if len(sections) not in (2, 3):
        raise LineProtocolError("Expected 2 or 3 sections, got %d" % len(sections))

    key_items = _split(sections[0], ",")
    name = unescape(key_items[0])
    if not name:
        raise LineProtocolError("Missing measurement name in %r" % line)

    field_items = _split(sections[1], ",")
    if field_items == [""]:
        raise LineProtocolError("Missing fields in %r" % line)

    timestamp = None
    if len(sections) == 3:
        try:
            value = int(sections[2])
        except ValueError:
            raise LineProtocolError("Invalid timestamp %r" % sections[2]) from None
        timestamp = from_unix_time(value, precision)

    return Point(
        name=name,
        tags=dict(_parse_pairs(key_items[1:])),
        fields=dict(_parse_pairs(field_items)),
        timestamp=timestamp,
    )


def decode_batch(payload: str, precision: str = DEFAULT_PRECISION) -> List[Point]:
    """Parse every non-empty line of a payload."""
    return [decode_point(line, precision) for line in payload.splitlines() if line.strip()]
