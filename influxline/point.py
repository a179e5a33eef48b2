"""
Data point model and Unix time conversion.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict, Union

Value = Union[str, bool, int, Decimal, float, datetime]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Nanoseconds per unit.
PRECISIONS = {
    "s": 1_000_000_000,
    "ms": 1_000_000,
    "us": 1_000,
    "ns": 1,
}

DEFAULT_PRECISION = "ms"


def _check_precision(precision: str) -> int:
    try:
        return PRECISIONS[precision]
    except KeyError:
        raise ValueError(
            "Unknown precision: %r (expected one of %s)" % (precision, ", ".join(PRECISIONS))
        ) from None


def to_unix_time(value: datetime, precision: str = DEFAULT_PRECISION) -> int:
    """
    Convert a datetime to an integer count of precision units since the epoch.

    Naive datetimes are taken as UTC. Sub-unit remainders are truncated
    towards negative infinity.
    """
    factor = _check_precision(precision)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    delta = value - EPOCH
    ns = (delta.days * 86400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000
    return ns // factor


def from_unix_time(value: int, precision: str = DEFAULT_PRECISION) -> datetime:
    """Convert Unix time in the given precision back to an aware UTC datetime."""
    factor = _check_precision(precision)
    return EPOCH + timedelta(microseconds=(value * factor) // 1_000)


@dataclass
class Point:
    """
    A single data point of a measurement.

    tags and fields map keys to str, bool, int, Decimal, float or datetime
    values and are rendered in insertion order. timestamp may also be an int
    already expressed in the write precision; None leaves it to the server.
    """

    name: str
    tags: Dict[str, Value] = field(default_factory=dict)
    fields: Dict[str, Value] = field(default_factory=dict)
    timestamp: Union[datetime, int, None] = None

    def __post_init__(self):
        self.tags = dict(self.tags)
        self.fields = dict(self.fields)
