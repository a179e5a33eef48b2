from .client import InfluxDb, InfluxTarget
from .errors import (
    InfluxDbApiError,
    InfluxLineError,
    InvalidPoint,
    LineProtocolError,
    UnsupportedValueType,
)
from .lineprotocol import WriteRequest, decode_batch, decode_point, encode_batch, encode_point
from .point import Point, from_unix_time, to_unix_time
from .writer import AsyncPointWriter

__all__ = [
    "Point",
    "WriteRequest",
    "encode_point",
    "encode_batch",
    "decode_point",
    "decode_batch",
    "to_unix_time",
    "from_unix_time",
    "InfluxDb",
    "InfluxTarget",
    "AsyncPointWriter",
    "InfluxLineError",
    "InvalidPoint",
    "UnsupportedValueType",
    "LineProtocolError",
    "InfluxDbApiError",
]
