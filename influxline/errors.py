"""
Exception types raised by influxline.
"""


class InfluxLineError(Exception):
    """Base class for all influxline errors."""


class InvalidPoint(InfluxLineError, ValueError):
    """A point cannot be written: missing name, no fields, or an empty key."""


class UnsupportedValueType(InfluxLineError, TypeError):
    """A tag or field value has no line protocol representation."""

    def __init__(self, key, value):
        self.key = key
        self.value = value
        super().__init__(
            "Unsupported value for %r: %r (%s)" % (key, value, type(value).__name__)
        )


class LineProtocolError(InfluxLineError, ValueError):
    """A line could not be parsed."""


class InfluxDbApiError(InfluxLineError, RuntimeError):
    """The server rejected a request or reported a statement error."""

    def __init__(self, status, body, message=None):
        self.status = status
        self.body = body
        super().__init__(message or f"HTTP {status}: {str(body)[:300]}")

    @property
    def retryable(self) -> bool:
        """True for throttling and server-side failures."""
        return self.status == 429 or 500 <= self.status < 600
