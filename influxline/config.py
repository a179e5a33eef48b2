"""
Connection settings from the environment.

Keys (environment or .env, via python-decouple):
- INFLUX_URL (default: http://localhost:8086)
- INFLUX_USERNAME, INFLUX_PASSWORD (default: empty, no authentication)
- INFLUX_PRECISION: s, ms, us or ns (default: ms)
- INFLUX_TIMEOUT: request timeout in seconds (default: 10)
"""

from decouple import Choices
from decouple import config as default_config

from .client import InfluxTarget
from .point import DEFAULT_PRECISION, PRECISIONS


def load_target(config=default_config) -> InfluxTarget:
    """Build an InfluxTarget from a decouple config object."""
    return InfluxTarget(
        base_url=config("INFLUX_URL", default="http://localhost:8086"),
        username=config("INFLUX_USERNAME", default=""),
        password=config("INFLUX_PASSWORD", default=""),
        precision=config(
            "INFLUX_PRECISION", default=DEFAULT_PRECISION, cast=Choices(list(PRECISIONS))
        ),
        timeout_s=config("INFLUX_TIMEOUT", default=10.0, cast=float),
    )
