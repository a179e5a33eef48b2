"""
Random point fixtures for tests.

The random source is always passed in, so a seeded random.Random together
with a fixed clock reproduces the same points.
"""

import random
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List

from .point import Point, Value

# Printable ASCII without the backslash.
PRINTABLE = "".join(chr(code) for code in range(0x20, 0x7F) if chr(code) != "\\")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def random_printable_string(rng: random.Random, length: int) -> str:
    """Return length printable characters; never contains a backslash."""
    return "".join(rng.choice(PRINTABLE) for _ in range(length))


def random_name(rng: random.Random) -> str:
    """Return a short unique measurement name."""
    return uuid.UUID(int=rng.getrandbits(128), version=4).hex[:10]


def random_values(rng: random.Random, prefix: str, now: datetime) -> Dict[str, Value]:
    """One value per supported type, keyed "<prefix>-<type>"."""
    return {
        f"{prefix}-string": random_printable_string(rng, 50),
        f"{prefix}-bool": rng.randrange(2) == 0,
        f"{prefix}-int": rng.randrange(2**31),
        f"{prefix}-decimal": Decimal(repr(rng.random())),
        f"{prefix}-float": rng.random(),
        f"{prefix}-datetime": now,
    }


def new_point(rng: random.Random, clock: Callable[[], datetime] = utcnow) -> Point:
    """Return a point with random tags and fields of every supported type."""
    now = clock()
    return Point(
        name=random_name(rng),
        tags=random_values(rng, "tag", now),
        fields=random_values(rng, "field", now),
        timestamp=now,
    )


def new_points(
    rng: random.Random, count: int, clock: Callable[[], datetime] = utcnow
) -> List[Point]:
    """Return count independent random points."""
    return [new_point(rng, clock) for _ in range(count)]
