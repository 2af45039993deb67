"""Utility helper functions for the ingest core."""

import math
import uuid
from datetime import datetime, timezone


def generate_uuid() -> str:
    """
    Generate a new UUID4 string.

    Returns:
        UUID4 string
    """
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer with halves rounded up.

    Python's round() uses banker's rounding, which would report 2.5 -> 2.
    """
    return int(math.floor(value + 0.5))


def percent_of(part: int, total: int) -> int:
    """
    Integer percentage of part over total, 0 when total is 0.
    """
    if total <= 0:
        return 0
    return round_half_up(part / total * 100)
