"""
Wall-clock time helpers.

Stored schedules and appointments keep their times as free-form strings, so
reading them is tolerant (bad values become ``None``) while writing is strict.
All slot arithmetic happens in integer minutes since midnight.
"""

import re
from datetime import time
from typing import Optional, Union

import pendulum

from .exceptions import MalformedTimeDataError

# Longest pattern first so "09:00:00" is not partially matched as "09:00".
TIME_FORMATS = ("H:mm:ss", "H:mm")

# One or two hour digits; minutes and seconds are always two digits.
TIME_SHAPE = re.compile(r"^\d{1,2}:\d{2}(:\d{2})?$")

MINUTES_PER_DAY = 24 * 60

TimeLike = Union[str, time, None]


def parse_time_of_day(value: TimeLike) -> Optional[time]:
    """
    Parse a wall-clock time, returning None for anything unparsable.

    Accepts ``H:mm`` / ``H:mm:ss`` strings and ``datetime.time`` objects.
    """
    if value is None:
        return None

    if isinstance(value, time):
        return value.replace(microsecond=0, tzinfo=None)

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not TIME_SHAPE.match(text):
        return None

    for fmt in TIME_FORMATS:
        try:
            return pendulum.from_format(text, fmt).time()
        except ValueError:
            continue

    return None


def require_time_of_day(value: TimeLike) -> time:
    """
    Parse a wall-clock time supplied by a caller on the write path.

    Raises:
        MalformedTimeDataError: If the value is not a valid time of day
    """
    parsed = parse_time_of_day(value)
    if parsed is None:
        raise MalformedTimeDataError(
            f"Invalid time of day: {value!r} (expected HH:mm)"
        )
    return parsed


def format_time_of_day(value: time) -> str:
    """Format a time as ``HH:mm`` (24-hour)."""
    return f"{value.hour:02d}:{value.minute:02d}"


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
    """Convert minutes since midnight back to a time of day."""
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range for a single day: {minutes}")
    return pendulum.time(minutes // 60, minutes % 60)
