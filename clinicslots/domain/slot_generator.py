"""
Slot generation - expands a working window into candidate start times.

Pure and deterministic: no I/O, and bad input produces an empty sequence
instead of an exception.
"""

from datetime import time
from typing import Iterator, List

from .models import WorkingWindow, is_positive_minutes, is_whole_minutes
from .timeparse import TimeLike, time_from_minutes


def generate_slot_times(
    start_time: TimeLike,
    end_time: TimeLike,
    slot_duration_minutes: int,
    break_minutes: int = 0,
) -> Iterator[time]:
    """
    Yield slot start times from ``start_time`` while a full slot still fits.

    Each slot is followed by ``break_minutes`` before the next one starts.

    Example:
    Window: 09:00 - 10:00, duration 20, break 5
    Result: 09:00, 09:25
    """
    if not is_positive_minutes(slot_duration_minutes):
        return
    if not is_whole_minutes(break_minutes) or break_minutes < 0:
        return

    bounds = WorkingWindow(
        start_time=start_time,
        end_time=end_time,
        slot_duration_minutes=slot_duration_minutes,
        break_minutes=break_minutes,
    ).bounds()

    if bounds is None:
        return

    current = bounds.start
    step = slot_duration_minutes + break_minutes

    while current + slot_duration_minutes <= bounds.end:
        yield time_from_minutes(current)
        current += step


def window_slot_times(window: WorkingWindow) -> List[time]:
    """Materialize the slot times of a resolved working window."""
    return list(
        generate_slot_times(
            window.start_time,
            window.end_time,
            window.slot_duration_minutes,
            window.break_minutes,
        )
    )
