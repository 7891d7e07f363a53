"""
Booking overlap predicate.

Slot marking and booking admission both go through ``find_overlapping`` so
the calendar and the write path can never disagree about what is taken.
"""

import logging
from datetime import time
from typing import Iterable, List, Optional

from .models import CANCELLED_STATUS, Appointment, Interval
from .timeparse import minutes_since_midnight

logger = logging.getLogger(__name__)


def overlaps(
    a_start: time,
    a_duration_minutes: int,
    b_start: time,
    b_duration_minutes: int,
) -> bool:
    """
    Check whether ``[a_start, a_start+a_dur)`` and ``[b_start, b_start+b_dur)`` overlap.

    Identical start times always overlap.
    """
    a_begin = minutes_since_midnight(a_start)
    b_begin = minutes_since_midnight(b_start)
    return b_begin < a_begin + a_duration_minutes and a_begin < b_begin + b_duration_minutes


def bookable_appointments(
    appointments: Iterable[Appointment],
    default_duration_minutes: int,
    cancelled_status: str = CANCELLED_STATUS,
) -> List[Appointment]:
    """
    Keep the appointments that can block time: not cancelled, with a usable interval.

    Appointments with malformed time data are logged and skipped.
    """
    usable: List[Appointment] = []

    for appt in appointments:
        if appt.is_cancelled(cancelled_status):
            continue
        if appt.interval(default_duration_minutes) is None:
            logger.warning(
                "Skipping appointment %s with malformed time data (start=%r, duration=%r)",
                appt.appointment_id,
                appt.start_time,
                appt.duration_minutes,
            )
            continue
        usable.append(appt)

    return usable


def find_overlapping(
    proposed: Interval,
    appointments: Iterable[Appointment],
    default_duration_minutes: int,
    exclude_appointment_id: Optional[str] = None,
    cancelled_status: str = CANCELLED_STATUS,
) -> List[Appointment]:
    """Return the non-cancelled appointments whose interval overlaps ``proposed``."""
    conflicts: List[Appointment] = []

    for appt in bookable_appointments(appointments, default_duration_minutes, cancelled_status):
        if exclude_appointment_id is not None and appt.appointment_id == exclude_appointment_id:
            continue
        if proposed.overlaps(appt.interval(default_duration_minutes)):
            conflicts.append(appt)

    return conflicts
