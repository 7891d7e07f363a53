"""
Domain layer - Pure scheduling logic without external dependencies.
"""

from .models import (
    Appointment,
    AvailabilityOverride,
    AvailabilityResult,
    AvailableDates,
    DatedSchedule,
    DoctorConfig,
    Interval,
    LeaveRecord,
    RecurringSchedule,
    Slot,
    SlotConflict,
    WorkingWindow,
)
from .overlap import find_overlapping, overlaps
from .slot_generator import generate_slot_times
from .sources import resolve_source

__all__ = [
    "Appointment",
    "AvailabilityOverride",
    "AvailabilityResult",
    "AvailableDates",
    "DatedSchedule",
    "DoctorConfig",
    "Interval",
    "LeaveRecord",
    "RecurringSchedule",
    "Slot",
    "SlotConflict",
    "WorkingWindow",
    "find_overlapping",
    "overlaps",
    "generate_slot_times",
    "resolve_source",
]
