"""
Service layer helpers that orchestrate collaborator stores and domain logic.
"""

from .availability import AvailabilityService
from .booking import BookingOutcome, BookingService
from .protocols import (
    BookingLedger,
    BookingWriter,
    ClinicStore,
    DoctorDirectory,
    LeaveRegistry,
    OverrideStore,
    ScheduleSource,
)

__all__ = [
    "AvailabilityService",
    "BookingOutcome",
    "BookingService",
    "BookingLedger",
    "BookingWriter",
    "ClinicStore",
    "DoctorDirectory",
    "LeaveRegistry",
    "OverrideStore",
    "ScheduleSource",
]
