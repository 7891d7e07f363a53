"""
Collaborator protocols the scheduling services depend on.

The engine holds no persistent state of its own; every fact about a doctor
comes through one of these request-scoped stores.
"""

from __future__ import annotations

from datetime import date
from typing import AsyncContextManager, List, Optional, Protocol

from ..domain.models import (
    Appointment,
    AvailabilityOverride,
    DoctorConfig,
    LeaveRecord,
    ScheduleEntry,
)


class DoctorDirectory(Protocol):
    async def get_doctor_config(self, doctor_id: str) -> Optional[DoctorConfig]:
        """Return the doctor's defaults, or None if the doctor does not exist."""


class LeaveRegistry(Protocol):
    async def get_leaves(self, doctor_id: str) -> List[LeaveRecord]:
        """Return every leave record for the doctor."""


class OverrideStore(Protocol):
    async def get_override(self, doctor_id: str, day: date) -> Optional[AvailabilityOverride]:
        """Return the override for one date, if any."""

    async def get_overrides_in_range(
        self,
        doctor_id: str,
        start_date: date,
        end_date: date,
    ) -> List[AvailabilityOverride]:
        """Return overrides dated within [start_date, end_date]."""


class ScheduleSource(Protocol):
    async def get_schedules(self, doctor_id: str) -> List[ScheduleEntry]:
        """Return recurring and dated schedules, mixed."""


class BookingLedger(Protocol):
    async def get_appointments(self, doctor_id: str) -> List[Appointment]:
        """Return all appointments for the doctor; callers filter by date and status."""


class BookingWriter(BookingLedger, Protocol):
    """Write side of the booking ledger used by the admission path."""

    def transaction(self, doctor_id: str) -> AsyncContextManager[None]:
        """Critical section in which a conflict check and its write are atomic."""

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        """Return one appointment by id."""

    async def add_appointment(self, appointment: Appointment) -> Appointment:
        """
        Persist a new appointment.

        Raises BookingCollisionError if storage rejects it as a double booking.
        """

    async def update_appointment(self, appointment: Appointment) -> Appointment:
        """Replace an existing appointment record."""


class ClinicStore(
    DoctorDirectory,
    LeaveRegistry,
    OverrideStore,
    ScheduleSource,
    BookingWriter,
    Protocol,
):
    """A single object serving every collaborator role."""
