"""
Booking admission - the write path gated by the conflict check.

The pre-flight check in ``AvailabilityService.check_booking_conflict`` is only
an early answer for the UI. Here the check is repeated inside the ledger's
per-doctor transaction together with the write, and a uniqueness rejection
from storage is reported as the same ``SlotConflict`` a caller would get from
the check itself.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date
from typing import Callable, Optional

from ..domain.exceptions import AppointmentNotFoundError, BookingCollisionError
from ..domain.models import Appointment, SlotConflict
from ..domain.timeparse import TimeLike, format_time_of_day, require_time_of_day
from .availability import AvailabilityService, as_date
from .protocols import BookingWriter

logger = logging.getLogger(__name__)

SCHEDULED_STATUS = "Scheduled"


@dataclass(frozen=True)
class BookingOutcome:
    """Either the stored appointment or the conflict that prevented it."""
    appointment: Optional[Appointment] = None
    conflict: Optional[SlotConflict] = None

    @property
    def booked(self) -> bool:
        return self.appointment is not None


class BookingService:
    """Creates, moves and cancels appointments without double-booking a doctor."""

    def __init__(
        self,
        availability: AvailabilityService,
        ledger: BookingWriter,
        id_factory: Optional[Callable[[], str]] = None,
    ) -> None:
        self._availability = availability
        self._ledger = ledger
        self._id_factory = id_factory or (lambda: uuid.uuid4().hex)

    async def book(
        self,
        *,
        doctor_id: str,
        day: date,
        start_time: TimeLike,
        patient_id: str,
        duration_minutes: Optional[int] = None,
        hospital_id: Optional[str] = None,
    ) -> BookingOutcome:
        """
        Admit a new appointment if it overlaps nothing already booked.

        Raises:
            DoctorNotFoundError: If the doctor does not exist
            MalformedTimeDataError: If ``start_time`` is not a valid time
            ValueError: If ``duration_minutes`` is not positive
        """
        day = as_date(day)
        doctor = await self._availability.get_doctor(doctor_id)
        start = require_time_of_day(start_time)
        duration = self._availability.booking_duration(doctor, duration_minutes)

        async with self._ledger.transaction(doctor_id):
            appointments = await self._ledger.get_appointments(doctor_id)
            conflict = self._availability.find_conflict(doctor, day, start, duration, appointments)
            if conflict is not None:
                logger.info(
                    "Rejected booking for doctor %s on %s at %s: overlaps %s",
                    doctor_id,
                    day.isoformat(),
                    conflict.start_time,
                    ", ".join(conflict.conflicting_appointment_ids),
                )
                return BookingOutcome(conflict=conflict)

            appointment = Appointment(
                appointment_id=self._id_factory(),
                doctor_id=doctor_id,
                date=day,
                start_time=format_time_of_day(start),
                status=SCHEDULED_STATUS,
                duration_minutes=duration,
                patient_id=patient_id,
                hospital_id=hospital_id,
            )

            try:
                stored = await self._ledger.add_appointment(appointment)
            except BookingCollisionError as exc:
                logger.info("Storage rejected booking for doctor %s: %s", doctor_id, exc)
                return BookingOutcome(conflict=self._collision(appointment, duration))

        logger.info(
            "Booked appointment %s for doctor %s on %s at %s",
            stored.appointment_id,
            doctor_id,
            day.isoformat(),
            stored.start_time,
        )
        return BookingOutcome(appointment=stored)

    async def reschedule(
        self,
        appointment_id: str,
        *,
        day: date,
        start_time: TimeLike,
        duration_minutes: Optional[int] = None,
    ) -> BookingOutcome:
        """
        Move an existing appointment, ignoring its own current slot in the check.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
            ValueError: If the appointment is cancelled or the new time is invalid
        """
        day = as_date(day)
        start = require_time_of_day(start_time)

        existing = await self._require_appointment(appointment_id)
        doctor = await self._availability.get_doctor(existing.doctor_id)

        async with self._ledger.transaction(existing.doctor_id):
            # Re-read under the lock; a concurrent cancel may have committed.
            current = await self._require_appointment(appointment_id)
            if current.is_cancelled(self._availability.cancelled_status):
                raise ValueError(f"Appointment {appointment_id} is cancelled and cannot be rescheduled")

            duration = self._availability.booking_duration(
                doctor,
                current.duration_minutes if duration_minutes is None else duration_minutes,
            )
            appointments = await self._ledger.get_appointments(current.doctor_id)
            conflict = self._availability.find_conflict(
                doctor,
                day,
                start,
                duration,
                appointments,
                exclude_appointment_id=appointment_id,
            )
            if conflict is not None:
                return BookingOutcome(conflict=conflict)

            moved = replace(
                current,
                date=day,
                start_time=format_time_of_day(start),
                duration_minutes=duration,
            )

            try:
                stored = await self._ledger.update_appointment(moved)
            except BookingCollisionError:
                return BookingOutcome(conflict=self._collision(moved, duration))

        return BookingOutcome(appointment=stored)

    async def cancel(self, appointment_id: str) -> Appointment:
        """
        Cancel an appointment; it stops blocking its slot immediately.

        Raises:
            AppointmentNotFoundError: If the appointment does not exist
        """
        existing = await self._require_appointment(appointment_id)

        async with self._ledger.transaction(existing.doctor_id):
            current = await self._require_appointment(appointment_id)
            cancelled = replace(current, status=self._availability.cancelled_status)
            stored = await self._ledger.update_appointment(cancelled)

        logger.info("Cancelled appointment %s", appointment_id)
        return stored

    async def _require_appointment(self, appointment_id: str) -> Appointment:
        appointment = await self._ledger.get_appointment(appointment_id)
        if appointment is None:
            raise AppointmentNotFoundError(f"Appointment not found: {appointment_id}")
        return appointment

    @staticmethod
    def _collision(appointment: Appointment, duration: int) -> SlotConflict:
        return SlotConflict(
            doctor_id=appointment.doctor_id,
            date=appointment.date,
            start_time=str(appointment.start_time),
            duration_minutes=duration,
        )
