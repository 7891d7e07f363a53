"""
Availability services for a single doctor.

``AvailabilityService`` answers the calendar questions (which slots are open
on a date, which dates in a range are bookable) and owns the booking conflict
check that the write path relies on. It fetches collaborator data once per
call and delegates the actual decisions to the pure domain layer, so it is
safe to construct per request and to share across concurrent requests.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time
from typing import Callable, List, Optional, Sequence

import pendulum
from pendulum import DateTime

from ..domain.exceptions import DoctorNotFoundError
from ..domain.models import (
    CANCELLED_STATUS,
    Appointment,
    AvailabilityOverride,
    AvailabilityResult,
    AvailableDates,
    DoctorConfig,
    Interval,
    LeaveRecord,
    ScheduleEntry,
    Slot,
    SlotConflict,
    WorkingWindow,
    is_positive_minutes,
)
from ..domain.overlap import bookable_appointments, find_overlapping
from ..domain.slot_generator import window_slot_times
from ..domain.sources import (
    WINDOW_SOURCES,
    AvailabilitySource,
    NoSchedule,
    OnLeave,
    OverrideClosed,
    OverrideWindow,
    matches_hospital,
    resolve_source,
)
from ..domain.timeparse import (
    TimeLike,
    format_time_of_day,
    parse_time_of_day,
    require_time_of_day,
)
from .protocols import (
    BookingLedger,
    ClinicStore,
    DoctorDirectory,
    LeaveRegistry,
    OverrideStore,
    ScheduleSource,
)

logger = logging.getLogger(__name__)

BOOKED_REASON = "Already booked"

Clock = Callable[[], DateTime]


def as_date(value: date) -> pendulum.Date:
    """Normalize a date or datetime to a pendulum Date."""
    if isinstance(value, datetime):
        value = value.date()
    return pendulum.date(value.year, value.month, value.day)


class AvailabilityService:
    """
    Resolves doctor availability from schedules, leave, overrides and bookings.

    Priority for a date (first match wins): leave, per-date override, dated
    schedule, recurring weekly schedule.
    """

    def __init__(
        self,
        doctors: DoctorDirectory,
        leaves: LeaveRegistry,
        overrides: OverrideStore,
        schedules: ScheduleSource,
        ledger: BookingLedger,
        *,
        timezone: str = "Europe/Berlin",
        clock: Optional[Clock] = None,
        cancelled_status: str = CANCELLED_STATUS,
    ) -> None:
        self._doctors = doctors
        self._leaves = leaves
        self._overrides = overrides
        self._schedules = schedules
        self._ledger = ledger
        self._timezone = timezone
        self._clock = clock or (lambda: pendulum.now(self._timezone))
        self._cancelled_status = cancelled_status

    @classmethod
    def from_store(cls, store: ClinicStore, **kwargs) -> "AvailabilityService":
        """Build a service whose collaborators are all served by one store."""
        return cls(store, store, store, store, store, **kwargs)

    @property
    def cancelled_status(self) -> str:
        return self._cancelled_status

    def now(self) -> DateTime:
        return self._clock()

    async def get_doctor(self, doctor_id: str) -> DoctorConfig:
        """
        Fetch doctor defaults.

        Raises:
            DoctorNotFoundError: If the directory does not know the doctor
        """
        doctor = await self._doctors.get_doctor_config(doctor_id)
        if doctor is None:
            raise DoctorNotFoundError(doctor_id)
        return doctor

    async def get_availability(
        self,
        doctor_id: str,
        day: date,
        hospital_id: Optional[str] = None,
    ) -> AvailabilityResult:
        """
        Compute the slot list for one doctor on one date.

        Args:
            doctor_id: Doctor identifier
            day: Calendar date to evaluate
            hospital_id: Optional hospital filter for schedules and overrides

        Returns:
            AvailabilityResult with booked/free slots, or the reason none exist

        Raises:
            DoctorNotFoundError: If the doctor does not exist
        """
        day = as_date(day)
        doctor = await self.get_doctor(doctor_id)

        leaves, override, schedules, appointments = await asyncio.gather(
            self._leaves.get_leaves(doctor_id),
            self._overrides.get_override(doctor_id, day),
            self._schedules.get_schedules(doctor_id),
            self._ledger.get_appointments(doctor_id),
        )

        return self.resolve_day(
            doctor,
            day,
            leaves=leaves,
            override=override,
            schedules=schedules,
            appointments=appointments,
            hospital_id=hospital_id,
            now=self.now(),
        )

    def resolve_day(
        self,
        doctor: DoctorConfig,
        day: date,
        *,
        leaves: Sequence[LeaveRecord],
        override: Optional[AvailabilityOverride],
        schedules: Sequence[ScheduleEntry],
        appointments: Sequence[Appointment],
        hospital_id: Optional[str],
        now: DateTime,
    ) -> AvailabilityResult:
        """Resolve one date from already-fetched collaborator data."""
        day = as_date(day)
        result = AvailabilityResult(
            doctor_id=doctor.doctor_id,
            date=day,
            slot_duration_minutes=doctor.appointment_duration_minutes,
        )

        source = self._resolve_source(day, leaves, override, schedules, hospital_id)

        if isinstance(source, OnLeave):
            result.is_on_leave = True
            result.unavailable_reason = source.reason
            return result

        if isinstance(source, (OverrideClosed, NoSchedule)):
            result.unavailable_reason = source.reason
            return result

        window = self._working_window(source, doctor, day)
        result.has_schedule = True
        result.slot_duration_minutes = window.slot_duration_minutes

        if window.bounds() is None:
            logger.warning(
                "Doctor %s has an unusable working window on %s (%r - %r); no slots generated",
                doctor.doctor_id,
                day.isoformat(),
                window.start_time,
                window.end_time,
            )

        slot_times = self._drop_past_slots(window_slot_times(window), day, now)
        result.available_slots = self._mark_slots(
            slot_times,
            window.slot_duration_minutes,
            [appt for appt in appointments if as_date(appt.date) == day],
            doctor.appointment_duration_minutes,
        )
        # An empty list on a scheduled day means nothing is left to book.
        result.is_fully_booked = all(not slot.available for slot in result.available_slots)
        return result

    async def get_available_dates(
        self,
        doctor_id: str,
        start_date: date,
        end_date: date,
        hospital_id: Optional[str] = None,
    ) -> AvailableDates:
        """
        Partition a date range into available, fully booked and unavailable dates.

        Dates before today are not evaluated. Every other date in
        [start_date, end_date] lands in exactly one bucket; a date whose
        resolution fails is reported as unavailable instead of failing the range.

        Raises:
            DoctorNotFoundError: If the doctor does not exist
        """
        start_date = as_date(start_date)
        end_date = as_date(end_date)
        doctor = await self.get_doctor(doctor_id)

        leaves, overrides, schedules, appointments = await asyncio.gather(
            self._leaves.get_leaves(doctor_id),
            self._overrides.get_overrides_in_range(doctor_id, start_date, end_date),
            self._schedules.get_schedules(doctor_id),
            self._ledger.get_appointments(doctor_id),
        )

        overrides_by_date = self._index_overrides(overrides, hospital_id)

        result = AvailableDates(doctor_id=doctor_id, start_date=start_date, end_date=end_date)

        now = self.now()
        current = max(start_date, as_date(now))

        while current <= end_date:
            try:
                day_result = self._classify_day(
                    doctor,
                    current,
                    leaves=leaves,
                    override=overrides_by_date.get(current),
                    schedules=schedules,
                    appointments=appointments,
                    hospital_id=hospital_id,
                    now=now,
                )
            except Exception:
                logger.exception(
                    "Failed to resolve availability for doctor %s on %s; marking unavailable",
                    doctor_id,
                    current.isoformat(),
                )
                day_result = None

            if day_result is None or not day_result.has_schedule:
                result.unavailable_dates.append(current)
            elif day_result.is_fully_booked:
                result.fully_booked_dates.append(current)
            else:
                result.available_dates.append(current)

            current = current.add(days=1)

        return result

    async def is_slot_available(
        self,
        doctor_id: str,
        day: date,
        slot_time: TimeLike,
        hospital_id: Optional[str] = None,
    ) -> bool:
        """Check whether ``slot_time`` is a generated, unbooked slot on ``day``."""
        wanted = parse_time_of_day(slot_time)
        if wanted is None:
            return False

        availability = await self.get_availability(doctor_id, day, hospital_id)
        if not availability.has_schedule or availability.is_on_leave:
            return False

        slot = availability.find_slot(format_time_of_day(wanted))
        return slot is not None and slot.available

    async def check_booking_conflict(
        self,
        doctor_id: str,
        day: date,
        start_time: TimeLike,
        duration_minutes: Optional[int] = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> Optional[SlotConflict]:
        """
        Check a proposed booking against the doctor's existing appointments.

        Returns:
            None if the interval is free, otherwise a SlotConflict naming the
            overlapping appointments

        Raises:
            DoctorNotFoundError: If the doctor does not exist
            MalformedTimeDataError: If ``start_time`` is not a valid time
            ValueError: If ``duration_minutes`` is not positive
        """
        doctor = await self.get_doctor(doctor_id)
        start = require_time_of_day(start_time)
        duration = self.booking_duration(doctor, duration_minutes)
        appointments = await self._ledger.get_appointments(doctor_id)

        return self.find_conflict(
            doctor,
            day,
            start,
            duration,
            appointments,
            exclude_appointment_id=exclude_appointment_id,
        )

    async def is_booking_free(
        self,
        doctor_id: str,
        day: date,
        start_time: TimeLike,
        duration_minutes: Optional[int] = None,
        exclude_appointment_id: Optional[str] = None,
    ) -> bool:
        conflict = await self.check_booking_conflict(
            doctor_id, day, start_time, duration_minutes, exclude_appointment_id
        )
        return conflict is None

    def find_conflict(
        self,
        doctor: DoctorConfig,
        day: date,
        start: time,
        duration_minutes: int,
        appointments: Sequence[Appointment],
        exclude_appointment_id: Optional[str] = None,
    ) -> Optional[SlotConflict]:
        """Synchronous core of the conflict check, reused inside write transactions."""
        day = as_date(day)
        same_day = [appt for appt in appointments if as_date(appt.date) == day]

        conflicts = find_overlapping(
            Interval.from_start(start, duration_minutes),
            same_day,
            doctor.appointment_duration_minutes,
            exclude_appointment_id=exclude_appointment_id,
            cancelled_status=self._cancelled_status,
        )

        if not conflicts:
            return None

        return SlotConflict(
            doctor_id=doctor.doctor_id,
            date=day,
            start_time=format_time_of_day(start),
            duration_minutes=duration_minutes,
            conflicting_appointment_ids=tuple(appt.appointment_id for appt in conflicts),
        )

    @staticmethod
    def booking_duration(doctor: DoctorConfig, duration_minutes: Optional[int]) -> int:
        duration = doctor.appointment_duration_minutes if duration_minutes is None else duration_minutes
        if not is_positive_minutes(duration):
            raise ValueError(f"Booking duration must be a whole number greater than zero, got {duration!r}")
        return duration

    def _classify_day(
        self,
        doctor: DoctorConfig,
        day: pendulum.Date,
        *,
        leaves: Sequence[LeaveRecord],
        override: Optional[AvailabilityOverride],
        schedules: Sequence[ScheduleEntry],
        appointments: Sequence[Appointment],
        hospital_id: Optional[str],
        now: DateTime,
    ) -> Optional[AvailabilityResult]:
        """
        Return the day's availability, or None when no working window exists.

        Leave, a closing override or a missing schedule settle the date without
        generating slots.
        """
        source = self._resolve_source(day, leaves, override, schedules, hospital_id)
        if not isinstance(source, WINDOW_SOURCES):
            return None

        return self.resolve_day(
            doctor,
            day,
            leaves=leaves,
            override=override,
            schedules=schedules,
            appointments=appointments,
            hospital_id=hospital_id,
            now=now,
        )

    @staticmethod
    def _resolve_source(
        day: date,
        leaves: Sequence[LeaveRecord],
        override: Optional[AvailabilityOverride],
        schedules: Sequence[ScheduleEntry],
        hospital_id: Optional[str],
    ) -> AvailabilitySource:
        if override is not None and not matches_hospital(override.hospital_id, hospital_id):
            override = None

        scoped_schedules = [
            schedule for schedule in schedules
            if matches_hospital(schedule.hospital_id, hospital_id)
        ]

        return resolve_source(day, leaves, override, scoped_schedules)

    @staticmethod
    def _working_window(source: AvailabilitySource, doctor: DoctorConfig, day: date) -> WorkingWindow:
        duration = doctor.appointment_duration_minutes
        if isinstance(source, OverrideWindow) and source.override.slot_duration_minutes is not None:
            override_duration = source.override.slot_duration_minutes
            if is_positive_minutes(override_duration):
                duration = override_duration
            else:
                logger.warning(
                    "Ignoring malformed override slot duration %r for doctor %s on %s; using %s minutes",
                    override_duration,
                    doctor.doctor_id,
                    day.isoformat(),
                    duration,
                )

        return WorkingWindow(
            start_time=source.start_time,
            end_time=source.end_time,
            slot_duration_minutes=duration,
            break_minutes=doctor.break_minutes,
        )

    @staticmethod
    def _drop_past_slots(slot_times: List[time], day: date, now: DateTime) -> List[time]:
        """On today's date, only slots strictly after the current wall-clock time remain."""
        if day != now.date():
            return slot_times

        current = now.time().replace(microsecond=0)
        return [slot_time for slot_time in slot_times if slot_time > current]

    def _mark_slots(
        self,
        slot_times: List[time],
        slot_duration_minutes: int,
        appointments: Sequence[Appointment],
        default_appointment_minutes: int,
    ) -> List[Slot]:
        booked = bookable_appointments(
            appointments, default_appointment_minutes, self._cancelled_status
        )

        slots: List[Slot] = []
        for slot_time in slot_times:
            is_booked = bool(
                find_overlapping(
                    Interval.from_start(slot_time, slot_duration_minutes),
                    booked,
                    default_appointment_minutes,
                    cancelled_status=self._cancelled_status,
                )
            )
            slots.append(
                Slot(
                    time=format_time_of_day(slot_time),
                    available=not is_booked,
                    reason=BOOKED_REASON if is_booked else None,
                )
            )

        return slots

    @staticmethod
    def _index_overrides(
        overrides: Sequence[AvailabilityOverride],
        hospital_id: Optional[str],
    ) -> dict:
        """Map date -> first matching override, as a per-date lookup would return it."""
        indexed: dict = {}
        for override in overrides:
            if not matches_hospital(override.hospital_id, hospital_id):
                continue
            indexed.setdefault(as_date(override.date), override)
        return indexed
