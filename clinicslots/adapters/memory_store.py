"""
In-memory clinic store implementing every collaborator protocol.

Records can be loaded from a JSON document (see ``sample_clinic_data.json``).
Time values are kept exactly as stored so a corrupt record reaches the engine
the same way it would from a database.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

import pendulum

from ..config import SchedulingDefaults
from ..domain.exceptions import AppointmentNotFoundError, BookingCollisionError
from ..domain.models import (
    CANCELLED_STATUS,
    Appointment,
    AvailabilityOverride,
    DatedSchedule,
    DoctorConfig,
    LeaveRecord,
    RecurringSchedule,
    ScheduleEntry,
    is_positive_minutes,
    is_whole_minutes,
    weekday_from_name,
)
from ..domain.timeparse import format_time_of_day, parse_time_of_day

logger = logging.getLogger(__name__)

SAMPLE_DATA_FILE = Path(__file__).parent / "sample_clinic_data.json"


def _parse_date(value: Any) -> pendulum.Date:
    """Parse a YYYY-MM-DD value; raises ValueError on bad input."""
    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise ValueError(f"Expected a YYYY-MM-DD string, got {value!r}")
    return pendulum.from_format(value.strip()[:10], "YYYY-MM-DD").date()


def _parse_weekday(value: Any) -> int:
    if isinstance(value, int):
        if value not in range(7):
            raise ValueError(f"day_of_week must be between 0 and 6, got {value}")
        return value
    return weekday_from_name(str(value))


def _parse_flag(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Expected true or false, got {value!r}")
    return value


class InMemoryClinicStore:
    """
    Process-local store for doctors, schedules, leave, overrides and bookings.

    Writes for one doctor are serialized through a per-doctor asyncio lock, and
    the store refuses a second non-cancelled appointment with the same doctor,
    date and start time.
    """

    def __init__(
        self,
        defaults: Optional[SchedulingDefaults] = None,
        cancelled_status: str = CANCELLED_STATUS,
    ):
        self.defaults = defaults or SchedulingDefaults()
        self.cancelled_status = cancelled_status
        self._doctors: Dict[str, DoctorConfig] = {}
        self._schedules: Dict[str, List[ScheduleEntry]] = defaultdict(list)
        self._leaves: Dict[str, List[LeaveRecord]] = defaultdict(list)
        self._overrides: Dict[str, List[AvailabilityOverride]] = defaultdict(list)
        self._appointments: Dict[str, Appointment] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    # -- loading ---------------------------------------------------------

    @classmethod
    def from_json(
        cls,
        data_file: Path,
        defaults: Optional[SchedulingDefaults] = None,
        cancelled_status: str = CANCELLED_STATUS,
    ) -> "InMemoryClinicStore":
        """
        Build a store from a JSON data file.

        Raises:
            FileNotFoundError: If the data file doesn't exist
            ValueError: If the file is not valid JSON or has no mapping at its root
        """
        if not data_file.exists():
            raise FileNotFoundError(f"Clinic data file not found: {data_file}")

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid JSON in {data_file}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Clinic data file must contain an object at the root level.")

        store = cls(defaults=defaults, cancelled_status=cancelled_status)
        store.load(data)
        return store

    @classmethod
    def sample(
        cls,
        defaults: Optional[SchedulingDefaults] = None,
        cancelled_status: str = CANCELLED_STATUS,
    ) -> "InMemoryClinicStore":
        """Store preloaded with the bundled demo clinic."""
        return cls.from_json(SAMPLE_DATA_FILE, defaults=defaults, cancelled_status=cancelled_status)

    def load(self, data: Dict[str, Any]) -> None:
        """
        Load records from a decoded JSON document.

        Records with missing keys or unparsable dates are skipped. Time strings
        are not validated here.
        """
        for record in data.get("doctors", []):
            try:
                self.add_doctor(
                    record["id"],
                    name=record.get("name", ""),
                    appointment_duration_minutes=record.get("appointment_duration_minutes"),
                    break_minutes=record.get("break_minutes"),
                )
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping invalid doctor record %r: %s", record, exc)

        for record in data.get("schedules", []):
            try:
                if record.get("date"):
                    entry: ScheduleEntry = DatedSchedule(
                        date=_parse_date(record["date"]),
                        start_time=record.get("start_time"),
                        end_time=record.get("end_time"),
                        hospital_id=record.get("hospital_id"),
                        schedule_id=record.get("id"),
                    )
                else:
                    entry = RecurringSchedule(
                        day_of_week=_parse_weekday(record["day_of_week"]),
                        start_time=record.get("start_time"),
                        end_time=record.get("end_time"),
                        hospital_id=record.get("hospital_id"),
                        schedule_id=record.get("id"),
                    )
                self.add_schedule(record["doctor_id"], entry)
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping invalid schedule record %r: %s", record, exc)

        for record in data.get("leaves", []):
            try:
                self.add_leave(
                    record["doctor_id"],
                    LeaveRecord(
                        start_date=_parse_date(record["start_date"]),
                        end_date=_parse_date(record["end_date"]),
                        reason=record.get("reason", ""),
                    ),
                )
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping invalid leave record %r: %s", record, exc)

        for record in data.get("overrides", []):
            try:
                self.add_override(
                    record["doctor_id"],
                    AvailabilityOverride(
                        date=_parse_date(record["date"]),
                        is_available=_parse_flag(record.get("is_available", True)),
                        start_time=record.get("start_time"),
                        end_time=record.get("end_time"),
                        slot_duration_minutes=record.get("slot_duration_minutes"),
                        reason=record.get("reason"),
                        hospital_id=record.get("hospital_id"),
                    ),
                )
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping invalid override record %r: %s", record, exc)

        for record in data.get("appointments", []):
            try:
                appointment = Appointment(
                    appointment_id=record["id"],
                    doctor_id=record["doctor_id"],
                    date=_parse_date(record["date"]),
                    start_time=record.get("start_time"),
                    status=record.get("status", "Scheduled"),
                    duration_minutes=record.get("duration_minutes"),
                    patient_id=record.get("patient_id"),
                    hospital_id=record.get("hospital_id"),
                )
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping invalid appointment record %r: %s", record, exc)
                continue
            # Seed data is trusted as-is, even if it already double-books.
            self._appointments[appointment.appointment_id] = appointment

    # -- seeding ---------------------------------------------------------

    def add_doctor(
        self,
        doctor_id: str,
        *,
        name: str = "",
        appointment_duration_minutes: Optional[int] = None,
        break_minutes: Optional[int] = None,
    ) -> DoctorConfig:
        if appointment_duration_minutes is None:
            appointment_duration_minutes = self.defaults.appointment_duration_minutes
        if break_minutes is None:
            break_minutes = self.defaults.break_minutes

        if not is_positive_minutes(appointment_duration_minutes):
            raise ValueError(
                f"appointment_duration_minutes must be a positive whole number, got {appointment_duration_minutes!r}"
            )
        if not is_whole_minutes(break_minutes) or break_minutes < 0:
            raise ValueError(f"break_minutes must be a non-negative whole number, got {break_minutes!r}")

        doctor = DoctorConfig(
            doctor_id=doctor_id,
            name=name,
            appointment_duration_minutes=appointment_duration_minutes,
            break_minutes=break_minutes,
        )
        self._doctors[doctor_id] = doctor
        return doctor

    def add_schedule(self, doctor_id: str, schedule: ScheduleEntry) -> None:
        self._schedules[doctor_id].append(schedule)

    def add_leave(self, doctor_id: str, leave: LeaveRecord) -> None:
        self._leaves[doctor_id].append(leave)

    def add_override(self, doctor_id: str, override: AvailabilityOverride) -> None:
        self._overrides[doctor_id].append(override)

    def doctors(self) -> List[DoctorConfig]:
        return list(self._doctors.values())

    # -- read protocols --------------------------------------------------

    async def get_doctor_config(self, doctor_id: str) -> Optional[DoctorConfig]:
        return self._doctors.get(doctor_id)

    async def get_leaves(self, doctor_id: str) -> List[LeaveRecord]:
        return list(self._leaves.get(doctor_id, []))

    async def get_override(self, doctor_id: str, day: date) -> Optional[AvailabilityOverride]:
        for override in self._overrides.get(doctor_id, []):
            if override.date == day:
                return override
        return None

    async def get_overrides_in_range(
        self,
        doctor_id: str,
        start_date: date,
        end_date: date,
    ) -> List[AvailabilityOverride]:
        return [
            override for override in self._overrides.get(doctor_id, [])
            if start_date <= override.date <= end_date
        ]

    async def get_schedules(self, doctor_id: str) -> List[ScheduleEntry]:
        return list(self._schedules.get(doctor_id, []))

    async def get_appointments(self, doctor_id: str) -> List[Appointment]:
        return [
            appt for appt in self._appointments.values()
            if appt.doctor_id == doctor_id
        ]

    async def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        return self._appointments.get(appointment_id)

    # -- write protocol --------------------------------------------------

    @asynccontextmanager
    async def transaction(self, doctor_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(doctor_id, asyncio.Lock())
        async with lock:
            yield

    async def add_appointment(self, appointment: Appointment) -> Appointment:
        if appointment.appointment_id in self._appointments:
            raise BookingCollisionError(
                f"Appointment id already exists: {appointment.appointment_id}"
            )
        self._ensure_unique(appointment)
        self._appointments[appointment.appointment_id] = appointment
        return appointment

    async def update_appointment(self, appointment: Appointment) -> Appointment:
        if appointment.appointment_id not in self._appointments:
            raise AppointmentNotFoundError(
                f"Appointment not found: {appointment.appointment_id}"
            )
        self._ensure_unique(appointment)
        self._appointments[appointment.appointment_id] = appointment
        return appointment

    def _ensure_unique(self, appointment: Appointment) -> None:
        """Storage backstop: one live booking per doctor, date and start time."""
        if appointment.is_cancelled(self.cancelled_status):
            return

        key = self._slot_key(appointment)
        if key is None:
            return

        for other in self._appointments.values():
            if other.appointment_id == appointment.appointment_id:
                continue
            if other.is_cancelled(self.cancelled_status):
                continue
            if self._slot_key(other) == key:
                raise BookingCollisionError(
                    f"Doctor {appointment.doctor_id} already has appointment "
                    f"{other.appointment_id} at {key[2]} on {key[1].isoformat()}"
                )

    @staticmethod
    def _slot_key(appointment: Appointment) -> Optional[tuple]:
        start = parse_time_of_day(appointment.start_time)
        if start is None:
            return None
        return (appointment.doctor_id, appointment.date, format_time_of_day(start))
