"""
Domain models for schedules, bookings and computed availability.
"""

from dataclasses import dataclass, field
from datetime import date, time
from typing import Any, List, Optional, Union

from .timeparse import TimeLike, minutes_since_midnight, parse_time_of_day

CANCELLED_STATUS = "Cancelled"

WEEKDAY_NAMES = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def is_whole_minutes(value: Any) -> bool:
    """True for an integer minute count; bools and numeric strings are rejected."""
    return isinstance(value, int) and not isinstance(value, bool)


def is_positive_minutes(value: Any) -> bool:
    return is_whole_minutes(value) and value > 0


def weekday_from_name(name: str) -> int:
    """Map an English weekday name to 0=Monday .. 6=Sunday."""
    normalized = name.strip().lower()
    for index, weekday in enumerate(WEEKDAY_NAMES):
        if weekday.lower() == normalized:
            return index
    raise ValueError(f"Unknown weekday name: {name!r}")


@dataclass(frozen=True)
class Interval:
    """
    Half-open interval ``[start, end)`` in minutes since midnight.

    Invariant: start must be before end.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Interval start {self.start} must be before end {self.end}")

    @classmethod
    def from_start(cls, start: time, duration_minutes: int) -> "Interval":
        begin = minutes_since_midnight(start)
        return cls(start=begin, end=begin + duration_minutes)

    def duration_minutes(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        """Check if this interval overlaps with another."""
        return other.start < self.end and self.start < other.end


@dataclass(frozen=True)
class DoctorConfig:
    """Per-doctor defaults every availability computation depends on."""
    doctor_id: str
    appointment_duration_minutes: int = 30
    break_minutes: int = 0
    name: str = ""


@dataclass(frozen=True)
class WorkingWindow:
    """
    The bookable wall-clock window for one date.

    Times are kept as stored; an unparsable or inverted window yields no slots.
    """
    start_time: TimeLike
    end_time: TimeLike
    slot_duration_minutes: int
    break_minutes: int = 0

    def bounds(self) -> Optional[Interval]:
        """Return the window as an interval, or None if it is unusable."""
        start = parse_time_of_day(self.start_time)
        end = parse_time_of_day(self.end_time)
        if start is None or end is None:
            return None
        start_minutes = minutes_since_midnight(start)
        end_minutes = minutes_since_midnight(end)
        if start_minutes >= end_minutes:
            return None
        return Interval(start=start_minutes, end=end_minutes)


@dataclass(frozen=True)
class RecurringSchedule:
    """Weekly working hours (0=Monday .. 6=Sunday)."""
    day_of_week: int
    start_time: TimeLike
    end_time: TimeLike
    hospital_id: Optional[str] = None
    schedule_id: Optional[str] = None


@dataclass(frozen=True)
class DatedSchedule:
    """Working hours for one exact calendar date."""
    date: date
    start_time: TimeLike
    end_time: TimeLike
    hospital_id: Optional[str] = None
    schedule_id: Optional[str] = None


ScheduleEntry = Union[RecurringSchedule, DatedSchedule]


@dataclass(frozen=True)
class LeaveRecord:
    """A doctor is fully unavailable on every date in [start_date, end_date]."""
    start_date: date
    end_date: date
    reason: str = ""

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


@dataclass(frozen=True)
class AvailabilityOverride:
    """Per-date record that supersedes the schedule source for that date."""
    date: date
    is_available: bool
    start_time: TimeLike = None
    end_time: TimeLike = None
    slot_duration_minutes: Optional[int] = None
    reason: Optional[str] = None
    hospital_id: Optional[str] = None


@dataclass(frozen=True)
class Appointment:
    """An existing booking as supplied by the booking ledger."""
    appointment_id: str
    doctor_id: str
    date: date
    start_time: TimeLike
    status: str = "Scheduled"
    duration_minutes: Optional[int] = None
    patient_id: Optional[str] = None
    hospital_id: Optional[str] = None

    def is_cancelled(self, cancelled_status: str = CANCELLED_STATUS) -> bool:
        return (self.status or "").strip().lower() == cancelled_status.lower()

    def interval(self, default_duration_minutes: int) -> Optional[Interval]:
        """
        Return the booked interval, or None if the start time or duration is malformed.
        """
        start = parse_time_of_day(self.start_time)
        if start is None:
            return None
        duration = default_duration_minutes if self.duration_minutes is None else self.duration_minutes
        if not is_positive_minutes(duration):
            return None
        return Interval.from_start(start, duration)


@dataclass
class Slot:
    """A generated, transient candidate appointment start."""
    time: str  # HH:mm
    available: bool
    reason: Optional[str] = None


@dataclass
class AvailabilityResult:
    """Availability of one doctor on one date."""
    doctor_id: str
    date: date
    slot_duration_minutes: int
    has_schedule: bool = False
    is_on_leave: bool = False
    unavailable_reason: Optional[str] = None
    available_slots: List[Slot] = field(default_factory=list)
    is_fully_booked: bool = False

    def find_slot(self, slot_time: str) -> Optional[Slot]:
        for slot in self.available_slots:
            if slot.time == slot_time:
                return slot
        return None

    def open_slots(self) -> List[Slot]:
        return [slot for slot in self.available_slots if slot.available]


@dataclass
class AvailableDates:
    """Three-way partition of a date range for calendar display."""
    doctor_id: str
    start_date: date
    end_date: date
    available_dates: List[date] = field(default_factory=list)
    fully_booked_dates: List[date] = field(default_factory=list)
    unavailable_dates: List[date] = field(default_factory=list)

    def all_dates(self) -> List[date]:
        return sorted(
            self.available_dates + self.fully_booked_dates + self.unavailable_dates
        )


@dataclass(frozen=True)
class SlotConflict:
    """
    A proposed booking overlaps existing appointments.

    Returned as a value so callers can present "pick another time".
    """
    doctor_id: str
    date: date
    start_time: str
    duration_minutes: int
    conflicting_appointment_ids: tuple = ()

    def message(self) -> str:
        return (
            f"The {self.start_time} slot ({self.duration_minutes} min) on "
            f"{self.date.isoformat()} is already booked. Please pick another time."
        )
