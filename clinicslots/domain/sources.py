"""
Availability-source priority chain.

For a given date the first rule that produces a source wins:

    leave -> override -> dated schedule -> recurring schedule -> no schedule

Each source is a small frozen variant, so callers (and tests) can check which
rule decided a date without re-deriving it from nested conditionals.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Sequence, Tuple, Union

from .models import (
    AvailabilityOverride,
    DatedSchedule,
    LeaveRecord,
    RecurringSchedule,
    ScheduleEntry,
)
from .timeparse import TimeLike

LEAVE_REASON = "Doctor is on leave"
OVERRIDE_CLOSED_REASON = "Not available on this date"
NO_SCHEDULE_REASON = "No schedule for this day"


@dataclass(frozen=True)
class OnLeave:
    leave: LeaveRecord
    reason: str = LEAVE_REASON


@dataclass(frozen=True)
class OverrideClosed:
    override: AvailabilityOverride

    @property
    def reason(self) -> str:
        return self.override.reason or OVERRIDE_CLOSED_REASON


@dataclass(frozen=True)
class OverrideWindow:
    override: AvailabilityOverride

    @property
    def start_time(self) -> TimeLike:
        return self.override.start_time

    @property
    def end_time(self) -> TimeLike:
        return self.override.end_time


@dataclass(frozen=True)
class DatedWindow:
    schedule: DatedSchedule

    @property
    def start_time(self) -> TimeLike:
        return self.schedule.start_time

    @property
    def end_time(self) -> TimeLike:
        return self.schedule.end_time


@dataclass(frozen=True)
class RecurringWindow:
    schedule: RecurringSchedule

    @property
    def start_time(self) -> TimeLike:
        return self.schedule.start_time

    @property
    def end_time(self) -> TimeLike:
        return self.schedule.end_time


@dataclass(frozen=True)
class NoSchedule:
    reason: str = NO_SCHEDULE_REASON


AvailabilitySource = Union[
    OnLeave, OverrideClosed, OverrideWindow, DatedWindow, RecurringWindow, NoSchedule
]

# Sources that open a working window on the date.
WINDOW_SOURCES = (OverrideWindow, DatedWindow, RecurringWindow)


@dataclass(frozen=True)
class DayInputs:
    """Everything the priority chain looks at for a single date."""
    day: date
    leaves: Sequence[LeaveRecord]
    override: Optional[AvailabilityOverride]
    schedules: Sequence[ScheduleEntry]


Rule = Callable[[DayInputs], Optional[AvailabilitySource]]


def _leave_rule(inputs: DayInputs) -> Optional[AvailabilitySource]:
    for leave in inputs.leaves:
        if leave.covers(inputs.day):
            return OnLeave(leave=leave)
    return None


def _override_rule(inputs: DayInputs) -> Optional[AvailabilitySource]:
    override = inputs.override
    if override is None:
        return None
    if not override.is_available:
        return OverrideClosed(override=override)
    return OverrideWindow(override=override)


def _dated_schedule_rule(inputs: DayInputs) -> Optional[AvailabilitySource]:
    for schedule in inputs.schedules:
        if isinstance(schedule, DatedSchedule) and schedule.date == inputs.day:
            return DatedWindow(schedule=schedule)
    return None


def _recurring_schedule_rule(inputs: DayInputs) -> Optional[AvailabilitySource]:
    weekday = inputs.day.weekday()
    for schedule in inputs.schedules:
        if isinstance(schedule, RecurringSchedule) and schedule.day_of_week == weekday:
            return RecurringWindow(schedule=schedule)
    return None


SOURCE_RULES: Tuple[Rule, ...] = (
    _leave_rule,
    _override_rule,
    _dated_schedule_rule,
    _recurring_schedule_rule,
)


def resolve_source(
    day: date,
    leaves: Sequence[LeaveRecord],
    override: Optional[AvailabilityOverride],
    schedules: Sequence[ScheduleEntry],
) -> AvailabilitySource:
    """Return the highest-priority availability source for ``day``."""
    inputs = DayInputs(day=day, leaves=leaves, override=override, schedules=schedules)

    for rule in SOURCE_RULES:
        source = rule(inputs)
        if source is not None:
            return source

    return NoSchedule()


def matches_hospital(hospital_id: Optional[str], hospital_filter: Optional[str]) -> bool:
    """Entries without a hospital apply everywhere; no filter accepts everything."""
    if hospital_filter is None or hospital_id is None:
        return True
    return hospital_id == hospital_filter
