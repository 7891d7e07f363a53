"""
Tests for the availability-source priority chain.
"""

from datetime import date

from clinicslots.domain.models import (
    AvailabilityOverride,
    DatedSchedule,
    LeaveRecord,
    RecurringSchedule,
)
from clinicslots.domain.sources import (
    DatedWindow,
    NoSchedule,
    OnLeave,
    OverrideClosed,
    OverrideWindow,
    RecurringWindow,
    matches_hospital,
    resolve_source,
)

MONDAY = date(2024, 6, 10)

RECURRING = RecurringSchedule(day_of_week=0, start_time="09:00", end_time="17:00")
DATED = DatedSchedule(date=MONDAY, start_time="07:00", end_time="10:00")
OPEN_OVERRIDE = AvailabilityOverride(date=MONDAY, is_available=True, start_time="14:00", end_time="16:00")
CLOSED_OVERRIDE = AvailabilityOverride(date=MONDAY, is_available=False)
LEAVE = LeaveRecord(start_date=date(2024, 6, 9), end_date=date(2024, 6, 11), reason="Conference")


class TestResolveSource:
    """Tests for resolve_source."""

    def test_leave_beats_everything(self):
        source = resolve_source(MONDAY, [LEAVE], OPEN_OVERRIDE, [DATED, RECURRING])

        assert isinstance(source, OnLeave)
        assert source.reason == "Doctor is on leave"

    def test_override_beats_schedules(self):
        source = resolve_source(MONDAY, [], OPEN_OVERRIDE, [DATED, RECURRING])

        assert isinstance(source, OverrideWindow)
        assert source.start_time == "14:00"

    def test_closed_override_default_reason(self):
        source = resolve_source(MONDAY, [], CLOSED_OVERRIDE, [RECURRING])

        assert isinstance(source, OverrideClosed)
        assert source.reason == "Not available on this date"

    def test_closed_override_own_reason(self):
        override = AvailabilityOverride(date=MONDAY, is_available=False, reason="Public holiday")
        source = resolve_source(MONDAY, [], override, [RECURRING])

        assert source.reason == "Public holiday"

    def test_dated_beats_recurring(self):
        source = resolve_source(MONDAY, [], None, [RECURRING, DATED])

        assert isinstance(source, DatedWindow)
        assert source.start_time == "07:00"

    def test_recurring_matches_weekday(self):
        source = resolve_source(MONDAY, [], None, [RECURRING])

        assert isinstance(source, RecurringWindow)
        assert source.end_time == "17:00"

    def test_no_schedule(self):
        tuesday = date(2024, 6, 11)
        source = resolve_source(tuesday, [], None, [RECURRING, DATED])

        assert source == NoSchedule()
        assert source.reason == "No schedule for this day"

    def test_leave_outside_range_is_ignored(self):
        later = LeaveRecord(start_date=date(2024, 7, 1), end_date=date(2024, 7, 5))
        source = resolve_source(MONDAY, [later], None, [RECURRING])

        assert isinstance(source, RecurringWindow)


class TestMatchesHospital:
    """Tests for hospital scoping."""

    def test_no_filter_accepts_everything(self):
        assert matches_hospital("h-1", None)
        assert matches_hospital(None, None)

    def test_unscoped_entries_apply_everywhere(self):
        assert matches_hospital(None, "h-1")

    def test_filter(self):
        assert matches_hospital("h-1", "h-1")
        assert not matches_hospital("h-2", "h-1")
