"""
Tests for the in-memory clinic store and the bundled sample clinic.
"""

import asyncio
import json
from datetime import date

import pendulum
import pytest

from clinicslots.adapters.memory_store import InMemoryClinicStore
from clinicslots.config import SchedulingDefaults
from clinicslots.domain.exceptions import AppointmentNotFoundError, BookingCollisionError
from clinicslots.domain.models import Appointment, DatedSchedule, RecurringSchedule
from clinicslots.services.availability import AvailabilityService


class TestLoading:
    """Tests for loading clinic data."""

    def test_sample_doctors(self):
        store = InMemoryClinicStore.sample()

        doctors = {doctor.doctor_id: doctor for doctor in store.doctors()}

        assert set(doctors) == {"dr-ada", "dr-grace", "dr-alan"}
        assert doctors["dr-grace"].appointment_duration_minutes == 20
        assert doctors["dr-grace"].break_minutes == 10
        assert doctors["dr-alan"].appointment_duration_minutes == 30

    def test_defaults_apply_to_doctors_without_values(self):
        defaults = SchedulingDefaults(appointment_duration_minutes=45, break_minutes=5)
        store = InMemoryClinicStore.sample(defaults=defaults)

        alan = asyncio.run(store.get_doctor_config("dr-alan"))

        assert alan.appointment_duration_minutes == 45
        assert alan.break_minutes == 5

    def test_schedule_kinds(self):
        store = InMemoryClinicStore.sample()

        schedules = asyncio.run(store.get_schedules("dr-ada"))

        dated = [s for s in schedules if isinstance(s, DatedSchedule)]
        recurring = [s for s in schedules if isinstance(s, RecurringSchedule)]
        assert len(dated) == 1
        assert dated[0].date == date(2026, 11, 9)
        assert {s.day_of_week for s in recurring} == {0, 1, 2, 3, 4}

    def test_invalid_records_are_skipped(self, caplog):
        store = InMemoryClinicStore()
        data = {
            "doctors": [{"id": "dr-1"}, {"name": "No id"}],
            "schedules": [
                {"doctor_id": "dr-1", "day_of_week": "Funday", "start_time": "09:00", "end_time": "10:00"},
                {"doctor_id": "dr-1", "day_of_week": 0, "start_time": "09:00", "end_time": "10:00"},
            ],
            "leaves": [{"doctor_id": "dr-1", "start_date": "soon", "end_date": "2024-06-12"}],
            "appointments": [{"id": "a-1", "doctor_id": "dr-1", "date": "2024-13-01", "start_time": "09:00"}],
        }

        with caplog.at_level("WARNING"):
            store.load(data)

        assert [doctor.doctor_id for doctor in store.doctors()] == ["dr-1"]
        assert len(asyncio.run(store.get_schedules("dr-1"))) == 1
        assert asyncio.run(store.get_leaves("dr-1")) == []
        assert asyncio.run(store.get_appointments("dr-1")) == []
        assert "Skipping invalid schedule record" in caplog.text

    def test_override_flag_must_be_boolean(self, caplog):
        """A "false" string must not silently open a closed day."""
        store = InMemoryClinicStore()
        data = {
            "doctors": [{"id": "dr-1"}],
            "overrides": [
                {"doctor_id": "dr-1", "date": "2024-06-10", "is_available": "false"},
                {"doctor_id": "dr-1", "date": "2024-06-11", "is_available": False},
            ],
        }

        with caplog.at_level("WARNING"):
            store.load(data)

        overrides = asyncio.run(store.get_overrides_in_range("dr-1", date(2024, 6, 1), date(2024, 6, 30)))
        assert [o.date for o in overrides] == [date(2024, 6, 11)]
        assert "Skipping invalid override record" in caplog.text

    def test_doctor_durations_must_be_whole_minutes(self):
        store = InMemoryClinicStore()
        store.load({
            "doctors": [
                {"id": "dr-1", "appointment_duration_minutes": "30"},
                {"id": "dr-2", "break_minutes": -5},
                {"id": "dr-3", "appointment_duration_minutes": 20, "break_minutes": 0},
            ],
        })

        assert [doctor.doctor_id for doctor in store.doctors()] == ["dr-3"]

    def test_text_appointment_duration_does_not_break_availability(self):
        store = InMemoryClinicStore()
        store.load({
            "doctors": [{"id": "dr-1"}],
            "schedules": [{"doctor_id": "dr-1", "day_of_week": "Monday", "start_time": "09:00", "end_time": "10:00"}],
            "appointments": [
                {"id": "a-1", "doctor_id": "dr-1", "date": "2024-06-10", "start_time": "09:00", "duration_minutes": "30"},
            ],
        })
        service = AvailabilityService.from_store(
            store,
            timezone="Europe/Berlin",
            clock=lambda: pendulum.datetime(2024, 6, 1, 8, 0, tz="Europe/Berlin"),
        )

        result = asyncio.run(service.get_availability("dr-1", date(2024, 6, 10)))

        assert [slot.available for slot in result.available_slots] == [True, True]

    def test_from_json_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            InMemoryClinicStore.from_json(tmp_path / "missing.json")

    def test_from_json_invalid(self, tmp_path):
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")
        listing = tmp_path / "list.json"
        listing.write_text(json.dumps([1, 2]), encoding="utf-8")

        with pytest.raises(ValueError, match="Invalid JSON"):
            InMemoryClinicStore.from_json(broken)
        with pytest.raises(ValueError, match="object at the root"):
            InMemoryClinicStore.from_json(listing)


class TestQueries:
    """Tests for the read side."""

    def test_overrides(self):
        store = InMemoryClinicStore.sample()

        override = asyncio.run(store.get_override("dr-ada", date(2026, 11, 11)))
        in_range = asyncio.run(store.get_overrides_in_range("dr-ada", date(2026, 11, 1), date(2026, 11, 12)))

        assert override.reason == "Public holiday"
        assert [o.date for o in in_range] == [date(2026, 11, 11)]
        assert asyncio.run(store.get_override("dr-ada", date(2026, 11, 12))) is None

    def test_unknown_doctor(self):
        store = InMemoryClinicStore.sample()

        assert asyncio.run(store.get_doctor_config("dr-404")) is None
        assert asyncio.run(store.get_appointments("dr-404")) == []


class TestWrites:
    """Tests for the uniqueness backstop."""

    def _appointment(self, appointment_id="a-1", start_time="10:00", **kwargs):
        return Appointment(
            appointment_id=appointment_id,
            doctor_id="dr-1",
            date=date(2024, 6, 10),
            start_time=start_time,
            **kwargs,
        )

    def test_duplicate_id(self):
        store = InMemoryClinicStore()
        asyncio.run(store.add_appointment(self._appointment()))

        with pytest.raises(BookingCollisionError, match="already exists"):
            asyncio.run(store.add_appointment(self._appointment(start_time="12:00")))

    def test_same_start_time(self):
        """09:00 and 9:00:00 are the same slot."""
        store = InMemoryClinicStore()
        asyncio.run(store.add_appointment(self._appointment(start_time="09:00")))

        with pytest.raises(BookingCollisionError):
            asyncio.run(store.add_appointment(self._appointment("a-2", start_time="9:00:00")))

    def test_cancelled_appointments_do_not_collide(self):
        store = InMemoryClinicStore()
        asyncio.run(store.add_appointment(self._appointment(status="Cancelled")))

        stored = asyncio.run(store.add_appointment(self._appointment("a-2")))

        assert stored.appointment_id == "a-2"

    def test_update_unknown(self):
        store = InMemoryClinicStore()

        with pytest.raises(AppointmentNotFoundError):
            asyncio.run(store.update_appointment(self._appointment()))

    def test_update_onto_taken_slot(self):
        store = InMemoryClinicStore()
        asyncio.run(store.add_appointment(self._appointment("a-1", start_time="10:00")))
        asyncio.run(store.add_appointment(self._appointment("a-2", start_time="11:00")))

        with pytest.raises(BookingCollisionError):
            asyncio.run(store.update_appointment(self._appointment("a-2", start_time="10:00")))


class TestSampleClinic:
    """End-to-end checks against the bundled sample data."""

    def _service(self) -> AvailabilityService:
        return AvailabilityService.from_store(
            InMemoryClinicStore.sample(),
            timezone="Europe/Berlin",
            clock=lambda: pendulum.datetime(2026, 10, 19, 9, 0, tz="Europe/Berlin"),
        )

    def test_booked_monday(self):
        result = asyncio.run(self._service().get_availability("dr-ada", date(2026, 11, 2)))

        booked = [slot.time for slot in result.available_slots if not slot.available]
        assert len(result.available_slots) == 16
        assert booked == ["09:00", "10:00", "10:30"]

    def test_override_day_is_fully_booked(self):
        result = asyncio.run(self._service().get_availability("dr-ada", date(2026, 11, 13)))

        assert result.slot_duration_minutes == 15
        assert len(result.available_slots) == 8
        assert result.is_fully_booked

    def test_dated_schedule(self):
        result = asyncio.run(self._service().get_availability("dr-ada", date(2026, 11, 9)))

        assert result.available_slots[0].time == "07:00"
        assert len(result.available_slots) == 6

    def test_public_holiday(self):
        result = asyncio.run(self._service().get_availability("dr-ada", date(2026, 11, 11)))

        assert not result.has_schedule
        assert result.unavailable_reason == "Public holiday"

    def test_broken_schedule(self):
        result = asyncio.run(self._service().get_availability("dr-alan", date(2026, 11, 2)))

        assert result.has_schedule
        assert result.available_slots == []
        assert result.is_fully_booked

    def test_doctor_with_breaks(self):
        result = asyncio.run(self._service().get_availability("dr-grace", date(2026, 11, 3)))

        assert len(result.available_slots) == 8
        assert result.available_slots[1].time == "08:30"
        assert [slot.time for slot in result.available_slots if not slot.available] == ["08:00"]

    def test_leave_week(self):
        result = asyncio.run(
            self._service().get_available_dates("dr-ada", date(2026, 11, 16), date(2026, 11, 22))
        )

        assert result.available_dates == []
        assert result.fully_booked_dates == []
        assert len(result.unavailable_dates) == 7
