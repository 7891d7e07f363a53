"""
Domain-specific exception hierarchy for the scheduling engine.
"""


class SchedulingError(Exception):
    """Base class for all engine-level errors."""


class DoctorNotFoundError(SchedulingError):
    """Raised when a doctor's configuration cannot be found."""

    def __init__(self, doctor_id: str):
        self.doctor_id = doctor_id
        super().__init__(f"Doctor not found: {doctor_id}")


class MalformedTimeDataError(SchedulingError, ValueError):
    """Raised when a wall-clock time string cannot be parsed."""


class AppointmentNotFoundError(SchedulingError):
    """Raised when an appointment to update or cancel does not exist."""


class BookingCollisionError(SchedulingError):
    """Raised by storage when a write violates its booking uniqueness guarantee."""
