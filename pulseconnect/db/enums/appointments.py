"""Appointment enums."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """
    Appointment lifecycle status.

    Flow: scheduled → confirmed → completed
              ↘ cancelled  ↘ cancelled
              ↘ no_show    ↘ no_show
    """

    SCHEDULED = "scheduled"  # Booked by the hospital
    CONFIRMED = "confirmed"  # Donor confirmed attendance
    COMPLETED = "completed"  # Donation took place
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"  # Donor didn't show up


ACTIVE_APPOINTMENT_STATUSES = (
    AppointmentStatus.SCHEDULED,
    AppointmentStatus.CONFIRMED,
)

DEFAULT_APPOINTMENT_STATUS = AppointmentStatus.SCHEDULED
