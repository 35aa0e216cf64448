"""Enum definitions for application constants."""

from pulseconnect.db.enums.appointments import (
    ACTIVE_APPOINTMENT_STATUSES,
    AppointmentStatus,
    DEFAULT_APPOINTMENT_STATUS,
)
from pulseconnect.db.enums.blood import BLOOD_GROUP_VALUES, BloodGroup, DonationKind
from pulseconnect.db.enums.donations import NotarizationStatus
from pulseconnect.db.enums.notifications import ActorRole, NotificationKind
from pulseconnect.db.enums.requests import (
    DEFAULT_REQUEST_STATUS,
    DONOR_BOUND_STATUSES,
    RequestStatus,
    Urgency,
    URGENCY_SEVERITY,
)

__all__ = [
    "ACTIVE_APPOINTMENT_STATUSES",
    "ActorRole",
    "AppointmentStatus",
    "BLOOD_GROUP_VALUES",
    "BloodGroup",
    "DEFAULT_APPOINTMENT_STATUS",
    "DEFAULT_REQUEST_STATUS",
    "DONOR_BOUND_STATUSES",
    "DonationKind",
    "NotarizationStatus",
    "NotificationKind",
    "RequestStatus",
    "Urgency",
    "URGENCY_SEVERITY",
]
