"""SQLAlchemy ORM models."""

from pulseconnect.db.models.appointments import Appointment
from pulseconnect.db.models.directory import Donor, Hospital
from pulseconnect.db.models.inventory import BloodUnitCounter, Donation
from pulseconnect.db.models.notifications import Notification
from pulseconnect.db.models.requests import BloodRequest, RequestIgnore

__all__ = [
    "Appointment",
    "BloodRequest",
    "BloodUnitCounter",
    "Donation",
    "Donor",
    "Hospital",
    "Notification",
    "RequestIgnore",
]
