"""Blood request enums."""

from enum import Enum


class RequestStatus(str, Enum):
    """
    Request lifecycle status.

    Flow: pending → accepted → scheduled → completed
              ↘ ignored     ↘ cancelled  ↘ cancelled
    cancelled → pending only through an explicit reopen.
    """

    PENDING = "pending"  # Waiting for a donor
    ACCEPTED = "accepted"  # Bound to exactly one donor
    IGNORED = "ignored"  # Deactivated by the hospital
    SCHEDULED = "scheduled"  # Appointment booked
    COMPLETED = "completed"  # Donation taken
    CANCELLED = "cancelled"  # Withdrawn after acceptance


class Urgency(str, Enum):
    """Request urgency, ordered by severity."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    EMERGENCY = "Emergency"

    @property
    def severity(self) -> int:
        return URGENCY_SEVERITY[self]


URGENCY_SEVERITY = {
    Urgency.LOW: 0,
    Urgency.MEDIUM: 1,
    Urgency.HIGH: 2,
    Urgency.EMERGENCY: 3,
}

# Statuses in which a donor is bound to the request
DONOR_BOUND_STATUSES = (
    RequestStatus.ACCEPTED,
    RequestStatus.SCHEDULED,
    RequestStatus.COMPLETED,
)

DEFAULT_REQUEST_STATUS = RequestStatus.PENDING
