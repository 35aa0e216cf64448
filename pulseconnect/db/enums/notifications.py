"""Notification-related enums."""

from enum import Enum


class NotificationKind(str, Enum):
    """Types of in-app notifications."""

    APPOINTMENT_CONFIRMATION = "appointment_confirmation"
    APPOINTMENT_REMINDER = "appointment_reminder"
    REQUEST_UPDATE = "request_update"
    GENERAL = "general"


class ActorRole(str, Enum):
    """Who a notification (or an action) belongs to."""

    DONOR = "donor"
    HOSPITAL = "hospital"
