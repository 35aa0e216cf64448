"""Donation lifecycle events (notification side-effect dispatch).

Every function here runs after the triggering transition has committed.
Delivery is at-least-once: transient store failures are retried with
backoff, and a final failure is logged and suppressed so it never fails or
rolls back the transition that produced the event.
"""

from __future__ import annotations

import functools
import logging
from typing import Callable
from uuid import UUID

from sqlalchemy.orm import Session

from pulseconnect.core.config import settings
from pulseconnect.core.structured_logging import build_log_context
from pulseconnect.db.enums import ActorRole, NotificationKind
from pulseconnect.db.models import Appointment, BloodRequest
from pulseconnect.services import notification_service
from pulseconnect.services.store import with_retries

logger = logging.getLogger(__name__)


def _event(fn: Callable[..., None]) -> Callable[..., None]:
    """Never let an event escape into the caller that already committed."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs) -> None:
        try:
            fn(*args, **kwargs)
        except Exception:
            logger.exception("Event handler %s failed", fn.__name__)

    return wrapper


def _when(appointment: Appointment) -> str:
    when = appointment.scheduled_date.strftime("%B %d, %Y")
    if appointment.scheduled_time:
        when += f" at {appointment.scheduled_time.strftime('%H:%M')}"
    return when


def _dispatch(
    db: Session,
    *,
    user_id: UUID,
    role: ActorRole,
    kind: NotificationKind,
    title: str,
    message: str,
    entity_type: str,
    entity_id: UUID,
) -> None:
    try:
        with_retries(
            lambda: notification_service.notify(
                db,
                user_id=user_id,
                role=role,
                kind=kind,
                title=title,
                message=message,
                entity_type=entity_type,
                entity_id=entity_id,
            ),
            attempts=settings.NOTIFICATION_RETRY_ATTEMPTS,
        )
    except Exception:
        logger.exception(
            "Notification dispatch failed",
            extra=build_log_context(
                actor_id=user_id, role=role.value, operation=kind.value
            ),
        )


# =============================================================================
# Request events
# =============================================================================


@_event
def request_accepted(db: Session, request: BloodRequest) -> None:
    """Tell the hospital a donor took its request."""
    _dispatch(
        db,
        user_id=request.hospital_id,
        role=ActorRole.HOSPITAL,
        kind=NotificationKind.REQUEST_UPDATE,
        title="Request Accepted",
        message=(
            f"Your {request.donation_kind} request for {request.blood_group} "
            f"({request.units_needed} unit(s)) has been accepted by a donor."
        ),
        entity_type="request",
        entity_id=request.id,
    )


@_event
def request_cancelled(
    db: Session,
    request: BloodRequest,
    released_donor_id: UUID | None,
) -> None:
    """Tell the released donor the hospital withdrew the request."""
    if not released_donor_id:
        return
    _dispatch(
        db,
        user_id=released_donor_id,
        role=ActorRole.DONOR,
        kind=NotificationKind.REQUEST_UPDATE,
        title="Request Cancelled",
        message=(
            f"The {request.donation_kind} request for {request.blood_group} you accepted "
            "was cancelled by the hospital. Thank you for offering to help."
        ),
        entity_type="request",
        entity_id=request.id,
    )


# =============================================================================
# Appointment events
# =============================================================================


@_event
def appointment_scheduled(db: Session, appointment: Appointment) -> None:
    """Confirm the booking to the donor."""
    _dispatch(
        db,
        user_id=appointment.donor_id,
        role=ActorRole.DONOR,
        kind=NotificationKind.APPOINTMENT_CONFIRMATION,
        title="Appointment Confirmation",
        message=(
            f"Your {appointment.donation_kind} donation appointment has been "
            f"scheduled for {_when(appointment)}."
        ),
        entity_type="appointment",
        entity_id=appointment.id,
    )


@_event
def appointment_confirmed(db: Session, appointment: Appointment) -> None:
    """Tell the hospital the donor confirmed attendance."""
    _dispatch(
        db,
        user_id=appointment.hospital_id,
        role=ActorRole.HOSPITAL,
        kind=NotificationKind.APPOINTMENT_CONFIRMATION,
        title="Donor Confirmed",
        message=f"The donor confirmed the appointment on {_when(appointment)}.",
        entity_type="appointment",
        entity_id=appointment.id,
    )


@_event
def appointment_cancelled(db: Session, appointment: Appointment) -> None:
    _dispatch(
        db,
        user_id=appointment.donor_id,
        role=ActorRole.DONOR,
        kind=NotificationKind.GENERAL,
        title="Appointment Cancelled",
        message=f"Your donation appointment on {_when(appointment)} was cancelled.",
        entity_type="appointment",
        entity_id=appointment.id,
    )


@_event
def appointment_no_show(db: Session, appointment: Appointment) -> None:
    _dispatch(
        db,
        user_id=appointment.donor_id,
        role=ActorRole.DONOR,
        kind=NotificationKind.GENERAL,
        title="Missed Appointment",
        message=(
            f"You were marked as not attending the appointment on {_when(appointment)}. "
            "Contact the hospital to book a new one."
        ),
        entity_type="appointment",
        entity_id=appointment.id,
    )


@_event
def appointment_reminder(db: Session, appointment: Appointment) -> None:
    _dispatch(
        db,
        user_id=appointment.donor_id,
        role=ActorRole.DONOR,
        kind=NotificationKind.APPOINTMENT_REMINDER,
        title="Appointment Reminder",
        message=f"Reminder: your donation appointment is on {_when(appointment)}.",
        entity_type="appointment",
        entity_id=appointment.id,
    )


@_event
def donation_completed(db: Session, appointment: Appointment) -> None:
    """Thank the donor; update the hospital when the donation closed a request."""
    _dispatch(
        db,
        user_id=appointment.donor_id,
        role=ActorRole.DONOR,
        kind=NotificationKind.GENERAL,
        title="Thank You",
        message=f"Your {appointment.donation_kind} donation was recorded. Thank you!",
        entity_type="appointment",
        entity_id=appointment.id,
    )
    if appointment.request_id:
        _dispatch(
            db,
            user_id=appointment.hospital_id,
            role=ActorRole.HOSPITAL,
            kind=NotificationKind.REQUEST_UPDATE,
            title="Request Completed",
            message=f"The donation for your request was completed ({appointment.units} unit(s)).",
            entity_type="request",
            entity_id=appointment.request_id,
        )
