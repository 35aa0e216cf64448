"""Appointment service - business logic for donation scheduling.

Handles:
- Date window validation and best-effort donor overlap checks
- Booking (standalone, or tied to an accepted request)
- Confirmation, completion, no-show and cancellation
- Reminder fan-out
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import NamedTuple
from uuid import UUID
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pulseconnect.core.config import settings
from pulseconnect.core.structured_logging import build_log_context
from pulseconnect.db.base import utcnow
from pulseconnect.db.enums import (
    ACTIVE_APPOINTMENT_STATUSES,
    AppointmentStatus,
    DonationKind,
    NotarizationStatus,
    RequestStatus,
)
from pulseconnect.db.models import Appointment, BloodRequest, Donation, Donor, Hospital
from pulseconnect.services import donation_events, inventory_service
from pulseconnect.services.errors import (
    InvalidTransition,
    NotFound,
    SlotConflict,
    ValidationFailed,
)
from pulseconnect.services.store import guarded
from pulseconnect.services.transitions import compare_and_set, current_status

logger = logging.getLogger(__name__)


class CompletionResult(NamedTuple):
    """Outcome of mark_completed."""
    appointment: Appointment
    donation: Donation | None
    applied: bool  # False when the appointment was already completed


# =============================================================================
# Validation
# =============================================================================

def today() -> date:
    """Current date in the configured zone."""
    return datetime.now(ZoneInfo(settings.TIMEZONE)).date()


def validate_schedule_date(day: date, reference: date | None = None) -> None:
    """Reject past dates and dates beyond the forward booking window."""
    if not isinstance(day, date):
        raise ValidationFailed("scheduled_date is required")
    if isinstance(day, datetime):
        day = day.date()
    reference = reference or today()
    if day < reference:
        raise ValidationFailed("Appointment date cannot be in the past")
    max_days = settings.APPOINTMENT_MAX_DAYS_AHEAD
    if day > reference + timedelta(days=max_days):
        raise ValidationFailed(
            f"Appointment date must be within {max_days} days from today"
        )


def _validate_kind_and_units(donation_kind: str, units: int) -> None:
    if donation_kind not in {kind.value for kind in DonationKind}:
        raise ValidationFailed(f"Unsupported donation kind: {donation_kind!r}")
    if isinstance(units, bool) or not isinstance(units, int) or units <= 0:
        raise ValidationFailed("units must be a positive integer")


def find_conflicting_appointment(
    db: Session,
    donor_id: UUID,
    day: date,
    exclude_appointment_id: UUID | None = None,
) -> Appointment | None:
    """
    Non-cancelled appointment for the same donor within the buffer window.

    Advisory only: two concurrent bookings can both pass this check.
    """
    window = timedelta(days=settings.APPOINTMENT_CONFLICT_WINDOW_DAYS)
    query = db.query(Appointment).filter(
        Appointment.donor_id == donor_id,
        Appointment.status != AppointmentStatus.CANCELLED.value,
        Appointment.scheduled_date >= day - window,
        Appointment.scheduled_date <= day + window,
    )
    if exclude_appointment_id:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query.first()


# =============================================================================
# Booking
# =============================================================================

def schedule(
    db: Session,
    *,
    donor_id: UUID,
    hospital_id: UUID,
    scheduled_date: date,
    scheduled_time: time | None = None,
    donation_kind: str = DonationKind.BLOOD.value,
    request_id: UUID | None = None,
    units: int = 1,
    notes: str | None = None,
    timeout: float | None = None,
) -> Appointment:
    """
    Book a donation appointment.

    With request_id the request must be accepted by this donor; it moves to
    scheduled in the same transaction that inserts the appointment.
    """
    validate_schedule_date(scheduled_date)
    _validate_kind_and_units(donation_kind, units)

    with guarded(db, timeout):
        if not db.get(Hospital, hospital_id):
            raise NotFound(f"Hospital {hospital_id} not found")
        if not db.get(Donor, donor_id):
            raise NotFound(f"Donor {donor_id} not found")

        if request_id:
            request = db.get(BloodRequest, request_id, populate_existing=True)
            if not request or request.hospital_id != hospital_id:
                raise NotFound(f"Request {request_id} not found")
            if request.status != RequestStatus.ACCEPTED.value:
                raise InvalidTransition(request.status, "schedule")
            if request.donor_id != donor_id:
                raise ValidationFailed("Appointment donor must be the donor who accepted the request")

        conflict = find_conflicting_appointment(db, donor_id, scheduled_date)
        if conflict:
            raise SlotConflict(
                f"Donor already has an appointment on {conflict.scheduled_date.isoformat()}"
            )

        if request_id:
            won = compare_and_set(
                db,
                BloodRequest,
                request_id,
                [RequestStatus.ACCEPTED],
                conditions=[BloodRequest.donor_id == donor_id],
                status=RequestStatus.SCHEDULED,
            )
            if not won:
                raise InvalidTransition(
                    current_status(db, BloodRequest, request_id) or "unknown", "schedule"
                )

        appointment = Appointment(
            request_id=request_id,
            donor_id=donor_id,
            hospital_id=hospital_id,
            scheduled_date=scheduled_date,
            scheduled_time=scheduled_time,
            donation_kind=donation_kind,
            units=units,
            status=AppointmentStatus.SCHEDULED.value,
            notes=notes,
        )
        db.add(appointment)
        db.commit()

    db.refresh(appointment)
    logger.info(
        "Appointment scheduled",
        extra=build_log_context(
            appointment_id=appointment.id,
            request_id=request_id,
            hospital_id=hospital_id,
            operation="schedule",
        ),
    )
    donation_events.appointment_scheduled(db, appointment)
    return appointment


# =============================================================================
# Transitions
# =============================================================================

def _release_request(db: Session, appointment_id: UUID) -> None:
    """
    Hand a linked request back to accepted so the hospital can rebook the
    same donor. Does not commit.
    """
    row = db.execute(
        select(Appointment.request_id, Appointment.donor_id).where(
            Appointment.id == appointment_id
        )
    ).one()
    if row.request_id is None:
        return
    if compare_and_set(
        db,
        BloodRequest,
        row.request_id,
        [RequestStatus.SCHEDULED],
        conditions=[BloodRequest.donor_id == row.donor_id],
        status=RequestStatus.ACCEPTED,
    ):
        logger.info(
            "Request returned to accepted",
            extra=build_log_context(
                appointment_id=appointment_id,
                request_id=row.request_id,
                operation="release",
            ),
        )


def _transition(
    db: Session,
    appointment_id: UUID,
    target: AppointmentStatus,
    op: str,
    timeout: float | None,
) -> tuple[Appointment, bool]:
    """CAS an active appointment to target. Repeating a done transition is a no-op."""
    with guarded(db, timeout):
        won = compare_and_set(
            db, Appointment, appointment_id, ACTIVE_APPOINTMENT_STATUSES, status=target
        )
        if not won:
            status = current_status(db, Appointment, appointment_id)
            if status is None:
                raise NotFound(f"Appointment {appointment_id} not found")
            if status != target.value:
                raise InvalidTransition(status, op)
        else:
            _release_request(db, appointment_id)
        db.commit()

    appointment = db.get(Appointment, appointment_id, populate_existing=True)
    return appointment, won


def confirm(db: Session, appointment_id: UUID, timeout: float | None = None) -> Appointment:
    """Donor confirms attendance: scheduled → confirmed."""
    with guarded(db, timeout):
        won = compare_and_set(
            db,
            Appointment,
            appointment_id,
            [AppointmentStatus.SCHEDULED],
            status=AppointmentStatus.CONFIRMED,
        )
        if not won:
            status = current_status(db, Appointment, appointment_id)
            if status is None:
                raise NotFound(f"Appointment {appointment_id} not found")
            if status != AppointmentStatus.CONFIRMED.value:
                raise InvalidTransition(status, "confirm")
        db.commit()

    appointment = db.get(Appointment, appointment_id, populate_existing=True)
    if won:
        donation_events.appointment_confirmed(db, appointment)
    return appointment


def cancel(db: Session, appointment_id: UUID, timeout: float | None = None) -> Appointment:
    """Cancel an active appointment."""
    appointment, won = _transition(
        db, appointment_id, AppointmentStatus.CANCELLED, "cancel", timeout
    )
    if won:
        donation_events.appointment_cancelled(db, appointment)
    return appointment


def mark_no_show(db: Session, appointment_id: UUID, timeout: float | None = None) -> Appointment:
    """Donor didn't attend."""
    appointment, won = _transition(
        db, appointment_id, AppointmentStatus.NO_SHOW, "mark no-show", timeout
    )
    if won:
        donation_events.appointment_no_show(db, appointment)
    return appointment


def cancel_for_request(db: Session, request_id: UUID) -> list[UUID]:
    """
    Cancel active appointments tied to a request. Does not commit.

    Used by request cancellation inside its own transaction.
    """
    result = db.execute(
        update(Appointment)
        .where(
            Appointment.request_id == request_id,
            Appointment.status.in_([s.value for s in ACTIVE_APPOINTMENT_STATUSES]),
        )
        .values(status=AppointmentStatus.CANCELLED.value, updated_at=utcnow())
        .returning(Appointment.id)
        .execution_options(synchronize_session=False)
    )
    return list(result.scalars().all())


def mark_completed(
    db: Session,
    appointment_id: UUID,
    timeout: float | None = None,
) -> CompletionResult:
    """
    Record the donation: the only path that adds stock.

    In one transaction: appointment → completed, inventory increment for the
    donor's group, a Donation row, the donor's last donation date, and the
    linked request scheduled → completed. A retry after success changes
    nothing, so stock is incremented exactly once.
    """
    with guarded(db, timeout):
        won = compare_and_set(
            db,
            Appointment,
            appointment_id,
            ACTIVE_APPOINTMENT_STATUSES,
            status=AppointmentStatus.COMPLETED,
        )
        if not won:
            status = current_status(db, Appointment, appointment_id)
            if status is None:
                raise NotFound(f"Appointment {appointment_id} not found")
            if status != AppointmentStatus.COMPLETED.value:
                raise InvalidTransition(status, "complete")
            db.rollback()
            appointment = db.get(Appointment, appointment_id, populate_existing=True)
            return CompletionResult(appointment=appointment, donation=None, applied=False)

        appointment = db.get(Appointment, appointment_id, populate_existing=True)
        donor = db.get(Donor, appointment.donor_id)
        donated_on = today()

        inventory_service.on_donation_completed(
            db,
            hospital_id=appointment.hospital_id,
            blood_group=donor.blood_group,
            units=appointment.units,
            donation_kind=appointment.donation_kind,
        )

        donation = Donation(
            hospital_id=appointment.hospital_id,
            donor_id=appointment.donor_id,
            appointment_id=appointment.id,
            request_id=appointment.request_id,
            donation_kind=appointment.donation_kind,
            blood_group=donor.blood_group,
            units=appointment.units,
            donated_on=donated_on,
            notarization_status=(
                NotarizationStatus.PENDING.value
                if settings.notarization_enabled
                else NotarizationStatus.SKIPPED.value
            ),
        )
        db.add(donation)

        db.execute(
            update(Donor)
            .where(Donor.id == appointment.donor_id)
            .values(last_donation_date=donated_on, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

        if appointment.request_id:
            compare_and_set(
                db,
                BloodRequest,
                appointment.request_id,
                [RequestStatus.SCHEDULED],
                status=RequestStatus.COMPLETED,
            )
        db.commit()

    db.refresh(appointment)
    db.refresh(donation)
    logger.info(
        "Donation completed",
        extra=build_log_context(
            appointment_id=appointment.id,
            request_id=appointment.request_id,
            hospital_id=appointment.hospital_id,
            operation="complete",
        ),
    )
    donation_events.donation_completed(db, appointment)
    return CompletionResult(appointment=appointment, donation=donation, applied=True)


# =============================================================================
# Reminders
# =============================================================================

def send_reminders(
    db: Session,
    on_date: date | None = None,
    timeout: float | None = None,
) -> int:
    """Send reminders for active appointments on a date (default: tomorrow)."""
    on_date = on_date or today() + timedelta(days=1)
    with guarded(db, timeout):
        appointments = (
            db.query(Appointment)
            .filter(
                Appointment.scheduled_date == on_date,
                Appointment.status.in_([s.value for s in ACTIVE_APPOINTMENT_STATUSES]),
            )
            .order_by(Appointment.scheduled_time)
            .all()
        )
    for appointment in appointments:
        donation_events.appointment_reminder(db, appointment)
    return len(appointments)


# =============================================================================
# Reads
# =============================================================================

def get_appointment(
    db: Session,
    appointment_id: UUID,
    timeout: float | None = None,
) -> Appointment:
    with guarded(db, timeout):
        appointment = db.get(Appointment, appointment_id)
    if not appointment:
        raise NotFound(f"Appointment {appointment_id} not found")
    return appointment


def list_appointments(
    db: Session,
    hospital_id: UUID | None = None,
    donor_id: UUID | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
    timeout: float | None = None,
) -> list[Appointment]:
    """List appointments by hospital and/or donor, soonest first."""
    with guarded(db, timeout):
        query = db.query(Appointment)
        if hospital_id:
            query = query.filter(Appointment.hospital_id == hospital_id)
        if donor_id:
            query = query.filter(Appointment.donor_id == donor_id)
        if status:
            query = query.filter(Appointment.status == status)
        return (
            query.order_by(Appointment.scheduled_date, Appointment.scheduled_time)
            .offset(offset)
            .limit(limit)
            .all()
        )
