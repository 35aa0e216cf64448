"""Request service - blood request lifecycle.

States: pending → accepted → scheduled → completed, with ignored (hospital
deactivation) and cancelled (withdrawn after acceptance; reopenable).

Every transition is a conditional UPDATE on the expected prior status, so
concurrent callers can never both win. accept is the only exclusive race
that callers are expected to hit routinely.
"""

import logging
from datetime import date, time
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pulseconnect.core.structured_logging import build_log_context
from pulseconnect.db.enums import (
    ACTIVE_APPOINTMENT_STATUSES,
    BLOOD_GROUP_VALUES,
    DONOR_BOUND_STATUSES,
    DonationKind,
    RequestStatus,
    Urgency,
)
from pulseconnect.db.models import (
    Appointment,
    BloodRequest,
    Donor,
    Hospital,
    RequestIgnore,
)
from pulseconnect.services import appointment_service, donation_events
from pulseconnect.services.compatibility_service import (
    can_donate,
    compatible_donor_groups,
)
from pulseconnect.services.errors import (
    AlreadyResolved,
    InvalidTransition,
    NotFound,
    ValidationFailed,
)
from pulseconnect.services.store import guarded
from pulseconnect.services.transitions import compare_and_set, current_status

logger = logging.getLogger(__name__)


def _log(request_id: UUID, operation: str, actor_id: UUID | None = None, role: str | None = None) -> None:
    logger.info(
        "Request %s", operation,
        extra=build_log_context(
            actor_id=actor_id, role=role, request_id=request_id, operation=operation
        ),
    )


def _reload(db: Session, request_id: UUID) -> BloodRequest:
    request = db.get(BloodRequest, request_id, populate_existing=True)
    if not request:
        raise NotFound(f"Request {request_id} not found")
    return request


# =============================================================================
# Create
# =============================================================================

def create_request(
    db: Session,
    hospital_id: UUID,
    *,
    blood_group: str,
    units_needed: int,
    patient_name: str,
    donation_kind: str = DonationKind.BLOOD.value,
    urgency: str = Urgency.MEDIUM.value,
    patient_age: int | None = None,
    patient_gender: str | None = None,
    patient_condition: str | None = None,
    notes: str | None = None,
    location: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
    timeout: float | None = None,
) -> BloodRequest:
    """Insert a pending request for a hospital."""
    if blood_group not in BLOOD_GROUP_VALUES:
        raise ValidationFailed(f"Unsupported blood group: {blood_group!r}")
    if donation_kind not in {kind.value for kind in DonationKind}:
        raise ValidationFailed(f"Unsupported donation kind: {donation_kind!r}")
    if urgency not in {level.value for level in Urgency}:
        raise ValidationFailed(f"Unsupported urgency: {urgency!r}")
    if isinstance(units_needed, bool) or not isinstance(units_needed, int) or units_needed <= 0:
        raise ValidationFailed("units_needed must be a positive integer")
    if not patient_name or not patient_name.strip():
        raise ValidationFailed("patient_name is required")
    if (latitude is None) != (longitude is None):
        raise ValidationFailed("latitude and longitude must be given together")

    with guarded(db, timeout):
        hospital = db.get(Hospital, hospital_id)
        if not hospital or not hospital.is_active:
            raise NotFound(f"Hospital {hospital_id} not found")

        request = BloodRequest(
            hospital_id=hospital_id,
            donation_kind=donation_kind,
            blood_group=blood_group,
            units_needed=units_needed,
            urgency=urgency,
            patient_name=patient_name.strip(),
            patient_age=patient_age,
            patient_gender=patient_gender,
            patient_condition=patient_condition,
            notes=notes,
            location=location,
            # Fall back to the hospital position for distance ranking
            latitude=latitude if latitude is not None else hospital.latitude,
            longitude=longitude if longitude is not None else hospital.longitude,
            status=RequestStatus.PENDING.value,
        )
        db.add(request)
        db.commit()

    db.refresh(request)
    _log(request.id, "create", actor_id=hospital_id, role="hospital")
    return request


# =============================================================================
# Donor actions
# =============================================================================

def accept(
    db: Session,
    request_id: UUID,
    donor_id: UUID,
    timeout: float | None = None,
) -> BloodRequest:
    """
    Bind a donor to a pending request. Exactly one concurrent caller wins.

    Raises:
        AlreadyResolved: another donor already holds the request
        InvalidTransition: the request is ignored or cancelled
        ValidationFailed: donor unavailable or incompatible
        NotFound: request or donor missing
    """
    with guarded(db, timeout):
        donor = db.get(Donor, donor_id)
        if not donor:
            raise NotFound(f"Donor {donor_id} not found")
        if not donor.is_available:
            raise ValidationFailed("Donor is not available")

        recipient_group = db.execute(
            select(BloodRequest.blood_group).where(BloodRequest.id == request_id)
        ).scalar_one_or_none()
        if recipient_group is None:
            raise NotFound(f"Request {request_id} not found")
        if not can_donate(donor.blood_group, recipient_group):
            raise ValidationFailed(
                f"Donor group {donor.blood_group} cannot give to {recipient_group}"
            )

        won = compare_and_set(
            db,
            BloodRequest,
            request_id,
            [RequestStatus.PENDING],
            donor_id=donor_id,
            status=RequestStatus.ACCEPTED,
        )
        if not won:
            status = current_status(db, BloodRequest, request_id)
            if status is None:
                raise NotFound(f"Request {request_id} not found")
            if status in {s.value for s in DONOR_BOUND_STATUSES}:
                raise AlreadyResolved("Request already resolved")
            raise InvalidTransition(status, "accept")
        db.commit()

    request = _reload(db, request_id)
    _log(request_id, "accept", actor_id=donor_id, role="donor")
    donation_events.request_accepted(db, request)
    return request


def ignore(
    db: Session,
    request_id: UUID,
    donor_id: UUID,
    timeout: float | None = None,
) -> None:
    """
    Hide a request from one donor's feed.

    Idempotent, and a no-op once the request left pending. The shared status
    never changes.
    """
    with guarded(db, timeout):
        status = current_status(db, BloodRequest, request_id)
        if status is None:
            raise NotFound(f"Request {request_id} not found")
        if status != RequestStatus.PENDING.value:
            return

        already = db.execute(
            select(RequestIgnore.id).where(
                RequestIgnore.request_id == request_id,
                RequestIgnore.donor_id == donor_id,
            )
        ).first()
        if already:
            return

        db.add(RequestIgnore(request_id=request_id, donor_id=donor_id))
        try:
            db.commit()
        except IntegrityError:
            # Lost a race with the same donor's other ignore
            db.rollback()
            return

    _log(request_id, "ignore", actor_id=donor_id, role="donor")


# =============================================================================
# Hospital actions
# =============================================================================

def _hospital_transition(
    db: Session,
    request_id: UUID,
    hospital_id: UUID | None,
    expected: list[RequestStatus],
    target: RequestStatus,
    op: str,
    timeout: float | None,
) -> BloodRequest:
    with guarded(db, timeout):
        conditions = []
        if hospital_id:
            conditions.append(BloodRequest.hospital_id == hospital_id)
        won = compare_and_set(
            db, BloodRequest, request_id, expected, conditions=conditions, status=target
        )
        if not won:
            status = current_status(db, BloodRequest, request_id)
            owner = db.execute(
                select(BloodRequest.hospital_id).where(BloodRequest.id == request_id)
            ).scalar_one_or_none()
            if status is None or (hospital_id and owner != hospital_id):
                raise NotFound(f"Request {request_id} not found")
            raise InvalidTransition(status, op)
        db.commit()

    _log(request_id, op, actor_id=hospital_id, role="hospital")
    return _reload(db, request_id)


def deactivate(
    db: Session,
    request_id: UUID,
    hospital_id: UUID | None = None,
    timeout: float | None = None,
) -> BloodRequest:
    """Hospital takes a pending request off the board: pending → ignored."""
    return _hospital_transition(
        db, request_id, hospital_id,
        [RequestStatus.PENDING], RequestStatus.IGNORED, "deactivate", timeout,
    )


def reopen(
    db: Session,
    request_id: UUID,
    hospital_id: UUID | None = None,
    timeout: float | None = None,
) -> BloodRequest:
    """Put a cancelled request back on the board: cancelled → pending."""
    return _hospital_transition(
        db, request_id, hospital_id,
        [RequestStatus.CANCELLED], RequestStatus.PENDING, "reopen", timeout,
    )


def schedule(
    db: Session,
    request_id: UUID,
    *,
    scheduled_date: date,
    scheduled_time: time | None = None,
    hospital_id: UUID | None = None,
    units: int | None = None,
    notes: str | None = None,
    timeout: float | None = None,
) -> Appointment:
    """
    Book the accepted donor: accepted → scheduled plus a new appointment.

    The appointment inherits donor, hospital and donation kind from the
    request.
    """
    with guarded(db, timeout):
        request = db.get(BloodRequest, request_id, populate_existing=True)
        if not request or (hospital_id and request.hospital_id != hospital_id):
            raise NotFound(f"Request {request_id} not found")
        if request.status != RequestStatus.ACCEPTED.value:
            raise InvalidTransition(request.status, "schedule")

    return appointment_service.schedule(
        db,
        donor_id=request.donor_id,
        hospital_id=request.hospital_id,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        donation_kind=request.donation_kind,
        request_id=request.id,
        units=units or request.units_needed,
        notes=notes,
        timeout=timeout,
    )


def cancel(
    db: Session,
    request_id: UUID,
    hospital_id: UUID | None = None,
    reason: str | None = None,
    timeout: float | None = None,
) -> BloodRequest:
    """
    Withdraw an accepted or scheduled request, releasing the donor.

    Linked active appointments are cancelled in the same transaction.
    """
    with guarded(db, timeout):
        released_donor_id = db.execute(
            select(BloodRequest.donor_id).where(BloodRequest.id == request_id)
        ).scalar_one_or_none()

        conditions = [BloodRequest.donor_id == released_donor_id]
        if hospital_id:
            conditions.append(BloodRequest.hospital_id == hospital_id)
        won = compare_and_set(
            db,
            BloodRequest,
            request_id,
            [RequestStatus.ACCEPTED, RequestStatus.SCHEDULED],
            conditions=conditions,
            status=RequestStatus.CANCELLED,
            donor_id=None,
        )
        if not won:
            status = current_status(db, BloodRequest, request_id)
            owner = db.execute(
                select(BloodRequest.hospital_id).where(BloodRequest.id == request_id)
            ).scalar_one_or_none()
            if status is None or (hospital_id and owner != hospital_id):
                raise NotFound(f"Request {request_id} not found")
            raise InvalidTransition(status, "cancel")

        cancelled_ids = appointment_service.cancel_for_request(db, request_id)
        db.commit()

    logger.info(
        "Request cancelled (reason=%s, appointments=%s)",
        reason or "-",
        len(cancelled_ids),
        extra=build_log_context(
            actor_id=hospital_id, role="hospital", request_id=request_id, operation="cancel"
        ),
    )
    request = _reload(db, request_id)
    donation_events.request_cancelled(db, request, released_donor_id)
    for appointment_id in cancelled_ids:
        appointment = db.get(Appointment, appointment_id, populate_existing=True)
        donation_events.appointment_cancelled(db, appointment)
    return request


def record_donation(
    db: Session,
    request_id: UUID,
    hospital_id: UUID | None = None,
    timeout: float | None = None,
) -> appointment_service.CompletionResult | None:
    """
    Complete the linked active appointment, which is what adds stock.

    Returns None when the request was already completed.
    """
    with guarded(db, timeout):
        request = db.get(BloodRequest, request_id, populate_existing=True)
        if not request or (hospital_id and request.hospital_id != hospital_id):
            raise NotFound(f"Request {request_id} not found")
        if request.status == RequestStatus.COMPLETED.value:
            return None
        if request.status != RequestStatus.SCHEDULED.value:
            raise InvalidTransition(request.status, "complete")

        appointment_id = db.execute(
            select(Appointment.id)
            .where(
                Appointment.request_id == request_id,
                Appointment.status.in_([s.value for s in ACTIVE_APPOINTMENT_STATUSES]),
            )
            .order_by(Appointment.created_at.desc())
            .limit(1)
        ).scalar_one_or_none()
        if appointment_id is None:
            raise ValidationFailed("Request has no active appointment to complete")

    return appointment_service.mark_completed(db, appointment_id, timeout=timeout)


def complete(
    db: Session,
    request_id: UUID,
    hospital_id: UUID | None = None,
    timeout: float | None = None,
) -> BloodRequest:
    """
    Record the donation for a scheduled request.

    Completing an already completed request changes nothing.
    """
    record_donation(db, request_id, hospital_id=hospital_id, timeout=timeout)
    with guarded(db, timeout):
        return _reload(db, request_id)


# =============================================================================
# Reads
# =============================================================================

def get_request(
    db: Session,
    request_id: UUID,
    hospital_id: UUID | None = None,
    timeout: float | None = None,
) -> BloodRequest:
    with guarded(db, timeout):
        request = db.get(BloodRequest, request_id)
    if not request or (hospital_id and request.hospital_id != hospital_id):
        raise NotFound(f"Request {request_id} not found")
    return request


def list_requests_for_hospital(
    db: Session,
    hospital_id: UUID,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
    timeout: float | None = None,
) -> list[BloodRequest]:
    """Hospital's requests, newest first."""
    with guarded(db, timeout):
        query = db.query(BloodRequest).filter(BloodRequest.hospital_id == hospital_id)
        if status:
            query = query.filter(BloodRequest.status == status)
        return (
            query.order_by(BloodRequest.created_at.desc(), BloodRequest.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )


def list_open_requests_for_donor(
    db: Session,
    donor_id: UUID,
    limit: int = 50,
    timeout: float | None = None,
) -> list[BloodRequest]:
    """
    Pending requests the donor could take: compatible, not hidden by this
    donor. Most urgent first, then newest.
    """
    with guarded(db, timeout):
        donor = db.get(Donor, donor_id)
        if not donor:
            raise NotFound(f"Donor {donor_id} not found")

        recipients = [
            group for group in BLOOD_GROUP_VALUES
            if donor.blood_group in compatible_donor_groups(group)
        ]
        hidden = exists().where(
            RequestIgnore.request_id == BloodRequest.id,
            RequestIgnore.donor_id == donor_id,
        )
        requests = (
            db.query(BloodRequest)
            .filter(
                BloodRequest.status == RequestStatus.PENDING.value,
                BloodRequest.blood_group.in_(recipients),
                ~hidden,
            )
            .order_by(BloodRequest.created_at.desc(), BloodRequest.id.desc())
            .all()
        )
    # Stable sort keeps recency order within each urgency level
    requests.sort(key=lambda r: Urgency(r.urgency).severity, reverse=True)
    return requests[:limit]
