"""Requests router - hospital requests and donor actions on them."""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from pulseconnect.core.deps import get_current_actor, get_db, require_donor, require_hospital
from pulseconnect.db.enums import ActorRole, RequestStatus
from pulseconnect.routers.shared import schedule_notarization
from pulseconnect.schemas.appointment import AppointmentRead
from pulseconnect.schemas.auth import ActorSession
from pulseconnect.schemas.request import (
    CandidateRead,
    OpenRequestRead,
    RequestCancel,
    RequestCreate,
    RequestRead,
    RequestSchedule,
)
from pulseconnect.services import compatibility_service, request_service
from pulseconnect.services.errors import NotFound

router = APIRouter()


# =============================================================================
# Hospital reads and creation
# =============================================================================

@router.post("", response_model=RequestRead, status_code=201)
def create_request(
    data: RequestCreate,
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    """Post a new pending request."""
    return request_service.create_request(
        db,
        session.actor_id,
        blood_group=data.blood_group.value,
        units_needed=data.units_needed,
        donation_kind=data.donation_kind.value,
        urgency=data.urgency.value,
        patient_name=data.patient_name,
        patient_age=data.patient_age,
        patient_gender=data.patient_gender,
        patient_condition=data.patient_condition,
        notes=data.notes,
        location=data.location,
        latitude=data.latitude,
        longitude=data.longitude,
    )


@router.get("", response_model=list[RequestRead])
def list_requests(
    status: RequestStatus | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    """Hospital's requests, newest first."""
    return request_service.list_requests_for_hospital(
        db,
        session.actor_id,
        status=status.value if status else None,
        limit=limit,
        offset=offset,
    )


@router.get("/open", response_model=list[OpenRequestRead])
def list_open_requests(
    limit: int = Query(50, ge=1, le=200),
    session: ActorSession = Depends(require_donor),
    db: Session = Depends(get_db),
):
    """Donor feed: pending compatible requests the donor hasn't hidden."""
    return request_service.list_open_requests_for_donor(db, session.actor_id, limit=limit)


@router.get("/{request_id}", response_model=RequestRead)
def get_request(
    request_id: UUID,
    session: ActorSession = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    request = request_service.get_request(db, request_id)
    # Hospitals see their own; donors see only what they accepted
    if session.role == ActorRole.HOSPITAL and request.hospital_id != session.actor_id:
        raise NotFound(f"Request {request_id} not found")
    if session.role == ActorRole.DONOR and request.donor_id != session.actor_id:
        raise NotFound(f"Request {request_id} not found")
    return request


@router.get("/{request_id}/candidates", response_model=list[CandidateRead])
def list_candidates(
    request_id: UUID,
    limit: int = Query(20, ge=1, le=200),
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    """Ranked eligible donors for one of the hospital's requests."""
    request_service.get_request(db, request_id, hospital_id=session.actor_id)
    candidates = compatibility_service.list_candidates(db, request_id, limit=limit)
    return [
        CandidateRead(
            rank=c.rank,
            donor_id=c.donor.id,
            name=c.donor.name,
            blood_group=c.donor.blood_group,
            distance_km=round(c.distance_km, 2) if c.distance_km is not None else None,
            last_donation_date=c.donor.last_donation_date,
        )
        for c in candidates
    ]


# =============================================================================
# Donor actions
# =============================================================================

@router.post("/{request_id}/accept", response_model=RequestRead)
def accept_request(
    request_id: UUID,
    session: ActorSession = Depends(require_donor),
    db: Session = Depends(get_db),
):
    """Take the request. Only one donor can win."""
    return request_service.accept(db, request_id, session.actor_id)


@router.post("/{request_id}/ignore", status_code=204)
def ignore_request(
    request_id: UUID,
    session: ActorSession = Depends(require_donor),
    db: Session = Depends(get_db),
):
    """Hide the request from this donor's feed."""
    request_service.ignore(db, request_id, session.actor_id)


# =============================================================================
# Hospital actions
# =============================================================================

@router.post("/{request_id}/schedule", response_model=AppointmentRead, status_code=201)
def schedule_request(
    request_id: UUID,
    data: RequestSchedule,
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    """Book the donor who accepted the request."""
    return request_service.schedule(
        db,
        request_id,
        hospital_id=session.actor_id,
        scheduled_date=data.scheduled_date,
        scheduled_time=data.scheduled_time,
        units=data.units,
        notes=data.notes,
    )


@router.post("/{request_id}/cancel", response_model=RequestRead)
def cancel_request(
    request_id: UUID,
    data: RequestCancel | None = None,
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    return request_service.cancel(
        db, request_id, hospital_id=session.actor_id, reason=data.reason if data else None
    )


@router.post("/{request_id}/complete", response_model=RequestRead)
def complete_request(
    request_id: UUID,
    background_tasks: BackgroundTasks,
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    """Record the donation for a scheduled request."""
    result = request_service.record_donation(db, request_id, hospital_id=session.actor_id)
    schedule_notarization(background_tasks, result)
    return request_service.get_request(db, request_id)


@router.post("/{request_id}/reopen", response_model=RequestRead)
def reopen_request(
    request_id: UUID,
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    return request_service.reopen(db, request_id, hospital_id=session.actor_id)


@router.post("/{request_id}/deactivate", response_model=RequestRead)
def deactivate_request(
    request_id: UUID,
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    return request_service.deactivate(db, request_id, hospital_id=session.actor_id)
