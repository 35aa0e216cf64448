"""Appointments router - booking and outcome recording."""

from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from pulseconnect.core.deps import get_current_actor, get_db, require_donor, require_hospital
from pulseconnect.db.enums import ActorRole, AppointmentStatus
from pulseconnect.routers.shared import schedule_notarization
from pulseconnect.schemas.appointment import (
    AppointmentCreate,
    AppointmentRead,
    CompletionRead,
)
from pulseconnect.schemas.auth import ActorSession
from pulseconnect.services import appointment_service
from pulseconnect.services.errors import NotFound

router = APIRouter()


def _owned(db: Session, appointment_id: UUID, session: ActorSession):
    """Load an appointment the caller is party to (404 otherwise)."""
    appointment = appointment_service.get_appointment(db, appointment_id)
    owner = appointment.hospital_id if session.role == ActorRole.HOSPITAL else appointment.donor_id
    if owner != session.actor_id:
        raise NotFound(f"Appointment {appointment_id} not found")
    return appointment


@router.post("", response_model=AppointmentRead, status_code=201)
def create_appointment(
    data: AppointmentCreate,
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    """Book a donor, with or without a formal request."""
    return appointment_service.schedule(
        db,
        donor_id=data.donor_id,
        hospital_id=session.actor_id,
        scheduled_date=data.scheduled_date,
        scheduled_time=data.scheduled_time,
        donation_kind=data.donation_kind.value,
        request_id=data.request_id,
        units=data.units,
        notes=data.notes,
    )


@router.get("", response_model=list[AppointmentRead])
def list_appointments(
    status: AppointmentStatus | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    session: ActorSession = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    """The caller's appointments, soonest first."""
    scope = (
        {"hospital_id": session.actor_id}
        if session.role == ActorRole.HOSPITAL
        else {"donor_id": session.actor_id}
    )
    return appointment_service.list_appointments(
        db, status=status.value if status else None, limit=limit, offset=offset, **scope
    )


@router.post("/{appointment_id}/confirm", response_model=AppointmentRead)
def confirm_appointment(
    appointment_id: UUID,
    session: ActorSession = Depends(require_donor),
    db: Session = Depends(get_db),
):
    _owned(db, appointment_id, session)
    return appointment_service.confirm(db, appointment_id)


@router.post("/{appointment_id}/complete", response_model=CompletionRead)
def complete_appointment(
    appointment_id: UUID,
    background_tasks: BackgroundTasks,
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    """Record the donation. Retrying after success changes nothing."""
    _owned(db, appointment_id, session)
    result = appointment_service.mark_completed(db, appointment_id)
    schedule_notarization(background_tasks, result)
    return CompletionRead(
        appointment=AppointmentRead.model_validate(result.appointment),
        donation_id=result.donation.id if result.donation else None,
        applied=result.applied,
    )


@router.post("/{appointment_id}/no-show", response_model=AppointmentRead)
def no_show_appointment(
    appointment_id: UUID,
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    _owned(db, appointment_id, session)
    return appointment_service.mark_no_show(db, appointment_id)


@router.post("/{appointment_id}/cancel", response_model=AppointmentRead)
def cancel_appointment(
    appointment_id: UUID,
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    _owned(db, appointment_id, session)
    return appointment_service.cancel(db, appointment_id)
