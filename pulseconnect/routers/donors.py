"""Donors router - the donor's own profile."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pulseconnect.core.deps import get_db, require_donor
from pulseconnect.schemas.auth import ActorSession
from pulseconnect.schemas.directory import AvailabilityUpdate, DonorRead
from pulseconnect.services import directory_service

router = APIRouter()


@router.get("/me", response_model=DonorRead)
def get_me(
    session: ActorSession = Depends(require_donor),
    db: Session = Depends(get_db),
):
    return directory_service.get_donor(db, session.actor_id)


@router.patch("/me/availability", response_model=DonorRead)
def set_availability(
    data: AvailabilityUpdate,
    session: ActorSession = Depends(require_donor),
    db: Session = Depends(get_db),
):
    """Opt in or out of candidate lists."""
    return directory_service.set_availability(db, session.actor_id, data.is_available)
