"""Inventory router - a hospital's unit counters."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pulseconnect.core.deps import get_db, require_hospital
from pulseconnect.schemas.auth import ActorSession
from pulseconnect.schemas.inventory import CounterRead, UnitsConsume, UnitsRemaining
from pulseconnect.services import inventory_service

router = APIRouter()


@router.get("", response_model=list[CounterRead])
def get_inventory(
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    return inventory_service.get_inventory(db, session.actor_id)


@router.post("/consume", response_model=UnitsRemaining)
def consume_units(
    data: UnitsConsume,
    session: ActorSession = Depends(require_hospital),
    db: Session = Depends(get_db),
):
    """Take units out of stock. Rejected (409) when stock would go negative."""
    remaining = inventory_service.on_units_consumed(
        db,
        hospital_id=session.actor_id,
        blood_group=data.blood_group.value,
        units=data.units,
        donation_kind=data.donation_kind.value,
    )
    return UnitsRemaining(
        blood_group=data.blood_group.value,
        donation_kind=data.donation_kind.value,
        units=remaining,
    )
