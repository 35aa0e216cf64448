"""Directory service - hospitals and donors."""

from datetime import date
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pulseconnect.db.base import utcnow
from pulseconnect.db.enums import BLOOD_GROUP_VALUES
from pulseconnect.db.models import Donor, Hospital
from pulseconnect.services.errors import NotFound, ValidationFailed
from pulseconnect.services.store import guarded


def _check_position(latitude: float | None, longitude: float | None) -> None:
    if (latitude is None) != (longitude is None):
        raise ValidationFailed("latitude and longitude must be given together")


def create_hospital(
    db: Session,
    *,
    name: str,
    email: str,
    phone: str | None = None,
    address: str | None = None,
    city: str | None = None,
    state: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
) -> Hospital:
    _check_position(latitude, longitude)
    hospital = Hospital(
        name=name,
        email=email.strip().lower(),
        phone=phone,
        address=address,
        city=city,
        state=state,
        latitude=latitude,
        longitude=longitude,
    )
    with guarded(db):
        db.add(hospital)
        try:
            db.commit()
        except IntegrityError as exc:
            raise ValidationFailed(f"Hospital email already registered: {email}") from exc
    db.refresh(hospital)
    return hospital


def create_donor(
    db: Session,
    *,
    name: str,
    email: str,
    blood_group: str,
    phone: str | None = None,
    is_available: bool = True,
    last_donation_date: date | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
) -> Donor:
    if blood_group not in BLOOD_GROUP_VALUES:
        raise ValidationFailed(f"Unsupported blood group: {blood_group!r}")
    _check_position(latitude, longitude)
    donor = Donor(
        name=name,
        email=email.strip().lower(),
        phone=phone,
        blood_group=blood_group,
        is_available=is_available,
        last_donation_date=last_donation_date,
        latitude=latitude,
        longitude=longitude,
    )
    with guarded(db):
        db.add(donor)
        try:
            db.commit()
        except IntegrityError as exc:
            raise ValidationFailed(f"Donor email already registered: {email}") from exc
    db.refresh(donor)
    return donor


def get_hospital(db: Session, hospital_id: UUID, timeout: float | None = None) -> Hospital:
    with guarded(db, timeout):
        hospital = db.get(Hospital, hospital_id)
    if not hospital:
        raise NotFound(f"Hospital {hospital_id} not found")
    return hospital


def get_donor(db: Session, donor_id: UUID, timeout: float | None = None) -> Donor:
    with guarded(db, timeout):
        donor = db.get(Donor, donor_id)
    if not donor:
        raise NotFound(f"Donor {donor_id} not found")
    return donor


def set_availability(
    db: Session,
    donor_id: UUID,
    is_available: bool,
    timeout: float | None = None,
) -> Donor:
    """Toggle whether the donor shows up as a candidate. Idempotent."""
    with guarded(db, timeout):
        result = db.execute(
            update(Donor)
            .where(Donor.id == donor_id)
            .values(is_available=is_available, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFound(f"Donor {donor_id} not found")
        db.commit()
    return db.get(Donor, donor_id, populate_existing=True)
