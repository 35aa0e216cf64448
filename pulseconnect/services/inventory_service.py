"""Inventory adjuster - per-hospital blood unit counters.

Counters are changed only through single atomic statements keyed on
(hospital, blood group, donation kind); nothing reads a count into memory
and writes it back.
"""

import logging
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from pulseconnect.db.base import utcnow
from pulseconnect.db.enums import BLOOD_GROUP_VALUES, DonationKind
from pulseconnect.db.models import BloodUnitCounter
from pulseconnect.services.errors import InsufficientUnits, ValidationFailed
from pulseconnect.services.store import guarded

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _validate_adjustment(blood_group: str, units: int, donation_kind: str) -> None:
    if blood_group not in BLOOD_GROUP_VALUES:
        raise ValidationFailed(f"Unsupported blood group: {blood_group!r}")
    if donation_kind not in {kind.value for kind in DonationKind}:
        raise ValidationFailed(f"Unsupported donation kind: {donation_kind!r}")
    if isinstance(units, bool) or not isinstance(units, int) or units <= 0:
        raise ValidationFailed("units must be a positive integer")


def on_donation_completed(
    db: Session,
    hospital_id: UUID,
    blood_group: str,
    units: int,
    donation_kind: str = DonationKind.BLOOD.value,
) -> None:
    """
    Add units to the matching counter, creating it at first use.

    Runs inside the caller's transaction (no commit) so the increment lands
    together with the completion that triggered it.
    """
    _validate_adjustment(blood_group, units, donation_kind)

    insert = _UPSERT_DIALECTS.get(db.get_bind().dialect.name)
    if insert is None:
        raise RuntimeError("Inventory upsert requires PostgreSQL or SQLite")

    stmt = insert(BloodUnitCounter).values(
        hospital_id=hospital_id,
        blood_group=blood_group,
        donation_kind=donation_kind,
        units=units,
        updated_at=utcnow(),
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["hospital_id", "blood_group", "donation_kind"],
        set_={
            "units": BloodUnitCounter.units + stmt.excluded.units,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    db.execute(stmt)
    logger.info(
        "Inventory incremented",
        extra={"hospital_id": str(hospital_id), "blood_group": blood_group, "units": units},
    )


def on_units_consumed(
    db: Session,
    hospital_id: UUID,
    blood_group: str,
    units: int,
    donation_kind: str = DonationKind.BLOOD.value,
    timeout: float | None = None,
) -> int:
    """
    Remove units from stock. Returns the remaining count.

    Rejected with InsufficientUnits when stock would go below zero; the
    counter is left unchanged in that case.
    """
    _validate_adjustment(blood_group, units, donation_kind)

    with guarded(db, timeout):
        result = db.execute(
            update(BloodUnitCounter)
            .where(
                BloodUnitCounter.hospital_id == hospital_id,
                BloodUnitCounter.blood_group == blood_group,
                BloodUnitCounter.donation_kind == donation_kind,
                BloodUnitCounter.units >= units,
            )
            .values(units=BloodUnitCounter.units - units, updated_at=utcnow())
            .returning(BloodUnitCounter.units)
            .execution_options(synchronize_session=False)
        )
        remaining = result.scalar_one_or_none()
        if remaining is None:
            raise InsufficientUnits(
                f"Not enough {blood_group} {donation_kind} units to consume {units}"
            )
        db.commit()
    return remaining


def get_inventory(
    db: Session,
    hospital_id: UUID,
    timeout: float | None = None,
) -> list[BloodUnitCounter]:
    """Counters for a hospital, ordered by kind then group."""
    with guarded(db, timeout):
        return (
            db.query(BloodUnitCounter)
            .filter(BloodUnitCounter.hospital_id == hospital_id)
            .order_by(BloodUnitCounter.donation_kind, BloodUnitCounter.blood_group)
            .all()
        )


def get_units(
    db: Session,
    hospital_id: UUID,
    blood_group: str,
    donation_kind: str = DonationKind.BLOOD.value,
    timeout: float | None = None,
) -> int:
    """Current count for one key (0 when the counter was never created)."""
    with guarded(db, timeout):
        units = db.execute(
            select(BloodUnitCounter.units).where(
                BloodUnitCounter.hospital_id == hospital_id,
                BloodUnitCounter.blood_group == blood_group,
                BloodUnitCounter.donation_kind == donation_kind,
            )
        ).scalar_one_or_none()
    return units or 0
