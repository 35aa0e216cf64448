"""Compare-and-set status updates.

Every lifecycle transition is one UPDATE guarded by the expected prior
status. The row count says whether this caller won; a losing caller never
overwrites what the winner wrote.
"""

from __future__ import annotations

from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pulseconnect.db.base import Base, utcnow


def compare_and_set(
    db: Session,
    model: type[Base],
    record_id: UUID,
    expected: Iterable[str],
    conditions: Iterable[Any] = (),
    **values: Any,
) -> bool:
    """
    Apply values to one row only if its status is in expected.

    conditions are extra column expressions the row must also satisfy
    (for example the donor that is expected to hold a request).

    Does not commit. Returns True when exactly this call changed the row.
    """
    expected_values = [getattr(status, "value", status) for status in expected]
    values = {
        key: getattr(value, "value", value) for key, value in values.items()
    }
    values.setdefault("updated_at", utcnow())
    result = db.execute(
        update(model)
        .where(model.id == record_id, model.status.in_(expected_values), *conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def current_status(db: Session, model: type[Base], record_id: UUID) -> str | None:
    """Read the committed status straight from the store (bypasses the identity map)."""
    return db.execute(
        select(model.status).where(model.id == record_id)
    ).scalar_one_or_none()
