"""SQLAlchemy ORM models - blood requests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pulseconnect.db.base import Base, utcnow
from pulseconnect.db.enums import DEFAULT_REQUEST_STATUS, DonationKind, Urgency
from pulseconnect.db.models.directory import _BLOOD_GROUP_CHECK

if TYPE_CHECKING:
    from pulseconnect.db.models import Donor, Hospital


class BloodRequest(Base):
    """
    A hospital's ask for blood or plasma units.

    donor_id is set only while the status is accepted, scheduled or completed.
    All status changes go through conditional updates keyed on the prior status.
    """

    __tablename__ = "blood_requests"
    __table_args__ = (
        CheckConstraint(_BLOOD_GROUP_CHECK, name="ck_requests_blood_group"),
        CheckConstraint("units_needed > 0", name="ck_requests_units_positive"),
        CheckConstraint(
            "(donor_id IS NOT NULL) = (status IN ('accepted', 'scheduled', 'completed'))",
            name="ck_requests_donor_bound",
        ),
        Index("idx_requests_hospital_created", "hospital_id", "created_at"),
        Index("idx_requests_status_group", "status", "blood_group"),
        Index("idx_requests_donor", "donor_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    hospital_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("hospitals.id", ondelete="CASCADE"), nullable=False
    )
    donor_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("donors.id", ondelete="SET NULL"), nullable=True
    )

    donation_kind: Mapped[str] = mapped_column(
        String(10), default=DonationKind.BLOOD.value, nullable=False
    )
    blood_group: Mapped[str] = mapped_column(String(3), nullable=False)
    units_needed: Mapped[int] = mapped_column(Integer, nullable=False)
    urgency: Mapped[str] = mapped_column(
        String(20), default=Urgency.MEDIUM.value, nullable=False
    )

    # Patient descriptor
    patient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    patient_age: Mapped[int | None] = mapped_column(Integer, nullable=True)
    patient_gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    patient_condition: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Location (free text plus optional coordinates for ranking)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_REQUEST_STATUS.value, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    hospital: Mapped["Hospital"] = relationship()
    donor: Mapped["Donor"] = relationship()

    @property
    def position(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)


class RequestIgnore(Base):
    """Per-donor hide of a pending request. Never touches the shared status."""

    __tablename__ = "request_ignores"
    __table_args__ = (
        UniqueConstraint("request_id", "donor_id", name="uq_request_ignore"),
        Index("idx_request_ignores_donor", "donor_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    request_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("blood_requests.id", ondelete="CASCADE"), nullable=False
    )
    donor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("donors.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
