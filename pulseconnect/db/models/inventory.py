"""SQLAlchemy ORM models - stock counters and donation records."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from pulseconnect.db.base import Base, utcnow
from pulseconnect.db.enums import DonationKind, NotarizationStatus
from pulseconnect.db.models.directory import _BLOOD_GROUP_CHECK


class BloodUnitCounter(Base):
    """
    Per-hospital running stock for one blood group and donation kind.

    Only changed through atomic increment/decrement statements; never negative.
    """

    __tablename__ = "blood_unit_counters"
    __table_args__ = (
        UniqueConstraint(
            "hospital_id",
            "blood_group",
            "donation_kind",
            name="uq_blood_unit_counter",
        ),
        CheckConstraint("units >= 0", name="ck_blood_unit_counter_non_negative"),
        CheckConstraint(_BLOOD_GROUP_CHECK, name="ck_blood_unit_counter_group"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    hospital_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("hospitals.id", ondelete="CASCADE"), nullable=False
    )
    blood_group: Mapped[str] = mapped_column(String(3), nullable=False)
    donation_kind: Mapped[str] = mapped_column(
        String(10), default=DonationKind.BLOOD.value, nullable=False
    )
    units: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )


class Donation(Base):
    """
    A completed donation (one per completed appointment).

    Carries the notarization outcome, which never affects completion itself.
    """

    __tablename__ = "donations"
    __table_args__ = (
        UniqueConstraint("appointment_id", name="uq_donation_appointment"),
        CheckConstraint("units > 0", name="ck_donations_units_positive"),
        Index("idx_donations_hospital_date", "hospital_id", "donated_on"),
        Index("idx_donations_donor", "donor_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    hospital_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("hospitals.id", ondelete="CASCADE"), nullable=False
    )
    donor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("donors.id", ondelete="CASCADE"), nullable=False
    )
    appointment_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False
    )
    request_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("blood_requests.id", ondelete="SET NULL"), nullable=True
    )

    donation_kind: Mapped[str] = mapped_column(String(10), nullable=False)
    blood_group: Mapped[str] = mapped_column(String(3), nullable=False)
    units: Mapped[int] = mapped_column(Integer, nullable=False)
    donated_on: Mapped[date] = mapped_column(nullable=False)

    notarization_status: Mapped[str] = mapped_column(
        String(20), default=NotarizationStatus.PENDING.value, nullable=False
    )
    notarization_ref: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )
