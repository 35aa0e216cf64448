"""SQLAlchemy ORM models - donation appointments."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import date, datetime, time

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from pulseconnect.db.base import Base, utcnow
from pulseconnect.db.enums import DEFAULT_APPOINTMENT_STATUS, DonationKind

if TYPE_CHECKING:
    from pulseconnect.db.models import BloodRequest, Donor, Hospital


class Appointment(Base):
    """
    Scheduled donation linking a donor and a hospital.

    request_id is optional: hospitals may book a donor without a formal request.
    When set, donor_id always equals the request's assigned donor.
    The hospital holds write authority.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        CheckConstraint("units > 0", name="ck_appointments_units_positive"),
        Index("idx_appointments_donor_date", "donor_id", "scheduled_date"),
        Index("idx_appointments_hospital_date", "hospital_id", "scheduled_date"),
        Index("idx_appointments_request", "request_id"),
        Index("idx_appointments_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    request_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("blood_requests.id", ondelete="SET NULL"), nullable=True
    )
    donor_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("donors.id", ondelete="CASCADE"), nullable=False
    )
    hospital_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("hospitals.id", ondelete="CASCADE"), nullable=False
    )

    scheduled_date: Mapped[date] = mapped_column(nullable=False)
    scheduled_time: Mapped[time | None] = mapped_column(nullable=True)

    donation_kind: Mapped[str] = mapped_column(
        String(10), default=DonationKind.BLOOD.value, nullable=False
    )
    units: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20), default=DEFAULT_APPOINTMENT_STATUS.value, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    request: Mapped["BloodRequest"] = relationship()
    donor: Mapped["Donor"] = relationship()
    hospital: Mapped["Hospital"] = relationship()
