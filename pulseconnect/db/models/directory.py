"""SQLAlchemy ORM models - hospitals and donors."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, CheckConstraint, Float, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from pulseconnect.db.base import Base, utcnow
from pulseconnect.db.enums import BLOOD_GROUP_VALUES

_BLOOD_GROUP_CHECK = "blood_group IN ({})".format(
    ", ".join(f"'{value}'" for value in BLOOD_GROUP_VALUES)
)


class Hospital(Base):
    """A hospital that issues requests and owns appointments."""

    __tablename__ = "hospitals"
    __table_args__ = (Index("idx_hospitals_city", "city"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Position (optional; used for donor distance ranking)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )


class Donor(Base):
    """
    A registered donor.

    Unavailable donors never show up as candidates for a request.
    """

    __tablename__ = "donors"
    __table_args__ = (
        CheckConstraint(_BLOOD_GROUP_CHECK, name="ck_donors_blood_group"),
        Index("idx_donors_blood_group_available", "blood_group", "is_available"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    blood_group: Mapped[str] = mapped_column(String(3), nullable=False)

    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_donation_date: Mapped[date | None] = mapped_column(nullable=True)

    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, nullable=False
    )

    @property
    def position(self) -> tuple[float, float] | None:
        if self.latitude is None or self.longitude is None:
            return None
        return (self.latitude, self.longitude)
