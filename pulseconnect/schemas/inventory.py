"""Inventory schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from pulseconnect.db.enums import BloodGroup, DonationKind


class CounterRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    hospital_id: UUID
    blood_group: str
    donation_kind: str
    units: int
    updated_at: datetime


class UnitsConsume(BaseModel):
    """Units taken out of stock (transfusion, expiry)."""
    blood_group: BloodGroup
    units: int = Field(..., ge=1, le=1000)
    donation_kind: DonationKind = DonationKind.BLOOD


class UnitsRemaining(BaseModel):
    blood_group: str
    donation_kind: str
    units: int
