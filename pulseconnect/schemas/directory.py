"""Directory schemas - hospitals and donors."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from pulseconnect.db.enums import BloodGroup


class HospitalCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    phone: str | None = Field(None, max_length=50)
    address: str | None = None
    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)


class HospitalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    city: str | None
    state: str | None
    is_active: bool


class DonorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    blood_group: BloodGroup
    phone: str | None = Field(None, max_length=50)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)


class DonorRead(BaseModel):
    """Donor profile as seen by the donor (or a hospital reviewing candidates)."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    blood_group: str
    is_available: bool
    last_donation_date: date | None
    updated_at: datetime


class AvailabilityUpdate(BaseModel):
    is_available: bool
