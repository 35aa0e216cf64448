"""Blood request schemas - Pydantic models for the requests API."""

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from pulseconnect.db.enums import BloodGroup, DonationKind, Urgency


class RequestCreate(BaseModel):
    """Schema for a hospital posting a request."""
    blood_group: BloodGroup
    units_needed: int = Field(..., ge=1, le=100)
    donation_kind: DonationKind = DonationKind.BLOOD
    urgency: Urgency = Urgency.MEDIUM
    patient_name: str = Field(..., min_length=1, max_length=255)
    patient_age: int | None = Field(None, ge=0, le=150)
    patient_gender: str | None = Field(None, max_length=20)
    patient_condition: str | None = None
    notes: str | None = None
    location: str | None = Field(None, max_length=500)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)


class RequestRead(BaseModel):
    """Schema for reading a request."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    hospital_id: UUID
    donor_id: UUID | None
    donation_kind: str
    blood_group: str
    units_needed: int
    urgency: str
    patient_name: str
    patient_age: int | None
    patient_gender: str | None
    patient_condition: str | None
    notes: str | None
    location: str | None
    status: str
    created_at: datetime
    updated_at: datetime


class OpenRequestRead(BaseModel):
    """What a donor sees in the feed (no patient identity)."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    hospital_id: UUID
    donation_kind: str
    blood_group: str
    units_needed: int
    urgency: str
    location: str | None
    created_at: datetime


class RequestSchedule(BaseModel):
    """Schema for booking the accepted donor."""
    scheduled_date: date
    scheduled_time: time | None = None
    units: int | None = Field(None, ge=1, le=100)
    notes: str | None = None


class RequestCancel(BaseModel):
    reason: str | None = Field(None, max_length=500)


class CandidateRead(BaseModel):
    """One ranked donor for a request."""
    rank: int
    donor_id: UUID
    name: str
    blood_group: str
    distance_km: float | None
    last_donation_date: date | None
