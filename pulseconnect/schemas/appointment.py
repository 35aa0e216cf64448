"""Appointment schemas - Pydantic models for appointments API."""

from datetime import date, datetime, time
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from pulseconnect.db.enums import DonationKind


class AppointmentCreate(BaseModel):
    """Schema for a hospital booking a donor directly."""
    donor_id: UUID
    scheduled_date: date
    scheduled_time: time | None = None
    donation_kind: DonationKind = DonationKind.BLOOD
    request_id: UUID | None = None
    units: int = Field(1, ge=1, le=100)
    notes: str | None = None


class AppointmentRead(BaseModel):
    """Schema for reading an appointment."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    request_id: UUID | None
    donor_id: UUID
    hospital_id: UUID
    scheduled_date: date
    scheduled_time: time | None
    donation_kind: str
    units: int
    status: str
    notes: str | None
    created_at: datetime
    updated_at: datetime


class CompletionRead(BaseModel):
    """Result of recording a donation."""
    appointment: AppointmentRead
    donation_id: UUID | None
    applied: bool
