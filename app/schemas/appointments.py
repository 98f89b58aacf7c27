"""Appointment schemas for request/response validation."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.schemas.clinical_records import ClinicalRecordResponse


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class CamelModel(BaseModel):
    """Base schema exchanging camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _blank_to_none(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip()
    return v or None


class AppointmentCreate(CamelModel):
    """Schema for booking a new appointment."""

    patient_id: UUID
    doctor_id: UUID
    start_time: datetime
    notes: str | None = Field(None, max_length=1000)

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, v: str | None) -> str | None:
        """Treat whitespace-only notes as absent."""
        return _blank_to_none(v)


class AppointmentStatusUpdate(CamelModel):
    """Schema for changing appointment status.

    ``diagnosis`` is required when completing; the service enforces it so the
    check happens after the transition itself is known to be legal.
    """

    status: AppointmentStatus
    diagnosis: str | None = Field(None, max_length=2000)
    prescription: str | None = Field(None, max_length=2000)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("diagnosis", "prescription", "notes")
    @classmethod
    def normalize_text(cls, v: str | None) -> str | None:
        """Strip surrounding whitespace; empty strings become None."""
        return _blank_to_none(v)


class AppointmentResponse(CamelModel):
    """Schema for appointment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    patient_id: UUID
    doctor_id: UUID
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class AppointmentDetailResponse(AppointmentResponse):
    """Appointment together with the clinical record it produced, if any."""

    clinical_record: ClinicalRecordResponse | None = None


class AppointmentListResponse(CamelModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    doctor_id: UUID | None = None
    patient_id: UUID | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class SlotResponse(BaseModel):
    """A candidate start time and whether it can be booked."""

    time: str = Field(..., description="Start time as HH:MM")
    available: bool
