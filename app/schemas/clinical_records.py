"""Clinical record schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ClinicalRecordResponse(BaseModel):
    """Schema for a clinical record created on appointment completion."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    id: UUID
    patient_id: UUID
    doctor_id: UUID
    appointment_id: UUID | None = None
    diagnosis: str
    prescription: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
