"""Clinical records table model using SQLAlchemy Core."""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

from app.models.users import metadata

clinical_records = Table(
    "clinical_records",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("patient_id", UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True),
    Column("doctor_id", UUID(as_uuid=True), ForeignKey("users.id"), nullable=False),
    # At most one record per appointment; NULL for records created outside a booking
    Column(
        "appointment_id",
        UUID(as_uuid=True),
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    ),
    Column("diagnosis", Text, nullable=False),
    Column("prescription", Text),
    Column("notes", Text),
    Column("created_at", DateTime, nullable=False, server_default=text("NOW()")),
    Column("updated_at", DateTime, nullable=False, server_default=text("NOW()")),
)
