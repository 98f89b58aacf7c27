"""Doctor profile model definition using SQLAlchemy Core."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    Table,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

from app.models.users import metadata

doctor_profiles = Table(
    "doctor_profiles",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "user_id",
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    ),
    Column("specialization", String(100), nullable=False),
    Column("license_number", String(50), nullable=False, unique=True),
    # Whether the doctor currently takes new bookings
    Column("is_available", Boolean, nullable=False, server_default=text("true")),
    Column("created_at", DateTime, nullable=False, server_default=text("NOW()")),
    Column("updated_at", DateTime, nullable=False, server_default=text("NOW()")),
)
