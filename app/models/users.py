"""User model definition using SQLAlchemy Core.

Patients and doctors are both rows in ``users``; appointments reference them
directly by user id.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

# Metadata for all tables
metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("email", String(255), nullable=False, unique=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("phone", String(20)),
    Column("role", String(20), nullable=False, server_default=text("'patient'"), index=True),
    # Account state
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    # Audit
    Column("created_at", DateTime, nullable=False, server_default=text("NOW()")),
    Column("updated_at", DateTime, nullable=False, server_default=text("NOW()")),
    CheckConstraint("role IN ('patient', 'doctor', 'admin')", name="users_role_check"),
)
