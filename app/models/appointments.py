"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Table,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import UUID, ExcludeConstraint

from app.models.users import metadata

# Name of the exclusion constraint that forbids double booking
NO_OVERLAP_CONSTRAINT = "appointments_no_overlap"

# Timestamps are clinic wall-clock time, stored without a zone
appointments = Table(
    "appointments",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    # Ownership / references
    Column("patient_id", UUID(as_uuid=True), ForeignKey("users.id"), nullable=False),
    Column("doctor_id", UUID(as_uuid=True), ForeignKey("users.id"), nullable=False),
    # Booked interval, half-open [start_time, end_time)
    Column("start_time", DateTime, nullable=False),
    Column("end_time", DateTime, nullable=False),
    # Status management
    Column(
        "status",
        Text,
        nullable=False,
        server_default="scheduled",
    ),
    Column("notes", Text, nullable=True),
    # Audit fields
    Column("created_at", DateTime, nullable=False, server_default=text("NOW()")),
    Column("updated_at", DateTime, nullable=False, server_default=text("NOW()")),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'completed', 'cancelled', 'no_show')",
        name="appointments_status_check",
    ),
    CheckConstraint("end_time > start_time", name="appointments_interval_check"),
    Index("ix_appointments_doctor_id_start_time", "doctor_id", "start_time"),
    Index("ix_appointments_patient_id", "patient_id"),
)

# Requires the btree_gist extension for the uuid equality operator
appointments.append_constraint(
    ExcludeConstraint(
        (appointments.c.doctor_id, "="),
        (func.tsrange(appointments.c.start_time, appointments.c.end_time, "[)"), "&&"),
        name=NO_OVERLAP_CONSTRAINT,
        using="gist",
        where=appointments.c.status == "scheduled",
    )
)
