"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    MetaData,
    Table,
    Text,
    Time,
    UniqueConstraint,
    Uuid,
    text,
)

# Metadata for all tables
metadata = MetaData()

# Appointments table (scheduled visits and walk-in queue entries)
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column("patient_id", Uuid, nullable=False),
    Column("original_appointment_id", Uuid, nullable=True),
    # Appointment details
    Column("scheduled_date", Date, nullable=False),
    Column("scheduled_time", Time, nullable=True),
    Column("appointment_type", Text, nullable=False, server_default="consultation"),
    Column("reason", Text, nullable=True),
    Column("notes", Text, nullable=True),
    Column("is_walk_in", Boolean, nullable=False, server_default=text("false")),
    # Status management
    Column("status", Text, nullable=False, server_default="scheduled"),
    Column("version", Integer, nullable=False, server_default=text("1")),
    # Queue fields, written only by the sequence allocator and queue order
    Column("queue_day", Date, nullable=True),
    Column("ticket_number", Integer, nullable=True),
    Column("queue_position", Integer, nullable=True),
    # Patient flow timestamps
    Column("checked_in_at", DateTime(timezone=True), nullable=True),
    Column("started_at", DateTime(timezone=True), nullable=True),
    Column("ended_at", DateTime(timezone=True), nullable=True),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    # Diagnosis summary attached on completion
    Column("diagnosis", JSON, nullable=True),
    # Audit fields
    Column("created_by", Uuid, nullable=True),
    Column("created_by_role", Text, nullable=True),
    Column(
        "created_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    Column(
        "updated_at",
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    ),
    # Soft delete (administrative override)
    Column("deleted_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'rescheduled', 'checked_in', 'in_progress', "
        "'completed', 'cancelled', 'no_show')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "appointment_type IN ('consultation', 'follow_up', 'procedure', 'test', "
        "'emergency', 'walk_in')",
        name="appointments_type_check",
    ),
    UniqueConstraint("queue_day", "ticket_number", name="uq_appointments_day_ticket"),
    UniqueConstraint("queue_day", "queue_position", name="uq_appointments_day_position"),
    Index("ix_appointments_patient_id", "patient_id"),
    Index("ix_appointments_scheduled_date", "scheduled_date"),
    Index("ix_appointments_queue_day_status", "queue_day", "status"),
)
