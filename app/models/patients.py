"""Patient model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Index,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    text,
)

metadata = MetaData()

patients = Table(
    "patients",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Identity
    Column("full_name", Text, nullable=False),
    Column("phone", String(20)),
    Column("gender", String(20)),
    Column("date_of_birth", Date),
    Column("notes", Text),
    # Metadata
    Column(
        "created_at", DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    ),
    Column(
        "updated_at", DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    ),
    Column("deleted_at", DateTime(timezone=True), nullable=True),
    Index("ix_patients_full_name", "full_name"),
    Index("ix_patients_phone", "phone"),
)
