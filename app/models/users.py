"""User model definition using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    MetaData,
    Table,
    Text,
    Uuid,
    text,
)

metadata = MetaData()

# Clinic staff accounts; credentials are issued by the external identity provider
users = Table(
    "users",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("email", Text, nullable=False, unique=True, index=True),
    Column("full_name", Text),
    Column("role", Text, nullable=False, server_default=text("'secretary'")),
    # Account state
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    # Audit
    Column(
        "created_at", DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    ),
    Column(
        "updated_at", DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    ),
    CheckConstraint("role IN ('admin', 'doctor', 'secretary')", name="users_role_check"),
)
