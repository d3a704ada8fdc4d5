"""Notification model for role-addressed staff notifications."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
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

notifications = Table(
    "notifications",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("recipient_role", String(20), nullable=False),
    Column("notification_type", String(50), nullable=False),
    Column("title", Text, nullable=False),
    Column("body", Text, nullable=False),
    Column("related_id", Uuid, nullable=True),
    Column("created_by", Uuid, nullable=True),
    Column("read_at", DateTime(timezone=True), nullable=True),
    Column(
        "created_at", DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    ),
    CheckConstraint(
        "notification_type IN ('appointment_created', 'appointment_updated', "
        "'appointment_cancelled', 'queue_updated')",
        name="notifications_type_check",
    ),
    CheckConstraint(
        "recipient_role IN ('admin', 'doctor', 'secretary')",
        name="notifications_recipient_role_check",
    ),
    Index("ix_notifications_recipient_role", "recipient_role"),
    Index("ix_notifications_created_at", "created_at"),
)
