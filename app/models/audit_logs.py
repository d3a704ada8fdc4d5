"""Audit log table for access and mutation tracking."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
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

audit_logs = Table(
    "audit_logs",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("actor_id", Uuid, nullable=True),
    Column("actor_role", String(20), nullable=True),
    Column("action", String(50), nullable=False),
    Column("resource_type", String(50), nullable=False),
    Column("resource_id", Text, nullable=True),
    Column("status", String(20), nullable=False),
    Column("details", JSON, nullable=True),
    Column(
        "created_at", DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    ),
    CheckConstraint("status IN ('SUCCESS', 'FAILURE')", name="audit_logs_status_check"),
    Index("ix_audit_logs_resource", "resource_type", "resource_id"),
    Index("ix_audit_logs_actor_id", "actor_id"),
)
