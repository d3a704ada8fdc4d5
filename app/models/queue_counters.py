"""Per-day queue counters using SQLAlchemy Core."""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    Integer,
    MetaData,
    PrimaryKeyConstraint,
    Table,
    Text,
    text,
)

metadata = MetaData()

# One row per (day, kind); the row is the lock that serialises allocation
queue_counters = Table(
    "queue_counters",
    metadata,
    Column("day", Date, nullable=False),
    Column("kind", Text, nullable=False),
    Column("value", Integer, nullable=False, server_default=text("0")),
    PrimaryKeyConstraint("day", "kind", name="pk_queue_counters"),
    CheckConstraint("kind IN ('ticket', 'position')", name="queue_counters_kind_check"),
)
