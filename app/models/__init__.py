"""Database models."""

from app.models.appointments import appointments
from app.models.appointments import metadata as appointments_metadata
from app.models.audit_logs import audit_logs
from app.models.audit_logs import metadata as audit_logs_metadata
from app.models.notifications import metadata as notifications_metadata
from app.models.notifications import notifications
from app.models.patients import metadata as patients_metadata
from app.models.patients import patients
from app.models.queue_counters import metadata as queue_counters_metadata
from app.models.queue_counters import queue_counters
from app.models.users import metadata as users_metadata
from app.models.users import users

# Each module owns its MetaData; creation order follows the migrations
all_metadata = [
    users_metadata,
    patients_metadata,
    appointments_metadata,
    queue_counters_metadata,
    audit_logs_metadata,
    notifications_metadata,
]

__all__ = [
    "all_metadata",
    "appointments",
    "audit_logs",
    "notifications",
    "patients",
    "queue_counters",
    "users",
]
