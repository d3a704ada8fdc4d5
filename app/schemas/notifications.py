"""Notification schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationType(str, Enum):
    """Notification type enumeration."""

    APPOINTMENT_CREATED = "appointment_created"
    APPOINTMENT_UPDATED = "appointment_updated"
    APPOINTMENT_CANCELLED = "appointment_cancelled"
    QUEUE_UPDATED = "queue_updated"


class NotificationResponse(BaseModel):
    """Notification response schema."""

    id: UUID
    recipient_role: str
    notification_type: NotificationType
    title: str
    body: str
    related_id: UUID | None = None
    created_by: UUID | None = None
    read_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """Paginated notification list."""

    total: int
    unread: int
    items: list[NotificationResponse] = Field(default_factory=list)
