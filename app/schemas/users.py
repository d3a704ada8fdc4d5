"""User schemas."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class UserRole(str, Enum):
    """Staff roles."""

    ADMIN = "admin"
    DOCTOR = "doctor"
    SECRETARY = "secretary"


class UserResponse(BaseModel):
    """Authenticated staff member."""

    id: UUID
    email: str
    full_name: str | None = None
    role: UserRole
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}
