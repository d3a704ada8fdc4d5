"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    SCHEDULED = "scheduled"
    RESCHEDULED = "rescheduled"
    CHECKED_IN = "checked_in"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AppointmentType(str, Enum):
    """Appointment type enumeration."""

    CONSULTATION = "consultation"
    FOLLOW_UP = "follow_up"
    PROCEDURE = "procedure"
    TEST = "test"
    EMERGENCY = "emergency"
    WALK_IN = "walk_in"


class Medication(BaseModel):
    """Prescribed medication line."""

    name: str = Field(..., min_length=1, max_length=200)
    dosage: str | None = Field(None, max_length=100)
    frequency: str | None = Field(None, max_length=100)
    duration: str | None = Field(None, max_length=100)


class DiagnosisSummary(BaseModel):
    """Diagnosis payload attached when a consultation completes."""

    text: str = Field(..., min_length=1, max_length=4000)
    treatment_plan: str | None = Field(None, max_length=4000)
    follow_up_instructions: str | None = Field(None, max_length=2000)
    medications: list[Medication] = Field(default_factory=list)


class AppointmentBase(BaseModel):
    """Base appointment schema with common fields."""

    scheduled_date: date
    scheduled_time: time | None = None
    appointment_type: AppointmentType = AppointmentType.CONSULTATION
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=2000)


class AppointmentCreate(AppointmentBase):
    """Schema for booking a new appointment."""

    patient_id: UUID
    is_walk_in: bool = False


class AppointmentUpdate(BaseModel):
    """
    Schema for editing descriptive appointment fields.

    Status, dates and queue numbers only change through the queue routes.
    """

    appointment_type: AppointmentType | None = None
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=2000)


class AppointmentResponse(AppointmentBase):
    """Schema for appointment response."""

    id: UUID
    patient_id: UUID
    original_appointment_id: UUID | None = None
    is_walk_in: bool
    status: AppointmentStatus
    version: int
    queue_day: date | None = None
    ticket_number: int | None = None
    queue_position: int | None = None
    checked_in_at: datetime | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    cancelled_at: datetime | None = None
    diagnosis: DiagnosisSummary | None = None
    created_by: UUID | None = None
    created_by_role: str | None = None
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    model_config = {"from_attributes": True}


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    patient_id: UUID | None = None
    from_date: date | None = None
    to_date: date | None = None
    is_walk_in: bool | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


# Entries holding a place in the day's queue
ACTIVE_STATUSES = frozenset({AppointmentStatus.CHECKED_IN, AppointmentStatus.IN_PROGRESS})

# No transition leaves these
TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
        AppointmentStatus.RESCHEDULED,
    }
)
