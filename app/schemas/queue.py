"""Queue schemas for check-in, reorder and statistics."""

from datetime import date, time
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from app.schemas.appointments import AppointmentResponse, DiagnosisSummary


class WalkInCreate(BaseModel):
    """Register an arrived patient without a booking."""

    patient_id: UUID
    reason: str | None = Field(None, max_length=500)
    notes: str | None = Field(None, max_length=2000)


class CompleteRequest(BaseModel):
    """Finish a consultation."""

    diagnosis: DiagnosisSummary | None = None


class CancelRequest(BaseModel):
    """Cancel an appointment."""

    reason: str | None = Field(None, max_length=500)


class RescheduleRequest(BaseModel):
    """Move an appointment to another day."""

    new_date: date
    new_time: time | None = None
    reason: str | None = Field(None, max_length=500)


class ReorderRequest(BaseModel):
    """Desired order for (part of) the active queue."""

    ordered_ids: list[UUID] = Field(..., min_length=1)

    @field_validator("ordered_ids")
    @classmethod
    def validate_unique(cls, v: list[UUID]) -> list[UUID]:
        """Reject lists naming the same entry twice."""
        if len(set(v)) != len(v):
            raise ValueError("ordered_ids must not contain duplicates")
        return v


class QueueResponse(BaseModel):
    """Active queue for one day: in-consultation first, then waiting by position."""

    day: date
    total: int
    items: list[AppointmentResponse]


class RescheduleResponse(BaseModel):
    """Both sides of a reschedule."""

    original: AppointmentResponse
    rescheduled: AppointmentResponse


class QueueStats(BaseModel):
    """Queue statistics for one day."""

    day: date
    waiting: int
    in_progress: int
    completed: int
    cancelled: int
    no_show: int
    walk_in_count: int
    avg_service_minutes: int
    next_ticket_number: int


class QueueResetResponse(BaseModel):
    """Result of an administrative queue reset."""

    day: date
    reset_count: int
