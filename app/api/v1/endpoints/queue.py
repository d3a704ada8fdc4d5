"""Queue endpoints: walk-ins, status transitions, ordering and daily reset."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.core.exceptions import NotFoundException
from app.dependencies import (
    AdminUser,
    DoctorUser,
    QueueServiceDep,
    SecretaryUser,
    StaffUser,
)
from app.schemas.appointments import AppointmentResponse
from app.schemas.queue import (
    CancelRequest,
    CompleteRequest,
    QueueResetResponse,
    QueueResponse,
    QueueStats,
    RescheduleRequest,
    RescheduleResponse,
    ReorderRequest,
    WalkInCreate,
)

router = APIRouter(prefix="/queue", tags=["Queue"])


@router.post(
    "/walk-in",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a walk-in patient",
)
async def create_walk_in(
    data: WalkInCreate,
    current_user: StaffUser,
    service: QueueServiceDep,
) -> AppointmentResponse:
    """
    Add an arrived patient to today's queue with a fresh ticket.

    Args:
        data: Walk-in details
        current_user: Authenticated doctor or secretary
        service: Queue service

    Returns:
        Checked-in entry
    """
    return await service.walk_in(
        data.patient_id,
        actor=current_user,
        reason=data.reason,
        notes=data.notes,
    )


@router.get(
    "/today",
    response_model=QueueResponse,
    summary="Today's active queue",
)
async def get_today_queue(
    current_user: StaffUser,
    service: QueueServiceDep,
) -> QueueResponse:
    """Active entries, the patient in consultation first, then waiting patients by position."""
    day = service.today()
    items = await service.today_queue(day)
    return QueueResponse(day=day, total=len(items), items=items)


@router.get(
    "/stats",
    response_model=QueueStats,
    summary="Queue statistics",
)
async def get_queue_stats(
    current_user: StaffUser,
    service: QueueServiceDep,
    day: date | None = Query(None, description="Queue day, defaults to today"),
) -> QueueStats:
    """Per-status counts, walk-ins, mean consultation minutes and next ticket number."""
    return await service.queue_stats(day)


@router.get(
    "/next",
    response_model=AppointmentResponse,
    summary="Next patient to call",
)
async def get_next_in_line(
    current_user: DoctorUser,
    service: QueueServiceDep,
) -> AppointmentResponse:
    """
    Waiting entry with the lowest queue position.

    Raises:
        NotFoundException: If nobody is waiting
    """
    entry = await service.next_in_line()
    if entry is None:
        raise NotFoundException("No patient is waiting")
    return entry


@router.put(
    "/reorder",
    response_model=QueueResponse,
    summary="Reorder the waiting line",
)
async def reorder_queue(
    data: ReorderRequest,
    current_user: SecretaryUser,
    service: QueueServiceDep,
) -> QueueResponse:
    """
    Move the listed entries to the front in the given order.

    Entries not listed keep their relative order behind them. If any id is
    not in the active queue the request fails with 400 and nothing moves.
    """
    day = service.today()
    items = await service.reorder(data.ordered_ids, actor=current_user, day=day)
    return QueueResponse(day=day, total=len(items), items=items)


@router.delete(
    "/reset",
    response_model=QueueResetResponse,
    summary="Reset a queue day (admin only)",
)
async def reset_queue(
    current_user: AdminUser,
    service: QueueServiceDep,
    day: date | None = Query(None, description="Queue day, defaults to today"),
) -> QueueResetResponse:
    """Return every active entry of the day to scheduled and clear its queue numbers."""
    day = day or service.today()
    count = await service.reset_day(day, actor=current_user)
    return QueueResetResponse(day=day, reset_count=count)


@router.put(
    "/{appointment_id}/check-in",
    response_model=AppointmentResponse,
    summary="Check in a booked patient",
)
async def check_in(
    appointment_id: UUID,
    current_user: StaffUser,
    service: QueueServiceDep,
) -> AppointmentResponse:
    """Mark a scheduled patient as arrived; assigns ticket and queue position."""
    return await service.check_in_scheduled(appointment_id, actor=current_user)


@router.put(
    "/{appointment_id}/start",
    response_model=AppointmentResponse,
    summary="Start consultation",
)
async def start_consultation(
    appointment_id: UUID,
    current_user: DoctorUser,
    service: QueueServiceDep,
) -> AppointmentResponse:
    """Call a checked-in patient in."""
    return await service.start(appointment_id, actor=current_user)


@router.put(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    summary="Complete consultation",
)
async def complete_consultation(
    appointment_id: UUID,
    current_user: DoctorUser,
    service: QueueServiceDep,
    data: CompleteRequest | None = None,
) -> AppointmentResponse:
    """Finish the consultation, optionally with a diagnosis summary."""
    diagnosis = data.diagnosis if data else None
    return await service.complete(appointment_id, diagnosis=diagnosis, actor=current_user)


@router.put(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    current_user: StaffUser,
    service: QueueServiceDep,
    data: CancelRequest | None = None,
) -> AppointmentResponse:
    """Cancel an appointment; the reason is appended to its notes."""
    reason = data.reason if data else None
    return await service.cancel(appointment_id, reason=reason, actor=current_user)


@router.put(
    "/{appointment_id}/no-show",
    response_model=AppointmentResponse,
    summary="Mark as no-show",
)
async def mark_no_show(
    appointment_id: UUID,
    current_user: StaffUser,
    service: QueueServiceDep,
) -> AppointmentResponse:
    """Record that a booked patient did not arrive."""
    return await service.mark_no_show(appointment_id, actor=current_user)


@router.put(
    "/{appointment_id}/reschedule",
    response_model=RescheduleResponse,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: RescheduleRequest,
    current_user: StaffUser,
    service: QueueServiceDep,
) -> RescheduleResponse:
    """
    Close the appointment as rescheduled and book a linked replacement.

    Args:
        appointment_id: Appointment to move
        data: New date, optional time and reason
        current_user: Authenticated doctor or secretary
        service: Queue service

    Returns:
        The original entry and its replacement
    """
    original, rescheduled = await service.reschedule(
        appointment_id,
        data.new_date,
        new_time=data.new_time,
        reason=data.reason,
        actor=current_user,
    )
    return RescheduleResponse(original=original, rescheduled=rescheduled)
