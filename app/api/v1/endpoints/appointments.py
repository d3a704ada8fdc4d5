"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from app.dependencies import (
    AdminUser,
    AppointmentServiceDep,
    QueueServiceDep,
    StaffUser,
)
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
)

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    current_user: StaffUser,
    service: AppointmentServiceDep,
    queue: QueueServiceDep,
) -> AppointmentResponse:
    """
    Book an appointment, or register a walk-in when ``is_walk_in`` is set.

    Walk-ins go straight into today's queue and ignore the requested date.

    Args:
        data: Appointment creation data
        current_user: Authenticated doctor or secretary
        service: Appointment service
        queue: Queue service

    Returns:
        Created appointment
    """
    if data.is_walk_in:
        return await queue.walk_in(
            data.patient_id,
            actor=current_user,
            reason=data.reason,
            notes=data.notes,
        )
    return await service.create_appointment(data, actor=current_user)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List appointments",
)
async def list_appointments(
    current_user: StaffUser,
    service: AppointmentServiceDep,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    patient_id: UUID | None = Query(None),
    is_walk_in: bool | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> AppointmentListResponse:
    """
    List appointments with filtering.

    Args:
        current_user: Authenticated doctor or secretary
        service: Appointment service
        status_filter: Filter by status
        patient_id: Filter by patient
        is_walk_in: Filter walk-ins or bookings
        from_date: First scheduled day to include
        to_date: Last scheduled day to include
        page: Page number
        page_size: Items per page

    Returns:
        Paginated list of appointments
    """
    filters = AppointmentFilters(
        status=status_filter,
        patient_id=patient_id,
        is_walk_in=is_walk_in,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    return await service.list_appointments(filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_user: StaffUser,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """Get a specific appointment by ID."""
    return await service.get_appointment(appointment_id)


@router.put(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment details",
)
async def update_appointment(
    appointment_id: UUID,
    data: AppointmentUpdate,
    current_user: StaffUser,
    service: AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Edit reason, notes or type.

    Status changes go through the queue endpoints.
    """
    return await service.update_appointment(appointment_id, data, actor=current_user)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Appointments"],
    summary="Delete appointment (admin only)",
)
async def delete_appointment(
    appointment_id: UUID,
    current_user: AdminUser,
    service: AppointmentServiceDep,
) -> None:
    """Soft delete an appointment."""
    await service.delete_appointment(appointment_id, actor=current_user)
