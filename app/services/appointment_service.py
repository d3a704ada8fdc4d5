"""Appointment service for booking and record maintenance."""

from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.exceptions import NotFoundException
from app.schemas.appointments import (
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentUpdate,
)
from app.schemas.notifications import NotificationType
from app.services.appointment_repository import AppointmentRepository
from app.services.audit_service import AuditService
from app.services.notification_service import NotificationService
from app.services.patient_service import PatientService

logger = structlog.get_logger(__name__)


class AppointmentService:
    """Service for managing booked appointments outside the queue flow."""

    def __init__(
        self,
        db: AsyncSession,
        audit: AuditService | None = None,
        notifier: NotificationService | None = None,
    ):
        """Initialize service with database session and side-channel services."""
        self.db = db
        self.repository = AppointmentRepository(db)
        self.patients = PatientService(db)
        self.audit = audit
        self.notifier = notifier

    async def create_appointment(
        self,
        data: AppointmentCreate,
        actor: dict | None = None,
    ) -> AppointmentResponse:
        """
        Book an appointment for a registered patient.

        Args:
            data: Appointment creation data
            actor: Staff member making the booking

        Returns:
            Created appointment in scheduled status

        Raises:
            NotFoundException: If the patient does not exist
        """
        try:
            if not await self.patients.exists(data.patient_id):
                raise NotFoundException("Patient not found")

            entry = await self.repository.insert(
                {
                    "patient_id": data.patient_id,
                    "scheduled_date": data.scheduled_date,
                    "scheduled_time": data.scheduled_time,
                    "appointment_type": data.appointment_type.value,
                    "reason": data.reason,
                    "notes": data.notes,
                    "is_walk_in": data.is_walk_in,
                    "status": AppointmentStatus.SCHEDULED.value,
                    "created_by": actor["id"] if actor else None,
                    "created_by_role": actor.get("role") if actor else None,
                }
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info(
            "appointment_created",
            appointment_id=str(entry.id),
            scheduled_date=entry.scheduled_date.isoformat(),
        )

        if self.audit:
            await self.audit.record(actor, "APPOINTMENT_CREATE", "Appointment", entry.id)
        if self.notifier:
            await self.notifier.notify_role(
                "doctor",
                "New appointment",
                f"Appointment booked for {entry.scheduled_date.isoformat()}",
                NotificationType.APPOINTMENT_CREATED,
                related_id=entry.id,
                created_by=actor["id"] if actor else None,
            )

        return entry

    async def get_appointment(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        return await self.repository.get(appointment_id)

    async def list_appointments(self, filters: AppointmentFilters) -> AppointmentListResponse:
        """
        List appointments with filtering and pagination.

        Args:
            filters: Filter and pagination parameters

        Returns:
            Paginated list of appointments
        """
        total, items = await self.repository.search(filters)

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=items,
        )

    async def update_appointment(
        self,
        appointment_id: UUID,
        data: AppointmentUpdate,
        actor: dict | None = None,
    ) -> AppointmentResponse:
        """
        Edit the descriptive fields of an appointment.

        Args:
            appointment_id: Appointment ID
            data: Update data
            actor: Staff member making the change

        Returns:
            Updated appointment

        Raises:
            NotFoundException: If appointment not found
            ConcurrentModificationException: If the appointment changed meanwhile
        """
        update_values: dict[str, Any] = {}
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                update_values[field] = value.value if hasattr(value, "value") else value

        try:
            current = await self.repository.get(appointment_id)
            if not update_values:
                # No changes, return current state
                await self.db.rollback()
                return current

            updated = await self.repository.update_if_unchanged(current, update_values)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        if self.audit:
            await self.audit.record(
                actor,
                "APPOINTMENT_UPDATE",
                "Appointment",
                appointment_id,
                details={"fields": sorted(update_values)},
            )

        return updated

    async def delete_appointment(self, appointment_id: UUID, actor: dict | None = None) -> None:
        """
        Soft delete an appointment.

        Raises:
            NotFoundException: If appointment not found
        """
        try:
            current = await self.repository.get(appointment_id)
            await self.repository.soft_delete(current, utcnow())
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("appointment_deleted", appointment_id=str(appointment_id))

        if self.audit:
            await self.audit.record(actor, "APPOINTMENT_DELETE", "Appointment", appointment_id)
