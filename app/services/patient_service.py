"""Patient service for business logic."""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.models.appointments import appointments
from app.models.patients import patients
from app.schemas.appointments import AppointmentStatus, DiagnosisSummary
from app.schemas.patients import (
    PatientCreate,
    PatientDiagnosis,
    PatientListResponse,
    PatientResponse,
    PatientUpdate,
)
from app.services.audit_service import AuditService

logger = structlog.get_logger(__name__)

_not_deleted = patients.c.deleted_at.is_(None)


class PatientService:
    """Service for managing patient records."""

    def __init__(self, db: AsyncSession, audit: AuditService | None = None):
        """Initialize service with database session and optional audit writer."""
        self.db = db
        self.audit = audit

    async def create_patient(self, data: PatientCreate) -> PatientResponse:
        """Register a new patient."""
        now = datetime.now(UTC)
        stmt = (
            insert(patients)
            .values(created_at=now, updated_at=now, **data.model_dump())
            .returning(patients)
        )
        result = await self.db.execute(stmt)
        await self.db.commit()

        row = result.fetchone()
        return PatientResponse.model_validate(dict(row._mapping))

    async def get_patient(self, patient_id: UUID) -> PatientResponse:
        """
        Get patient by ID.

        Raises:
            NotFoundException: If patient not found
        """
        result = await self.db.execute(
            select(patients).where(and_(patients.c.id == patient_id, _not_deleted))
        )
        row = result.fetchone()

        if not row:
            raise NotFoundException("Patient not found")

        return PatientResponse.model_validate(dict(row._mapping))

    async def exists(self, patient_id: UUID) -> bool:
        """Check whether a patient record exists."""
        result = await self.db.execute(
            select(func.count())
            .select_from(patients)
            .where(and_(patients.c.id == patient_id, _not_deleted))
        )
        return bool(result.scalar())

    async def list_patients(
        self,
        search: str | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> PatientListResponse:
        """List patients, optionally searching by name or phone."""
        conditions = [_not_deleted]
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(patients.c.full_name.ilike(pattern), patients.c.phone.ilike(pattern))
            )

        count_stmt = select(func.count()).select_from(patients).where(*conditions)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(patients)
            .where(*conditions)
            .order_by(patients.c.full_name)
            .limit(page_size)
            .offset((page - 1) * page_size)
        )
        result = await self.db.execute(stmt)

        return PatientListResponse(
            total=total,
            page=page,
            page_size=page_size,
            items=[PatientResponse.model_validate(dict(r._mapping)) for r in result.fetchall()],
        )

    async def update_patient(
        self,
        patient_id: UUID,
        data: PatientUpdate,
        actor: dict | None = None,
    ) -> PatientResponse:
        """
        Edit a patient record.

        Args:
            patient_id: Patient ID
            data: Fields to change
            actor: Staff member making the change

        Returns:
            Updated patient

        Raises:
            NotFoundException: If patient not found
        """
        update_values: dict[str, Any] = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None
        }

        if not update_values:
            # No changes, return current state
            current = await self.get_patient(patient_id)
            await self.db.rollback()
            return current

        update_values["updated_at"] = datetime.now(UTC)
        try:
            result = await self.db.execute(
                update(patients)
                .where(and_(patients.c.id == patient_id, _not_deleted))
                .values(**update_values)
                .returning(patients)
            )
            row = result.fetchone()
            if not row:
                raise NotFoundException("Patient not found")
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("patient_updated", patient_id=str(patient_id))

        if self.audit:
            await self.audit.record(
                actor,
                "PATIENT_UPDATE",
                "Patient",
                patient_id,
                details={"fields": sorted(k for k in update_values if k != "updated_at")},
            )

        return PatientResponse.model_validate(dict(row._mapping))

    async def soft_delete_patient(self, patient_id: UUID, actor: dict | None = None) -> None:
        """
        Soft delete a patient record; their appointments are kept.

        Raises:
            NotFoundException: If patient not found
        """
        now = datetime.now(UTC)
        try:
            result = await self.db.execute(
                update(patients)
                .where(and_(patients.c.id == patient_id, _not_deleted))
                .values(deleted_at=now, updated_at=now)
                .returning(patients.c.id)
            )
            if result.fetchone() is None:
                raise NotFoundException("Patient not found")
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("patient_deleted", patient_id=str(patient_id))

        if self.audit:
            await self.audit.record(actor, "PATIENT_DELETE", "Patient", patient_id)

    async def list_diagnoses(self, patient_id: UUID) -> list[PatientDiagnosis]:
        """
        Diagnoses from the patient's completed consultations, newest first.

        Raises:
            NotFoundException: If patient not found
        """
        await self.get_patient(patient_id)

        result = await self.db.execute(
            select(
                appointments.c.id,
                appointments.c.scheduled_date,
                appointments.c.ended_at,
                appointments.c.diagnosis,
            )
            .where(
                and_(
                    appointments.c.patient_id == patient_id,
                    appointments.c.status == AppointmentStatus.COMPLETED.value,
                    appointments.c.deleted_at.is_(None),
                )
            )
            .order_by(appointments.c.ended_at.desc(), appointments.c.created_at.desc())
        )

        return [
            PatientDiagnosis(
                appointment_id=row.id,
                scheduled_date=row.scheduled_date,
                ended_at=row.ended_at,
                diagnosis=DiagnosisSummary.model_validate(row.diagnosis),
            )
            for row in result.fetchall()
            if row.diagnosis is not None
        ]
