"""Persistence facade for appointment and queue records."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, case, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import utcnow
from app.core.exceptions import ConcurrentModificationException, NotFoundException
from app.models.appointments import appointments
from app.schemas.appointments import (
    ACTIVE_STATUSES,
    AppointmentFilters,
    AppointmentResponse,
    AppointmentStatus,
)

_ACTIVE_VALUES = [s.value for s in ACTIVE_STATUSES]

# In-consultation patients surface before the waiting line
_STATUS_PRIORITY = case(
    (appointments.c.status == AppointmentStatus.IN_PROGRESS.value, 0),
    else_=1,
)


def _to_response(row: Any) -> AppointmentResponse:
    return AppointmentResponse.model_validate(dict(row._mapping))


class AppointmentRepository:
    """Loads, saves and queries appointment rows for the queue components."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    @staticmethod
    def _day_clause(day: date) -> Any:
        """Entries belonging to ``day``: their queue day once numbered, else their booking day."""
        return func.coalesce(appointments.c.queue_day, appointments.c.scheduled_date) == day

    async def insert(self, values: dict[str, Any]) -> AppointmentResponse:
        """Insert a new appointment row and return it."""
        now = utcnow()
        stmt = (
            insert(appointments)
            .values(created_at=now, updated_at=now, **values)
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        return _to_response(result.fetchone())

    async def get(self, appointment_id: UUID) -> AppointmentResponse:
        """
        Load a live appointment.

        Raises:
            NotFoundException: If appointment does not exist or was deleted
        """
        stmt = select(appointments).where(
            and_(
                appointments.c.id == appointment_id,
                appointments.c.deleted_at.is_(None),
            )
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()

        if not row:
            raise NotFoundException("Appointment not found")

        return _to_response(row)

    async def update_if_unchanged(
        self,
        entry: AppointmentResponse,
        values: dict[str, Any],
    ) -> AppointmentResponse:
        """
        Write ``values`` only if the row still has the version and status that were read.

        Raises:
            ConcurrentModificationException: If another writer got there first
        """
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == entry.id,
                    appointments.c.version == entry.version,
                    appointments.c.status == entry.status.value,
                    appointments.c.deleted_at.is_(None),
                )
            )
            .values(
                version=appointments.c.version + 1,
                updated_at=utcnow(),
                **values,
            )
            .returning(appointments)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()

        if row is None:
            raise ConcurrentModificationException()

        return _to_response(row)

    async def list_active(self, day: date, for_update: bool = False) -> list[AppointmentResponse]:
        """Active entries of ``day`` ordered by (status priority, position)."""
        stmt = (
            select(appointments)
            .where(
                and_(
                    appointments.c.queue_day == day,
                    appointments.c.status.in_(_ACTIVE_VALUES),
                    appointments.c.deleted_at.is_(None),
                )
            )
            .order_by(_STATUS_PRIORITY, appointments.c.queue_position)
        )
        if for_update:
            stmt = stmt.with_for_update()

        result = await self.db.execute(stmt)
        return [_to_response(row) for row in result.fetchall()]

    async def first_waiting(self, day: date) -> AppointmentResponse | None:
        """Checked-in entry of ``day`` with the lowest position."""
        stmt = (
            select(appointments)
            .where(
                and_(
                    appointments.c.queue_day == day,
                    appointments.c.status == AppointmentStatus.CHECKED_IN.value,
                    appointments.c.deleted_at.is_(None),
                )
            )
            .order_by(appointments.c.queue_position)
            .limit(1)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        return _to_response(row) if row else None

    async def set_queue_position(self, entry: AppointmentResponse, position: int) -> None:
        """
        Move an active entry to ``position``.

        Raises:
            ConcurrentModificationException: If the entry left the queue meanwhile
        """
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == entry.id,
                    appointments.c.status.in_(_ACTIVE_VALUES),
                    appointments.c.deleted_at.is_(None),
                )
            )
            .values(
                queue_position=position,
                version=appointments.c.version + 1,
                updated_at=utcnow(),
            )
        )
        result = await self.db.execute(stmt)

        if result.rowcount != 1:
            raise ConcurrentModificationException()

    async def list_for_day(self, day: date) -> list[AppointmentResponse]:
        """Every live entry belonging to ``day``."""
        stmt = (
            select(appointments)
            .where(
                and_(
                    self._day_clause(day),
                    appointments.c.deleted_at.is_(None),
                )
            )
            .order_by(appointments.c.created_at)
        )
        result = await self.db.execute(stmt)
        return [_to_response(row) for row in result.fetchall()]

    async def search(self, filters: AppointmentFilters) -> tuple[int, list[AppointmentResponse]]:
        """Filtered, paginated appointment listing."""
        # Build where conditions
        conditions = [appointments.c.deleted_at.is_(None)]

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.is_walk_in is not None:
            conditions.append(appointments.c.is_walk_in == filters.is_walk_in)

        if filters.from_date:
            conditions.append(appointments.c.scheduled_date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.scheduled_date <= filters.to_date)

        # Count total
        count_stmt = select(func.count()).select_from(appointments).where(and_(*conditions))
        total_result = await self.db.execute(count_stmt)
        total = total_result.scalar() or 0

        # Get paginated results
        offset = (filters.page - 1) * filters.page_size

        stmt = (
            select(appointments)
            .where(and_(*conditions))
            .order_by(
                appointments.c.scheduled_date,
                appointments.c.scheduled_time,
                appointments.c.created_at,
            )
            .limit(filters.page_size)
            .offset(offset)
        )
        result = await self.db.execute(stmt)
        return total, [_to_response(row) for row in result.fetchall()]

    async def reset_active(self, day: date) -> int:
        """Return every active entry of ``day`` to scheduled with queue fields cleared."""
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.queue_day == day,
                    appointments.c.status.in_(_ACTIVE_VALUES),
                    appointments.c.deleted_at.is_(None),
                )
            )
            .values(
                status=AppointmentStatus.SCHEDULED.value,
                queue_day=None,
                ticket_number=None,
                queue_position=None,
                checked_in_at=None,
                started_at=None,
                version=appointments.c.version + 1,
                updated_at=utcnow(),
            )
        )
        result = await self.db.execute(stmt)
        return result.rowcount or 0

    async def has_numbered_entries(self, day: date) -> bool:
        """Whether any entry of ``day`` still holds a ticket or position."""
        stmt = (
            select(func.count())
            .select_from(appointments)
            .where(
                and_(
                    appointments.c.queue_day == day,
                    (appointments.c.ticket_number.is_not(None))
                    | (appointments.c.queue_position.is_not(None)),
                )
            )
        )
        result = await self.db.execute(stmt)
        return bool(result.scalar())

    async def active_days_before(self, day: date) -> list[date]:
        """Past queue days that still have entries waiting or in consultation."""
        stmt = (
            select(appointments.c.queue_day)
            .where(
                and_(
                    appointments.c.queue_day < day,
                    appointments.c.status.in_(_ACTIVE_VALUES),
                    appointments.c.deleted_at.is_(None),
                )
            )
            .distinct()
            .order_by(appointments.c.queue_day)
        )
        result = await self.db.execute(stmt)
        return [row.queue_day for row in result.fetchall()]

    async def soft_delete(self, entry: AppointmentResponse, deleted_at: datetime) -> None:
        """Hide an appointment from every query (administrative override)."""
        await self.update_if_unchanged(entry, {"deleted_at": deleted_at})
