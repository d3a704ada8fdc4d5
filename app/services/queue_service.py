"""Queue orchestration consumed by the HTTP layer and the reset job."""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, TypeVar
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.clock import local_day, local_time, utcnow
from app.core.exceptions import (
    ConcurrentModificationException,
    InvalidQueueStateException,
    InvalidTransitionException,
    NotFoundException,
)
from app.schemas.appointments import (
    AppointmentResponse,
    AppointmentStatus,
    AppointmentType,
    DiagnosisSummary,
)
from app.schemas.notifications import NotificationType
from app.schemas.queue import QueueStats
from app.services.appointment_lifecycle import AppointmentLifecycle, QueueAction
from app.services.appointment_repository import AppointmentRepository
from app.services.audit_service import AuditService
from app.services.notification_service import NotificationService
from app.services.patient_service import PatientService
from app.services.queue_order import QueueOrder
from app.services.sequence_allocator import CounterKind, SequenceAllocator

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_NOTIFICATION_TYPES = {
    QueueAction.CANCEL: NotificationType.APPOINTMENT_CANCELLED,
}


def _round_half_up(value: float) -> int:
    return int(Decimal(str(value)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _counterpart_role(actor: dict | None) -> str:
    """Role that should hear about a change made by ``actor``."""
    if actor and actor.get("role") == "doctor":
        return "secretary"
    return "doctor"


class QueueService:
    """
    Check-in, consultation flow, reordering, statistics and daily reset.

    Every public operation runs as one transaction on ``db``: the status
    change, its ticket and position claims and any linked entry commit
    together or are rolled back together. Audit events and notifications
    are written afterwards and never undo a committed change.
    """

    def __init__(
        self,
        db: AsyncSession,
        audit: AuditService | None = None,
        notifier: NotificationService | None = None,
        clock: Callable[[], datetime] = utcnow,
        retry_attempts: int | None = None,
    ):
        """
        Initialize the service and its queue components.

        Args:
            db: Session shared by every component of one request
            audit: Audit trail writer
            notifier: Role notification sender
            clock: Source of the current time
            retry_attempts: Extra attempts after a concurrent modification
        """
        self.db = db
        self.clock = clock
        self.audit = audit
        self.notifier = notifier
        self.retry_attempts = (
            settings.transition_retry_attempts if retry_attempts is None else retry_attempts
        )

        self.repository = AppointmentRepository(db)
        self.allocator = SequenceAllocator(db)
        self.queue_order = QueueOrder(self.repository, self.allocator)
        self.lifecycle = AppointmentLifecycle(
            self.repository, self.allocator, self.queue_order, clock=clock
        )
        self.patients = PatientService(db)

    def today(self) -> date:
        """Current queue day in the clinic's zone."""
        return local_day(self.clock())

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        """Commit on success, roll back on any error."""
        try:
            yield
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    async def _with_retry(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` in a fresh transaction, retrying lost optimistic races."""
        attempt = 0
        while True:
            try:
                async with self._unit_of_work():
                    return await operation()
            except ConcurrentModificationException:
                if attempt >= self.retry_attempts:
                    raise
                attempt += 1
                logger.warning("queue_operation_retry", attempt=attempt)

    async def _record(
        self,
        actor: dict | None,
        action: str,
        resource_type: str,
        resource_id: Any,
        status: str = "SUCCESS",
        details: dict[str, Any] | None = None,
    ) -> None:
        if self.audit:
            await self.audit.record(actor, action, resource_type, resource_id, status, details)

    async def _notify(
        self,
        role: str,
        title: str,
        body: str,
        notification_type: NotificationType,
        related_id: UUID | None = None,
        actor: dict | None = None,
    ) -> None:
        if self.notifier:
            await self.notifier.notify_role(
                role,
                title,
                body,
                notification_type,
                related_id=related_id,
                created_by=actor["id"] if actor else None,
            )

    async def _transition(
        self,
        entry_id: UUID,
        action: QueueAction,
        actor: dict | None,
        apply: Callable[[AppointmentResponse], Awaitable[T]],
    ) -> T:
        """Load ``entry_id`` afresh, apply one lifecycle edge and commit."""

        async def operation() -> T:
            entry = await self.repository.get(entry_id)
            return await apply(entry)

        audit_action = f"APPOINTMENT_{action.value.upper()}"
        try:
            result = await self._with_retry(operation)
        except (InvalidTransitionException, ConcurrentModificationException) as e:
            await self._record(
                actor, audit_action, "Appointment", entry_id, "FAILURE", e.details
            )
            raise

        await self._record(actor, audit_action, "Appointment", entry_id)
        await self._notify(
            _counterpart_role(actor),
            "Appointment updated",
            f"Appointment {entry_id}: {action.value.replace('_', ' ')}",
            _NOTIFICATION_TYPES.get(action, NotificationType.APPOINTMENT_UPDATED),
            related_id=entry_id,
            actor=actor,
        )
        return result

    async def walk_in(
        self,
        patient_id: UUID,
        actor: dict | None = None,
        reason: str | None = None,
        notes: str | None = None,
    ) -> AppointmentResponse:
        """
        Register an arrived patient without a booking and put them in the queue.

        Args:
            patient_id: Patient who walked in
            actor: Staff member registering the walk-in
            reason: Visit reason
            notes: Front-desk notes

        Returns:
            The checked-in entry with its ticket and position

        Raises:
            NotFoundException: If the patient does not exist
            AllocationUnavailableException: If numbers cannot be allocated
        """

        async def operation() -> AppointmentResponse:
            if not await self.patients.exists(patient_id):
                raise NotFoundException("Patient not found")

            now = self.clock()
            entry = await self.repository.insert(
                {
                    "patient_id": patient_id,
                    "scheduled_date": local_day(now),
                    "scheduled_time": local_time(now),
                    "appointment_type": AppointmentType.WALK_IN.value,
                    "reason": reason,
                    "notes": notes,
                    "is_walk_in": True,
                    "status": AppointmentStatus.SCHEDULED.value,
                    "created_by": actor["id"] if actor else None,
                    "created_by_role": actor.get("role") if actor else None,
                }
            )
            return await self.lifecycle.check_in(entry)

        entry = await self._with_retry(operation)
        logger.info(
            "walk_in_registered",
            appointment_id=str(entry.id),
            ticket_number=entry.ticket_number,
            queue_position=entry.queue_position,
        )

        await self._record(
            actor,
            "WALK_IN_CREATE",
            "Appointment",
            entry.id,
            details={"ticket_number": entry.ticket_number},
        )
        await self._notify(
            "doctor",
            "New walk-in patient",
            f"Walk-in ticket #{entry.ticket_number} joined the queue",
            NotificationType.APPOINTMENT_CREATED,
            related_id=entry.id,
            actor=actor,
        )
        return entry

    async def check_in_scheduled(
        self, entry_id: UUID, actor: dict | None = None
    ) -> AppointmentResponse:
        """Check in a booked patient who has arrived."""
        return await self._transition(
            entry_id, QueueAction.CHECK_IN, actor, self.lifecycle.check_in
        )

    async def start(self, entry_id: UUID, actor: dict | None = None) -> AppointmentResponse:
        """Begin the consultation."""
        return await self._transition(entry_id, QueueAction.START, actor, self.lifecycle.start)

    async def complete(
        self,
        entry_id: UUID,
        diagnosis: DiagnosisSummary | None = None,
        actor: dict | None = None,
    ) -> AppointmentResponse:
        """Finish the consultation and attach the diagnosis."""
        return await self._transition(
            entry_id,
            QueueAction.COMPLETE,
            actor,
            lambda entry: self.lifecycle.complete(entry, diagnosis),
        )

    async def cancel(
        self,
        entry_id: UUID,
        reason: str | None = None,
        actor: dict | None = None,
    ) -> AppointmentResponse:
        """Cancel an appointment that has not reached a terminal status."""
        return await self._transition(
            entry_id,
            QueueAction.CANCEL,
            actor,
            lambda entry: self.lifecycle.cancel(entry, reason),
        )

    async def mark_no_show(self, entry_id: UUID, actor: dict | None = None) -> AppointmentResponse:
        """Record that a booked patient never arrived."""
        return await self._transition(
            entry_id, QueueAction.NO_SHOW, actor, self.lifecycle.mark_no_show
        )

    async def reschedule(
        self,
        entry_id: UUID,
        new_date: date,
        new_time: time | None = None,
        reason: str | None = None,
        actor: dict | None = None,
    ) -> tuple[AppointmentResponse, AppointmentResponse]:
        """
        Move an appointment to another day.

        Returns:
            Tuple of (original marked rescheduled, new scheduled entry)
        """
        return await self._transition(
            entry_id,
            QueueAction.RESCHEDULE,
            actor,
            lambda entry: self.lifecycle.reschedule(
                entry,
                new_date,
                new_time=new_time,
                reason=reason,
                created_by=actor["id"] if actor else None,
                created_by_role=actor.get("role") if actor else None,
            ),
        )

    async def reorder(
        self,
        ordered_ids: list[UUID],
        actor: dict | None = None,
        day: date | None = None,
    ) -> list[AppointmentResponse]:
        """
        Reorder the active queue.

        Raises:
            InvalidQueueStateException: If any id is not active; nothing changes
        """
        day = day or self.today()
        try:
            queue = await self._with_retry(lambda: self.queue_order.reorder(day, ordered_ids))
        except InvalidQueueStateException as e:
            await self._record(actor, "QUEUE_REORDER", "Queue", day.isoformat(), "FAILURE", e.details)
            raise

        await self._record(
            actor,
            "QUEUE_REORDER",
            "Queue",
            day.isoformat(),
            details={"ordered_ids": [str(entry_id) for entry_id in ordered_ids]},
        )
        await self._notify(
            "doctor",
            "Queue reordered",
            f"The queue for {day.isoformat()} was reordered",
            NotificationType.QUEUE_UPDATED,
            actor=actor,
        )
        return queue

    async def today_queue(self, day: date | None = None) -> list[AppointmentResponse]:
        """Active queue of ``day`` (default today), in-consultation entries first."""
        async with self._unit_of_work():
            return await self.queue_order.today_queue(day or self.today())

    async def next_in_line(self, day: date | None = None) -> AppointmentResponse | None:
        """Waiting entry that should be called next."""
        async with self._unit_of_work():
            return await self.queue_order.next_in_line(day or self.today())

    async def queue_stats(self, day: date | None = None) -> QueueStats:
        """
        Counts per status, walk-ins, mean consultation length and the next ticket.

        Args:
            day: Queue day, defaults to today

        Returns:
            Statistics for ``day``
        """
        day = day or self.today()
        async with self._unit_of_work():
            entries = await self.repository.list_for_day(day)
            last_ticket = await self.allocator.peek(day, CounterKind.TICKET)

        counts = {status: 0 for status in AppointmentStatus}
        durations = []
        for entry in entries:
            counts[entry.status] += 1
            if (
                entry.status == AppointmentStatus.COMPLETED
                and entry.started_at is not None
                and entry.ended_at is not None
            ):
                durations.append((entry.ended_at - entry.started_at).total_seconds() / 60)

        return QueueStats(
            day=day,
            waiting=counts[AppointmentStatus.CHECKED_IN],
            in_progress=counts[AppointmentStatus.IN_PROGRESS],
            completed=counts[AppointmentStatus.COMPLETED],
            cancelled=counts[AppointmentStatus.CANCELLED],
            no_show=counts[AppointmentStatus.NO_SHOW],
            walk_in_count=sum(1 for entry in entries if entry.is_walk_in),
            avg_service_minutes=_round_half_up(sum(durations) / len(durations)) if durations else 0,
            next_ticket_number=last_ticket + 1,
        )

    async def reset_day(self, day: date | None = None, actor: dict | None = None) -> int:
        """
        Return every active entry of ``day`` to scheduled.

        Ticket, position and arrival timestamps are cleared. When no entry of
        the day holds a number any more, the day's counters are dropped too,
        so numbering restarts at 1. Running it twice is harmless.

        Args:
            day: Queue day, defaults to today
            actor: Administrator or None for the scheduled job

        Returns:
            Number of entries reset
        """
        day = day or self.today()

        async with self._unit_of_work():
            await self.allocator.lock(day)
            count = await self.repository.reset_active(day)
            if not await self.repository.has_numbered_entries(day):
                await self.allocator.clear(day)

        logger.info("queue_day_reset", day=day.isoformat(), reset_count=count)

        await self._record(
            actor, "QUEUE_RESET", "Queue", day.isoformat(), details={"reset_count": count}
        )
        if count:
            await self._notify(
                "secretary",
                "Queue reset",
                f"{count} entries of {day.isoformat()} were returned to scheduled",
                NotificationType.QUEUE_UPDATED,
                actor=actor,
            )
        return count

    async def reset_stale_days(self, actor: dict | None = None) -> dict[date, int]:
        """Reset every past day that still has entries waiting or in consultation."""
        today = self.today()
        async with self._unit_of_work():
            days = await self.repository.active_days_before(today)

        return {day: await self.reset_day(day, actor) for day in days}
