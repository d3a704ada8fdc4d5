"""Appointment status state machine."""

from collections.abc import Callable
from datetime import date, datetime, time
from enum import Enum
from typing import Any
from uuid import UUID

import structlog

from app.core.clock import local_day, utcnow
from app.core.exceptions import InvalidTransitionException
from app.schemas.appointments import (
    AppointmentResponse,
    AppointmentStatus,
    DiagnosisSummary,
)
from app.services.appointment_repository import AppointmentRepository
from app.services.queue_order import QueueOrder
from app.services.sequence_allocator import SequenceAllocator

logger = structlog.get_logger(__name__)


class QueueAction(str, Enum):
    """Operations that move an appointment between statuses."""

    CHECK_IN = "check_in"
    START = "start"
    COMPLETE = "complete"
    CANCEL = "cancel"
    NO_SHOW = "no_show"
    RESCHEDULE = "reschedule"


# (current status, action) -> next status. Pairs not listed are illegal.
TRANSITIONS: dict[tuple[AppointmentStatus, QueueAction], AppointmentStatus] = {
    (AppointmentStatus.SCHEDULED, QueueAction.CHECK_IN): AppointmentStatus.CHECKED_IN,
    (AppointmentStatus.CHECKED_IN, QueueAction.START): AppointmentStatus.IN_PROGRESS,
    (AppointmentStatus.IN_PROGRESS, QueueAction.COMPLETE): AppointmentStatus.COMPLETED,
    (AppointmentStatus.SCHEDULED, QueueAction.CANCEL): AppointmentStatus.CANCELLED,
    (AppointmentStatus.CHECKED_IN, QueueAction.CANCEL): AppointmentStatus.CANCELLED,
    (AppointmentStatus.IN_PROGRESS, QueueAction.CANCEL): AppointmentStatus.CANCELLED,
    (AppointmentStatus.SCHEDULED, QueueAction.NO_SHOW): AppointmentStatus.NO_SHOW,
    (AppointmentStatus.SCHEDULED, QueueAction.RESCHEDULE): AppointmentStatus.RESCHEDULED,
    (AppointmentStatus.CHECKED_IN, QueueAction.RESCHEDULE): AppointmentStatus.RESCHEDULED,
    (AppointmentStatus.IN_PROGRESS, QueueAction.RESCHEDULE): AppointmentStatus.RESCHEDULED,
}


def resolve_transition(current: AppointmentStatus, action: QueueAction) -> AppointmentStatus:
    """
    Look up the status ``action`` leads to from ``current``.

    Raises:
        InvalidTransitionException: If the pair is not in the transition table
    """
    try:
        return TRANSITIONS[(current, action)]
    except KeyError:
        raise InvalidTransitionException(current.value, action.value) from None


def append_note(notes: str | None, line: str) -> str:
    """Add a line to free-text notes."""
    return f"{notes}\n{line}" if notes else line


class AppointmentLifecycle:
    """
    Applies transitions to one appointment.

    Each method validates against ``TRANSITIONS``, gathers the side effects
    of the edge (timestamps, queue numbers, linked entries) and writes them
    in a single conditional update. Nothing is committed here: the caller
    owns the transaction so the status change and its side effects land
    together or not at all.
    """

    def __init__(
        self,
        repository: AppointmentRepository,
        allocator: SequenceAllocator,
        queue_order: QueueOrder,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize lifecycle with its collaborators."""
        self.repository = repository
        self.allocator = allocator
        self.queue_order = queue_order
        self.clock = clock

    async def _apply(
        self,
        entry: AppointmentResponse,
        action: QueueAction,
        values: dict[str, Any],
    ) -> AppointmentResponse:
        updated = await self.repository.update_if_unchanged(entry, values)
        logger.info(
            "appointment_transition",
            appointment_id=str(entry.id),
            action=action.value,
            from_status=entry.status.value,
            to_status=updated.status.value,
        )
        return updated

    async def check_in(self, entry: AppointmentResponse) -> AppointmentResponse:
        """Mark a patient as arrived and give them a ticket and a place in the queue."""
        status = resolve_transition(entry.status, QueueAction.CHECK_IN)
        now = self.clock()
        day = entry.queue_day or local_day(now)

        values: dict[str, Any] = {
            "status": status.value,
            "checked_in_at": now,
            "queue_day": day,
        }
        if entry.ticket_number is None:
            values["ticket_number"] = await self.allocator.next_ticket(day)
        values["queue_position"] = await self.queue_order.append_to_end(entry.id, day)

        return await self._apply(entry, QueueAction.CHECK_IN, values)

    async def start(self, entry: AppointmentResponse) -> AppointmentResponse:
        """Call the patient in to the consultation."""
        status = resolve_transition(entry.status, QueueAction.START)
        return await self._apply(
            entry,
            QueueAction.START,
            {"status": status.value, "started_at": self.clock()},
        )

    async def complete(
        self,
        entry: AppointmentResponse,
        diagnosis: DiagnosisSummary | None = None,
    ) -> AppointmentResponse:
        """Finish the consultation, optionally attaching a diagnosis summary."""
        status = resolve_transition(entry.status, QueueAction.COMPLETE)
        values: dict[str, Any] = {"status": status.value, "ended_at": self.clock()}
        if diagnosis is not None:
            values["diagnosis"] = diagnosis.model_dump()

        return await self._apply(entry, QueueAction.COMPLETE, values)

    async def cancel(
        self,
        entry: AppointmentResponse,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """Cancel the appointment."""
        status = resolve_transition(entry.status, QueueAction.CANCEL)
        values: dict[str, Any] = {"status": status.value, "cancelled_at": self.clock()}
        if reason:
            values["notes"] = append_note(entry.notes, f"Cancellation reason: {reason}")

        return await self._apply(entry, QueueAction.CANCEL, values)

    async def mark_no_show(self, entry: AppointmentResponse) -> AppointmentResponse:
        """Record that the patient never arrived."""
        status = resolve_transition(entry.status, QueueAction.NO_SHOW)
        return await self._apply(entry, QueueAction.NO_SHOW, {"status": status.value})

    async def reschedule(
        self,
        entry: AppointmentResponse,
        new_date: date,
        new_time: time | None = None,
        reason: str | None = None,
        created_by: UUID | None = None,
        created_by_role: str | None = None,
    ) -> tuple[AppointmentResponse, AppointmentResponse]:
        """
        Close ``entry`` as rescheduled and book its replacement.

        Args:
            entry: Appointment being moved
            new_date: Day of the replacement appointment
            new_time: Time of day; defaults to the original's
            reason: Optional reason, noted on both entries
            created_by: Actor creating the replacement
            created_by_role: Role of that actor

        Returns:
            Tuple of (original, replacement)
        """
        status = resolve_transition(entry.status, QueueAction.RESCHEDULE)
        suffix = f". Reason: {reason}" if reason else ""

        original = await self._apply(
            entry,
            QueueAction.RESCHEDULE,
            {
                "status": status.value,
                "notes": append_note(
                    entry.notes, f"Rescheduled to {new_date.isoformat()}{suffix}"
                ),
            },
        )

        replacement = await self.repository.insert(
            {
                "patient_id": entry.patient_id,
                "original_appointment_id": entry.id,
                "scheduled_date": new_date,
                "scheduled_time": new_time if new_time is not None else entry.scheduled_time,
                "appointment_type": entry.appointment_type.value,
                "reason": entry.reason,
                "notes": append_note(
                    entry.notes,
                    f"Rescheduled from {entry.scheduled_date.isoformat()}{suffix}",
                ),
                "is_walk_in": entry.is_walk_in,
                "status": AppointmentStatus.SCHEDULED.value,
                "created_by": created_by,
                "created_by_role": created_by_role,
            }
        )
        logger.info(
            "appointment_rescheduled",
            appointment_id=str(entry.id),
            replacement_id=str(replacement.id),
            new_date=new_date.isoformat(),
        )
        return original, replacement
