"""Total ordering of the active queue for a day."""

from datetime import date
from uuid import UUID

import structlog

from app.core.exceptions import InvalidQueueStateException
from app.schemas.appointments import AppointmentResponse
from app.services.appointment_repository import AppointmentRepository
from app.services.sequence_allocator import CounterKind, SequenceAllocator

logger = structlog.get_logger(__name__)


class QueueOrder:
    """
    Maintains queue positions for checked-in and in-consultation entries.

    Positions come from the day's position counter, so a number is never
    issued twice within a day: appending takes the next value and a reorder
    claims a fresh block above everything issued so far.
    """

    def __init__(self, repository: AppointmentRepository, allocator: SequenceAllocator):
        """Initialize with repository and allocator sharing one session."""
        self.repository = repository
        self.allocator = allocator

    async def append_to_end(self, entry_id: UUID, day: date) -> int:
        """Position that places ``entry_id`` behind every active entry of ``day``."""
        position = await self.allocator.claim(day, CounterKind.POSITION)
        logger.info(
            "queue_position_allocated",
            appointment_id=str(entry_id),
            day=day.isoformat(),
            queue_position=position,
        )
        return position

    async def reorder(self, day: date, ordered_ids: list[UUID]) -> list[AppointmentResponse]:
        """
        Apply ``ordered_ids`` to the front of the queue; unlisted entries follow in their current order.

        Args:
            day: Queue day
            ordered_ids: Active entry ids in the desired order

        Returns:
            The reordered queue

        Raises:
            InvalidQueueStateException: If any id is duplicated or not active on ``day``
        """
        if len(set(ordered_ids)) != len(ordered_ids):
            raise InvalidQueueStateException("Queue order contains duplicate entries")

        # Counter row first, then the entries: same lock order as check-in
        await self.allocator.claim(day, CounterKind.POSITION, 0)
        active = await self.repository.list_active(day, for_update=True)
        by_id = {entry.id: entry for entry in active}

        invalid = [str(entry_id) for entry_id in ordered_ids if entry_id not in by_id]
        if invalid:
            raise InvalidQueueStateException(
                "Queue order references entries that are not in the active queue",
                invalid_ids=invalid,
            )

        listed = set(ordered_ids)
        unlisted = sorted(
            (entry for entry in active if entry.id not in listed),
            key=lambda entry: entry.queue_position or 0,
        )
        final_order = [by_id[entry_id] for entry_id in ordered_ids] + unlisted

        last = await self.allocator.claim(day, CounterKind.POSITION, len(final_order))
        first = last - len(final_order) + 1
        for offset, entry in enumerate(final_order):
            await self.repository.set_queue_position(entry, first + offset)

        logger.info(
            "queue_reordered",
            day=day.isoformat(),
            listed=len(ordered_ids),
            total=len(final_order),
        )
        return await self.repository.list_active(day)

    async def next_in_line(self, day: date) -> AppointmentResponse | None:
        """Checked-in entry with the lowest position, or None if nobody is waiting."""
        return await self.repository.first_waiting(day)

    async def today_queue(self, day: date) -> list[AppointmentResponse]:
        """Active queue: in-consultation entries first, then waiting entries by position."""
        return await self.repository.list_active(day)
