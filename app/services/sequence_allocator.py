"""Per-day ticket and position counters."""

from datetime import date
from enum import Enum
from typing import Any

import structlog
from sqlalchemy import and_, delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import AllocationUnavailableException
from app.models.queue_counters import queue_counters

logger = structlog.get_logger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class CounterKind(str, Enum):
    """Independent sequences kept per day."""

    TICKET = "ticket"
    POSITION = "position"


class SequenceAllocator:
    """
    Issues monotonically increasing numbers scoped to a calendar day.

    Every claim is one ``INSERT .. ON CONFLICT DO UPDATE .. RETURNING``
    statement executed in the caller's transaction. The counter row lock
    serialises concurrent callers for the same day, and a rollback of the
    surrounding transaction returns the claimed numbers, so committed
    tickets never have gaps.
    """

    def __init__(self, db: AsyncSession):
        """Initialize allocator with database session."""
        self.db = db

    def _upsert(self, day: date, kind: CounterKind, count: int) -> Any:
        dialect = self.db.bind.dialect.name
        insert_fn = _UPSERT_DIALECTS.get(dialect)
        if insert_fn is None:
            raise AllocationUnavailableException(f"Counter store does not support {dialect}")

        stmt = insert_fn(queue_counters).values(day=day, kind=kind.value, value=count)
        return stmt.on_conflict_do_update(
            index_elements=[queue_counters.c.day, queue_counters.c.kind],
            set_={"value": queue_counters.c.value + count},
        ).returning(queue_counters.c.value)

    async def claim(self, day: date, kind: CounterKind, count: int = 1) -> int:
        """
        Atomically advance a counter by ``count`` and return its new value.

        A block of ``count`` numbers ends at the returned value. ``count=0``
        takes the row lock without consuming a number.

        Raises:
            AllocationUnavailableException: If the counter store is unreachable
        """
        try:
            result = await self.db.execute(self._upsert(day, kind, count))
            value = result.scalar_one()
        except (OperationalError, InterfaceError, OSError) as e:
            logger.error(
                "counter_store_unavailable",
                day=day.isoformat(),
                kind=kind.value,
                error=str(e),
            )
            raise AllocationUnavailableException() from e

        logger.debug("counter_claimed", day=day.isoformat(), kind=kind.value, value=value)
        return int(value)

    async def next_ticket(self, day: date) -> int:
        """Next ticket number for ``day``; the first ticket of a day is 1."""
        ticket = await self.claim(day, CounterKind.TICKET)
        logger.info("ticket_allocated", day=day.isoformat(), ticket_number=ticket)
        return ticket

    async def lock(self, day: date) -> None:
        """Hold both counter rows of ``day`` until the transaction ends."""
        await self.claim(day, CounterKind.TICKET, 0)
        await self.claim(day, CounterKind.POSITION, 0)

    async def peek(self, day: date, kind: CounterKind = CounterKind.TICKET) -> int:
        """Last number issued for ``day`` without claiming, 0 if none."""
        stmt = select(queue_counters.c.value).where(
            and_(queue_counters.c.day == day, queue_counters.c.kind == kind.value)
        )
        result = await self.db.execute(stmt)
        return int(result.scalar() or 0)

    async def clear(self, day: date) -> None:
        """Drop the counters of ``day`` so numbering restarts at 1."""
        await self.db.execute(delete(queue_counters).where(queue_counters.c.day == day))
        logger.info("counters_cleared", day=day.isoformat())
