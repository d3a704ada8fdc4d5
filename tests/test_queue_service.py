"""Tests for queue orchestration: check-in, concurrency, stats and reset."""

import asyncio
from datetime import UTC, date, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from app.core.exceptions import (
    ConcurrentModificationException,
    InvalidTransitionException,
    NotFoundException,
)
from app.models.appointments import appointments
from app.models.audit_logs import audit_logs
from app.models.queue_counters import queue_counters
from app.schemas.appointments import AppointmentStatus
from app.services.appointment_repository import AppointmentRepository
from app.services.audit_service import AuditService
from app.services.notification_service import NotificationService
from app.services.queue_service import QueueService


class FakeClock:
    """Settable clock for day-boundary tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock():
    """Clock pinned to mid-morning on a fixed day."""
    return FakeClock(datetime(2026, 3, 14, 9, 0, tzinfo=UTC))


@pytest.mark.asyncio
async def test_walk_in_creates_checked_in_entry(db_session, patient):
    """A walk-in is created already checked in, with ticket and position."""
    entry = await QueueService(db_session).walk_in(patient["id"], reason="Headache")

    assert entry.is_walk_in is True
    assert entry.status == AppointmentStatus.CHECKED_IN
    assert entry.appointment_type.value == "walk_in"
    assert entry.ticket_number == 1
    assert entry.queue_position == 1
    assert entry.reason == "Headache"


@pytest.mark.asyncio
async def test_walk_in_unknown_patient(db_session, patient):
    """Walk-ins for unknown patients fail and allocate nothing."""
    service = QueueService(db_session)

    with pytest.raises(NotFoundException):
        await service.walk_in(uuid4())

    stats = await service.queue_stats()
    assert stats.next_ticket_number == 1


@pytest.mark.asyncio
async def test_concurrent_walk_ins_get_unique_numbers(session_factory, patient):
    """Simultaneous walk-ins receive distinct, gap-free tickets and distinct positions."""
    count = 8

    async def register() -> tuple[int, int]:
        async with session_factory() as session:
            entry = await QueueService(session).walk_in(patient["id"])
            return entry.ticket_number, entry.queue_position

    results = await asyncio.gather(*(register() for _ in range(count)))
    tickets = [ticket for ticket, _ in results]
    positions = [position for _, position in results]

    assert sorted(tickets) == list(range(1, count + 1))
    assert len(set(positions)) == count


@pytest.mark.asyncio
async def test_concurrent_check_ins_and_walk_ins(session_factory, make_appointment, patient):
    """Booked check-ins racing with walk-ins never share a ticket or a position."""
    booked = [await make_appointment() for _ in range(4)]

    async def check_in(entry_id):
        async with session_factory() as session:
            return await QueueService(session).check_in_scheduled(entry_id)

    async def walk_in():
        async with session_factory() as session:
            return await QueueService(session).walk_in(patient["id"])

    entries = await asyncio.gather(
        *(check_in(entry.id) for entry in booked),
        *(walk_in() for _ in range(4)),
    )

    assert sorted(e.ticket_number for e in entries) == list(range(1, 9))
    assert len({e.queue_position for e in entries}) == 8


@pytest.mark.asyncio
async def test_concurrent_start_on_same_entry(session_factory, make_appointment):
    """Two doctors starting the same consultation: exactly one wins."""
    entry = await make_appointment()
    async with session_factory() as session:
        await QueueService(session).check_in_scheduled(entry.id)

    async def start():
        async with session_factory() as session:
            return await QueueService(session).start(entry.id)

    results = await asyncio.gather(start(), start(), return_exceptions=True)

    succeeded = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 1
    assert succeeded[0].status == AppointmentStatus.IN_PROGRESS
    assert len(failed) == 1
    assert isinstance(failed[0], InvalidTransitionException | ConcurrentModificationException)


@pytest.mark.asyncio
async def test_reorder_racing_with_walk_ins(session_factory, patient):
    """Positions stay unique when a reorder and new arrivals interleave."""
    async with session_factory() as session:
        service = QueueService(session)
        first = await service.walk_in(patient["id"])
        second = await service.walk_in(patient["id"])

    async def reorder():
        async with session_factory() as session:
            return await QueueService(session).reorder([second.id, first.id])

    async def walk_in():
        async with session_factory() as session:
            return await QueueService(session).walk_in(patient["id"])

    await asyncio.gather(reorder(), walk_in(), walk_in())

    async with session_factory() as session:
        queue = await QueueService(session).today_queue()

    positions = [entry.queue_position for entry in queue]
    assert len(queue) == 4
    assert len(set(positions)) == 4
    assert queue.index(next(e for e in queue if e.id == second.id)) < queue.index(
        next(e for e in queue if e.id == first.id)
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("terminal", ["completed", "cancelled", "no_show", "rescheduled"])
async def test_terminal_statuses_are_final(db_session, make_appointment, terminal):
    """No operation succeeds once an entry is terminal."""
    entry = await make_appointment(status=terminal)
    service = QueueService(db_session)
    later = date(2030, 1, 1)

    for operation in (
        lambda: service.check_in_scheduled(entry.id),
        lambda: service.start(entry.id),
        lambda: service.complete(entry.id),
        lambda: service.cancel(entry.id),
        lambda: service.mark_no_show(entry.id),
        lambda: service.reschedule(entry.id, later),
    ):
        with pytest.raises(InvalidTransitionException):
            await operation()


@pytest.mark.asyncio
async def test_reschedule_creates_linked_entry(db_session, patient):
    """The original is closed untouched; exactly one linked scheduled entry appears."""
    service = QueueService(db_session)
    original = await service.walk_in(patient["id"], reason="Back pain")
    new_date = original.scheduled_date + timedelta(days=3)

    closed, replacement = await service.reschedule(original.id, new_date, reason="Doctor away")

    assert closed.id == original.id
    assert closed.status == AppointmentStatus.RESCHEDULED
    assert closed.ticket_number == original.ticket_number
    assert closed.patient_id == original.patient_id
    assert closed.is_walk_in == original.is_walk_in
    assert "Rescheduled to" in closed.notes

    assert replacement.id != original.id
    assert replacement.status == AppointmentStatus.SCHEDULED
    assert replacement.original_appointment_id == original.id
    assert replacement.scheduled_date == new_date
    assert replacement.patient_id == original.patient_id
    assert replacement.reason == "Back pain"
    assert replacement.ticket_number is None
    assert replacement.queue_position is None
    assert replacement.checked_in_at is None

    result = await db_session.execute(
        select(func.count())
        .select_from(appointments)
        .where(appointments.c.original_appointment_id == original.id)
    )
    assert result.scalar() == 1
    await db_session.rollback()


@pytest.mark.asyncio
async def test_example_day(db_session, patient):
    """Two walk-ins, a start, a reorder and a completion."""
    service = QueueService(db_session)

    a = await service.walk_in(patient["id"])
    b = await service.walk_in(patient["id"])
    assert (a.ticket_number, a.queue_position) == (1, 1)
    assert (b.ticket_number, b.queue_position) == (2, 2)

    a = await service.start(a.id)
    assert a.status == AppointmentStatus.IN_PROGRESS

    queue = await service.reorder([b.id])
    assert [entry.id for entry in queue] == [a.id, b.id]
    waiting = [entry for entry in queue if entry.status == AppointmentStatus.CHECKED_IN]
    assert waiting[0].id == b.id

    await service.complete(a.id)
    nxt = await service.next_in_line()
    assert nxt is not None
    assert nxt.id == b.id
    assert [entry.id for entry in await service.today_queue()] == [b.id]


@pytest.mark.asyncio
async def test_tickets_restart_on_next_day(db_session, patient, clock):
    """The first ticket after local midnight is 1 whatever was issued before."""
    service = QueueService(db_session, clock=clock)

    for _ in range(3):
        await service.walk_in(patient["id"])

    clock.advance(days=1)
    entry = await service.walk_in(patient["id"])

    assert entry.ticket_number == 1
    assert entry.queue_day == date(2026, 3, 15)


@pytest.mark.asyncio
async def test_queue_stats(db_session, patient, make_appointment, clock):
    """Counts per status, walk-ins, mean consultation minutes and next ticket."""
    service = QueueService(db_session, clock=clock)
    day = service.today()

    first = await service.walk_in(patient["id"])
    await service.start(first.id)
    clock.advance(minutes=20)
    await service.complete(first.id)

    second = await service.walk_in(patient["id"])
    await service.start(second.id)
    clock.advance(minutes=10)
    await service.complete(second.id)

    await service.walk_in(patient["id"])
    in_consultation = await service.walk_in(patient["id"])
    await service.start(in_consultation.id)

    booked = await make_appointment(scheduled_date=day)
    await service.mark_no_show(booked.id)
    cancelled = await make_appointment(scheduled_date=day)
    await service.cancel(cancelled.id)

    stats = await service.queue_stats(day)

    assert stats.day == day
    assert stats.waiting == 1
    assert stats.in_progress == 1
    assert stats.completed == 2
    assert stats.no_show == 1
    assert stats.cancelled == 1
    assert stats.walk_in_count == 4
    assert stats.avg_service_minutes == 15
    assert stats.next_ticket_number == 5


@pytest.mark.asyncio
async def test_queue_stats_rounds_half_minutes_up(db_session, patient, clock):
    """A mean of 2.5 consultation minutes is reported as 3."""
    service = QueueService(db_session, clock=clock)

    for minutes in (2, 3):
        entry = await service.walk_in(patient["id"])
        await service.start(entry.id)
        clock.advance(minutes=minutes)
        await service.complete(entry.id)

    stats = await service.queue_stats(service.today())

    assert stats.completed == 2
    assert stats.avg_service_minutes == 3


@pytest.mark.asyncio
async def test_queue_stats_empty_day(db_session):
    """A day without entries reports zeros and ticket 1 next."""
    stats = await QueueService(db_session).queue_stats(date(2026, 1, 1))

    assert stats.completed == 0
    assert stats.avg_service_minutes == 0
    assert stats.next_ticket_number == 1


@pytest.mark.asyncio
async def test_reset_day_returns_entries_to_scheduled(db_session, patient, clock):
    """Reset clears queue fields; a day with nothing numbered restarts at ticket 1."""
    service = QueueService(db_session, clock=clock)
    a = await service.walk_in(patient["id"])
    b = await service.walk_in(patient["id"])
    await service.start(a.id)

    count = await service.reset_day()

    assert count == 2
    for entry_id in (a.id, b.id):
        entry = await AppointmentRepository(db_session).get(entry_id)
        assert entry.status == AppointmentStatus.SCHEDULED
        assert entry.ticket_number is None
        assert entry.queue_position is None
        assert entry.checked_in_at is None
        assert entry.started_at is None
    await db_session.rollback()

    assert await service.today_queue() == []
    assert (await service.check_in_scheduled(b.id)).ticket_number == 1

    # Idempotent once nothing is active
    await service.reset_day()
    assert await service.reset_day() == 0


@pytest.mark.asyncio
async def test_reset_day_keeps_counters_while_tickets_remain(db_session, patient, clock):
    """Completed entries keep their tickets, so numbering continues after a reset."""
    service = QueueService(db_session, clock=clock)
    done = await service.walk_in(patient["id"])
    await service.start(done.id)
    await service.complete(done.id)
    waiting = await service.walk_in(patient["id"])

    assert await service.reset_day() == 1
    again = await service.check_in_scheduled(waiting.id)

    assert again.ticket_number == 3


@pytest.mark.asyncio
async def test_reset_stale_days(db_session, patient, clock):
    """The hourly catch-up resets past days still holding active entries."""
    service = QueueService(db_session, clock=clock)
    yesterday = service.today()
    await service.walk_in(patient["id"])
    await service.walk_in(patient["id"])

    clock.advance(days=1)
    await service.walk_in(patient["id"])

    results = await service.reset_stale_days()

    assert results == {yesterday: 2}
    assert len(await service.today_queue()) == 1
    assert await service.reset_stale_days() == {}

    result = await db_session.execute(
        select(func.count()).select_from(queue_counters).where(queue_counters.c.day == yesterday)
    )
    assert result.scalar() == 0
    await db_session.rollback()


@pytest.mark.asyncio
async def test_transition_retries_after_lost_race(db_session, make_appointment):
    """A concurrent modification is retried once with a fresh read."""
    entry = await make_appointment()
    service = QueueService(db_session, retry_attempts=1)
    real_update = service.repository.update_if_unchanged
    calls = []

    async def flaky_update(current, values):
        calls.append(current.version)
        if len(calls) == 1:
            raise ConcurrentModificationException()
        return await real_update(current, values)

    service.repository.update_if_unchanged = flaky_update

    updated = await service.check_in_scheduled(entry.id)

    assert updated.status == AppointmentStatus.CHECKED_IN
    assert len(calls) == 2
    # The aborted first attempt gave its ticket back
    assert updated.ticket_number == 1


@pytest.mark.asyncio
async def test_transition_gives_up_after_retries(db_session, make_appointment):
    """Persistent conflicts surface as ConcurrentModification."""
    entry = await make_appointment()
    service = QueueService(db_session, retry_attempts=1)
    service.repository.update_if_unchanged = AsyncMock(
        side_effect=ConcurrentModificationException()
    )

    with pytest.raises(ConcurrentModificationException):
        await service.check_in_scheduled(entry.id)

    assert service.repository.update_if_unchanged.await_count == 2


@pytest.mark.asyncio
async def test_stale_version_is_rejected(db_session, make_appointment):
    """A write based on an outdated read raises ConcurrentModification."""
    entry = await make_appointment()
    repository = AppointmentRepository(db_session)
    await repository.update_if_unchanged(entry, {"notes": "first edit"})
    await db_session.commit()

    with pytest.raises(ConcurrentModificationException):
        await repository.update_if_unchanged(entry, {"notes": "second edit"})
    await db_session.rollback()


@pytest.mark.asyncio
async def test_audit_events_recorded(db_session, patient, secretary_user):
    """Successful and rejected transitions both leave an audit trail."""
    service = QueueService(db_session, audit=AuditService(db_session))
    entry = await service.walk_in(patient["id"], actor=secretary_user)

    with pytest.raises(InvalidTransitionException):
        await service.mark_no_show(entry.id, actor=secretary_user)

    result = await db_session.execute(
        select(audit_logs.c.action, audit_logs.c.status).order_by(audit_logs.c.created_at)
    )
    rows = [tuple(row) for row in result.fetchall()]
    await db_session.rollback()

    assert ("WALK_IN_CREATE", "SUCCESS") in rows
    assert ("APPOINTMENT_NO_SHOW", "FAILURE") in rows


@pytest.mark.asyncio
async def test_side_channel_failures_do_not_undo_transition(db_session, patient):
    """Broken audit and notification collaborators leave the committed check-in intact."""
    audit = AuditService(db_session)
    audit.db = MagicMock()
    audit.db.execute = AsyncMock(side_effect=RuntimeError("audit store down"))
    audit.db.rollback = AsyncMock()

    cache = MagicMock()
    cache.publish_json.side_effect = ConnectionError("redis down")
    notifier = NotificationService(db_session, cache)

    service = QueueService(db_session, audit=audit, notifier=notifier)
    entry = await service.walk_in(patient["id"])

    stored = await AppointmentRepository(db_session).get(entry.id)
    await db_session.rollback()
    assert stored.status == AppointmentStatus.CHECKED_IN
    cache.publish_json.assert_called_once()
