"""Clock helpers for queue day boundaries."""

from datetime import UTC, date, datetime, time
from functools import lru_cache
from zoneinfo import ZoneInfo

from app.config import settings


@lru_cache
def clinic_zone() -> ZoneInfo:
    """Zone whose local midnight starts a new queue day."""
    return ZoneInfo(settings.clinic_timezone)


def utcnow() -> datetime:
    """Current timezone-aware UTC time."""
    return datetime.now(UTC)


def _localize(moment: datetime) -> datetime:
    # Naive datetimes coming back from the store are UTC
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(clinic_zone())


def local_day(moment: datetime) -> date:
    """Calendar day of ``moment`` in the clinic's zone."""
    return _localize(moment).date()


def local_time(moment: datetime) -> time:
    """Wall-clock time of ``moment`` in the clinic's zone, to the minute."""
    return _localize(moment).time().replace(second=0, microsecond=0)
