#!/usr/bin/env python3
"""
Reset queue days so ticket numbering starts over.

Meant to be run by cron: once just after local midnight, and hourly with
``--stale`` so a missed midnight run is caught up.

Usage:
    python scripts/reset_queue.py                 # reset today
    python scripts/reset_queue.py --day 2026-03-14
    python scripts/reset_queue.py --stale         # every past day still active
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

import structlog

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.database import AsyncSessionLocal, engine  # noqa: E402
from app.middleware.logging import configure_logging  # noqa: E402
from app.services.audit_service import AuditService  # noqa: E402
from app.services.queue_service import QueueService  # noqa: E402

logger = structlog.get_logger("reset_queue")


async def run(day: date | None, stale: bool) -> int:
    """Reset the requested days and return the number of entries affected."""
    async with AsyncSessionLocal() as session:
        service = QueueService(session, audit=AuditService(session))
        if stale:
            results = await service.reset_stale_days()
            total = sum(results.values())
            logger.info(
                "stale_queue_days_reset",
                days=[d.isoformat() for d in results],
                reset_count=total,
            )
        else:
            total = await service.reset_day(day)

    await engine.dispose()
    return total


def main() -> int:
    """Parse arguments and run the reset."""
    parser = argparse.ArgumentParser(description="Reset clinic queue days")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--day", type=date.fromisoformat, help="Queue day (YYYY-MM-DD)")
    group.add_argument(
        "--stale",
        action="store_true",
        help="Reset every past day that still has active entries",
    )
    args = parser.parse_args()

    configure_logging()
    try:
        total = asyncio.run(run(args.day, args.stale))
    except Exception as e:
        logger.error("queue_reset_failed", error=str(e))
        return 1

    print(f"✓ {total} entries reset")
    return 0


if __name__ == "__main__":
    sys.exit(main())
