"""Audit trail writer."""

from contextlib import suppress
from typing import Any

import structlog
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_logs import audit_logs

logger = structlog.get_logger(__name__)


class AuditService:
    """Records who did what to which resource.

    Audit writes happen after the audited change has committed, in their own
    transaction. A failed write is logged and reported as False; it never
    propagates to the caller.
    """

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    async def record(
        self,
        actor: dict | None,
        action: str,
        resource_type: str,
        resource_id: Any,
        status: str = "SUCCESS",
        details: dict[str, Any] | None = None,
    ) -> bool:
        """
        Write one audit event.

        Args:
            actor: Authenticated user dict, or None for system jobs
            action: Action name (e.g., CHECK_IN, QUEUE_REORDER)
            resource_type: Resource kind (Appointment, Queue, Patient)
            resource_id: Identifier of the resource
            status: SUCCESS or FAILURE
            details: Additional context

        Returns:
            True if the event was stored
        """
        try:
            await self.db.execute(
                insert(audit_logs).values(
                    actor_id=actor["id"] if actor else None,
                    actor_role=actor.get("role") if actor else "system",
                    action=action,
                    resource_type=resource_type,
                    resource_id=str(resource_id) if resource_id is not None else None,
                    status=status,
                    details=details,
                )
            )
            await self.db.commit()
            return True
        except Exception as e:
            logger.warning(
                "audit_record_failed",
                action=action,
                resource_type=resource_type,
                resource_id=str(resource_id),
                error=str(e),
            )
            with suppress(Exception):
                await self.db.rollback()
            return False
