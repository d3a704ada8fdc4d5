"""Notification service for role-addressed staff notifications."""

from contextlib import suppress
from datetime import UTC, datetime
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.core.redis_client import CacheManager
from app.models.notifications import notifications
from app.schemas.notifications import (
    NotificationListResponse,
    NotificationResponse,
    NotificationType,
)

logger = structlog.get_logger(__name__)


class NotificationService:
    """Service for notifying staff roles about appointment and queue changes."""

    CHANNEL_PREFIX = "notifications"

    def __init__(self, db: AsyncSession, cache_manager: CacheManager | None = None):
        """Initialize service with database session and optional Redis publisher."""
        self.db = db
        self.cache = cache_manager

    async def notify_role(
        self,
        role: str,
        title: str,
        body: str,
        notification_type: NotificationType,
        related_id: UUID | None = None,
        created_by: UUID | None = None,
    ) -> bool:
        """
        Store a notification for every member of ``role`` and publish it live.

        Fire-and-forget: failures are logged and swallowed.

        Args:
            role: Recipient role (doctor, secretary, admin)
            title: Notification title
            body: Notification body
            notification_type: Type of notification
            related_id: Appointment the notification is about
            created_by: Actor that caused it

        Returns:
            True if the notification was stored
        """
        try:
            result = await self.db.execute(
                insert(notifications)
                .values(
                    recipient_role=role,
                    notification_type=notification_type.value,
                    title=title,
                    body=body,
                    related_id=related_id,
                    created_by=created_by,
                )
                .returning(notifications)
            )
            row = result.fetchone()
            await self.db.commit()
        except Exception as e:
            logger.warning("notification_store_failed", role=role, title=title, error=str(e))
            with suppress(Exception):
                await self.db.rollback()
            return False

        if self.cache:
            payload = NotificationResponse.model_validate(dict(row._mapping)).model_dump(mode="json")
            try:
                self.cache.publish_json(f"{self.CHANNEL_PREFIX}:{role}", payload)
            except Exception as e:
                logger.warning("notification_publish_failed", role=role, error=str(e))

        logger.info("role_notified", role=role, notification_type=notification_type.value)
        return True

    async def list_for_role(
        self,
        role: str,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> NotificationListResponse:
        """
        List notifications addressed to a role, newest first.

        Args:
            role: Recipient role
            unread_only: Only unread notifications
            limit: Maximum number to return
            offset: Number to skip

        Returns:
            Notifications with total and unread counts
        """
        conditions = [notifications.c.recipient_role == role]
        if unread_only:
            conditions.append(notifications.c.read_at.is_(None))

        total_result = await self.db.execute(
            select(func.count()).select_from(notifications).where(and_(*conditions))
        )
        unread_result = await self.db.execute(
            select(func.count())
            .select_from(notifications)
            .where(
                and_(
                    notifications.c.recipient_role == role,
                    notifications.c.read_at.is_(None),
                )
            )
        )

        result = await self.db.execute(
            select(notifications)
            .where(and_(*conditions))
            .order_by(notifications.c.created_at.desc())
            .limit(limit)
            .offset(offset)
        )

        return NotificationListResponse(
            total=total_result.scalar() or 0,
            unread=unread_result.scalar() or 0,
            items=[NotificationResponse.model_validate(dict(r._mapping)) for r in result.fetchall()],
        )

    async def mark_read(self, notification_id: UUID, role: str) -> NotificationResponse:
        """
        Mark a role's notification as read.

        Raises:
            NotFoundException: If no such notification is addressed to ``role``
        """
        result = await self.db.execute(
            update(notifications)
            .where(
                and_(
                    notifications.c.id == notification_id,
                    notifications.c.recipient_role == role,
                )
            )
            .values(read_at=func.coalesce(notifications.c.read_at, datetime.now(UTC)))
            .returning(notifications)
        )
        row = result.fetchone()

        if not row:
            await self.db.rollback()
            raise NotFoundException("Notification not found")

        await self.db.commit()
        return NotificationResponse.model_validate(dict(row._mapping))
