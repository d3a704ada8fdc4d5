"""Notification endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.dependencies import CurrentUser, get_notification_service
from app.schemas.notifications import NotificationListResponse, NotificationResponse
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])

NotificationServiceDep = Annotated[NotificationService, Depends(get_notification_service)]


@router.get(
    "/",
    response_model=NotificationListResponse,
    summary="Notifications for my role",
)
async def list_my_notifications(
    current_user: CurrentUser,
    service: NotificationServiceDep,
    unread_only: bool = Query(False, description="Only unread notifications"),
    limit: int = Query(50, ge=1, le=100, description="Maximum number to return"),
    offset: int = Query(0, ge=0, description="Number to skip"),
) -> NotificationListResponse:
    """
    List notifications addressed to the authenticated user's role.

    Args:
        current_user: Authenticated user
        service: Notification service
        unread_only: Only unread notifications
        limit: Maximum number to return
        offset: Number to skip

    Returns:
        Notifications with total and unread counts
    """
    return await service.list_for_role(
        current_user["role"],
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )


@router.patch(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark notification as read",
)
async def mark_notification_read(
    notification_id: UUID,
    current_user: CurrentUser,
    service: NotificationServiceDep,
) -> NotificationResponse:
    """Mark one of the role's notifications as read."""
    return await service.mark_read(notification_id, current_user["role"])
