"""FastAPI dependencies."""

from collections.abc import Callable, Coroutine
from typing import Annotated, Any
from uuid import UUID

import redis
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.redis_client import CacheManager, get_redis_client
from app.core.security import decode_access_token
from app.database import get_db
from app.schemas.users import UserRole
from app.services.appointment_service import AppointmentService
from app.services.audit_service import AuditService
from app.services.notification_service import NotificationService
from app.services.patient_service import PatientService
from app.services.queue_service import QueueService
from app.services.user_service import UserService

# Security
security = HTTPBearer(auto_error=False)


def _credentials_error(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> UUID:
    """
    Extract and validate user ID from JWT token.

    Args:
        credentials: Bearer token credentials

    Returns:
        User ID from token

    Raises:
        HTTPException: If token is missing, invalid or expired
    """
    if credentials is None:
        raise _credentials_error("Not authenticated")

    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise _credentials_error()

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise _credentials_error()

    try:
        return UUID(user_id_str)
    except ValueError:
        raise _credentials_error("Invalid user ID format") from None


def get_cache_manager(
    redis_client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> CacheManager:
    """Cache manager over the shared Redis client."""
    return CacheManager(redis_client)


CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]


async def get_current_user(
    user_id: Annotated[UUID, Depends(get_current_user_id)],
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> dict:
    """
    Get current user from cache or database.

    Args:
        user_id: User ID from JWT token
        db: Database session
        cache_manager: Cache manager

    Returns:
        User data

    Raises:
        HTTPException: If user not found or inactive
    """
    user = await UserService(cache_manager).get_user_by_id(db, user_id)

    if not user:
        raise _credentials_error("User not found")

    if not user["is_active"]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is deactivated",
        )

    return user


def require_roles(*roles: UserRole) -> Callable[..., Coroutine[Any, Any, dict]]:
    """
    Build a dependency that admits only the given roles.

    Administrators pass every role check.
    """
    allowed = {role.value for role in roles} | {UserRole.ADMIN.value}

    async def check_role(current_user: Annotated[dict, Depends(get_current_user)]) -> dict:
        if current_user.get("role") not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions for this action",
            )
        return current_user

    return check_role


def get_audit_service(db: DatabaseSession) -> AuditService:
    """Audit writer bound to the request session."""
    return AuditService(db)


def get_notification_service(
    db: DatabaseSession,
    cache_manager: CacheManagerDep,
) -> NotificationService:
    """Notification sender bound to the request session."""
    return NotificationService(db, cache_manager)


def get_queue_service(
    db: DatabaseSession,
    audit: Annotated[AuditService, Depends(get_audit_service)],
    notifier: Annotated[NotificationService, Depends(get_notification_service)],
) -> QueueService:
    """Queue orchestrator for one request."""
    return QueueService(db, audit=audit, notifier=notifier)


def get_patient_service(
    db: DatabaseSession,
    audit: Annotated[AuditService, Depends(get_audit_service)],
) -> PatientService:
    """Patient service for one request."""
    return PatientService(db, audit=audit)


def get_appointment_service(
    db: DatabaseSession,
    audit: Annotated[AuditService, Depends(get_audit_service)],
    notifier: Annotated[NotificationService, Depends(get_notification_service)],
) -> AppointmentService:
    """Appointment service for one request."""
    return AppointmentService(db, audit=audit, notifier=notifier)


# Type aliases for dependency injection
CurrentUserId = Annotated[UUID, Depends(get_current_user_id)]
CurrentUser = Annotated[dict, Depends(get_current_user)]
StaffUser = Annotated[dict, Depends(require_roles(UserRole.DOCTOR, UserRole.SECRETARY))]
DoctorUser = Annotated[dict, Depends(require_roles(UserRole.DOCTOR))]
SecretaryUser = Annotated[dict, Depends(require_roles(UserRole.SECRETARY))]
AdminUser = Annotated[dict, Depends(require_roles(UserRole.ADMIN))]
QueueServiceDep = Annotated[QueueService, Depends(get_queue_service)]
AppointmentServiceDep = Annotated[AppointmentService, Depends(get_appointment_service)]
PatientServiceDep = Annotated[PatientService, Depends(get_patient_service)]
