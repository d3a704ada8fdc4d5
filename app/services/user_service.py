"""User service for staff lookups."""

from uuid import UUID

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.redis_client import CacheManager
from app.models.users import users
from app.schemas.users import UserRole


class UserService:
    """Service for user operations."""

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_user_cache_key(user_id: UUID) -> str:
        """Generate cache key for user."""
        return f"user:{user_id}"

    async def create_user(
        self,
        db: AsyncSession,
        email: str,
        role: UserRole,
        full_name: str | None = None,
    ) -> dict:
        """Create a staff account."""
        query = (
            insert(users)
            .values(email=email, role=role.value, full_name=full_name)
            .returning(users)
        )

        result = await db.execute(query)
        await db.commit()
        user = result.mappings().first()

        if not user:
            raise ValueError("Failed to create user")

        return dict(user)

    async def get_user_by_id(self, db: AsyncSession, user_id: UUID) -> dict | None:
        """Get user by internal ID with caching."""
        # Try cache first
        if self.cache:
            cache_key = self._get_user_cache_key(user_id)
            cached_user = self.cache.get_json(cache_key)
            if cached_user:
                cached_user["id"] = UUID(str(cached_user["id"]))
                return cached_user

        # Query database
        query = select(users).where(users.c.id == user_id)
        result = await db.execute(query)
        user = result.mappings().first()

        if not user:
            return None

        user_dict = dict(user)

        # Cache the result
        if self.cache:
            cache_key = self._get_user_cache_key(user_id)
            self.cache.set_json(cache_key, user_dict, ttl=settings.user_cache_ttl)

        return user_dict

    async def get_user_by_email(self, db: AsyncSession, email: str) -> dict | None:
        """Get user by email."""
        query = select(users).where(users.c.email == email)
        result = await db.execute(query)
        user = result.mappings().first()
        return dict(user) if user else None
