import os
import sys
from collections.abc import AsyncGenerator, Callable
from datetime import date, timedelta
from typing import Any
from unittest.mock import MagicMock
from uuid import uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

# Settings are read at import time; the suite needs none of them to be real
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./clinic_queue.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("LOG_FORMAT", "console")

from app.config import settings  # noqa: E402
from app.core.clock import local_day, utcnow  # noqa: E402
from app.core.redis_client import get_redis_client  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.database import async_database_url, configure_sqlite_locking, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models import all_metadata  # noqa: E402
from app.models.appointments import appointments  # noqa: E402
from app.models.patients import patients  # noqa: E402
from app.models.users import users  # noqa: E402
from app.schemas.appointments import AppointmentResponse  # noqa: E402
from app.services.appointment_repository import AppointmentRepository  # noqa: E402

# Test database URL - MUST be different from production.
# Defaults to a throwaway SQLite file so the suite runs without services;
# point TEST_DATABASE_URL at PostgreSQL to exercise row locking for real.
TEST_DATABASE_URL = async_database_url(
    os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_clinic_queue.db")
)

# Additional safety: ensure we're not using production database
if async_database_url(settings.database_url) == TEST_DATABASE_URL:
    print("\n❌ CRITICAL ERROR: Test database URL is same as production database!")
    print("This would DROP all production data during tests.")
    print("Please set TEST_DATABASE_URL to a separate test database in .env")
    sys.exit(1)

IS_SQLITE = make_url(TEST_DATABASE_URL).get_backend_name() == "sqlite"

# Use NullPool so every session gets its own connection
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,  # Set to True for SQL debugging
    poolclass=NullPool,
    connect_args={"timeout": 30} if IS_SQLITE else {},
)
configure_sqlite_locking(test_engine)

# Create test session factory
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def _drop_all() -> None:
    async with test_engine.begin() as conn:
        for metadata in reversed(all_metadata):
            await conn.run_sync(metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on freshly created tables."""
    await _drop_all()
    async with test_engine.begin() as conn:
        for metadata in all_metadata:
            await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    # Drop tables after test
    await _drop_all()


@pytest.fixture
def session_factory(db_session: AsyncSession) -> async_sessionmaker[AsyncSession]:
    """Factory for independent sessions, one per simulated staff terminal."""
    return TestSessionLocal


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis stand-in: empty cache, publishes succeed."""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    redis_client.publish.return_value = 0
    return redis_client


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    mock_redis: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client; every request gets its own session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with TestSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_client] = lambda: mock_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _create_user(db_session: AsyncSession, role: str) -> dict:
    user_id = uuid4()
    user_data = {
        "id": user_id,
        "email": f"{role}-{user_id.hex[:8]}@clinic.test",
        "full_name": f"Test {role.title()}",
        "role": role,
        "is_active": True,
    }
    await db_session.execute(insert(users).values(**user_data))
    await db_session.commit()
    return user_data


def _headers_for(user: dict) -> dict:
    token = create_access_token(
        data={"sub": str(user["id"]), "email": user["email"]},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def doctor_user(db_session: AsyncSession) -> dict:
    """Doctor account."""
    return await _create_user(db_session, "doctor")


@pytest.fixture
async def secretary_user(db_session: AsyncSession) -> dict:
    """Secretary account."""
    return await _create_user(db_session, "secretary")


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> dict:
    """Administrator account."""
    return await _create_user(db_session, "admin")


@pytest.fixture
def doctor_headers(doctor_user: dict) -> dict:
    """Authentication headers for the doctor."""
    return _headers_for(doctor_user)


@pytest.fixture
def secretary_headers(secretary_user: dict) -> dict:
    """Authentication headers for the secretary."""
    return _headers_for(secretary_user)


@pytest.fixture
def admin_headers(admin_user: dict) -> dict:
    """Authentication headers for the administrator."""
    return _headers_for(admin_user)


@pytest.fixture
async def patient(db_session: AsyncSession) -> dict:
    """A registered patient."""
    patient_data = {
        "id": uuid4(),
        "full_name": "Jane Roe",
        "phone": "+15551234567",
        "gender": "female",
        "date_of_birth": date(1990, 4, 12),
    }
    await db_session.execute(insert(patients).values(**patient_data))
    await db_session.commit()
    return patient_data


@pytest.fixture
def make_appointment(
    db_session: AsyncSession,
    patient: dict,
) -> Callable[..., Any]:
    """Insert an appointment row directly, in any status, and commit it."""

    async def _make(**overrides: Any) -> AppointmentResponse:
        values = {
            "patient_id": patient["id"],
            "scheduled_date": local_day(utcnow()),
            "appointment_type": "consultation",
            "reason": "Routine check",
            "status": "scheduled",
            "is_walk_in": False,
        }
        values.update(overrides)
        entry = await AppointmentRepository(db_session).insert(values)
        await db_session.commit()
        return entry

    return _make


@pytest.fixture
def sample_appointment_data(patient: dict) -> dict:
    """Sample booking payload for testing."""
    return {
        "patient_id": str(patient["id"]),
        "scheduled_date": (local_day(utcnow()) + timedelta(days=1)).isoformat(),
        "scheduled_time": "09:30:00",
        "appointment_type": "consultation",
        "reason": "Regular checkup",
        "notes": "First time patient",
    }


@pytest.fixture
def fetch_appointment(db_session: AsyncSession) -> Callable[..., Any]:
    """Read an appointment row, including soft-deleted ones, in a short-lived session."""

    async def _fetch(appointment_id: Any) -> dict:
        async with TestSessionLocal() as session:
            result = await session.execute(
                appointments.select().where(appointments.c.id == appointment_id)
            )
            row = result.mappings().first()
            await session.rollback()
        return dict(row) if row else {}

    return _fetch
