import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import MagicMock
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, insert
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

# Load environment variables from .env file
load_dotenv()

from app.core.redis_client import CacheManager  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.database import get_db  # noqa: E402
from app.dependencies import get_cache_manager  # noqa: E402
from app.main import app  # noqa: E402
from app.models import departments, locations, metadata, patients, providers  # noqa: E402
from app.schemas.appointments import AppointmentCreate  # noqa: E402
from app.schemas.time_slots import TimeSlotCreate, TimeSlotResponse  # noqa: E402
from app.services.slot_service import SlotService  # noqa: E402
from helpers import in_days  # noqa: E402

# A Postgres database can be supplied; otherwise an in-memory SQLite database is used
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL") or "sqlite+aiosqlite:///:memory:"

if TEST_DATABASE_URL.startswith("postgresql://"):
    TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an engine bound to the running test's event loop."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_async_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    else:
        engine = create_async_engine(TEST_DATABASE_URL, poolclass=NullPool)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a freshly created schema."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def mock_redis() -> MagicMock:
    """Redis stand-in that always misses."""
    redis = MagicMock()
    redis.get.return_value = None
    redis.keys.return_value = []
    return redis


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    mock_redis: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: CacheManager(mock_redis)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> dict:
    """Create authentication headers for testing protected endpoints."""
    token = create_access_token(data={"sub": str(uuid4())}, expires_delta=timedelta(minutes=30))
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def clinic(db_session: AsyncSession) -> dict[str, UUID]:
    """Insert one department, location, provider and patient."""
    ids = {
        "department_id": uuid4(),
        "location_id": uuid4(),
        "provider_id": uuid4(),
        "patient_id": uuid4(),
    }
    now = datetime.now(UTC)
    stamps = {"created_at": now, "updated_at": now}

    await db_session.execute(
        insert(departments).values(
            id=ids["department_id"], name="Cardiology", code="CARD", **stamps
        )
    )
    await db_session.execute(
        insert(locations).values(
            id=ids["location_id"], name="North Wing", building="B", floor="2", room="204", **stamps
        )
    )
    await db_session.execute(
        insert(providers).values(
            id=ids["provider_id"],
            department_id=ids["department_id"],
            first_name="Grace",
            last_name="Hopper",
            title="Dr.",
            specialty="Cardiology",
            is_active=True,
            **stamps,
        )
    )
    await db_session.execute(
        insert(patients).values(
            id=ids["patient_id"],
            medical_record_number="MRN-0001",
            first_name="Alan",
            last_name="Turing",
            phone="+15550100",
            email="alan@example.com",
            **stamps,
        )
    )
    await db_session.commit()
    return ids


@pytest_asyncio.fixture
async def second_patient(db_session: AsyncSession) -> UUID:
    patient_id = uuid4()
    now = datetime.now(UTC)
    await db_session.execute(
        insert(patients).values(
            id=patient_id,
            medical_record_number="MRN-0002",
            first_name="Ada",
            last_name="Lovelace",
            created_at=now,
            updated_at=now,
        )
    )
    await db_session.commit()
    return patient_id


@pytest.fixture
def make_slot(
    db_session: AsyncSession,
    clinic: dict[str, UUID],
) -> Callable[..., Awaitable[TimeSlotResponse]]:
    """Factory creating a slot for the clinic fixture."""

    async def _make_slot(
        start: datetime | None = None,
        minutes: int = 30,
        capacity: int = 1,
        **overrides: Any,
    ) -> TimeSlotResponse:
        start = start or in_days(1)
        data = {
            "provider_id": clinic["provider_id"],
            "department_id": clinic["department_id"],
            "location_id": clinic["location_id"],
            "start_time": start,
            "end_time": start + timedelta(minutes=minutes),
            "duration": minutes,
            "capacity": capacity,
        }
        data.update(overrides)
        return await SlotService(db_session).create_time_slot(TimeSlotCreate(**data))

    return _make_slot


@pytest.fixture
def appointment_data(clinic: dict[str, UUID]) -> Callable[..., AppointmentCreate]:
    """Factory building a booking request against a slot."""

    def _appointment_data(slot: TimeSlotResponse, **overrides: Any) -> AppointmentCreate:
        data = {
            "patient_id": clinic["patient_id"],
            "provider_id": slot.provider_id,
            "department_id": slot.department_id,
            "time_slot_id": slot.id,
            "location_id": slot.location_id,
            "scheduled_start": slot.start_time,
            "scheduled_end": slot.end_time,
            "appointment_type": "consultation",
            "reason": "Chest pain follow-up",
        }
        data.update(overrides)
        return AppointmentCreate(**data)

    return _appointment_data
