import os
import sys
from collections.abc import AsyncGenerator
from datetime import date, datetime, time, timedelta
from unittest.mock import MagicMock
from uuid import UUID

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert, select, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

# Load environment variables from .env file
load_dotenv()

from app.config import settings
from app.core.clock import Clock
from app.core.redis_client import OtpStore
from app.core.security import create_access_token, get_password_hash
from app.database import build_server_settings, get_db
from app.dependencies import (
    get_clock,
    get_directory_service,
    get_notification_service,
    get_otp_store,
)
from app.main import app
from app.models import build_metadata, doctors, users
from app.models.appointments import appointments
from app.models.slots import doctor_slots
from app.services.directory_service import DirectoryService

metadata = build_metadata()

# Test database URL - MUST be different from production
# Set TEST_DATABASE_URL in .env or use environment variable
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

# Safety check: prevent running tests against production database
if not TEST_DATABASE_URL:
    # Fallback to settings but add _test suffix to database name
    prod_url = settings.database_url
    if "?" in prod_url:
        base_url, params = prod_url.rsplit("?", 1)
        db_name = base_url.rsplit("/", 1)[1]
        base_path = base_url.rsplit("/", 1)[0]
        TEST_DATABASE_URL = f"{base_path}/{db_name}_test?{params}"
    else:
        db_name = prod_url.rsplit("/", 1)[1]
        base_path = prod_url.rsplit("/", 1)[0]
        TEST_DATABASE_URL = f"{base_path}/{db_name}_test"

# Additional safety: ensure we're not using production database
if settings.database_url == TEST_DATABASE_URL:
    print("\n❌ CRITICAL ERROR: Test database URL is same as production database!")
    print("This would DROP all production data during tests.")
    print("Please set TEST_DATABASE_URL to a separate test database in .env")
    sys.exit(1)

# Ensure we're using asyncpg driver for async operations
if not TEST_DATABASE_URL.startswith("postgresql+asyncpg://"):
    TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

# NullPool gives every session its own connection, which the concurrency
# tests rely on
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
    connect_args={"server_settings": build_server_settings()},
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Fixed "today" for every test that checks past dates
TODAY = date(2024, 6, 1)


class FixedClock(Clock):
    """Clock frozen at a given moment."""

    def __init__(self, moment: datetime):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment


class RecordingNotifier:
    """Stands in for NotificationService and remembers every notice."""

    def __init__(self):
        self.dispatched: list[dict] = []
        self.notified: list[dict] = []
        self.user_notices: list[dict] = []

    def dispatch(self, doctor_id, subject, body, notification_type="other", data=None):
        self.dispatched.append(
            {"doctor_id": doctor_id, "subject": subject, "type": notification_type}
        )

    async def notify(self, doctor_id, subject, body, notification_type="other", data=None):
        self.notified.append(
            {"doctor_id": doctor_id, "subject": subject, "type": notification_type, "data": data}
        )

    async def notify_user(self, user_id, subject, body, notification_type="other", data=None):
        self.user_notices.append(
            {"user_id": user_id, "subject": subject, "body": body, "type": notification_type}
        )

    async def drain(self) -> None:
        return None


async def create_user(
    db: AsyncSession,
    email: str,
    role: str = "patient",
    full_name: str = "Test User",
    password: str = "password123",
) -> dict:
    """Insert a user row and return it."""
    result = await db.execute(
        insert(users)
        .values(
            email=email,
            full_name=full_name,
            password_hash=get_password_hash(password),
            role=role,
            is_active=True,
        )
        .returning(users)
    )
    user = dict(result.mappings().one())
    await db.commit()
    return user


async def create_doctor(
    db: AsyncSession,
    email: str,
    full_name: str = "Dr. Ada Lovelace",
    specialization: str = "Cardiology",
) -> dict:
    """Insert a doctor account with its profile and return the profile row."""
    user = await create_user(db, email, role="doctor", full_name=full_name)
    result = await db.execute(
        insert(doctors)
        .values(user_id=user["id"], specialization=specialization)
        .returning(doctors)
    )
    doctor = dict(result.mappings().one())
    await db.commit()
    doctor["email"] = user["email"]
    doctor["user"] = user
    return doctor


def headers_for(user: dict) -> dict:
    token = create_access_token(
        data={"sub": str(user["id"]), "role": user["role"]},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


async def slot_status(db: AsyncSession, doctor_id: UUID, slot_date: date, start: time) -> str | None:
    result = await db.execute(
        select(doctor_slots.c.status).where(
            doctor_slots.c.doctor_id == doctor_id,
            doctor_slots.c.slot_date == slot_date,
            doctor_slots.c.start_time == start,
        )
    )
    return result.scalar_one_or_none()


async def assert_slots_consistent(db: AsyncSession) -> None:
    """A slot is booked exactly when one live appointment holds it."""
    slot_rows = (await db.execute(select(doctor_slots))).mappings().all()
    live = (
        await db.execute(
            select(appointments.c.slot_id).where(appointments.c.status != "canceled")
        )
    ).scalars().all()

    holders: dict[UUID, int] = {}
    for slot_id in live:
        holders[slot_id] = holders.get(slot_id, 0) + 1

    for slot in slot_rows:
        count = holders.get(slot["id"], 0)
        assert count <= 1
        assert (slot["status"] == "booked") == (count == 1)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    try:
        async with test_engine.begin() as conn:
            await conn.execute(text('CREATE EXTENSION IF NOT EXISTS "pgcrypto"'))
            await conn.run_sync(metadata.drop_all)
            await conn.run_sync(metadata.create_all)
    except (OSError, DBAPIError) as e:
        pytest.skip(f"PostgreSQL test database unavailable: {e}")

    async with TestSessionLocal() as session:
        yield session

    # Drop tables after test
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest.fixture
def session_factory() -> async_sessionmaker[AsyncSession]:
    return TestSessionLocal


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime.combine(TODAY, time(6, 0)))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def mock_redis() -> MagicMock:
    redis_client = MagicMock()
    redis_client.get.return_value = None
    return redis_client


@pytest_asyncio.fixture
async def patient(db_session: AsyncSession) -> dict:
    return await create_user(db_session, "patient@medibook.io", full_name="Pat Patient")


@pytest_asyncio.fixture
async def other_patient(db_session: AsyncSession) -> dict:
    return await create_user(db_session, "other@medibook.io", full_name="Olive Other")


@pytest_asyncio.fixture
async def doctor(db_session: AsyncSession) -> dict:
    return await create_doctor(db_session, "doctor@medibook.io")


@pytest.fixture
def auth_headers(patient: dict) -> dict:
    """Create authentication headers for the patient."""
    return headers_for(patient)


@pytest.fixture
def doctor_headers(doctor: dict) -> dict:
    """Create authentication headers for the doctor account."""
    return headers_for(doctor["user"])


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    notifier: RecordingNotifier,
    clock: FixedClock,
    mock_redis: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_service] = lambda: notifier
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_directory_service] = lambda: DirectoryService()
    app.dependency_overrides[get_otp_store] = lambda: OtpStore(mock_redis, ttl=300)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
