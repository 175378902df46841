import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, datetime, timedelta
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from dotenv import load_dotenv

# Load environment variables from .env file, then fill in test defaults
load_dotenv()
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-scheduling-tests")
os.environ.setdefault("AVAILABILITY_CACHE_TTL", "0")
os.environ.setdefault("LOG_FORMAT", "console")

from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from app.core.security import create_access_token
from app.database import get_db
from app.dependencies import get_cache_manager
from app.main import app
from app.models import appointments, metadata, users

# In-memory SQLite unless a real database is provided
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite://")

if TEST_DATABASE_URL.startswith("postgresql://"):
    TEST_DATABASE_URL = TEST_DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")

# Monday morning, before the first slot of the day
FIXED_NOW = datetime(2025, 6, 2, 8, 0)

AppointmentFactory = Callable[..., Awaitable[UUID]]


def _engine_kwargs() -> dict:
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    return {"poolclass": NullPool}


def upcoming_weekday(days_ahead: int = 7) -> date:
    """A bookable date relative to the real current date."""
    day = date.today() + timedelta(days=days_ahead)
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on fresh tables."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, **_engine_kwargs())

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client without the slot cache."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_manager] = lambda: None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _create_user(db: AsyncSession, role: str, name: str) -> dict:
    user_id = uuid4()
    user_data = {
        "id": user_id,
        "email": f"{name.lower().replace(' ', '.')}.{user_id.hex[:8]}@example.com",
        "full_name": name,
        "role": role,
        "is_active": True,
    }
    await db.execute(insert(users).values(**user_data))
    await db.commit()
    return user_data


@pytest_asyncio.fixture
async def provider(db_session: AsyncSession) -> dict:
    """Dr. Smith."""
    return await _create_user(db_session, "provider", "Jane Smith")


@pytest_asyncio.fixture
async def other_provider(db_session: AsyncSession) -> dict:
    return await _create_user(db_session, "provider", "Omar Haddad")


@pytest_asyncio.fixture
async def patient(db_session: AsyncSession) -> dict:
    return await _create_user(db_session, "patient", "Alex Patient")


@pytest_asyncio.fixture
async def second_patient(db_session: AsyncSession) -> dict:
    return await _create_user(db_session, "patient", "Sam Patient")


@pytest.fixture
def make_appointment(db_session: AsyncSession) -> AppointmentFactory:
    """Insert an appointment row directly, bypassing the booking checks."""

    async def factory(
        patient_id: UUID,
        provider_id: UUID,
        when: datetime,
        status: str = "pending",
        appointment_type: str = "Follow-up",
    ) -> UUID:
        appointment_id = uuid4()
        await db_session.execute(
            insert(appointments).values(
                id=appointment_id,
                patient_id=patient_id,
                provider_id=provider_id,
                appointment_date=when,
                appointment_type=appointment_type,
                consultation_type="In-person",
                status=status,
            )
        )
        await db_session.commit()
        return appointment_id

    return factory


def headers_for(user: dict) -> dict:
    """Bearer headers for a test user."""
    token = create_access_token(
        data={"sub": str(user["id"]), "email": user["email"]},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def patient_headers(patient: dict) -> dict:
    return headers_for(patient)


@pytest.fixture
def second_patient_headers(second_patient: dict) -> dict:
    return headers_for(second_patient)


@pytest.fixture
def provider_headers(provider: dict) -> dict:
    return headers_for(provider)


@pytest.fixture
def booking_day() -> date:
    return upcoming_weekday()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW
