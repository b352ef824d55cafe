import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from backend.app.core.config import Settings, settings
from backend.app.db.models import Base, Restaurant
from backend.app.db.session import get_session
from backend.app.main import app
from backend.app.routers.deps import get_lifecycle, get_rate_limiter, get_settings
from backend.app.services.calendar_sync import CalendarSync
from backend.app.services.rate_limit import InMemoryRateLimiter, RateLimitConfig
from backend.app.services.reservations import ReservationLifecycle
from backend.app.services.slot_guard import LocalSlotGuard

from support import MANAGEMENT_SECRET, FakeCalendar, RecordingEmail


@pytest.fixture
def test_settings():
    return Settings(
        DATABASE_URL="sqlite+aiosqlite://",
        AUTH_SECRET="test-secret",
        ADMIN_MANAGEMENT_SECRET=MANAGEMENT_SECRET,
        DEFAULT_RESTAURANT_SLUG="singhs",
        BCRYPT_ROUNDS=4,
        DEV_ADMIN_USERNAME="devadmin",
        DEV_ADMIN_PASSWORD="devpassword",
        ADMIN_USERNAME=None,
        ADMIN_PASSWORD_HASH=None,
        DEV_RESTAURANT_SLUG=None,
        ENVIRONMENT="development",
    )


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def restaurants(session_factory):
    async with session_factory() as session:
        session.add_all(
            [
                Restaurant(slug="singhs", name="Singh's Spices", address="1 Brivibas iela, Riga", phone="+37120000001"),
                Restaurant(slug="downtown", name="Singh's Downtown"),
            ]
        )
        await session.commit()
    return ["singhs", "downtown"]


@pytest_asyncio.fixture
async def session(session_factory, restaurants):
    async with session_factory() as session:
        yield session


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def email():
    return RecordingEmail()


@pytest.fixture
def lifecycle(calendar, email):
    return ReservationLifecycle(
        calendar=CalendarSync(calendar),
        email=email,
        slot_guard=LocalSlotGuard(timeout_seconds=1),
        default_restaurant_slug="singhs",
    )


@pytest.fixture
def limiter():
    return InMemoryRateLimiter(RateLimitConfig(max_fails=3, window_ms=60_000, lock_ms=120_000))


@pytest_asyncio.fixture
async def client(session_factory, restaurants, lifecycle, limiter, test_settings):
    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_lifecycle] = lambda: lifecycle
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    app.dependency_overrides[get_settings] = lambda: test_settings

    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url=f"http://test{settings.API_PREFIX}") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
