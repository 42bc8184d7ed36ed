"""
Centralized Test Configuration.
"""

import pytest
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from fleetops.app.main import app
from fleetops.app.db.session import Base
from fleetops.app.db.store import SQLAlchemyStore
from fleetops.app.core.dependencies import get_store, get_blob_store
from fleetops.app.core.jwt import create_access_token
from fleetops.app.models.enums import UserRole
from fleetops.app.schemas.auth import Actor
from fleetops.app.services.attachments import LocalBlobStore
from fleetops.app.services.notification_service import NotificationDispatcher
from fleetops.app.services.trip_lifecycle import TripLifecycle
from fleetops.app.services.trip_repository import TripRepository

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FLEET_MANAGER_ID = "fm-0001"
DRIVER_ID = "drv-0001"
CO_DRIVER_ID = "drv-0002"
OTHER_DRIVER_ID = "drv-0003"
VEHICLE_ID = "veh-0001"


class FixedClock:
    """Deterministic clock; call it like ``utc_now``."""

    def __init__(self, start: datetime = datetime(2025, 3, 31, 6, 20, 9, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int = 60) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@pytest.fixture
async def session_factory():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def store(session_factory):
    return SQLAlchemyStore(session_factory, retry_attempts=3, retry_base_delay=0)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def dispatcher(store, clock):
    return NotificationDispatcher(store, clock=clock)


@pytest.fixture
def repository(store, clock):
    return TripRepository(store, clock=clock)


@pytest.fixture
def lifecycle(repository, dispatcher, clock):
    return TripLifecycle(repository, dispatcher, clock=clock)


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"), "http://test")


@pytest.fixture
def fleet_manager():
    return Actor(user_id=FLEET_MANAGER_ID, role=UserRole.FLEET_MANAGER)


@pytest.fixture
def driver():
    return Actor(user_id=DRIVER_ID, role=UserRole.DRIVER)


@pytest.fixture
async def client(store, blob_store):
    """Async client for testing, wired to the per-test store and blob store."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides = {}


def auth_headers(user_id: str, role: UserRole) -> dict:
    token = create_access_token(data={"sub": user_id, "user_id": user_id, "role": role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def manager_headers():
    return auth_headers(FLEET_MANAGER_ID, UserRole.FLEET_MANAGER)


@pytest.fixture
def driver_headers():
    return auth_headers(DRIVER_ID, UserRole.DRIVER)
