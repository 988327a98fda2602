"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are created as-is:
locations are JSON and statuses plain strings, both of which SQLite
handles.  Notifications go to a ``RecordingNotifier`` instead of sockets.
"""

from datetime import datetime, timedelta
from typing import AsyncGenerator, Iterable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.domain.clock import utcnow
from src.domain.enums import UserRole, VehicleType
from src.domain.notifications import Notification
from src.infrastructure.database import Base
from src.infrastructure.models import UserModel, VehicleModel

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


class RecordingNotifier:
    """Collects published notifications for assertions."""

    def __init__(self):
        self.sent: list[Notification] = []

    async def publish(self, notifications: Iterable[Notification]) -> None:
        self.sent.extend(notifications)

    def events(self, channel: str = None) -> list[str]:
        return [n.event for n in self.sent if channel is None or n.channel == channel]

    def clear(self) -> None:
        self.sent.clear()


class FakeClock:
    """Callable clock that tests can move forward."""

    def __init__(self, start: datetime = None):
        self.now = start or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh schema per test; every session shares one in-memory DB."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def people(db_session):
    """A super admin, a customer, two approved drivers with a vehicle each,
    and one driver awaiting approval."""
    admin = UserModel(
        email="admin@test.local", name="Admin", role=UserRole.ADMIN,
        is_super_admin=True, approved=True,
    )
    customer = UserModel(email="cust@test.local", name="Asha", role=UserRole.CUSTOMER)
    driver = UserModel(
        email="d1@test.local", name="Ravi", role=UserRole.DRIVER,
        approved=True, is_active=True, vehicle_type=VehicleType.TATA_ACE,
    )
    driver2 = UserModel(
        email="d2@test.local", name="Imran", role=UserRole.DRIVER,
        approved=True, is_active=True, vehicle_type=VehicleType.TEMPO,
    )
    unapproved = UserModel(
        email="d3@test.local", name="Manoj", role=UserRole.DRIVER,
        approved=False, is_active=True, vehicle_type=VehicleType.TATA_ACE,
    )
    db_session.add_all([admin, customer, driver, driver2, unapproved])
    await db_session.flush()

    vehicle = VehicleModel(
        driver_id=driver.id, driver_name=driver.name, vehicle_name="Ace",
        number="MH01AA0001", type=VehicleType.TATA_ACE, capacity=750, active=True,
    )
    vehicle2 = VehicleModel(
        driver_id=driver2.id, driver_name=driver2.name, vehicle_name="Tempo",
        number="MH01AA0002", type=VehicleType.TEMPO, capacity=1500, active=True,
    )
    db_session.add_all([vehicle, vehicle2])
    await db_session.commit()

    return {
        "admin": admin,
        "customer": customer,
        "driver": driver,
        "driver2": driver2,
        "unapproved": unapproved,
        "vehicle": vehicle,
        "vehicle2": vehicle2,
    }


@pytest_asyncio.fixture
async def client(session_factory, notifier, people):
    """AsyncClient backed by SQLite and the recording notifier."""
    from src.api.app import create_app
    from src.api.dependencies import get_db, get_notifier
    from src.api.middleware import limiter

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    limiter.reset()
    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
