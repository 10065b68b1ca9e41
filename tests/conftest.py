"""
Shared fixtures: a throwaway SQLite database, a fixed clock and a
lifecycle controller wired to a recording notifier.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import chargeline.models  # noqa: F401
from chargeline.database import Base, build_engine
from chargeline.errors import NotificationDeliveryFailure
from chargeline.lifecycle import SessionLifecycleController
from chargeline.notifications import Notifier
from chargeline.stations import create_station


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, now: datetime):
        self.now = now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent = []

    async def send(self, payload):
        self.sent.append(payload)


class FailingNotifier(Notifier):
    def __init__(self):
        self.attempts = 0

    async def send(self, payload):
        self.attempts += 1
        raise NotificationDeliveryFailure("SMTP relay unreachable")


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 6, 1, 10, 0))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def controller(clock, notifier):
    return SessionLifecycleController(
        clock=clock, notifier=notifier, notify_on={"start"}
    )


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'chargeline.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def stations(db):
    """Four stations, one per manual status plus a spare available one."""
    created = {}
    for code, status in (
        ("CS-01", "available"),
        ("CS-02", "available"),
        ("CS-03", "maintenance"),
        ("CS-04", "occupied"),
    ):
        created[code] = await create_station(
            db,
            station_id=code,
            type="DC Fast",
            power="60 kW",
            connector="CCS2",
            status=status,
        )
    return created


@pytest_asyncio.fixture
async def booked(db, controller, stations):
    """A booked order on CS-02."""
    return await controller.book(
        db,
        customer_name="Asha Gurung",
        customer_phone="9800000001",
        station_id="CS-02",
        customer_email="asha@example.com",
        vehicle_number="BA 2 PA 1234",
    )
