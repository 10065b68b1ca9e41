"""
Concurrent transition tests.

SQLite serialises writers; transactions here open with BEGIN IMMEDIATE so a
competing writer waits for the lock instead of failing with "database is
locked". The status guard on the UPDATE is what decides the loser.
"""

import asyncio
from datetime import datetime

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chargeline.database import Base, build_engine
from chargeline.errors import InvalidTransitionError
from chargeline.models import ChargingSession
from chargeline.stations import create_station


@pytest_asyncio.fixture
async def serial_factory(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'concurrent.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


async def _book(factory, controller):
    async with factory() as db:
        await create_station(
            db, station_id="CS-02", type="DC Fast", power="60 kW", connector="CCS2"
        )
        order = await controller.book(
            db, customer_name="Asha", customer_phone="9800000001", station_id="CS-02"
        )
        return order.id


async def test_two_starts_exactly_one_wins(serial_factory, controller, notifier):
    order_id = await _book(serial_factory, controller)

    async def attempt(expected_end):
        async with serial_factory() as db:
            return await controller.start(db, order_id, expected_end)

    results = await asyncio.gather(
        attempt(datetime(2024, 6, 1, 11, 0)),
        attempt(datetime(2024, 6, 1, 13, 0)),
        return_exceptions=True,
    )

    winners = [r for r in results if isinstance(r, ChargingSession)]
    losers = [r for r in results if isinstance(r, InvalidTransitionError)]
    assert len(winners) == 1, f"Expected one success, got {results}"
    assert len(losers) == 1, f"Expected one invalid transition, got {results}"
    assert losers[0].current_status == "active"

    async with serial_factory() as db:
        stored = await controller.get_session(db, order_id)
    assert stored.status == "active"
    assert stored.expected_end_time == winners[0].expected_end_time
    assert stored.start_time == winners[0].start_time

    # Only the winning transition notifies
    assert len(notifier.sent) == 1


async def test_cancel_races_start(serial_factory, controller):
    order_id = await _book(serial_factory, controller)

    async def start():
        async with serial_factory() as db:
            return await controller.start(db, order_id)

    async def cancel():
        async with serial_factory() as db:
            return await controller.cancel(db, order_id)

    results = await asyncio.gather(start(), cancel(), return_exceptions=True)

    async with serial_factory() as db:
        stored = await controller.get_session(db, order_id)

    # Cancel is legal from both booked and active, so it always lands
    assert stored.status == "cancelled"
    assert not any(isinstance(r, Exception) and not isinstance(r, InvalidTransitionError) for r in results)
