"""
Charger reservation ledger tests.
"""

from datetime import date, time

import pytest

from chargeline.availability import Availability, get_station_availability
from chargeline.errors import InvalidTransitionError, NotFoundError, ValidationError
from chargeline.reservations import (
    create_reservation,
    delete_reservation,
    get_reservation,
    list_reservations,
    update_reservation_status,
)


async def _reserve(db, clock, **overrides):
    fields = dict(
        customer_name="Kamal",
        customer_phone="9800000010",
        station_id="CS-01",
        reservation_date=date(2024, 6, 2),
        start_time=time(14, 0),
        end_time=time(15, 30),
        customer_email="kamal@example.com",
        clock=clock,
    )
    fields.update(overrides)
    return await create_reservation(db, **fields)


async def test_create_pending_reservation(db, stations, clock):
    reservation = await _reserve(db, clock, special_requests="Need a long cable")

    assert reservation.status == "pending"
    assert reservation.station_id == stations["CS-01"].id
    assert reservation.start_time == time(14, 0)
    assert reservation.end_time == time(15, 30)
    assert reservation.special_requests == "Need a long cable"


@pytest.mark.parametrize("start, end", [(time(15, 0), time(14, 0)), (time(14, 0), time(14, 0))])
async def test_slot_must_end_after_it_starts(db, stations, clock, start, end):
    with pytest.raises(ValidationError):
        await _reserve(db, clock, start_time=start, end_time=end)


async def test_missing_contact_rejected(db, stations, clock):
    with pytest.raises(ValidationError, match="Customer phone"):
        await _reserve(db, clock, customer_phone="")


async def test_unknown_station_rejected(db, stations, clock):
    with pytest.raises(NotFoundError):
        await _reserve(db, clock, station_id="CS-42")


async def test_confirm_then_complete(db, stations, clock):
    reservation = await _reserve(db, clock)

    confirmed = await update_reservation_status(db, reservation.id, "confirmed", clock)
    assert confirmed.status == "confirmed"

    completed = await update_reservation_status(db, reservation.id, "completed", clock)
    assert completed.status == "completed"


@pytest.mark.parametrize(
    "path, illegal",
    [
        ([], "completed"),
        (["cancelled"], "confirmed"),
        (["confirmed", "completed"], "cancelled"),
    ],
)
async def test_illegal_moves(db, stations, clock, path, illegal):
    reservation = await _reserve(db, clock)
    for status in path:
        await update_reservation_status(db, reservation.id, status, clock)

    with pytest.raises(InvalidTransitionError):
        await update_reservation_status(db, reservation.id, illegal, clock)


async def test_unknown_status(db, stations, clock):
    reservation = await _reserve(db, clock)
    with pytest.raises(ValidationError):
        await update_reservation_status(db, reservation.id, "no-show", clock)


async def test_reservations_do_not_affect_availability(db, stations, clock):
    reservation = await _reserve(
        db, clock, reservation_date=date(2024, 6, 1), start_time=time(9, 0), end_time=time(12, 0)
    )
    await update_reservation_status(db, reservation.id, "confirmed", clock)

    entry = (await get_station_availability(db, "CS-01", clock))[0]
    assert entry.availability == Availability.AVAILABLE


async def test_list_and_delete(db, stations, clock):
    first = await _reserve(db, clock)
    clock.advance(minutes=1)
    second = await _reserve(db, clock, customer_name="Laxmi")
    await update_reservation_status(db, second.id, "cancelled", clock)

    assert [r.id for r in await list_reservations(db)] == [second.id, first.id]
    assert [r.id for r in await list_reservations(db, status="pending")] == [first.id]

    await delete_reservation(db, first.id)
    with pytest.raises(NotFoundError):
        await get_reservation(db, first.id)
