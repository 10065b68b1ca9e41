"""
Station registry tests.
"""

import pytest

from chargeline.errors import NotFoundError, ValidationError
from chargeline.stations import (
    DEFAULT_STATIONS,
    create_station,
    delete_station,
    get_station,
    list_stations,
    seed_default_stations,
    set_station_status,
    update_station,
)


async def test_stations_listed_by_code(db, stations):
    codes = [s.station_id for s in await list_stations(db)]
    assert codes == ["CS-01", "CS-02", "CS-03", "CS-04"]


async def test_duplicate_code_rejected(db, stations):
    with pytest.raises(ValidationError, match="already exists"):
        await create_station(
            db, station_id="CS-01", type="AC", power="7 kW", connector="Type 2"
        )


@pytest.mark.parametrize("status", ["charging", "offline", ""])
async def test_unknown_status_rejected(db, stations, status):
    with pytest.raises(ValidationError):
        await set_station_status(db, "CS-01", status)


async def test_back_to_available_clears_estimate(db, stations):
    await update_station(db, "CS-04", estimated_time="about 30 minutes")

    station = await set_station_status(db, "CS-04", "available")

    assert station.status == "available"
    assert station.estimated_time is None


async def test_update_rejects_unknown_fields(db, stations):
    with pytest.raises(ValidationError):
        await update_station(db, "CS-01", station_id="CS-10")


async def test_get_station_by_pk_or_code(db, stations):
    assert (await get_station(db, "CS-02")).id == stations["CS-02"].id
    assert (await get_station(db, stations["CS-02"].id)).station_id == "CS-02"


async def test_delete_unreferenced_station(db, stations):
    await delete_station(db, "CS-01")

    with pytest.raises(NotFoundError):
        await get_station(db, "CS-01")


async def test_delete_referenced_station_refused(db, booked):
    with pytest.raises(ValidationError, match="charging orders"):
        await delete_station(db, "CS-02")


async def test_seed_default_stations_skips_registered_codes(db, stations):
    created = await seed_default_stations(
        db,
        stations=DEFAULT_STATIONS
        + ({"station_id": "CS-05", "type": "AC", "power": "11 kW", "connector": "Type 2"},),
    )

    assert [s.station_id for s in created] == ["CS-05"]
    assert len(await list_stations(db)) == 5


async def test_seed_default_stations_on_empty_registry(db):
    created = await seed_default_stations(db)

    assert [s.station_id for s in created] == [s["station_id"] for s in DEFAULT_STATIONS]
    assert all(s.status == "available" for s in created)
