"""
Station registry: staff-maintained charging stations and their manual status.
"""

from typing import List, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from chargeline.availability import find_station
from chargeline.errors import ValidationError
from chargeline.models import (
    ChargerReservation,
    ChargingSale,
    ChargingSession,
    Station,
    StationStatus,
)

STATION_STATUSES = {s.value for s in StationStatus}

# Starter set for a fresh database
DEFAULT_STATIONS = (
    {"station_id": "CS-01", "type": "AC", "power": "7.4 kW", "connector": "Type 2"},
    {"station_id": "CS-02", "type": "AC", "power": "22 kW", "connector": "Type 2"},
    {"station_id": "CS-03", "type": "DC Fast", "power": "60 kW", "connector": "CCS2"},
    {"station_id": "CS-04", "type": "DC Fast", "power": "60 kW", "connector": "CHAdeMO"},
)


def _check_status(status: str) -> str:
    if status not in STATION_STATUSES:
        raise ValidationError(
            f"Unknown station status '{status}', expected one of "
            f"{', '.join(sorted(STATION_STATUSES))}"
        )
    return status


async def create_station(
    db: AsyncSession,
    station_id: str,
    type: str,
    power: str,
    connector: str,
    status: str = StationStatus.AVAILABLE.value,
    estimated_time: Optional[str] = None,
) -> Station:
    """Register a new station under a unique human-facing code."""
    code = (station_id or "").strip()
    if not code:
        raise ValidationError("Station code is required")
    _check_status(status)

    existing = await db.execute(select(Station).where(Station.station_id == code))
    if existing.scalar_one_or_none():
        raise ValidationError(f"Station with code '{code}' already exists")

    station = Station(
        station_id=code,
        type=type,
        power=power,
        connector=connector,
        status=status,
        estimated_time=estimated_time,
    )
    db.add(station)
    await db.commit()
    await db.refresh(station)

    logger.info(f"Created station {code} ({type}, {power}, {connector})")
    return station


async def seed_default_stations(db: AsyncSession, stations=DEFAULT_STATIONS) -> List[Station]:
    """
    Create any of ``stations`` whose code is not registered yet.

    Returns:
        list[Station]: the stations that were created
    """
    result = await db.execute(select(Station.station_id))
    existing = set(result.scalars().all())

    created = []
    for fields in stations:
        if fields["station_id"] in existing:
            continue
        created.append(await create_station(db, **fields))

    logger.info(f"Seeded {len(created)} of {len(stations)} default stations")
    return created


async def get_station(db: AsyncSession, reference: str) -> Station:
    return await find_station(db, reference)


async def list_stations(db: AsyncSession) -> List[Station]:
    result = await db.execute(select(Station).order_by(Station.station_id))
    return list(result.scalars().all())


async def update_station(db: AsyncSession, reference: str, **changes) -> Station:
    """Edit station attributes. Unknown fields are rejected."""
    allowed = {"type", "power", "connector", "status", "estimated_time"}
    unknown = set(changes) - allowed
    if unknown:
        raise ValidationError(f"Cannot update station fields: {', '.join(sorted(unknown))}")
    if "status" in changes:
        _check_status(changes["status"])

    station = await find_station(db, reference)
    for field, value in changes.items():
        setattr(station, field, value)
    await db.commit()
    await db.refresh(station)

    logger.info(f"Updated station {station.station_id}: {changes}")
    return station


async def set_station_status(db: AsyncSession, reference: str, status: str) -> Station:
    """Set the manual status flag. Becoming available clears the estimate text."""
    _check_status(status)
    changes = {"status": status}
    if status == StationStatus.AVAILABLE.value:
        changes["estimated_time"] = None
    return await update_station(db, reference, **changes)


async def delete_station(db: AsyncSession, reference: str) -> None:
    """Remove a station that no order, reservation or sale refers to."""
    station = await find_station(db, reference)

    for model in (ChargingSession, ChargerReservation, ChargingSale):
        result = await db.execute(
            select(func.count()).select_from(model).where(model.station_id == station.id)
        )
        if result.scalar_one():
            raise ValidationError(
                f"Station {station.station_id} is still referenced by "
                f"{model.__tablename__.replace('_', ' ')} and cannot be deleted"
            )

    await db.delete(station)
    await db.commit()
    logger.info(f"Deleted station {station.station_id}")
