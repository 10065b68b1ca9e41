"""
Availability resolution for charging stations.

Availability is never stored. It is derived on every query from the manual
station status and the in-flight charging orders, against the current time.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

from loguru import logger
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from chargeline.errors import NotFoundError
from chargeline.models import ChargingSession, SessionStatus, Station, StationStatus
from chargeline.utils import Clock, utc_now_naive

HOLDING_STATUSES = (SessionStatus.ACTIVE.value, SessionStatus.BOOKED.value)


class Availability(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"


@dataclass
class StationAvailability:
    """A station annotated with its resolved availability."""

    station: Station
    availability: Availability
    available_at: Optional[datetime] = None  # When an occupied station frees up
    session_id: Optional[str] = None  # Tracked session holding the station
    overrun: bool = False  # A holding session is past its expected end

    @property
    def is_available(self) -> bool:
        return self.availability == Availability.AVAILABLE


def resolve_station(
    station: Station, sessions: Iterable[ChargingSession], now: datetime
) -> StationAvailability:
    """
    Resolve one station against the given sessions at time ``now``.

    Rules, in order:
      1. Manual ``maintenance`` wins; no estimate.
      2. A booked/active session with an expected end after ``now`` makes the
         station occupied until the latest such expected end.
      3. If every holding session has already passed its expected end, the
         station is available again (the overrun is flagged, not enforced).
      4. Manual ``occupied`` with no tracked session is occupied with no
         estimate.
      5. Otherwise the station is available.
    """
    if station.status == StationStatus.MAINTENANCE.value:
        return StationAvailability(station, Availability.MAINTENANCE)

    holding = [
        s
        for s in sessions
        if s.station_id == station.id
        and s.status in HOLDING_STATUSES
        and s.expected_end_time is not None
    ]
    running = [s for s in holding if s.expected_end_time > now]

    if running:
        latest = max(running, key=lambda s: s.expected_end_time)
        return StationAvailability(
            station,
            Availability.OCCUPIED,
            available_at=latest.expected_end_time,
            session_id=latest.id,
        )

    if holding:
        return StationAvailability(
            station,
            Availability.AVAILABLE,
            session_id=max(holding, key=lambda s: s.expected_end_time).id,
            overrun=True,
        )

    if station.status == StationStatus.OCCUPIED.value:
        return StationAvailability(station, Availability.OCCUPIED)

    return StationAvailability(station, Availability.AVAILABLE)


def resolve_availability(
    stations: Iterable[Station], sessions: Iterable[ChargingSession], now: datetime
) -> List[StationAvailability]:
    """Resolve every station. Pure: no I/O, no mutation."""
    sessions = list(sessions)
    return [resolve_station(station, sessions, now) for station in stations]


async def find_station(db: AsyncSession, reference: str) -> Station:
    """Look a station up by its id or its human-facing code."""
    result = await db.execute(
        select(Station).where(
            or_(Station.id == reference, Station.station_id == reference)
        )
    )
    station = result.scalars().first()
    if station is None:
        raise NotFoundError("Station", reference)
    return station


async def get_station_availability(
    db: AsyncSession,
    station_id: Optional[str] = None,
    clock: Clock = utc_now_naive,
) -> List[StationAvailability]:
    """
    Load stations and in-flight sessions and resolve availability now.

    Args:
        db: database session
        station_id: optional station id or code to restrict the query to
        clock: source of the current time

    Returns:
        list[StationAvailability]: one entry per station, ordered by code
    """
    if station_id is not None:
        stations = [await find_station(db, station_id)]
    else:
        result = await db.execute(select(Station).order_by(Station.station_id))
        stations = list(result.scalars().all())

    query = select(ChargingSession).where(
        ChargingSession.status.in_(HOLDING_STATUSES),
        ChargingSession.expected_end_time.is_not(None),
    )
    if station_id is not None:
        query = query.where(ChargingSession.station_id == stations[0].id)
    result = await db.execute(query)
    sessions = result.scalars().all()

    resolved = resolve_availability(stations, sessions, clock())

    for entry in resolved:
        if entry.overrun:
            logger.warning(
                f"Station {entry.station.station_id} offered as available: "
                f"session {entry.session_id} is past its expected end time"
            )

    return resolved
