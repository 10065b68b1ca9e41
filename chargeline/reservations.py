"""
Fixed time-slot charger reservations.

This is a separate ledger from charging orders. Reservations are not checked
against live orders and the availability resolver does not read them, so a
reserved slot and a live booking can land on the same station.
"""

from datetime import date, time
from typing import List, Optional

from loguru import logger
from sqlalchemy import desc, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chargeline.availability import find_station
from chargeline.errors import InvalidTransitionError, NotFoundError, ValidationError
from chargeline.models import ChargerReservation, ReservationStatus
from chargeline.utils import Clock, utc_now_naive

ENTITY = "Reservation"

# Allowed moves from each status; terminal statuses have none.
TRANSITIONS = {
    ReservationStatus.PENDING.value: {
        ReservationStatus.CONFIRMED.value,
        ReservationStatus.CANCELLED.value,
    },
    ReservationStatus.CONFIRMED.value: {
        ReservationStatus.COMPLETED.value,
        ReservationStatus.CANCELLED.value,
    },
    ReservationStatus.CANCELLED.value: set(),
    ReservationStatus.COMPLETED.value: set(),
}


async def create_reservation(
    db: AsyncSession,
    customer_name: str,
    customer_phone: str,
    station_id: str,
    reservation_date: date,
    start_time: time,
    end_time: time,
    customer_email: Optional[str] = None,
    special_requests: Optional[str] = None,
    clock: Clock = utc_now_naive,
) -> ChargerReservation:
    """Record a pending reservation for a wall-clock slot on one day."""
    for value, label in (
        (customer_name, "Customer name"),
        (customer_phone, "Customer phone"),
        (station_id, "Charging station"),
    ):
        if not (value or "").strip():
            raise ValidationError(f"{label} is required")
    if reservation_date is None or start_time is None or end_time is None:
        raise ValidationError("Reservation date, start time and end time are required")
    if end_time <= start_time:
        raise ValidationError("Reservation end time must be after its start time")

    station = await find_station(db, station_id.strip())

    reservation = ChargerReservation(
        customer_name=customer_name.strip(),
        customer_phone=customer_phone.strip(),
        customer_email=(customer_email or "").strip() or None,
        station_id=station.id,
        reservation_date=reservation_date,
        start_time=start_time,
        end_time=end_time,
        special_requests=special_requests,
        status=ReservationStatus.PENDING.value,
        created_at=clock(),
    )
    db.add(reservation)
    await db.commit()
    await db.refresh(reservation)

    logger.info(
        f"Reservation {reservation.id} for {reservation.customer_name} on station "
        f"{station.station_id}: {reservation_date} {start_time}-{end_time}"
    )
    return reservation


async def get_reservation(db: AsyncSession, reservation_id: str) -> ChargerReservation:
    reservation = await db.get(ChargerReservation, reservation_id, populate_existing=True)
    if reservation is None:
        raise NotFoundError(ENTITY, reservation_id)
    return reservation


async def list_reservations(
    db: AsyncSession, status: Optional[str] = None, limit: int = 50
) -> List[ChargerReservation]:
    query = (
        select(ChargerReservation)
        .order_by(desc(ChargerReservation.created_at))
        .limit(limit)
    )
    if status:
        query = query.where(ChargerReservation.status == status)
    result = await db.execute(query)
    return list(result.scalars().all())


async def update_reservation_status(
    db: AsyncSession,
    reservation_id: str,
    new_status: str,
    clock: Clock = utc_now_naive,
) -> ChargerReservation:
    """Move a reservation along pending -> confirmed -> completed, or cancel it."""
    if new_status not in TRANSITIONS:
        raise ValidationError(f"Unknown reservation status '{new_status}'")

    reservation = await get_reservation(db, reservation_id)
    current = reservation.status
    if new_status not in TRANSITIONS.get(current, set()):
        raise InvalidTransitionError(ENTITY, reservation_id, current, f"mark {new_status}")

    result = await db.execute(
        update(ChargerReservation)
        .where(
            ChargerReservation.id == reservation_id,
            ChargerReservation.status == current,
        )
        .values(status=new_status, updated_at=clock())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        latest = await get_reservation(db, reservation_id)
        await db.commit()
        raise InvalidTransitionError(
            ENTITY, reservation_id, latest.status, f"mark {new_status}"
        )
    await db.commit()

    logger.info(f"Reservation {reservation_id}: {current} -> {new_status}")
    return await get_reservation(db, reservation_id)


async def delete_reservation(db: AsyncSession, reservation_id: str) -> None:
    reservation = await get_reservation(db, reservation_id)
    await db.delete(reservation)
    await db.commit()
    logger.info(f"Deleted reservation {reservation_id}")
