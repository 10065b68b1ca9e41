"""
Charging order lifecycle transitions and on-demand customer confirmations.

States move booked -> active -> completed, with cancelled reachable from
booked or active. Every transition is a conditional UPDATE on the expected
prior status, so of two concurrent attempts on the same order exactly one
matches a row and the other is reported as an invalid transition.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from loguru import logger
from sqlalchemy import delete, desc, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chargeline.availability import Availability, find_station, get_station_availability
from chargeline.billing import BillingInput, compute_billing
from chargeline.config import (
    DEFAULT_CHARGE_DURATION_MINUTES,
    NOTIFY_ON,
    ORDER_NUMBER_PREFIX,
)
from chargeline.errors import InvalidTransitionError, NotFoundError, ValidationError
from chargeline.models import ChargingSession, PaymentStatus, SessionStatus, Station
from chargeline.notifications import (
    ChargingNotification,
    Notifier,
    default_notifier,
    dispatch,
)
from chargeline.numbering import next_number
from chargeline.utils import Clock, to_naive_utc, utc_now_naive

ENTITY = "Charging order"
TERMINAL_STATUSES = (SessionStatus.COMPLETED.value, SessionStatus.CANCELLED.value)
ORDER_NUMBER_ATTEMPTS = 3


def _required(value: Optional[str], label: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(f"{label} is required")
    return value


def _optional(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class SessionLifecycleController:
    """
    Enforces the legal transitions of a charging order.

    Args:
        clock: source of the current naive UTC time
        notifier: customer notification sender
        notify_on: events ("book", "start") that trigger a notification
    """

    def __init__(
        self,
        clock: Clock = utc_now_naive,
        notifier: Optional[Notifier] = None,
        notify_on: Optional[Iterable[str]] = None,
    ):
        self.clock = clock
        self.notifier = notifier or default_notifier()
        self.notify_on = set(NOTIFY_ON if notify_on is None else notify_on)

    # Queries

    async def get_session(self, db: AsyncSession, reference: str) -> ChargingSession:
        """Fetch an order by id or order number."""
        result = await db.execute(
            select(ChargingSession)
            .where(
                or_(
                    ChargingSession.id == reference,
                    ChargingSession.order_number == reference,
                )
            )
            .execution_options(populate_existing=True)
        )
        order = result.scalars().first()
        if order is None:
            raise NotFoundError(ENTITY, reference)
        return order

    async def list_sessions(
        self,
        db: AsyncSession,
        status: Optional[str] = None,
        station_id: Optional[str] = None,
        limit: int = 50,
    ) -> List[ChargingSession]:
        """Recent orders, newest first."""
        query = (
            select(ChargingSession)
            .order_by(desc(ChargingSession.created_at))
            .limit(limit)
        )
        if status:
            query = query.where(ChargingSession.status == status)
        if station_id:
            station = await find_station(db, station_id)
            query = query.where(ChargingSession.station_id == station.id)

        result = await db.execute(query)
        return list(result.scalars().all())

    # Transitions

    async def book(
        self,
        db: AsyncSession,
        customer_name: str,
        customer_phone: str,
        station_id: str,
        start_time: Optional[datetime] = None,
        customer_email: Optional[str] = None,
        vehicle_number: Optional[str] = None,
    ) -> ChargingSession:
        """
        Create a new order in ``booked`` state.

        Booking is advisory: a station that is occupied but has an expected
        free time can still be booked. Stations under maintenance, or marked
        occupied by staff with no tracked order, are refused.
        """
        customer_name = _required(customer_name, "Customer name")
        customer_phone = _required(customer_phone, "Customer phone")
        station_ref = _required(station_id, "Charging station")

        now = self.clock()
        station = await find_station(db, station_ref)
        availability = (await get_station_availability(db, station.id, self.clock))[0]

        if availability.availability == Availability.MAINTENANCE:
            raise ValidationError(f"Station {station.station_id} is under maintenance")
        if availability.availability == Availability.OCCUPIED:
            if availability.available_at is None:
                raise ValidationError(
                    f"Station {station.station_id} is marked occupied by staff"
                )
            logger.warning(
                f"Booking station {station.station_id} while occupied until "
                f"{availability.available_at}"
            )

        start = to_naive_utc(start_time) or now
        station_pk, station_code = station.id, station.station_id

        for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
            order = ChargingSession(
                order_number=await next_number(
                    db, ChargingSession.order_number, ORDER_NUMBER_PREFIX, now
                ),
                customer_name=customer_name,
                customer_phone=customer_phone,
                customer_email=_optional(customer_email),
                vehicle_number=_optional(vehicle_number),
                station_id=station_pk,
                start_time=start,
                status=SessionStatus.BOOKED.value,
                payment_status=PaymentStatus.PENDING.value,
                created_at=now,
            )
            db.add(order)
            try:
                await db.commit()
                break
            except IntegrityError:
                await db.rollback()
                if attempt == ORDER_NUMBER_ATTEMPTS:
                    raise
                logger.warning(f"Order number {order.order_number} taken, retrying")

        await db.refresh(order)
        logger.info(
            f"Booked order {order.order_number} on station {station_code} "
            f"for {customer_name} at {start}"
        )

        if "book" in self.notify_on:
            await self._notify(db, "book", order)

        return order

    async def start(
        self,
        db: AsyncSession,
        reference: str,
        expected_end_time: Optional[datetime] = None,
    ) -> ChargingSession:
        """
        Move a booked order to ``active``.

        The start time becomes the actual start instant. The expected end is
        the operator's estimate; when omitted it defaults to the configured
        charge duration from now.
        """
        order = await self.get_session(db, reference)
        now = self.clock()

        # Concurrent starts are still settled by the guarded update below
        if order.status != SessionStatus.BOOKED.value:
            raise InvalidTransitionError(ENTITY, order.order_number, order.status, "start")

        expected_end = to_naive_utc(expected_end_time)
        if expected_end is None:
            expected_end = now + timedelta(minutes=DEFAULT_CHARGE_DURATION_MINUTES)
        if expected_end <= now:
            raise ValidationError("Expected end time must be after the start time")

        order = await self._transition(
            db,
            order,
            from_statuses=(SessionStatus.BOOKED.value,),
            to_status=SessionStatus.ACTIVE.value,
            action="start",
            values={"start_time": now, "expected_end_time": expected_end},
        )
        logger.info(
            f"Started order {order.order_number}, expected end {order.expected_end_time}"
        )

        if "start" in self.notify_on:
            await self._notify(db, "start", order)

        return order

    async def complete(
        self,
        db: AsyncSession,
        reference: str,
        billing: Optional[BillingInput] = None,
        paid: bool = False,
        payment_method: Optional[str] = None,
    ) -> ChargingSession:
        """
        Move an active order to ``completed``.

        With billing inputs the total is priced by the billing calculator and
        the order is marked paid when ``paid`` is set. Without them the total
        is left as it was and payment stays pending.
        """
        order = await self.get_session(db, reference)
        now = self.clock()

        values = {"end_time": now, "payment_status": PaymentStatus.PENDING.value}
        if billing is not None:
            values["total_amount"] = compute_billing(billing).total_amount
            if paid:
                values["payment_status"] = PaymentStatus.PAID.value
        if payment_method:
            values["payment_method"] = payment_method

        order = await self._transition(
            db,
            order,
            from_statuses=(SessionStatus.ACTIVE.value,),
            to_status=SessionStatus.COMPLETED.value,
            action="complete",
            values=values,
        )
        logger.info(
            f"Completed order {order.order_number}: total={order.total_amount}, "
            f"payment={order.payment_status}"
        )
        return order

    async def cancel(self, db: AsyncSession, reference: str) -> ChargingSession:
        """Cancel a booked or active order. The total is left untouched."""
        order = await self.get_session(db, reference)
        order = await self._transition(
            db,
            order,
            from_statuses=(SessionStatus.BOOKED.value, SessionStatus.ACTIVE.value),
            to_status=SessionStatus.CANCELLED.value,
            action="cancel",
            values={},
        )
        logger.info(f"Cancelled order {order.order_number}")
        return order

    async def record_payment(
        self,
        db: AsyncSession,
        reference: str,
        payment_status: str,
        payment_method: Optional[str] = None,
    ) -> ChargingSession:
        """Settle the payment of a completed order."""
        if payment_status not in {s.value for s in PaymentStatus}:
            raise ValidationError(f"Unknown payment status '{payment_status}'")

        order = await self.get_session(db, reference)
        values = {"payment_status": payment_status}
        if payment_method:
            values["payment_method"] = payment_method

        await self._conditional_write(
            db,
            update(ChargingSession)
            .where(
                ChargingSession.id == order.id,
                ChargingSession.status == SessionStatus.COMPLETED.value,
            )
            .values(updated_at=self.clock(), **values),
            order,
            "record payment for",
        )

        order = await self.get_session(db, order.id)
        logger.info(f"Payment for order {order.order_number} set to {payment_status}")
        return order

    async def notify(self, db: AsyncSession, reference: str) -> bool:
        """
        Send the customer a confirmation for an order on demand.

        Works in any state and changes nothing in the store.

        Returns:
            bool: True if the notifier accepted the message
        """
        order = await self.get_session(db, reference)
        sent = await self._notify(db, "confirmation", order)
        logger.info(
            f"Confirmation for order {order.order_number} "
            f"{'sent' if sent else 'could not be sent'}"
        )
        return sent

    async def delete(self, db: AsyncSession, reference: str) -> None:
        """
        Remove a completed or cancelled order.

        Booked and active orders are refused: deleting them would silently
        free a station a customer believes is reserved.
        """
        order = await self.get_session(db, reference)
        await self._conditional_write(
            db,
            delete(ChargingSession).where(
                ChargingSession.id == order.id,
                ChargingSession.status.in_(TERMINAL_STATUSES),
            ),
            order,
            "delete",
        )
        db.expunge(order)
        logger.info(f"Deleted order {order.order_number}")

    # Internals

    async def _transition(
        self,
        db: AsyncSession,
        order: ChargingSession,
        from_statuses,
        to_status: str,
        action: str,
        values: dict,
    ) -> ChargingSession:
        await self._conditional_write(
            db,
            update(ChargingSession)
            .where(
                ChargingSession.id == order.id,
                ChargingSession.status.in_(from_statuses),
            )
            .values(status=to_status, updated_at=self.clock(), **values),
            order,
            action,
        )
        return await self.get_session(db, order.id)

    async def _conditional_write(self, db: AsyncSession, statement, order, action: str):
        """
        Execute a write guarded by an expected status and commit it.

        Raises InvalidTransitionError (or NotFoundError) when the guard
        matched no row. Storage errors roll back and propagate unchanged.
        """
        try:
            result = await db.execute(
                statement.execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                await db.commit()
                return
        except SQLAlchemyError:
            await db.rollback()
            raise

        order_id, order_number = order.id, order.order_number
        current = await db.get(ChargingSession, order_id, populate_existing=True)
        # Nothing was written; end the transaction without expiring loaded objects
        await db.commit()
        if current is None:
            raise NotFoundError(ENTITY, order_number)
        logger.info(
            f"Rejected {action} on order {current.order_number}: status is {current.status}"
        )
        raise InvalidTransitionError(ENTITY, current.order_number, current.status, action)

    async def _notify(
        self,
        db: AsyncSession,
        event: str,
        order: ChargingSession,
        station: Optional[Station] = None,
    ) -> bool:
        if station is None:
            station = await db.get(Station, order.station_id)
        payload = ChargingNotification.for_session(event, order, station)
        return await dispatch(self.notifier, payload)
