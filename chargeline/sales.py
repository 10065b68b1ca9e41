"""
Sales terminal: walk-in charging sales priced at the counter.

Sales are logged independently of the charging order ledger and do not
affect station availability.
"""

from decimal import Decimal
from typing import List, Optional

from loguru import logger
from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from chargeline.availability import find_station
from chargeline.billing import BillingBreakdown, BillingInput, compute_billing
from chargeline.config import SALE_NUMBER_PREFIX
from chargeline.errors import ValidationError
from chargeline.models import ChargingSale, StationStatus
from chargeline.numbering import next_number
from chargeline.utils import Clock, utc_now_naive

PAYMENT_MODES = ("Cash", "Esewa", "Fonepay", "Card", "Other")
WALK_IN_CUSTOMER = "Walk-in Customer"
SALE_NUMBER_ATTEMPTS = 3


def preview_total(billing: BillingInput) -> BillingBreakdown:
    """Live preview of the amount due; identical to what log_sale records."""
    return compute_billing(billing)


async def log_sale(
    db: AsyncSession,
    station_id: str,
    billing: BillingInput,
    payment_mode: str,
    customer_name: Optional[str] = None,
    customer_phone: Optional[str] = None,
    customer_email: Optional[str] = None,
    vehicle_number: Optional[str] = None,
    clock: Clock = utc_now_naive,
) -> ChargingSale:
    """
    Record a paid walk-in charge.

    Raises:
        ValidationError: no station, station under maintenance, unknown
            payment mode, or a total that is not greater than zero
    """
    if not (station_id or "").strip():
        raise ValidationError("Please select a charging station")
    if payment_mode not in PAYMENT_MODES:
        raise ValidationError(
            f"Payment mode must be one of {', '.join(PAYMENT_MODES)}"
        )

    total = compute_billing(billing).total_amount
    if total <= Decimal(0):
        raise ValidationError("Calculated amount must be greater than zero")

    station = await find_station(db, station_id.strip())
    if station.status == StationStatus.MAINTENANCE.value:
        raise ValidationError(f"Station {station.station_id} is under maintenance")
    station_pk, station_code = station.id, station.station_id

    now = clock()
    for attempt in range(1, SALE_NUMBER_ATTEMPTS + 1):
        sale = ChargingSale(
            sale_number=await next_number(
                db, ChargingSale.sale_number, SALE_NUMBER_PREFIX, now
            ),
            station_id=station_pk,
            customer_name=(customer_name or "").strip() or WALK_IN_CUSTOMER,
            customer_phone=customer_phone,
            customer_email=customer_email,
            vehicle_number=vehicle_number,
            start_percentage=billing.start_percentage,
            end_percentage=billing.end_percentage,
            rate_per_percentage_point=billing.rate_per_percentage_point,
            energy_consumed=billing.energy_consumed,
            rate_per_energy_unit=billing.rate_per_energy_unit,
            total_amount=total,
            payment_mode=payment_mode,
            created_at=now,
        )
        db.add(sale)
        try:
            await db.commit()
            break
        except IntegrityError:
            await db.rollback()
            if attempt == SALE_NUMBER_ATTEMPTS:
                raise
            logger.warning(f"Sale number {sale.sale_number} taken, retrying")

    await db.refresh(sale)
    logger.info(
        f"Logged sale {sale.sale_number} on station {station_code}: "
        f"{total} via {payment_mode}"
    )
    return sale


async def list_sales(db: AsyncSession, limit: int = 50) -> List[ChargingSale]:
    result = await db.execute(
        select(ChargingSale).order_by(desc(ChargingSale.created_at)).limit(limit)
    )
    return list(result.scalars().all())
