"""
Billing calculator for charging sessions and walk-in sales.

A charge can be priced by battery percentage gained, by energy delivered,
or by both added together. The same function backs the live preview on the
sales terminal and the amount recorded on a completed session, so a shown
total and a stored total can never disagree.
"""

from dataclasses import dataclass
from decimal import (
    Context,
    Decimal,
    InvalidOperation,
    MAX_EMAX,
    MIN_EMIN,
    ROUND_HALF_UP,
)
from typing import Optional, Union

from chargeline.config import CURRENCY_DECIMALS
from chargeline.errors import ValidationError

Number = Union[int, float, Decimal, str]

_QUANTUM = Decimal(1).scaleb(-CURRENCY_DECIMALS)


@dataclass(frozen=True)
class BillingInput:
    """Readings and rates entered at the point of sale. All optional."""

    start_percentage: Optional[Number] = None
    end_percentage: Optional[Number] = None
    rate_per_percentage_point: Optional[Number] = None
    energy_consumed: Optional[Number] = None
    rate_per_energy_unit: Optional[Number] = None


@dataclass(frozen=True)
class BillingBreakdown:
    percentage_amount: Decimal
    energy_amount: Decimal
    total_amount: Decimal


def _decimal(value: Number) -> Decimal:
    if not isinstance(value, Decimal):
        # str() first so floats like 0.1 keep their displayed value
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"Billing value '{value}' is not a number") from None
    if not value.is_finite():
        raise ValidationError(f"Billing value '{value}' is not a finite number")
    return value


def _context(*values: Decimal) -> Context:
    """Context wide enough to subtract, multiply and round ``values`` exactly."""
    digits = sum(
        len(v.as_tuple().digits) + abs(v.as_tuple().exponent) for v in values
    )
    return Context(
        prec=max(digits + CURRENCY_DECIMALS + 2, 28),
        rounding=ROUND_HALF_UP,
        Emax=MAX_EMAX,
        Emin=MIN_EMIN,
    )


def round_money(value: Number) -> Decimal:
    """Round to the currency's minor unit, half up."""
    value = _decimal(value)
    return value.quantize(_QUANTUM, context=_context(value))


def percentage_component(
    start_percentage: Optional[Number],
    end_percentage: Optional[Number],
    rate: Optional[Number],
) -> Decimal:
    """
    Amount for the state-of-charge gained.

    Zero when any input is missing or the battery did not gain charge
    (end <= start); a degenerate reading is not an error.
    """
    if start_percentage is None or end_percentage is None or rate is None:
        return round_money(0)

    start = _decimal(start_percentage)
    end = _decimal(end_percentage)
    rate = _decimal(rate)
    if end <= start:
        return round_money(0)

    ctx = _context(start, end, rate)
    return round_money(ctx.multiply(ctx.subtract(end, start), rate))


def energy_component(energy_consumed: Optional[Number], rate: Optional[Number]) -> Decimal:
    """Amount for the energy delivered. Zero when either input is missing."""
    if energy_consumed is None or rate is None:
        return round_money(0)
    energy = _decimal(energy_consumed)
    rate = _decimal(rate)
    return round_money(_context(energy, rate).multiply(energy, rate))


def compute_billing(billing: BillingInput) -> BillingBreakdown:
    """
    Price a charge from its billing inputs.

    Each component is rounded to the minor unit before they are summed, so
    pricing the two components separately and adding the results always
    equals pricing them together.

    Args:
        billing: percentage and/or energy readings with their rates

    Returns:
        BillingBreakdown: per-component amounts and the total
    """
    percentage_amount = percentage_component(
        billing.start_percentage,
        billing.end_percentage,
        billing.rate_per_percentage_point,
    )
    energy_amount = energy_component(
        billing.energy_consumed, billing.rate_per_energy_unit
    )
    return BillingBreakdown(
        percentage_amount=percentage_amount,
        energy_amount=energy_amount,
        total_amount=_context(percentage_amount, energy_amount).add(
            percentage_amount, energy_amount
        ),
    )


def compute_total(billing: BillingInput) -> Decimal:
    """Shortcut for ``compute_billing(billing).total_amount``."""
    return compute_billing(billing).total_amount
