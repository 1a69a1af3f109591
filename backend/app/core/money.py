"""
Monetary and percentage arithmetic.

One rounding rule for the whole engine: ROUND_HALF_UP to the configured
number of decimal places (2 by default). It is applied once, to final
monetary amounts. Intermediate ratios stay unrounded.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

from app.core.settings import settings

Number = Union[Decimal, int, str]

HUNDRED = Decimal("100")
ZERO = Decimal("0")
PERCENT_QUANTUM = Decimal("0.01")
STORED_PERCENT_QUANTUM = Decimal("0.0001")


def money_quantum() -> Decimal:
    """Smallest monetary unit, e.g. Decimal('0.01')."""
    return Decimal(1).scaleb(-settings.MONEY_DECIMAL_PLACES)


def to_decimal(value: Optional[Number]) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # float inputs go through str() so 0.1 stays 0.1
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    """Round a monetary amount half-up to the money quantum."""
    return value.quantize(money_quantum(), rounding=ROUND_HALF_UP)


def round_percent(value: Decimal, quantum: Decimal = PERCENT_QUANTUM) -> Decimal:
    """Round a percentage for display/storage (never used for decisions)."""
    return value.quantize(quantum, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percentage: Decimal) -> Decimal:
    """amount x percentage / 100, unrounded."""
    return amount * percentage / HUNDRED
