"""Decimal helpers for money. Binary floats never reach a calculation."""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Any

from shiftpay.core.constants import CENT, DOLLAR, MINUTES_PER_HOUR


def to_decimal(value: Any) -> Decimal:
    """Coerce ints, strings and floats (via str) to Decimal."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def floor_dollars(amount: Decimal) -> Decimal:
    """Withholding is truncated to whole dollars."""
    return amount.quantize(DOLLAR, rounding=ROUND_DOWN)


def minutes_to_hours(minutes: int) -> Decimal:
    return Decimal(minutes) / MINUTES_PER_HOUR
