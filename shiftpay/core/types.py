# shiftpay/core/types.py

"""
Type aliases for domain ids and quantities.

NewType wrappers keep ids of different records from being mixed up
(a user id passed where a pay period id is expected).
"""

from decimal import Decimal
from typing import NewType, TypedDict

UserId = NewType("UserId", int)
ShiftId = NewType("ShiftId", int)
PayPeriodId = NewType("PayPeriodId", int)
RateProfileId = NewType("RateProfileId", int)
TaxYear = NewType("TaxYear", str)
RuleId = NewType("RuleId", str)

Minutes = int
Hours = Decimal
MonetaryAmount = Decimal


class CoefficientRow(TypedDict):
    """Shape of one bracket row in seed files and the fallback tables."""

    scale: str
    earnings_from: str
    earnings_to: str | None
    coefficient_a: str
    coefficient_b: str


class PayPeriodTotals(TypedDict):
    """Sums of stored shift results and extras for one pay period."""

    shift_count: int
    total_hours: Hours
    taxable_extras: MonetaryAmount
    non_taxable_extras: MonetaryAmount
    gross_pay: MonetaryAmount
