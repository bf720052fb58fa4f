# shiftpay/core/constants.py
from decimal import Decimal
from typing import Final

# ==========================
# Time
# ==========================

#: Minutes in a calendar day, used for time-of-day interval arithmetic.
MINUTES_PER_DAY: Final[int] = 24 * 60

#: Minutes per hour as a Decimal so hour conversions never touch floats.
MINUTES_PER_HOUR: Final[Decimal] = Decimal(60)

#: Python weekday numbers (date.weekday()).
MONDAY: Final[int] = 0
SATURDAY: Final[int] = 5
SUNDAY: Final[int] = 6

WEEKDAYS: Final[tuple[int, ...]] = tuple(range(7))


# ==========================
# Penalties
# ==========================

#: Id of the rule generated for days that match a public holiday.
PUBLIC_HOLIDAY_RULE_ID: Final[str] = "public-holiday"

#: Name of the generated public holiday rule.
PUBLIC_HOLIDAY_RULE_NAME: Final[str] = "Public Holiday Penalty"

#: Multiplier of the public holiday rule. Fixed, not configurable per profile.
PUBLIC_HOLIDAY_MULTIPLIER: Final[Decimal] = Decimal("2.5")

#: Priority of the public holiday rule. Higher than any stored rule.
PUBLIC_HOLIDAY_PRIORITY: Final[int] = 10


# ==========================
# Overtime
# ==========================

#: Outside-span hours paid at tier 1 before the excess moves to tier 2.
OVERTIME_TIER1_LIMIT_HOURS: Final[Decimal] = Decimal(3)

#: Default weekday where all overtime is tier 2.
DEFAULT_ALL_DAY_TIER2_WEEKDAY: Final[int] = SUNDAY

#: Default weekday that uses the larger daily overtime threshold.
DEFAULT_SPECIAL_DAY_WEEKDAY: Final[int] = MONDAY

#: Ordinary spans used when a profile does not configure a weekday.
DEFAULT_ORDINARY_SPANS: Final[dict[int, tuple[str, str]]] = {
    0: ("07:00", "21:00"),
    1: ("07:00", "21:00"),
    2: ("07:00", "21:00"),
    3: ("07:00", "21:00"),
    4: ("07:00", "21:00"),
    5: ("07:00", "18:00"),
    6: ("09:00", "18:00"),
}


# ==========================
# Money
# ==========================

#: Quantum for cent rounding.
CENT: Final[Decimal] = Decimal("0.01")

#: Quantum for whole dollar rounding of withholding.
DOLLAR: Final[Decimal] = Decimal("1")

ZERO: Final[Decimal] = Decimal("0")


# ==========================
# Tax
# ==========================

#: First month and day of the fiscal year (1 July).
FISCAL_YEAR_START_MONTH: Final[int] = 7
FISCAL_YEAR_START_DAY: Final[int] = 1

#: Tax year whose built-in tables are used when the store has none.
FALLBACK_TAX_YEAR: Final[str] = "2024-25"

#: Medicare levy rates keyed by exemption.
MEDICARE_LEVY_RATES: Final[dict[str, Decimal]] = {
    "none": Decimal("0.02"),
    "half": Decimal("0.01"),
    "full": Decimal("0"),
}

#: Cents added to the truncated weekly income for STSL lookups.
STSL_WEEKLY_CENTS: Final[Decimal] = Decimal("0.99")

#: Seconds coefficient tables stay cached.
COEFFICIENT_CACHE_TTL_SECONDS: Final[int] = 60 * 60

#: Attempts for a ledger update before giving up with a conflict.
LEDGER_MAX_RETRIES: Final[int] = 3
