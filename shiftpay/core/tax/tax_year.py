"""Fiscal year helpers. Tax years are written "2024-25" and start on 1 July."""

import datetime
import re

from shiftpay.core.constants import FISCAL_YEAR_START_DAY, FISCAL_YEAR_START_MONTH

_TAX_YEAR_PATTERN = re.compile(r"^(\d{4})-(\d{2}|\d{4})$")


def tax_year_for_date(day: datetime.date) -> str:
    """
    Tax year that a date belongs to.

    Dates before the start of the fiscal year belong to the previous one:
    2025-06-30 -> "2024-25", 2025-07-01 -> "2025-26".
    """
    if isinstance(day, datetime.datetime):
        day = day.date()
    start_year = day.year if (day.month, day.day) >= (FISCAL_YEAR_START_MONTH, FISCAL_YEAR_START_DAY) else day.year - 1
    return format_tax_year(start_year)


def format_tax_year(start_year: int) -> str:
    return f"{start_year}-{(start_year + 1) % 100:02d}"


def parse_tax_year(tax_year: str) -> int:
    """Start year of a tax year string. Accepts "2024-25" and "2024-2025"."""
    match = _TAX_YEAR_PATTERN.match(tax_year.strip())
    if not match:
        raise ValueError(f"Invalid tax year: {tax_year!r}")

    start_year = int(match.group(1))
    end = match.group(2)
    expected = (start_year + 1) % 100 if len(end) == 2 else start_year + 1
    if int(end) != expected:
        raise ValueError(f"Invalid tax year: {tax_year!r}")
    return start_year


def normalize_tax_year(tax_year: str) -> str:
    """Canonical "YYYY-YY" form."""
    return format_tax_year(parse_tax_year(tax_year))


def tax_year_bounds(tax_year: str) -> tuple[datetime.date, datetime.date]:
    """First and last day of a tax year, both inclusive."""
    start_year = parse_tax_year(tax_year)
    start = datetime.date(start_year, FISCAL_YEAR_START_MONTH, FISCAL_YEAR_START_DAY)
    end = datetime.date(start_year + 1, FISCAL_YEAR_START_MONTH, FISCAL_YEAR_START_DAY) - datetime.timedelta(days=1)
    return start, end
