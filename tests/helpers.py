"""Dates and builders shared by the test modules."""

import datetime

from shiftpay.core.models import DaySpan

RETAIL_SPANS = {
    0: DaySpan(start="07:00", end="21:00"),
    1: DaySpan(start="07:00", end="21:00"),
    2: DaySpan(start="07:00", end="21:00"),
    3: DaySpan(start="07:00", end="21:00"),
    4: DaySpan(start="07:00", end="21:00"),
    5: DaySpan(start="07:00", end="18:00"),
    6: DaySpan(start="09:00", end="18:00"),
}

# A week without daylight saving changes in Sydney
MONDAY = datetime.date(2024, 5, 13)
SATURDAY = datetime.date(2024, 5, 18)
SUNDAY = datetime.date(2024, 5, 19)


def at(day: datetime.date, hhmm: str) -> datetime.datetime:
    """Naive local datetime on a day, e.g. at(MONDAY, "17:00")."""
    hours, minutes = (int(part) for part in hhmm.split(":"))
    return datetime.datetime.combine(day, datetime.time(hours, minutes))
