import datetime
import logging
from typing import Any
from zoneinfo import ZoneInfo

from shiftpay.core.config import TIME_END_OF_DAY_STRING
from shiftpay.core.constants import MINUTES_PER_DAY

logger = logging.getLogger(__name__)

UTC = datetime.timezone.utc


def parse_hhmm(value: Any) -> int:
    """Parse "HH:MM" (or a datetime.time) into minutes since midnight.

    "24:00" is accepted and returns 1440, the end of the day.
    Raises ValueError for anything else.
    """
    if isinstance(value, datetime.time):
        return value.hour * 60 + value.minute

    if not isinstance(value, str):
        logger.error("Unsupported time type. type=%s value=%r", type(value).__name__, value)
        raise ValueError(f"Unsupported time type: {type(value).__name__}")

    s = value.strip()
    if s == TIME_END_OF_DAY_STRING:
        return MINUTES_PER_DAY

    parts = s.split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time format: {value!r}")

    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Inverse of parse_hhmm."""
    if minutes == MINUTES_PER_DAY:
        return TIME_END_OF_DAY_STRING
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def truncate_to_minute(value: datetime.datetime) -> datetime.datetime:
    return value.replace(second=0, microsecond=0)


def to_utc(value: datetime.datetime, tz: ZoneInfo) -> datetime.datetime:
    """Naive values are wall time in tz; aware values are converted."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=tz)
    return value.astimezone(UTC)


def from_utc(instant: datetime.datetime, tz: ZoneInfo, naive: bool) -> datetime.datetime:
    """Convert back to local time, dropping tzinfo when the caller passed naive values."""
    local = instant.astimezone(tz)
    return local.replace(tzinfo=None) if naive else local


def minutes_between(start: datetime.datetime, end: datetime.datetime) -> int:
    """Whole minutes from start to end. Both must be aware."""
    return int((end - start).total_seconds() // 60)


def minute_of_day(instant: datetime.datetime, tz: ZoneInfo) -> int:
    local = instant.astimezone(tz)
    return local.hour * 60 + local.minute


def local_date(instant: datetime.datetime, tz: ZoneInfo) -> datetime.date:
    return instant.astimezone(tz).date()


def instant_at(day: datetime.date, minute: int, tz: ZoneInfo) -> datetime.datetime:
    """UTC instant of a minute-of-day on a local date. 1440 is next midnight."""
    if minute >= MINUTES_PER_DAY:
        day = day + datetime.timedelta(days=minute // MINUTES_PER_DAY)
        minute = minute % MINUTES_PER_DAY
    local = datetime.datetime.combine(day, datetime.time(minute // 60, minute % 60), tzinfo=tz)
    return local.astimezone(UTC)


def next_local_midnight(instant: datetime.datetime, tz: ZoneInfo) -> datetime.datetime:
    return instant_at(local_date(instant, tz), MINUTES_PER_DAY, tz)


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, the form stored in DateTime columns."""
    return datetime.datetime.now(UTC).replace(tzinfo=None)
