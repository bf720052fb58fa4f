"""Splits a shift into segments with a constant set of penalty rules."""

import datetime
from collections.abc import Iterable
from zoneinfo import ZoneInfo

from shiftpay.core.constants import (
    MINUTES_PER_DAY,
    PUBLIC_HOLIDAY_MULTIPLIER,
    PUBLIC_HOLIDAY_PRIORITY,
    PUBLIC_HOLIDAY_RULE_ID,
    PUBLIC_HOLIDAY_RULE_NAME,
)
from shiftpay.core.models import PenaltyRule, PublicHoliday, RateProfile, ShiftInterval, TimeSegment
from shiftpay.core.time_utils import (
    from_utc,
    instant_at,
    local_date,
    minute_of_day,
    minutes_between,
    next_local_midnight,
    to_utc,
)

PUBLIC_HOLIDAY_RULE = PenaltyRule(
    id=PUBLIC_HOLIDAY_RULE_ID,
    name=PUBLIC_HOLIDAY_RULE_NAME,
    start_time="00:00",
    end_time="24:00",
    multiplier=PUBLIC_HOLIDAY_MULTIPLIER,
    priority=PUBLIC_HOLIDAY_PRIORITY,
)

Window = tuple[int, int]


def segment(
    shift: ShiftInterval,
    rate_profile: RateProfile,
    active_rules: Iterable[PenaltyRule],
    public_holidays: Iterable[PublicHoliday],
) -> list[TimeSegment]:
    """
    Split the working part of a shift into contiguous segments.

    A segment ends at the first of: local midnight, the end of the working
    interval (shift end minus the trailing break), or any start/end of a rule
    that applies on the current local day. Each segment carries every rule
    whose window overlaps it.

    Args:
        shift: The shift. Naive datetimes are wall time in the profile timezone.
        rate_profile: Supplies the timezone for local dates and times.
        active_rules: Penalty rules. Inactive ones are ignored.
        public_holidays: Days where only the public holiday rule applies.

    Returns:
        Segments in time order. Empty when the working interval is empty.
    """
    tz = rate_profile.tzinfo
    naive = shift.start.tzinfo is None
    rules = [rule for rule in active_rules if rule.is_active]
    holiday_dates = {holiday.date for holiday in public_holidays}

    start = to_utc(shift.start, tz)
    working_end = to_utc(shift.end, tz) - datetime.timedelta(minutes=shift.break_minutes)

    segments: list[TimeSegment] = []
    current = start
    while current < working_end:
        boundary = _next_boundary(current, working_end, rules, tz)
        minutes = minutes_between(current, boundary)
        if minutes > 0:
            applicable = _applicable_rules(current, minutes, rules, holiday_dates, tz)
            segments.append(
                TimeSegment(
                    start=from_utc(current, tz, naive),
                    end=from_utc(boundary, tz, naive),
                    duration_minutes=minutes,
                    rules=tuple(applicable),
                    is_regular=not applicable,
                )
            )
        current = boundary

    return segments


def get_applicable_rules(
    segment_start: datetime.datetime,
    segment_end: datetime.datetime,
    active_rules: Iterable[PenaltyRule],
    public_holidays: Iterable[PublicHoliday],
    tz: ZoneInfo,
) -> list[PenaltyRule]:
    """
    Rules that apply to [segment_start, segment_end).

    On a public holiday (by local date of segment_start) only the public
    holiday rule is returned. Otherwise every active rule for the weekday
    whose window overlaps the segment is returned, in input order. Priority
    does not exclude anything; overlapping rules all apply.
    """
    start = to_utc(segment_start, tz)
    minutes = minutes_between(start, to_utc(segment_end, tz))
    if minutes <= 0:
        return []
    rules = [rule for rule in active_rules if rule.is_active]
    holiday_dates = {holiday.date for holiday in public_holidays}
    return _applicable_rules(start, minutes, rules, holiday_dates, tz)


def windows_overlap(segment_start_minute: int, duration: int, rule: PenaltyRule) -> bool:
    """Time-of-day overlap between a segment and a rule window, both possibly past midnight."""
    for seg_from, seg_to in _segment_windows(segment_start_minute, duration):
        for rule_from, rule_to in _rule_windows(rule):
            if seg_from < rule_to and rule_from < seg_to:
                return True
    return False


# === Private helpers ===


def _applicable_rules(
    start: datetime.datetime,
    minutes: int,
    rules: list[PenaltyRule],
    holiday_dates: set[datetime.date],
    tz: ZoneInfo,
) -> list[PenaltyRule]:
    day = local_date(start, tz)
    if day in holiday_dates:
        return [PUBLIC_HOLIDAY_RULE]

    weekday = day.weekday()
    start_minute = minute_of_day(start, tz)
    return [
        rule
        for rule in rules
        if rule.matches_weekday(weekday) and windows_overlap(start_minute, minutes, rule)
    ]


def _next_boundary(
    current: datetime.datetime,
    working_end: datetime.datetime,
    rules: list[PenaltyRule],
    tz: ZoneInfo,
) -> datetime.datetime:
    day = local_date(current, tz)
    weekday = day.weekday()

    candidates = [next_local_midnight(current, tz), working_end]
    for rule in rules:
        if not rule.matches_weekday(weekday):
            continue
        candidates.append(instant_at(day, rule.start_minute, tz))
        candidates.append(instant_at(day, rule.end_minute, tz))
        if rule.crosses_midnight:
            candidates.append(instant_at(day + datetime.timedelta(days=1), rule.end_minute, tz))

    return min(candidate for candidate in candidates if candidate > current)


def _segment_windows(start_minute: int, duration: int) -> list[Window]:
    end_minute = start_minute + duration
    if end_minute <= MINUTES_PER_DAY:
        return [(start_minute, end_minute)]
    # Segment runs past midnight
    return [(start_minute, MINUTES_PER_DAY), (0, min(end_minute - MINUTES_PER_DAY, MINUTES_PER_DAY))]


def _rule_windows(rule: PenaltyRule) -> list[Window]:
    if rule.crosses_midnight:
        return [(rule.start_minute, MINUTES_PER_DAY), (0, rule.end_minute)]
    return [(rule.start_minute, rule.end_minute)]
