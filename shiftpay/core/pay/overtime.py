"""Overtime classification."""

import datetime
from decimal import Decimal
from zoneinfo import ZoneInfo

from shiftpay.core.constants import OVERTIME_TIER1_LIMIT_HOURS, ZERO
from shiftpay.core.models import DaySpan, OvertimeHours, RateProfile
from shiftpay.core.money import minutes_to_hours
from shiftpay.core.time_utils import local_date, minute_of_day, minutes_between, to_utc


def classify_overtime(
    total_worked_hours: Decimal,
    shift_start: datetime.datetime,
    shift_end: datetime.datetime,
    rate_profile: RateProfile,
) -> OvertimeHours:
    """
    Work out how many hours of a shift are overtime, per tier.

    Two checks, each enabled by a flag on the profile, add up:

    1. Span boundary: time outside the weekday's ordinary span. On the
       all-day tier-2 weekday it is all tier 2; otherwise the first three
       hours are tier 1 and the rest tier 2.
    2. Daily limit: hours worked beyond the day's threshold that the span
       check has not already counted go to tier 1 (tier 2 on the all-day
       tier-2 weekday).

    Args:
        total_worked_hours: Worked hours of the shift (break excluded).
        shift_start: Start of the shift.
        shift_end: End of the worked part of the shift.
        rate_profile: Spans, thresholds, flags and timezone.

    Returns:
        OvertimeHours with both tiers >= 0.
    """
    tz = rate_profile.tzinfo
    start = to_utc(shift_start, tz)
    end = to_utc(shift_end, tz)
    weekday = local_date(start, tz).weekday()
    all_day_tier2 = rate_profile.all_day_tier2_weekday == weekday

    tier1 = ZERO
    tier2 = ZERO

    if rate_profile.overtime_on_span_boundary:
        outside = minutes_to_hours(outside_span_minutes(start, end, rate_profile.span_for(weekday), tz))
        if outside > 0:
            if all_day_tier2:
                tier2 += outside
            else:
                first = min(outside, OVERTIME_TIER1_LIMIT_HOURS)
                tier1 += first
                tier2 += outside - first

    if rate_profile.overtime_on_daily_limit:
        threshold = daily_threshold(weekday, rate_profile)
        if total_worked_hours > threshold:
            additional = (total_worked_hours - threshold) - (tier1 + tier2)
            if additional > 0:
                if all_day_tier2:
                    tier2 += additional
                else:
                    tier1 += additional

    return OvertimeHours(tier1_hours=tier1, tier2_hours=tier2)


def daily_threshold(weekday: int, rate_profile: RateProfile) -> Decimal:
    """Daily overtime threshold, using the special one on its weekday when configured."""
    if weekday == rate_profile.special_day_weekday and rate_profile.special_day_overtime_hours is not None:
        return rate_profile.special_day_overtime_hours
    return rate_profile.daily_overtime_hours


def outside_span_minutes(
    start: datetime.datetime,
    end: datetime.datetime,
    span: DaySpan,
    tz: ZoneInfo,
) -> int:
    """Minutes of [start, end) before the span starts or after it ends.

    Times are taken on the start day's clock; anything past that day's
    midnight is after the span.
    """
    duration = minutes_between(start, end)
    if duration <= 0:
        return 0

    start_minute = minute_of_day(start, tz)
    end_minute = start_minute + duration

    before = max(0, min(end_minute, span.start_minute) - start_minute)
    after = max(0, end_minute - max(start_minute, span.end_minute))
    return before + after
