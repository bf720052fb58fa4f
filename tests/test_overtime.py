"""
Tests for overtime classification: span boundary and daily limit checks.
"""

import datetime
from decimal import Decimal

from shiftpay.core.models import DaySpan
from shiftpay.core.pay import classify_overtime, daily_threshold, outside_span_minutes
from tests.helpers import MONDAY, SATURDAY, SUNDAY, at

TUESDAY = MONDAY + datetime.timedelta(days=1)


class TestOutsideSpanMinutes:
    def test_inside_span(self, base_profile):
        tz = base_profile.tzinfo
        span = DaySpan(start="07:00", end="21:00")
        start = at(MONDAY, "09:00").replace(tzinfo=tz)
        end = at(MONDAY, "17:00").replace(tzinfo=tz)

        assert outside_span_minutes(start, end, span, tz) == 0

    def test_before_and_after(self, base_profile):
        tz = base_profile.tzinfo
        span = DaySpan(start="07:00", end="21:00")
        start = at(MONDAY, "06:00").replace(tzinfo=tz)
        end = at(MONDAY, "22:30").replace(tzinfo=tz)

        assert outside_span_minutes(start, end, span, tz) == 60 + 90

    def test_time_after_midnight_is_after_span(self, base_profile):
        tz = base_profile.tzinfo
        span = DaySpan(start="07:00", end="21:00")
        start = at(MONDAY, "20:00").replace(tzinfo=tz)
        end = at(TUESDAY, "02:00").replace(tzinfo=tz)

        assert outside_span_minutes(start, end, span, tz) == 300


class TestSpanBoundaryOvertime:
    def test_no_overtime_inside_span(self, span_overtime_profile):
        overtime = classify_overtime(Decimal(8), at(MONDAY, "09:00"), at(MONDAY, "17:00"), span_overtime_profile)

        assert overtime.tier1_hours == 0
        assert overtime.tier2_hours == 0

    def test_first_three_hours_are_tier1(self, span_overtime_profile):
        # 21:00-02:00 is five hours outside the Monday span
        overtime = classify_overtime(Decimal(6), at(MONDAY, "20:00"), at(TUESDAY, "02:00"), span_overtime_profile)

        assert overtime.tier1_hours == 3
        assert overtime.tier2_hours == 2

    def test_all_tier2_on_sunday(self, span_overtime_profile):
        overtime = classify_overtime(Decimal(4), at(SUNDAY, "07:00"), at(SUNDAY, "11:00"), span_overtime_profile)

        assert overtime.tier1_hours == 0
        assert overtime.tier2_hours == 2

    def test_saturday_span_ends_at_18(self, span_overtime_profile):
        overtime = classify_overtime(Decimal(4), at(SATURDAY, "16:00"), at(SATURDAY, "20:00"), span_overtime_profile)

        assert overtime.tier1_hours == 2
        assert overtime.tier2_hours == 0

    def test_disabled_check_adds_nothing(self, base_profile):
        overtime = classify_overtime(Decimal(6), at(MONDAY, "20:00"), at(TUESDAY, "02:00"), base_profile)

        assert overtime.total == 0


class TestDailyLimitOvertime:
    def test_hours_over_threshold_are_tier1(self, base_profile):
        profile = base_profile.model_copy(update={"overtime_on_daily_limit": True})

        overtime = classify_overtime(Decimal(10), at(TUESDAY, "07:00"), at(TUESDAY, "17:00"), profile)

        assert overtime.tier1_hours == 1
        assert overtime.tier2_hours == 0

    def test_special_day_uses_its_own_threshold(self, base_profile):
        profile = base_profile.model_copy(
            update={"overtime_on_daily_limit": True, "special_day_overtime_hours": Decimal(11)}
        )

        assert daily_threshold(0, profile) == 11
        assert daily_threshold(1, profile) == 9
        overtime = classify_overtime(Decimal(10), at(MONDAY, "07:00"), at(MONDAY, "17:00"), profile)
        assert overtime.total == 0

    def test_span_overtime_is_not_counted_twice(self, retail_profile):
        # 06:00-18:00 Tuesday: one hour before the span, twelve hours worked
        overtime = classify_overtime(Decimal(12), at(TUESDAY, "06:00"), at(TUESDAY, "18:00"), retail_profile)

        assert overtime.tier1_hours == 3
        assert overtime.tier2_hours == 0

    def test_daily_excess_is_tier2_on_sunday(self, retail_profile):
        # 09:00-19:00 Sunday: one hour after the span, ten hours worked
        overtime = classify_overtime(Decimal(10), at(SUNDAY, "09:00"), at(SUNDAY, "19:00"), retail_profile)

        assert overtime.tier1_hours == 0
        assert overtime.tier2_hours == 1

    def test_span_overtime_larger_than_daily_excess(self, retail_profile):
        overtime = classify_overtime(Decimal(10), at(TUESDAY, "12:00"), at(TUESDAY, "22:00"), retail_profile)

        # One hour outside the span, one hour over the threshold: nothing extra
        assert overtime.tier1_hours == 1
        assert overtime.tier2_hours == 0
