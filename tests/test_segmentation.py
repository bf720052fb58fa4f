"""
Tests for splitting shifts into penalty segments.

Covers rule windows crossing midnight in all four combinations with shifts
crossing midnight, public holidays and the validation of shift intervals.
"""

import datetime
from decimal import Decimal

import pytest

from shiftpay.core.exceptions import PreconditionError
from shiftpay.core.models import PenaltyRule, PublicHoliday, ShiftInterval
from shiftpay.core.pay import PUBLIC_HOLIDAY_RULE, compute_shift_pay, get_applicable_rules, segment, windows_overlap
from tests.helpers import MONDAY, SATURDAY, at

CHRISTMAS = datetime.date(2024, 12, 25)


def rule_ids(seg):
    return [rule.id for rule in seg.rules]


def assert_partition(segments, shift):
    """Segments are contiguous and cover the working part of the shift."""
    for current, following in zip(segments, segments[1:]):
        assert current.end == following.start
    assert segments[0].start == shift.start
    assert segments[-1].end == shift.end - datetime.timedelta(minutes=shift.break_minutes)


class TestSegmentBoundaries:
    """Segments split at rule boundaries and midnight."""

    def test_shift_without_rules_is_one_regular_segment(self, base_profile):
        shift = ShiftInterval(start=at(MONDAY, "09:00"), end=at(MONDAY, "17:00"))

        segments = segment(shift, base_profile, [], [])

        assert len(segments) == 1
        assert segments[0].duration_minutes == 480
        assert segments[0].is_regular
        assert segments[0].rules == ()

    def test_split_at_rule_start(self, base_profile, penalty_rules):
        shift = ShiftInterval(start=at(MONDAY, "17:00"), end=at(MONDAY, "22:00"))

        segments = segment(shift, base_profile, [penalty_rules["evening"]], [])

        assert [s.duration_minutes for s in segments] == [60, 240]
        assert segments[0].is_regular
        assert rule_ids(segments[1]) == ["evening"]
        assert_partition(segments, shift)

    def test_trailing_break_is_removed_from_the_end(self, base_profile, penalty_rules):
        shift = ShiftInterval(start=at(MONDAY, "17:00"), end=at(MONDAY, "22:00"), break_minutes=30)

        segments = segment(shift, base_profile, [penalty_rules["evening"]], [])

        assert sum(s.duration_minutes for s in segments) == 270
        assert segments[-1].end == at(MONDAY, "21:30")

    def test_inactive_rules_are_ignored(self, base_profile, penalty_rules):
        inactive = penalty_rules["evening"].model_copy(update={"is_active": False})
        shift = ShiftInterval(start=at(MONDAY, "17:00"), end=at(MONDAY, "22:00"))

        segments = segment(shift, base_profile, [inactive], [])

        assert len(segments) == 1
        assert segments[0].is_regular

    def test_weekday_rule_only_on_its_day(self, base_profile, penalty_rules):
        # Friday 20:00 to Saturday 04:00
        friday = SATURDAY - datetime.timedelta(days=1)
        shift = ShiftInterval(start=at(friday, "20:00"), end=at(SATURDAY, "04:00"))

        segments = segment(shift, base_profile, [penalty_rules["saturday"]], [])

        assert [s.duration_minutes for s in segments] == [240, 240]
        assert segments[0].is_regular
        assert rule_ids(segments[1]) == ["saturday"]

    def test_overlapping_rules_all_apply(self, base_profile, penalty_rules):
        shift = ShiftInterval(start=at(SATURDAY, "17:00"), end=at(SATURDAY, "20:00"))

        segments = segment(shift, base_profile, [penalty_rules["saturday"], penalty_rules["evening"]], [])

        assert [s.duration_minutes for s in segments] == [60, 120]
        assert rule_ids(segments[0]) == ["saturday"]
        assert rule_ids(segments[1]) == ["saturday", "evening"]

    def test_aware_datetimes_keep_their_form(self, base_profile):
        tz = base_profile.tzinfo
        shift = ShiftInterval(
            start=at(MONDAY, "09:00").replace(tzinfo=tz),
            end=at(MONDAY, "12:00").replace(tzinfo=tz),
        )

        segments = segment(shift, base_profile, [], [])

        assert segments[0].start.tzinfo is not None
        assert segments[0].duration_minutes == 180


class TestMidnightCrossing:
    """The four combinations of rule and shift crossing midnight."""

    def test_neither_crosses(self, base_profile):
        rule = PenaltyRule(id="late", name="Late", start_time="19:00", end_time="23:00", multiplier=Decimal("1.2"))
        shift = ShiftInterval(start=at(MONDAY, "18:00"), end=at(MONDAY, "20:00"))

        segments = segment(shift, base_profile, [rule], [])

        assert [(s.duration_minutes, rule_ids(s)) for s in segments] == [(60, []), (60, ["late"])]

    def test_rule_crosses_shift_does_not(self, base_profile, penalty_rules):
        shift = ShiftInterval(start=at(MONDAY, "02:00"), end=at(MONDAY, "08:00"))

        segments = segment(shift, base_profile, [penalty_rules["night"]], [])

        assert [(s.duration_minutes, rule_ids(s)) for s in segments] == [(240, ["night"]), (120, [])]

    def test_shift_crosses_rule_does_not(self, base_profile, penalty_rules):
        shift = ShiftInterval(start=at(MONDAY, "22:00"), end=at(MONDAY + datetime.timedelta(days=1), "02:00"))

        segments = segment(shift, base_profile, [penalty_rules["evening"]], [])

        # 22:00-23:59 evening, 23:59-00:00 plain, then the next day is plain
        assert [(s.duration_minutes, rule_ids(s)) for s in segments] == [(119, ["evening"]), (1, []), (120, [])]
        assert_partition(segments, shift)

    def test_both_cross(self, base_profile, penalty_rules):
        tuesday = MONDAY + datetime.timedelta(days=1)
        shift = ShiftInterval(start=at(MONDAY, "20:00"), end=at(tuesday, "07:00"))

        segments = segment(shift, base_profile, [penalty_rules["night"]], [])

        assert [(s.duration_minutes, rule_ids(s)) for s in segments] == [
            (120, []),
            (120, ["night"]),
            (360, ["night"]),
            (60, []),
        ]
        assert sum(s.duration_minutes for s in segments) == 660
        assert_partition(segments, shift)


class TestWindowsOverlap:
    def test_segment_before_window(self, penalty_rules):
        assert not windows_overlap(15 * 60, 90, penalty_rules["evening"])

    def test_segment_touching_window_start_does_not_overlap(self, penalty_rules):
        assert not windows_overlap(17 * 60, 60, penalty_rules["evening"])
        assert windows_overlap(17 * 60, 61, penalty_rules["evening"])

    def test_wrapping_rule_matches_early_morning(self, penalty_rules):
        assert windows_overlap(3 * 60, 30, penalty_rules["night"])
        assert windows_overlap(23 * 60, 30, penalty_rules["night"])
        assert not windows_overlap(12 * 60, 60, penalty_rules["night"])

    def test_segment_past_midnight_matches_morning_rule(self):
        early = PenaltyRule(id="early", name="Early", start_time="00:00", end_time="06:00", multiplier=Decimal("1.1"))
        assert windows_overlap(23 * 60, 120, early)


class TestPublicHolidays:
    def test_only_public_holiday_rule_applies(self, base_profile, penalty_rules):
        holiday = PublicHoliday(date=CHRISTMAS, name="Christmas Day")
        shift = ShiftInterval(start=at(CHRISTMAS, "08:00"), end=at(CHRISTMAS, "20:00"))

        segments = segment(shift, base_profile, list(penalty_rules.values()), [holiday])

        assert all(s.rules == (PUBLIC_HOLIDAY_RULE,) for s in segments)
        assert sum(s.duration_minutes for s in segments) == 720

    def test_holiday_shift_has_single_applied_penalty(self, base_profile, penalty_rules):
        holiday = PublicHoliday(date=CHRISTMAS, name="Christmas Day")
        shift = ShiftInterval(start=at(CHRISTMAS, "08:00"), end=at(CHRISTMAS, "16:00"))

        breakdown = compute_shift_pay(shift, base_profile, list(penalty_rules.values()), [holiday])

        assert breakdown.applied_penalties == ["Public Holiday Penalty"]
        assert breakdown.gross_pay == Decimal("531.00")

    def test_holiday_ends_at_local_midnight(self, base_profile):
        holiday = PublicHoliday(date=CHRISTMAS, name="Christmas Day")
        shift = ShiftInterval(start=at(CHRISTMAS, "22:00"), end=at(CHRISTMAS + datetime.timedelta(days=1), "02:00"))

        segments = segment(shift, base_profile, [], [holiday])

        assert [(s.duration_minutes, s.is_regular) for s in segments] == [(120, False), (120, True)]

    def test_get_applicable_rules_for_a_segment(self, base_profile, penalty_rules):
        rules = get_applicable_rules(
            at(SATURDAY, "19:00"),
            at(SATURDAY, "20:00"),
            list(penalty_rules.values()),
            [],
            base_profile.tzinfo,
        )

        assert [rule.id for rule in rules] == ["saturday", "evening"]


class TestShiftValidation:
    def test_zero_length_shift_is_rejected(self, base_profile):
        shift = ShiftInterval(start=at(MONDAY, "09:00"), end=at(MONDAY, "09:00"))

        with pytest.raises(PreconditionError) as exc_info:
            compute_shift_pay(shift, base_profile, [], [], shift_id=42)

        assert exc_info.value.stage == "pay"
        assert exc_info.value.reference == 42
        assert str(exc_info.value).startswith("[pay] shift 42:")

    def test_end_before_start_is_rejected(self, base_profile):
        shift = ShiftInterval(start=at(MONDAY, "17:00"), end=at(MONDAY, "09:00"))

        with pytest.raises(PreconditionError):
            compute_shift_pay(shift, base_profile, [], [])

    def test_break_longer_than_shift_is_rejected(self, base_profile):
        shift = ShiftInterval(start=at(MONDAY, "09:00"), end=at(MONDAY, "10:00"), break_minutes=61)

        with pytest.raises(PreconditionError):
            compute_shift_pay(shift, base_profile, [], [])

    def test_break_equal_to_shift_pays_nothing(self, base_profile):
        shift = ShiftInterval(start=at(MONDAY, "09:00"), end=at(MONDAY, "10:00"), break_minutes=60)

        breakdown = compute_shift_pay(shift, base_profile, [], [])

        assert breakdown.total_hours == 0
        assert breakdown.gross_pay == 0

    def test_seconds_are_truncated(self, base_profile):
        shift = ShiftInterval(
            start=at(MONDAY, "09:00").replace(second=59),
            end=at(MONDAY, "10:00").replace(second=30),
        )

        assert compute_shift_pay(shift, base_profile, [], []).total_hours == 1

    def test_daylight_saving_end_counts_real_minutes(self, base_profile):
        # Sydney clocks go back from 03:00 to 02:00 on 7 April 2024
        shift = ShiftInterval(
            start=datetime.datetime(2024, 4, 6, 22, 0),
            end=datetime.datetime(2024, 4, 7, 6, 0),
        )

        breakdown = compute_shift_pay(shift, base_profile, [], [])

        assert breakdown.total_hours == 9
