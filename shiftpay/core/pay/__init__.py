"""
Pay computation - turns a shift into a priced breakdown.

compute_shift_pay is the entry point; the stages are exported for callers
that need segments or overtime on their own.
"""

import datetime
import logging
from collections.abc import Iterable

from shiftpay.core.exceptions import STAGE_PAY, PreconditionError
from shiftpay.core.models import PayBreakdown, PenaltyRule, PublicHoliday, RateProfile, ShiftInterval
from shiftpay.core.money import minutes_to_hours
from shiftpay.core.time_utils import minutes_between, to_utc

from .composer import compose
from .overtime import classify_overtime, daily_threshold, outside_span_minutes
from .segmentation import PUBLIC_HOLIDAY_RULE, get_applicable_rules, segment, windows_overlap

logger = logging.getLogger(__name__)


def compute_shift_pay(
    shift: ShiftInterval,
    rate_profile: RateProfile,
    active_rules: Iterable[PenaltyRule],
    public_holidays: Iterable[PublicHoliday],
    shift_id: int | None = None,
) -> PayBreakdown:
    """
    Compute the pay breakdown of one shift.

    Raises:
        PreconditionError: the shift does not end after it starts, or the
            break is longer than the shift.
    """
    tz = rate_profile.tzinfo
    start = to_utc(shift.start, tz)
    end = to_utc(shift.end, tz)
    duration = minutes_between(start, end)

    if duration <= 0:
        raise PreconditionError(
            f"shift must end after it starts ({shift.start.isoformat()} - {shift.end.isoformat()})",
            stage=STAGE_PAY,
            reference=shift_id,
        )
    if shift.break_minutes > duration:
        raise PreconditionError(
            f"break of {shift.break_minutes} minutes is longer than the {duration} minute shift",
            stage=STAGE_PAY,
            reference=shift_id,
        )

    rules = [rule for rule in active_rules if rule.is_active]
    segments = segment(shift, rate_profile, rules, public_holidays)

    worked_hours = minutes_to_hours(sum(seg.duration_minutes for seg in segments))
    working_end = end - datetime.timedelta(minutes=shift.break_minutes)
    overtime = classify_overtime(worked_hours, start, working_end, rate_profile)

    breakdown = compose(segments, overtime, rate_profile)
    logger.debug(
        "Computed shift pay",
        extra={
            "extra_fields": {
                "shift_id": shift_id,
                "segments": len(segments),
                "gross_pay": str(breakdown.gross_pay),
                "penalties": breakdown.applied_penalties,
            }
        },
    )
    return breakdown


__all__ = [
    "PUBLIC_HOLIDAY_RULE",
    "classify_overtime",
    "compose",
    "compute_shift_pay",
    "daily_threshold",
    "get_applicable_rules",
    "outside_span_minutes",
    "segment",
    "windows_overlap",
]
