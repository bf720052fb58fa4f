"""Prices segments and overtime into a PayBreakdown."""

from collections.abc import Sequence

from shiftpay.core.constants import ZERO
from shiftpay.core.models import OvertimeHours, PayBreakdown, PenaltyEntry, PenaltyRule, RateProfile, TimeSegment
from shiftpay.core.money import minutes_to_hours
from shiftpay.core.time_utils import local_date, minute_of_day, minutes_between, to_utc


def compose(
    segments: Sequence[TimeSegment],
    overtime: OvertimeHours,
    rate_profile: RateProfile,
) -> PayBreakdown:
    """
    Combine segmentation and overtime results into a priced breakdown.

    Overtime minutes are paid at the overtime rates only. They are placed
    in the segments they fall in (see overtime_minutes_by_segment) and
    leave the regular or penalty minutes of those segments. Every rule that
    matched a segment is paid for the remaining minutes it matched,
    independently of other rules matching the same minutes.

    Casual loading applies to the sum of all other components, or to the
    regular amount alone when the profile's penalty and overtime
    multipliers already include it.
    """
    base_rate = rate_profile.base_rate
    overtime_minutes = overtime_minutes_by_segment(segments, overtime, rate_profile)
    paid_minutes = [seg.duration_minutes - taken for seg, taken in zip(segments, overtime_minutes)]

    total_minutes = sum(seg.duration_minutes for seg in segments)
    regular_minutes = sum(paid for seg, paid in zip(segments, paid_minutes) if seg.is_regular)

    regular_hours = minutes_to_hours(regular_minutes)
    regular_amount = regular_hours * base_rate

    tier1_rate = base_rate * rate_profile.overtime_tier1_multiplier
    tier2_rate = base_rate * rate_profile.overtime_tier2_multiplier
    tier1_amount = overtime.tier1_hours * tier1_rate
    tier2_amount = overtime.tier2_hours * tier2_rate

    penalties = _penalty_entries(segments, paid_minutes, rate_profile)
    penalty_total = sum((entry.amount for entry in penalties), ZERO)

    subtotal = regular_amount + tier1_amount + tier2_amount + penalty_total
    casual_rate = rate_profile.casual_loading
    loaded = regular_amount if rate_profile.casual_loading_ordinary_only else subtotal
    casual_amount = loaded * casual_rate if casual_rate > 0 else ZERO

    matched_names = {rule.name for seg in segments for rule in seg.rules}

    return PayBreakdown(
        total_hours=minutes_to_hours(total_minutes),
        regular_hours=regular_hours,
        regular_rate=base_rate,
        regular_amount=regular_amount,
        overtime_tier1_hours=overtime.tier1_hours,
        overtime_tier1_rate=tier1_rate,
        overtime_tier1_amount=tier1_amount,
        overtime_tier2_hours=overtime.tier2_hours,
        overtime_tier2_rate=tier2_rate,
        overtime_tier2_amount=tier2_amount,
        penalties=penalties,
        casual_loading_rate=casual_rate,
        casual_loading_amount=casual_amount,
        gross_pay=subtotal + casual_amount,
        applied_penalties=sorted(matched_names),
    )


def overtime_minutes_by_segment(
    segments: Sequence[TimeSegment],
    overtime: OvertimeHours,
    rate_profile: RateProfile,
) -> list[int]:
    """
    Minutes of each segment that are paid as overtime.

    With span-boundary overtime on, the minutes outside the ordinary span of
    the shift's first day are taken first, where they happen. Whatever
    overtime is left (the daily-limit excess) comes off the end of the
    shift. A segment never gives more minutes than it has; overtime beyond
    the worked minutes is not placed.
    """
    taken = [0] * len(segments)
    remaining = int((overtime.total * 60).to_integral_value())
    if not segments or remaining <= 0:
        return taken

    if rate_profile.overtime_on_span_boundary:
        for index, outside in enumerate(_outside_span_by_segment(segments, rate_profile)):
            share = min(outside, remaining)
            taken[index] += share
            remaining -= share

    for index in reversed(range(len(segments))):
        if remaining <= 0:
            break
        share = min(segments[index].duration_minutes - taken[index], remaining)
        taken[index] += share
        remaining -= share

    return taken


def _outside_span_by_segment(segments: Sequence[TimeSegment], rate_profile: RateProfile) -> list[int]:
    # Clock of the first day; time past its midnight is after the span
    tz = rate_profile.tzinfo
    first = to_utc(segments[0].start, tz)
    span = rate_profile.span_for(local_date(first, tz).weekday())
    origin = minute_of_day(first, tz)

    result = []
    for seg in segments:
        begin = origin + minutes_between(first, to_utc(seg.start, tz))
        end = begin + seg.duration_minutes
        before = max(0, min(end, span.start_minute) - begin)
        after = max(0, end - max(begin, span.end_minute))
        result.append(min(before + after, seg.duration_minutes))
    return result


def _penalty_entries(
    segments: Sequence[TimeSegment],
    paid_minutes: Sequence[int],
    rate_profile: RateProfile,
) -> list[PenaltyEntry]:
    # Keyed by rule id, in the order rules are first seen
    minutes_by_rule: dict[str, int] = {}
    rules_by_id: dict[str, PenaltyRule] = {}
    for seg, paid in zip(segments, paid_minutes):
        for rule in seg.rules:
            rules_by_id.setdefault(rule.id, rule)
            minutes_by_rule[rule.id] = minutes_by_rule.get(rule.id, 0) + paid

    entries = []
    for rule_id, minutes in minutes_by_rule.items():
        if minutes <= 0:
            continue
        rule = rules_by_id[rule_id]
        hours = minutes_to_hours(minutes)
        rate = rate_profile.base_rate * rule.multiplier
        entries.append(
            PenaltyEntry(rule_id=rule_id, name=rule.name, hours=hours, rate=rate, amount=hours * rate)
        )
    return entries
