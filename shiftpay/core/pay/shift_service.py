"""Computes and stores pay for persisted shifts and pay periods."""

import datetime
import logging

from sqlalchemy.orm import Session

from shiftpay.core.constants import ZERO
from shiftpay.core.exceptions import STAGE_PAY, NotFoundError, PayrollError, PreconditionError
from shiftpay.core.logging_config import LogContext
from shiftpay.core.models import PayBreakdown, ShiftInterval
from shiftpay.core.money import round_cents
from shiftpay.core.storage import load_active_rules, load_public_holidays, load_rate_profile
from shiftpay.core.time_utils import utcnow
from shiftpay.core.types import PayPeriodTotals

from . import compute_shift_pay

logger = logging.getLogger(__name__)


def compute_and_store_shift_pay(session: Session, shift_id: int, commit: bool = True) -> PayBreakdown:
    """
    Compute a stored shift's pay and write hours, gross and penalties back.

    Raises:
        NotFoundError: unknown shift or rate profile
        PreconditionError: invalid shift times or break
    """
    from shiftpay.database.database import Shift

    with LogContext(shift_id=shift_id):
        shift = session.query(Shift).filter(Shift.id == shift_id).first()
        if shift is None:
            raise NotFoundError("shift not found", stage=STAGE_PAY, reference=shift_id)

        try:
            profile = load_rate_profile(session, shift.rate_profile_id)
        except PayrollError as e:
            raise e.with_context(stage=STAGE_PAY, reference=shift_id)

        rules = load_active_rules(session, profile.id)
        holidays = load_public_holidays(
            session,
            profile.id,
            start=shift.start_time.date(),
            end=shift.end_time.date() + datetime.timedelta(days=1),
        )

        interval = ShiftInterval(start=shift.start_time, end=shift.end_time, break_minutes=shift.break_minutes)
        breakdown = compute_shift_pay(interval, profile, rules, holidays, shift_id=shift.id)

        shift.total_hours = breakdown.total_hours
        shift.gross_pay = round_cents(breakdown.gross_pay)
        shift.applied_penalties = breakdown.applied_penalties
        shift.pay_calculated_at = utcnow()

        if commit:
            session.commit()
        else:
            session.flush()

        logger.info("Stored shift pay", extra={"extra_fields": {"shift_id": shift_id, "gross_pay": str(shift.gross_pay)}})
    return breakdown


def recalculate_pay_period_totals(session: Session, pay_period_id: int, commit: bool = True) -> PayPeriodTotals:
    """
    Sum stored shift hours and gross into the pay period.

    Taxable extras are added to the gross; non-taxable ones are kept apart
    and paid on top of the net.

    Raises:
        NotFoundError: unknown pay period
        PreconditionError: a shift in the period has no computed pay
    """
    from shiftpay.database.database import PayPeriod, PayPeriodExtra, Shift

    period = session.query(PayPeriod).filter(PayPeriod.id == pay_period_id).first()
    if period is None:
        raise NotFoundError(
            "pay period not found", stage=STAGE_PAY, reference=pay_period_id, reference_kind="pay period"
        )

    shifts = session.query(Shift).filter(Shift.pay_period_id == pay_period_id).order_by(Shift.start_time).all()

    total_hours = ZERO
    gross_pay = ZERO
    for shift in shifts:
        if shift.gross_pay is None:
            raise PreconditionError(
                f"shift {shift.id} has no computed pay",
                stage=STAGE_PAY,
                reference=pay_period_id,
                reference_kind="pay period",
            )
        total_hours += shift.total_hours or ZERO
        gross_pay += shift.gross_pay

    taxable_extras = ZERO
    non_taxable_extras = ZERO
    for extra in session.query(PayPeriodExtra).filter(PayPeriodExtra.pay_period_id == pay_period_id):
        if extra.taxable:
            taxable_extras += extra.amount
        else:
            non_taxable_extras += extra.amount
    gross_pay += taxable_extras

    period.total_hours = total_hours
    period.gross_pay = gross_pay
    period.non_taxable_extras = non_taxable_extras

    if commit:
        session.commit()
    else:
        session.flush()

    return {
        "shift_count": len(shifts),
        "total_hours": total_hours,
        "taxable_extras": taxable_extras,
        "non_taxable_extras": non_taxable_extras,
        "gross_pay": gross_pay,
    }
