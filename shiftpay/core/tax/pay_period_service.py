"""
Tax stage for stored pay periods.

calculate_and_persist_tax writes the withholding onto the pay period and
updates the year-to-date ledger in the same transaction. Any failure rolls
the whole transaction back, so a pay period never shows results that the
ledger does not contain. sync_shift_pay keeps a period in step with its
shifts after one of them is repriced.
"""

import datetime
import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from shiftpay.core.constants import ZERO
from shiftpay.core.exceptions import STAGE_TAX, NotFoundError, PreconditionError
from shiftpay.core.logging_config import LogContext
from shiftpay.core.models import PayBreakdown, PayPeriodType, TaxBreakdown, TaxSettings
from shiftpay.core.pay.shift_service import compute_and_store_shift_pay, recalculate_pay_period_totals
from shiftpay.core.tax.engine import TaxWithholdingEngine
from shiftpay.core.tax.ledger import SqlYearToDateLedger
from shiftpay.core.tax.tax_year import tax_year_for_date
from shiftpay.core.time_utils import utcnow

logger = logging.getLogger(__name__)


def tax_settings_from_record(record) -> TaxSettings:
    return TaxSettings(
        claimed_tax_free_threshold=record.claimed_tax_free_threshold,
        is_foreign_resident=record.is_foreign_resident,
        has_tax_file_number=record.has_tax_file_number,
        medicare_exemption=record.medicare_exemption,
        has_supplementary_debt=record.has_supplementary_debt,
    )


def get_or_create_tax_settings(session: Session, user_id: int):
    """
    The user's TaxSettingsRecord, created with defaults on first use.

    Defaults: threshold claimed, resident, TFN provided, no medicare
    exemption, no supplementary debt.
    """
    from shiftpay.database.database import TaxSettingsRecord, User

    record = session.query(TaxSettingsRecord).filter(TaxSettingsRecord.user_id == user_id).first()
    if record is not None:
        return record

    if session.query(User).filter(User.id == user_id).first() is None:
        raise NotFoundError(f"user {user_id} not found", stage=STAGE_TAX)

    defaults = TaxSettings()
    record = TaxSettingsRecord(user_id=user_id, **defaults.model_dump())
    session.add(record)
    session.flush()
    logger.info("Created default tax settings", extra={"extra_fields": {"user_id": user_id}})
    return record


def calculate_and_persist_tax(session: Session, engine: TaxWithholdingEngine, pay_period_id: int) -> TaxBreakdown:
    """
    Calculate tax for a stored pay period, record it and update the ledger.

    Raises:
        NotFoundError: unknown pay period or user
        PreconditionError: the pay period has no computed gross pay
        ConcurrencyConflictError: the ledger stayed contended after retries
    """
    from shiftpay.database.database import PayPeriod

    with LogContext(pay_period_id=pay_period_id):
        try:
            period = session.query(PayPeriod).filter(PayPeriod.id == pay_period_id).first()
            if period.tax_calculated_at is not None:
                retax_period_id = pay_period_id
            if period is None:
                raise NotFoundError("pay period not found", stage=STAGE_TAX, reference=pay_period_id)
            if period.gross_pay is None:
                raise PreconditionError(
                    "no computed gross pay; calculate pay first", stage=STAGE_TAX, reference=pay_period_id
                )

            settings = tax_settings_from_record(get_or_create_tax_settings(session, period.user_id))
            breakdown = engine.calculate_and_record(
                SqlYearToDateLedger(session),
                user_id=period.user_id,
                pay_period_id=period.id,
                gross_pay=period.gross_pay,
                tax_settings=settings,
                period_type=period.period_type,
                anchor_date=period.start_date,
                extra_withholding=period.extra_withholding or ZERO,
            )

            period.income_tax = breakdown.income_tax
            period.medicare_levy = breakdown.medicare_levy
            period.supplementary_withholding = breakdown.supplementary_withholding
            period.total_withholding = breakdown.total_withholding
            period.net_pay = breakdown.net_pay + (period.non_taxable_extras or ZERO)
            period.tax_year = breakdown.tax_year
            period.used_fallback_tables = breakdown.used_fallback
            period.tax_calculated_at = utcnow()
            session.commit()
        except Exception:
            session.rollback()
            raise

        logger.info(
            "Persisted pay period tax",
            extra={
                "extra_fields": {
                    "net_pay": str(breakdown.net_pay),
                    "tax_year": breakdown.tax_year,
                    "used_fallback": breakdown.used_fallback,
                }
            },
        )
    return breakdown


def preview_tax(
    session: Session,
    engine: TaxWithholdingEngine,
    user_id: int,
    gross_pay: Decimal,
    period_type: PayPeriodType | None = None,
    anchor_date: datetime.date | None = None,
    extra_withholding: Decimal = ZERO,
) -> TaxBreakdown:
    """
    Withholding for a hypothetical gross amount. Nothing is written.

    Missing settings use the defaults without creating them; the
    year-to-date figures in the result are the current totals plus this
    amount.
    """
    from shiftpay.database.database import TaxSettingsRecord, User

    user = session.query(User).filter(User.id == user_id).first()
    if user is None:
        raise NotFoundError(f"user {user_id} not found", stage=STAGE_TAX)

    record = session.query(TaxSettingsRecord).filter(TaxSettingsRecord.user_id == user_id).first()
    settings = tax_settings_from_record(record) if record is not None else TaxSettings()

    anchor_date = anchor_date or datetime.date.today()
    period_type = period_type or user.pay_period_type
    year_to_date = SqlYearToDateLedger(session).get(user_id, tax_year_for_date(anchor_date))

    return engine.calculate(
        gross_pay,
        settings,
        period_type,
        anchor_date,
        extra_withholding=extra_withholding,
        year_to_date=year_to_date,
    )


def process_pay_period(session: Session, engine: TaxWithholdingEngine, pay_period_id: int) -> TaxBreakdown:
    """Recompute every shift in the period, then the totals, then tax."""
    from shiftpay.database.database import PayPeriod, Shift

    period = session.query(PayPeriod).filter(PayPeriod.id == pay_period_id).first()
    if period is None:
        raise NotFoundError("pay period not found", stage=STAGE_TAX, reference=pay_period_id)

    shift_ids = [
        shift_id
        for (shift_id,) in session.query(Shift.id).filter(Shift.pay_period_id == pay_period_id).order_by(Shift.start_time)
    ]
    try:
        for shift_id in shift_ids:
            compute_and_store_shift_pay(session, shift_id, commit=False)
        totals = recalculate_pay_period_totals(session, pay_period_id, commit=False)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Processed pay period shifts",
        extra={
            "extra_fields": {
                "pay_period_id": pay_period_id,
                "shift_count": totals["shift_count"],
                "gross_pay": str(totals["gross_pay"]),
            }
        },
    )
    return calculate_and_persist_tax(session, engine, pay_period_id)


def sync_shift_pay(session: Session, engine: TaxWithholdingEngine, shift_id: int) -> PayBreakdown:
    """
    Reprice one shift and bring its pay period back in line.

    The period's totals are recalculated (pricing any shift of the period
    that has no pay yet), and when tax had already been calculated for the
    period it is recalculated too, replacing the period's ledger
    contribution. Everything commits together or not at all.
    """
    from shiftpay.database.database import PayPeriod, Shift

    retax_period_id = None
    try:
        breakdown = compute_and_store_shift_pay(session, shift_id, commit=False)

        pay_period_id = session.query(Shift.pay_period_id).filter(Shift.id == shift_id).scalar()
        if pay_period_id is not None:
            taxed_at = session.query(PayPeriod.tax_calculated_at).filter(PayPeriod.id == pay_period_id).scalar()
            if taxed_at is not None:
                retax_period_id = pay_period_id
            unpriced = [
                sibling_id
                for (sibling_id,) in session.query(Shift.id).filter(
                    Shift.pay_period_id == pay_period_id, Shift.gross_pay.is_(None)
                )
            ]
            for sibling_id in unpriced:
                compute_and_store_shift_pay(session, sibling_id, commit=False)
            recalculate_pay_period_totals(session, pay_period_id, commit=False)

        if retax_period_id is None:
            session.commit()
    except Exception:
        session.rollback()
        raise

    if retax_period_id is not None:
        with LogContext(shift_id=shift_id):
            logger.info("Shift repriced after tax; recalculating pay period %s", retax_period_id)
        calculate_and_persist_tax(session, engine, retax_period_id)
    return breakdown
