"""Tax withholding engine: gross pay in, withholding and net pay out."""

import datetime
import logging
from collections.abc import Callable
from decimal import Decimal

from shiftpay.core.constants import FALLBACK_TAX_YEAR, STSL_WEEKLY_CENTS, ZERO
from shiftpay.core.exceptions import STAGE_TAX, ConfigurationDegraded, PayrollError, PreconditionError
from shiftpay.core.models import (
    PayPeriodType,
    StslScale,
    TaxBreakdown,
    TaxCoefficient,
    TaxScale,
    TaxSettings,
    YearToDateSnapshot,
)
from shiftpay.core.money import floor_dollars, round_cents, to_decimal
from shiftpay.core.tax.brackets import calculate_withholding, validate_table
from shiftpay.core.tax.coefficient_store import CoefficientStore
from shiftpay.core.tax.defaults import fallback_stsl_table, fallback_tax_table
from shiftpay.core.tax.ledger import YearToDateLedger
from shiftpay.core.tax.scales import medicare_rate, resolve_scale, resolve_stsl_scale
from shiftpay.core.tax.tax_year import tax_year_for_date

logger = logging.getLogger(__name__)


class TaxWithholdingEngine:
    """
    Computes withholding for one pay period.

    Each calculation loads its coefficient tables once from the store (or
    the built-in fallback) and uses them throughout, so one result never
    mixes tables from different cache generations.
    """

    def __init__(self, coefficient_store: CoefficientStore, fallback_tax_year: str = FALLBACK_TAX_YEAR):
        self.coefficient_store = coefficient_store
        self.fallback_tax_year = fallback_tax_year

    def calculate(
        self,
        gross_pay: Decimal | None,
        tax_settings: TaxSettings,
        period_type: PayPeriodType,
        anchor_date: datetime.date,
        extra_withholding: Decimal = ZERO,
        year_to_date: YearToDateSnapshot | None = None,
        pay_period_id: int | None = None,
    ) -> TaxBreakdown:
        """
        Withholding for a gross amount, without touching the ledger.

        Args:
            gross_pay: Gross pay of the period. None means pay was never computed.
            tax_settings: The taxpayer's declarations.
            period_type: Length of the pay period.
            anchor_date: Date that decides the tax year (period start).
            extra_withholding: Additional amount the user asked to withhold.
            year_to_date: Current ledger figures; the result carries them
                projected with this period added.
            pay_period_id: Only used to label errors and logs.

        Raises:
            PreconditionError: missing or negative gross, malformed table,
                or a scale with neither stored nor built-in table.
        """
        try:
            return self._calculate(
                gross_pay, tax_settings, period_type, anchor_date, extra_withholding, year_to_date, pay_period_id
            )
        except PayrollError as e:
            raise e.with_context(stage=STAGE_TAX, reference=pay_period_id)

    def calculate_and_record(
        self,
        ledger: YearToDateLedger,
        user_id: int,
        pay_period_id: int,
        gross_pay: Decimal | None,
        tax_settings: TaxSettings,
        period_type: PayPeriodType,
        anchor_date: datetime.date,
        extra_withholding: Decimal = ZERO,
    ) -> TaxBreakdown:
        """Calculate, then record the period in the ledger. The result carries the updated totals."""
        breakdown = self.calculate(
            gross_pay,
            tax_settings,
            period_type,
            anchor_date,
            extra_withholding=extra_withholding,
            pay_period_id=pay_period_id,
        )
        try:
            snapshot = ledger.apply_period(user_id, breakdown.tax_year, pay_period_id, breakdown.contribution())
        except PayrollError as e:
            raise e.with_context(stage=STAGE_TAX, reference=pay_period_id)
        return breakdown.model_copy(update={"year_to_date": snapshot})

    def _calculate(
        self,
        gross_pay: Decimal | None,
        tax_settings: TaxSettings,
        period_type: PayPeriodType,
        anchor_date: datetime.date,
        extra_withholding: Decimal,
        year_to_date: YearToDateSnapshot | None,
        pay_period_id: int | None,
    ) -> TaxBreakdown:
        if gross_pay is None:
            raise PreconditionError("no computed gross pay; calculate pay first")
        gross = to_decimal(gross_pay)
        if gross < 0:
            raise PreconditionError(f"gross pay cannot be negative ({gross})")
        extra = to_decimal(extra_withholding)
        if extra < 0:
            raise PreconditionError(f"extra withholding cannot be negative ({extra})")

        tax_year = tax_year_for_date(anchor_date)
        scale = resolve_scale(tax_settings)
        weekly = period_type.to_weekly(gross)

        table, used_fallback = self._load_table(
            "tax", tax_year, scale, self.coefficient_store.fetch_tax_coefficients, fallback_tax_table
        )
        income_tax = floor_dollars(period_type.from_weekly(calculate_withholding(weekly, table)))

        medicare_levy = round_cents(gross * medicare_rate(tax_settings))

        supplementary = ZERO
        if tax_settings.has_supplementary_debt:
            stsl_scale = resolve_stsl_scale(tax_settings)
            stsl_table, stsl_fallback = self._load_table(
                "stsl", tax_year, stsl_scale, self.coefficient_store.fetch_stsl_coefficients, fallback_stsl_table
            )
            used_fallback = used_fallback or stsl_fallback
            if stsl_table:
                stsl_income = floor_dollars(weekly) + STSL_WEEKLY_CENTS
                supplementary = floor_dollars(
                    period_type.from_weekly(calculate_withholding(stsl_income, stsl_table))
                )

        total_withholding = income_tax + medicare_levy + supplementary + extra
        breakdown = TaxBreakdown(
            gross_pay=gross,
            income_tax=income_tax,
            medicare_levy=medicare_levy,
            supplementary_withholding=supplementary,
            extra_withholding=extra,
            total_withholding=total_withholding,
            net_pay=gross - total_withholding,
            scale=scale,
            tax_year=tax_year,
            pay_period_type=period_type,
            used_fallback=used_fallback,
        )
        if year_to_date is not None:
            breakdown.year_to_date = year_to_date.plus(breakdown.contribution())

        logger.info(
            "Calculated withholding",
            extra={
                "extra_fields": {
                    "pay_period_id": pay_period_id,
                    "tax_year": tax_year,
                    "scale": scale.value,
                    "gross_pay": str(gross),
                    "total_withholding": str(total_withholding),
                    "used_fallback": used_fallback,
                }
            },
        )
        return breakdown

    def _load_table(
        self,
        kind: str,
        tax_year: str,
        scale: TaxScale | StslScale,
        fetch: Callable[[str, TaxScale | StslScale], list[TaxCoefficient]],
        fallback: Callable[[TaxScale | StslScale], list[TaxCoefficient]],
    ) -> tuple[list[TaxCoefficient], bool]:
        """Rows from the store, or the built-in rows with used_fallback=True."""
        try:
            rows = fetch(tax_year, scale)
            reason = None if rows else "no rows stored"
        except ConfigurationDegraded as e:
            rows = []
            reason = e.detail

        if rows:
            return validate_table(rows), False

        logger.warning(
            "Coefficient table unavailable, using built-in %s table",
            self.fallback_tax_year,
            extra={
                "extra_fields": {
                    "table": kind,
                    "tax_year": tax_year,
                    "scale": scale.value,
                    "reason": reason,
                }
            },
        )
        fallback_rows = fallback(scale)
        if not fallback_rows:
            if kind == "tax":
                raise PreconditionError(f"no {scale.value} table for {tax_year} and no built-in fallback")
            return [], True
        return validate_table(fallback_rows), True
