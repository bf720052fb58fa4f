# shiftpay/routes/tax.py
"""
Tax routes - withholding previews, pay period processing and the
year-to-date ledger.
"""

import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shiftpay.core.exceptions import STAGE_TAX, NotFoundError
from shiftpay.core.models import TaxBreakdown, YearToDateSnapshot
from shiftpay.core.sentry_config import add_breadcrumb
from shiftpay.core.tax.cache import TTLCache
from shiftpay.core.tax.engine import TaxWithholdingEngine
from shiftpay.core.tax.ledger import SqlYearToDateLedger
from shiftpay.core.tax.pay_period_service import calculate_and_persist_tax, preview_tax, process_pay_period
from shiftpay.core.tax.tax_year import tax_year_for_date
from shiftpay.core.validators import validate_tax_year
from shiftpay.database.database import User, get_db
from shiftpay.routes.shared import CacheInvalidation, TaxPreviewRequest, get_coefficient_cache, get_tax_engine

router = APIRouter(prefix="/api", tags=["tax"])


@router.post("/tax/preview", response_model=TaxBreakdown)
def preview_withholding(
    payload: TaxPreviewRequest,
    db: Session = Depends(get_db),
    engine: TaxWithholdingEngine = Depends(get_tax_engine),
):
    """Withholding for a hypothetical gross amount. Nothing is stored."""
    return preview_tax(
        db,
        engine,
        payload.user_id,
        payload.gross_pay,
        period_type=payload.period_type,
        anchor_date=payload.anchor_date,
        extra_withholding=payload.extra_withholding,
    )


@router.post("/pay-periods/{pay_period_id}/tax", response_model=TaxBreakdown)
def persist_pay_period_tax(
    pay_period_id: int,
    db: Session = Depends(get_db),
    engine: TaxWithholdingEngine = Depends(get_tax_engine),
):
    """Calculate tax for a pay period and update the year-to-date ledger."""
    add_breadcrumb(message=f"Tax requested for pay period {pay_period_id}", category="tax")
    return calculate_and_persist_tax(db, engine, pay_period_id)


@router.post("/pay-periods/{pay_period_id}/process", response_model=TaxBreakdown)
def process_period(
    pay_period_id: int,
    db: Session = Depends(get_db),
    engine: TaxWithholdingEngine = Depends(get_tax_engine),
):
    """Compute pay for every shift, the period totals and then tax."""
    add_breadcrumb(message=f"Processing pay period {pay_period_id}", category="pay")
    return process_pay_period(db, engine, pay_period_id)


@router.get("/tax/year-to-date/{user_id}", response_model=YearToDateSnapshot)
def year_to_date(
    user_id: int,
    tax_year: str | None = Query(None, description='Tax year such as "2024-25". Defaults to the current one.'),
    db: Session = Depends(get_db),
):
    """Year-to-date totals of a user. Zeros if nothing has been recorded."""
    if db.query(User).filter(User.id == user_id).first() is None:
        raise NotFoundError(f"user {user_id} not found", stage=STAGE_TAX)

    tax_year = validate_tax_year(tax_year) if tax_year else tax_year_for_date(datetime.date.today())
    return SqlYearToDateLedger(db).get(user_id, tax_year)


@router.post("/tax/cache/invalidate", response_model=CacheInvalidation)
def invalidate_coefficient_cache(
    tax_year: str = Query(..., description='Tax year whose cached tables are dropped, e.g. "2024-25".'),
    cache: TTLCache = Depends(get_coefficient_cache),
):
    """Drop cached coefficient tables of a tax year after they were edited."""
    tax_year = validate_tax_year(tax_year)
    return CacheInvalidation(tax_year=tax_year, invalidated=cache.invalidate_tax_year(tax_year))
