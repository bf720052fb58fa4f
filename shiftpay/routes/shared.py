# shiftpay/routes/shared.py
"""
Shared dependencies and schemas for route modules.
"""

import datetime
from decimal import Decimal

from fastapi import Depends, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from shiftpay.core.constants import ZERO
from shiftpay.core.exceptions import ConcurrencyConflictError, NotFoundError, PayrollError, PreconditionError
from shiftpay.core.models import PayPeriodType
from shiftpay.core.tax.cache import TTLCache
from shiftpay.core.tax.coefficient_store import CachedCoefficientStore, SqlCoefficientStore
from shiftpay.core.tax.engine import TaxWithholdingEngine
from shiftpay.database.database import get_db


def get_coefficient_cache(request: Request) -> TTLCache:
    """Process-wide coefficient cache, created on first use."""
    cache = getattr(request.app.state, "coefficient_cache", None)
    if cache is None:
        cache = TTLCache()
        request.app.state.coefficient_cache = cache
    return cache


def get_tax_engine(
    db: Session = Depends(get_db),
    cache: TTLCache = Depends(get_coefficient_cache),
) -> TaxWithholdingEngine:
    """Engine reading coefficient tables through the shared cache."""
    return TaxWithholdingEngine(CachedCoefficientStore(SqlCoefficientStore(db), cache))


def error_status(error: PayrollError) -> int:
    """HTTP status for a domain error."""
    if isinstance(error, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(error, PreconditionError):
        return status.HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(error, ConcurrencyConflictError):
        return status.HTTP_409_CONFLICT
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# ============ Pydantic schemas ============


class PayPreviewRequest(BaseModel):
    rate_profile_id: int
    start: datetime.datetime
    end: datetime.datetime
    break_minutes: int = Field(default=0, ge=0)


class TaxPreviewRequest(BaseModel):
    user_id: int
    gross_pay: Decimal = Field(ge=0)
    period_type: PayPeriodType | None = None
    anchor_date: datetime.date | None = None
    extra_withholding: Decimal = Field(default=ZERO, ge=0)


class CacheInvalidation(BaseModel):
    tax_year: str
    invalidated: int
