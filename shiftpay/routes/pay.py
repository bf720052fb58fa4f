# shiftpay/routes/pay.py
"""
Pay routes - preview a shift's pay and compute pay for stored shifts.
"""

import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shiftpay.core.exceptions import STAGE_PAY, PayrollError
from shiftpay.core.models import PayBreakdown, ShiftInterval
from shiftpay.core.pay import compute_shift_pay
from shiftpay.core.storage import load_active_rules, load_public_holidays, load_rate_profile
from shiftpay.core.tax.engine import TaxWithholdingEngine
from shiftpay.core.tax.pay_period_service import sync_shift_pay
from shiftpay.database.database import get_db
from shiftpay.routes.shared import PayPreviewRequest, get_tax_engine

router = APIRouter(prefix="/api", tags=["pay"])


@router.post("/pay/preview", response_model=PayBreakdown)
def preview_shift_pay(payload: PayPreviewRequest, db: Session = Depends(get_db)):
    """
    Price a shift without storing anything.

    Times are wall time in the rate profile's timezone unless they carry
    an offset.
    """
    try:
        profile = load_rate_profile(db, payload.rate_profile_id)
    except PayrollError as e:
        raise e.with_context(stage=STAGE_PAY, reference=None)

    holidays = load_public_holidays(
        db,
        profile.id,
        start=payload.start.date(),
        end=payload.end.date() + datetime.timedelta(days=1),
    )
    shift = ShiftInterval(start=payload.start, end=payload.end, break_minutes=payload.break_minutes)
    return compute_shift_pay(shift, profile, load_active_rules(db, profile.id), holidays)


@router.post("/shifts/{shift_id}/pay", response_model=PayBreakdown)
def store_shift_pay(
    shift_id: int,
    db: Session = Depends(get_db),
    engine: TaxWithholdingEngine = Depends(get_tax_engine),
):
    """Compute a stored shift's pay, write it back and resync its pay period."""
    return sync_shift_pay(db, engine, shift_id)
