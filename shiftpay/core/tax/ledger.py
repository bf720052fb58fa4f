"""
Year-to-date ledger.

Each pay period's contribution is stored by pay period id, and the running
totals change by the difference between the new contribution and the one
already recorded. Recalculating a period therefore never counts it twice,
and periods can be applied in any order.
"""

import logging
import threading
import weakref
from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime
from typing import Protocol

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from shiftpay.core.constants import LEDGER_MAX_RETRIES, ZERO
from shiftpay.core.exceptions import STAGE_TAX, ConcurrencyConflictError, PreconditionError
from shiftpay.core.models import PeriodContribution, YearToDateSnapshot
from shiftpay.core.time_utils import utcnow

logger = logging.getLogger(__name__)

LedgerKey = tuple[int, str]

_RETRYABLE_ERRORS = (StaleDataError, IntegrityError, OperationalError)


class _RowLock:
    # threading.Lock itself cannot be weakly referenced
    __slots__ = ("lock", "__weakref__")

    def __init__(self):
        self.lock = threading.Lock()


# One lock per (user_id, tax_year), dropped once no thread holds or waits on it
_row_locks: "weakref.WeakValueDictionary[LedgerKey, _RowLock]" = weakref.WeakValueDictionary()
_row_locks_guard = threading.Lock()


@contextmanager
def row_lock(user_id: int, tax_year: str):
    """Serialize updates of one ledger row within this process."""
    key = (user_id, tax_year)
    with _row_locks_guard:
        entry = _row_locks.get(key)
        if entry is None:
            entry = _RowLock()
            _row_locks[key] = entry
    with entry.lock:
        yield


class YearToDateLedger(Protocol):
    def get(self, user_id: int, tax_year: str) -> YearToDateSnapshot: ...

    def apply_period(
        self,
        user_id: int,
        tax_year: str,
        pay_period_id: int,
        contribution: PeriodContribution,
    ) -> YearToDateSnapshot: ...


class InMemoryYearToDateLedger:
    """Ledger kept in process memory. Used for previews and tests."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._totals: dict[LedgerKey, YearToDateSnapshot] = {}
        self._contributions: dict[int, tuple[LedgerKey, PeriodContribution]] = {}
        self._locks: dict[LedgerKey, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: LedgerKey) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(key, threading.Lock())

    def get(self, user_id: int, tax_year: str) -> YearToDateSnapshot:
        snapshot = self._totals.get((user_id, tax_year))
        if snapshot is None:
            return YearToDateSnapshot(user_id=user_id, tax_year=tax_year)
        return snapshot

    def apply_period(
        self,
        user_id: int,
        tax_year: str,
        pay_period_id: int,
        contribution: PeriodContribution,
    ) -> YearToDateSnapshot:
        key = (user_id, tax_year)
        with self._lock_for(key):
            previous = self._contributions.get(pay_period_id)
            if previous is not None and previous[0] != key:
                raise PreconditionError(
                    f"already recorded for user {previous[0][0]} in tax year {previous[0][1]}",
                    stage=STAGE_TAX,
                    reference=pay_period_id,
                )
            delta = contribution.minus(previous[1]) if previous else contribution
            current = self.get(user_id, tax_year)
            updated = current.plus(delta).model_copy(update={"last_updated": self._clock()})
            self._totals[key] = updated
            self._contributions[pay_period_id] = (key, contribution)
            return updated


class SqlYearToDateLedger:
    """
    Ledger backed by the year_to_date_tax table.

    One update runs inside a savepoint of the caller's transaction: the
    ledger row is locked (SELECT ... FOR UPDATE where the dialect supports
    it), created with zeros when missing, and written with an optimistic
    version check. Conflicts roll back the savepoint and are retried; the
    caller commits or rolls back the surrounding transaction.
    """

    def __init__(self, session: Session, max_retries: int = LEDGER_MAX_RETRIES):
        self.session = session
        self.max_retries = max_retries

    def get(self, user_id: int, tax_year: str) -> YearToDateSnapshot:
        from shiftpay.database.database import YearToDateTax

        row = (
            self.session.query(YearToDateTax)
            .filter(YearToDateTax.user_id == user_id, YearToDateTax.tax_year == tax_year)
            .first()
        )
        if row is None:
            return YearToDateSnapshot(user_id=user_id, tax_year=tax_year)
        return _snapshot(row)

    def apply_period(
        self,
        user_id: int,
        tax_year: str,
        pay_period_id: int,
        contribution: PeriodContribution,
    ) -> YearToDateSnapshot:
        last_error: Exception | None = None
        with row_lock(user_id, tax_year):
            for attempt in range(1, self.max_retries + 1):
                savepoint = self.session.begin_nested()
                try:
                    snapshot = self._apply_once(user_id, tax_year, pay_period_id, contribution)
                    savepoint.commit()
                    return snapshot
                except _RETRYABLE_ERRORS as e:
                    savepoint.rollback()
                    self.session.expire_all()
                    last_error = e
                    logger.warning(
                        "Ledger update conflict (attempt %d/%d)",
                        attempt,
                        self.max_retries,
                        extra={
                            "extra_fields": {
                                "user_id": user_id,
                                "tax_year": tax_year,
                                "pay_period_id": pay_period_id,
                                "error": type(e).__name__,
                            }
                        },
                    )
                except Exception:
                    savepoint.rollback()
                    raise

        raise ConcurrencyConflictError(
            f"year-to-date ledger for user {user_id} in {tax_year} still conflicting after "
            f"{self.max_retries} attempts",
            stage=STAGE_TAX,
            reference=pay_period_id,
        ) from last_error

    def _apply_once(
        self,
        user_id: int,
        tax_year: str,
        pay_period_id: int,
        contribution: PeriodContribution,
    ) -> YearToDateSnapshot:
        from shiftpay.database.database import YearToDateContribution, YearToDateTax

        row = (
            self.session.query(YearToDateTax)
            .filter(YearToDateTax.user_id == user_id, YearToDateTax.tax_year == tax_year)
            .with_for_update()
            .first()
        )
        if row is None:
            row = YearToDateTax(
                user_id=user_id,
                tax_year=tax_year,
                gross_income=ZERO,
                income_tax=ZERO,
                medicare_levy=ZERO,
                supplementary_withholding=ZERO,
                total_withholding=ZERO,
                last_updated=utcnow(),
            )
            self.session.add(row)
            # A concurrent creator makes this raise IntegrityError
            self.session.flush()

        previous = (
            self.session.query(YearToDateContribution)
            .filter(YearToDateContribution.pay_period_id == pay_period_id)
            .with_for_update()
            .first()
        )
        if previous is not None and (previous.user_id, previous.tax_year) != (user_id, tax_year):
            raise PreconditionError(
                f"already recorded for user {previous.user_id} in tax year {previous.tax_year}",
                stage=STAGE_TAX,
                reference=pay_period_id,
            )

        delta = contribution.minus(_contribution(previous)) if previous is not None else contribution

        row.gross_income = row.gross_income + delta.gross_income
        row.income_tax = row.income_tax + delta.income_tax
        row.medicare_levy = row.medicare_levy + delta.medicare_levy
        row.supplementary_withholding = row.supplementary_withholding + delta.supplementary_withholding
        row.total_withholding = row.total_withholding + delta.total_withholding
        row.last_updated = utcnow()

        if previous is None:
            previous = YearToDateContribution(pay_period_id=pay_period_id, user_id=user_id, tax_year=tax_year)
            self.session.add(previous)
        previous.gross_income = contribution.gross_income
        previous.income_tax = contribution.income_tax
        previous.medicare_levy = contribution.medicare_levy
        previous.supplementary_withholding = contribution.supplementary_withholding
        previous.total_withholding = contribution.total_withholding
        previous.recorded_at = utcnow()

        # Version mismatch on the ledger row raises StaleDataError here
        self.session.flush()
        return _snapshot(row)


def _snapshot(row) -> YearToDateSnapshot:
    return YearToDateSnapshot(
        user_id=row.user_id,
        tax_year=row.tax_year,
        gross_income=row.gross_income,
        income_tax=row.income_tax,
        medicare_levy=row.medicare_levy,
        supplementary_withholding=row.supplementary_withholding,
        total_withholding=row.total_withholding,
        last_updated=row.last_updated,
    )


def _contribution(record) -> PeriodContribution:
    return PeriodContribution(
        gross_income=record.gross_income,
        income_tax=record.income_tax,
        medicare_levy=record.medicare_levy,
        supplementary_withholding=record.supplementary_withholding,
        total_withholding=record.total_withholding,
    )
