"""
Tests for the year-to-date ledger: idempotent recalculation, lazy row
creation, retries and concurrent updates.
"""

import datetime
import threading
from decimal import Decimal

import pytest
from sqlalchemy.orm.exc import StaleDataError

from shiftpay.core.exceptions import ConcurrencyConflictError, PreconditionError
from shiftpay.core.models import PeriodContribution
from shiftpay.core.tax import InMemoryYearToDateLedger, SqlYearToDateLedger
from shiftpay.core.tax import ledger as ledger_module
from shiftpay.core.tax.ledger import row_lock
from shiftpay.database.database import PayPeriod, YearToDateContribution, YearToDateTax

TAX_YEAR = "2024-25"


def contribution(gross, tax="0", medicare="0"):
    gross, tax, medicare = Decimal(gross), Decimal(tax), Decimal(medicare)
    return PeriodContribution(
        gross_income=gross,
        income_tax=tax,
        medicare_levy=medicare,
        total_withholding=tax + medicare,
    )


@pytest.fixture
def periods(test_db, test_user, pay_period):
    """Three pay period ids for the test user."""
    extra = [
        PayPeriod(
            user_id=test_user.id,
            start_date=pay_period.start_date,
            end_date=pay_period.end_date,
            period_type=pay_period.period_type,
        )
        for _ in range(2)
    ]
    test_db.add_all(extra)
    test_db.commit()
    return [pay_period.id] + [period.id for period in extra]


class TestSqlLedger:
    def test_missing_row_reads_as_zero(self, test_db, test_user):
        snapshot = SqlYearToDateLedger(test_db).get(test_user.id, TAX_YEAR)

        assert snapshot.gross_income == 0
        assert snapshot.last_updated is None
        assert test_db.query(YearToDateTax).count() == 0

    def test_first_update_creates_the_row(self, test_db, test_user, periods):
        ledger = SqlYearToDateLedger(test_db)

        snapshot = ledger.apply_period(test_user.id, TAX_YEAR, periods[0], contribution("2000", "273", "40"))
        test_db.commit()

        assert snapshot.gross_income == Decimal("2000")
        assert snapshot.total_withholding == Decimal("313")
        row = test_db.query(YearToDateTax).one()
        assert row.income_tax == Decimal("273")
        assert row.version == 2

    def test_recalculating_a_period_is_idempotent(self, test_db, test_user, periods):
        ledger = SqlYearToDateLedger(test_db)

        ledger.apply_period(test_user.id, TAX_YEAR, periods[0], contribution("2000", "273"))
        ledger.apply_period(test_user.id, TAX_YEAR, periods[0], contribution("2000", "273"))
        test_db.commit()

        snapshot = ledger.get(test_user.id, TAX_YEAR)
        assert snapshot.gross_income == Decimal("2000")
        assert snapshot.income_tax == Decimal("273")
        assert test_db.query(YearToDateContribution).count() == 1

    def test_changed_period_applies_the_difference(self, test_db, test_user, periods):
        ledger = SqlYearToDateLedger(test_db)

        ledger.apply_period(test_user.id, TAX_YEAR, periods[0], contribution("2000", "273"))
        ledger.apply_period(test_user.id, TAX_YEAR, periods[1], contribution("1000", "100"))
        snapshot = ledger.apply_period(test_user.id, TAX_YEAR, periods[0], contribution("1500", "150"))

        assert snapshot.gross_income == Decimal("2500")
        assert snapshot.income_tax == Decimal("250")

    def test_period_cannot_move_to_another_tax_year(self, test_db, test_user, periods):
        ledger = SqlYearToDateLedger(test_db)
        ledger.apply_period(test_user.id, TAX_YEAR, periods[0], contribution("2000"))

        with pytest.raises(PreconditionError):
            ledger.apply_period(test_user.id, "2025-26", periods[0], contribution("2000"))

    def test_updates_commute(self, test_db, test_user, periods):
        ledger = SqlYearToDateLedger(test_db)
        ledger.apply_period(test_user.id, TAX_YEAR, periods[1], contribution("700", "70"))
        forward = ledger.apply_period(test_user.id, TAX_YEAR, periods[2], contribution("300", "30"))

        memory = InMemoryYearToDateLedger()
        memory.apply_period(test_user.id, TAX_YEAR, periods[2], contribution("300", "30"))
        backward = memory.apply_period(test_user.id, TAX_YEAR, periods[1], contribution("700", "70"))

        assert forward.gross_income == backward.gross_income
        assert forward.income_tax == backward.income_tax

    def test_conflicts_are_retried(self, test_db, test_user, periods, monkeypatch):
        ledger = SqlYearToDateLedger(test_db, max_retries=3)
        original = ledger._apply_once
        attempts = []

        def flaky(*args, **kwargs):
            attempts.append(1)
            if len(attempts) < 3:
                raise StaleDataError("row changed underneath")
            return original(*args, **kwargs)

        monkeypatch.setattr(ledger, "_apply_once", flaky)

        snapshot = ledger.apply_period(test_user.id, TAX_YEAR, periods[0], contribution("2000"))

        assert len(attempts) == 3
        assert snapshot.gross_income == Decimal("2000")

    def test_exhausted_retries_raise_conflict(self, test_db, test_user, periods, monkeypatch):
        ledger = SqlYearToDateLedger(test_db, max_retries=2)

        def always_stale(*args, **kwargs):
            raise StaleDataError("row changed underneath")

        monkeypatch.setattr(ledger, "_apply_once", always_stale)

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            ledger.apply_period(test_user.id, TAX_YEAR, periods[0], contribution("2000"))

        assert exc_info.value.stage == "tax"
        assert exc_info.value.reference == periods[0]
        assert test_db.query(YearToDateTax).count() == 0


class TestInMemoryLedger:
    def test_concurrent_periods_are_all_counted(self):
        ledger = InMemoryYearToDateLedger()
        barrier = threading.Barrier(8)

        def record(period_id):
            barrier.wait()
            for _ in range(5):
                ledger.apply_period(1, TAX_YEAR, period_id, contribution("100", "10"))

        threads = [threading.Thread(target=record, args=(period_id,)) for period_id in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        snapshot = ledger.get(1, TAX_YEAR)
        assert snapshot.gross_income == Decimal("800")
        assert snapshot.income_tax == Decimal("80")

    def test_years_are_separate(self):
        ledger = InMemoryYearToDateLedger()
        ledger.apply_period(1, "2024-25", 1, contribution("100"))
        ledger.apply_period(1, "2025-26", 2, contribution("50"))

        assert ledger.get(1, "2024-25").gross_income == Decimal("100")
        assert ledger.get(1, "2025-26").gross_income == Decimal("50")

    def test_last_updated_uses_clock(self):
        stamp = datetime.datetime(2024, 9, 2, 12, 0)
        ledger = InMemoryYearToDateLedger(clock=lambda: stamp)

        assert ledger.apply_period(1, TAX_YEAR, 1, contribution("1")).last_updated == stamp


class TestRowLock:
    def test_lock_is_shared_while_held_and_dropped_after(self):
        key = (99, TAX_YEAR)

        with row_lock(*key):
            assert key in ledger_module._row_locks
            held = ledger_module._row_locks[key].lock
            assert held.locked()

        assert key not in ledger_module._row_locks

    def test_second_thread_waits_for_the_holder(self):
        order = []
        entered = threading.Event()

        def holder():
            with row_lock(7, TAX_YEAR):
                entered.set()
                order.append("holder")
                threading.Event().wait(0.05)
                order.append("holder done")

        thread = threading.Thread(target=holder)
        thread.start()
        entered.wait()
        with row_lock(7, TAX_YEAR):
            order.append("waiter")
        thread.join()

        assert order == ["holder", "holder done", "waiter"]
