"""
Pytest configuration and shared fixtures for testing.

Provides reusable test fixtures:
- test_db: In-memory SQLite database for isolated testing
- test_client: FastAPI TestClient for API integration tests
- retail_profile / penalty_rules: pay parameters for pure calculation tests
- db_profile / test_user / pay_period: stored records for service tests
"""

import datetime
import os
import sys
import tempfile
from decimal import Decimal
from pathlib import Path

# Configure before the application modules read the environment
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SEED_DEFAULTS", "false")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="shiftpay-logs-"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# ruff: noqa: E402
from shiftpay.core.models import PayPeriodType, PenaltyRule, RateProfile
from shiftpay.database.database import (
    Base,
    PayPeriod,
    PenaltyRuleRecord,
    RateProfileRecord,
    Shift,
    User,
    enable_sqlite_savepoints,
    get_db,
)
from shiftpay.main import app
from tests.helpers import MONDAY, RETAIL_SPANS


@pytest.fixture(scope="function")
def test_db():
    """
    Create an in-memory SQLite database for testing.

    This fixture creates a fresh database for each test function,
    ensuring test isolation. One shared connection (StaticPool) keeps the
    data visible to every session, and savepoints are enabled for the
    ledger.

    Yields:
        SQLAlchemy Session: Database session for test use
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def test_client(test_db):
    """
    Create FastAPI TestClient with test database dependency override.

    Args:
        test_db: Test database session fixture

    Yields:
        TestClient: FastAPI test client for API testing
    """

    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client

    # Clean up
    app.dependency_overrides.clear()


@pytest.fixture
def base_profile():
    """Profile with no casual loading and no overtime checks."""
    return RateProfile(
        id=1,
        name="Plain",
        base_rate=Decimal("26.55"),
        ordinary_spans=RETAIL_SPANS,
        timezone="Australia/Sydney",
    )


@pytest.fixture
def span_overtime_profile(base_profile):
    """Overtime for time outside the ordinary span, tier 1 at 1.5x."""
    return base_profile.model_copy(update={"overtime_on_span_boundary": True})


@pytest.fixture
def retail_profile():
    """The retail casual profile shipped as seed data."""
    return RateProfile(
        id=1,
        name="General Retail Industry Award - Casual",
        base_rate=Decimal("25.41"),
        casual_loading=Decimal("0.25"),
        ordinary_spans=RETAIL_SPANS,
        daily_overtime_hours=Decimal("9"),
        special_day_overtime_hours=Decimal("11"),
        overtime_on_span_boundary=True,
        overtime_on_daily_limit=True,
        timezone="Australia/Sydney",
    )


@pytest.fixture
def penalty_rules():
    return {
        "saturday": PenaltyRule(id="saturday", name="Saturday Penalty", day_of_week=5, multiplier=Decimal("1.5")),
        "sunday": PenaltyRule(id="sunday", name="Sunday Penalty", day_of_week=6, multiplier=Decimal("2.0")),
        "evening": PenaltyRule(
            id="evening", name="Evening Penalty", start_time="18:00", end_time="23:59", multiplier=Decimal("1.5")
        ),
        "night": PenaltyRule(
            id="night", name="Night Penalty", start_time="22:00", end_time="06:00", multiplier=Decimal("1.3")
        ),
    }


@pytest.fixture
def db_profile(test_db):
    """Stored profile: base 26.55, no casual loading, Saturday x1.5 and evening x1.5."""
    profile = RateProfileRecord(
        name="Test Award",
        base_rate=Decimal("26.55"),
        casual_loading=Decimal("0"),
        ordinary_spans={str(day): [span.start, span.end] for day, span in RETAIL_SPANS.items()},
        timezone="Australia/Sydney",
    )
    test_db.add(profile)
    test_db.flush()
    test_db.add_all(
        [
            PenaltyRuleRecord(
                rate_profile_id=profile.id, name="Saturday Penalty", day_of_week=5, multiplier=Decimal("1.5")
            ),
            PenaltyRuleRecord(
                rate_profile_id=profile.id,
                name="Evening Penalty",
                start_time="18:00",
                end_time="23:59",
                multiplier=Decimal("1.5"),
            ),
        ]
    )
    test_db.commit()
    test_db.refresh(profile)
    return profile


@pytest.fixture
def test_user(test_db, db_profile):
    user = User(
        name="Test Worker",
        pay_period_type=PayPeriodType.FORTNIGHTLY,
        default_rate_profile_id=db_profile.id,
    )
    test_db.add(user)
    test_db.commit()
    test_db.refresh(user)
    return user


@pytest.fixture
def pay_period(test_db, test_user):
    """Fortnight starting Monday 13 May 2024 (tax year 2023-24)."""
    period = PayPeriod(
        user_id=test_user.id,
        start_date=MONDAY,
        end_date=MONDAY + datetime.timedelta(days=13),
        period_type=PayPeriodType.FORTNIGHTLY,
    )
    test_db.add(period)
    test_db.commit()
    test_db.refresh(period)
    return period


@pytest.fixture
def add_shift(test_db, test_user, db_profile):
    """Factory storing a shift for the test user."""

    def _add(start, end, break_minutes=0, pay_period_id=None):
        shift = Shift(
            user_id=test_user.id,
            pay_period_id=pay_period_id,
            rate_profile_id=db_profile.id,
            start_time=start,
            end_time=end,
            break_minutes=break_minutes,
        )
        test_db.add(shift)
        test_db.commit()
        test_db.refresh(shift)
        return shift

    return _add
