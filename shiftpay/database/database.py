# shiftpay/database/database.py
"""
SQLAlchemy database setup and models.
"""

from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.types import TypeDecorator

from shiftpay.core.config import DATABASE_URL, DEFAULT_JURISDICTION, DEFAULT_TIMEZONE
from shiftpay.core.constants import DEFAULT_ALL_DAY_TIER2_WEEKDAY, DEFAULT_SPECIAL_DAY_WEEKDAY
from shiftpay.core.models import MedicareExemption, PayPeriodType
from shiftpay.core.money import to_decimal
from shiftpay.core.time_utils import utcnow

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}


def enable_sqlite_savepoints(sqlite_engine) -> None:
    """
    Let SQLite honour SAVEPOINT inside session transactions.

    pysqlite defers BEGIN on its own; the ledger nests savepoints, so the
    driver is put in autocommit mode and BEGIN is emitted by SQLAlchemy.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(sqlite_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


engine = create_engine(DATABASE_URL, connect_args=_connect_args)
if DATABASE_URL.startswith("sqlite"):
    enable_sqlite_savepoints(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


class DecimalText(TypeDecorator):
    """Stores Decimal as text so no dialect round-trips money through float."""

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(to_decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


class User(Base):
    """Worker whose shifts are paid and taxed."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    pay_period_type = Column(SQLEnum(PayPeriodType), default=PayPeriodType.FORTNIGHTLY, nullable=False)
    default_rate_profile_id = Column(Integer, ForeignKey("rate_profiles.id"))
    created_at = Column(DateTime, default=utcnow)

    # Relationships
    tax_settings = relationship("TaxSettingsRecord", back_populates="user", uselist=False)
    shifts = relationship("Shift", back_populates="user")
    pay_periods = relationship("PayPeriod", back_populates="user")


class TaxSettingsRecord(Base):
    """Tax declarations of a user."""

    __tablename__ = "tax_settings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)
    claimed_tax_free_threshold = Column(Boolean, default=True, nullable=False)
    is_foreign_resident = Column(Boolean, default=False, nullable=False)
    has_tax_file_number = Column(Boolean, default=True, nullable=False)
    medicare_exemption = Column(SQLEnum(MedicareExemption), default=MedicareExemption.NONE, nullable=False)
    has_supplementary_debt = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="tax_settings")

    def __repr__(self):
        return f"<TaxSettingsRecord(user_id={self.user_id}, claimed={self.claimed_tax_free_threshold})>"


class RateProfileRecord(Base):
    """Pay parameters of one award or agreement."""

    __tablename__ = "rate_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    base_rate = Column(DecimalText, nullable=False)
    casual_loading = Column(DecimalText, default=Decimal("0"), nullable=False)
    casual_loading_ordinary_only = Column(Boolean, default=False, nullable=False)
    overtime_tier1_multiplier = Column(DecimalText, default=Decimal("1.5"), nullable=False)
    overtime_tier2_multiplier = Column(DecimalText, default=Decimal("2"), nullable=False)
    ordinary_spans = Column(JSON, default=dict)  # {"0": ["07:00", "21:00"], ...}
    daily_overtime_hours = Column(DecimalText, default=Decimal("9"), nullable=False)
    special_day_overtime_hours = Column(DecimalText)
    special_day_weekday = Column(Integer, default=DEFAULT_SPECIAL_DAY_WEEKDAY, nullable=False)
    all_day_tier2_weekday = Column(Integer, default=DEFAULT_ALL_DAY_TIER2_WEEKDAY)
    overtime_on_span_boundary = Column(Boolean, default=False, nullable=False)
    overtime_on_daily_limit = Column(Boolean, default=False, nullable=False)
    timezone = Column(String(64), default=DEFAULT_TIMEZONE, nullable=False)
    jurisdiction = Column(String(16), default=DEFAULT_JURISDICTION, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    penalty_rules = relationship("PenaltyRuleRecord", back_populates="rate_profile")
    public_holidays = relationship("PublicHolidayRecord", back_populates="rate_profile")

    def __repr__(self):
        return f"<RateProfileRecord(id={self.id}, name={self.name!r}, base_rate={self.base_rate})>"


class PenaltyRuleRecord(Base):
    """Penalty loading for a day/time window of a rate profile."""

    __tablename__ = "penalty_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rate_profile_id = Column(Integer, ForeignKey("rate_profiles.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    start_time = Column(String(5), default="00:00", nullable=False)
    end_time = Column(String(5), default="24:00", nullable=False)
    day_of_week = Column(Integer)  # 0=Monday ... 6=Sunday, None = every day
    multiplier = Column(DecimalText, nullable=False)
    priority = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    rate_profile = relationship("RateProfileRecord", back_populates="penalty_rules")

    def __repr__(self):
        return f"<PenaltyRuleRecord(id={self.id}, name={self.name!r}, {self.start_time}-{self.end_time})>"


class PublicHolidayRecord(Base):
    """Public holiday observed by a rate profile."""

    __tablename__ = "public_holidays"
    __table_args__ = (UniqueConstraint("rate_profile_id", "date", name="uq_public_holiday_profile_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    rate_profile_id = Column(Integer, ForeignKey("rate_profiles.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    name = Column(String(100), nullable=False)
    jurisdiction = Column(String(16), default=DEFAULT_JURISDICTION, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    rate_profile = relationship("RateProfileRecord", back_populates="public_holidays")

    def __repr__(self):
        return f"<PublicHolidayRecord(date={self.date}, name={self.name!r})>"


class PayPeriod(Base):
    """Pay period with totals and withholding results."""

    __tablename__ = "pay_periods"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    period_type = Column(SQLEnum(PayPeriodType), default=PayPeriodType.FORTNIGHTLY, nullable=False)
    total_hours = Column(DecimalText)
    gross_pay = Column(DecimalText)  # shifts plus taxable extras
    non_taxable_extras = Column(DecimalText, default=Decimal("0"), nullable=False)
    extra_withholding = Column(DecimalText, default=Decimal("0"), nullable=False)
    income_tax = Column(DecimalText)
    medicare_levy = Column(DecimalText)
    supplementary_withholding = Column(DecimalText)
    total_withholding = Column(DecimalText)
    net_pay = Column(DecimalText)
    tax_year = Column(String(7))
    used_fallback_tables = Column(Boolean, default=False, nullable=False)
    tax_calculated_at = Column(DateTime)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="pay_periods")
    shifts = relationship("Shift", back_populates="pay_period")
    extras = relationship("PayPeriodExtra", back_populates="pay_period", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<PayPeriod(id={self.id}, user_id={self.user_id}, {self.start_date}..{self.end_date})>"


class PayPeriodExtra(Base):
    """Allowance, bonus or reimbursement paid with a pay period on top of its shifts."""

    __tablename__ = "pay_period_extras"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pay_period_id = Column(Integer, ForeignKey("pay_periods.id", ondelete="CASCADE"), nullable=False, index=True)
    extra_type = Column(String(30), nullable=False)  # "allowance", "bonus", "reimbursement", ...
    description = Column(String(200))
    amount = Column(DecimalText, nullable=False)
    taxable = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    pay_period = relationship("PayPeriod", back_populates="extras")

    def __repr__(self):
        return f"<PayPeriodExtra(id={self.id}, pay_period_id={self.pay_period_id}, {self.extra_type} {self.amount})>"


class Shift(Base):
    """Worked shift. Times are wall time in the rate profile's timezone."""

    __tablename__ = "shifts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    pay_period_id = Column(Integer, ForeignKey("pay_periods.id"), index=True)
    rate_profile_id = Column(Integer, ForeignKey("rate_profiles.id"), nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    break_minutes = Column(Integer, default=0, nullable=False)
    total_hours = Column(DecimalText)
    gross_pay = Column(DecimalText)
    applied_penalties = Column(JSON, default=list)
    pay_calculated_at = Column(DateTime)

    user = relationship("User", back_populates="shifts")
    pay_period = relationship("PayPeriod", back_populates="shifts")
    rate_profile = relationship("RateProfileRecord")

    def __repr__(self):
        return f"<Shift(id={self.id}, user_id={self.user_id}, start={self.start_time}, end={self.end_time})>"


class TaxCoefficientRecord(Base):
    """One withholding bracket for a scale and tax year."""

    __tablename__ = "tax_coefficients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tax_year = Column(String(7), nullable=False, index=True)
    scale = Column(String(16), nullable=False)
    earnings_from = Column(DecimalText, nullable=False)
    earnings_to = Column(DecimalText)
    coefficient_a = Column(DecimalText, nullable=False)
    coefficient_b = Column(DecimalText, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class StslCoefficientRecord(Base):
    """One STSL bracket for a scale and tax year."""

    __tablename__ = "stsl_coefficients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tax_year = Column(String(7), nullable=False, index=True)
    scale = Column(String(16), nullable=False)
    earnings_from = Column(DecimalText, nullable=False)
    earnings_to = Column(DecimalText)
    coefficient_a = Column(DecimalText, nullable=False)
    coefficient_b = Column(DecimalText, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)


class YearToDateTax(Base):
    """Running totals per user and tax year."""

    __tablename__ = "year_to_date_tax"
    __table_args__ = (UniqueConstraint("user_id", "tax_year", name="uq_ytd_user_tax_year"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    tax_year = Column(String(7), nullable=False)
    gross_income = Column(DecimalText, default=Decimal("0"), nullable=False)
    income_tax = Column(DecimalText, default=Decimal("0"), nullable=False)
    medicare_levy = Column(DecimalText, default=Decimal("0"), nullable=False)
    supplementary_withholding = Column(DecimalText, default=Decimal("0"), nullable=False)
    total_withholding = Column(DecimalText, default=Decimal("0"), nullable=False)
    last_updated = Column(DateTime, default=utcnow, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<YearToDateTax(user_id={self.user_id}, tax_year={self.tax_year}, gross={self.gross_income})>"


class YearToDateContribution(Base):
    """What one pay period added to a YearToDateTax row."""

    __tablename__ = "year_to_date_contributions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    pay_period_id = Column(Integer, ForeignKey("pay_periods.id"), nullable=False, unique=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    tax_year = Column(String(7), nullable=False)
    gross_income = Column(DecimalText, nullable=False)
    income_tax = Column(DecimalText, nullable=False)
    medicare_levy = Column(DecimalText, nullable=False)
    supplementary_withholding = Column(DecimalText, nullable=False)
    total_withholding = Column(DecimalText, nullable=False)
    recorded_at = Column(DateTime, default=utcnow, nullable=False)


def create_tables():
    """Create all database tables."""
    Base.metadata.create_all(bind=engine)


def get_db():
    """Dependency for getting database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
