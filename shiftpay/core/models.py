import datetime
from decimal import Decimal
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shiftpay.core.config import DEFAULT_JURISDICTION, DEFAULT_TIMEZONE
from shiftpay.core.constants import (
    DEFAULT_ALL_DAY_TIER2_WEEKDAY,
    DEFAULT_ORDINARY_SPANS,
    DEFAULT_SPECIAL_DAY_WEEKDAY,
    ZERO,
)
from shiftpay.core.time_utils import parse_hhmm, truncate_to_minute


class MedicareExemption(str, Enum):
    """Medicare levy exemption declared by the taxpayer."""
    NONE = "none"
    HALF = "half"
    FULL = "full"


class TaxScale(str, Enum):
    """Withholding scale selected from the taxpayer's declarations."""
    SCALE_1 = "scale1"  # tax-free threshold not claimed
    SCALE_2 = "scale2"  # tax-free threshold claimed
    SCALE_3 = "scale3"  # foreign resident
    SCALE_4 = "scale4"  # no tax file number


class StslScale(str, Enum):
    """Scale of the study and training support loan table."""
    WITH_TFT_OR_FR = "WITH_TFT_OR_FR"
    NO_TFT = "NO_TFT"


class PayPeriodType(str, Enum):
    """Length of a pay period."""
    WEEKLY = "weekly"
    FORTNIGHTLY = "fortnightly"
    MONTHLY = "monthly"

    def to_weekly(self, amount: Decimal) -> Decimal:
        """Convert a period amount to its weekly equivalent."""
        if self is PayPeriodType.FORTNIGHTLY:
            return amount / 2
        if self is PayPeriodType.MONTHLY:
            return amount * 3 / 13
        return amount

    def from_weekly(self, amount: Decimal) -> Decimal:
        """Convert a weekly amount back to this period."""
        if self is PayPeriodType.FORTNIGHTLY:
            return amount * 2
        if self is PayPeriodType.MONTHLY:
            return amount * 13 / 3
        return amount


class DaySpan(BaseModel):
    """Ordinary hours for one weekday, as "HH:MM" strings."""
    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def _check_time(cls, value: str) -> str:
        parse_hhmm(value)
        return value

    @model_validator(mode="after")
    def _check_order(self) -> "DaySpan":
        if parse_hhmm(self.end) <= parse_hhmm(self.start):
            raise ValueError(f"Ordinary span must end after it starts: {self.start}-{self.end}")
        return self

    @property
    def start_minute(self) -> int:
        return parse_hhmm(self.start)

    @property
    def end_minute(self) -> int:
        return parse_hhmm(self.end)


def _default_spans() -> dict[int, DaySpan]:
    return {day: DaySpan(start=start, end=end) for day, (start, end) in DEFAULT_ORDINARY_SPANS.items()}


class RateProfile(BaseModel):
    """Pay parameters for one pay arrangement."""
    model_config = ConfigDict(frozen=True)

    id: int | None = None
    name: str = "default"
    base_rate: Decimal = Field(ge=0)
    casual_loading: Decimal = Field(default=ZERO, ge=0)
    casual_loading_ordinary_only: bool = False
    overtime_tier1_multiplier: Decimal = Field(default=Decimal("1.5"), ge=0)
    overtime_tier2_multiplier: Decimal = Field(default=Decimal("2"), ge=0)
    ordinary_spans: dict[int, DaySpan] = Field(default_factory=_default_spans)
    daily_overtime_hours: Decimal = Field(default=Decimal("9"), ge=0)
    special_day_overtime_hours: Decimal | None = Field(default=None, ge=0)
    special_day_weekday: int = Field(default=DEFAULT_SPECIAL_DAY_WEEKDAY, ge=0, le=6)
    all_day_tier2_weekday: int | None = Field(default=DEFAULT_ALL_DAY_TIER2_WEEKDAY, ge=0, le=6)
    overtime_on_span_boundary: bool = False
    overtime_on_daily_limit: bool = False
    timezone: str = DEFAULT_TIMEZONE
    jurisdiction: str = DEFAULT_JURISDICTION

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {value!r}") from e
        return value

    @field_validator("ordinary_spans")
    @classmethod
    def _check_weekdays(cls, value: dict[int, DaySpan]) -> dict[int, DaySpan]:
        for weekday in value:
            if not 0 <= weekday <= 6:
                raise ValueError(f"Weekday must be 0-6, got {weekday}")
        return value

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def span_for(self, weekday: int) -> DaySpan:
        """Ordinary span for a weekday, falling back to the award default."""
        span = self.ordinary_spans.get(weekday)
        if span is None:
            start, end = DEFAULT_ORDINARY_SPANS[weekday]
            span = DaySpan(start=start, end=end)
        return span


class PenaltyRule(BaseModel):
    """Loading applied to hours inside a day/time window."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    start_time: str = "00:00"
    end_time: str = "24:00"
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    multiplier: Decimal = Field(ge=1)
    priority: int = 0
    is_active: bool = True

    @field_validator("start_time", "end_time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        parse_hhmm(value)
        return value

    @property
    def start_minute(self) -> int:
        return parse_hhmm(self.start_time)

    @property
    def end_minute(self) -> int:
        return parse_hhmm(self.end_time)

    @property
    def crosses_midnight(self) -> bool:
        return self.end_minute <= self.start_minute

    def matches_weekday(self, weekday: int) -> bool:
        return self.day_of_week is None or self.day_of_week == weekday


class PublicHoliday(BaseModel):
    """A public holiday as a local calendar date."""
    model_config = ConfigDict(frozen=True)

    date: datetime.date
    name: str = "Public Holiday"
    jurisdiction: str = DEFAULT_JURISDICTION


class ShiftInterval(BaseModel):
    """Start, end and trailing break of one worked shift."""
    model_config = ConfigDict(frozen=True)

    start: datetime.datetime
    end: datetime.datetime
    break_minutes: int = Field(default=0, ge=0)

    @field_validator("start", "end")
    @classmethod
    def _truncate(cls, value: datetime.datetime) -> datetime.datetime:
        return truncate_to_minute(value)


class TimeSegment(BaseModel):
    """A piece of a shift with a constant set of applicable rules."""
    model_config = ConfigDict(frozen=True)

    start: datetime.datetime
    end: datetime.datetime
    duration_minutes: int
    rules: tuple[PenaltyRule, ...] = ()
    is_regular: bool = True


class OvertimeHours(BaseModel):
    """Hours reclassified from regular to overtime."""
    model_config = ConfigDict(frozen=True)

    tier1_hours: Decimal = ZERO
    tier2_hours: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.tier1_hours + self.tier2_hours


class PenaltyEntry(BaseModel):
    """Hours and pay for one penalty rule within a shift."""
    rule_id: str
    name: str
    hours: Decimal
    rate: Decimal
    amount: Decimal


class PayBreakdown(BaseModel):
    """Priced result for one shift. Amounts are unrounded."""
    total_hours: Decimal
    regular_hours: Decimal
    regular_rate: Decimal
    regular_amount: Decimal
    overtime_tier1_hours: Decimal
    overtime_tier1_rate: Decimal
    overtime_tier1_amount: Decimal
    overtime_tier2_hours: Decimal
    overtime_tier2_rate: Decimal
    overtime_tier2_amount: Decimal
    penalties: list[PenaltyEntry] = Field(default_factory=list)
    casual_loading_rate: Decimal = ZERO
    casual_loading_amount: Decimal = ZERO
    gross_pay: Decimal
    applied_penalties: list[str] = Field(default_factory=list)

    @property
    def penalty_total(self) -> Decimal:
        return sum((entry.amount for entry in self.penalties), ZERO)


class TaxCoefficient(BaseModel):
    """One bracket row: withholding = income * A - B on [from, to)."""
    model_config = ConfigDict(frozen=True)

    scale: str
    earnings_from: Decimal = Field(ge=0)
    earnings_to: Decimal | None = None
    coefficient_a: Decimal
    coefficient_b: Decimal

    def contains(self, income: Decimal) -> bool:
        return income >= self.earnings_from and (self.earnings_to is None or income < self.earnings_to)


class TaxSettings(BaseModel):
    """Declarations that select a user's withholding scale."""
    claimed_tax_free_threshold: bool = True
    is_foreign_resident: bool = False
    has_tax_file_number: bool = True
    medicare_exemption: MedicareExemption = MedicareExemption.NONE
    has_supplementary_debt: bool = False


class PeriodContribution(BaseModel):
    """What one pay period adds to the year-to-date totals."""
    model_config = ConfigDict(frozen=True)

    gross_income: Decimal = ZERO
    income_tax: Decimal = ZERO
    medicare_levy: Decimal = ZERO
    supplementary_withholding: Decimal = ZERO
    total_withholding: Decimal = ZERO

    def minus(self, other: "PeriodContribution") -> "PeriodContribution":
        return PeriodContribution(
            gross_income=self.gross_income - other.gross_income,
            income_tax=self.income_tax - other.income_tax,
            medicare_levy=self.medicare_levy - other.medicare_levy,
            supplementary_withholding=self.supplementary_withholding - other.supplementary_withholding,
            total_withholding=self.total_withholding - other.total_withholding,
        )


class YearToDateSnapshot(BaseModel):
    """Cumulative figures for one user and tax year."""
    user_id: int | None = None
    tax_year: str
    gross_income: Decimal = ZERO
    income_tax: Decimal = ZERO
    medicare_levy: Decimal = ZERO
    supplementary_withholding: Decimal = ZERO
    total_withholding: Decimal = ZERO
    last_updated: datetime.datetime | None = None

    def plus(self, contribution: PeriodContribution) -> "YearToDateSnapshot":
        return self.model_copy(
            update={
                "gross_income": self.gross_income + contribution.gross_income,
                "income_tax": self.income_tax + contribution.income_tax,
                "medicare_levy": self.medicare_levy + contribution.medicare_levy,
                "supplementary_withholding": self.supplementary_withholding
                + contribution.supplementary_withholding,
                "total_withholding": self.total_withholding + contribution.total_withholding,
            }
        )


class TaxBreakdown(BaseModel):
    """Withholding and net pay for one pay period."""
    gross_pay: Decimal
    income_tax: Decimal
    medicare_levy: Decimal
    supplementary_withholding: Decimal
    extra_withholding: Decimal = ZERO
    total_withholding: Decimal
    net_pay: Decimal
    scale: TaxScale
    tax_year: str
    pay_period_type: PayPeriodType
    used_fallback: bool = False
    year_to_date: YearToDateSnapshot | None = None

    def contribution(self) -> PeriodContribution:
        return PeriodContribution(
            gross_income=self.gross_pay,
            income_tax=self.income_tax,
            medicare_levy=self.medicare_levy,
            supplementary_withholding=self.supplementary_withholding,
            total_withholding=self.total_withholding,
        )
