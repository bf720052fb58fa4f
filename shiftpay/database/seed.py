# shiftpay/database/seed.py
"""
Seed the database with the default rate profile, public holidays and the
built-in tax tables. Every step skips rows that already exist, so seeding
runs safely on each startup.
"""

import logging

from sqlalchemy.orm import Session

from shiftpay.core.config import DEFAULT_JURISDICTION
from shiftpay.core.constants import FALLBACK_TAX_YEAR
from shiftpay.core.holidays import national_public_holidays
from shiftpay.core.models import PenaltyRule, RateProfile
from shiftpay.core.storage import load_seed_rate_profiles
from shiftpay.core.tax.defaults import DEFAULT_TAX_COEFFICIENTS
from shiftpay.core.time_utils import utcnow
from shiftpay.database.database import (
    PenaltyRuleRecord,
    PublicHolidayRecord,
    RateProfileRecord,
    TaxCoefficientRecord,
)

logger = logging.getLogger(__name__)

#: Years of public holidays seeded around the current year.
HOLIDAY_YEARS_BACK = 1
HOLIDAY_YEARS_AHEAD = 2


def _profile_record(profile: RateProfile) -> RateProfileRecord:
    return RateProfileRecord(
        name=profile.name,
        base_rate=profile.base_rate,
        casual_loading=profile.casual_loading,
        casual_loading_ordinary_only=profile.casual_loading_ordinary_only,
        overtime_tier1_multiplier=profile.overtime_tier1_multiplier,
        overtime_tier2_multiplier=profile.overtime_tier2_multiplier,
        ordinary_spans={str(day): [span.start, span.end] for day, span in profile.ordinary_spans.items()},
        daily_overtime_hours=profile.daily_overtime_hours,
        special_day_overtime_hours=profile.special_day_overtime_hours,
        special_day_weekday=profile.special_day_weekday,
        all_day_tier2_weekday=profile.all_day_tier2_weekday,
        overtime_on_span_boundary=profile.overtime_on_span_boundary,
        overtime_on_daily_limit=profile.overtime_on_daily_limit,
        timezone=profile.timezone,
        jurisdiction=profile.jurisdiction,
    )


def _rule_record(profile_id: int, rule: PenaltyRule) -> PenaltyRuleRecord:
    return PenaltyRuleRecord(
        rate_profile_id=profile_id,
        name=rule.name,
        start_time=rule.start_time,
        end_time=rule.end_time,
        day_of_week=rule.day_of_week,
        multiplier=rule.multiplier,
        priority=rule.priority,
        is_active=rule.is_active,
    )


def seed_rate_profiles(session: Session) -> list[int]:
    """Insert seed profiles missing by name. Returns ids of all seed profiles."""
    profile_ids = []
    for profile, rules in load_seed_rate_profiles():
        record = session.query(RateProfileRecord).filter(RateProfileRecord.name == profile.name).first()
        if record is None:
            record = _profile_record(profile)
            session.add(record)
            session.flush()
            for rule in rules:
                session.add(_rule_record(record.id, rule))
            logger.info(
                f"Seeded rate profile {profile.name!r}",
                extra={"extra_fields": {"rate_profile_id": record.id, "rules": len(rules)}},
            )
        profile_ids.append(record.id)
    return profile_ids


def seed_public_holidays(session: Session, profile_id: int, years: range) -> int:
    """Insert national holidays of the given years for a profile. Returns rows added."""
    profile = session.query(RateProfileRecord).filter(RateProfileRecord.id == profile_id).first()
    jurisdiction = profile.jurisdiction if profile is not None else DEFAULT_JURISDICTION

    existing = {
        day
        for (day,) in session.query(PublicHolidayRecord.date).filter(PublicHolidayRecord.rate_profile_id == profile_id)
    }
    added = 0
    for year in years:
        for holiday in national_public_holidays(year, jurisdiction):
            if holiday.date in existing:
                continue
            session.add(
                PublicHolidayRecord(
                    rate_profile_id=profile_id,
                    date=holiday.date,
                    name=holiday.name,
                    jurisdiction=holiday.jurisdiction,
                )
            )
            existing.add(holiday.date)
            added += 1
    return added


def seed_tax_coefficients(session: Session, tax_year: str = FALLBACK_TAX_YEAR) -> int:
    """Store the built-in tables for a tax year unless that year has rows. Returns rows added."""
    if session.query(TaxCoefficientRecord).filter(TaxCoefficientRecord.tax_year == tax_year).first() is not None:
        return 0

    added = 0
    for rows in DEFAULT_TAX_COEFFICIENTS.values():
        for row in rows:
            session.add(TaxCoefficientRecord(tax_year=tax_year, **row))
            added += 1
    return added


def seed_defaults(session: Session) -> None:
    """Seed everything the service needs to compute pay and tax out of the box."""
    current_year = utcnow().year
    years = range(current_year - HOLIDAY_YEARS_BACK, current_year + HOLIDAY_YEARS_AHEAD + 1)

    try:
        profile_ids = seed_rate_profiles(session)
        holidays = sum(seed_public_holidays(session, profile_id, years) for profile_id in profile_ids)
        coefficients = seed_tax_coefficients(session)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Seed data verified",
        extra={
            "extra_fields": {
                "rate_profiles": len(profile_ids),
                "public_holidays_added": holidays,
                "tax_coefficients_added": coefficients,
            }
        },
    )
