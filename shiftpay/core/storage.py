# shiftpay/core/storage.py
import datetime
import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from sqlalchemy.orm import Session

from shiftpay.core.config import DATA_DIR
from shiftpay.core.exceptions import NotFoundError, StorageError
from shiftpay.core.models import DaySpan, PenaltyRule, PublicHoliday, RateProfile

logger = logging.getLogger(__name__)


def _load_json(file_path: Path) -> list[Any] | dict[str, Any]:
    """
    Read and parse JSON with robust error handling.
    Args:
        file_path: Path to the JSON file
    Returns:
        Parsed JSON data as list or dict
    Raises:
        StorageError: If file cannot be read or JSON is invalid
    """
    try:
        raw = file_path.read_text(encoding="utf-8")
    except OSError as e:
        logger.exception("Failed to read JSON file %s", file_path)
        raise StorageError(f"Could not read JSON file {file_path}: {e}") from e

    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        logger.exception("Invalid JSON in file %s", file_path)
        raise StorageError(f"Invalid JSON in file {file_path}: {e}") from e


def load_seed_file(name: str) -> list[Any] | dict[str, Any]:
    """Parsed JSON seed file from the package data directory."""
    return _load_json(DATA_DIR / name)


def load_seed_rate_profiles(file_path: Path | None = None) -> list[tuple[RateProfile, list[PenaltyRule]]]:
    """
    Load rate profiles and their penalty rules from the seed file.
    Returns:
        List of (profile, rules) pairs
    Raises:
        StorageError: If file cannot be loaded or parsed
    """
    file_path = file_path or DATA_DIR / "rate_profiles.json"
    data = _load_json(file_path)
    try:
        if not isinstance(data, list):
            raise TypeError("Expected list of rate profiles")
        result = []
        for item in data:
            item = dict(item)
            rules = [PenaltyRule(**rule) for rule in item.pop("penalty_rules", [])]
            result.append((RateProfile(**item), rules))
    except (TypeError, ValidationError) as e:
        logger.exception("Failed to parse rate profiles from %s", file_path)
        raise StorageError(f"Could not parse rate profiles from {file_path}: {e}") from e
    return result


def rate_profile_from_record(record) -> RateProfile:
    """Build the immutable RateProfile from a RateProfileRecord row."""
    spans = {
        int(weekday): DaySpan(start=bounds[0], end=bounds[1])
        for weekday, bounds in (record.ordinary_spans or {}).items()
    }
    return RateProfile(
        id=record.id,
        name=record.name,
        base_rate=record.base_rate,
        casual_loading=record.casual_loading,
        casual_loading_ordinary_only=record.casual_loading_ordinary_only,
        overtime_tier1_multiplier=record.overtime_tier1_multiplier,
        overtime_tier2_multiplier=record.overtime_tier2_multiplier,
        ordinary_spans=spans,
        daily_overtime_hours=record.daily_overtime_hours,
        special_day_overtime_hours=record.special_day_overtime_hours,
        special_day_weekday=record.special_day_weekday,
        all_day_tier2_weekday=record.all_day_tier2_weekday,
        overtime_on_span_boundary=record.overtime_on_span_boundary,
        overtime_on_daily_limit=record.overtime_on_daily_limit,
        timezone=record.timezone,
        jurisdiction=record.jurisdiction,
    )


def load_rate_profile(session: Session, profile_id: int) -> RateProfile:
    """
    Rate profile by id.
    Raises:
        NotFoundError: unknown or inactive profile
    """
    from shiftpay.database.database import RateProfileRecord

    record = (
        session.query(RateProfileRecord)
        .filter(RateProfileRecord.id == profile_id, RateProfileRecord.is_active.is_(True))
        .first()
    )
    if record is None:
        raise NotFoundError(f"rate profile {profile_id} not found")
    return rate_profile_from_record(record)


def load_active_rules(session: Session, profile_id: int) -> list[PenaltyRule]:
    """Active penalty rules of a profile, in id order."""
    from shiftpay.database.database import PenaltyRuleRecord

    records = (
        session.query(PenaltyRuleRecord)
        .filter(
            PenaltyRuleRecord.rate_profile_id == profile_id,
            PenaltyRuleRecord.is_active.is_(True),
        )
        .order_by(PenaltyRuleRecord.id)
        .all()
    )
    return [
        PenaltyRule(
            id=str(r.id),
            name=r.name,
            start_time=r.start_time,
            end_time=r.end_time,
            day_of_week=r.day_of_week,
            multiplier=r.multiplier,
            priority=r.priority,
            is_active=r.is_active,
        )
        for r in records
    ]


def load_public_holidays(
    session: Session,
    profile_id: int,
    start: datetime.date | None = None,
    end: datetime.date | None = None,
) -> list[PublicHoliday]:
    """Active public holidays of a profile, optionally limited to [start, end]."""
    from shiftpay.database.database import PublicHolidayRecord

    query = session.query(PublicHolidayRecord).filter(
        PublicHolidayRecord.rate_profile_id == profile_id,
        PublicHolidayRecord.is_active.is_(True),
    )
    if start is not None:
        query = query.filter(PublicHolidayRecord.date >= start)
    if end is not None:
        query = query.filter(PublicHolidayRecord.date <= end)

    return [
        PublicHoliday(date=r.date, name=r.name, jurisdiction=r.jurisdiction)
        for r in query.order_by(PublicHolidayRecord.date).all()
    ]
