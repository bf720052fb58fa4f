# shiftpay/core/config.py

import os
from pathlib import Path
from typing import Final


# ==========================
# Environment
# ==========================

#: "production" enables JSON logs, Sentry and strict CORS.
ENVIRONMENT: Final[str] = os.getenv("ENVIRONMENT", "development").lower()

#: Kept for deployments that still export PRODUCTION=true.
IS_PRODUCTION: Final[bool] = (
    ENVIRONMENT == "production" or os.getenv("PRODUCTION", "false").lower() == "true"
)

#: SQLAlchemy URL. SQLite by default, any SQLAlchemy dialect works.
DATABASE_URL: Final[str] = os.getenv("DATABASE_URL", "sqlite:///./shiftpay.db")

#: Comma separated list of origins allowed in production.
ALLOWED_ORIGINS: Final[list[str]] = [
    origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "").split(",") if origin.strip()
]

#: Directory for rotating log files.
LOG_DIR: Final[Path] = Path(os.getenv("LOG_DIR", "logs"))

#: Seed the default rate profile, holidays and fallback tax tables on startup.
SEED_DEFAULTS: Final[bool] = os.getenv("SEED_DEFAULTS", "true").lower() == "true"

#: Sentry DSN. Error reporting is off unless set in production.
SENTRY_DSN: Final[str] = os.getenv("SENTRY_DSN", "").strip()

#: Share of requests traced for performance monitoring.
SENTRY_TRACES_SAMPLE_RATE: Final[float] = float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1"))

#: Release name reported with errors.
RELEASE_VERSION: Final[str] = os.getenv("RELEASE_VERSION", "shiftpay@0.1.0")

#: Directory with JSON seed data shipped with the package.
DATA_DIR: Final[Path] = Path(__file__).resolve().parent.parent / "data"


# ==========================
# Times and places
# ==========================

#: End of day marker for rule windows that run up to midnight.
TIME_END_OF_DAY_STRING: Final[str] = "24:00"

#: Default IANA timezone for rate profiles.
DEFAULT_TIMEZONE: Final[str] = "Australia/Sydney"

#: Default jurisdiction tag for profiles and public holidays.
DEFAULT_JURISDICTION: Final[str] = "AU"
