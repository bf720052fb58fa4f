# shiftpay/core/logging_config.py
"""
Logging for shiftpay.

Production writes one JSON object per line to rotating files; development
prints colored lines to the console. Pay and tax code labels its records
in two ways:

- LogContext(pay_period_id=..., shift_id=...) around a unit of work, which
  labels every record emitted inside it, in this thread only;
- extra={"extra_fields": {...}} on a single call.
"""

import contextvars
import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path

from shiftpay.core.config import IS_PRODUCTION, LOG_DIR

APP_LOG_FILE = LOG_DIR / "shiftpay.log"
ERROR_LOG_FILE = LOG_DIR / "shiftpay-errors.log"

#: Ids LogContext may carry. Anything else is rejected so typos surface.
CONTEXT_KEYS = frozenset({"request_id", "user_id", "shift_id", "pay_period_id", "tax_year"})

_context: contextvars.ContextVar[dict] = contextvars.ContextVar("shiftpay_log_context", default={})

_NOISY_LOGGERS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "sqlalchemy.engine": logging.WARNING,
}


class PayrollContextFilter(logging.Filter):
    """Copies the active LogContext ids onto each record as `payroll_context`."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.payroll_context = dict(_context.get())
        return True


class JSONFormatter(logging.Formatter):
    """Structured output for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "at": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(getattr(record, "payroll_context", {}))
        entry.update(getattr(record, "extra_fields", {}))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level and appends the context ids."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",  # dim
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno, "")
        ids = getattr(record, "payroll_context", {})
        if ids:
            line += "  " + " ".join(f"{key}={value}" for key, value in sorted(ids.items()))
        return f"{color}{line}{self.RESET}" if color else line


def _rotating_file(path: Path, level: int, formatter: logging.Formatter, max_mb: int, backups: int):
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=max_mb * 1024 * 1024, backupCount=backups, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> None:
    """
    Configure the root logger.

    Production: INFO and up as JSON to shiftpay.log, ERROR and up also to
    shiftpay-errors.log, WARNING and up as JSON on stdout.

    Development: DEBUG and up, colored on stdout and plain in shiftpay.log.
    """
    LOG_DIR.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.INFO if IS_PRODUCTION else logging.DEBUG)

    if IS_PRODUCTION:
        json_formatter = JSONFormatter()
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(logging.WARNING)
        console.setFormatter(json_formatter)
        handlers = [
            _rotating_file(APP_LOG_FILE, logging.INFO, json_formatter, max_mb=20, backups=5),
            _rotating_file(ERROR_LOG_FILE, logging.ERROR, json_formatter, max_mb=10, backups=10),
            console,
        ]
    else:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(logging.DEBUG)
        console.setFormatter(ColoredFormatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s", "%H:%M:%S"))
        plain = logging.Formatter("%(asctime)s %(levelname)s %(name)s:%(lineno)d %(message)s")
        handlers = [console, _rotating_file(APP_LOG_FILE, logging.DEBUG, plain, max_mb=5, backups=2)]

    context_filter = PayrollContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)
        root.addHandler(handler)

    for name, level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(level)

    logging.getLogger(__name__).info(
        "Logging ready",
        extra={"extra_fields": {"log_dir": str(LOG_DIR.resolve()), "production": IS_PRODUCTION}},
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Label every record emitted inside the block with the given ids.

    Contexts nest; inner values win. The ids live in a ContextVar, so
    requests served concurrently by the threadpool never see each other's
    labels.

    Usage:
        with LogContext(pay_period_id=12):
            logger.info("Calculating tax")
    """

    def __init__(self, **ids):
        unknown = set(ids) - CONTEXT_KEYS
        if unknown:
            raise ValueError(f"Unknown log context keys: {sorted(unknown)}")
        self.ids = ids
        self._token = None

    def __enter__(self):
        self._token = _context.set({**_context.get(), **self.ids})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _context.reset(self._token)
