# shiftpay/core/sentry_config.py
"""
Error reporting to Sentry.

Only production with a SENTRY_DSN reports anything. Events for unexpected
failures carry the payroll stage and the shift or pay period id as tags.
Caller mistakes (PreconditionError, NotFoundError) already get a 4xx
answer and are dropped before sending.
"""

import logging

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from shiftpay.core.config import (
    ENVIRONMENT,
    IS_PRODUCTION,
    RELEASE_VERSION,
    SENTRY_DSN,
    SENTRY_TRACES_SAMPLE_RATE,
)
from shiftpay.core.exceptions import NotFoundError, PayrollError, PreconditionError

logger = logging.getLogger(__name__)

#: Errors that are the caller's fault rather than ours.
EXPECTED_ERRORS = (PreconditionError, NotFoundError)

FILTERED = "[Filtered]"
_SENSITIVE_HEADERS = ("cookie", "authorization", "x-api-key")


def init_sentry() -> bool:
    """Start the SDK. Returns whether events will be sent."""
    if not IS_PRODUCTION:
        logger.info("Sentry off outside production")
        return False
    if not SENTRY_DSN:
        logger.warning("SENTRY_DSN is empty, unexpected errors will only be logged")
        return False

    try:
        sentry_sdk.init(
            dsn=SENTRY_DSN,
            environment=ENVIRONMENT,
            release=RELEASE_VERSION,
            traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
            integrations=[
                StarletteIntegration(),
                FastApiIntegration(),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            send_default_pii=False,
            attach_stacktrace=True,
            before_send=before_send_hook,
        )
    except Exception:
        logger.exception("Sentry init failed")
        return False

    logger.info("Sentry reporting to %s (release %s)", ENVIRONMENT, RELEASE_VERSION)
    return True


def _scrub_request(request: dict) -> None:
    headers = request.get("headers")
    if headers:
        for name in _SENSITIVE_HEADERS:
            if name in headers:
                headers[name] = FILTERED
    # bodies hold gross pay and tax declarations
    if "data" in request:
        request["data"] = FILTERED


def before_send_hook(event, hint):
    """Drop expected errors; strip credentials and request bodies from the rest."""
    error = (hint or {}).get("exc_info", (None, None, None))[1]
    if isinstance(error, EXPECTED_ERRORS):
        return None

    if "request" in event:
        _scrub_request(event["request"])
    return event


def payroll_tags(error: PayrollError) -> dict[str, str]:
    """Searchable tags for a domain error: code, and stage and reference when known."""
    details = error.to_dict()
    tags = {"payroll.code": details["code"]}
    if details.get("stage"):
        tags["payroll.stage"] = details["stage"]
    if details.get("reference") is not None:
        tags["payroll.reference"] = str(details["reference"])
    return tags


def capture_exception(error: Exception, context: dict | None = None):
    """Send `error` with payroll tags and any named context blocks."""
    with sentry_sdk.new_scope() as scope:
        if isinstance(error, PayrollError):
            for key, value in payroll_tags(error).items():
                scope.set_tag(key, value)
        for name, block in (context or {}).items():
            scope.set_context(name, block)
        sentry_sdk.capture_exception(error)


def add_breadcrumb(message: str, category: str = "payroll", level: str = "info", data: dict | None = None):
    sentry_sdk.add_breadcrumb(message=message, category=category, level=level, data=data or {})
