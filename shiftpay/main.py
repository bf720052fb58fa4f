# shiftpay/main.py
"""
Shiftpay web application.

Run with: uvicorn shiftpay.main:app
"""

import platform
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shiftpay.core.config import ALLOWED_ORIGINS, IS_PRODUCTION, SEED_DEFAULTS
from shiftpay.core.exceptions import ConcurrencyConflictError, PayrollError
from shiftpay.core.logging_config import get_logger, setup_logging
from shiftpay.core.request_logging import REQUEST_ID_HEADER, RequestLoggingMiddleware
from shiftpay.core.sentry_config import capture_exception, init_sentry
from shiftpay.core.tax.cache import TTLCache
from shiftpay.database.database import SessionLocal, create_tables, get_db
from shiftpay.database.seed import seed_defaults
from shiftpay.routes.pay import router as pay_router
from shiftpay.routes.shared import error_status
from shiftpay.routes.tax import router as tax_router

VERSION = "0.1.0"

# Logging before anything else can log
setup_logging()
logger = get_logger(__name__)

sentry_enabled = init_sentry()


def _seed_on_startup() -> None:
    session = SessionLocal()
    try:
        seed_defaults(session)
    finally:
        session.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Shiftpay %s starting",
        VERSION,
        extra={
            "extra_fields": {
                "production": IS_PRODUCTION,
                "python": platform.python_version(),
                "sentry": sentry_enabled,
            }
        },
    )
    create_tables()
    if SEED_DEFAULTS:
        _seed_on_startup()
    app.state.coefficient_cache = TTLCache()

    yield

    logger.info("Shiftpay stopping")


def _cors_settings() -> dict:
    """Locked to ALLOWED_ORIGINS in production, open in development."""
    if not IS_PRODUCTION:
        return {"allow_origins": ["*"], "allow_methods": ["*"]}
    if not ALLOWED_ORIGINS:
        logger.warning("ALLOWED_ORIGINS is empty; browsers on other origins will be refused")
    return {"allow_origins": ALLOWED_ORIGINS, "allow_methods": ["GET", "POST"]}


app = FastAPI(
    title="Shiftpay",
    description="Shift pay computation and Australian PAYG withholding",
    version=VERSION,
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_credentials=True,
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER],
    **_cors_settings(),
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(pay_router)
app.include_router(tax_router)


@app.exception_handler(PayrollError)
async def payroll_error_handler(request: Request, exc: PayrollError):
    """Answer a domain error with its code, stage and reference."""
    status_code = error_status(exc)
    body = exc.to_dict()
    extra = {"extra_fields": {"status_code": status_code, **body}}

    if status_code < 500 and not isinstance(exc, ConcurrencyConflictError):
        logger.warning("%s", exc, extra=extra)
    else:
        logger.error("%s", exc, extra=extra)
        capture_exception(exc, {"payroll": body})

    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path, exc_info=exc)
    capture_exception(exc, {"request": {"method": request.method, "path": request.url.path}})
    return JSONResponse(
        status_code=500,
        content={
            "code": "INTERNAL_ERROR",
            "stage": None,
            "reference": None,
            "reference_kind": None,
            "detail": "Internal server error",
        },
    )


@app.get("/health", tags=["health"])
def health_check(db: Session = Depends(get_db)):
    """200 while the database answers, 503 when it does not."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check could not reach the database", exc_info=True)
        raise HTTPException(
            status_code=503,
            detail={"status": "unhealthy", "service": "shiftpay", "database": "disconnected"},
        ) from e

    return {"status": "healthy", "service": "shiftpay", "version": VERSION, "database": "connected"}
