"""
FastAPI web application for buyer revenue and spend reports.
"""
import os
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse, JSONResponse
from starlette.middleware.gzip import GZipMiddleware

from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from web.config import VERSION, WEB_HOST, WEB_PORT
from web.routes import api
from web.routes.api._deps import limiter
from web.middleware import RequestLoggingMiddleware, RequestTimeoutMiddleware
from web.services.report_service import get_ledger, reset_services
from core.duckdb_store import close_store
from core.config import validate_config, ConfigurationError
from core.exceptions import (
    LedgerError,
    QueryTimeoutError,
    SheetsAuthorizationError,
    SheetsProviderError,
    SpendLookupError,
    ValidationError,
)
from core.observability import setup_logging, get_logger, get_correlation_id, metrics

# Configure structured logging
# Use JSON format in production (LOG_FORMAT=json), human-readable otherwise
log_format = os.getenv("LOG_FORMAT", "text")
log_level = os.getenv("LOG_LEVEL", "INFO")
setup_logging(level=log_level, json_format=(log_format == "json"))
logger = get_logger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Buyer ROI Tracker",
    description="Postback revenue vs spreadsheet spend per media buyer",
    version=VERSION,
    default_response_class=ORJSONResponse
)

# Add rate limiter to app state
app.state.limiter = limiter


def _error_response(status_code: int, error: str, detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "detail": detail,
            "correlation_id": get_correlation_id(),
        }
    )


# Custom rate limit exceeded handler
@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    logger.warning(f"Rate limit exceeded for {get_remote_address(request)}")
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": "Too many requests. Please try again later.",
            "retry_after": exc.detail
        }
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return _error_response(400, "Invalid request", str(exc))


@app.exception_handler(SpendLookupError)
async def spend_lookup_handler(request: Request, exc: SpendLookupError):
    return _error_response(404, "Spend not found", str(exc))


@app.exception_handler(SheetsAuthorizationError)
async def sheets_authorization_handler(request: Request, exc: SheetsAuthorizationError):
    logger.error(f"Spreadsheet authorization failed: {exc}")
    metrics.record_error("SHEETS_AUTHORIZATION")
    return _error_response(503, "Spend data unavailable", exc.message)


@app.exception_handler(SheetsProviderError)
async def sheets_provider_handler(request: Request, exc: SheetsProviderError):
    logger.error(f"Spreadsheet provider failed: {exc}")
    metrics.record_error("SHEETS_PROVIDER")
    return _error_response(502, "Spend data unavailable", exc.message)


@app.exception_handler(QueryTimeoutError)
async def query_timeout_handler(request: Request, exc: QueryTimeoutError):
    logger.error(f"Ledger query timed out: {exc}")
    return _error_response(504, "Ledger timeout", exc.message)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    logger.error(f"Ledger failure: {exc}")
    return _error_response(500, "Ledger failure", exc.message)


# Add request timeout middleware (prevents long-running requests)
app.add_middleware(RequestTimeoutMiddleware)

# Add request logging middleware (adds correlation IDs and timing)
# Added last so it runs outermost and the correlation_id is set for the timeout
app.add_middleware(RequestLoggingMiddleware)

# Add Gzip compression (min 500 bytes to compress)
app.add_middleware(GZipMiddleware, minimum_size=500)

# Include routers
app.include_router(api.router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info("Buyer ROI Tracker starting...")

    # Validate configuration early - fail fast with clear errors
    try:
        validate_config(require_sheets=True)
        logger.info("Configuration validated")
    except ConfigurationError as e:
        logger.critical(f"Configuration error: {e}")
        raise SystemExit(1)

    try:
        ledger = await get_ledger()
        stats = await ledger.store.get_stats()
        logger.info(
            f"Ledger ready: {stats['buyers']} buyers, "
            f"{stats['revenue_records']} daily records"
        )
    except Exception as e:
        logger.error(f"Ledger initialization failed: {e}", exc_info=True)
        raise  # Fail fast - the ledger is required

    logger.info("Tracker ready")


@app.on_event("shutdown")
async def shutdown_event():
    reset_services()
    try:
        await close_store()
        logger.info("DuckDB closed")
    except Exception as e:
        logger.warning(f"Error closing DuckDB: {e}")
    logger.info("Buyer ROI Tracker stopped")


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run("web.main:app", host=WEB_HOST, port=WEB_PORT, log_config=None)


if __name__ == "__main__":
    run()
