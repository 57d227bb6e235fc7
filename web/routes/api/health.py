"""Health check, metrics, and ledger stats endpoints."""
import time

from fastapi import APIRouter, Depends, Request

from core.ledger import RevenueLedger
from core.lookup import SheetLookupEngine
from core.observability import get_correlation_id, metrics, Timer
from web.config import VERSION
from web.schemas import HealthResponse, MetricsResponse
from ._deps import limiter, get_ledger, get_lookup_engine, get_logger, START_TIME

router = APIRouter()
logger = get_logger(__name__)


@router.get("/health", response_model=HealthResponse)
@limiter.limit("60/minute")
async def health_check(
    request: Request,
    ledger: RevenueLedger = Depends(get_ledger),
    lookup: SheetLookupEngine = Depends(get_lookup_engine),
):
    """Health check endpoint for Docker/load balancer monitoring."""
    uptime_seconds = int(time.time() - START_TIME)

    db_latency_ms = None
    try:
        with Timer("health_check_db") as timer:
            ledger_stats = await ledger.store.get_stats()
        ledger_status = "connected"
        db_latency_ms = round(timer.elapsed_ms, 2)
    except Exception as e:
        logger.warning(f"Health check could not reach the ledger: {e}")
        ledger_stats = None
        ledger_status = f"error: {e}"

    return {
        "status": "healthy" if ledger_stats else "degraded",
        "version": VERSION,
        "uptime_seconds": uptime_seconds,
        "correlation_id": get_correlation_id(),
        "ledger": {
            "status": ledger_status,
            "latency_ms": db_latency_ms,
            **(ledger_stats or {})
        },
        "sheets": lookup.get_stats(),
    }


@router.get("/metrics", response_model=MetricsResponse)
@limiter.limit("60/minute")
async def get_metrics_endpoint(request: Request):
    """Get application metrics."""
    return {
        "uptime_seconds": int(time.time() - START_TIME),
        "correlation_id": get_correlation_id(),
        **metrics.get_stats(),
    }
