"""Admin operations: all-buyers report, manual reject adjustment, sheet cache."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from core.aggregation import AggregationEngine
from core.ledger import RevenueLedger
from core.lookup import SheetLookupEngine
from web.config import DEFAULT_RATE_LIMIT
from web.schemas import BuyerResponse, BuyerSummaryResponse, RejectRequest
from web.services.report_service import serialize_buyer_summaries
from ._deps import (
    limiter, get_engine, get_ledger, get_lookup_engine, get_logger,
    validate_date_range, MAX_RANGE_DAYS,
)

router = APIRouter(prefix="/admin")
logger = get_logger(__name__)


# ─── Buyers ───────────────────────────────────────────────────────────────────

@router.get("/buyers", response_model=List[BuyerSummaryResponse])
@limiter.limit(DEFAULT_RATE_LIMIT)
async def list_buyers_report(
    request: Request,
    startDate: str = Query(..., description="Range start in YYYY-MM-DD"),
    endDate: str = Query(..., description="Range end in YYYY-MM-DD"),
    engine: AggregationEngine = Depends(get_engine),
):
    """Income, spend, profit and ROI for every buyer, ordered by name."""
    start, end = validate_date_range(startDate, endDate, max_days=MAX_RANGE_DAYS)
    summaries = await engine.aggregate_all_buyers(start, end)
    return serialize_buyer_summaries(summaries)


@router.put("/buyers/{name}/reject", response_model=BuyerResponse)
@limiter.limit(DEFAULT_RATE_LIMIT)
async def set_buyer_reject(
    request: Request,
    name: str,
    body: RejectRequest,
    ledger: RevenueLedger = Depends(get_ledger),
):
    """Set the amount subtracted once from the buyer's range income."""
    buyer = await ledger.set_adjustment(name, body.reject)
    if buyer is None:
        raise HTTPException(status_code=404, detail=f"Buyer not found: {name}")

    logger.info(f"Reject set for {buyer.name}", extra={"buyer": buyer.name, "reject": buyer.reject})
    return {
        "id": buyer.id,
        "nameBuyer": buyer.name,
        "countRevenue": buyer.count_revenue,
        "countFirstdeps": buyer.count_firstdeps,
        "reject": buyer.reject,
    }


# ─── Sheet Cache ──────────────────────────────────────────────────────────────

@router.get("/sheets/stats")
@limiter.limit("60/minute")
async def get_sheet_cache_stats(
    request: Request,
    lookup: SheetLookupEngine = Depends(get_lookup_engine),
):
    """Sheet cache hit/miss statistics and authorization count."""
    return lookup.get_stats()


@router.post("/sheets/invalidate")
@limiter.limit("10/minute")
async def invalidate_sheet_cache(
    request: Request,
    sheet: str = Query(None, description="Sheet to drop (default: all)"),
    lookup: SheetLookupEngine = Depends(get_lookup_engine),
):
    """Drop cached sheet rows so the next lookup refetches them."""
    removed = lookup.data.invalidate(sheet)
    logger.info(f"Sheet cache invalidated: {removed} entries", extra={"sheet": sheet})
    return {"status": "success", "invalidated": removed}
