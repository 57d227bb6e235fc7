"""Per-buyer report endpoints: daily result, range records, raw day spend."""
from fastapi import APIRouter, Depends, HTTPException, Query, Request

from core.aggregation import AggregationEngine
from core.ledger import RevenueLedger
from core.lookup import DateNotFound, SheetLookupEngine, SheetNotFound
from web.config import DEFAULT_RATE_LIMIT
from web.schemas import BuyerRecordsResponse, DailyRecordResponse, DayExpensesResponse
from web.services.report_service import serialize_daily, serialize_day_spend, serialize_range
from ._deps import (
    limiter, get_engine, get_ledger, get_lookup_engine, get_logger,
    validate_buyer_name, validate_date_range, validate_date_string,
    MAX_RANGE_DAYS,
)

router = APIRouter(prefix="/buyers")
logger = get_logger(__name__)


@router.get("/{name}/daily", response_model=DailyRecordResponse)
@limiter.limit(DEFAULT_RATE_LIMIT)
async def get_buyer_daily(
    request: Request,
    name: str,
    date: str = Query(..., description="Day in YYYY-MM-DD"),
    engine: AggregationEngine = Depends(get_engine),
):
    """Income, spend, profit and ROI for one buyer on one day."""
    buyer_name = validate_buyer_name(name)
    day = validate_date_string(date)
    return serialize_daily(await engine.aggregate(buyer_name, day))


@router.get("/{name}/records", response_model=BuyerRecordsResponse)
@limiter.limit(DEFAULT_RATE_LIMIT)
async def get_buyer_records(
    request: Request,
    name: str,
    startDate: str = Query(..., description="Range start in YYYY-MM-DD"),
    endDate: str = Query(..., description="Range end in YYYY-MM-DD"),
    ledger: RevenueLedger = Depends(get_ledger),
    engine: AggregationEngine = Depends(get_engine),
):
    """Per-day records plus totals for one buyer over an inclusive range."""
    buyer_name = validate_buyer_name(name)
    start, end = validate_date_range(startDate, endDate, max_days=MAX_RANGE_DAYS)

    if await ledger.get_buyer(buyer_name) is None:
        raise HTTPException(status_code=404, detail=f"Buyer not found: {buyer_name}")

    logger.info(
        f"Buyer records requested for {buyer_name}",
        extra={"buyer": buyer_name, "start_date": startDate, "end_date": endDate},
    )
    return serialize_range(await engine.aggregate_range(buyer_name, start, end))


@router.get("/{name}/expenses", response_model=DayExpensesResponse)
@limiter.limit(DEFAULT_RATE_LIMIT)
async def get_buyer_expenses(
    request: Request,
    name: str,
    date: str = Query(..., description="Day in YYYY-MM-DD"),
    lookup: SheetLookupEngine = Depends(get_lookup_engine),
):
    """
    Raw spend for one buyer on one date from the spend sheets.

    Misses are surfaced as 404 rather than reported as zero.
    """
    buyer_name = validate_buyer_name(name)
    day = validate_date_string(date)

    result = await lookup.lookup_single_date(buyer_name, day)
    if isinstance(result, SheetNotFound):
        raise HTTPException(status_code=404, detail=f"No spend sheet has buyer {buyer_name}")
    if isinstance(result, DateNotFound):
        raise HTTPException(
            status_code=404,
            detail=f"Date {result.date} not found on sheet {result.sheet_name}",
        )
    return serialize_day_spend(buyer_name, day.isoformat(), result.unwrap())
