"""
Report service: engine singletons and JSON shaping for the API layer.

The engines are created lazily on first use and shared by every request so
that sheet caches survive across requests.
"""
import asyncio
import logging
import math
from typing import Any, Dict, List, Optional

from core.aggregation import AggregationEngine
from core.duckdb_store import get_store
from core.ledger import RevenueLedger
from core.lookup import SheetLookupEngine
from core.models import BuyerSummary, DailyResult, DaySpend, RangeResult
from core.sheets import GoogleSheetsProvider

logger = logging.getLogger(__name__)

_ledger: Optional[RevenueLedger] = None
_lookup: Optional[SheetLookupEngine] = None
_engine: Optional[AggregationEngine] = None
_init_lock = asyncio.Lock()


async def get_ledger() -> RevenueLedger:
    """Get singleton RevenueLedger over the shared DuckDB store."""
    global _ledger
    async with _init_lock:
        if _ledger is None:
            _ledger = RevenueLedger(await get_store())
    return _ledger


def get_lookup_engine() -> SheetLookupEngine:
    """Get singleton SheetLookupEngine backed by Google Sheets."""
    global _lookup
    if _lookup is None:
        _lookup = SheetLookupEngine(GoogleSheetsProvider.from_config())
        logger.info("Sheet lookup engine initialized")
    return _lookup


async def get_engine() -> AggregationEngine:
    """Get singleton AggregationEngine."""
    global _engine
    if _engine is None:
        _engine = AggregationEngine(await get_ledger(), get_lookup_engine())
    return _engine


def reset_services() -> None:
    """Drop the engine singletons (the store is closed separately)."""
    global _ledger, _lookup, _engine
    _ledger = None
    _lookup = None
    _engine = None


# ═══════════════════════════════════════════════════════════════════════════════
# FORMATTING
# ═══════════════════════════════════════════════════════════════════════════════

def format_currency(value: float) -> str:
    """
    Format a dollar amount: "$150", "-$15", "$12.5".

    At most two decimals, trailing zeros dropped.
    """
    if value is None or not math.isfinite(value):
        value = 0.0
    amount = f"{abs(value):.2f}".rstrip("0").rstrip(".")
    if amount == "0":
        return "$0"
    return f"-${amount}" if value < 0 else f"${amount}"


def _number(value: float) -> float:
    """Whole amounts as int so JSON shows 150, not 150.0."""
    return int(value) if float(value).is_integer() else round(value, 2)


def serialize_daily(result: DailyResult) -> Dict[str, Any]:
    return {
        "date": result.date.isoformat(),
        "income": format_currency(result.income),
        "expensesAgn": _number(result.spend.agency_spend),
        "expensesAcc": _number(result.spend.account_spend),
        "profit": format_currency(result.profit),
        "Roi": result.roi,
        "firstdeps": result.firstdeps,
        "spendAvailable": result.spend_available,
        "sheetName": result.sheet_name,
    }


def serialize_range(result: RangeResult) -> Dict[str, Any]:
    return {
        "buyer": result.buyer_name,
        "startDate": result.start_date.isoformat(),
        "endDate": result.end_date.isoformat(),
        "records": [serialize_daily(day) for day in result.records],
        "totalIncome": _number(result.total_income),
        "totalFirstdeps": result.total_firstdeps,
        "totalExpensesAgn": _number(result.total_spend.agency_spend),
        "totalExpensesAcc": _number(result.total_spend.account_spend),
        "dailyExpensesAgn": _number(result.daily_spend.agency_spend),
        "dailyExpensesAcc": _number(result.daily_spend.account_spend),
        "totalProfit": _number(result.total_profit),
        "totalRoi": result.total_roi,
        "totalRecordsCount": result.total_records_count,
        "reject": _number(result.adjustment),
    }


def serialize_day_spend(buyer_name: str, date_key: str, day_spend: DaySpend) -> Dict[str, Any]:
    return {
        "buyer": buyer_name,
        "date": date_key,
        "sheetName": day_spend.sheet_name,
        "spentAgn": _number(day_spend.agency_spend),
        "spentAcc": _number(day_spend.account_spend),
        "sumSpent": _number(day_spend.sum_spent),
    }


def serialize_buyer_summary(summary: BuyerSummary) -> Dict[str, Any]:
    buyer = summary.buyer
    return {
        "id": buyer.id,
        "nameBuyer": buyer.name,
        "countRevenue": _number(buyer.count_revenue),
        "countFirstdeps": buyer.count_firstdeps,
        "reject": _number(buyer.reject),
        "totalIncome": format_currency(summary.total_income),
        "totalFirstdeps": summary.total_firstdeps,
        "expensesAgn": _number(summary.spend.agency_spend),
        "expensesAcc": _number(summary.spend.account_spend),
        "profit": format_currency(summary.profit),
        "Roi": summary.roi,
    }


def serialize_buyer_summaries(summaries: List[BuyerSummary]) -> List[Dict[str, Any]]:
    return [serialize_buyer_summary(summary) for summary in summaries]
