"""
Aggregation of ledger income with spreadsheet spend into profit and ROI.

Spend-side failures never break a report here: a missing buyer column, a
missing date row or a provider error all count as zero spend, flagged on the
daily result. Ledger failures propagate.
"""
import asyncio
import math
from datetime import date, timedelta
from typing import Iterator, List, Optional

from core.exceptions import SheetsError
from core.ledger import RevenueLedger
from core.lookup import Found, SheetLookupEngine
from core.models import (
    Buyer,
    BuyerSummary,
    DailyResult,
    DaySpend,
    ExpenseTotal,
    RangeResult,
    RevenueRecord,
    ZERO_SPEND,
)
from core.observability import get_logger, timed

logger = get_logger(__name__)


def compute_roi(income: float, spend: float) -> int:
    """
    ROI in percent, rounded half up: (income - spend) / spend * 100.

    Zero spend, or any non-finite intermediate, gives 0.
    """
    if not spend or not math.isfinite(spend):
        return 0
    roi = (income - spend) / spend * 100
    if not math.isfinite(roi):
        return 0
    return int(math.floor(roi + 0.5))


def iter_days(start: date, end: date) -> Iterator[date]:
    """Every calendar day in [start, end]."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def _daily_result(day: date, record: Optional[RevenueRecord], day_spend: Optional[DaySpend]) -> DailyResult:
    income = record.income if record else 0.0
    spend = day_spend.spend if day_spend else ZERO_SPEND
    return DailyResult(
        date=day,
        income=income,
        spend=spend,
        profit=income - spend.sum_spent,
        roi=compute_roi(income, spend.sum_spent),
        firstdeps=record.firstdeps if record else 0,
        spend_available=day_spend is not None,
        sheet_name=day_spend.sheet_name if day_spend else None,
    )


class AggregationEngine:
    """Combines RevenueLedger income with SheetLookupEngine spend."""

    def __init__(self, ledger: RevenueLedger, lookup: SheetLookupEngine):
        self.ledger = ledger
        self.lookup = lookup

    async def _day_spend(self, buyer_name: str, day: date) -> Optional[DaySpend]:
        """Point lookup with every failure absorbed into None."""
        try:
            result = await self.lookup.lookup_single_date(buyer_name, day)
        except SheetsError as e:
            logger.warning(
                f"Spend lookup failed for {buyer_name} on {day}, using zero",
                extra={"buyer": buyer_name, "date": day.isoformat(), "error": str(e)},
            )
            return None

        if isinstance(result, Found):
            return result.value
        logger.debug(f"No spend for {buyer_name} on {day}: {type(result).__name__}")
        return None

    async def aggregate(self, buyer_name: str, day: date) -> DailyResult:
        """Income, spend, profit and ROI for one buyer on one day."""
        buyer = await self.ledger.get_buyer(buyer_name)
        record = await self.ledger.get_record(buyer.id, day) if buyer else None
        day_spend = await self._day_spend(buyer_name, day)
        return _daily_result(day, record, day_spend)

    @timed("aggregate_range")
    async def aggregate_range(self, buyer_name: str, start: date, end: date) -> RangeResult:
        """
        Per-day results and totals for one buyer over [start, end].

        Per-day spend comes from concurrent point lookups; the range total
        comes from a separate scan of every sheet. The buyer's reject value
        is subtracted from total income once.
        """
        buyer: Optional[Buyer] = await self.ledger.get_buyer(buyer_name)
        records = await self.ledger.daily_records(buyer.id, start, end) if buyer else {}
        days = list(iter_days(start, end))

        day_spends, total_spend = await asyncio.gather(
            asyncio.gather(*(self._day_spend(buyer_name, day) for day in days)),
            self.lookup.lookup_range_total(buyer_name, start, end),
        )

        daily = [
            _daily_result(day, records.get(day), day_spend)
            for day, day_spend in zip(days, day_spends)
        ]

        daily_spend = ExpenseTotal()
        for result in daily:
            daily_spend = daily_spend + result.spend

        adjustment = buyer.reject if buyer else 0.0
        total_income = sum(result.income for result in daily) - adjustment
        total_profit = total_income - total_spend.sum_spent

        return RangeResult(
            buyer_name=buyer_name,
            start_date=start,
            end_date=end,
            records=daily,
            total_income=total_income,
            total_firstdeps=sum(result.firstdeps for result in daily),
            total_spend=total_spend,
            daily_spend=daily_spend,
            total_profit=total_profit,
            total_roi=compute_roi(total_income, total_spend.sum_spent),
            adjustment=adjustment,
        )

    async def summarize_buyer(self, buyer: Buyer, start: date, end: date) -> BuyerSummary:
        totals, spend = await asyncio.gather(
            self.ledger.query_range(buyer.id, start, end),
            self.lookup.lookup_range_total(buyer.name, start, end),
        )
        return BuyerSummary(
            buyer=buyer,
            total_income=totals.total_income,
            total_firstdeps=totals.total_firstdeps,
            spend=spend,
            profit=totals.total_income - spend.sum_spent,
            roi=compute_roi(totals.total_income, spend.sum_spent),
        )

    @timed("aggregate_all_buyers")
    async def aggregate_all_buyers(self, start: date, end: date) -> List[BuyerSummary]:
        """One summary per known buyer, ordered by name."""
        buyers = await self.ledger.list_buyers()
        return list(await asyncio.gather(
            *(self.summarize_buyer(buyer, start, end) for buyer in buyers)
        ))
