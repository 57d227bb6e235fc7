"""
Revenue ledger: accumulates postback revenue per buyer per calendar day.

Events accumulate, they never overwrite, and there is no deduplication: the
same postback delivered twice is counted twice. The calendar day is taken in
the configured reference timezone, not the server's local time.
"""
import math
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from core.config import config
from core.duckdb_store import DuckDBStore
from core.exceptions import ValidationError
from core.models import Buyer, LedgerTotals, PostbackEvent, RevenueRecord
from core.observability import get_logger
from core.validators import validate_amount, validate_buyer_name

logger = get_logger(__name__)

Now = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_postback(
    campaign_name: str,
    payout,
    separator: Optional[str] = None,
) -> PostbackEvent:
    """
    Extract the buyer and amount from a postback.

    The buyer is the last `separator`-delimited segment of the campaign label
    ("offer | geo | Artur" -> "Artur"); the payout is floored to whole units.

    Raises:
        ValidationError: If the label yields no buyer or payout is not numeric
    """
    sep = separator or config.ledger.label_separator
    if not isinstance(campaign_name, str) or not campaign_name.strip():
        raise ValidationError("campaign_name", "Campaign name is required", campaign_name)

    buyer_name = validate_buyer_name(campaign_name.split(sep)[-1], field="campaign_name")
    amount = math.floor(validate_amount(payout))

    return PostbackEvent(buyer_name=buyer_name, amount=amount, campaign_name=campaign_name)


class RevenueLedger:
    """Per-buyer, per-day revenue backed by the DuckDB store."""

    def __init__(
        self,
        store: DuckDBStore,
        tz: Optional[ZoneInfo] = None,
        now: Optional[Now] = None,
    ):
        self.store = store
        self.tz = tz or config.ledger.tz
        self._now: Now = now or _utc_now

    def today(self) -> date:
        """Current calendar day in the reference timezone."""
        return self._now().astimezone(self.tz).date()

    async def record_event(self, buyer_name: str, amount: float) -> RevenueRecord:
        """
        Add `amount` to the buyer's totals and today's record, +1 firstdep.

        Creates the buyer and/or the day's record on first sight.
        """
        name = validate_buyer_name(buyer_name)
        day = self.today()

        buyer, record = await self.store.accumulate_revenue(name, day, amount)
        logger.info(
            f"Revenue recorded for {name}",
            extra={
                "buyer": name,
                "buyer_id": buyer.id,
                "date": day.isoformat(),
                "amount": amount,
                "day_income": record.income,
                "day_firstdeps": record.firstdeps,
            },
        )
        return record

    async def record_postback(self, event: PostbackEvent) -> RevenueRecord:
        return await self.record_event(event.buyer_name, event.amount)

    async def get_buyer(self, buyer_name: str) -> Optional[Buyer]:
        return await self.store.get_buyer_by_name(buyer_name)

    async def list_buyers(self) -> List[Buyer]:
        return await self.store.list_buyers()

    async def get_record(self, buyer_id: int, day: date) -> Optional[RevenueRecord]:
        return await self.store.get_revenue_record(buyer_id, day)

    async def set_adjustment(self, buyer_name: str, value: float) -> Optional[Buyer]:
        """Set the buyer's reject value. Returns None for an unknown buyer."""
        return await self.store.set_buyer_reject(
            validate_buyer_name(buyer_name),
            validate_amount(value, field="reject"),
        )

    async def daily_records(
        self,
        buyer_id: int,
        start_date: date,
        end_date: date,
    ) -> Dict[date, RevenueRecord]:
        records = await self.store.get_revenue_records(buyer_id, start_date, end_date)
        return {record.date: record for record in records}

    async def query_range(self, buyer_id: int, start_date: date, end_date: date) -> LedgerTotals:
        """
        Income and firstdeps over [start_date, end_date].

        The buyer's reject value is subtracted from income once per query.
        """
        income, firstdeps = await self.store.get_revenue_totals(buyer_id, start_date, end_date)
        buyer = await self.store.get_buyer(buyer_id)
        adjustment = buyer.reject if buyer else 0.0
        return LedgerTotals(
            total_income=income - adjustment,
            total_firstdeps=firstdeps,
            adjustment=adjustment,
        )
