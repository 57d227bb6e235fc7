"""
Buyer spend lookups over cached spend sheets.

Two lookups with deliberately different sheet policies:

- lookup_single_date: the FIRST sheet (in provider order) whose header has
  the buyer decides the answer. A missing date row there is terminal, later
  sheets are not consulted.
- lookup_range_total: EVERY sheet with the buyer's column contributes.

For a buyer present on several sheets the sum of daily lookups therefore
differs from the range total. Both behaviors feed reported numbers, so they
are kept distinct.
"""
import time
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

from core.cache import Clock
from core.config import SheetsConfig, config
from core.exceptions import BuyerSheetNotFoundError, DateRowNotFoundError, SheetsError
from core.models import DaySpend, ExpenseTotal
from core.observability import get_logger
from core.sheet_layout import SheetSnapshot
from core.sheets import (
    CredentialCache,
    SheetDataCache,
    SheetMetadataCache,
    SheetsProvider,
)

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# POINT LOOKUP RESULT
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Found:
    value: DaySpend

    def unwrap(self) -> DaySpend:
        return self.value


@dataclass(frozen=True)
class SheetNotFound:
    buyer_name: str

    def unwrap(self) -> DaySpend:
        raise BuyerSheetNotFoundError(self.buyer_name)


@dataclass(frozen=True)
class DateNotFound:
    buyer_name: str
    sheet_name: str
    date: str

    def unwrap(self) -> DaySpend:
        raise DateRowNotFoundError(self.buyer_name, self.sheet_name, self.date)


LookupResult = Union[Found, SheetNotFound, DateNotFound]


def _date_key(day: Union[date, str]) -> str:
    return day.isoformat() if isinstance(day, date) else str(day)


class SheetLookupEngine:
    """
    Locates a buyer's spend columns across all sheets of the spreadsheet.

    Owns its credential, metadata and row caches. Pass `clock` to control
    cache expiry in tests.
    """

    def __init__(
        self,
        provider: SheetsProvider,
        ttl_seconds: Optional[float] = None,
        clock: Optional[Clock] = None,
        data_start_row: Optional[int] = None,
        sheets_config: Optional[SheetsConfig] = None,
    ):
        cfg = sheets_config or config.sheets
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else cfg.cache_ttl_seconds
        self.data_start_row = data_start_row if data_start_row is not None else cfg.data_start_row
        self.clock: Clock = clock or time.monotonic

        self.credentials = CredentialCache(provider, self.ttl_seconds, self.clock)
        self.metadata = SheetMetadataCache(provider, self.credentials)
        self.data = SheetDataCache(provider, self.credentials, self.ttl_seconds, self.clock)

    async def get_sheets(self) -> List[SheetSnapshot]:
        """All sheets in provider order, served from cache where fresh."""
        snapshots = []
        for name in await self.metadata.get_sheet_names():
            snapshots.append(await self.data.get_sheet(name))
        return snapshots

    async def lookup_single_date(self, buyer_name: str, day: Union[date, str]) -> LookupResult:
        """
        Spend for one buyer on one date.

        The date matches column 0 of a row by exact string. Provider errors
        propagate; misses are returned as SheetNotFound / DateNotFound.
        """
        date_key = _date_key(day)

        for name in await self.metadata.get_sheet_names():
            sheet = await self.data.get_sheet(name)
            if not sheet.has_buyer(buyer_name):
                continue

            spend = sheet.spend_on(buyer_name, date_key)
            if spend is None:
                return DateNotFound(buyer_name=buyer_name, sheet_name=sheet.name, date=date_key)
            return Found(DaySpend(spend=spend, sheet_name=sheet.name))

        return SheetNotFound(buyer_name=buyer_name)

    async def get_day_spend(self, buyer_name: str, day: Union[date, str]) -> DaySpend:
        """Like lookup_single_date, but raises SpendLookupError on a miss."""
        result = await self.lookup_single_date(buyer_name, day)
        return result.unwrap()

    async def lookup_range_total(self, buyer_name: str, start: date, end: date) -> ExpenseTotal:
        """
        Spend summed over [start, end] across every sheet with the buyer.

        Never raises: provider failures and unknown buyers yield zero totals
        so that reports stay available.
        """
        total = ExpenseTotal()
        matched = 0

        try:
            sheets = await self.get_sheets()
        except SheetsError as e:
            logger.warning(
                f"Range spend unavailable for {buyer_name}, using zero",
                extra={"buyer": buyer_name, "error": str(e)},
            )
            return total

        for sheet in sheets:
            if not sheet.has_buyer(buyer_name):
                continue
            matched += 1
            total = total + sheet.spend_between(buyer_name, start, end, self.data_start_row)

        if not matched:
            logger.debug(f"Buyer {buyer_name} not found on any sheet")
        return total

    def get_stats(self) -> dict:
        return {
            "authorizations": self.credentials.authorizations,
            "sheets": self.data.get_stats(),
        }
