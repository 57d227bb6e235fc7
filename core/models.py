"""
Domain models for buyers, revenue and spend.

Provides type-safe dataclasses shared by the ledger, the sheet lookup engine,
the aggregation engine and the web layer.
"""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple


# ═══════════════════════════════════════════════════════════════════════════════
# LEDGER
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class Buyer:
    """Affiliate buyer tracked by name."""
    id: int
    name: str
    count_revenue: float = 0.0
    count_firstdeps: int = 0
    reject: float = 0.0
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Tuple) -> "Buyer":
        """Create Buyer from a `buyers` table row."""
        return cls(
            id=row[0],
            name=row[1],
            count_revenue=float(row[2] or 0),
            count_firstdeps=int(row[3] or 0),
            reject=float(row[4] or 0),
            created_at=row[5] if len(row) > 5 else None,
        )


@dataclass
class RevenueRecord:
    """Accumulated revenue for one buyer on one calendar day."""
    buyer_id: int
    date: date
    income: float = 0.0
    expenses: float = 0.0  # reserved, never written by the ledger
    profit: float = 0.0
    firstdeps: int = 0

    @classmethod
    def from_row(cls, row: Tuple) -> "RevenueRecord":
        """Create RevenueRecord from a `revenue_records` table row."""
        return cls(
            buyer_id=row[0],
            date=row[1],
            income=float(row[2] or 0),
            expenses=float(row[3] or 0),
            profit=float(row[4] or 0),
            firstdeps=int(row[5] or 0),
        )


@dataclass(frozen=True)
class LedgerTotals:
    """Revenue summed over a date range, adjustment already subtracted."""
    total_income: float
    total_firstdeps: int
    adjustment: float = 0.0


@dataclass(frozen=True)
class PostbackEvent:
    """Revenue event extracted from an external postback."""
    buyer_name: str
    amount: int
    campaign_name: str = ""


# ═══════════════════════════════════════════════════════════════════════════════
# SPEND
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ExpenseTotal:
    """Agency and account spend, never persisted."""
    agency_spend: float = 0.0
    account_spend: float = 0.0

    @property
    def sum_spent(self) -> float:
        return self.agency_spend + self.account_spend

    def __add__(self, other: "ExpenseTotal") -> "ExpenseTotal":
        return ExpenseTotal(
            agency_spend=self.agency_spend + other.agency_spend,
            account_spend=self.account_spend + other.account_spend,
        )

    def to_dict(self) -> Dict[str, float]:
        return {
            "agencySpend": self.agency_spend,
            "accountSpend": self.account_spend,
            "sumSpent": self.sum_spent,
        }


ZERO_SPEND = ExpenseTotal()


@dataclass(frozen=True)
class DaySpend:
    """Spend found for one buyer on one date, with the sheet it came from."""
    spend: ExpenseTotal
    sheet_name: str

    @property
    def agency_spend(self) -> float:
        return self.spend.agency_spend

    @property
    def account_spend(self) -> float:
        return self.spend.account_spend

    @property
    def sum_spent(self) -> float:
        return self.spend.sum_spent


# ═══════════════════════════════════════════════════════════════════════════════
# AGGREGATES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class DailyResult:
    """Income vs spend for one buyer on one day."""
    date: date
    income: float
    spend: ExpenseTotal
    profit: float
    roi: int
    firstdeps: int = 0
    spend_available: bool = True
    sheet_name: Optional[str] = None


@dataclass(frozen=True)
class RangeResult:
    """
    Per-day results plus range totals for one buyer.

    `total_spend` comes from the range-level sheet scan (all sheets), while
    `daily_spend` is the sum of per-day point lookups (first sheet only).
    The two agree only when the buyer appears on exactly one sheet.
    """
    buyer_name: str
    start_date: date
    end_date: date
    records: List[DailyResult]
    total_income: float
    total_firstdeps: int
    total_spend: ExpenseTotal
    daily_spend: ExpenseTotal
    total_profit: float
    total_roi: int
    adjustment: float = 0.0

    @property
    def total_records_count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class BuyerSummary:
    """One row of the all-buyers report."""
    buyer: Buyer
    total_income: float
    total_firstdeps: int
    spend: ExpenseTotal
    profit: float
    roi: int

