"""
Pydantic request/response models for API endpoints.

Provides type-safe models with automatic validation and documentation.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


# ═══════════════════════════════════════════════════════════════════════════════
# HEALTH CHECK
# ═══════════════════════════════════════════════════════════════════════════════

class LedgerStats(BaseModel):
    """DuckDB ledger statistics."""
    status: str
    latency_ms: Optional[float] = None
    buyers: Optional[int] = None
    revenue_records: Optional[int] = None
    date_range: Optional[Dict[str, Optional[str]]] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str = Field(description="Service status: healthy or degraded")
    version: str = Field(description="Application version")
    uptime_seconds: int = Field(description="Uptime in seconds")
    correlation_id: Optional[str] = Field(None, description="Request correlation ID")
    ledger: LedgerStats
    sheets: Optional[Dict[str, Any]] = Field(None, description="Sheet cache statistics")


class MetricsResponse(BaseModel):
    """Application metrics response."""
    uptime_seconds: int
    correlation_id: Optional[str] = None
    requests: Dict[str, int] = Field(default_factory=dict)
    errors: Dict[str, int] = Field(default_factory=dict)
    timing: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


# ═══════════════════════════════════════════════════════════════════════════════
# POSTBACK
# ═══════════════════════════════════════════════════════════════════════════════

class PostbackRequest(BaseModel):
    """
    Conversion postback from the tracker.

    Only campaign_name and payout are used; anything else the tracker sends
    is accepted and ignored.
    """
    model_config = ConfigDict(extra="allow")

    campaign_name: Optional[str] = Field(None, description="Campaign label, buyer is the last '|' segment")
    payout: Any = Field(None, description="Payout amount, floored to whole units")


class PostbackResponse(BaseModel):
    status: str = "received"
    buyer: str
    amount: int
    date: str
    dayIncome: float
    dayFirstdeps: int


# ═══════════════════════════════════════════════════════════════════════════════
# BUYER REPORTS
# ═══════════════════════════════════════════════════════════════════════════════

class DailyRecordResponse(BaseModel):
    """One day of a buyer report."""
    date: str
    income: str = Field(description="Income formatted as currency")
    expensesAgn: float
    expensesAcc: float
    profit: str = Field(description="Profit formatted as currency")
    Roi: int
    firstdeps: int = 0
    spendAvailable: bool = True
    sheetName: Optional[str] = None


class BuyerRecordsResponse(BaseModel):
    """Per-day records plus totals for one buyer."""
    buyer: str
    startDate: str
    endDate: str
    records: List[DailyRecordResponse]
    totalIncome: float
    totalFirstdeps: int
    totalExpensesAgn: float
    totalExpensesAcc: float
    dailyExpensesAgn: float = Field(0, description="Sum of per-day point lookups (first sheet only)")
    dailyExpensesAcc: float = Field(0, description="Sum of per-day point lookups (first sheet only)")
    totalProfit: float
    totalRoi: int
    totalRecordsCount: int
    reject: float = 0


class DayExpensesResponse(BaseModel):
    """Spend found for one buyer on one date."""
    buyer: str
    date: str
    sheetName: str
    spentAgn: float
    spentAcc: float
    sumSpent: float


# ═══════════════════════════════════════════════════════════════════════════════
# ADMIN
# ═══════════════════════════════════════════════════════════════════════════════

class BuyerSummaryResponse(BaseModel):
    """One row of the all-buyers report."""
    id: int
    nameBuyer: str
    countRevenue: float
    countFirstdeps: int
    reject: float
    totalIncome: str
    totalFirstdeps: int
    expensesAgn: float
    expensesAcc: float
    profit: str
    Roi: int


class RejectRequest(BaseModel):
    """Manual adjustment subtracted once from a buyer's range income."""
    reject: float


class BuyerResponse(BaseModel):
    id: int
    nameBuyer: str
    countRevenue: float
    countFirstdeps: int
    reject: float
