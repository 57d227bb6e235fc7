"""
Pytest configuration and shared fixtures.
"""
from datetime import date, datetime, timezone
from typing import Any, Dict, List
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio

from core.duckdb_store import DuckDBStore
from core.ledger import RevenueLedger
from core.lookup import SheetLookupEngine
from tests.fakes import MINUTE, FakeClock, FakeSheetsProvider, make_sheet


@pytest.fixture
def artur_sheets() -> Dict[str, List[List[Any]]]:
    """Artur on one sheet: 10/5 on 2024-01-01 and 0/0 on 2024-01-02."""
    return {
        "January": make_sheet(
            ["Date", "Artur", "", "Boris", ""],
            [
                ["2024-01-01", "10", "5", "7", "3"],
                ["2024-01-02", "0", "0", "1", "1"],
                ["2024-01-03", "2", "", "abc", "4"],
            ],
        ),
    }


@pytest.fixture
def multi_sheet_data() -> Dict[str, List[List[Any]]]:
    """Artur appears on two sheets; Boris only on the second."""
    return {
        "Agency A": make_sheet(
            ["Date", "Artur", ""],
            [
                ["2024-02-01", "10", "5"],
                ["2024-02-02", "20", "0"],
            ],
        ),
        "Agency B": make_sheet(
            ["Date", "Boris", "", "Artur", ""],
            [
                ["2024-02-01", "1", "1", "100", "50"],
                ["2024-02-02 12:30", "2", "2", "200", "0"],
            ],
        ),
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def provider(artur_sheets) -> FakeSheetsProvider:
    return FakeSheetsProvider(artur_sheets)


@pytest.fixture
def lookup(provider, clock) -> SheetLookupEngine:
    return SheetLookupEngine(provider, ttl_seconds=30 * MINUTE, clock=clock, data_start_row=3)


@pytest_asyncio.fixture
async def store():
    """Fresh in-memory DuckDB store per test."""
    db = DuckDBStore(":memory:", query_timeout=10)
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def fixed_now():
    """2024-01-02 12:00 UTC, which is 15:00 in Moscow."""
    return lambda: datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def ledger(store, fixed_now) -> RevenueLedger:
    return RevenueLedger(store, tz=ZoneInfo("Europe/Moscow"), now=fixed_now)


@pytest_asyncio.fixture
async def seeded_ledger(ledger, store) -> RevenueLedger:
    """Artur with income 100 on 2024-01-01 and 50 on 2024-01-02."""
    await store.accumulate_revenue("Artur", date(2024, 1, 1), 100)
    await store.accumulate_revenue("Artur", date(2024, 1, 2), 50)
    return ledger
