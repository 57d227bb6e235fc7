"""
Integration tests for the DuckDB ledger store.
"""
import time
from datetime import date

import pytest

from core.duckdb_store import DuckDBStore
from core.exceptions import LedgerError, QueryTimeoutError


class TestStoreLifecycle:

    @pytest.mark.asyncio
    async def test_connection_info(self, store):
        info = store.get_connection_info()
        assert info["status"] == "active"
        assert info["db_path"] == ":memory:"

    @pytest.mark.asyncio
    async def test_empty_stats(self, store):
        stats = await store.get_stats()
        assert stats == {
            "buyers": 0,
            "revenue_records": 0,
            "date_range": {"min": None, "max": None},
        }

    @pytest.mark.asyncio
    async def test_stats_after_accumulation(self, store):
        await store.accumulate_revenue("Artur", date(2024, 1, 1), 100)
        await store.accumulate_revenue("Artur", date(2024, 1, 3), 50)

        stats = await store.get_stats()
        assert stats["buyers"] == 1
        assert stats["revenue_records"] == 2
        assert stats["date_range"] == {"min": "2024-01-01", "max": "2024-01-03"}

    @pytest.mark.asyncio
    async def test_file_backed_persistence(self, tmp_path):
        db_path = str(tmp_path / "nested" / "ledger.duckdb")

        first = DuckDBStore(db_path)
        await first.connect()
        await first.accumulate_revenue("Artur", date(2024, 1, 1), 100)
        await first.close()
        assert first.get_connection_info()["status"] == "not_initialized"

        second = DuckDBStore(db_path)
        await second.connect()
        buyer = await second.get_buyer_by_name("Artur")
        await second.close()

        assert buyer.count_revenue == 100

    @pytest.mark.asyncio
    async def test_connects_on_first_use(self):
        db = DuckDBStore(":memory:")
        assert await db.list_buyers() == []
        await db.close()


class TestStoreErrors:

    @pytest.mark.asyncio
    async def test_bad_query_is_ledger_error(self, store):
        with pytest.raises(LedgerError):
            await store._fetch_one("SELECT * FROM no_such_table")

    @pytest.mark.asyncio
    async def test_timeout(self):
        db = DuckDBStore(":memory:", query_timeout=0.05)
        await db.connect()
        try:
            with pytest.raises(QueryTimeoutError) as exc_info:
                await db._run(lambda conn: time.sleep(0.5), "slow_work")
            assert exc_info.value.timeout == 0.05
        finally:
            await db.close()

    @pytest.mark.asyncio
    async def test_failed_transaction_rolls_back(self, store):
        await store.accumulate_revenue("Artur", date(2024, 1, 1), 100)

        def _work(conn):
            conn.execute("UPDATE buyers SET reject = 99 WHERE name = 'Artur'")
            conn.execute("SELECT * FROM no_such_table")

        with pytest.raises(LedgerError):
            await store._transaction(_work, "broken")

        assert (await store.get_buyer_by_name("Artur")).reject == 0


class TestRepositories:

    @pytest.mark.asyncio
    async def test_accumulate_returns_rows(self, store):
        buyer, record = await store.accumulate_revenue("Artur", date(2024, 1, 1), 100)
        assert buyer.name == "Artur"
        assert record.buyer_id == buyer.id
        assert record.income == 100

        buyer2, record2 = await store.accumulate_revenue("Artur", date(2024, 1, 1), 25, firstdeps=0)
        assert buyer2.id == buyer.id
        assert buyer2.count_revenue == 125
        assert buyer2.count_firstdeps == 1
        assert record2.income == 125
        assert record2.firstdeps == 1

    @pytest.mark.asyncio
    async def test_buyer_ids_distinct(self, store):
        artur, _ = await store.accumulate_revenue("Artur", date(2024, 1, 1), 1)
        boris, _ = await store.accumulate_revenue("Boris", date(2024, 1, 1), 1)
        assert artur.id != boris.id
        assert (await store.get_buyer(boris.id)).name == "Boris"

    @pytest.mark.asyncio
    async def test_revenue_totals_empty(self, store):
        assert await store.get_revenue_totals(1, date(2024, 1, 1), date(2024, 1, 31)) == (0.0, 0)

    @pytest.mark.asyncio
    async def test_missing_record(self, store):
        assert await store.get_revenue_record(1, date(2024, 1, 1)) is None
