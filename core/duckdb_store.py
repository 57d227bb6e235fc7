"""
DuckDB store for the revenue ledger.

Provides persistent storage for buyers and their per-day revenue records.
Accumulation is done in SQL (conditional increment on conflict) so that
concurrent events for the same buyer/day never lose an update.

Domain-specific query methods are organized into repository mixins:
- BuyersMixin: Buyer lookup, accumulation and manual adjustment
- RevenueMixin: Per-day revenue accumulation and range queries
"""
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional, TypeVar

import duckdb

from core.exceptions import LedgerError, QueryTimeoutError
from core.duckdb_constants import DB_PATH, DEFAULT_QUERY_TIMEOUT, MEMORY_DB, db_dir
from core.repositories import BuyersMixin, RevenueMixin

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DuckDBStore(BuyersMixin, RevenueMixin):
    """
    Async-compatible DuckDB store for ledger data.

    Features:
    - Persistent storage (survives restarts), or in-memory for tests
    - Atomic accumulate-in-place updates
    - Thread offloading to avoid blocking asyncio event loop
    """

    def __init__(self, db_path: str = DB_PATH, query_timeout: float = DEFAULT_QUERY_TIMEOUT):
        self.db_path = str(db_path)
        self.query_timeout = query_timeout
        self._connection: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = asyncio.Lock()  # Serializes all database access

        # Thread pool for offloading blocking DB operations
        self._executor: Optional[ThreadPoolExecutor] = None

        # Stats for monitoring
        self._total_queries = 0

    async def connect(self) -> None:
        """Initialize database connection, schema, and thread pool."""
        if self.db_path != MEMORY_DB:
            db_dir(self.db_path).mkdir(parents=True, exist_ok=True)

        async with self._lock:
            if self._connection is None:
                self._connection = duckdb.connect(self.db_path)
                self._init_schema(self._connection)

                # Single worker - DuckDB requires serialized access
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="duckdb")

                logger.info(f"DuckDB connected: {self.db_path}")

    async def close(self) -> None:
        """Close database connection and thread pool."""
        async with self._lock:
            if self._executor:
                self._executor.shutdown(wait=True)
                self._executor = None

            if self._connection:
                self._connection.close()
                self._connection = None
                logger.info("DuckDB connection closed")

    def get_connection_info(self) -> Dict[str, Any]:
        """Get connection info for monitoring."""
        return {
            "status": "active" if self._connection else "not_initialized",
            "total_queries": self._total_queries,
            "db_path": self.db_path,
        }

    @asynccontextmanager
    async def connection(self):
        """Get database connection, connecting on first use.

        Acquires lock to ensure single-threaded DuckDB access.
        """
        if self._connection is None:
            await self.connect()
        async with self._lock:
            yield self._connection

    # ─── Query Execution with Timeout ────────────────────────────────────────

    async def _run(self, work: Callable[[duckdb.DuckDBPyConnection], T], label: str) -> T:
        """
        Run blocking work against the connection in the DB thread.

        Raises:
            QueryTimeoutError: If work exceeds the store timeout
            LedgerError: If DuckDB reports an error
        """
        async with self.connection() as conn:
            self._total_queries += 1
            loop = asyncio.get_running_loop()
            try:
                return await asyncio.wait_for(
                    loop.run_in_executor(self._executor, work, conn),
                    timeout=self.query_timeout,
                )
            except asyncio.TimeoutError:
                raise QueryTimeoutError(label, self.query_timeout, f"{label} failed")
            except duckdb.Error as e:
                raise LedgerError(f"Ledger query failed: {label}", str(e)) from e

    async def _fetch_one(self, query: str, params: list = None) -> Optional[tuple]:
        return await self._run(lambda conn: conn.execute(query, params or []).fetchone(), query)

    async def _fetch_all(self, query: str, params: list = None) -> List[tuple]:
        return await self._run(lambda conn: conn.execute(query, params or []).fetchall(), query)

    async def _transaction(self, work: Callable[[duckdb.DuckDBPyConnection], T], label: str) -> T:
        """Run work inside BEGIN/COMMIT, rolling back on any error."""

        def _run_in_transaction(conn: duckdb.DuckDBPyConnection) -> T:
            conn.execute("BEGIN TRANSACTION")
            try:
                result = work(conn)
                conn.execute("COMMIT")
                return result
            except Exception:
                conn.execute("ROLLBACK")
                raise

        return await self._run(_run_in_transaction, label)

    @staticmethod
    def _init_schema(conn: duckdb.DuckDBPyConnection) -> None:
        """Create database schema if not exists."""
        conn.execute("""
        CREATE SEQUENCE IF NOT EXISTS buyers_id_seq START 1;

        -- Buyers are created on the first event naming them, never deleted
        CREATE TABLE IF NOT EXISTS buyers (
            id INTEGER DEFAULT nextval('buyers_id_seq') PRIMARY KEY,
            name VARCHAR NOT NULL UNIQUE,
            count_revenue DOUBLE DEFAULT 0,
            count_firstdeps INTEGER DEFAULT 0,
            reject DOUBLE DEFAULT 0,
            created_at TIMESTAMP
        );

        -- One row per buyer per calendar day, accumulated in place
        CREATE TABLE IF NOT EXISTS revenue_records (
            buyer_id INTEGER NOT NULL,
            date DATE NOT NULL,
            income DOUBLE DEFAULT 0,
            expenses DOUBLE DEFAULT 0,
            profit DOUBLE DEFAULT 0,
            firstdeps INTEGER DEFAULT 0,
            updated_at TIMESTAMP,
            PRIMARY KEY (buyer_id, date)
        );
        """)

    async def get_stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        buyers_count = (await self._fetch_one("SELECT COUNT(*) FROM buyers"))[0]
        records_count, min_date, max_date = await self._fetch_one(
            "SELECT COUNT(*), MIN(date), MAX(date) FROM revenue_records"
        )
        return {
            "buyers": buyers_count,
            "revenue_records": records_count,
            "date_range": {
                "min": min_date.isoformat() if min_date else None,
                "max": max_date.isoformat() if max_date else None,
            },
        }


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLETON INSTANCE
# ═══════════════════════════════════════════════════════════════════════════════

_store_instance: Optional[DuckDBStore] = None
_store_lock = asyncio.Lock()


async def get_store() -> DuckDBStore:
    """Get singleton DuckDB store instance (coroutine-safe)."""
    global _store_instance
    async with _store_lock:
        if _store_instance is None:
            _store_instance = DuckDBStore()
            await _store_instance.connect()
    return _store_instance


async def close_store() -> None:
    """Close singleton store instance."""
    global _store_instance
    if _store_instance:
        await _store_instance.close()
        _store_instance = None
