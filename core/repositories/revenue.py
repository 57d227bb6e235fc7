"""DuckDBStore revenue record methods."""
from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

from core.duckdb_constants import RECORD_COLUMNS
from core.models import Buyer, RevenueRecord

logger = logging.getLogger(__name__)

# Create the day's record, or add to it in place
ACCUMULATE_RECORD_SQL = """
    INSERT INTO revenue_records (buyer_id, date, income, expenses, profit, firstdeps, updated_at)
    VALUES (?, ?, ?, 0, ?, ?, ?)
    ON CONFLICT (buyer_id, date) DO UPDATE SET
        income = revenue_records.income + excluded.income,
        profit = revenue_records.profit + excluded.profit,
        firstdeps = revenue_records.firstdeps + excluded.firstdeps,
        updated_at = excluded.updated_at
"""


class RevenueMixin:

    async def accumulate_revenue(
        self,
        buyer_name: str,
        day: date,
        amount: float,
        firstdeps: int = 1,
    ) -> Tuple[Buyer, RevenueRecord]:
        """
        Add one event to the buyer's totals and to the buyer's record for `day`.

        Both writes happen in one transaction and increment in place, so
        repeated events accumulate instead of overwriting.
        """

        def _accumulate(conn) -> Tuple[tuple, tuple]:
            buyer_row = self._accumulate_buyer(conn, buyer_name, amount, firstdeps)
            conn.execute(
                ACCUMULATE_RECORD_SQL,
                [
                    buyer_row[0],
                    day,
                    amount,
                    amount,
                    firstdeps,
                    datetime.now(timezone.utc).replace(tzinfo=None),
                ],
            )
            record_row = conn.execute(
                f"SELECT {RECORD_COLUMNS} FROM revenue_records WHERE buyer_id = ? AND date = ?",
                [buyer_row[0], day],
            ).fetchone()
            return buyer_row, record_row

        buyer_row, record_row = await self._transaction(_accumulate, "accumulate_revenue")
        return Buyer.from_row(buyer_row), RevenueRecord.from_row(record_row)

    async def get_revenue_record(self, buyer_id: int, day: date) -> Optional[RevenueRecord]:
        row = await self._fetch_one(
            f"SELECT {RECORD_COLUMNS} FROM revenue_records WHERE buyer_id = ? AND date = ?",
            [buyer_id, day],
        )
        return RevenueRecord.from_row(row) if row else None

    async def get_revenue_records(
        self,
        buyer_id: int,
        start_date: date,
        end_date: date,
    ) -> List[RevenueRecord]:
        """Records with start_date <= date <= end_date, oldest first."""
        rows = await self._fetch_all(
            f"""
            SELECT {RECORD_COLUMNS}
            FROM revenue_records
            WHERE buyer_id = ? AND date BETWEEN ? AND ?
            ORDER BY date
            """,
            [buyer_id, start_date, end_date],
        )
        return [RevenueRecord.from_row(row) for row in rows]

    async def get_revenue_totals(
        self,
        buyer_id: int,
        start_date: date,
        end_date: date,
    ) -> Tuple[float, int]:
        """Sum of income and firstdeps over the inclusive range."""
        row = await self._fetch_one(
            """
            SELECT COALESCE(SUM(income), 0), COALESCE(SUM(firstdeps), 0)
            FROM revenue_records
            WHERE buyer_id = ? AND date BETWEEN ? AND ?
            """,
            [buyer_id, start_date, end_date],
        )
        return float(row[0]), int(row[1])
