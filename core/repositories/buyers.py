"""DuckDBStore buyer methods."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional

from core.duckdb_constants import BUYER_COLUMNS
from core.models import Buyer

logger = logging.getLogger(__name__)

# Insert the buyer, or add to the running totals of the existing row
ACCUMULATE_BUYER_SQL = """
    INSERT INTO buyers (name, count_revenue, count_firstdeps, created_at)
    VALUES (?, ?, ?, ?)
    ON CONFLICT (name) DO UPDATE SET
        count_revenue = buyers.count_revenue + excluded.count_revenue,
        count_firstdeps = buyers.count_firstdeps + excluded.count_firstdeps
"""


class BuyersMixin:

    async def get_buyer_by_name(self, name: str) -> Optional[Buyer]:
        row = await self._fetch_one(
            f"SELECT {BUYER_COLUMNS} FROM buyers WHERE name = ?", [name]
        )
        return Buyer.from_row(row) if row else None

    async def get_buyer(self, buyer_id: int) -> Optional[Buyer]:
        row = await self._fetch_one(
            f"SELECT {BUYER_COLUMNS} FROM buyers WHERE id = ?", [buyer_id]
        )
        return Buyer.from_row(row) if row else None

    async def list_buyers(self) -> List[Buyer]:
        """All buyers ordered by name."""
        rows = await self._fetch_all(f"SELECT {BUYER_COLUMNS} FROM buyers ORDER BY name")
        return [Buyer.from_row(row) for row in rows]

    async def set_buyer_reject(self, name: str, reject: float) -> Optional[Buyer]:
        """Set the manual adjustment for an existing buyer."""

        def _update(conn) -> Optional[tuple]:
            row = conn.execute("SELECT id FROM buyers WHERE name = ?", [name]).fetchone()
            if row is None:
                return None
            conn.execute("UPDATE buyers SET reject = ? WHERE id = ?", [reject, row[0]])
            return conn.execute(
                f"SELECT {BUYER_COLUMNS} FROM buyers WHERE id = ?", [row[0]]
            ).fetchone()

        row = await self._transaction(_update, "set_buyer_reject")
        if row is None:
            return None
        logger.info(f"Reject for {name} set to {reject}")
        return Buyer.from_row(row)

    @staticmethod
    def _accumulate_buyer(conn, name: str, amount: float, firstdeps: int = 1) -> tuple:
        """Resolve-or-create the buyer and add to its totals. Returns the row."""
        conn.execute(
            ACCUMULATE_BUYER_SQL,
            [name, amount, firstdeps, datetime.now(timezone.utc).replace(tzinfo=None)],
        )
        return conn.execute(
            f"SELECT {BUYER_COLUMNS} FROM buyers WHERE name = ?", [name]
        ).fetchone()
