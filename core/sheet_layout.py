"""
Explicit schema for spend sheets.

Every sheet follows the same convention: row 0 holds buyer names, a buyer's
spend occupies the header column ("agency") and the next one ("account"),
column 0 holds the date, and data rows start at index 3. `SheetLayout`
resolves that convention once per fetch so lookups never rescan headers.
"""
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence

from dateutil import parser as date_parser

from core.models import ExpenseTotal

Row = Sequence[Any]

# Leading numeric prefix, as accepted by JavaScript parseFloat
_NUMERIC_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

# YYYY-MM-DD at the start of a cell, optionally followed by a time
_ISO_DATE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:$|[T\s])")

# Two defaults that differ in year, month and day; a field dateutil had to
# fill in shows up as a mismatch between the two parses
_DATE_SENTINELS = (datetime(2000, 1, 1), datetime(2004, 3, 3))


def parse_spend(cell: Any) -> float:
    """
    Parse a spend cell, defaulting to zero.

    Strings are read up to the first non-numeric character, so "12.5 USD"
    is 12.5 and "$12" is 0. Non-finite values are 0.
    """
    if cell is None or isinstance(cell, bool):
        return 0.0

    if isinstance(cell, (int, float)):
        value = float(cell)
    else:
        match = _NUMERIC_PREFIX.match(str(cell).strip())
        if not match:
            return 0.0
        try:
            value = float(match.group(0))
        except (ValueError, OverflowError):
            return 0.0

    return value if math.isfinite(value) else 0.0


def parse_sheet_date(cell: Any) -> Optional[date]:
    """
    Return the calendar day of a date cell, ignoring any time component.

    The cell must name a year, month and day itself: "15" or "Jan 15" is
    not a date, and an out-of-range "2024-13-01" is not reinterpreted.
    """
    if cell is None:
        return None
    if isinstance(cell, datetime):
        return cell.date()
    if isinstance(cell, date):
        return cell

    text = str(cell).strip()
    if not text or not any(ch.isdigit() for ch in text):
        return None

    iso = _ISO_DATE.match(text)
    if iso:
        try:
            return date(*(int(part) for part in iso.groups()))
        except ValueError:
            return None

    try:
        first, second = (date_parser.parse(text, default=d).date() for d in _DATE_SENTINELS)
    except (ValueError, OverflowError):
        return None
    return first if first == second else None


def _cell(row: Row, index: int) -> Any:
    return row[index] if 0 <= index < len(row) else None


@dataclass(frozen=True)
class BuyerColumns:
    """Column pair holding one buyer's spend."""
    agency: int

    @property
    def account(self) -> int:
        return self.agency + 1

    def spend(self, row: Row) -> ExpenseTotal:
        return ExpenseTotal(
            agency_spend=parse_spend(_cell(row, self.agency)),
            account_spend=parse_spend(_cell(row, self.account)),
        )


@dataclass(frozen=True)
class SheetLayout:
    """Buyer -> columns and date -> row index, resolved from raw rows."""
    buyer_columns: Dict[str, BuyerColumns] = field(default_factory=dict)
    date_rows: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_rows(cls, rows: List[Row]) -> "SheetLayout":
        buyer_columns: Dict[str, BuyerColumns] = {}
        date_rows: Dict[str, int] = {}

        if rows:
            for index, header in enumerate(rows[0]):
                if header is None or header == "":
                    continue
                # First occurrence wins, like a header indexOf
                buyer_columns.setdefault(str(header), BuyerColumns(agency=index))

        for index, row in enumerate(rows):
            first = _cell(row, 0)
            if first is None or first == "":
                continue
            date_rows.setdefault(str(first), index)

        return cls(buyer_columns=buyer_columns, date_rows=date_rows)

    def columns_for(self, buyer_name: str) -> Optional[BuyerColumns]:
        return self.buyer_columns.get(buyer_name)

    def row_for(self, date_key: str) -> Optional[int]:
        return self.date_rows.get(date_key)


@dataclass(frozen=True)
class SheetSnapshot:
    """Raw rows of one sheet plus the layout resolved from them."""
    name: str
    rows: List[Row]
    layout: SheetLayout

    @classmethod
    def build(cls, name: str, rows: List[Row]) -> "SheetSnapshot":
        return cls(name=name, rows=rows, layout=SheetLayout.from_rows(rows))

    def has_buyer(self, buyer_name: str) -> bool:
        return buyer_name in self.layout.buyer_columns

    def spend_on(self, buyer_name: str, date_key: str) -> Optional[ExpenseTotal]:
        """Spend on the row whose date cell equals `date_key` exactly."""
        columns = self.layout.columns_for(buyer_name)
        row_index = self.layout.row_for(date_key)
        if columns is None or row_index is None:
            return None
        return columns.spend(self.rows[row_index])

    def spend_between(
        self,
        buyer_name: str,
        start: date,
        end: date,
        data_start_row: int = 3,
    ) -> ExpenseTotal:
        """Sum the buyer's spend over data rows dated within [start, end]."""
        columns = self.layout.columns_for(buyer_name)
        if columns is None:
            return ExpenseTotal()

        agency = account = 0.0
        for row in self.rows[data_start_row:]:
            day = parse_sheet_date(_cell(row, 0))
            if day is None or not (start <= day <= end):
                continue
            spend = columns.spend(row)
            agency += spend.agency_spend
            account += spend.account_spend

        return ExpenseTotal(agency_spend=agency, account_spend=account)
