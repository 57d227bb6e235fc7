"""Shared constants for the DuckDB store and its repository mixins."""
from pathlib import Path

from core.config import config

MEMORY_DB = ":memory:"

# Database configuration
DB_PATH = config.ledger.db_path

# Query timeout settings
DEFAULT_QUERY_TIMEOUT = config.ledger.query_timeout_seconds  # seconds

BUYER_COLUMNS = "id, name, count_revenue, count_firstdeps, reject, created_at"
RECORD_COLUMNS = "buyer_id, date, income, expenses, profit, firstdeps"


def db_dir(db_path: str) -> Path:
    """Directory that must exist before opening a file-backed database."""
    return Path(db_path).expanduser().resolve().parent
