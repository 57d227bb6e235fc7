"""
Centralized configuration for the affiliate ROI tracker.

This module provides a single source of truth for all configuration values.
Configuration is loaded from environment variables with sensible defaults.

Usage:
    from core.config import config

    spreadsheet_id = config.sheets.spreadsheet_id
    ttl = config.sheets.cache_ttl_seconds
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


@dataclass(frozen=True)
class SheetsConfig:
    """Spend spreadsheet configuration."""

    spreadsheet_id: str = field(default_factory=lambda: os.getenv("SPREADSHEET_ID", ""))
    service_account_file: str = field(
        default_factory=lambda: os.getenv("GOOGLE_SA_FILE", "service-account.json")
    )
    value_range: str = "A1:W"
    cache_ttl_seconds: int = field(
        default_factory=lambda: int(os.getenv("SHEETS_CACHE_TTL_SECONDS", "1800"))
    )
    data_start_row: int = 3  # rows 0-2 are headers/metadata
    scopes: Tuple[str, ...] = ("https://www.googleapis.com/auth/spreadsheets.readonly",)
    num_retries: int = 0


@dataclass(frozen=True)
class LedgerConfig:
    """Revenue ledger configuration."""

    timezone: str = field(default_factory=lambda: os.getenv("LEDGER_TIMEZONE", "Europe/Moscow"))
    db_path: str = field(
        default_factory=lambda: os.getenv("LEDGER_DB_PATH", str(DATA_DIR / "ledger.duckdb"))
    )
    label_separator: str = "|"
    query_timeout_seconds: float = 30.0

    @property
    def tz(self) -> ZoneInfo:
        """Reference timezone for calendar-day boundaries."""
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class WebConfig:
    """Web API configuration."""

    host: str = field(default_factory=lambda: os.getenv("WEB_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("WEB_PORT", "3100")))

    # Rate limiting
    rate_limit_per_minute: int = 30
    postback_rate_limit_per_minute: int = 600

    # Longest range a report may span
    max_range_days: int = 366


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    sheets: SheetsConfig = field(default_factory=SheetsConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    web: WebConfig = field(default_factory=WebConfig)


# Global config instance
config = AppConfig()

VERSION = config.version


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(app_config: AppConfig = None, require_sheets: bool = True) -> None:
    """
    Validate that all required configuration is present.

    Call this on application startup to fail fast with clear error messages
    instead of cryptic runtime failures.

    Args:
        app_config: Configuration to check (default: global config)
        require_sheets: If True, validate spreadsheet access settings

    Raises:
        ConfigurationError: If required configuration is missing
    """
    cfg = app_config or config
    errors = []

    if require_sheets:
        if not cfg.sheets.spreadsheet_id:
            errors.append("SPREADSHEET_ID is required but not set")
        if not Path(cfg.sheets.service_account_file).expanduser().exists():
            errors.append(
                f"GOOGLE_SA_FILE points to a missing file: {cfg.sheets.service_account_file}"
            )

    if cfg.sheets.cache_ttl_seconds <= 0:
        errors.append("SHEETS_CACHE_TTL_SECONDS must be positive")

    try:
        cfg.ledger.tz
    except (ZoneInfoNotFoundError, ValueError):
        errors.append(f"LEDGER_TIMEZONE is not a known timezone: {cfg.ledger.timezone}")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
