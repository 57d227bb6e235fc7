"""
Core library for the buyer revenue/spend reporting service.

This package contains the engine shared by the web package:
- exceptions: Custom exception hierarchy
- validators: Input validation functions
- config: Centralized configuration
- ledger: Per-buyer, per-day revenue accumulation
- lookup: Buyer spend lookups over cached spreadsheet data
- aggregation: Income vs spend into profit and ROI
"""

# Import in dependency order
from core.exceptions import (
    SheetsError,
    SheetsAuthorizationError,
    SheetsProviderError,
    SpendLookupError,
    BuyerSheetNotFoundError,
    DateRowNotFoundError,
    LedgerError,
    QueryTimeoutError,
    ValidationError,
)

from core.validators import (
    validate_date_string,
    validate_date_range,
    validate_buyer_name,
    validate_amount,
)

from core.config import config

__all__ = [
    # Exceptions
    "SheetsError",
    "SheetsAuthorizationError",
    "SheetsProviderError",
    "SpendLookupError",
    "BuyerSheetNotFoundError",
    "DateRowNotFoundError",
    "LedgerError",
    "QueryTimeoutError",
    "ValidationError",
    # Validators
    "validate_date_string",
    "validate_date_range",
    "validate_buyer_name",
    "validate_amount",
    # Config
    "config",
]
