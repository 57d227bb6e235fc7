"""Shared dependencies for API route modules."""
import time

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.observability import get_logger
from core.validators import (
    validate_buyer_name,
    validate_date_range,
    validate_date_string,
)
from web.config import MAX_RANGE_DAYS
from web.services.report_service import get_engine, get_ledger, get_lookup_engine

# Shared limiter instance, keyed by client address
limiter = Limiter(key_func=get_remote_address)

# Track startup time for uptime calculation
START_TIME = time.time()

__all__ = [
    "limiter",
    "get_logger",
    "validate_buyer_name",
    "validate_date_range",
    "validate_date_string",
    "MAX_RANGE_DAYS",
    "get_engine",
    "get_ledger",
    "get_lookup_engine",
    "START_TIME",
]
