"""
Repository mixins for the DuckDB store.

- BuyersMixin: Buyer lookup, accumulation and manual adjustment
- RevenueMixin: Per-day revenue accumulation and range queries
"""
from core.repositories.buyers import BuyersMixin
from core.repositories.revenue import RevenueMixin

__all__ = [
    "BuyersMixin",
    "RevenueMixin",
]
