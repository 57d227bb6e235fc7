"""
Input validation functions for API parameters and postbacks.

All validators raise ValidationError on invalid input.
"""

import math
from datetime import date, datetime
from typing import Any, Tuple

from core.exceptions import ValidationError


# Maximum allowed values
MAX_BUYER_NAME_LENGTH = 255
MAX_RANGE_DAYS = 366


def validate_date_string(
    value: str,
    field: str = "date",
    format: str = "%Y-%m-%d"
) -> date:
    """
    Validate and parse a date string.

    Args:
        value: Date string to validate
        field: Field name for error messages
        format: Expected date format (default: YYYY-MM-DD)

    Returns:
        Parsed date object

    Raises:
        ValidationError: If date is invalid or in wrong format
    """
    if not value:
        raise ValidationError(field, "Date is required", value)

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    try:
        return datetime.strptime(value, format).date()
    except ValueError:
        raise ValidationError(
            field,
            f"Invalid date format. Expected {format}",
            value
        )


def validate_date_range(
    start_date: str,
    end_date: str,
    max_days: int = MAX_RANGE_DAYS
) -> Tuple[date, date]:
    """
    Validate a date range.

    Args:
        start_date: Start date string (YYYY-MM-DD)
        end_date: End date string (YYYY-MM-DD)
        max_days: Maximum allowed range in days

    Returns:
        Tuple of (start_date, end_date) as date objects

    Raises:
        ValidationError: If dates are invalid or range is too large
    """
    start = validate_date_string(start_date, "startDate")
    end = validate_date_string(end_date, "endDate")

    if start > end:
        raise ValidationError(
            "date_range",
            "Start date must be before or equal to end date",
            f"{start_date} to {end_date}"
        )

    days_diff = (end - start).days
    if days_diff > max_days:
        raise ValidationError(
            "date_range",
            f"Date range cannot exceed {max_days} days",
            f"{days_diff} days"
        )

    return start, end


def validate_buyer_name(value: Any, field: str = "buyer") -> str:
    """Validate a buyer name used as the join key with the spreadsheet."""
    if value is None or not isinstance(value, str):
        raise ValidationError(field, "Buyer name is required", value)

    name = value.strip()
    if not name:
        raise ValidationError(field, "Buyer name cannot be empty", value)

    if len(name) > MAX_BUYER_NAME_LENGTH:
        raise ValidationError(
            field,
            f"Buyer name too long (max {MAX_BUYER_NAME_LENGTH} characters)",
            len(name)
        )

    return name


def validate_amount(value: Any, field: str = "payout") -> float:
    """
    Validate a monetary amount given as number or numeric string.

    Returns:
        Amount as a finite float
    """
    if value is None or isinstance(value, bool) or value == "":
        raise ValidationError(field, "Amount is required", value)

    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationError(field, "Must be a number", value)

    if not math.isfinite(amount):
        raise ValidationError(field, "Must be a finite number", value)

    return amount
