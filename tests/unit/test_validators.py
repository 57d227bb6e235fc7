"""
Tests for core.validators module.
"""
import math
from datetime import date

import pytest

from core.exceptions import ValidationError
from core.validators import (
    validate_date_string,
    validate_date_range,
    validate_buyer_name,
    validate_amount,
    MAX_BUYER_NAME_LENGTH,
)


class TestValidateDateString:

    def test_valid_date(self):
        assert validate_date_string("2024-01-15") == date(2024, 1, 15)

    def test_empty(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_date_string("")
        assert "required" in str(exc_info.value)

    def test_wrong_format(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_date_string("15/01/2024", field="startDate")
        assert exc_info.value.field == "startDate"

    def test_impossible_date(self):
        with pytest.raises(ValidationError):
            validate_date_string("2024-02-30")

    def test_not_a_string(self):
        with pytest.raises(ValidationError):
            validate_date_string(20240115)


class TestValidateDateRange:

    def test_valid_range(self):
        start, end = validate_date_range("2024-01-01", "2024-01-31")
        assert start == date(2024, 1, 1)
        assert end == date(2024, 1, 31)

    def test_single_day(self):
        start, end = validate_date_range("2024-01-01", "2024-01-01")
        assert start == end

    def test_start_after_end(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_date_range("2024-02-01", "2024-01-01")
        assert exc_info.value.field == "date_range"

    def test_too_long(self):
        with pytest.raises(ValidationError):
            validate_date_range("2024-01-01", "2024-03-01", max_days=30)

    def test_end_field_name(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_date_range("2024-01-01", "bad")
        assert exc_info.value.field == "endDate"


class TestValidateBuyerName:

    def test_strips_whitespace(self):
        assert validate_buyer_name("  Artur ") == "Artur"

    @pytest.mark.parametrize("value", [None, "", "   ", 42])
    def test_rejects_missing(self, value):
        with pytest.raises(ValidationError):
            validate_buyer_name(value)

    def test_too_long(self):
        with pytest.raises(ValidationError):
            validate_buyer_name("a" * (MAX_BUYER_NAME_LENGTH + 1))

    def test_custom_field(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_buyer_name("", field="campaign_name")
        assert exc_info.value.field == "campaign_name"


class TestValidateAmount:

    @pytest.mark.parametrize("value,expected", [
        (100, 100.0),
        (12.5, 12.5),
        ("99.9", 99.9),
        ("-5", -5.0),
    ])
    def test_numeric(self, value, expected):
        assert validate_amount(value) == expected

    @pytest.mark.parametrize("value", [None, "", True, "abc", "12abc", [1]])
    def test_rejects_non_numeric(self, value):
        with pytest.raises(ValidationError):
            validate_amount(value)

    @pytest.mark.parametrize("value", [math.inf, "nan", "-inf"])
    def test_rejects_non_finite(self, value):
        with pytest.raises(ValidationError) as exc_info:
            validate_amount(value)
        assert "finite" in str(exc_info.value)
