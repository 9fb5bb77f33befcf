"""
Tests for extraction payload sanitisation.
"""

from datetime import date
from decimal import Decimal

import pytest

from docintake.models.enums import ReadingType
from docintake.pipeline.sanitizer import (
    DEFAULT_FIELD_CONFIDENCE,
    UNKNOWN_SUPPLIER,
    parse_invoice_date,
    sanitize_confidence,
    sanitize_extraction,
    sanitize_kwh,
    sanitize_reading_type,
    sanitize_supplier,
)


class TestParseInvoiceDate:

    def test_iso(self):
        assert parse_invoice_date("2024-03-15") == date(2024, 3, 15)

    def test_iso_with_time_suffix(self):
        assert parse_invoice_date("2024-03-15T00:00:00Z") == date(2024, 3, 15)

    def test_uk_day_first_fallback(self):
        assert parse_invoice_date("05/06/2024") == date(2024, 6, 5)

    def test_written_month(self):
        assert parse_invoice_date("15 January 2024") == date(2024, 1, 15)

    def test_impossible_iso_date_is_none(self):
        assert parse_invoice_date("2024-02-30") is None

    @pytest.mark.parametrize("value", [None, "", "   ", "not a date", 20240315, {"d": 1}])
    def test_garbage_is_none(self, value):
        assert parse_invoice_date(value) is None


class TestSanitizeReadingType:

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("Actual", ReadingType.ACTUAL),
            ("estimated", ReadingType.ESTIMATED),
            (" Customer Read ", ReadingType.CUSTOMER_READ),
            ("Unknown", ReadingType.UNKNOWN),
        ],
    )
    def test_known_values(self, value, expected):
        assert sanitize_reading_type(value) == expected

    @pytest.mark.parametrize("value", [None, "", "A", "Smart", 1])
    def test_anything_else_is_unknown(self, value):
        assert sanitize_reading_type(value) == ReadingType.UNKNOWN


class TestSanitizeKwh:

    def test_number(self):
        assert sanitize_kwh(1234.5) == Decimal("1234.5")

    def test_numeric_string_with_thousands_separator(self):
        assert sanitize_kwh("1,234.5") == Decimal("1234.5")

    def test_zero_is_kept(self):
        assert sanitize_kwh(0) == Decimal("0.0")

    @pytest.mark.parametrize("value", [None, "", "lots", -5, float("nan"), True])
    def test_invalid_is_none(self, value):
        assert sanitize_kwh(value) is None


class TestSanitizeConfidence:

    def test_in_range_kept(self):
        assert sanitize_confidence(87) == 87

    def test_clamped(self):
        assert sanitize_confidence(140) == 100
        assert sanitize_confidence(-3) == 0

    def test_rounded_half_up(self):
        assert sanitize_confidence(84.5) == 85

    def test_zero_is_not_replaced_by_default(self):
        assert sanitize_confidence(0) == 0

    @pytest.mark.parametrize("value", [None, "high", "", False])
    def test_absent_or_non_numeric_defaults(self, value):
        assert sanitize_confidence(value) == DEFAULT_FIELD_CONFIDENCE


class TestSanitizeSupplier:

    def test_trimmed(self):
        assert sanitize_supplier("  Octopus Energy ") == "Octopus Energy"

    @pytest.mark.parametrize("value", [None, "", "   ", 42])
    def test_missing(self, value):
        assert sanitize_supplier(value) == UNKNOWN_SUPPLIER


class TestSanitizeExtraction:

    def test_clean_payload(self, extraction_payload):
        fields = sanitize_extraction(extraction_payload)
        assert fields.invoice_date == date(2024, 3, 15)
        assert fields.billing_period_end == date(2024, 2, 29)
        assert fields.reading_type == ReadingType.ACTUAL
        assert fields.kwh_used == Decimal("1234.5")
        assert fields.supplier_name == "British Gas"
        assert fields.field_confidences == {
            "confidence_invoice_date": 95,
            "confidence_reading_type": 92,
            "confidence_kwh": 90,
        }

    def test_empty_payload_gets_safe_defaults(self):
        fields = sanitize_extraction({})
        assert fields.invoice_date is None
        assert fields.billing_period_start is None
        assert fields.reading_type == ReadingType.UNKNOWN
        assert fields.kwh_used is None
        assert fields.supplier_name == UNKNOWN_SUPPLIER
        assert set(fields.field_confidences.values()) == {DEFAULT_FIELD_CONFIDENCE}

    def test_unexpected_keys_are_ignored(self, extraction_payload):
        fields = sanitize_extraction({**extraction_payload, "vat_amount": 12.5})
        assert not hasattr(fields, "vat_amount")
