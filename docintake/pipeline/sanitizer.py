"""
Validation and sanitisation of raw extraction payloads.

Whatever the model returns is coerced into ExtractionFields:
- dates: ISO first, then UK day-first parsing; anything else becomes None
- reading_type: one of the ReadingType values, otherwise "Unknown"
- kwh_used: non-negative number, otherwise None
- supplier_name: non-blank string, otherwise "Unknown Supplier"
- confidences: clamped to [0, 100], defaulting to 50 when absent or not numeric
"""

import math
import re
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from dateutil import parser as dateutil_parser
from pydantic import BaseModel, Field

from docintake.models.enums import ReadingType

UNKNOWN_SUPPLIER = "Unknown Supplier"
DEFAULT_FIELD_CONFIDENCE = 50

CONFIDENCE_FIELDS = ("confidence_invoice_date", "confidence_reading_type", "confidence_kwh")

ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")


class ExtractionFields(BaseModel):
    """Sanitised extraction result, safe to persist."""
    invoice_date: Optional[date] = None
    billing_period_start: Optional[date] = None
    billing_period_end: Optional[date] = None
    reading_type: ReadingType = ReadingType.UNKNOWN
    kwh_used: Optional[Decimal] = Field(default=None, ge=0)
    supplier_name: str = UNKNOWN_SUPPLIER
    confidence_invoice_date: int = Field(default=DEFAULT_FIELD_CONFIDENCE, ge=0, le=100)
    confidence_reading_type: int = Field(default=DEFAULT_FIELD_CONFIDENCE, ge=0, le=100)
    confidence_kwh: int = Field(default=DEFAULT_FIELD_CONFIDENCE, ge=0, le=100)

    @property
    def field_confidences(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in CONFIDENCE_FIELDS}


def _as_number(value: Any) -> Optional[float]:
    """Numbers and numeric strings ("1,234.5") as float; bools and NaN are not numbers."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.replace(",", "").strip()
        if not cleaned:
            return None
        try:
            number = float(cleaned)
        except ValueError:
            return None
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_invoice_date(value: Any) -> Optional[date]:
    """Parse a date the model returned. Expected YYYY-MM-DD; UK day-first fallback."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()

    match = ISO_DATE.match(text)
    if match:
        try:
            return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
        except ValueError:
            return None

    try:
        return dateutil_parser.parse(text, dayfirst=True).date()
    except (ValueError, OverflowError):
        return None


def sanitize_reading_type(value: Any) -> ReadingType:
    if isinstance(value, str):
        wanted = value.strip().lower()
        for reading_type in ReadingType:
            if reading_type.value.lower() == wanted:
                return reading_type
    return ReadingType.UNKNOWN


def sanitize_kwh(value: Any) -> Optional[Decimal]:
    number = _as_number(value)
    if number is None or number < 0:
        return None
    return Decimal(str(number))


def sanitize_confidence(value: Any) -> int:
    number = _as_number(value)
    if number is None:
        return DEFAULT_FIELD_CONFIDENCE
    clamped = min(100.0, max(0.0, number))
    return int(Decimal(str(clamped)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def sanitize_supplier(value: Any) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return UNKNOWN_SUPPLIER


def sanitize_extraction(raw: dict) -> ExtractionFields:
    """Coerce a raw model payload into ExtractionFields."""
    return ExtractionFields(
        invoice_date=parse_invoice_date(raw.get("invoice_date")),
        billing_period_start=parse_invoice_date(raw.get("billing_period_start")),
        billing_period_end=parse_invoice_date(raw.get("billing_period_end")),
        reading_type=sanitize_reading_type(raw.get("reading_type")),
        kwh_used=sanitize_kwh(raw.get("kwh_used")),
        supplier_name=sanitize_supplier(raw.get("supplier_name")),
        **{name: sanitize_confidence(raw.get(name)) for name in CONFIDENCE_FIELDS},
    )
