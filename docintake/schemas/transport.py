"""
Schemas for read-only transport reference data.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel


class TransportRecordResponse(BaseModel):
    record_id: str
    receipt_created_date: Optional[date] = None
    supplier_code: Optional[str] = None
    supplier_name: Optional[str] = None
    ship_country: Optional[str] = None
    ship_area: Optional[str] = None
    destination_postcode: Optional[str] = None
    total_weight: Optional[Decimal] = None
    transport_mode: str
    uk_zone: str
    created_at: datetime
