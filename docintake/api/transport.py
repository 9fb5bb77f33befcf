"""
/api/v1/transport-records endpoints.
Transport manifests are reference data loaded outside this service; read only.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.access.policy import Actor, Capability, require
from docintake.dependencies import get_current_actor, get_db
from docintake.models.tables import TransportRecord
from docintake.schemas.transport import TransportRecordResponse

router = APIRouter(prefix="/api/v1/transport-records", tags=["transport"])


@router.get("", response_model=list[TransportRecordResponse])
async def list_transport_records(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    """Transport records, newest receipt first."""
    require(actor, Capability.READ)
    result = await session.execute(
        select(TransportRecord)
        .order_by(TransportRecord.receipt_created_date.desc().nulls_last(), TransportRecord.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return [
        TransportRecordResponse(
            record_id=str(r.record_id),
            receipt_created_date=r.receipt_created_date,
            supplier_code=r.supplier_code,
            supplier_name=r.supplier_name,
            ship_country=r.ship_country,
            ship_area=r.ship_area,
            destination_postcode=r.destination_postcode,
            total_weight=r.total_weight,
            transport_mode=r.transport_mode,
            uk_zone=r.uk_zone,
            created_at=r.created_at,
        )
        for r in result.scalars().all()
    ]
