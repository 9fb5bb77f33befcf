"""
/api/v1/dashboard endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from docintake.access.policy import Actor, Capability, require
from docintake.dependencies import get_current_actor, get_db
from docintake.review.queue import DashboardStats, get_dashboard_stats

router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def dashboard_stats(
    session: AsyncSession = Depends(get_db),
    actor: Actor = Depends(get_current_actor),
):
    require(actor, Capability.READ)
    return await get_dashboard_stats(session)
