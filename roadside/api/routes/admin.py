"""
Admin / observability endpoints
===============================

GET /api/admin/health -- health check with the live request count
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.api.dependencies import get_db
from roadside.api.schemas import HealthResponse
from roadside.infrastructure.repositories import ServiceRequestRepository

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(db: AsyncSession = Depends(get_db)):
    live = await ServiceRequestRepository(db).count_live()
    return HealthResponse(live_requests=live)
