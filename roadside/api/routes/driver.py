"""
Provider (driver) endpoints
===========================

GET  /api/driver/requests                      -- live requests, optionally one provider's
POST /api/driver/requests/{request_id}/accept  -- Requested -> Accepted
POST /api/driver/requests/{request_id}/advance -- one step forward
POST /api/driver/requests/{request_id}/complete -- sign-off with service notes
PUT  /api/driver/{provider_id}/availability    -- go online / offline
GET  /api/providers                            -- roster
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.api.dependencies import get_db
from roadside.api.middleware import limiter
from roadside.api.schemas import (
    AvailabilityUpdate,
    DriverAction,
    ProviderResponse,
    ServiceRequestResponse,
)
from roadside.config import settings
from roadside.domain.eta import utcnow
from roadside.infrastructure.repositories import (
    ProviderRepository,
    ServiceRequestRepository,
)
from roadside.services import dispatch

router = APIRouter(tags=["driver"])


@router.get(
    "/driver/requests",
    response_model=list[ServiceRequestResponse],
    summary="List non-terminal requests",
)
@limiter.limit(settings.rate_limit)
async def list_driver_requests(
    request: Request,
    provider_id: Optional[int] = Query(None, alias="providerId"),
    db: AsyncSession = Depends(get_db),
):
    now = utcnow()
    records = await ServiceRequestRepository(db).get_live(provider_id=provider_id)
    return [ServiceRequestResponse.from_record(r, now) for r in records]


@router.post(
    "/driver/requests/{request_id}/accept",
    response_model=ServiceRequestResponse,
    summary="Accept a requested job",
)
@limiter.limit(settings.rate_limit)
async def accept_job(
    request: Request,
    request_id: int,
    body: DriverAction | None = None,
    db: AsyncSession = Depends(get_db),
):
    record = await dispatch.accept_request(
        db, request_id, provider_id=body.provider_id if body else None
    )
    return ServiceRequestResponse.from_record(record, utcnow())


@router.post(
    "/driver/requests/{request_id}/advance",
    response_model=ServiceRequestResponse,
    summary="Move an accepted job one step forward",
)
@limiter.limit(settings.rate_limit)
async def advance_job(
    request: Request,
    request_id: int,
    body: DriverAction | None = None,
    db: AsyncSession = Depends(get_db),
):
    body = body or DriverAction()
    record = await dispatch.advance_request(
        db,
        request_id,
        provider_id=body.provider_id,
        service_notes=body.service_notes,
    )
    return ServiceRequestResponse.from_record(record, utcnow())


@router.post(
    "/driver/requests/{request_id}/complete",
    response_model=ServiceRequestResponse,
    summary="Sign off an arrived job",
)
@limiter.limit(settings.rate_limit)
async def complete_job(
    request: Request,
    request_id: int,
    body: DriverAction,
    db: AsyncSession = Depends(get_db),
):
    record = await dispatch.complete_request(
        db,
        request_id,
        provider_id=body.provider_id,
        service_notes=body.service_notes,
    )
    return ServiceRequestResponse.from_record(record, utcnow())


@router.put(
    "/driver/{provider_id}/availability",
    response_model=ProviderResponse,
    summary="Toggle a provider online or offline",
)
@limiter.limit(settings.rate_limit)
async def set_availability(
    request: Request,
    provider_id: int,
    body: AvailabilityUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await dispatch.set_provider_availability(db, provider_id, body.online)


@router.get(
    "/providers",
    response_model=list[ProviderResponse],
    summary="List the provider roster",
)
@limiter.limit(settings.rate_limit)
async def list_providers(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    return await ProviderRepository(db).get_all()
