"""
Customer request endpoints
==========================

POST /api/request                 -- submit a request (201, or 404 if no provider)
GET  /api/request/{request_id}    -- full record
GET  /api/status/{request_id}     -- compact status for polling
PUT  /api/request/{request_id}/status -- explicit status write
POST /api/request/{request_id}/cancel -- cancel (idempotent)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.api.dependencies import get_db
from roadside.api.middleware import limiter
from roadside.api.schemas import (
    CancelBody,
    ErrorResponse,
    RequestCreatedResponse,
    ServiceRequestCreate,
    ServiceRequestResponse,
    StatusResponse,
    StatusUpdate,
)
from roadside.config import settings
from roadside.domain.eta import displayed_eta, utcnow
from roadside.services import dispatch

router = APIRouter(tags=["requests"])


@router.post(
    "/request",
    status_code=201,
    response_model=RequestCreatedResponse,
    summary="Submit a roadside assistance request",
    responses={
        400: {"model": ErrorResponse, "description": "Missing service type or location"},
        404: {"model": ErrorResponse, "description": "No provider available"},
        409: {"model": ErrorResponse, "description": "Customer already has a live request"},
    },
)
@limiter.limit(settings.rate_limit)
async def create_request(
    request: Request,
    body: ServiceRequestCreate,
    db: AsyncSession = Depends(get_db),
):
    record = await dispatch.submit_request(
        db,
        user_id=body.user_id,
        service_type=body.service_type,
        location=body.location,
        latitude=body.latitude,
        longitude=body.longitude,
    )
    return RequestCreatedResponse(
        request_id=record.id,
        provider_name=record.provider_name,
        eta=displayed_eta(record, utcnow()),
        status=record.status,
        price=record.price,
    )


@router.get(
    "/request/{request_id}",
    response_model=ServiceRequestResponse,
    summary="Get the full request record",
)
@limiter.limit(settings.rate_limit)
async def get_request(
    request: Request,
    request_id: int,
    db: AsyncSession = Depends(get_db),
):
    record = await dispatch.load_request(db, request_id)
    return ServiceRequestResponse.from_record(record, utcnow())


@router.get(
    "/status/{request_id}",
    response_model=StatusResponse,
    summary="Poll the current status and ETA",
)
@limiter.limit(settings.rate_limit)
async def get_status(
    request: Request,
    request_id: int,
    db: AsyncSession = Depends(get_db),
):
    record = await dispatch.load_request(db, request_id)
    return StatusResponse(
        status=record.status,
        provider_name=record.provider_name,
        eta=displayed_eta(record, utcnow()),
    )


@router.put(
    "/request/{request_id}/status",
    response_model=ServiceRequestResponse,
    summary="Write a new status",
    description=(
        "Applies one legal lifecycle step.  Skipping states, moving "
        "backwards or leaving a terminal state returns 409.  ``actor`` "
        "(default ``provider``) is recorded as ``cancelledBy`` on a cancel."
    ),
)
@limiter.limit(settings.rate_limit)
async def put_status(
    request: Request,
    request_id: int,
    body: StatusUpdate,
    db: AsyncSession = Depends(get_db),
):
    record = await dispatch.update_status(
        db,
        request_id,
        body.status,
        actor=body.actor,
        service_notes=body.service_notes,
    )
    return ServiceRequestResponse.from_record(record, utcnow())


@router.post(
    "/request/{request_id}/cancel",
    response_model=ServiceRequestResponse,
    summary="Cancel a request",
    description="Allowed until the job is completed.  Repeating it is a no-op.",
)
@limiter.limit(settings.rate_limit)
async def cancel_request(
    request: Request,
    request_id: int,
    body: CancelBody | None = None,
    db: AsyncSession = Depends(get_db),
):
    actor = body.actor if body else CancelBody().actor
    record = await dispatch.cancel_request(db, request_id, actor=actor)
    return ServiceRequestResponse.from_record(record, utcnow())
