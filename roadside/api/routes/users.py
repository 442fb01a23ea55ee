"""
Account endpoints
=================

POST /api/register   -- create a customer or driver account (201)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.api.dependencies import get_db
from roadside.api.middleware import limiter
from roadside.api.schemas import (
    ErrorResponse,
    RegisterResponse,
    UserCreate,
    UserResponse,
)
from roadside.config import settings
from roadside.services import accounts

router = APIRouter(tags=["users"])


@router.post(
    "/register",
    status_code=201,
    response_model=RegisterResponse,
    summary="Register a customer or driver",
    responses={
        400: {"model": ErrorResponse, "description": "Missing name, email or password"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
    },
)
@limiter.limit(settings.rate_limit)
async def register(
    request: Request,
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
):
    user = await accounts.register_user(
        db,
        name=body.name,
        email=body.email,
        password=body.password,
        license_plate=body.license_plate,
        role=body.role,
    )
    return RegisterResponse(user=UserResponse.model_validate(user))
