"""
Payment & feedback endpoints
============================

POST /api/payment/{request_id} -- settle a completed job (400 before Completed)
POST /api/feedback             -- rate a completed job
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.api.dependencies import get_db
from roadside.api.middleware import limiter
from roadside.api.schemas import (
    ErrorResponse,
    FeedbackCreate,
    FeedbackResponse,
    PaymentCreate,
    PaymentResponse,
)
from roadside.config import settings
from roadside.services import dispatch

router = APIRouter(tags=["payments"])


@router.post(
    "/payment/{request_id}",
    response_model=PaymentResponse,
    summary="Pay for a completed job",
    responses={400: {"model": ErrorResponse, "description": "Not payable yet"}},
)
@limiter.limit(settings.rate_limit)
async def pay(
    request: Request,
    request_id: int,
    body: PaymentCreate,
    db: AsyncSession = Depends(get_db),
):
    record = await dispatch.pay_request(
        db,
        request_id,
        payment_method=body.payment_method,
        amount=body.amount,
        insurance_copay=body.insurance_copay,
    )
    amount = record.payment_details["amount"]
    return PaymentResponse(
        transaction_id=record.transaction_id,
        amount=amount,
        status=record.status,
        message=f"Payment of ${amount:.2f} received. Thank you!",
    )


@router.post(
    "/feedback",
    status_code=201,
    response_model=FeedbackResponse,
    summary="Leave feedback for a completed job",
)
@limiter.limit(settings.rate_limit)
async def leave_feedback(
    request: Request,
    body: FeedbackCreate,
    db: AsyncSession = Depends(get_db),
):
    feedback = await dispatch.submit_feedback(
        db,
        request_id=body.request_id,
        feedback_type=body.feedback_type,
        rating=body.rating,
        comments=body.comments,
    )
    return FeedbackResponse(feedback_id=feedback.id)
