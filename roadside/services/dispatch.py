"""
Dispatch service
================

Unit-of-work operations shared by the HTTP routes and the progression
worker.  Every function takes an open ``AsyncSession``; the caller owns
commit / rollback (the ``get_db`` dependency or the worker's session).

Rows are loaded ``FOR UPDATE`` before a transition so two writers touching
the same request serialise on the database rather than in Python.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from roadside.config import settings
from roadside.domain.enums import (
    Actor,
    FeedbackType,
    PaymentMethod,
    ProviderStatus,
    RequestStatus,
)
from roadside.domain.errors import (
    ActiveRequestExists,
    InvalidStateTransition,
    NoProviderAvailable,
    PaymentNotAllowed,
    ProviderNotFound,
    RequestNotFound,
    UserNotFound,
    ValidationError,
)
from roadside.domain.eta import quote_eta_minutes, utcnow
from roadside.domain.lifecycle import apply_transition, assign_provider, next_status
from roadside.domain.matching import first_matching_provider
from roadside.domain.pricing import parse_service_type, payment_strategy, price_for
from roadside.infrastructure.models import (
    FeedbackModel,
    ProviderModel,
    ServiceRequestModel,
)
from roadside.infrastructure.repositories import (
    FeedbackRepository,
    ProviderRepository,
    ServiceRequestRepository,
    UserRepository,
)

logger = logging.getLogger(__name__)

# Transitions after which the provider is free to take another job
_RELEASING_STATUSES = (RequestStatus.COMPLETED, RequestStatus.CANCELLED)


# ── Creation ──────────────────────────────────────────────────────────


async def submit_request(
    session: AsyncSession,
    *,
    user_id: Optional[int],
    service_type: Optional[str],
    location: Optional[str],
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    now: Optional[datetime] = None,
) -> ServiceRequestModel:
    """Validate, match a provider and persist a new ``Requested`` record.

    Nothing is written when matching fails.  A second live request for the
    same user is refused whether it arrives before or alongside the first.
    """
    if user_id is None:
        raise ValidationError("User id is required")
    kind = parse_service_type(service_type)
    location = (location or "").strip()
    if not location:
        raise ValidationError("Location is required")
    if (latitude is None) != (longitude is None):
        raise ValidationError("Latitude and longitude must be given together")

    now = now or utcnow()
    requests = ServiceRequestRepository(session)

    if await UserRepository(session).get_by_id(user_id) is None:
        raise UserNotFound(f"User {user_id} not found")
    if await requests.get_live_for_user(user_id) is not None:
        raise ActiveRequestExists(
            f"User {user_id} already has a request in progress"
        )

    candidates = await ProviderRepository(session).get_candidates_for_update(kind)
    provider = first_matching_provider(candidates, kind)
    if provider is None:
        logger.info("No %s provider available for user %s", kind.value, user_id)
        raise NoProviderAvailable(f"No provider available for {kind.value}")

    record = ServiceRequestModel(
        user_id=user_id,
        service_type=kind,
        location=location,
        latitude=latitude,
        longitude=longitude,
        status=RequestStatus.REQUESTED,
        price=price_for(kind),
        quoted_eta_minutes=quote_eta_minutes(
            provider.latitude,
            provider.longitude,
            latitude,
            longitude,
            speed_kmh=settings.provider_speed_kmh,
            default_minutes=settings.default_eta_minutes,
        ),
        created_at=now,
        status_changed_at=now,
    )
    assign_provider(record, provider.id, provider.name)
    provider.status = ProviderStatus.BUSY
    try:
        await requests.create(record)
    except IntegrityError as exc:
        # uq_requests_user_live: a concurrent submit for this user got there first
        raise ActiveRequestExists(
            f"User {user_id} already has a request in progress"
        ) from exc

    logger.info(
        "Request %s (%s) matched to %s, eta %d min",
        record.id,
        kind.value,
        provider.name,
        record.quoted_eta_minutes,
    )
    return record


# ── Lookup ────────────────────────────────────────────────────────────


async def load_request(
    session: AsyncSession, request_id: int, *, for_update: bool = False
) -> ServiceRequestModel:
    repo = ServiceRequestRepository(session)
    if for_update:
        record = await repo.get_by_id_for_update(request_id)
    else:
        record = await repo.get_by_id(request_id)
    if record is None:
        raise RequestNotFound(f"Request {request_id} not found")
    return record


# ── Transitions ───────────────────────────────────────────────────────


async def transition(
    session: AsyncSession,
    record: ServiceRequestModel,
    target: RequestStatus,
    *,
    actor: Actor,
    service_notes: Optional[str] = None,
    payment_details: Optional[dict[str, Any]] = None,
    now: Optional[datetime] = None,
) -> ServiceRequestModel:
    """Apply one lifecycle step to an already-loaded record."""
    previous = RequestStatus(record.status)
    apply_transition(
        record,
        target,
        now=now or utcnow(),
        actor=actor,
        service_notes=service_notes,
        payment_details=payment_details,
    )
    if target in _RELEASING_STATUSES:
        await _release_provider(session, record)

    logger.info(
        "Request %s: %s -> %s (%s)",
        record.id,
        previous.value,
        RequestStatus(target).value,
        Actor(actor).value,
    )
    return record


async def update_status(
    session: AsyncSession,
    request_id: int,
    status: Optional[str],
    *,
    actor: Actor = Actor.PROVIDER,
    service_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ServiceRequestModel:
    """Generic status write used by ``PUT /request/{id}/status``."""
    try:
        target = RequestStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown status: {status}") from None

    if target == RequestStatus.CANCELLED:
        return await cancel_request(session, request_id, actor=actor, now=now)
    if target == RequestStatus.PAID:
        raise InvalidStateTransition("Requests are marked paid by the payment endpoint")

    record = await load_request(session, request_id, for_update=True)
    return await transition(
        session, record, target, actor=actor, service_notes=service_notes, now=now
    )


async def cancel_request(
    session: AsyncSession,
    request_id: int,
    *,
    actor: Actor,
    now: Optional[datetime] = None,
) -> ServiceRequestModel:
    """Cancel before completion.  Cancelling twice returns the same record."""
    record = await load_request(session, request_id, for_update=True)
    if record.status == RequestStatus.CANCELLED:
        return record
    return await transition(
        session, record, RequestStatus.CANCELLED, actor=actor, now=now
    )


def _check_assignee(record: ServiceRequestModel, provider_id: Optional[int]) -> None:
    if provider_id is not None and record.provider_id != provider_id:
        raise InvalidStateTransition(
            f"Request {record.id} is assigned to another provider"
        )


async def accept_request(
    session: AsyncSession,
    request_id: int,
    *,
    provider_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ServiceRequestModel:
    record = await load_request(session, request_id, for_update=True)
    _check_assignee(record, provider_id)
    if record.status != RequestStatus.REQUESTED:
        raise InvalidStateTransition(
            f"Cannot accept a request in status {RequestStatus(record.status).value}"
        )
    return await transition(
        session, record, RequestStatus.ACCEPTED, actor=Actor.PROVIDER, now=now
    )


async def advance_request(
    session: AsyncSession,
    request_id: int,
    *,
    provider_id: Optional[int] = None,
    service_notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ServiceRequestModel:
    """Move exactly one step: Accepted -> En Route -> Arrived -> Completed."""
    record = await load_request(session, request_id, for_update=True)
    _check_assignee(record, provider_id)
    target = next_status(record.status)
    return await transition(
        session,
        record,
        target,
        actor=Actor.PROVIDER,
        service_notes=service_notes,
        now=now,
    )


async def complete_request(
    session: AsyncSession,
    request_id: int,
    *,
    service_notes: Optional[str],
    provider_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ServiceRequestModel:
    """Provider sign-off.  Notes are mandatory."""
    if not (service_notes or "").strip():
        raise ValidationError("Service notes are required before completing a job")
    record = await load_request(session, request_id, for_update=True)
    _check_assignee(record, provider_id)
    return await transition(
        session,
        record,
        RequestStatus.COMPLETED,
        actor=Actor.PROVIDER,
        service_notes=service_notes,
        now=now,
    )


# ── Payment ───────────────────────────────────────────────────────────


def _parse_payment_method(value: Optional[str]) -> PaymentMethod:
    if not value:
        raise ValidationError("Payment method is required")
    try:
        return PaymentMethod(value)
    except ValueError:
        raise ValidationError(f"Unsupported payment method: {value}") from None


async def pay_request(
    session: AsyncSession,
    request_id: int,
    *,
    payment_method: Optional[str],
    amount: Optional[float] = None,
    insurance_copay: bool = False,
    now: Optional[datetime] = None,
) -> ServiceRequestModel:
    method = _parse_payment_method(payment_method)
    record = await load_request(session, request_id, for_update=True)
    status = RequestStatus(record.status)
    if status != RequestStatus.COMPLETED:
        raise PaymentNotAllowed(
            f"Request {request_id} is {status.value}; only completed jobs can be paid"
        )

    due = payment_strategy(insurance_copay, settings.insurance_copay).amount_due(
        record.price
    )
    if amount is not None and abs(amount - due) >= 0.005:
        raise ValidationError(f"Amount {amount:.2f} does not match amount due {due:.2f}")

    now = now or utcnow()
    details = {
        "method": method.value,
        "amount": due,
        "insurance_copay": insurance_copay,
        "transaction_id": f"TXN-{uuid.uuid4().hex[:12].upper()}",
        "processed_at": now.isoformat(),
    }
    return await transition(
        session,
        record,
        RequestStatus.PAID,
        actor=Actor.CUSTOMER,
        payment_details=details,
        now=now,
    )


# ── Providers ─────────────────────────────────────────────────────────


async def _release_provider(
    session: AsyncSession, record: ServiceRequestModel
) -> None:
    if record.provider_id is None:
        return
    provider = await ProviderRepository(session).get_by_id(record.provider_id)
    if provider is not None and provider.status == ProviderStatus.BUSY:
        provider.status = ProviderStatus.AVAILABLE


async def set_provider_availability(
    session: AsyncSession, provider_id: int, online: bool
) -> ProviderModel:
    provider = await ProviderRepository(session).get_by_id(provider_id)
    if provider is None:
        raise ProviderNotFound(f"Provider {provider_id} not found")

    if online:
        if provider.status == ProviderStatus.OFFLINE:
            provider.status = ProviderStatus.AVAILABLE
    elif provider.status == ProviderStatus.BUSY:
        raise InvalidStateTransition("Cannot go offline with a job in progress")
    else:
        provider.status = ProviderStatus.OFFLINE

    logger.info("Provider %s is now %s", provider.name, ProviderStatus(provider.status).value)
    return provider


# ── Feedback ──────────────────────────────────────────────────────────


async def submit_feedback(
    session: AsyncSession,
    *,
    request_id: int,
    feedback_type: FeedbackType,
    rating: int,
    comments: Optional[str] = None,
) -> FeedbackModel:
    record = await load_request(session, request_id)
    if RequestStatus(record.status) not in (RequestStatus.COMPLETED, RequestStatus.PAID):
        raise InvalidStateTransition("Feedback is accepted only for completed jobs")
    if not 1 <= rating <= 5:
        raise ValidationError("Rating must be between 1 and 5")

    feedback = FeedbackModel(
        request_id=request_id,
        feedback_type=FeedbackType(feedback_type),
        rating=rating,
        comments=(comments or "").strip() or None,
    )
    return await FeedbackRepository(session).create(feedback)
