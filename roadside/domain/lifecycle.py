"""
Request lifecycle state machine.

    Requested -> Accepted -> En Route -> Arrived -> Completed -> Paid
        \\___________\\___________\\__________\\
                                               -> Cancelled

The functions here work on any *record-shaped* object (the ORM model or the
``ServiceRequest`` dataclass) so that the API, the simulation worker and the
unit tests all share one set of rules and side effects.

Timers measure from ``status_changed_at``.  Every transition restamps it, so
an explicit provider action restarts whatever countdown the simulation had
been running for the previous status.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from .enums import (
    ADVANCEABLE_STATUSES,
    REQUEST_TRANSITIONS,
    Actor,
    RequestStatus,
)
from .errors import InvalidStateTransition, ValidationError
from .eta import as_utc, eta_reached

_NEXT_STEP = {
    RequestStatus.ACCEPTED: RequestStatus.EN_ROUTE,
    RequestStatus.EN_ROUTE: RequestStatus.ARRIVED,
    RequestStatus.ARRIVED: RequestStatus.COMPLETED,
}


def check_transition(current: RequestStatus, target: RequestStatus) -> None:
    """Raise ``InvalidStateTransition`` unless *current* -> *target* is legal."""
    current, target = RequestStatus(current), RequestStatus(target)
    allowed = REQUEST_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidStateTransition(
            f"Cannot transition from {current.value} to {target.value}"
        )


def next_status(current: RequestStatus) -> RequestStatus:
    """The single forward step a provider's ``advance`` performs."""
    current = RequestStatus(current)
    if current not in ADVANCEABLE_STATUSES:
        raise InvalidStateTransition(
            f"Cannot advance a request in status {current.value}"
        )
    return _NEXT_STEP[current]


def assign_provider(record, provider_id: int, provider_name: str) -> None:
    """Set the provider once; reassignment is refused."""
    if record.provider_id is not None and record.provider_id != provider_id:
        raise InvalidStateTransition("Request already has a provider assigned")
    record.provider_id = provider_id
    record.provider_name = provider_name


def apply_transition(
    record,
    target: RequestStatus,
    *,
    now: datetime,
    actor: Actor = Actor.SYSTEM,
    service_notes: Optional[str] = None,
    payment_details: Optional[dict[str, Any]] = None,
) -> None:
    """Validate and apply *target* to *record*, including side effects."""
    target = RequestStatus(target)
    check_transition(record.status, target)

    if target == RequestStatus.ACCEPTED:
        if record.provider_id is None:
            raise InvalidStateTransition("Cannot accept a request with no provider")
        record.accepted_at = now
        record.estimated_arrival_time = now + timedelta(
            minutes=record.quoted_eta_minutes
        )

    elif target == RequestStatus.EN_ROUTE:
        # Countdown baseline restarts when the provider actually leaves
        record.estimated_arrival_time = now + timedelta(
            minutes=record.quoted_eta_minutes
        )

    elif target == RequestStatus.ARRIVED:
        record.arrived_at = now

    elif target == RequestStatus.COMPLETED:
        notes = (service_notes or record.service_notes or "").strip()
        if not notes:
            raise InvalidStateTransition(
                "Service notes are required before completing a job"
            )
        record.service_notes = notes
        record.completion_time = now

    elif target == RequestStatus.PAID:
        if not payment_details or not payment_details.get("transaction_id"):
            raise ValidationError("Payment details are required")
        record.payment_details = dict(payment_details)
        record.transaction_id = payment_details["transaction_id"]
        record.paid_at = now

    elif target == RequestStatus.CANCELLED:
        record.cancelled_at = now
        record.cancelled_by = Actor(actor).value

    record.status = target
    record.status_changed_at = now


def due_transition(
    record,
    now: datetime,
    *,
    accept_after: float,
    depart_after: float,
    auto_arrive: bool,
) -> Optional[RequestStatus]:
    """Timer-driven step the simulation should take for *record*, if any."""
    status = RequestStatus(record.status)
    if record.status_changed_at is None:
        return None
    elapsed = (as_utc(now) - as_utc(record.status_changed_at)).total_seconds()

    if status == RequestStatus.REQUESTED and elapsed >= accept_after:
        return RequestStatus.ACCEPTED
    if status == RequestStatus.ACCEPTED and elapsed >= depart_after:
        return RequestStatus.EN_ROUTE
    if (
        status == RequestStatus.EN_ROUTE
        and auto_arrive
        and eta_reached(record.estimated_arrival_time, now)
    ):
        return RequestStatus.ARRIVED
    return None
