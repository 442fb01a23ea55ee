"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``ServiceRequest``: delegates to
  ``lifecycle.apply_transition`` so the entity and the ORM row obey the same
  rules (Requested -> Accepted -> En Route -> Arrived -> Completed -> Paid,
  or Cancelled before completion).
- ``Provider.is_available`` is the only roster invariant matching relies on.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from . import lifecycle
from .enums import Actor, ProviderStatus, RequestStatus, ServiceType
from .eta import utcnow


@dataclass
class ServiceRequest:
    id: Optional[int] = None
    user_id: int = 0
    service_type: ServiceType = ServiceType.FLAT_TIRE
    location: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: RequestStatus = RequestStatus.REQUESTED
    provider_id: Optional[int] = None
    provider_name: Optional[str] = None
    price: float = 0.0
    quoted_eta_minutes: int = 15
    service_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    status_changed_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    estimated_arrival_time: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    completion_time: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_details: dict[str, Any] = field(default_factory=dict)

    def transition_to(
        self,
        new_status: RequestStatus,
        *,
        now: Optional[datetime] = None,
        actor: Actor = Actor.SYSTEM,
        service_notes: Optional[str] = None,
        payment_details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Move to *new_status* if the transition is legal, else raise."""
        lifecycle.apply_transition(
            self,
            new_status,
            now=now or utcnow(),
            actor=actor,
            service_notes=service_notes,
            payment_details=payment_details,
        )

    def cancel(self, actor: Actor, *, now: Optional[datetime] = None) -> None:
        """Cancel; a second cancel is a no-op."""
        if self.status == RequestStatus.CANCELLED:
            return
        self.transition_to(RequestStatus.CANCELLED, now=now, actor=actor)


@dataclass
class Provider:
    id: Optional[int] = None
    name: str = ""
    service_type: ServiceType = ServiceType.FLAT_TIRE
    status: ProviderStatus = ProviderStatus.AVAILABLE
    plate: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def is_available(self) -> bool:
        return ProviderStatus(self.status) == ProviderStatus.AVAILABLE
