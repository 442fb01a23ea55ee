"""Pydantic request / response schemas for the REST API.

The wire format is camelCase (``serviceType``, ``requestId``); Python code
uses snake_case and both spellings are accepted on input.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from roadside.domain.enums import (
    Actor,
    FeedbackType,
    ProviderStatus,
    RequestStatus,
    ServiceType,
    UserRole,
)
from roadside.domain.eta import displayed_eta


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Requests ──────────────────────────────────────────────────────────


class UserCreate(CamelModel):
    # Required fields are checked by the accounts service, as for requests.
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    license_plate: Optional[str] = Field(None, max_length=20)
    role: UserRole = UserRole.CUSTOMER


class ServiceRequestCreate(CamelModel):
    # Presence of user / type / location is checked by the dispatch service
    # so that missing fields surface as the same ValidationError as blanks.
    user_id: Optional[int] = None
    service_type: Optional[str] = None
    location: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)


class StatusUpdate(CamelModel):
    status: Optional[str] = None
    service_notes: Optional[str] = None
    actor: Actor = Actor.PROVIDER


class CancelBody(CamelModel):
    actor: Actor = Actor.CUSTOMER


class DriverAction(CamelModel):
    provider_id: Optional[int] = None
    service_notes: Optional[str] = None


class AvailabilityUpdate(CamelModel):
    online: bool


class PaymentCreate(CamelModel):
    payment_method: Optional[str] = None
    amount: Optional[float] = Field(None, ge=0)
    insurance_copay: bool = False


class FeedbackCreate(CamelModel):
    request_id: int
    feedback_type: FeedbackType
    rating: int = Field(..., ge=1, le=5)
    comments: Optional[str] = Field(None, max_length=500)


# ── Responses ─────────────────────────────────────────────────────────


class UserResponse(CamelModel):
    id: int
    name: str
    email: str
    license_plate: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None


class RegisterResponse(CamelModel):
    success: bool = True
    message: str = "Registration successful!"
    user: UserResponse


class RequestCreatedResponse(CamelModel):
    success: bool = True
    request_id: int
    provider_name: Optional[str] = None
    eta: Optional[int] = None
    status: RequestStatus
    price: float


class StatusResponse(CamelModel):
    success: bool = True
    status: RequestStatus
    provider_name: Optional[str] = None
    eta: Optional[int] = None


class ServiceRequestResponse(CamelModel):
    id: int
    user_id: int
    service_type: ServiceType
    location: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    status: RequestStatus
    provider_id: Optional[int] = None
    provider_name: Optional[str] = None
    price: float
    eta: Optional[int] = None
    service_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    estimated_arrival_time: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    completion_time: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_details: Optional[dict[str, Any]] = None

    @classmethod
    def from_record(cls, record, now: datetime) -> "ServiceRequestResponse":
        response = cls.model_validate(record)
        response.eta = displayed_eta(record, now)
        return response


class PaymentResponse(CamelModel):
    success: bool = True
    transaction_id: str
    amount: float
    status: RequestStatus
    message: str


class ProviderResponse(CamelModel):
    id: int
    name: str
    service_type: ServiceType
    status: ProviderStatus
    plate: Optional[str] = None


class FeedbackResponse(CamelModel):
    success: bool = True
    feedback_id: int


class HealthResponse(BaseModel):
    status: str = "ok"
    live_requests: int = 0


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    message: str
