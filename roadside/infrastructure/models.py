"""
SQLAlchemy ORM models.

Tables
------
* ``users``             -- registered customers and drivers
* ``providers``         -- static roster of roadside providers
* ``service_requests``  -- one row per customer request, the lifecycle record
* ``feedback``          -- post-job ratings in either direction

Indexes
-------
* **B-Tree** on ``status``, ``user_id`` and ``provider_id`` for the driver
  queue, the one-live-request-per-customer check and the simulation worker.
* **Partial unique** ``uq_requests_user_live`` on ``user_id`` over live
  statuses: two concurrent submits for one customer cannot both commit.
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)

from .database import Base
from roadside.domain.enums import (
    FeedbackType,
    ProviderStatus,
    RequestStatus,
    ServiceType,
    UserRole,
)

_LIVE_ONLY = "status NOT IN ('Paid', 'Cancelled')"


def _values(enum_cls):
    return [member.value for member in enum_cls]


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    license_plate = Column(String(20), nullable=True)
    role = Column(
        Enum(UserRole, name="userrole", values_callable=_values),
        default=UserRole.CUSTOMER,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ProviderModel(Base):
    __tablename__ = "providers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    service_type = Column(
        Enum(ServiceType, name="servicetype", values_callable=_values),
        nullable=False,
    )
    status = Column(
        Enum(ProviderStatus, name="providerstatus", values_callable=_values),
        default=ProviderStatus.AVAILABLE,
        nullable=False,
    )
    plate = Column(String(20), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_providers_service_status", "service_type", "status"),
    )


class ServiceRequestModel(Base):
    __tablename__ = "service_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    service_type = Column(
        Enum(ServiceType, name="servicetype", values_callable=_values),
        nullable=False,
    )
    location = Column(String(255), nullable=False)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    status = Column(
        Enum(RequestStatus, name="requeststatus", values_callable=_values),
        default=RequestStatus.REQUESTED,
        nullable=False,
    )
    provider_id = Column(Integer, ForeignKey("providers.id"), nullable=True)
    provider_name = Column(String(120), nullable=True)
    price = Column(Float, nullable=False)
    quoted_eta_minutes = Column(Integer, nullable=False)
    service_notes = Column(Text, nullable=True)

    # Lifecycle timestamps, written when the matching transition happens
    created_at = Column(DateTime(timezone=True), nullable=False)
    status_changed_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    estimated_arrival_time = Column(DateTime(timezone=True), nullable=True)
    arrived_at = Column(DateTime(timezone=True), nullable=True)
    completion_time = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_by = Column(String(20), nullable=True)

    transaction_id = Column(String(40), unique=True, nullable=True)
    payment_details = Column(JSON, nullable=True)

    __table_args__ = (
        Index("idx_requests_status", "status"),
        Index("idx_requests_user", "user_id"),
        Index("idx_requests_provider", "provider_id"),
        Index(
            "uq_requests_user_live",
            "user_id",
            unique=True,
            postgresql_where=text(_LIVE_ONLY),
            sqlite_where=text(_LIVE_ONLY),
        ),
    )


class FeedbackModel(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_id = Column(
        Integer, ForeignKey("service_requests.id"), nullable=False
    )
    feedback_type = Column(
        Enum(FeedbackType, name="feedbacktype", values_callable=_values),
        nullable=False,
    )
    rating = Column(Integer, nullable=False)
    comments = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_feedback_request", "request_id"),)
