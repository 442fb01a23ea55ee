"""Domain enumerations and state-transition rules."""

import enum


class RequestStatus(str, enum.Enum):
    REQUESTED = "Requested"
    ACCEPTED = "Accepted"
    EN_ROUTE = "En Route"
    ARRIVED = "Arrived"
    COMPLETED = "Completed"
    PAID = "Paid"
    CANCELLED = "Cancelled"


# State machine: maps current status -> set of valid next statuses
REQUEST_TRANSITIONS: dict[RequestStatus, set[RequestStatus]] = {
    RequestStatus.REQUESTED: {RequestStatus.ACCEPTED, RequestStatus.CANCELLED},
    RequestStatus.ACCEPTED: {RequestStatus.EN_ROUTE, RequestStatus.CANCELLED},
    RequestStatus.EN_ROUTE: {RequestStatus.ARRIVED, RequestStatus.CANCELLED},
    RequestStatus.ARRIVED: {RequestStatus.COMPLETED, RequestStatus.CANCELLED},
    RequestStatus.COMPLETED: {RequestStatus.PAID},
    RequestStatus.PAID: set(),
    RequestStatus.CANCELLED: set(),
}

TERMINAL_STATUSES = (RequestStatus.PAID, RequestStatus.CANCELLED)
LIVE_STATUSES = tuple(s for s in RequestStatus if s not in TERMINAL_STATUSES)

# Statuses the provider moves forward one step at a time
ADVANCEABLE_STATUSES = frozenset(
    {RequestStatus.ACCEPTED, RequestStatus.EN_ROUTE, RequestStatus.ARRIVED}
)


class ServiceType(str, enum.Enum):
    FLAT_TIRE = "flat-tire"
    LOCKSMITH = "locksmith"
    EMERGENCY = "emergency"
    TOWING = "towing"


class ProviderStatus(str, enum.Enum):
    AVAILABLE = "available"
    BUSY = "busy"
    OFFLINE = "offline"


class Actor(str, enum.Enum):
    CUSTOMER = "customer"
    PROVIDER = "provider"
    SYSTEM = "system"


class PaymentMethod(str, enum.Enum):
    CARD = "card"
    CASH = "cash"
    WALLET = "wallet"


class FeedbackType(str, enum.Enum):
    CUSTOMER_TO_DRIVER = "customer_to_driver"
    DRIVER_TO_CUSTOMER = "driver_to_customer"


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    DRIVER = "driver"
