"""
Domain error hierarchy.

Every error carries the HTTP status it maps to and a short machine-readable
``code``.  The API layer renders them as ``{"success": false, ...}`` bodies
and the HTTP client maps those bodies back to the same classes.
"""

from __future__ import annotations


class RoadsideError(Exception):
    status_code: int = 500
    code: str = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self)


class ValidationError(RoadsideError):
    """Missing or malformed input."""

    status_code = 400
    code = "validation_error"


class NoProviderAvailable(RoadsideError):
    """No available provider offers this service type."""

    status_code = 404
    code = "no_provider_available"


class RequestNotFound(RoadsideError):
    """Service request not found."""

    status_code = 404
    code = "not_found"


class ProviderNotFound(RoadsideError):
    """Provider not found."""

    status_code = 404
    code = "provider_not_found"


class InvalidStateTransition(RoadsideError):
    """Raised when a request status change violates the state machine."""

    status_code = 409
    code = "invalid_transition"


class PaymentNotAllowed(InvalidStateTransition):
    """Payment attempted before the request was completed."""

    status_code = 400
    code = "payment_not_allowed"


class ActiveRequestExists(RoadsideError):
    """The customer already has a request in progress."""

    status_code = 409
    code = "active_request_exists"


class UserNotFound(RoadsideError):
    """No registered user with that id."""

    status_code = 404
    code = "user_not_found"


class EmailAlreadyRegistered(RoadsideError):
    """Email already registered."""

    status_code = 409
    code = "email_taken"


class TransientIOError(RoadsideError):
    """Network or storage failure; safe to retry."""

    status_code = 503
    code = "transient_io_error"


ERRORS_BY_CODE: dict[str, type[RoadsideError]] = {
    cls.code: cls
    for cls in (
        ValidationError,
        NoProviderAvailable,
        RequestNotFound,
        ProviderNotFound,
        InvalidStateTransition,
        PaymentNotAllowed,
        ActiveRequestExists,
        UserNotFound,
        EmailAlreadyRegistered,
        TransientIOError,
    )
}
