"""
Booking domain errors.

Each error carries a stable ``code`` (its kind) and a human-readable ``message``; the API
layer maps them to HTTP statuses in ``app.main``.
"""
from typing import Any, Dict, Optional


class BookingError(Exception):
    """Base for every error raised by the booking engine."""

    code = "BOOKING_ERROR"
    http_status = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(BookingError):
    """Malformed input: bad dates, negative refund, missing required field."""

    code = "VALIDATION_ERROR"
    http_status = 400


class NotFoundError(BookingError):
    code = "NOT_FOUND"
    http_status = 404


class ConflictError(BookingError):
    """Business rule violated given the current state."""

    code = "CONFLICT"
    http_status = 409


class AccessDeniedError(BookingError):
    code = "ACCESS_DENIED"
    http_status = 403


class BookingIntegrityError(ConflictError):
    """Persisted booking is missing a required relation. Reported to callers as a conflict."""

    code = "INTEGRITY_ERROR"
