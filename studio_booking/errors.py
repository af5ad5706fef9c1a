"""
Domain exceptions for the booking core.

Each exception carries a machine-readable ``code``, optional ``details`` and
the HTTP status it maps to. A single handler in ``main.py`` turns them into
JSON responses, so services and repositories never raise HTTPException.
"""

from typing import Any, Dict, Optional


class BookingDomainError(Exception):
    """Base exception for all booking domain errors"""

    status_code = 400
    default_code = "BOOKING_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class ValidationError(BookingDomainError):
    """Input failed a domain rule (bad studio, off-grid time, duration limits...)"""

    status_code = 422
    default_code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details, **kwargs)


class ConflictError(BookingDomainError):
    """Requested slot overlaps an active booking or a blocked slot"""

    status_code = 409
    default_code = "SLOT_CONFLICT"

    def __init__(
        self,
        message: str = "This slot was just taken. Please pick another time and try again.",
        conflicting_booking_ids: Optional[list] = None,
        blocking_slot_id: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", None) or {}
        details["conflicting_booking_ids"] = list(conflicting_booking_ids or [])
        if blocking_slot_id:
            details["blocking_slot_id"] = blocking_slot_id
        super().__init__(message, details=details, **kwargs)


class RateNotFoundError(BookingDomainError):
    """Rate card has no entry for a studio/configuration pair"""

    status_code = 500
    default_code = "RATE_NOT_FOUND"


class AvailabilityUnknown(BookingDomainError):
    """The store could not be read, so availability cannot be decided"""

    status_code = 503
    default_code = "AVAILABILITY_UNKNOWN"

    def __init__(self, message: str = "Availability could not be determined, please retry"):
        super().__init__(message)


class TransitionError(BookingDomainError):
    """Status transition not permitted from the booking's current status"""

    status_code = 409
    default_code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, action: str, message: Optional[str] = None):
        self.from_status = from_status
        self.action = action
        super().__init__(
            message or f"Cannot {action} a booking that is {from_status}",
            details={"from_status": from_status, "action": action},
        )


class NotFoundError(BookingDomainError):
    status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(message, details={"resource": resource, "id": identifier})


class VerificationError(BookingDomainError):
    """Customer identity (phone + one-time code) could not be verified"""

    status_code = 403
    default_code = "VERIFICATION_FAILED"
