"""Domain errors raised by the booking engine.

Every error carries a machine readable ``reason`` and the HTTP status the API
layer maps it to. There is no ``NoAvailability`` error: an empty slot list
or an unresolved staff member is a normal result, not an error.
"""

from typing import Any, Optional


class BookingError(Exception):
    """Base class for booking engine errors."""

    reason = "booking_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str = "", details: Optional[dict[str, Any]] = None):
        super().__init__(message or self.reason)
        self.message = message or self.reason
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"reason": self.reason, "detail": self.message}
        if self.retryable:
            payload["retryable"] = True
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidInput(BookingError):
    """Malformed date/time, non-positive duration or unknown ids."""

    reason = "invalid_input"
    status_code = 422


class NotFound(BookingError):
    reason = "not_found"
    status_code = 404


class ScheduleDataError(BookingError):
    """Stored work-window data for one staff member cannot be interpreted."""

    reason = "schedule_data_error"
    status_code = 500

    def __init__(self, message: str = "", staff_id: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.staff_id = staff_id


class WorkWindowConflict(BookingError):
    reason = "work_window_conflict"
    status_code = 409


class SlotUnavailable(BookingError):
    """The requested interval cannot be committed; the caller should pick another time."""

    reason = "slot_unavailable"
    status_code = 409

    NO_STAFF = "no staff available for requested time"
    TAKEN = "slot no longer available"


class InvalidStatusTransition(BookingError):
    reason = "invalid_status_transition"
    status_code = 409


class PersistenceUnavailable(BookingError):
    """Transient storage failure; resubmitting the identical request is safe."""

    reason = "persistence_unavailable"
    status_code = 503
    retryable = True
