"""
Booking Engine Exceptions

User-facing errors raised by the availability, pricing and booking services.
Every error carries a stable code, an HTTP status and a JSON-friendly payload
so the API layer can render it without knowing the concrete type.
"""

from datetime import date, time
from typing import Optional, Dict, Any


class BookingEngineError(Exception):
    """Base exception for booking engine errors."""

    code = "BOOKING_ENGINE_ERROR"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "detail": self.message,
            "code": self.code,
            **self.details,
        }


# ==================
# Validation errors
# ==================

class InvalidRange(BookingEngineError):
    """Raised for a malformed or inverted date range."""

    code = "INVALID_RANGE"

    def __init__(self, start: Optional[date], end: Optional[date], message: str = None):
        super().__init__(
            message or f"End date {end} must be after start date {start}",
            details={
                "start": start.isoformat() if start else None,
                "end": end.isoformat() if end else None,
            }
        )


class StayLengthViolation(BookingEngineError):
    """Raised when a stay is shorter or longer than the unit allows."""

    code = "STAY_LENGTH"

    def __init__(self, nights: int, min_nights: int, max_nights: Optional[int]):
        if nights < min_nights:
            message = f"Minimum stay is {min_nights} nights, requested {nights}"
        else:
            message = f"Maximum stay is {max_nights} nights, requested {nights}"
        super().__init__(
            message,
            details={"nights": nights, "min_nights": min_nights, "max_nights": max_nights}
        )


class InvalidPrice(BookingEngineError):
    """Raised when a price is below 1."""

    code = "INVALID_PRICE"

    def __init__(self, price: Any):
        super().__init__(
            f"Price must be a positive integer, got {price}",
            details={"price": price}
        )


class InvalidWindow(BookingEngineError):
    """Raised when check-in is not strictly later in the day than check-out."""

    code = "INVALID_WINDOW"

    def __init__(self, check_in: Any, check_out: Any, message: str = None):
        super().__init__(
            message or f"Check-in time {check_in} must be later in the day than check-out time {check_out}",
            details={"check_in_time": _time_str(check_in), "check_out_time": _time_str(check_out)}
        )


class InsufficientBuffer(BookingEngineError):
    """Raised when the turnover window is shorter than one hour."""

    code = "INSUFFICIENT_BUFFER"

    def __init__(self, gap_minutes: int):
        super().__init__(
            f"At least 60 minutes are needed between check-out and check-in, got {gap_minutes}",
            details={"gap_minutes": gap_minutes}
        )


# ==================
# State conflicts
# ==================

class DateOccupied(BookingEngineError):
    """Raised when a price change targets a date a guest occupies."""

    code = "DATE_OCCUPIED"
    status_code = 409

    def __init__(self, target_date: date):
        self.date = target_date
        super().__init__(
            f"Date {target_date} is covered by an active reservation",
            details={"date": target_date.isoformat()}
        )


class Conflict(BookingEngineError):
    """
    Raised when a new reservation overlaps an existing one.

    Also raised when the store rejects the commit (exclusion constraint,
    lock contention) so callers handle one shape for both.
    """

    code = "CONFLICT"
    status_code = 409

    def __init__(self, reservation=None, message: str = None):
        self.reservation = reservation
        details: Dict[str, Any] = {}
        if reservation is not None:
            details["reservation_id"] = reservation.id
            details["reservation_start"] = reservation.start_date.isoformat()
            details["reservation_end"] = reservation.end_date.isoformat()
        super().__init__(message or "Selected dates overlap an existing reservation", details=details)


class BufferViolation(BookingEngineError):
    """
    Raised when the turnover buffer around a neighbouring stay is not respected.

    required_earliest_start is set when the preceding stay is too close,
    latest_end when the candidate runs into the following stay.
    """

    code = "BUFFER_VIOLATION"
    status_code = 409

    def __init__(
        self,
        required_earliest_start: Optional[date] = None,
        latest_end: Optional[date] = None,
        buffer_hours: Optional[int] = None
    ):
        self.required_earliest_start = required_earliest_start
        self.latest_end = latest_end
        if required_earliest_start is not None:
            message = f"Cleaning buffer not respected, earliest possible start is {required_earliest_start}"
        else:
            message = f"Cleaning buffer not respected, stay must end by {latest_end}"
        super().__init__(
            message,
            details={
                "required_earliest_start": required_earliest_start.isoformat() if required_earliest_start else None,
                "latest_end": latest_end.isoformat() if latest_end else None,
                "buffer_hours": buffer_hours,
            }
        )


class IdempotencyKeyReused(BookingEngineError):
    """Raised when a guest sends an idempotency key again for a different stay."""

    code = "IDEMPOTENCY_KEY_REUSED"
    status_code = 422

    def __init__(self, key: str, reservation):
        super().__init__(
            f"Idempotency key {key} was already used for a different stay",
            details={
                "idempotency_key": key,
                "reservation_start": reservation.start_date.isoformat(),
                "reservation_end": reservation.end_date.isoformat(),
            }
        )


class InvalidStatusTransition(BookingEngineError):
    """Raised for a reservation status change the lifecycle does not allow."""

    code = "INVALID_STATUS_TRANSITION"
    status_code = 409

    def __init__(self, current_status: str, target_status: str):
        super().__init__(
            f"Cannot change reservation status from {current_status} to {target_status}",
            details={"from": current_status, "to": target_status}
        )


# ==================
# Lookups
# ==================

class NotFound(BookingEngineError):
    code = "NOT_FOUND"
    status_code = 404


class UnitNotFound(NotFound):
    def __init__(self, unit_id: str):
        super().__init__(f"Unit not found: {unit_id}", details={"unit_id": unit_id})


class ReservationNotFound(NotFound):
    def __init__(self, reservation_id: str):
        super().__init__(f"Reservation not found: {reservation_id}", details={"reservation_id": reservation_id})


def _time_str(value: Any) -> Any:
    if isinstance(value, time):
        return value.strftime("%H:%M")
    return value
