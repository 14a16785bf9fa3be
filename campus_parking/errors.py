# campus_parking/errors.py
"""
Typed failures raised by the booking core.

Every error carries a stable machine-readable code, the HTTP status the API
layer should answer with, and a human-readable message. main.py renders them
as {"detail": message, "code": code}.
"""


class ParkingError(Exception):
    code = "PARKING_ERROR"
    status_code = 400
    default_message = "Request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


# ── Not found ────────────────────────────────────────────────────────────────
class NotFound(ParkingError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Resource not found"


class ZoneNotFound(NotFound):
    code = "ZONE_NOT_FOUND"
    default_message = "Zone not found"


class BookingNotFound(NotFound):
    code = "BOOKING_NOT_FOUND"
    default_message = "Booking not found"


class EventNotFound(NotFound):
    code = "EVENT_NOT_FOUND"
    default_message = "Event not found"


class NotificationNotFound(NotFound):
    code = "NOTIFICATION_NOT_FOUND"
    default_message = "Notification not found"


# ── Auth ─────────────────────────────────────────────────────────────────────
class Unauthenticated(ParkingError):
    code = "UNAUTHENTICATED"
    status_code = 401
    default_message = "Access token required"


class AccessDenied(ParkingError):
    code = "ACCESS_DENIED"
    status_code = 403
    default_message = "Not authorized"


# ── State machine ────────────────────────────────────────────────────────────
class InvalidTransition(ParkingError):
    code = "INVALID_TRANSITION"
    status_code = 409
    default_message = "Booking is not in a state that allows this action"


class AlreadyCancelled(InvalidTransition):
    code = "ALREADY_CANCELLED"
    default_message = "Booking already cancelled or closed"


class CheckInRequired(InvalidTransition):
    code = "CHECK_IN_REQUIRED"
    default_message = "Please check-in first"


# ── Capacity ─────────────────────────────────────────────────────────────────
class NoSlotsAvailable(ParkingError):
    code = "NO_SLOTS_AVAILABLE"
    status_code = 409
    default_message = "No slots available for this date"


class DuplicateBooking(ParkingError):
    code = "DUPLICATE_BOOKING"
    status_code = 409
    default_message = "You already have an active booking for this zone on this date"


class ZoneInUse(ParkingError):
    code = "ZONE_IN_USE"
    status_code = 409
    default_message = "Cannot delete zone with active bookings"


# ── Input / concurrency ──────────────────────────────────────────────────────
class ValidationFailed(ParkingError):
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "Validation failed"


class Conflict(ParkingError):
    code = "CONFLICT"
    status_code = 409
    default_message = "Request conflicted with a concurrent update, please retry"
