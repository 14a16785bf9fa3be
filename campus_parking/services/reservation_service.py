# campus_parking/services/reservation_service.py
"""
Reservation Ledger + Consistency Coordinator.

reserve_booking() makes "check availability, then claim a slot" atomic:
the zone load, the access check, the duplicate check, the availability
recount and the insert all run in ONE transaction opened at
BOOKING_ISOLATION_LEVEL. A concurrent writer that invalidates the recount
makes the database abort one of the two transactions; that attempt is
retried in a fresh session and sees the committed count.
No in-process lock is involved.

Every other lifecycle transition is a conditional UPDATE
(... WHERE id = :id AND status IN (:allowed)), so two racing requests can
never both apply the same transition.

Change events and push go out strictly after commit.
"""

import uuid
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple

from sqlalchemy.orm import Session

from campus_parking.config import settings
from campus_parking.database import run_serializable
from campus_parking.errors import (
    AccessDenied, AlreadyCancelled, BookingNotFound, CheckInRequired, Conflict,
    DuplicateBooking, InvalidTransition, NoSlotsAvailable, ValidationFailed, ZoneNotFound,
)
from campus_parking.models.booking import (
    Booking, BOOKING_STATUSES, CANCELLABLE_STATUSES, HELD_STATUSES, TERMINAL_STATUSES,
    STATUS_ACTIVE, STATUS_CANCELLED, STATUS_CHECKED_IN, STATUS_COMPLETED,
)
from campus_parking.models.zone import Zone, ZONE_TYPES
from campus_parking.services.availability_service import available_slots, day_bounds, start_of_day
from campus_parking.services.change_notifier import (
    notifier, booking_cancelled_event, booking_created_event, notification_event, zone_update_event,
)
from campus_parking.services.notification_service import create_notification
from campus_parking.services.push_service import send_user_push
from campus_parking.utils.logger import get_logger
from campus_parking.utils.security import CurrentUser, require_admin, require_owner_or_admin

logger = get_logger(__name__)

# Which zone types each role may book
ACCESS_RULES = {
    "student": ("student", "general"),
    "staff": ("staff", "student", "general"),
    "visitor": ("visitor", "general"),
    "admin": ZONE_TYPES,
}
DEFAULT_ACCESS = ("general",)


# ── Rules ────────────────────────────────────────────────────────────────────
def check_zone_access(role: str, zone_type: str):
    allowed = ACCESS_RULES.get(role, DEFAULT_ACCESS)
    if zone_type not in allowed:
        raise AccessDenied(f"{str(role).capitalize()}s are not allowed to book {zone_type} parking zones")


def parse_booking_day(value) -> datetime:
    """Accept a date, datetime or ISO string and return midnight of that day."""
    if isinstance(value, (date, datetime)):
        return start_of_day(value)
    try:
        return start_of_day(date.fromisoformat(str(value)[:10]))
    except (TypeError, ValueError):
        raise ValidationFailed(f"Invalid booking date '{value}'")


def _validate_duration(duration):
    if not isinstance(duration, int) or isinstance(duration, bool):
        raise ValidationFailed("Duration must be a whole number of hours")
    low, high = settings.BOOKING_MIN_DURATION_HOURS, settings.BOOKING_MAX_DURATION_HOURS
    if not low <= duration <= high:
        raise ValidationFailed(f"Duration must be between {low} and {high} hours")


def generate_qr_code() -> str:
    return f"{settings.QR_CODE_PREFIX}-{uuid.uuid4().hex[:8].upper()}"


# ── Reserve ──────────────────────────────────────────────────────────────────
def _reserve_once(db: Session, user: CurrentUser, zone_id: int, day: datetime,
                  duration: int, vehicle_number: Optional[str]) -> Tuple[Booking, int]:
    zone = db.query(Zone).filter(Zone.id == zone_id).first()
    if not zone:
        raise ZoneNotFound()
    check_zone_access(user.role, zone.type)

    start, end = day_bounds(day)
    duplicate = db.query(Booking.id).filter(
        Booking.user_id == user.user_id,
        Booking.zone_id == zone.id,
        Booking.date >= start,
        Booking.date <= end,
        Booking.status.in_(HELD_STATUSES),
    ).first()
    if duplicate:
        raise DuplicateBooking()

    # Recount inside this transaction; a concurrent claim aborts one of the two commits
    available = available_slots(db, zone, day)
    if available <= 0:
        raise NoSlotsAvailable()

    start_time = day + timedelta(hours=settings.BOOKING_DAY_START_HOUR)
    booking = Booking(
        user_id=user.user_id,
        zone_id=zone.id,
        zone_name=zone.name,
        qr_code=generate_qr_code(),
        date=day,
        start_time=start_time,
        end_time=start_time + timedelta(hours=duration),
        duration=duration,
        vehicle_number=vehicle_number.strip().upper() if vehicle_number else None,
        status=STATUS_ACTIVE,
        total_amount=(zone.price_per_hour or 0) * duration,
        created_at=datetime.utcnow(),
        violations=[],
    )
    db.add(booking)
    db.flush()

    create_notification(
        db, user.user_id, "Booking Confirmed",
        f"Your parking slot at {zone.name} has been confirmed for {day.date().isoformat()}",
        "booking", booking_id=booking.id,
    )
    db.commit()
    return booking, available - 1


async def reserve_booking(session_factory: Callable[[], Session], user: CurrentUser, zone_id: int,
                          booking_date, duration: int, vehicle_number: Optional[str] = None) -> Booking:
    day = parse_booking_day(booking_date)
    _validate_duration(duration)

    booking, available = run_serializable(
        session_factory,
        lambda db: _reserve_once(db, user, zone_id, day, duration, vehicle_number),
        label=f"Reserve on zone {zone_id} for {user.user_id}",
    )
    logger.info(f"[BOOKING] {booking.qr_code} created — user={user.user_id} zone={zone_id} "
                f"date={day.date()} duration={duration}h available={available}")

    notifier.publish(zone_update_event(zone_id, available))
    notifier.publish(booking_created_event(booking))

    db = session_factory()
    try:
        await send_user_push(
            db, user.user_id, "Booking Confirmed",
            f"Your parking slot at {booking.zone_name} has been confirmed for {day.date().isoformat()}",
            {"screen": "bookings", "bookingId": booking.id},
        )
    finally:
        db.close()
    return booking


# ── Lookups ──────────────────────────────────────────────────────────────────
def get_booking(db: Session, booking_id: int, user: Optional[CurrentUser] = None) -> Booking:
    booking = db.query(Booking).filter(Booking.id == booking_id).first()
    if not booking:
        raise BookingNotFound()
    if user is not None:
        require_owner_or_admin(user, booking.user_id)
    return booking


def get_booking_by_qr(db: Session, qr_code: str) -> Booking:
    qr_code = (qr_code or "").strip()
    if not qr_code:
        raise ValidationFailed("Valid QR code required")
    booking = db.query(Booking).filter(Booking.qr_code == qr_code).first()
    if not booking:
        raise BookingNotFound("Invalid QR code")
    return booking


def list_user_bookings(db: Session, user: CurrentUser, user_id: str, limit: int = 100) -> List[Booking]:
    require_owner_or_admin(user, user_id)
    return (
        db.query(Booking)
        .filter(Booking.user_id == str(user_id))
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .limit(limit)
        .all()
    )


def booking_history(db: Session, user: CurrentUser, status: Optional[str] = None,
                    start: Optional[date] = None, end: Optional[date] = None) -> List[Booking]:
    query = db.query(Booking).filter(Booking.user_id == user.user_id)
    if status:
        if status not in BOOKING_STATUSES:
            raise ValidationFailed(f"Unknown booking status '{status}'")
        query = query.filter(Booking.status == status)
    if start:
        query = query.filter(Booking.date >= start_of_day(start))
    if end:
        query = query.filter(Booking.date <= day_bounds(end)[1])
    return query.order_by(Booking.date.desc(), Booking.id.desc()).all()


def list_all_bookings(db: Session, user: CurrentUser, status: Optional[str] = None,
                      zone_id: Optional[int] = None, limit: int = 200) -> List[Booking]:
    require_admin(user)
    query = db.query(Booking)
    if status:
        query = query.filter(Booking.status == status)
    if zone_id is not None:
        query = query.filter(Booking.zone_id == zone_id)
    return query.order_by(Booking.created_at.desc(), Booking.id.desc()).limit(limit).all()


# ── Transitions ──────────────────────────────────────────────────────────────
def _transition(db: Session, booking: Booking, allowed: tuple, values: dict) -> bool:
    """Atomic compare-and-set on status. False means another request got there first."""
    updated = db.query(Booking).filter(
        Booking.id == booking.id,
        Booking.status.in_(allowed),
    ).update(values, synchronize_session=False)
    return updated == 1


def _zone_available(db: Session, booking: Booking) -> Optional[int]:
    if booking.zone_id is None:
        return None
    zone = db.query(Zone).filter(Zone.id == booking.zone_id).first()
    return available_slots(db, zone, booking.date) if zone else None


def _publish_zone_update(db: Session, booking: Booking):
    available = _zone_available(db, booking)
    if available is not None:
        notifier.publish(zone_update_event(booking.zone_id, available))


async def cancel_booking(db: Session, booking_id: int, user: CurrentUser) -> Booking:
    booking = get_booking(db, booking_id)
    require_owner_or_admin(user, booking.user_id)
    if booking.status in TERMINAL_STATUSES:
        raise AlreadyCancelled(f"Booking already {booking.status}")

    if not _transition(db, booking, CANCELLABLE_STATUSES, {"status": STATUS_CANCELLED}):
        db.rollback()
        raise AlreadyCancelled()
    create_notification(
        db, booking.user_id, "Booking Cancelled",
        f"Your parking slot at {booking.zone_name} has been cancelled",
        "cancellation", booking_id=booking.id,
    )
    db.commit()
    db.refresh(booking)
    logger.info(f"[BOOKING] {booking.qr_code} cancelled by {user.user_id}")

    _publish_zone_update(db, booking)
    notifier.publish(booking_cancelled_event(booking))
    await send_user_push(db, booking.user_id, "Booking Cancelled",
                         f"Your parking slot at {booking.zone_name} has been cancelled",
                         {"screen": "bookings", "bookingId": booking.id})
    return booking


def check_in(db: Session, booking: Booking) -> Booking:
    if booking.status == STATUS_CHECKED_IN:
        raise InvalidTransition("Already checked in")
    if booking.status != STATUS_ACTIVE:
        raise InvalidTransition(f"Cannot check in a {booking.status} booking")

    now = datetime.utcnow()
    if not _transition(db, booking, (STATUS_ACTIVE,), {"status": STATUS_CHECKED_IN, "check_in_time": now}):
        db.rollback()
        raise InvalidTransition("Booking is no longer active")
    create_notification(db, booking.user_id, "Check-in Successful",
                        f"You have checked in at {booking.zone_name}", "booking", booking_id=booking.id)
    db.commit()
    db.refresh(booking)
    logger.info(f"[BOOKING] {booking.qr_code} checked in")

    notifier.publish(notification_event(booking.user_id, "Check-in Successful",
                                        f"Checked in at {booking.zone_name}", "booking"))
    return booking


def check_out(db: Session, booking: Booking) -> Booking:
    if booking.check_in_time is None:
        raise CheckInRequired()
    if booking.status != STATUS_CHECKED_IN:
        raise InvalidTransition(f"Cannot check out a {booking.status} booking")

    now = datetime.utcnow()
    if not _transition(db, booking, (STATUS_CHECKED_IN,), {"status": STATUS_COMPLETED, "check_out_time": now}):
        db.rollback()
        raise InvalidTransition("Booking is no longer checked in")
    create_notification(db, booking.user_id, "Check-out Successful",
                        f"You have checked out from {booking.zone_name}", "booking", booking_id=booking.id)
    db.commit()
    db.refresh(booking)
    logger.info(f"[BOOKING] {booking.qr_code} checked out")

    _publish_zone_update(db, booking)
    notifier.publish(notification_event(booking.user_id, "Check-out Successful",
                                        f"Checked out from {booking.zone_name}", "booking"))
    return booking


def extend_booking(db: Session, booking_id: int, user: CurrentUser, additional_hours: int) -> Booking:
    max_hours = settings.BOOKING_MAX_EXTENSION_HOURS
    if not isinstance(additional_hours, int) or not 1 <= additional_hours <= max_hours:
        raise ValidationFailed(f"Additional hours must be between 1 and {max_hours}")

    booking = get_booking(db, booking_id)
    if booking.user_id != user.user_id:
        raise AccessDenied()
    if booking.status != STATUS_ACTIVE:
        raise InvalidTransition("Can only extend active bookings")

    zone = db.query(Zone).filter(Zone.id == booking.zone_id).first() if booking.zone_id else None
    values = {
        "duration": booking.duration + additional_hours,
        "total_amount": (booking.total_amount or 0) + ((zone.price_per_hour or 0) * additional_hours if zone else 0),
    }
    if booking.end_time is not None:
        values["end_time"] = booking.end_time + timedelta(hours=additional_hours)

    # Duration guard: a concurrent extend of the same booking fails with Conflict
    updated = db.query(Booking).filter(
        Booking.id == booking.id,
        Booking.status == STATUS_ACTIVE,
        Booking.duration == booking.duration,
    ).update(values, synchronize_session=False)
    if updated != 1:
        db.rollback()
        raise Conflict()

    create_notification(db, booking.user_id, "Booking Extended",
                        f"Your booking at {booking.zone_name} has been extended by {additional_hours} hours",
                        "booking", booking_id=booking.id)
    db.commit()
    db.refresh(booking)
    logger.info(f"[BOOKING] {booking.qr_code} extended by {additional_hours}h")

    notifier.publish(notification_event(booking.user_id, "Booking Extended",
                                        f"Booking extended by {additional_hours} hours", "booking"))
    return booking
