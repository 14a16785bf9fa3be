# campus_parking/services/expiry_service.py
"""
Expiry Sweeper and booking reminders. Both run from the scheduler.

Sweep: every held booking (active / checked-in) whose end_time has passed
becomes expired, with a violation recorded:
    checked in, never checked out  → no-checkout
    never checked in               → unauthorized (no-show)
Each booking is processed in its own transaction, via the same
compare-and-set the request handlers use, so a check-out racing the sweep
wins or loses cleanly.

Reminders (windows relative to now):
    start in 24h  [-5 min, +10 min]  → "Parking Reminder - Tomorrow"
    start in 1h   [-5 min, +10 min]  → "Parking Reminder - 1 Hour"
    end in 15 min [ 0,     +10 min]  → "Parking Expiring Soon"
A reminder is skipped if the same title was sent to the same user for the
same booking within REMINDER_DEDUP_MINUTES.
"""

from datetime import datetime, timedelta
from typing import Optional, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from campus_parking.config import settings
from campus_parking.models.booking import (
    Booking, BookingViolation, HELD_STATUSES, STATUS_ACTIVE, STATUS_EXPIRED,
)
from campus_parking.models.notification import Notification
from campus_parking.models.zone import Zone
from campus_parking.services.availability_service import available_slots
from campus_parking.services.change_notifier import notifier, notification_event, zone_update_event
from campus_parking.services.notification_service import create_notification
from campus_parking.services.push_service import send_user_push
from campus_parking.utils.logger import get_logger

logger = get_logger(__name__)

DAY = timedelta(hours=24)
HOUR = timedelta(hours=1)
EXPIRING_LEAD = timedelta(minutes=15)
WINDOW_BEFORE = timedelta(minutes=5)
WINDOW_AFTER = timedelta(minutes=10)

TITLE_TOMORROW = "Parking Reminder - Tomorrow"
TITLE_ONE_HOUR = "Parking Reminder - 1 Hour"
TITLE_EXPIRING = "Parking Expiring Soon"


# ── Expiry ───────────────────────────────────────────────────────────────────
def violation_for(booking: Booking) -> Tuple[str, str]:
    if booking.check_in_time and not booking.check_out_time:
        return "no-checkout", "User failed to check out before booking expired"
    return "unauthorized", "User never checked in - no-show"


def expire_overdue_bookings(db: Session, now: Optional[datetime] = None) -> int:
    """Expire every held booking past its end_time. Returns how many were expired."""
    now = now or datetime.utcnow()
    overdue = db.query(Booking).filter(
        Booking.status.in_(HELD_STATUSES),
        Booking.end_time < now,
    ).order_by(Booking.end_time).all()
    if not overdue:
        return 0

    logger.info(f"[EXPIRY] Found {len(overdue)} overdue bookings")
    expired = 0
    for booking in overdue:
        violation_type, description = violation_for(booking)

        updated = db.query(Booking).filter(
            Booking.id == booking.id,
            Booking.status.in_(HELD_STATUSES),
        ).update({"status": STATUS_EXPIRED}, synchronize_session=False)
        if updated != 1:
            # Checked out or cancelled since the scan
            db.rollback()
            continue

        db.add(BookingViolation(
            booking_id=booking.id, violation_type=violation_type,
            description=description, timestamp=now,
        ))
        create_notification(
            db, booking.user_id, "Booking Expired",
            f"Your parking booking at {booking.zone_name} has expired",
            "violation", booking_id=booking.id, priority="high",
        )
        db.commit()
        expired += 1
        logger.info(f"[EXPIRY] {booking.qr_code} expired ({violation_type})")

        if booking.zone_id is not None:
            zone = db.query(Zone).filter(Zone.id == booking.zone_id).first()
            if zone:
                notifier.publish(zone_update_event(zone.id, available_slots(db, zone, booking.date)))

    logger.info(f"[EXPIRY] Expired {expired} bookings")
    return expired


# ── Reminders ────────────────────────────────────────────────────────────────
def reminder_for(booking: Booking, now: datetime) -> Optional[Tuple[str, str, str]]:
    """Return (title, message, priority) if the booking sits in a reminder window."""
    if booking.status == STATUS_ACTIVE and booking.start_time:
        to_start = booking.start_time - now
        if DAY - WINDOW_BEFORE <= to_start <= DAY + WINDOW_AFTER:
            return (TITLE_TOMORROW,
                    f"Your parking at {booking.zone_name} is scheduled for tomorrow at "
                    f"{booking.start_time.strftime('%I:%M %p')}",
                    "medium")
        if HOUR - WINDOW_BEFORE <= to_start <= HOUR + WINDOW_AFTER:
            return (TITLE_ONE_HOUR,
                    f"Your parking at {booking.zone_name} starts in 1 hour. Don't forget to check-in!",
                    "medium")
    if booking.end_time:
        to_end = booking.end_time - now
        if EXPIRING_LEAD <= to_end <= EXPIRING_LEAD + WINDOW_AFTER:
            return (TITLE_EXPIRING,
                    f"Your parking at {booking.zone_name} expires in 15 minutes. "
                    f"Please check out or extend your booking.",
                    "high")
    return None


def _already_reminded(db: Session, booking: Booking, title: str, now: datetime) -> bool:
    since = now - timedelta(minutes=settings.REMINDER_DEDUP_MINUTES)
    return db.query(Notification.id).filter(
        Notification.user_id == booking.user_id,
        Notification.booking_id == booking.id,
        Notification.title == title,
        Notification.created_at >= since,
    ).first() is not None


async def send_booking_reminders(db: Session, now: Optional[datetime] = None) -> int:
    """Create (and push) due reminders. Returns how many were sent."""
    now = now or datetime.utcnow()
    candidates = db.query(Booking).filter(
        Booking.status.in_(HELD_STATUSES),
        or_(
            and_(Booking.start_time >= now + DAY - WINDOW_BEFORE, Booking.start_time <= now + DAY + WINDOW_AFTER),
            and_(Booking.start_time >= now + HOUR - WINDOW_BEFORE, Booking.start_time <= now + HOUR + WINDOW_AFTER),
            and_(Booking.end_time >= now + EXPIRING_LEAD, Booking.end_time <= now + EXPIRING_LEAD + WINDOW_AFTER),
        ),
    ).all()

    sent = 0
    for booking in candidates:
        reminder = reminder_for(booking, now)
        if reminder is None:
            continue
        title, message, priority = reminder
        if _already_reminded(db, booking, title, now):
            continue

        create_notification(db, booking.user_id, title, message, "reminder",
                            booking_id=booking.id, priority=priority)
        db.commit()
        sent += 1
        logger.info(f"[REMINDER] '{title}' for {booking.qr_code}")

        notifier.publish(notification_event(booking.user_id, title, message, "reminder"))
        await send_user_push(db, booking.user_id, title, message,
                             {"screen": "bookings", "bookingId": booking.id})

    if candidates:
        logger.info(f"[REMINDER] Processed {len(candidates)} bookings, sent {sent} reminders")
    return sent
