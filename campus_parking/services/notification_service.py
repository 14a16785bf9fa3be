# campus_parking/services/notification_service.py
"""
Per-user notification inbox.
create_notification() only adds the row to the caller's session so that it
commits (or rolls back) together with the booking mutation that caused it.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from campus_parking.errors import NotificationNotFound, ValidationFailed
from campus_parking.models.notification import Notification, NOTIFICATION_TYPES, NOTIFICATION_PRIORITIES
from campus_parking.services.change_notifier import notifier, notification_event
from campus_parking.services.push_service import send_user_push
from campus_parking.utils.logger import get_logger
from campus_parking.utils.security import CurrentUser, require_admin, require_owner_or_admin

logger = get_logger(__name__)


def create_notification(db: Session, user_id: str, title: str, message: str, type: str = "system",
                        booking_id: Optional[int] = None, priority: str = "medium") -> Notification:
    notification = Notification(
        user_id=str(user_id), booking_id=booking_id, title=title, message=message,
        type=type, priority=priority, is_read=False, created_at=datetime.utcnow(),
    )
    db.add(notification)
    return notification


def list_notifications(db: Session, user_id: str, limit: int = 50) -> List[Notification]:
    return (
        db.query(Notification)
        .filter(Notification.user_id == str(user_id))
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
        .all()
    )


def unread_count(db: Session, user_id: str) -> int:
    return db.query(Notification).filter(
        Notification.user_id == str(user_id),
        Notification.is_read == False,  # noqa: E712
    ).count()


def _get_owned(db: Session, notification_id: int, user: CurrentUser) -> Notification:
    notification = db.query(Notification).filter(Notification.id == notification_id).first()
    if not notification:
        raise NotificationNotFound()
    require_owner_or_admin(user, notification.user_id)
    return notification


def mark_read(db: Session, notification_id: int, user: CurrentUser) -> Notification:
    notification = _get_owned(db, notification_id, user)
    notification.is_read = True
    db.commit()
    return notification


def delete_notification(db: Session, notification_id: int, user: CurrentUser):
    notification = _get_owned(db, notification_id, user)
    db.delete(notification)
    db.commit()


def _validate(type: str, priority: str):
    if type not in NOTIFICATION_TYPES:
        raise ValidationFailed(f"Unknown notification type '{type}'")
    if priority not in NOTIFICATION_PRIORITIES:
        raise ValidationFailed(f"Unknown priority '{priority}'")


async def send_notification(db: Session, user: CurrentUser, target_user_id: str, title: str, message: str,
                            type: str = "system", priority: str = "medium") -> Notification:
    """Admin: persist a notification for one user, then push it in real time and to the device."""
    require_admin(user)
    _validate(type, priority)

    notification = create_notification(db, target_user_id, title, message, type, priority=priority)
    db.commit()
    logger.info(f"[NOTIFY] {user.user_id} → {target_user_id}: {title}")

    notifier.publish(notification_event(target_user_id, title, message, type))
    await send_user_push(db, target_user_id, title, message, {"type": type, "notificationId": notification.id})
    return notification


def announce(user: CurrentUser, title: str, message: str, type: str = "system"):
    """Admin: real-time-only broadcast to every connected observer. Nothing is persisted."""
    require_admin(user)
    if type not in NOTIFICATION_TYPES:
        raise ValidationFailed(f"Unknown notification type '{type}'")
    notifier.publish(notification_event(None, title, message, type, broadcast=True))
    logger.info(f"[NOTIFY] Broadcast by {user.user_id}: {title}")
