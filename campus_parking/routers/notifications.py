# campus_parking/routers/notifications.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from campus_parking.database import get_db
from campus_parking.schemas.notification import Announcement, NotificationList, NotificationOut, NotificationSend
from campus_parking.services import notification_service
from campus_parking.utils.security import CurrentUser, get_current_user

router = APIRouter()


@router.get("/notifications", response_model=NotificationList, summary="Caller's notifications")
def get_notifications(limit: int = 50, user: CurrentUser = Depends(get_current_user),
                      db: Session = Depends(get_db)):
    return {
        "notifications": notification_service.list_notifications(db, user.user_id, limit),
        "unread_count": notification_service.unread_count(db, user.user_id),
    }


@router.patch("/notifications/{notification_id}/read", response_model=NotificationOut, summary="Mark as read")
def mark_read(notification_id: int, user: CurrentUser = Depends(get_current_user),
              db: Session = Depends(get_db)):
    return notification_service.mark_read(db, notification_id, user)


@router.delete("/notifications/{notification_id}", summary="Delete a notification")
def delete_notification(notification_id: int, user: CurrentUser = Depends(get_current_user),
                        db: Session = Depends(get_db)):
    notification_service.delete_notification(db, notification_id, user)
    return {"success": True, "message": "Notification deleted"}


@router.post("/notifications/send", response_model=NotificationOut, summary="Send to one user (admin)")
async def send_notification(body: NotificationSend, user: CurrentUser = Depends(get_current_user),
                            db: Session = Depends(get_db)):
    return await notification_service.send_notification(
        db, user, body.user_id, body.title, body.message, body.type, body.priority,
    )


@router.post("/notifications/broadcast", summary="Real-time announcement to all observers (admin)")
async def broadcast(body: Announcement, user: CurrentUser = Depends(get_current_user)):
    notification_service.announce(user, body.title, body.message, body.type)
    return {"success": True, "message": "Announcement broadcast"}
