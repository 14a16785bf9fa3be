# campus_parking/schemas/notification.py
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class NotificationOut(BaseModel):
    id: int
    user_id: str
    booking_id: Optional[int]
    title: str
    message: str
    type: str
    priority: str
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    notifications: List[NotificationOut]
    unread_count: int


class NotificationSend(BaseModel):
    user_id: str
    title: str
    message: str
    type: str = "system"
    priority: str = "medium"


class Announcement(BaseModel):
    title: str
    message: str
    type: str = "system"


class PushTokenIn(BaseModel):
    token: str
