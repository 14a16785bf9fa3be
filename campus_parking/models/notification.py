# campus_parking/models/notification.py
"""
Per-user notification inbox.
Rows are written as a side effect of booking mutations and scheduled jobs;
they never mutate other entities.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey
from campus_parking.database import Base

NOTIFICATION_TYPES = ("booking", "cancellation", "reminder", "violation", "event", "system")
NOTIFICATION_PRIORITIES = ("low", "medium", "high", "urgent")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"))
    title = Column(String(200), nullable=False, index=True)
    message = Column(Text, nullable=False)
    type = Column(String(20), nullable=False, default="system")
    priority = Column(String(10), nullable=False, default="medium")
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<Notification {self.id} user={self.user_id} type={self.type} read={self.is_read}>"
