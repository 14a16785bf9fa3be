# campus_parking/models/push_token.py
"""Expo push token registered by the mobile client, one per user."""

from sqlalchemy import Column, Integer, String, DateTime
from campus_parking.database import Base


class PushToken(Base):
    __tablename__ = "push_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), unique=True, nullable=False, index=True)
    token = Column(String(256), nullable=False)
    created_at = Column(DateTime, nullable=False)
    updated_at = Column(DateTime)

    def __repr__(self):
        return f"<PushToken user={self.user_id}>"
