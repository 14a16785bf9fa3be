# campus_parking/models/event.py
"""
Campus events table.
An event carves allocated_slots out of its zone's general pool without
touching the zone's total_slots.
"""

from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey, CheckConstraint
from campus_parking.database import Base

EVENT_TYPES = ("conference", "sports", "cultural", "seminar", "other")


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("allocated_slots >= 1", name="ck_events_allocated_slots_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text)
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="SET NULL"), index=True)
    zone_name = Column(String(100))
    date = Column(DateTime, nullable=False, index=True)
    start_time = Column(DateTime)
    end_time = Column(DateTime)
    allocated_slots = Column(Integer, nullable=False)
    event_type = Column(String(20), nullable=False, default="other")
    organizer_id = Column(String(64))
    is_active = Column(Boolean, default=True, nullable=False)
    special_instructions = Column(Text)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<Event {self.id} {self.name!r} zone={self.zone_id} slots={self.allocated_slots}>"
