# campus_parking/models/zone.py
"""
Parking zones table.
Owns the authoritative slot capacity per zone. Availability is never stored
here; it is derived by availability_service from bookings and events.
"""

from sqlalchemy import Column, Integer, String, DateTime, Float, Boolean, CheckConstraint
from campus_parking.database import Base

ZONE_TYPES = ("student", "staff", "visitor", "general", "event")


class Zone(Base):
    __tablename__ = "zones"
    __table_args__ = (
        CheckConstraint("total_slots >= 1", name="ck_zones_total_slots_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    code = Column(String(20), unique=True, nullable=False, index=True)
    type = Column(String(20), nullable=False, default="general")   # student | staff | visitor | general | event
    total_slots = Column(Integer, nullable=False)
    address = Column(String(255))
    latitude = Column(Float)
    longitude = Column(Float)
    price_per_hour = Column(Float, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<Zone {self.code} type={self.type} slots={self.total_slots}>"
