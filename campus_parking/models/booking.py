# campus_parking/models/booking.py
"""
Bookings ledger (one slot claim per user per zone per day) and the
violations recorded against a booking by the expiry sweep.
"""

from sqlalchemy import Column, Integer, String, DateTime, Float, Text, ForeignKey
from sqlalchemy.orm import relationship
from campus_parking.database import Base

# Lifecycle: active → checked-in → completed, or → cancelled / expired
STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_CHECKED_IN = "checked-in"
STATUS_CHECKED_OUT = "checked-out"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"
STATUS_EXPIRED = "expired"

BOOKING_STATUSES = (
    STATUS_PENDING, STATUS_ACTIVE, STATUS_CHECKED_IN, STATUS_CHECKED_OUT,
    STATUS_COMPLETED, STATUS_CANCELLED, STATUS_EXPIRED,
)
# Statuses that hold a slot for the booked day
HELD_STATUSES = (STATUS_ACTIVE, STATUS_CHECKED_IN)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED, STATUS_EXPIRED)
CANCELLABLE_STATUSES = (STATUS_PENDING, STATUS_ACTIVE, STATUS_CHECKED_IN)

VIOLATION_TYPES = ("overstay", "unauthorized", "no-checkout", "other")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(64), nullable=False, index=True)
    zone_id = Column(Integer, ForeignKey("zones.id", ondelete="SET NULL"), index=True)
    zone_name = Column(String(100), nullable=False)
    qr_code = Column(String(64), unique=True, nullable=False, index=True)
    date = Column(DateTime, nullable=False, index=True)      # midnight of the booked day
    start_time = Column(DateTime)
    end_time = Column(DateTime, index=True)
    duration = Column(Integer, nullable=False)               # hours
    vehicle_number = Column(String(20))
    status = Column(String(20), nullable=False, default=STATUS_PENDING, index=True)
    check_in_time = Column(DateTime)
    check_out_time = Column(DateTime)
    total_amount = Column(Float, default=0, nullable=False)
    created_at = Column(DateTime, nullable=False)

    violations = relationship(
        "BookingViolation",
        back_populates="booking",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="BookingViolation.timestamp",
    )

    def __repr__(self):
        return f"<Booking {self.id} user={self.user_id} zone={self.zone_id} status={self.status}>"


class BookingViolation(Base):
    __tablename__ = "booking_violations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    violation_type = Column(String(20), nullable=False)   # overstay | unauthorized | no-checkout | other
    description = Column(Text)
    timestamp = Column(DateTime, nullable=False)

    booking = relationship("Booking", back_populates="violations")

    def __repr__(self):
        return f"<BookingViolation {self.id} booking={self.booking_id} type={self.violation_type}>"
