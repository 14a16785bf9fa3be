# campus_parking/services/availability_service.py
"""
Availability Calculator.
available = max(0, total_slots - held bookings on the day - event allocations)

Held bookings are those in HELD_STATUSES (active, checked-in) whose booked day
falls in [start_of_day, end_of_day]. Event allocations are summed over every
active event on the zone dated today or later, whichever day is being queried.
Nothing here writes; the same functions run inside the reserve transaction.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from campus_parking.models.booking import Booking, HELD_STATUSES
from campus_parking.models.event import Event
from campus_parking.models.zone import Zone

DateLike = Union[date, datetime]


def start_of_day(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        value = value.date()
    return datetime.combine(value, time.min)


def day_bounds(value: DateLike) -> Tuple[datetime, datetime]:
    start = start_of_day(value)
    return start, start + timedelta(days=1) - timedelta(microseconds=1)


def count_active_bookings(db: Session, zone_id: int, day: DateLike) -> int:
    start, end = day_bounds(day)
    return db.query(func.count(Booking.id)).filter(
        Booking.zone_id == zone_id,
        Booking.date >= start,
        Booking.date <= end,
        Booking.status.in_(HELD_STATUSES),
    ).scalar() or 0


def sum_event_allocations(db: Session, zone_id: int, today: Optional[DateLike] = None) -> int:
    today = start_of_day(today or datetime.utcnow())
    return db.query(func.coalesce(func.sum(Event.allocated_slots), 0)).filter(
        Event.zone_id == zone_id,
        Event.is_active == True,  # noqa: E712
        Event.date >= today,
    ).scalar() or 0


def available_slots(db: Session, zone: Zone, day: DateLike, today: Optional[DateLike] = None) -> int:
    booked = count_active_bookings(db, zone.id, day)
    reserved = sum_event_allocations(db, zone.id, today)
    return max(0, zone.total_slots - booked - reserved)


def zone_availability(db: Session, zone: Zone, day: DateLike, today: Optional[DateLike] = None) -> dict:
    booked = count_active_bookings(db, zone.id, day)
    reserved = sum_event_allocations(db, zone.id, today)
    return {
        "zoneId": zone.id,
        "name": zone.name,
        "code": zone.code,
        "type": zone.type,
        "total": zone.total_slots,
        "booked": booked,
        "eventSlots": reserved,
        "available": max(0, zone.total_slots - booked - reserved),
        "date": start_of_day(day).date().isoformat(),
    }
