# campus_parking/services/event_service.py
"""
Event allocations.
An event carves allocated_slots out of its zone. Creating one competes with
reservations for the same capacity, so the fit check and the insert share a
serializable transaction exactly like a booking does.
"""

from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from campus_parking.database import run_serializable
from campus_parking.errors import EventNotFound, NoSlotsAvailable, ValidationFailed, ZoneNotFound
from campus_parking.models.event import Event, EVENT_TYPES
from campus_parking.models.zone import Zone
from campus_parking.services.availability_service import available_slots, start_of_day
from campus_parking.services.change_notifier import notifier, zone_update_event
from campus_parking.utils.logger import get_logger
from campus_parking.utils.security import CurrentUser, require_admin

logger = get_logger(__name__)

UPDATABLE_FIELDS = (
    "name", "description", "start_time", "end_time", "event_type", "special_instructions",
)


def _validate(allocated_slots=None, event_type=None):
    if allocated_slots is not None and (not isinstance(allocated_slots, int) or allocated_slots < 1):
        raise ValidationFailed("allocatedSlots must be a positive number")
    if event_type is not None and event_type not in EVENT_TYPES:
        raise ValidationFailed(f"Unknown event type '{event_type}'")


def _publish_zone_update(db: Session, zone_id: Optional[int]):
    if zone_id is None:
        return
    zone = db.query(Zone).filter(Zone.id == zone_id).first()
    if zone:
        notifier.publish(zone_update_event(zone.id, available_slots(db, zone, datetime.utcnow())))


def list_events(db: Session, zone_id: Optional[int] = None, upcoming_only: bool = False) -> List[Event]:
    query = db.query(Event)
    if zone_id is not None:
        query = query.filter(Event.zone_id == zone_id)
    if upcoming_only:
        query = query.filter(Event.date >= start_of_day(datetime.utcnow()))
    return query.order_by(Event.date, Event.id).all()


def get_event(db: Session, event_id: int) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise EventNotFound()
    return event


def create_event(session_factory: Callable[[], Session], user: CurrentUser, name: str, date,
                 allocated_slots: int, zone_id: Optional[int] = None, description: Optional[str] = None,
                 event_type: str = "other", start_time=None, end_time=None,
                 special_instructions: Optional[str] = None) -> Event:
    require_admin(user)
    if not name or not name.strip() or date is None:
        raise ValidationFailed("name, date, and allocatedSlots are required")
    _validate(allocated_slots, event_type)
    event_day = start_of_day(date)

    def work(db: Session) -> Event:
        zone = None
        if zone_id is not None:
            zone = db.query(Zone).filter(Zone.id == zone_id).first()
            if not zone:
                raise ZoneNotFound("Selected zone does not exist")
            available = available_slots(db, zone, event_day)
            if available < allocated_slots:
                raise NoSlotsAvailable(
                    f"Not enough available slots in {zone.name}. "
                    f"Available: {available}, Requested: {allocated_slots}"
                )

        event = Event(
            name=name.strip(), description=description, zone_id=zone.id if zone else None,
            zone_name=zone.name if zone else None, date=event_day, start_time=start_time,
            end_time=end_time, allocated_slots=allocated_slots, event_type=event_type,
            organizer_id=user.user_id, is_active=True, special_instructions=special_instructions,
            created_at=datetime.utcnow(),
        )
        db.add(event)
        db.commit()
        return event

    event = run_serializable(session_factory, work, label=f"Create event '{name}'")
    logger.info(f"[EVENT] Created {event.id} '{event.name}' zone={event.zone_id} slots={event.allocated_slots}")

    db = session_factory()
    try:
        _publish_zone_update(db, event.zone_id)
    finally:
        db.close()
    return event


def update_event(db: Session, user: CurrentUser, event_id: int, patch: dict) -> Event:
    """Descriptive fields only. Moving an event or resizing its allocation means delete + create."""
    require_admin(user)
    event = get_event(db, event_id)
    changes = {k: v for k, v in patch.items() if k in UPDATABLE_FIELDS}
    _validate(event_type=changes.get("event_type"))

    for field, value in changes.items():
        setattr(event, field, value)
    db.commit()
    db.refresh(event)
    logger.info(f"[EVENT] Updated {event.id}: {sorted(changes)}")

    _publish_zone_update(db, event.zone_id)
    return event


def delete_event(db: Session, user: CurrentUser, event_id: int):
    require_admin(user)
    event = get_event(db, event_id)
    zone_id = event.zone_id
    db.delete(event)
    db.commit()
    logger.info(f"[EVENT] Deleted {event_id} — slots returned to zone {zone_id}")

    _publish_zone_update(db, zone_id)
