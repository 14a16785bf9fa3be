# campus_parking/services/zone_service.py
"""
Zone Registry.
Owns zone capacity. Capacity changes are plain field updates: they never
cancel or create bookings, availability just reflects the new total on the
next read.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from campus_parking.errors import Conflict, ValidationFailed, ZoneInUse, ZoneNotFound
from campus_parking.models.booking import Booking, HELD_STATUSES
from campus_parking.models.zone import Zone, ZONE_TYPES
from campus_parking.services.availability_service import available_slots
from campus_parking.services.change_notifier import (
    notifier, zone_created_event, zone_deleted_event, zone_update_event,
)
from campus_parking.utils.logger import get_logger

logger = get_logger(__name__)

UPDATABLE_FIELDS = (
    "name", "code", "type", "total_slots", "address",
    "latitude", "longitude", "price_per_hour", "is_active",
)


def generate_zone_code(zone_type: str) -> str:
    """<TYP>-<last 4 digits of the epoch millis>, e.g. STU-4821."""
    prefix = (zone_type or "general")[:3].upper()
    return f"{prefix}-{str(int(datetime.utcnow().timestamp() * 1000))[-4:]}"


def _validate(zone_type: Optional[str] = None, total_slots=None):
    if zone_type is not None and zone_type not in ZONE_TYPES:
        raise ValidationFailed(f"Unknown zone type '{zone_type}'")
    if total_slots is not None and (not isinstance(total_slots, int) or total_slots < 1):
        raise ValidationFailed("Total slots must be at least 1")


def _commit(db: Session, code: str):
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise Conflict(f"Zone code '{code}' already exists")


def get_zone(db: Session, zone_id: int) -> Zone:
    zone = db.query(Zone).filter(Zone.id == zone_id).first()
    if not zone:
        raise ZoneNotFound()
    return zone


def zone_summary(db: Session, zone: Zone, day=None) -> dict:
    return {
        "id": zone.id,
        "name": zone.name,
        "code": zone.code,
        "total": zone.total_slots,
        "available": available_slots(db, zone, day or datetime.utcnow()),
        "type": zone.type,
        "location": zone.address,
        "latitude": zone.latitude,
        "longitude": zone.longitude,
        "pricePerHour": zone.price_per_hour,
        "isActive": zone.is_active,
    }


def list_zones(db: Session, day=None) -> List[dict]:
    zones = db.query(Zone).order_by(Zone.name).all()
    return [zone_summary(db, zone, day) for zone in zones]


def create_zone(db: Session, name: str, type: str, total_slots: int, location: Optional[str] = None,
                code: Optional[str] = None, price_per_hour: float = 0,
                latitude: Optional[float] = None, longitude: Optional[float] = None) -> Zone:
    if not name or not name.strip():
        raise ValidationFailed("Zone name is required")
    _validate(type, total_slots)

    code = (code or generate_zone_code(type)).strip().upper()
    if db.query(Zone.id).filter(Zone.code == code).first():
        raise Conflict(f"Zone code '{code}' already exists")

    zone = Zone(
        name=name.strip(), code=code, type=type, total_slots=total_slots,
        address=location, latitude=latitude, longitude=longitude,
        price_per_hour=price_per_hour or 0, is_active=True, created_at=datetime.utcnow(),
    )
    db.add(zone)
    _commit(db, code)
    db.refresh(zone)
    logger.info(f"[ZONE] Created {zone.code} '{zone.name}' type={zone.type} slots={zone.total_slots}")

    notifier.publish(zone_created_event(zone, available_slots(db, zone, datetime.utcnow())))
    return zone


def update_zone(db: Session, zone_id: int, patch: dict) -> Zone:
    zone = get_zone(db, zone_id)
    changes = {k: v for k, v in patch.items() if k in UPDATABLE_FIELDS}
    _validate(changes.get("type"), changes.get("total_slots"))
    if "total_slots" in changes and changes["total_slots"] is None:
        raise ValidationFailed("Total slots must be at least 1")
    if "code" in changes:
        if not changes["code"]:
            raise ValidationFailed("Zone code cannot be empty")
        changes["code"] = changes["code"].strip().upper()

    for field, value in changes.items():
        setattr(zone, field, value)
    _commit(db, zone.code)
    db.refresh(zone)
    logger.info(f"[ZONE] Updated {zone.code}: {sorted(changes)}")

    notifier.publish(zone_update_event(zone.id, available_slots(db, zone, datetime.utcnow())))
    return zone


def delete_zone(db: Session, zone_id: int):
    zone = get_zone(db, zone_id)
    held = db.query(Booking).filter(
        Booking.zone_id == zone.id,
        Booking.status.in_(HELD_STATUSES),
    ).count()
    if held > 0:
        raise ZoneInUse(f"Cannot delete zone with {held} active bookings")

    code = zone.code
    db.delete(zone)
    db.commit()
    logger.info(f"[ZONE] Deleted {code}")

    notifier.publish(zone_deleted_event(zone_id))
