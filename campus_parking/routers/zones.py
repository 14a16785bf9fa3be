# campus_parking/routers/zones.py
"""
Zone Registry endpoints.
GET is public; every mutation requires an admin token.
"""

from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from campus_parking.database import get_db
from campus_parking.schemas.zone import ZoneAvailability, ZoneCreate, ZoneOut, ZoneSummary, ZoneUpdate
from campus_parking.services import zone_service
from campus_parking.services.availability_service import zone_availability
from campus_parking.utils.security import CurrentUser, get_current_user, require_admin

router = APIRouter()


@router.get("/zones", response_model=list[ZoneSummary], summary="All zones with today's availability")
def list_zones(db: Session = Depends(get_db)):
    return zone_service.list_zones(db)


@router.get("/zones/{zone_id}", response_model=ZoneSummary, summary="One zone with today's availability")
def get_zone(zone_id: int, db: Session = Depends(get_db)):
    return zone_service.zone_summary(db, zone_service.get_zone(db, zone_id))


@router.get("/zones/{zone_id}/availability", response_model=ZoneAvailability,
            summary="Free slots in a zone on a date")
def get_availability(zone_id: int, day: Optional[date] = Query(None, alias="date"),
                     db: Session = Depends(get_db)):
    """Defaults to today. Event allocations dated today or later are always deducted."""
    zone = zone_service.get_zone(db, zone_id)
    return zone_availability(db, zone, day or datetime.utcnow())


@router.post("/zones", response_model=ZoneOut, summary="Create zone (admin)")
async def create_zone(body: ZoneCreate, user: CurrentUser = Depends(get_current_user),
                      db: Session = Depends(get_db)):
    require_admin(user)
    return zone_service.create_zone(
        db, name=body.name, type=body.type, total_slots=body.total_slots, location=body.location,
        code=body.code, price_per_hour=body.price_per_hour,
        latitude=body.latitude, longitude=body.longitude,
    )


@router.patch("/zones/{zone_id}", response_model=ZoneOut, summary="Update zone (admin)")
async def update_zone(zone_id: int, body: ZoneUpdate, user: CurrentUser = Depends(get_current_user),
                      db: Session = Depends(get_db)):
    """Capacity changes never touch existing bookings."""
    require_admin(user)
    return zone_service.update_zone(db, zone_id, body.model_dump(exclude_unset=True))


@router.delete("/zones/{zone_id}", summary="Delete zone (admin)")
async def delete_zone(zone_id: int, user: CurrentUser = Depends(get_current_user),
                      db: Session = Depends(get_db)):
    require_admin(user)
    zone_service.delete_zone(db, zone_id)
    return {"success": True, "message": "Zone deleted successfully"}
