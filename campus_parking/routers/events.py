# campus_parking/routers/events.py
"""
Campus event endpoints (admin).
POST /events reserves allocated_slots from the zone in a serializable
transaction, like a booking.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from campus_parking.database import get_db, get_session_factory
from campus_parking.schemas.event import EventCreate, EventOut, EventUpdate
from campus_parking.services import event_service
from campus_parking.utils.security import CurrentUser, get_current_user, require_admin

router = APIRouter()


@router.get("/events", response_model=list[EventOut], summary="List events (admin)")
def list_events(zone_id: Optional[int] = None, upcoming: bool = False,
                user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    require_admin(user)
    return event_service.list_events(db, zone_id=zone_id, upcoming_only=upcoming)


@router.post("/events", response_model=EventOut, summary="Create event allocation (admin)")
async def create_event(body: EventCreate, user: CurrentUser = Depends(get_current_user),
                       session_factory=Depends(get_session_factory)):
    return event_service.create_event(
        session_factory, user, name=body.name, date=body.date, allocated_slots=body.allocated_slots,
        zone_id=body.zone_id, description=body.description, event_type=body.event_type,
        start_time=body.start_time, end_time=body.end_time,
        special_instructions=body.special_instructions,
    )


@router.patch("/events/{event_id}", response_model=EventOut, summary="Update event details (admin)")
async def update_event(event_id: int, body: EventUpdate, user: CurrentUser = Depends(get_current_user),
                       db: Session = Depends(get_db)):
    return event_service.update_event(db, user, event_id, body.model_dump(exclude_unset=True))


@router.delete("/events/{event_id}", summary="Delete event, returning its slots (admin)")
async def delete_event(event_id: int, user: CurrentUser = Depends(get_current_user),
                       db: Session = Depends(get_db)):
    event_service.delete_event(db, user, event_id)
    return {"success": True, "message": "Event deleted successfully"}
