# campus_parking/schemas/event.py
from pydantic import BaseModel
from datetime import date, datetime
from typing import Optional


class EventOut(BaseModel):
    id: int
    name: str
    description: Optional[str]
    zone_id: Optional[int]
    zone_name: Optional[str]
    date: datetime
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    allocated_slots: int
    event_type: str
    organizer_id: Optional[str]
    is_active: bool
    special_instructions: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class EventCreate(BaseModel):
    name: str
    date: date
    allocated_slots: int
    zone_id: Optional[int] = None
    description: Optional[str] = None
    event_type: str = "other"
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    special_instructions: Optional[str] = None


class EventUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    event_type: Optional[str] = None
    special_instructions: Optional[str] = None
