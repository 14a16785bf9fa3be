# campus_parking/schemas/zone.py
from pydantic import BaseModel
from datetime import datetime
from typing import Optional


class ZoneOut(BaseModel):
    id: int
    name: str
    code: str
    type: str
    total_slots: int
    address: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    price_per_hour: float
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class ZoneSummary(BaseModel):
    """Zone as listed to clients, with today's availability."""
    id: int
    name: str
    code: str
    total: int
    available: int
    type: str
    location: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    pricePerHour: float = 0
    isActive: bool = True


class ZoneAvailability(BaseModel):
    zoneId: int
    name: str
    code: str
    type: str
    total: int
    booked: int
    eventSlots: int
    available: int
    date: str


class ZoneCreate(BaseModel):
    name: str
    type: str = "general"
    total_slots: int
    location: Optional[str] = None
    code: Optional[str] = None
    price_per_hour: float = 0
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class ZoneUpdate(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    type: Optional[str] = None
    total_slots: Optional[int] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    price_per_hour: Optional[float] = None
    is_active: Optional[bool] = None
