# campus_parking/schemas/booking.py
from pydantic import BaseModel
from datetime import date, datetime
from typing import List, Optional


class ViolationOut(BaseModel):
    id: int
    violation_type: str
    description: Optional[str]
    timestamp: datetime

    class Config:
        from_attributes = True


class BookingOut(BaseModel):
    id: int
    user_id: str
    zone_id: Optional[int]
    zone_name: str
    qr_code: str
    date: datetime
    start_time: Optional[datetime]
    end_time: Optional[datetime]
    duration: int
    vehicle_number: Optional[str]
    status: str
    check_in_time: Optional[datetime]
    check_out_time: Optional[datetime]
    total_amount: float
    created_at: datetime
    violations: List[ViolationOut] = []

    class Config:
        from_attributes = True


class BookingCreate(BaseModel):
    zone_id: int
    date: date
    duration: int
    vehicle_number: Optional[str] = None


class BookingExtend(BaseModel):
    additional_hours: int


class QRScan(BaseModel):
    qr_code: str
