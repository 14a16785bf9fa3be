# campus_parking/routers/bookings.py
"""
Booking endpoints.
POST /bookings goes through the serializable reserve path; every other
mutation is a single compare-and-set on the booking's status.
Check-in / check-out work by booking id (owner or admin) or by scanning the
booking's QR code at the gate (any authenticated scanner).
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from campus_parking.database import get_db, get_session_factory
from campus_parking.schemas.booking import BookingCreate, BookingExtend, BookingOut, QRScan
from campus_parking.services import reservation_service
from campus_parking.utils.security import CurrentUser, get_current_user

router = APIRouter()


@router.post("/bookings", response_model=BookingOut, summary="Reserve a slot")
async def create_booking(body: BookingCreate, user: CurrentUser = Depends(get_current_user),
                         session_factory=Depends(get_session_factory)):
    return await reservation_service.reserve_booking(
        session_factory, user, body.zone_id, body.date, body.duration, body.vehicle_number,
    )


@router.get("/bookings/user/{user_id}", response_model=list[BookingOut], summary="A user's bookings")
def get_user_bookings(user_id: str, user: CurrentUser = Depends(get_current_user),
                      db: Session = Depends(get_db)):
    return reservation_service.list_user_bookings(db, user, user_id)


@router.get("/bookings/history", response_model=list[BookingOut], summary="Caller's booking history")
def get_history(status: Optional[str] = None, start_date: Optional[date] = None,
                end_date: Optional[date] = None, user: CurrentUser = Depends(get_current_user),
                db: Session = Depends(get_db)):
    return reservation_service.booking_history(db, user, status, start_date, end_date)


@router.get("/bookings/qr/{qr_code}", response_model=BookingOut, summary="Look up a booking by QR code")
def get_by_qr(qr_code: str, user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return reservation_service.get_booking_by_qr(db, qr_code)


@router.post("/bookings/checkin", response_model=BookingOut, summary="Check in by QR scan")
async def checkin_by_qr(body: QRScan, user: CurrentUser = Depends(get_current_user),
                        db: Session = Depends(get_db)):
    booking = reservation_service.get_booking_by_qr(db, body.qr_code)
    return reservation_service.check_in(db, booking)


@router.post("/bookings/checkout", response_model=BookingOut, summary="Check out by QR scan")
async def checkout_by_qr(body: QRScan, user: CurrentUser = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    booking = reservation_service.get_booking_by_qr(db, body.qr_code)
    return reservation_service.check_out(db, booking)


@router.get("/bookings/{booking_id}", response_model=BookingOut, summary="Booking detail")
def get_booking(booking_id: int, user: CurrentUser = Depends(get_current_user),
                db: Session = Depends(get_db)):
    return reservation_service.get_booking(db, booking_id, user)


@router.delete("/bookings/{booking_id}", summary="Cancel a booking (owner or admin)")
async def cancel_booking(booking_id: int, user: CurrentUser = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    await reservation_service.cancel_booking(db, booking_id, user)
    return {"success": True, "message": "Booking cancelled successfully"}


@router.patch("/bookings/{booking_id}/extend", response_model=BookingOut, summary="Extend an active booking")
async def extend_booking(booking_id: int, body: BookingExtend, user: CurrentUser = Depends(get_current_user),
                         db: Session = Depends(get_db)):
    return reservation_service.extend_booking(db, booking_id, user, body.additional_hours)


@router.post("/bookings/{booking_id}/check-in", response_model=BookingOut, summary="Check in")
async def check_in(booking_id: int, user: CurrentUser = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    booking = reservation_service.get_booking(db, booking_id, user)
    return reservation_service.check_in(db, booking)


@router.post("/bookings/{booking_id}/check-out", response_model=BookingOut, summary="Check out")
async def check_out(booking_id: int, user: CurrentUser = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    booking = reservation_service.get_booking(db, booking_id, user)
    return reservation_service.check_out(db, booking)


@router.get("/admin/bookings", response_model=list[BookingOut], summary="All bookings (admin)")
def list_all_bookings(status: Optional[str] = None, zone_id: Optional[int] = None, limit: int = 200,
                      user: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return reservation_service.list_all_bookings(db, user, status, zone_id, limit)
