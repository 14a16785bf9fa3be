# tests/test_expiry_service.py
"""Tests for the expiry sweep, reminders and the scheduled jobs."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from datetime import datetime, timedelta
from unittest.mock import patch

import pytest

from campus_parking.models.booking import (
    STATUS_ACTIVE, STATUS_CANCELLED, STATUS_CHECKED_IN, STATUS_COMPLETED, STATUS_EXPIRED,
)
from campus_parking.models.notification import Notification
from campus_parking.services import scheduler
from campus_parking.services.availability_service import available_slots
from campus_parking.services.expiry_service import (
    TITLE_EXPIRING, TITLE_ONE_HOUR, TITLE_TOMORROW, expire_overdue_bookings, reminder_for,
    send_booking_reminders,
)
from conftest import events_of, make_booking, make_zone

DAY = datetime(2025, 10, 15)
SWEEP_AT = datetime(2025, 10, 16, 12, 0)


class TestExpirySweep:
    def test_no_show_is_unauthorized(self, db):
        zone = make_zone(db)
        booking = make_booking(db, zone)

        assert expire_overdue_bookings(db, now=SWEEP_AT) == 1

        db.refresh(booking)
        assert booking.status == STATUS_EXPIRED
        assert [v.violation_type for v in booking.violations] == ["unauthorized"]

    def test_checked_in_without_checkout(self, db):
        zone = make_zone(db)
        booking = make_booking(db, zone, status=STATUS_CHECKED_IN, check_in_time=DAY.replace(hour=8, minute=5))

        expire_overdue_bookings(db, now=SWEEP_AT)

        db.refresh(booking)
        assert booking.status == STATUS_EXPIRED
        assert booking.violations[0].violation_type == "no-checkout"

    def test_untouched_bookings(self, db):
        zone = make_zone(db, total_slots=5)
        future = make_booking(db, zone, user_id="u1", day=datetime(2025, 10, 16),
                              start_time=datetime(2025, 10, 16, 11), duration=3)
        done = make_booking(db, zone, user_id="u2", status=STATUS_COMPLETED)
        cancelled = make_booking(db, zone, user_id="u3", status=STATUS_CANCELLED)

        assert expire_overdue_bookings(db, now=SWEEP_AT) == 0

        for booking, status in ((future, STATUS_ACTIVE), (done, STATUS_COMPLETED), (cancelled, STATUS_CANCELLED)):
            db.refresh(booking)
            assert booking.status == status
            assert booking.violations == []

    def test_expiry_frees_the_slot(self, db, published):
        zone = make_zone(db, total_slots=1)
        make_booking(db, zone)
        assert available_slots(db, zone, DAY) == 0

        expire_overdue_bookings(db, now=SWEEP_AT)

        assert available_slots(db, zone, DAY) == 1
        assert events_of(published, "zone_update") == [{"type": "zone_update", "zoneId": zone.id, "available": 1}]

    def test_expiry_notifies_the_user(self, db):
        zone = make_zone(db, name="North Lot")
        booking = make_booking(db, zone, user_id="u9")

        expire_overdue_bookings(db, now=SWEEP_AT)

        note = db.query(Notification).filter(Notification.user_id == "u9").one()
        assert note.title == "Booking Expired"
        assert note.type == "violation"
        assert note.priority == "high"
        assert note.booking_id == booking.id
        assert "North Lot" in note.message

    def test_sweep_is_idempotent(self, db):
        zone = make_zone(db)
        make_booking(db, zone)
        assert expire_overdue_bookings(db, now=SWEEP_AT) == 1
        assert expire_overdue_bookings(db, now=SWEEP_AT) == 0


class TestReminders:
    NOW = datetime(2025, 10, 15, 7, 0)

    def test_windows(self, db):
        zone = make_zone(db, total_slots=10)
        tomorrow = make_booking(db, zone, user_id="u1", day=datetime(2025, 10, 16),
                                start_time=datetime(2025, 10, 16, 7, 0))
        soon = make_booking(db, zone, user_id="u2", start_time=datetime(2025, 10, 15, 8, 0))
        ending = make_booking(db, zone, user_id="u3", status=STATUS_CHECKED_IN,
                              start_time=datetime(2025, 10, 15, 5, 20))
        later = make_booking(db, zone, user_id="u4", start_time=datetime(2025, 10, 15, 12, 0))

        assert reminder_for(tomorrow, self.NOW)[0] == TITLE_TOMORROW
        assert reminder_for(soon, self.NOW)[0] == TITLE_ONE_HOUR
        title, _, priority = reminder_for(ending, self.NOW)
        assert (title, priority) == (TITLE_EXPIRING, "high")
        assert reminder_for(later, self.NOW) is None

    def test_start_reminders_skip_checked_in(self, db):
        zone = make_zone(db)
        booking = make_booking(db, zone, status=STATUS_CHECKED_IN, start_time=datetime(2025, 10, 15, 8, 0))
        assert reminder_for(booking, self.NOW) is None

    @pytest.mark.asyncio
    async def test_send_creates_publishes_and_pushes(self, db, published, push):
        zone = make_zone(db, total_slots=10)
        make_booking(db, zone, user_id="u1", day=datetime(2025, 10, 16), start_time=datetime(2025, 10, 16, 7, 0))
        make_booking(db, zone, user_id="u2", start_time=datetime(2025, 10, 15, 8, 0))
        make_booking(db, zone, user_id="u3", start_time=datetime(2025, 10, 15, 12, 0))

        sent = await send_booking_reminders(db, now=self.NOW)

        assert sent == 2
        titles = {n.user_id: n.title for n in db.query(Notification).filter(Notification.type == "reminder")}
        assert titles == {"u1": TITLE_TOMORROW, "u2": TITLE_ONE_HOUR}
        assert len(events_of(published, "notification")) == 2
        assert push.await_count == 2

    @pytest.mark.asyncio
    async def test_reminders_are_not_repeated(self, db, push):
        zone = make_zone(db)
        make_booking(db, zone, start_time=datetime(2025, 10, 15, 8, 0))

        assert await send_booking_reminders(db, now=self.NOW) == 1
        assert await send_booking_reminders(db, now=self.NOW + timedelta(minutes=5)) == 0
        assert push.await_count == 1


class TestScheduledJobs:
    @pytest.mark.asyncio
    async def test_expiry_job_uses_its_own_session(self, db, session_factory):
        zone = make_zone(db)
        booking = make_booking(db, zone, start_time=datetime.utcnow() - timedelta(hours=5))

        with patch.object(scheduler, "SessionLocal", session_factory):
            await scheduler.run_expiry_job()

        db.refresh(booking)
        assert booking.status == STATUS_EXPIRED

    @pytest.mark.asyncio
    async def test_job_failures_are_contained(self, session_factory):
        with patch.object(scheduler, "SessionLocal", session_factory), \
             patch.object(scheduler, "expire_overdue_bookings", side_effect=RuntimeError("db gone")):
            await scheduler.run_expiry_job()

    @pytest.mark.asyncio
    async def test_start_registers_jobs(self):
        sched = scheduler.start_scheduler()
        try:
            ids = {job.id for job in sched.get_jobs()}
            assert ids == {scheduler.EXPIRY_JOB_ID, scheduler.REMINDER_JOB_ID, scheduler.HEARTBEAT_JOB_ID}
            assert scheduler.start_scheduler() is sched
        finally:
            scheduler.stop_scheduler()
