# tests/conftest.py
"""
Shared fixtures.
Point the app at in-memory SQLite and switch off the scheduler and push
before campus_parking is imported anywhere.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["PUSH_ENABLED"] = "false"

import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from campus_parking.database import create_tables, configure_sqlite
from campus_parking.models.booking import Booking, STATUS_ACTIVE
from campus_parking.models.zone import Zone
from campus_parking.services.change_notifier import notifier


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    configure_sqlite(engine)
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def published():
    """Capture change events instead of scheduling broadcasts."""
    with patch.object(notifier, "publish") as mock_publish:
        yield mock_publish


@pytest.fixture(autouse=True)
def push():
    """Every module that pushes imports send_user_push by name; patch each one."""
    mock_push = AsyncMock(return_value=None)
    with patch("campus_parking.services.reservation_service.send_user_push", mock_push), \
         patch("campus_parking.services.notification_service.send_user_push", mock_push), \
         patch("campus_parking.services.expiry_service.send_user_push", mock_push):
        yield mock_push


def make_zone(db, total_slots=1, type="general", name=None, price_per_hour=0):
    zone = Zone(
        name=name or f"Zone {uuid.uuid4().hex[:4].upper()}",
        code=f"Z-{uuid.uuid4().hex[:6].upper()}",
        type=type,
        total_slots=total_slots,
        price_per_hour=price_per_hour,
        is_active=True,
        created_at=datetime.utcnow(),
    )
    db.add(zone)
    db.commit()
    db.refresh(zone)
    return zone


def make_booking(db, zone, user_id="u1", day=None, status=STATUS_ACTIVE, duration=2,
                 start_time=None, end_time=None, check_in_time=None, check_out_time=None):
    day = day or datetime(2025, 10, 15)
    start_time = start_time or day.replace(hour=8)
    booking = Booking(
        user_id=user_id,
        zone_id=zone.id,
        zone_name=zone.name,
        qr_code=f"QR-{uuid.uuid4().hex[:8].upper()}",
        date=day.replace(hour=0, minute=0, second=0, microsecond=0),
        start_time=start_time,
        end_time=end_time or start_time + timedelta(hours=duration),
        duration=duration,
        status=status,
        check_in_time=check_in_time,
        check_out_time=check_out_time,
        total_amount=0,
        created_at=datetime.utcnow(),
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


def events_of(published, event_type):
    return [c.args[0] for c in published.call_args_list if c.args[0]["type"] == event_type]
