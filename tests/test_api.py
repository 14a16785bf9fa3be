# tests/test_api.py
"""HTTP and WebSocket surface, against in-memory SQLite."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi.testclient import TestClient

from campus_parking.database import get_db, get_session_factory
from campus_parking.main import app
from campus_parking.utils.security import create_token
from conftest import events_of, make_zone

API = "/api/v1"


def auth(user_id="u1", role="student"):
    return {"Authorization": f"Bearer {create_token(user_id, role)}"}


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestAuth:
    def test_missing_token(self, client):
        resp = client.post(f"{API}/bookings", json={"zone_id": 1, "date": "2025-10-15", "duration": 2})
        assert resp.status_code == 401
        assert resp.json()["code"] == "UNAUTHENTICATED"

    def test_bad_token(self, client):
        resp = client.get(f"{API}/notifications", headers={"Authorization": "Bearer not-a-jwt"})
        assert resp.status_code == 401

    def test_admin_only_zone_create(self, client):
        resp = client.post(f"{API}/zones", json={"name": "Lot", "total_slots": 5}, headers=auth())
        assert resp.status_code == 403
        assert resp.json()["code"] == "ACCESS_DENIED"


class TestZonesApi:
    def test_create_and_list(self, client, published):
        resp = client.post(f"{API}/zones", headers=auth("admin-1", "admin"),
                           json={"name": "Library Lot", "type": "staff", "total_slots": 12, "code": "lib-1"})
        assert resp.status_code == 200
        assert resp.json()["code"] == "LIB-1"
        assert len(events_of(published, "zone_created")) == 1

        zones = client.get(f"{API}/zones").json()
        assert [(z["code"], z["total"], z["available"]) for z in zones] == [("LIB-1", 12, 12)]

    def test_availability(self, client, db):
        zone = make_zone(db, total_slots=4)
        resp = client.get(f"{API}/zones/{zone.id}/availability", params={"date": "2025-10-15"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["available"] == 4
        assert body["date"] == "2025-10-15"

    def test_unknown_zone(self, client):
        resp = client.get(f"{API}/zones/999/availability")
        assert resp.status_code == 404
        assert resp.json()["code"] == "ZONE_NOT_FOUND"

    def test_zone_detail(self, client, db):
        zone = make_zone(db, total_slots=3, type="staff", name="Library Lot")
        resp = client.get(f"{API}/zones/{zone.id}")
        assert resp.status_code == 200
        body = resp.json()
        assert (body["name"], body["type"], body["total"], body["available"]) == ("Library Lot", "staff", 3, 3)
        assert client.get(f"{API}/zones/999").json()["code"] == "ZONE_NOT_FOUND"


class TestBookingsApi:
    def reserve(self, client, zone_id, user_id="u1", role="student", **extra):
        body = {"zone_id": zone_id, "date": "2025-10-15", "duration": 2}
        body.update(extra)
        return client.post(f"{API}/bookings", json=body, headers=auth(user_id, role))

    def test_last_slot(self, client, db, published):
        zone = make_zone(db, total_slots=1)

        first = self.reserve(client, zone.id, "u1", vehicle_number="abc 123")
        second = self.reserve(client, zone.id, "u2")

        assert first.status_code == 200
        booking = first.json()
        assert booking["status"] == "active"
        assert booking["qr_code"].startswith("QR-")
        assert booking["vehicle_number"] == "ABC 123"
        assert booking["start_time"] == "2025-10-15T08:00:00"
        assert second.status_code == 409
        assert second.json()["code"] == "NO_SLOTS_AVAILABLE"
        assert events_of(published, "zone_update")[0]["available"] == 0

    def test_validation_errors(self, client, db):
        zone = make_zone(db)
        resp = self.reserve(client, zone.id, duration=30)
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"

    def test_malformed_date_gets_validation_code(self, client, db):
        zone = make_zone(db)
        resp = self.reserve(client, zone.id, date="2025-13-45")
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "VALIDATION_ERROR"
        assert body["detail"].startswith("date:")

    def test_missing_field_gets_validation_code(self, client):
        resp = client.post(f"{API}/bookings", json={"date": "2025-10-15"}, headers=auth())
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_ERROR"

    def test_zone_type_restriction(self, client, db):
        zone = make_zone(db, type="staff")
        resp = self.reserve(client, zone.id)
        assert resp.status_code == 403
        assert "not allowed to book staff parking zones" in resp.json()["detail"]

    def test_cancel_then_rebook(self, client, db):
        zone = make_zone(db, total_slots=1)
        booking = self.reserve(client, zone.id, "u1").json()

        assert client.delete(f"{API}/bookings/{booking['id']}", headers=auth("u2")).status_code == 403
        assert client.delete(f"{API}/bookings/{booking['id']}", headers=auth("u1")).status_code == 200
        assert client.delete(f"{API}/bookings/{booking['id']}", headers=auth("u1")).status_code == 409
        assert self.reserve(client, zone.id, "u2").status_code == 200

    def test_qr_check_in_and_out(self, client, db):
        zone = make_zone(db)
        qr = self.reserve(client, zone.id).json()["qr_code"]
        gate = auth("gate-1", "staff")

        checked_in = client.post(f"{API}/bookings/checkin", json={"qr_code": qr}, headers=gate)
        again = client.post(f"{API}/bookings/checkin", json={"qr_code": qr}, headers=gate)
        checked_out = client.post(f"{API}/bookings/checkout", json={"qr_code": qr}, headers=gate)

        assert checked_in.json()["status"] == "checked-in"
        assert again.status_code == 409
        assert checked_out.json()["status"] == "completed"

    def test_check_out_requires_check_in(self, client, db):
        zone = make_zone(db)
        booking = self.reserve(client, zone.id).json()
        resp = client.post(f"{API}/bookings/{booking['id']}/check-out", headers=auth())
        assert resp.status_code == 409
        assert resp.json()["code"] == "CHECK_IN_REQUIRED"

    def test_unknown_qr(self, client):
        resp = client.get(f"{API}/bookings/qr/QR-NOPE", headers=auth())
        assert resp.status_code == 404

    def test_user_bookings_owner_only(self, client, db):
        zone = make_zone(db)
        self.reserve(client, zone.id, "u1")
        assert len(client.get(f"{API}/bookings/user/u1", headers=auth("u1")).json()) == 1
        assert client.get(f"{API}/bookings/user/u1", headers=auth("u2")).status_code == 403

    def test_confirmation_lands_in_inbox(self, client, db):
        zone = make_zone(db)
        self.reserve(client, zone.id, "u1")
        inbox = client.get(f"{API}/notifications", headers=auth("u1")).json()
        assert inbox["unread_count"] == 1
        assert inbox["notifications"][0]["title"] == "Booking Confirmed"


class TestHealthAndRealtime:
    def test_health(self, client):
        body = client.get(f"{API}/health").json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"

    def test_ws_greeting_and_pong(self, client):
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_json()["type"] == "connected"
            assert client.get(f"{API}/ws/status").json()["connected_clients"] == 1
            ws.send_text('{"type": "pong"}')
            ws.send_text("garbage")
            assert ws.receive_json()["type"] == "error"
