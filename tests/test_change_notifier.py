# tests/test_change_notifier.py
"""Tests for the WebSocket change notifier."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import asyncio
import json

import pytest
from fastapi.websockets import WebSocketState

from campus_parking.services.change_notifier import ChangeNotifier, zone_update_event


class FakeWebSocket:
    def __init__(self, fail=False, hang=False):
        self.client_state = WebSocketState.CONNECTING
        self.sent = []
        self.fail = fail
        self.hang = hang
        self.closed_with = None

    async def accept(self):
        self.client_state = WebSocketState.CONNECTED

    async def send_text(self, message):
        if self.fail:
            raise RuntimeError("connection reset")
        if self.hang:
            await asyncio.sleep(10)
        self.sent.append(json.loads(message))

    async def close(self, code=1000, reason=""):
        self.closed_with = code
        self.client_state = WebSocketState.DISCONNECTED

    def of_type(self, event_type):
        return [m for m in self.sent if m["type"] == event_type]


@pytest.fixture
def hub():
    return ChangeNotifier(send_timeout=0.05)


class TestConnections:
    @pytest.mark.asyncio
    async def test_connect_greets_and_registers(self, hub):
        ws = FakeWebSocket()
        conn_id = await hub.connect(ws)

        assert conn_id in hub
        assert hub.connection_count == 1
        assert ws.sent[0]["type"] == "connected"
        assert "timestamp" in ws.sent[0]

    @pytest.mark.asyncio
    async def test_failed_greeting_drops_observer(self, hub):
        conn_id = await hub.connect(FakeWebSocket(fail=True))
        assert conn_id not in hub
        assert hub.connection_count == 0

    @pytest.mark.asyncio
    async def test_disconnect(self, hub):
        conn_id = await hub.connect(FakeWebSocket())
        hub.disconnect(conn_id)
        hub.disconnect(conn_id)
        assert hub.connection_count == 0

    @pytest.mark.asyncio
    async def test_close_all(self, hub):
        sockets = [FakeWebSocket() for _ in range(3)]
        for ws in sockets:
            await hub.connect(ws)

        await hub.close_all()

        assert hub.connection_count == 0
        assert [ws.closed_with for ws in sockets] == [1001, 1001, 1001]


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_every_observer_gets_the_event(self, hub):
        sockets = [FakeWebSocket() for _ in range(3)]
        for ws in sockets:
            await hub.connect(ws)

        delivered = await hub.broadcast(zone_update_event(7, 12))

        assert delivered == 3
        for ws in sockets:
            update = ws.of_type("zone_update")[0]
            assert update["zoneId"] == 7
            assert update["available"] == 12
            assert "timestamp" in update

    @pytest.mark.asyncio
    async def test_failing_observer_is_pruned(self, hub):
        good, bad = FakeWebSocket(), FakeWebSocket()
        await hub.connect(good)
        bad_id = await hub.connect(bad)
        bad.fail = True

        delivered = await hub.broadcast(zone_update_event(1, 0))

        assert delivered == 1
        assert bad_id not in hub
        assert len(good.of_type("zone_update")) == 1

    @pytest.mark.asyncio
    async def test_slow_observer_does_not_block_others(self, hub):
        fast, slow = FakeWebSocket(), FakeWebSocket()
        await hub.connect(fast)
        slow_id = await hub.connect(slow)
        slow.hang = True

        delivered = await asyncio.wait_for(hub.broadcast(zone_update_event(1, 3)), timeout=2)

        assert delivered == 1
        assert slow_id not in hub

    @pytest.mark.asyncio
    async def test_broadcast_with_no_observers(self, hub):
        assert await hub.broadcast(zone_update_event(1, 3)) == 0


class TestPublish:
    def test_without_loop_drops_silently(self, hub):
        hub.publish(zone_update_event(1, 3))

    @pytest.mark.asyncio
    async def test_returns_before_delivery(self, hub):
        ws = FakeWebSocket()
        await hub.connect(ws)

        hub.publish(zone_update_event(2, 5))
        assert ws.of_type("zone_update") == []

        await asyncio.sleep(0.01)
        assert ws.of_type("zone_update")[0]["available"] == 5


class TestHeartbeat:
    @pytest.mark.asyncio
    async def test_silent_observer_pruned_on_second_beat(self, hub):
        ws = FakeWebSocket()
        conn_id = await hub.connect(ws)

        assert await hub.heartbeat() == 0
        assert len(ws.of_type("ping")) == 1

        assert await hub.heartbeat() == 1
        assert conn_id not in hub
        assert ws.closed_with == 1000

    @pytest.mark.asyncio
    async def test_pong_keeps_observer(self, hub):
        ws = FakeWebSocket()
        conn_id = await hub.connect(ws)

        for _ in range(3):
            await hub.heartbeat()
            await hub.handle_message(conn_id, '{"type": "pong"}')

        assert conn_id in hub

    @pytest.mark.asyncio
    async def test_invalid_frame_gets_error_and_no_credit(self, hub):
        ws = FakeWebSocket()
        conn_id = await hub.connect(ws)
        await hub.heartbeat()

        await hub.handle_message(conn_id, "not json")

        assert ws.of_type("error")[0]["message"] == "Invalid message format"
        assert await hub.heartbeat() == 1

    @pytest.mark.asyncio
    async def test_subscribe_sets_channel(self, hub):
        ws = FakeWebSocket()
        conn_id = await hub.connect(ws)
        await hub.handle_message(conn_id, '{"type": "subscribe", "channel": "zones"}')
        assert hub._observers[conn_id].channel == "zones"
