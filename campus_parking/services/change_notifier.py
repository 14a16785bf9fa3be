# campus_parking/services/change_notifier.py
"""
Real-time change notifier. Fans committed state changes out to every
connected WebSocket observer.

Delivery is best effort:
  - No persistence or replay. An observer that connects later missed the event.
  - No ordering guarantee across observers.
  - A closed, erroring or slow (send timeout) observer is pruned during the send.
  - A heartbeat pings every observer; one that did not answer the previous ping is pruned.
  - Nothing here ever raises into the booking operation that triggered the event.

The registry is only touched from the event loop, so it needs no lock.
"""

import asyncio
import uuid
from datetime import datetime
from typing import Dict, Optional

from fastapi.websockets import WebSocketState

from campus_parking.config import settings
from campus_parking.utils.json_parser import dump_event, safe_parse_json
from campus_parking.utils.logger import get_logger

logger = get_logger(__name__)


# ── Event builders ───────────────────────────────────────────────────────────
def zone_update_event(zone_id, available: int) -> dict:
    return {"type": "zone_update", "zoneId": zone_id, "available": available}


def zone_created_event(zone, available: int) -> dict:
    return {
        "type": "zone_created",
        "zone": {
            "id": zone.id,
            "name": zone.name,
            "code": zone.code,
            "total": zone.total_slots,
            "available": available,
            "type": zone.type,
            "location": zone.address,
        },
    }


def zone_deleted_event(zone_id) -> dict:
    return {"type": "zone_deleted", "zoneId": zone_id}


def booking_created_event(booking) -> dict:
    return {
        "type": "booking_created",
        "bookingId": booking.id,
        "userId": booking.user_id,
        "zoneId": booking.zone_id,
        "zoneName": booking.zone_name,
    }


def booking_cancelled_event(booking) -> dict:
    return {
        "type": "booking_cancelled",
        "bookingId": booking.id,
        "userId": booking.user_id,
        "zoneId": booking.zone_id,
        "zoneName": booking.zone_name,
    }


def notification_event(user_id: Optional[str], title: str, message: str,
                       notification_type: str = "system", broadcast: bool = False) -> dict:
    event = {
        "type": "notification",
        "userId": user_id,
        "title": title,
        "message": message,
        "notificationType": notification_type,
    }
    if broadcast:
        event["broadcast"] = True
    return event


# ── Registry ─────────────────────────────────────────────────────────────────
class Observer:
    def __init__(self, conn_id: str, websocket):
        self.conn_id = conn_id
        self.websocket = websocket
        self.is_alive = True
        self.channel: Optional[str] = None
        self.connected_at = datetime.utcnow()


class ChangeNotifier:
    def __init__(self, send_timeout: float = None):
        self.send_timeout = send_timeout if send_timeout is not None else settings.WS_SEND_TIMEOUT_SECONDS
        self._observers: Dict[str, Observer] = {}
        self._pending = set()

    @property
    def connection_count(self) -> int:
        return len(self._observers)

    def __contains__(self, conn_id) -> bool:
        return conn_id in self._observers

    async def connect(self, websocket) -> str:
        """Accept the socket, register it and greet it. Returns the connection id."""
        await websocket.accept()
        conn_id = uuid.uuid4().hex[:8]
        observer = Observer(conn_id, websocket)
        self._observers[conn_id] = observer
        logger.info(f"[WS] Observer {conn_id} connected — total {self.connection_count}")

        greeting = dump_event({
            "type": "connected",
            "message": "WebSocket connection established",
            "timestamp": datetime.utcnow().isoformat(),
        })
        if not await self._send(observer, greeting):
            await self._drop(conn_id)
        return conn_id

    def disconnect(self, conn_id: str):
        if self._observers.pop(conn_id, None) is not None:
            logger.info(f"[WS] Observer {conn_id} disconnected — total {self.connection_count}")

    async def handle_message(self, conn_id: str, raw):
        """Process a client frame. Any well-formed frame counts as a liveness signal."""
        observer = self._observers.get(conn_id)
        if observer is None:
            return

        data = safe_parse_json(raw)
        if data is None:
            logger.debug(f"[WS] Observer {conn_id} sent an unparseable frame")
            await self._send(observer, dump_event({"type": "error", "message": "Invalid message format"}))
            return

        observer.is_alive = True
        if data.get("type") == "subscribe":
            observer.channel = data.get("channel")
            logger.info(f"[WS] Observer {conn_id} subscribed to {observer.channel}")

    async def broadcast(self, event: dict) -> int:
        """Send one event to every observer, pruning the ones that fail. Returns delivered count."""
        payload = dict(event)
        payload.setdefault("timestamp", datetime.utcnow().isoformat())
        message = dump_event(payload)

        sent, dead = 0, []
        for conn_id, observer in list(self._observers.items()):
            if await self._send(observer, message):
                sent += 1
            else:
                dead.append(conn_id)

        for conn_id in dead:
            await self._drop(conn_id)

        logger.info(f"[WS] Broadcast {payload.get('type')} to {sent} observers"
                    + (f", pruned {len(dead)}" if dead else ""))
        return sent

    def publish(self, event: dict):
        """Fire-and-forget broadcast. Returns immediately; delivery runs on the loop."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"[WS] No running event loop — dropped {event.get('type')} event")
            return
        task = loop.create_task(self.broadcast(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def heartbeat(self) -> int:
        """Prune observers that missed the last ping, then ping the rest. Returns pruned count."""
        ping = dump_event({"type": "ping", "timestamp": datetime.utcnow().isoformat()})
        dead = []
        for conn_id, observer in list(self._observers.items()):
            if not observer.is_alive:
                dead.append(conn_id)
                continue
            observer.is_alive = False
            if not await self._send(observer, ping):
                dead.append(conn_id)

        for conn_id in dead:
            await self._drop(conn_id)
        if dead:
            logger.info(f"[WS] Heartbeat pruned {len(dead)} unresponsive observers")
        return len(dead)

    async def close_all(self, code: int = 1001, reason: str = "Server shutting down"):
        for conn_id in list(self._observers):
            await self._drop(conn_id, code=code, reason=reason)

    async def _send(self, observer: Observer, message: str) -> bool:
        ws = observer.websocket
        if ws.client_state != WebSocketState.CONNECTED:
            return False
        try:
            await asyncio.wait_for(ws.send_text(message), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"[WS] Send to {observer.conn_id} timed out after {self.send_timeout}s")
        except Exception as e:
            logger.warning(f"[WS] Send to {observer.conn_id} failed: {e}")
        return False

    async def _drop(self, conn_id: str, code: int = 1000, reason: str = ""):
        observer = self._observers.pop(conn_id, None)
        if observer is None:
            return
        if observer.websocket.client_state == WebSocketState.CONNECTED:
            try:
                await observer.websocket.close(code=code, reason=reason)
            except Exception as e:
                logger.debug(f"[WS] Close of {conn_id} failed: {e}")
        logger.info(f"[WS] Observer {conn_id} removed — total {self.connection_count}")


notifier = ChangeNotifier()
