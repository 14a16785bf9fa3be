# campus_parking/routers/realtime.py
"""
WebSocket endpoint for live zone / booking updates.
Clients receive change events and answer server pings with {"type": "pong"}.
"""

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from campus_parking.services.change_notifier import notifier
from campus_parking.utils.logger import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.websocket("/ws")
async def realtime_updates(websocket: WebSocket):
    conn_id = await notifier.connect(websocket)
    if conn_id not in notifier:
        return
    try:
        while True:
            raw = await websocket.receive_text()
            await notifier.handle_message(conn_id, raw)
    except WebSocketDisconnect:
        pass
    except RuntimeError as e:
        # Socket was closed server-side (pruned by heartbeat or a failed send)
        logger.debug(f"[WS] Receive loop for {conn_id} ended: {e}")
    finally:
        notifier.disconnect(conn_id)
