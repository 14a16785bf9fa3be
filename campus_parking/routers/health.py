# campus_parking/routers/health.py
"""
System health check endpoints.
Returns status of backend + DB + real-time observers.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import text
from campus_parking.database import get_db
from campus_parking.services.change_notifier import notifier
from datetime import datetime

router = APIRouter()


@router.get("/health", summary="System health check")
def health_check(db: Session = Depends(get_db)):
    """
    Returns:
    - Backend status
    - Database connectivity
    - Number of connected WebSocket observers
    """
    result = {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "backend": "ok",
        "database": "unknown",
        "websocket_clients": notifier.connection_count,
    }

    try:
        db.execute(text("SELECT 1"))
        result["database"] = "ok"
    except Exception as e:
        result["database"] = f"error: {str(e)}"
        result["status"] = "degraded"

    return result


@router.get("/ws/status", summary="Real-time channel status")
def ws_status():
    return {
        "connected_clients": notifier.connection_count,
        "timestamp": datetime.utcnow().isoformat(),
    }
