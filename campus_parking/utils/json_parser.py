# campus_parking/utils/json_parser.py
"""
Helpers for the JSON frames exchanged over the real-time WebSocket channel.
Clients send small control messages (pong, subscribe); the server sends
change events.
"""

import json
from datetime import date, datetime
from typing import Any, Optional


def safe_parse_json(raw: str | bytes) -> Optional[dict]:
    """Parse a client frame safely. Returns None on error or when it is not an object."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def _default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def dump_event(event: dict) -> str:
    """Serialize a change event. Datetimes become ISO strings, ids become strings when needed."""
    return json.dumps(event, default=_default)
