# campus_parking/services/push_service.py
"""
Mobile push delivery via the Expo push API.
Push is a side channel: every failure is logged and swallowed, and the
caller gets None back. A booking never fails because a push did.
"""

from datetime import datetime
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from campus_parking.config import settings
from campus_parking.errors import ValidationFailed
from campus_parking.models.push_token import PushToken
from campus_parking.utils.logger import get_logger

logger = get_logger(__name__)

_TOKEN_PREFIXES = ("ExponentPushToken[", "ExpoPushToken[")


def is_expo_push_token(token) -> bool:
    return isinstance(token, str) and token.startswith(_TOKEN_PREFIXES) and token.endswith("]")


async def send_push_notification(token: str, title: str, body: str, data: dict = None) -> Optional[dict]:
    """POST one message to Expo. Returns the Expo response body, or None when nothing was sent."""
    if not settings.PUSH_ENABLED:
        return None
    if not is_expo_push_token(token):
        logger.warning(f"[PUSH] Not a valid Expo push token: {str(token)[:24]}")
        return None

    message = {
        "to": token,
        "sound": "default",
        "title": title,
        "body": body,
        "data": data or {},
        "priority": "high",
    }
    try:
        async with httpx.AsyncClient(timeout=settings.PUSH_TIMEOUT_SECONDS) as client:
            resp = await client.post(
                settings.EXPO_PUSH_URL,
                json=message,
                headers={"Accept": "application/json", "Content-Type": "application/json"},
            )
        if resp.status_code != 200:
            logger.warning(f"[PUSH] Expo returned {resp.status_code}: {resp.text[:200]}")
            return None
        logger.info(f"[PUSH] Sent '{title}' to {token[:24]}...")
        return resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"[PUSH] Delivery failed: {e}")
        return None


async def send_user_push(db: Session, user_id: str, title: str, body: str, data: dict = None) -> Optional[dict]:
    """Look up the user's registered token and push to it. No token, no push."""
    row = db.query(PushToken).filter(PushToken.user_id == str(user_id)).first()
    if not row:
        logger.debug(f"[PUSH] No push token registered for user {user_id}")
        return None
    return await send_push_notification(row.token, title, body, data)


def register_push_token(db: Session, user_id: str, token: str) -> PushToken:
    """Upsert the user's push token. Commits."""
    token = (token or "").strip()
    if not is_expo_push_token(token):
        raise ValidationFailed("Invalid Expo push token")

    now = datetime.utcnow()
    row = db.query(PushToken).filter(PushToken.user_id == str(user_id)).first()
    if row:
        row.token = token
        row.updated_at = now
    else:
        row = PushToken(user_id=str(user_id), token=token, created_at=now, updated_at=now)
        db.add(row)
    db.commit()
    logger.info(f"[PUSH] Registered push token for user {user_id}")
    return row
