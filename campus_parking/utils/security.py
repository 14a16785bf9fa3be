# campus_parking/utils/security.py
"""
Bearer-token authentication.
Tokens are issued by the campus auth service and carry {"id", "role"}.
The booking core trusts the decoded identity verbatim.
"""

from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from campus_parking.config import settings
from campus_parking.errors import AccessDenied, Unauthenticated
from campus_parking.utils.logger import get_logger

logger = get_logger(__name__)

ROLES = ("student", "staff", "visitor", "admin")

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def decode_token(token: str) -> CurrentUser:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.debug(f"[AUTH] Rejected token: {e}")
        raise Unauthenticated("Invalid or expired token")

    user_id = payload.get("id") or payload.get("sub")
    if not user_id:
        raise Unauthenticated("Token has no user id")
    return CurrentUser(user_id=str(user_id), role=payload.get("role", "student"))


def create_token(user_id: str, role: str) -> str:
    """Mint a token for scripts and tests. The real issuer is the auth service."""
    return jwt.encode({"id": user_id, "role": role}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> CurrentUser:
    """FastAPI dependency. Resolves the caller from the Authorization header."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()
    return decode_token(credentials.credentials)


def require_admin(user: CurrentUser):
    if not user.is_admin:
        raise AccessDenied("Admin access required")


def require_owner_or_admin(user: CurrentUser, owner_id: str):
    if user.user_id != str(owner_id) and not user.is_admin:
        raise AccessDenied("Not authorized")
