# campus_parking/routers/users.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from campus_parking.database import get_db
from campus_parking.schemas.notification import PushTokenIn
from campus_parking.services.push_service import register_push_token
from campus_parking.utils.security import CurrentUser, get_current_user, require_owner_or_admin

router = APIRouter()


@router.post("/users/{user_id}/push-token", summary="Register the device's Expo push token")
def save_push_token(user_id: str, body: PushTokenIn, user: CurrentUser = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    require_owner_or_admin(user, user_id)
    register_push_token(db, user_id, body.token)
    return {"success": True, "message": "Push token saved"}
