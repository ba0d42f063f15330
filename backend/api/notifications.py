from fastapi import APIRouter, Depends, HTTPException, status

from api.deps import parse_id
from auth.utils import SessionUser, get_current_user
from db.schemas import UserNotification
from storage import Storage, get_storage
from utils.datetime_utils import utcnow

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _to_dict(notification: UserNotification) -> dict:
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "date": notification.created_at,
        "read": notification.is_read,
        "type": notification.type,
        "actionUrl": notification.action_url,
    }


def _welcome() -> dict:
    return {
        "id": 1,
        "title": "Welcome to NutriEasy!",
        "message": "Start tracking your daily nutrition to reach your goals.",
        "date": utcnow(),
        "read": False,
        "type": "welcome",
        "actionUrl": None,
    }


@router.get("")
def list_notifications(user: SessionUser = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    notifications = [_to_dict(n) for n in storage.get_user_notifications_by_user_id(user.user_id)]
    return notifications or [_welcome()]


@router.post("/{notification_id}/read")
def mark_read(
    notification_id: str,
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    pk = parse_id(notification_id, "Invalid notification ID")
    owned = any(n.id == pk for n in storage.get_user_notifications_by_user_id(user.user_id))
    if not owned or storage.mark_user_notification_as_read(pk) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return {"success": True}
