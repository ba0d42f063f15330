import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import ValidationError

from api.deps import parse_id, require_owned, validation_error
from auth.utils import SessionUser, ensure_owner, get_current_user
from config import settings
from storage import Storage, get_storage
from utils.datetime_utils import today_utc, utcnow

router = APIRouter(prefix="/nutrition-goals", tags=["nutrition-goals"])
logger = logging.getLogger(__name__)


def _admin_goal() -> dict:
    now = utcnow()
    return {
        "id": 999,
        "userId": str(settings.ADMIN_USER_ID),
        "name": "Admin Goal",
        "description": "Default goal for admin",
        "calories": 2500,
        "proteins": 150,
        "carbs": 300,
        "fats": 80,
        "startDate": today_utc().isoformat(),
        "endDate": None,
        "isActive": True,
        "createdAt": now.isoformat(),
    }


@router.get("")
def list_goals(
    user_id: str | None = Query(default=None, alias="userId"),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    if user.is_admin:
        return []
    return storage.get_nutrition_goals_by_user_id(ensure_owner(user, user_id))


@router.get("/active")
def active_goal(
    user_id: str | None = Query(default=None, alias="userId"),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    if user.is_admin:
        return _admin_goal()
    goal = storage.get_active_nutrition_goal(ensure_owner(user, user_id))
    if goal is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No active nutritional goal found")
    return goal


@router.post("", status_code=status.HTTP_201_CREATED)
def create_goal(
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    ensure_owner(user, payload.get("userId", payload.get("user_id")))
    try:
        goal = storage.create_nutrition_goal(payload)
    except ValidationError as exc:
        raise validation_error("Invalid nutritional goal data", exc)
    logger.info("Nutrition goal %s created for user %s (active=%s)", goal.id, goal.user_id, goal.is_active)
    return goal


@router.patch("/{goal_id}")
def update_goal(
    goal_id: str,
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    goal_pk = parse_id(goal_id)
    require_owned(user, storage.get_nutrition_goal(goal_pk), "Nutritional goal not found")
    try:
        updated = storage.update_nutrition_goal(goal_pk, payload)
    except ValidationError as exc:
        raise validation_error("Invalid nutritional goal data", exc)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Nutritional goal not found")
    return updated


@router.delete("/{goal_id}")
def delete_goal(
    goal_id: str,
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    goal_pk = parse_id(goal_id)
    require_owned(user, storage.get_nutrition_goal(goal_pk), "Nutritional goal not found")
    if not storage.delete_nutrition_goal(goal_pk):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Nutritional goal not found")
    return {"message": "Nutritional goal deleted successfully"}
