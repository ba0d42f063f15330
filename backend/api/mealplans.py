from fastapi import APIRouter, Body, Depends, Query, status
from pydantic import ValidationError

from api.deps import validation_error
from auth.utils import SessionUser, ensure_owner, get_current_user
from storage import Storage, get_storage

router = APIRouter(prefix="/mealplans", tags=["mealplans"])


@router.get("")
def list_meal_plans(
    user_id: str | None = Query(default=None, alias="userId"),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    if user.is_admin:
        return []
    return storage.get_meal_plans_by_user_id(ensure_owner(user, user_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_meal_plan(
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    ensure_owner(user, payload.get("userId", payload.get("user_id")))
    try:
        return storage.create_meal_plan(payload)
    except ValidationError as exc:
        raise validation_error("Invalid meal plan data", exc)
