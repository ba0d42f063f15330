import logging
from datetime import date

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from pydantic import ValidationError

from api.deps import parse_id, parse_range_bound, require_owned, validation_error
from auth.utils import SessionUser, ensure_owner, get_current_user
from db.schemas import MACRO_FIELDS
from storage import Storage, get_storage
from utils.datetime_utils import end_of_day, start_of_day, today_utc
from utils.units import macro_progress_pct

router = APIRouter(prefix="/meals", tags=["meals"])
logger = logging.getLogger(__name__)


@router.get("")
def list_meals(
    user_id: str | None = Query(default=None, alias="userId"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    if user.is_admin:
        return []
    owner_id = ensure_owner(user, user_id)
    if start_date and end_date:
        start = parse_range_bound(start_date)
        end = parse_range_bound(end_date, end=True)
        return storage.get_meals_by_user_id_and_date_range(owner_id, start, end)
    return storage.get_meals_by_user_id(owner_id)


@router.get("/summary")
def daily_summary(
    user_id: str | None = Query(default=None, alias="userId"),
    day: date | None = Query(default=None, alias="date"),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    """Macro totals for one day against the active goal."""
    owner_id = ensure_owner(user, user_id)
    day = day or today_utc()
    meals = storage.get_meals_by_user_id_and_date_range(owner_id, start_of_day(day), end_of_day(day))
    totals = {field: sum(getattr(meal, field) for meal in meals) for field in MACRO_FIELDS}
    goal = storage.get_active_nutrition_goal(owner_id, today=day)
    progress = (
        {field: macro_progress_pct(totals[field], getattr(goal, field)) for field in MACRO_FIELDS}
        if goal
        else None
    )
    by_type: dict[str, int] = {}
    for meal in meals:
        by_type[meal.meal_type] = by_type.get(meal.meal_type, 0) + meal.calories
    return {
        "date": day.isoformat(),
        "mealCount": len(meals),
        "totals": totals,
        "caloriesByMealType": by_type,
        "goal": goal,
        "progressPct": progress,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_meal(
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    ensure_owner(user, payload.get("userId", payload.get("user_id")))
    try:
        meal = storage.create_meal(payload)
    except ValidationError as exc:
        logger.info("Rejected meal payload: %s", exc.errors(include_url=False))
        raise validation_error("Invalid meal data", exc)
    logger.info("Meal %s logged for user %s", meal.id, meal.user_id)
    return meal


@router.delete("/{meal_id}")
def delete_meal(
    meal_id: str,
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    meal_pk = parse_id(meal_id)
    require_owned(user, storage.get_meal(meal_pk), "Meal not found")
    if not storage.delete_meal(meal_pk):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Meal not found")
    return {"message": "Meal deleted successfully"}
