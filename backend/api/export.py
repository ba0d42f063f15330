import logging

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from auth.utils import SessionUser, get_current_user
from storage import Storage, get_storage
from utils.datetime_utils import isoformat_z, utcnow

router = APIRouter(tags=["export"])
logger = logging.getLogger(__name__)


@router.get("/export-data")
def export_data(user: SessionUser = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    user_id = user.user_id
    data = {
        "user": {"id": user.id, "username": user.username, "email": user.email},
        "profile": storage.get_user_profile(user_id),
        "meals": storage.get_meals_by_user_id(user_id),
        "mealPlans": storage.get_meal_plans_by_user_id(user_id),
        "nutritionGoals": storage.get_nutrition_goals_by_user_id(user_id),
        "progressEntries": storage.get_progress_entries_by_user_id(user_id),
        "exportDate": isoformat_z(utcnow()),
    }
    logger.info("Data export for user %s", user_id)
    return JSONResponse(
        content=jsonable_encoder(data),
        headers={"Content-Disposition": "attachment; filename=nutrieasy-data-export.json"},
    )
