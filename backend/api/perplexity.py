import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from ai.providers import AIProvider
from ai.recommendation_service import (
    generate_meal_suggestions_with_perplexity,
    generate_nutritional_advice_with_perplexity,
)
from api.deps import get_perplexity_provider, load_profile
from api.recommendations import ai_error_response
from auth.utils import SessionUser, get_current_user
from storage import Storage, get_storage

router = APIRouter(prefix="/perplexity", tags=["perplexity"])
logger = logging.getLogger(__name__)


@router.get("/meal-suggestions")
async def meal_suggestions(
    user_id: str | None = Query(default=None, alias="userId"),
    meal_type: str | None = Query(default=None, alias="mealType"),
    dietary_preferences: list[str] | None = Query(default=None, alias="dietaryPreferences"),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    provider: AIProvider = Depends(get_perplexity_provider),
):
    profile = load_profile(storage, user, user_id)
    goal = storage.get_active_nutrition_goal(profile.user_id)
    try:
        return await generate_meal_suggestions_with_perplexity(provider, profile, goal, meal_type, dietary_preferences)
    except Exception:
        logger.exception("Perplexity meal suggestions failed for user %s", profile.user_id)
        return ai_error_response("message")


@router.post("/nutritional-advice")
async def nutritional_advice(
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    provider: AIProvider = Depends(get_perplexity_provider),
):
    user_id = payload.get("userId")
    query = str(payload.get("query") or "").strip()
    if not user_id or not query:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId and query are required")
    profile = load_profile(storage, user, user_id)
    try:
        return await generate_nutritional_advice_with_perplexity(provider, profile, query)
    except Exception:
        logger.exception("Perplexity advice failed for user %s", profile.user_id)
        return ai_error_response("message")
