import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse

from ai.providers import AIProvider
from ai.recommendation_service import (
    GENERIC_AI_ERROR,
    TIMEOUT_MESSAGE,
    fallback_recommendations,
    generate_ai_response,
    generate_meal_suggestions,
    generate_nutrition_goal_recommendations,
    run_with_timeout,
)
from api.deps import get_openai_provider, load_profile
from auth.utils import SessionUser, get_current_user
from config import settings
from storage import Storage, get_storage
from utils.datetime_utils import isoformat_z, utcnow

router = APIRouter(tags=["recommendations"])
logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return isoformat_z(utcnow())


def ai_error_response(key: str = "error", **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={key: GENERIC_AI_ERROR, "timestamp": _timestamp(), **extra},
    )


@router.get("/recommendations/nutrition-goals")
async def nutrition_goal_recommendations(
    user_id: str | None = Query(default=None, alias="userId"),
    lang: str | None = Query(default=None),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    provider: AIProvider = Depends(get_openai_provider),
):
    profile = load_profile(storage, user, user_id)
    goal = storage.get_active_nutrition_goal(profile.user_id)
    meals = storage.get_meals_by_user_id(profile.user_id)
    logger.info("Generating goal recommendations for user %s (goal=%s, meals=%d)", profile.user_id, bool(goal), len(meals))
    try:
        outcome = await run_with_timeout(
            generate_nutrition_goal_recommendations(provider, profile, goal, meals, lang),
            settings.AI_RECOMMENDATION_TIMEOUT_SECONDS,
        )
    except Exception:
        logger.exception("Goal recommendation generation failed for user %s", profile.user_id)
        return ai_error_response()
    if outcome.timed_out:
        return {"recommendations": fallback_recommendations(), "timestamp": _timestamp(), "source": "fallback"}
    if not outcome.value:
        logger.warning("Empty goal recommendations for user %s", profile.user_id)
        return ai_error_response()
    return {
        "recommendations": [rec.model_dump() for rec in outcome.value],
        "timestamp": _timestamp(),
        "source": "ai",
    }


@router.get("/recommendations/meals")
async def meal_recommendations(
    user_id: str | None = Query(default=None, alias="userId"),
    meal_type: str | None = Query(default=None, alias="mealType"),
    preferences: list[str] | None = Query(default=None),
    lang: str | None = Query(default=None),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    provider: AIProvider = Depends(get_openai_provider),
):
    profile = load_profile(storage, user, user_id)
    goal = storage.get_active_nutrition_goal(profile.user_id)
    try:
        outcome = await run_with_timeout(
            generate_meal_suggestions(provider, profile, goal, meal_type, preferences, lang),
            settings.AI_RECOMMENDATION_TIMEOUT_SECONDS,
        )
    except Exception:
        logger.exception("Meal suggestion generation failed for user %s", profile.user_id)
        return ai_error_response()
    if outcome.timed_out:
        return JSONResponse(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content={"error": TIMEOUT_MESSAGE, "timestamp": _timestamp()},
        )
    return {"suggestions": outcome.value or [], "timestamp": _timestamp(), "source": "ai"}


@router.post("/ai-chat")
async def ai_chat(
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
    provider: AIProvider = Depends(get_openai_provider),
):
    user_id = payload.get("userId")
    query = str(payload.get("query") or "").strip()
    if not user_id or not query:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User ID and query are required")
    profile = load_profile(storage, user, user_id)
    goal = storage.get_active_nutrition_goal(profile.user_id)
    meals = storage.get_meals_by_user_id(profile.user_id)
    chat_type = payload.get("chatType") or "general"
    try:
        answer = await generate_ai_response(provider, query, profile, goal, meals, chat_type, payload.get("lang"))
    except Exception:
        logger.exception("AI chat failed for user %s (%s)", profile.user_id, chat_type)
        return ai_error_response(answer=GENERIC_AI_ERROR)
    return {"answer": answer, "timestamp": _timestamp()}
