"""Goal recommendations, meal ideas, chat answers and Perplexity helpers.

Every generator takes its provider explicitly so routes can inject fakes.
Provider failures surface as ``AIProviderError`` and unusable output as
``RecommendationParseError``; the routes turn both into the generic 500.
"""
import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Iterable

from pydantic import BaseModel, field_validator

from ai import prompts
from ai.parsing import (
    RecommendationParseError,
    extract_items,
    normalize_goal,
    normalize_meal,
    parse_json_content,
)
from ai.providers.base import AIProvider
from db.schemas import Meal, NutritionGoal, UserProfile
from utils.units import round_half_up

logger = logging.getLogger(__name__)

GENERIC_AI_ERROR = "A connection issue occurred while generating recommendations. Please try again later."
TIMEOUT_MESSAGE = "The request took too long. Please try again later."
EMPTY_CHAT_ANSWER = "I'm sorry, I wasn't able to process a response. Please try rephrasing your question."


class GoalRecommendation(BaseModel):
    title: str
    description: str = ""
    calories: int
    proteins: int
    carbs: int
    fats: int

    @field_validator("calories", "proteins", "carbs", "fats", mode="before")
    @classmethod
    def _round(cls, value):
        return round_half_up(value)


FALLBACK_GOAL_RECOMMENDATIONS: tuple[GoalRecommendation, ...] = (
    GoalRecommendation(
        title="Balanced Mediterranean",
        description=(
            "Mediterranean approach with balance between all macronutrients, ideal for supporting "
            "energy and health in a balanced way."
        ),
        calories=2200,
        proteins=120,
        carbs=270,
        fats=70,
    ),
    GoalRecommendation(
        title="Enhanced Protein",
        description="A high-protein approach to support muscle mass and improve satiety throughout the day.",
        calories=2300,
        proteins=150,
        carbs=250,
        fats=75,
    ),
    GoalRecommendation(
        title="Natural Low-Carb",
        description=(
            "A strategy with reduced carbohydrates and increased healthy fats, ideal for stabilizing "
            "energy levels and improving metabolism."
        ),
        calories=2000,
        proteins=125,
        carbs=180,
        fats=100,
    ),
)


def fallback_recommendations() -> list[dict]:
    return [rec.model_dump() for rec in FALLBACK_GOAL_RECOMMENDATIONS]


@dataclass
class TimedResult:
    value: Any = None
    timed_out: bool = False


async def run_with_timeout(coro: Awaitable, seconds: float) -> TimedResult:
    """Await ``coro`` for at most ``seconds``; on expiry cancel it and report a timeout.

    Exceptions raised by ``coro`` inside the window propagate to the caller.
    """
    task = asyncio.ensure_future(coro)
    done, _ = await asyncio.wait({task}, timeout=seconds)
    if task in done:
        return TimedResult(value=task.result())
    task.cancel()
    logger.warning("AI request cancelled after %.1fs timeout", seconds)
    return TimedResult(timed_out=True)


def _log_usage(operation: str, result: dict) -> None:
    logger.info(
        "%s via %s: %s tokens in, %s tokens out",
        operation,
        result.get("model"),
        result.get("tokens_in"),
        result.get("tokens_out"),
    )


async def _goal_for_approach(
    provider: AIProvider,
    system: str,
    prompt: str,
    fallback: GoalRecommendation,
) -> GoalRecommendation:
    result = await provider.chat(
        [{"role": "user", "content": prompt}],
        system=system,
        temperature=0.8,
        json_mode=True,
    )
    _log_usage("goal_recommendation", result)
    try:
        items = extract_items(parse_json_content(result.get("content")))
    except RecommendationParseError as exc:
        logger.warning("Goal recommendation unparseable, using %s: %s", fallback.title, exc)
        return fallback
    for item in items:
        normalized = normalize_goal(item)
        if normalized:
            return GoalRecommendation(**normalized)
    logger.warning("Goal recommendation missing fields, using %s", fallback.title)
    return fallback


async def generate_nutrition_goal_recommendations(
    provider: AIProvider,
    profile: UserProfile,
    goal: NutritionGoal | None,
    meals: Iterable[Meal] | None,
    lang: str | None = None,
) -> list[GoalRecommendation]:
    """Three goals, one per approach, requested in parallel."""
    system, approach_prompts = prompts.goal_recommendation_prompts(
        profile, goal, meals, lang, query_id=uuid.uuid4().hex[:12]
    )
    results = await asyncio.gather(
        *(
            _goal_for_approach(provider, system, prompt, fallback)
            for prompt, fallback in zip(approach_prompts, FALLBACK_GOAL_RECOMMENDATIONS)
        )
    )
    return list(results)[:3]


async def generate_meal_suggestions(
    provider: AIProvider,
    profile: UserProfile,
    goal: NutritionGoal | None,
    meal_type: str | None = None,
    preferences: list[str] | None = None,
    lang: str | None = None,
) -> list[dict]:
    system, prompt = prompts.meal_suggestion_prompt(
        profile, goal, meal_type, preferences, lang, query_id=uuid.uuid4().hex[:12]
    )
    result = await provider.chat(
        [{"role": "user", "content": prompt}],
        system=system,
        temperature=0.7,
        json_mode=True,
    )
    _log_usage("meal_suggestions", result)
    items = extract_items(parse_json_content(result.get("content")))
    suggestions = [meal for meal in (normalize_meal(item) for item in items) if meal]
    if not suggestions:
        raise RecommendationParseError("No usable meal suggestions in model response")
    return suggestions


async def generate_ai_response(
    provider: AIProvider,
    query: str,
    profile: UserProfile,
    goal: NutritionGoal | None,
    meals: Iterable[Meal] | None,
    chat_type: str | None = None,
    lang: str | None = None,
) -> str:
    system, prompt = prompts.chat_prompt(query, profile, goal, meals, chat_type, lang)
    result = await provider.chat(
        [{"role": "user", "content": prompt}],
        system=system,
        temperature=0.7,
    )
    _log_usage(f"chat:{chat_type or 'general'}", result)
    answer = (result.get("content") or "").strip()
    return answer or EMPTY_CHAT_ANSWER


async def generate_meal_suggestions_with_perplexity(
    provider: AIProvider,
    profile: UserProfile,
    goal: NutritionGoal | None,
    meal_type: str | None = None,
    dietary_preferences: list[str] | None = None,
) -> dict:
    system, prompt = prompts.perplexity_meal_prompt(profile, goal, meal_type, dietary_preferences)
    result = await provider.chat(
        [{"role": "user", "content": prompt}],
        system=system,
        temperature=0.6,
        json_mode=True,
        max_tokens=1000,
    )
    _log_usage("perplexity_meals", result)
    items = extract_items(parse_json_content(result.get("content")))
    return {"meals": [meal for meal in (normalize_meal(item) for item in items) if meal]}


async def generate_nutritional_advice_with_perplexity(
    provider: AIProvider,
    profile: UserProfile,
    query: str,
) -> dict:
    system, prompt = prompts.perplexity_advice_prompt(profile, query)
    result = await provider.chat(
        [{"role": "user", "content": prompt}],
        system=system,
        temperature=0.5,
        max_tokens=1000,
    )
    _log_usage("perplexity_advice", result)
    content = (result.get("content") or "").strip()
    if not content:
        raise RecommendationParseError("Empty advice from model")
    return {"advice": content}
