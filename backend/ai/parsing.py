"""Tolerant JSON extraction and normalization of model output."""
import json
import logging
import re
from typing import Any

from utils.units import round_half_up

logger = logging.getLogger(__name__)

LIST_KEYS = ("recommendations", "goals", "suggestions", "mealIdeas", "meals", "pasti")

# Italian keys some completions use despite the requested schema.
KEY_ALIASES = {
    "nome": "name",
    "titolo": "title",
    "descrizione": "description",
    "tipoPasto": "mealType",
    "tipo_pasto": "mealType",
    "meal_type": "mealType",
    "calorie": "calories",
    "proteine": "proteins",
    "protein": "proteins",
    "carboidrati": "carbs",
    "grassi": "fats",
    "fat": "fats",
    "ingredienti": "ingredients",
}

MACRO_KEYS = ("calories", "proteins", "carbs", "fats")

_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)


class RecommendationParseError(Exception):
    pass


def _strip_fences(text: str) -> str:
    if "```" in text:
        text = text.split("```")[1]
        if text.lower().startswith("json"):
            text = text[4:]
    return text.strip()


def parse_json_content(content: str | None) -> Any:
    if not content or not content.strip():
        raise RecommendationParseError("Empty model response")
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        pass
    text = _strip_fences(content)
    for pattern in (_OBJECT_RE, _ARRAY_RE):
        match = pattern.search(text)
        if not match:
            continue
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError:
            continue
    logger.warning("Could not extract JSON from model response: %.200s", content)
    raise RecommendationParseError("Model response is not valid JSON")


def extract_items(parsed: Any) -> list[dict]:
    if isinstance(parsed, list):
        return [item for item in parsed if isinstance(item, dict)]
    if not isinstance(parsed, dict):
        return []
    for key in LIST_KEYS:
        value = parsed.get(key)
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict)]
    return [parsed]


def _canonical(item: dict) -> dict:
    return {KEY_ALIASES.get(key, key): value for key, value in item.items()}


def normalize_goal(item: dict) -> dict | None:
    data = _canonical(item)
    title = str(data.get("title") or data.get("name") or "").strip()
    if not title:
        return None
    normalized = {"title": title, "description": str(data.get("description") or "").strip()}
    for key in MACRO_KEYS:
        normalized[key] = round_half_up(data.get(key))
    if normalized["calories"] <= 0:
        return None
    return normalized


def normalize_meal(item: dict) -> dict | None:
    data = _canonical(item)
    name = str(data.get("name") or data.get("title") or "").strip()
    if not name:
        return None
    normalized = {
        "name": name,
        "description": str(data.get("description") or "").strip(),
        "mealType": str(data.get("mealType") or "").strip().lower() or None,
    }
    for key in MACRO_KEYS:
        normalized[key] = round_half_up(data.get(key))
    ingredients = data.get("ingredients")
    if isinstance(ingredients, list):
        normalized["ingredients"] = [str(i) for i in ingredients]
    return normalized
