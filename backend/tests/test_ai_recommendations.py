from __future__ import annotations

import asyncio
import json
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ai import prompts  # noqa: E402
from ai.parsing import (  # noqa: E402
    RecommendationParseError,
    extract_items,
    normalize_goal,
    normalize_meal,
    parse_json_content,
)
from ai.providers import AIProvider, AIProviderError, OpenAIProvider, PerplexityProvider  # noqa: E402
from ai.recommendation_service import (  # noqa: E402
    EMPTY_CHAT_ANSWER,
    GENERIC_AI_ERROR,
    TIMEOUT_MESSAGE,
    generate_nutrition_goal_recommendations,
    run_with_timeout,
)
from api.deps import get_openai_provider, get_perplexity_provider  # noqa: E402
from auth.utils import create_token, hash_password  # noqa: E402
from config import settings  # noqa: E402
from db.schemas import Meal, NutritionGoal, UserProfile  # noqa: E402
from main import app  # noqa: E402
from storage import MemStorage, get_storage  # noqa: E402


class ScriptedProvider(AIProvider):
    """Returns queued replies in order; an exception in the queue is raised."""

    name = "scripted"

    def __init__(self, *replies):
        super().__init__(api_key="test", model="scripted-1")
        self.replies = list(replies)
        self.calls: list[dict] = []

    async def chat(self, messages, *, system="", temperature=0.7, json_mode=False, max_tokens=None):
        self.calls.append({"messages": messages, "system": system, "temperature": temperature, "json_mode": json_mode})
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return {"content": reply, "tokens_in": 10, "tokens_out": 20, "model": self.model}


class HangingProvider(AIProvider):
    name = "hanging"

    def __init__(self):
        super().__init__(api_key="test")

    async def chat(self, messages, **kwargs):
        await asyncio.sleep(30)
        return {"content": "{}"}


def _profile(**overrides) -> UserProfile:
    data = {"id": 1, "user_id": "1", "name": "Anna", "age": 30, "gender": "female", "weight": 70, "height": 175, "activity_level": "moderate"}
    data.update(overrides)
    return UserProfile(**data)


def _meal(index: int) -> Meal:
    return Meal(
        id=index,
        user_id="1",
        food=f"Piatto {index}",
        calories=400 + index,
        proteins=20,
        carbs=50,
        fats=10,
        meal_type="lunch",
        timestamp=datetime(2024, 6, 1) + timedelta(hours=index),
    )


def test_italian_context_blocks():
    system, approach_prompts = prompts.goal_recommendation_prompts(_profile(), None, [], "it", query_id="q1")
    assert "Rispondi in italiano." in system
    assert len(approach_prompts) == 3
    first = approach_prompts[0]
    assert "- Età: 30" in first
    assert "- Peso: 70 kg" in first
    assert "- BMI: 22.9" in first
    assert "Obiettivo attuale: Nessun obiettivo attuale impostato" in first
    assert "MEDITERRANEO/BILANCIATO" in first
    assert "ID RICHIESTA: q1" in first
    assert "PROTEICO/ENERGETICO" in approach_prompts[1]
    assert "LOW-CARB" in approach_prompts[2]


def test_english_prompts_and_missing_values():
    goal = NutritionGoal(id=3, user_id="1", name="Cut", calories=1800, proteins=140, carbs=150, fats=60)
    _, approach_prompts = prompts.goal_recommendation_prompts(_profile(age=None, height=None), goal, [], "en")
    text = approach_prompts[0]
    assert "- Age: Not specified" in text
    assert "- BMI: Not calculable" in text
    assert "Current goal: Cut (1800 kcal, proteins 140 g, carbs 150 g, fats 60 g)" in text
    assert prompts.resolve_language("fr") == "it"
    assert prompts.resolve_language("EN-gb") == "en"


def test_recent_meals_are_capped():
    block = prompts.meals_block([_meal(i) for i in range(8)], "it")
    assert block.count("\n- ") == prompts.MAX_RECENT_MEALS
    assert "Piatto 0" in block
    assert "Piatto 5" not in block


def test_meal_prompt_mentions_type_and_preferences():
    _, text = prompts.meal_suggestion_prompt(_profile(), None, "dinner", ["vegetarian", ""], "en")
    assert "suitable for dinner" in text
    assert "Consider the preferences: vegetarian" in text
    chat_system, _ = prompts.chat_prompt("?", _profile(), None, [], "meals", "it")
    assert chat_system.startswith("You are a food and cooking expert")


def test_json_extraction_tolerates_wrapping():
    assert parse_json_content('{"a": 1}') == {"a": 1}
    fenced = 'Ecco:\n```json\n{"title": "X", "calories": 2000}\n```'
    assert parse_json_content(fenced)["title"] == "X"
    assert extract_items(parse_json_content('Sure! [{"name": "Soup"}] enjoy')) == [{"name": "Soup"}]
    assert parse_json_content('[1, 2]') == [1, 2]
    with pytest.raises(RecommendationParseError):
        parse_json_content("no json here")
    with pytest.raises(RecommendationParseError):
        parse_json_content("   ")


def test_normalizers_accept_italian_keys():
    goal = normalize_goal({"titolo": "Mediterraneo", "calorie": "2150.5", "proteine": 110, "carboidrati": 260.4, "grassi": 70})
    assert goal == {"title": "Mediterraneo", "description": "", "calories": 2151, "proteins": 110, "carbs": 260, "fats": 70}
    assert normalize_goal({"title": "Zero", "calories": 0}) is None
    meal = normalize_meal({"nome": "Insalata", "tipoPasto": "Lunch", "calorie": 350, "ingredienti": ["farro", "ceci"]})
    assert meal["name"] == "Insalata"
    assert meal["mealType"] == "lunch"
    assert meal["ingredients"] == ["farro", "ceci"]
    assert extract_items({"suggestions": [meal, "junk"]}) == [meal]
    assert extract_items({"name": "solo"}) == [{"name": "solo"}]


def test_run_with_timeout_reports_expiry():
    async def slow():
        await asyncio.sleep(5)

    async def fast():
        return 42

    assert asyncio.run(run_with_timeout(slow(), 0.01)).timed_out is True
    outcome = asyncio.run(run_with_timeout(fast(), 1))
    assert (outcome.value, outcome.timed_out) == (42, False)


def test_unparseable_approach_uses_matching_fallback():
    provider = ScriptedProvider(
        json.dumps({"title": "Mediterraneo su misura", "description": "ok", "calories": 2100, "proteins": 110, "carbs": 250, "fats": 70}),
        "not json",
        json.dumps({"recommendations": [{"titolo": "Low carb", "calorie": 1900, "proteine": 120, "carboidrati": 150, "grassi": 90}]}),
    )
    results = asyncio.run(generate_nutrition_goal_recommendations(provider, _profile(), None, [], "it"))
    assert [r.title for r in results] == ["Mediterraneo su misura", "Enhanced Protein", "Low carb"]
    assert all(call["json_mode"] and call["temperature"] == 0.8 for call in provider.calls)


@pytest.fixture()
def storage():
    mem = MemStorage()
    app.dependency_overrides[get_storage] = lambda: mem
    yield mem
    app.dependency_overrides.clear()


def _client_for(storage: MemStorage, provider: AIProvider | None = None) -> tuple[TestClient, str]:
    user = storage.create_user({"username": "anna", "email": "anna@example.com", "password": hash_password("pw")})
    storage.create_user_profile({"user_id": user.id, "name": "Anna", "age": 30, "gender": "female", "weight": 70, "height": 175})
    if provider is not None:
        app.dependency_overrides[get_openai_provider] = lambda: provider
        app.dependency_overrides[get_perplexity_provider] = lambda: provider
    client = TestClient(app)
    client.cookies.set(settings.AUTH_COOKIE_NAME, create_token(user.id))
    return client, str(user.id)


def test_goal_recommendations_route(storage):
    reply = json.dumps({"title": "Piano", "description": "d", "calories": 2000, "proteins": 100, "carbs": 250, "fats": 60})
    client, uid = _client_for(storage, ScriptedProvider(reply))
    resp = client.get("/api/recommendations/nutrition-goals", params={"userId": uid})
    assert resp.status_code == 200
    body = resp.json()
    assert body["source"] == "ai"
    assert len(body["recommendations"]) == 3
    assert body["recommendations"][0]["calories"] == 2000
    assert body["timestamp"].endswith("Z")


def test_goal_recommendations_timeout_returns_fallback(storage, monkeypatch):
    monkeypatch.setattr(settings, "AI_RECOMMENDATION_TIMEOUT_SECONDS", 0.05)
    client, uid = _client_for(storage, HangingProvider())
    body = client.get("/api/recommendations/nutrition-goals", params={"userId": uid}).json()
    assert body["source"] == "fallback"
    assert [r["title"] for r in body["recommendations"]] == ["Balanced Mediterranean", "Enhanced Protein", "Natural Low-Carb"]


def test_goal_recommendations_provider_error_is_generic_500(storage):
    client, uid = _client_for(storage, ScriptedProvider(AIProviderError("openai", "HTTP 401: bad key", 401)))
    resp = client.get("/api/recommendations/nutrition-goals", params={"userId": uid})
    assert resp.status_code == 500
    assert resp.json()["error"] == GENERIC_AI_ERROR
    assert "401" not in resp.text


def test_recommendations_need_profile_and_owner(storage):
    client, uid = _client_for(storage, ScriptedProvider("{}"))
    assert client.get("/api/recommendations/nutrition-goals", params={"userId": "424242"}).status_code == 403
    other = storage.create_user({"username": "np", "email": "np@example.com", "password": hash_password("pw")})
    lonely = TestClient(app)
    lonely.cookies.set(settings.AUTH_COOKIE_NAME, create_token(other.id))
    resp = lonely.get("/api/recommendations/meals", params={"userId": other.id})
    assert resp.status_code == 404
    assert resp.json()["message"] == "User profile not found"


def test_meal_recommendations_route_and_timeout(storage, monkeypatch):
    reply = json.dumps({"suggestions": [{"name": "Bowl", "description": "d", "mealType": "lunch", "calories": 540.5}]})
    client, uid = _client_for(storage, ScriptedProvider(reply))
    body = client.get("/api/recommendations/meals", params={"userId": uid, "mealType": "lunch"}).json()
    assert body["suggestions"][0]["calories"] == 541

    monkeypatch.setattr(settings, "AI_RECOMMENDATION_TIMEOUT_SECONDS", 0.05)
    app.dependency_overrides[get_openai_provider] = lambda: HangingProvider()
    resp = client.get("/api/recommendations/meals", params={"userId": uid})
    assert resp.status_code == 504
    assert resp.json()["error"] == TIMEOUT_MESSAGE


def test_ai_chat_route(storage):
    provider = ScriptedProvider("  ")
    client, uid = _client_for(storage, provider)
    assert client.post("/api/ai-chat", json={"userId": uid}).status_code == 400
    resp = client.post("/api/ai-chat", json={"userId": uid, "query": "Quante proteine?", "chatType": "goals"})
    assert resp.status_code == 200
    assert resp.json()["answer"] == EMPTY_CHAT_ANSWER
    assert provider.calls[-1]["system"].startswith("You are a nutritionist specializing")

    provider.replies = [AIProviderError("openai", "network error")]
    failed = client.post("/api/ai-chat", json={"userId": uid, "query": "Ciao"})
    assert failed.status_code == 500
    assert failed.json()["answer"] == GENERIC_AI_ERROR


def test_perplexity_routes(storage):
    meals = json.dumps({"meals": [{"name": "Minestrone", "calories": 320, "ingredients": ["fagioli"]}]})
    client, uid = _client_for(storage, ScriptedProvider(meals))
    body = client.get("/api/perplexity/meal-suggestions", params={"userId": uid, "mealType": "dinner"}).json()
    assert body["meals"][0]["name"] == "Minestrone"

    app.dependency_overrides[get_perplexity_provider] = lambda: ScriptedProvider("Bevi più acqua.")
    advice = client.post("/api/perplexity/nutritional-advice", json={"userId": uid, "query": "Idratazione?"})
    assert advice.json() == {"advice": "Bevi più acqua."}

    app.dependency_overrides[get_perplexity_provider] = lambda: ScriptedProvider(AIProviderError("perplexity", "down"))
    failed = client.post("/api/perplexity/nutritional-advice", json={"userId": uid, "query": "?"})
    assert failed.status_code == 500
    assert failed.json()["message"] == GENERIC_AI_ERROR


def test_provider_payload_caps_completion_tokens():
    openai = OpenAIProvider(api_key="sk-test", model="gpt-4o")
    payload = openai._payload([{"role": "user", "content": "hi"}], "sys", 0.8, True, None)
    assert payload["max_tokens"] == OpenAIProvider.DEFAULT_MAX_TOKENS
    assert payload["messages"][0] == {"role": "system", "content": "sys"}
    assert payload["response_format"] == {"type": "json_object"}

    perplexity = PerplexityProvider(api_key="pplx-test")
    assert perplexity._payload([], "", 0.5, False, None)["max_tokens"] == 1000
    assert perplexity._payload([], "", 0.5, False, 300)["max_tokens"] == 300
