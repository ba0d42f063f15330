from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auth.utils import create_token, hash_password  # noqa: E402
from config import settings  # noqa: E402
from main import app  # noqa: E402
from storage import MemStorage, get_storage  # noqa: E402


@pytest.fixture()
def storage():
    mem = MemStorage()
    app.dependency_overrides[get_storage] = lambda: mem
    yield mem
    app.dependency_overrides.clear()


def _client_for(storage: MemStorage, username: str = "anna") -> tuple[TestClient, str]:
    user = storage.create_user(
        {"username": username, "email": f"{username}@example.com", "password": hash_password("pw")}
    )
    storage.create_user_profile({"user_id": user.id, "name": username, "age": 30, "weight": 70, "height": 175})
    client = TestClient(app)
    client.cookies.set(settings.AUTH_COOKIE_NAME, create_token(user.id))
    return client, str(user.id)


def test_meal_macros_round_half_up_and_user_id_is_string(storage):
    client, uid = _client_for(storage)
    resp = client.post(
        "/api/meals",
        json={
            "userId": int(uid),
            "food": "Pasta al pomodoro",
            "calories": 512.5,
            "proteins": "14.5",
            "carbs": 80.4,
            "fats": None,
            "mealType": "Lunch",
        },
    )
    assert resp.status_code == 201
    meal = resp.json()
    assert meal["userId"] == uid
    assert (meal["calories"], meal["proteins"], meal["carbs"], meal["fats"]) == (513, 15, 80, 0)
    assert meal["mealType"] == "lunch"
    assert meal["timestamp"]


def test_meal_with_unknown_type_is_rejected(storage):
    client, uid = _client_for(storage)
    resp = client.post("/api/meals", json={"userId": uid, "food": "Toast", "mealType": "brunch"})
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Invalid meal data"
    assert body["errors"]


def test_other_users_data_is_forbidden(storage):
    client, _ = _client_for(storage, "anna")
    _, other_uid = _client_for(storage, "bruno")
    assert client.get("/api/meals", params={"userId": other_uid}).status_code == 403
    assert client.post("/api/meals", json={"userId": other_uid, "food": "x", "mealType": "snack"}).status_code == 403
    assert client.get("/api/meals").status_code == 400


def test_delete_meal_status_codes(storage):
    client, uid = _client_for(storage)
    created = client.post("/api/meals", json={"userId": uid, "food": "Apple", "calories": 52, "mealType": "snack"})
    meal_id = created.json()["id"]

    assert client.delete("/api/meals/not-a-number").status_code == 400
    assert client.delete(f"/api/meals/{meal_id}").status_code == 200
    assert client.delete(f"/api/meals/{meal_id}").status_code == 404


def test_meals_listed_newest_first_and_filtered_by_range(storage):
    client, uid = _client_for(storage)
    for food, ts in [("Old", "2024-03-01T08:00:00Z"), ("New", "2024-03-03T08:00:00Z"), ("Mid", "2024-03-02T12:00:00Z")]:
        assert client.post("/api/meals", json={"userId": uid, "food": food, "mealType": "breakfast", "timestamp": ts}).status_code == 201

    foods = [m["food"] for m in client.get("/api/meals", params={"userId": uid}).json()]
    assert foods == ["New", "Mid", "Old"]

    ranged = client.get("/api/meals", params={"userId": uid, "startDate": "2024-03-02", "endDate": "2024-03-02"})
    assert [m["food"] for m in ranged.json()] == ["Mid"]


def test_daily_summary_against_active_goal(storage):
    client, uid = _client_for(storage)
    client.post("/api/nutrition-goals", json={"userId": uid, "name": "Cut", "calories": 2000, "proteins": 100, "carbs": 200, "fats": 60, "startDate": "2024-01-01"})
    client.post("/api/meals", json={"userId": uid, "food": "Eggs", "calories": 300, "proteins": 20, "mealType": "breakfast", "timestamp": "2024-05-10T07:30:00Z"})
    client.post("/api/meals", json={"userId": uid, "food": "Salad", "calories": 700, "proteins": 30, "mealType": "lunch", "timestamp": "2024-05-10T13:00:00Z"})
    client.post("/api/meals", json={"userId": uid, "food": "Other day", "calories": 999, "mealType": "dinner", "timestamp": "2024-05-11T20:00:00Z"})

    summary = client.get("/api/meals/summary", params={"userId": uid, "date": "2024-05-10"}).json()
    assert summary["mealCount"] == 2
    assert summary["totals"]["calories"] == 1000
    assert summary["progressPct"]["calories"] == 50.0
    assert summary["caloriesByMealType"] == {"breakfast": 300, "lunch": 700}


def test_only_one_goal_stays_active(storage):
    client, uid = _client_for(storage)
    first = client.post("/api/nutrition-goals", json={"userId": uid, "name": "A", "calories": 1800}).json()
    second = client.post("/api/nutrition-goals", json={"userId": uid, "name": "B", "calories": 2200}).json()
    assert first["isActive"] is True

    active = client.get("/api/nutrition-goals/active", params={"userId": uid}).json()
    assert active["id"] == second["id"]

    reactivated = client.patch(f"/api/nutrition-goals/{first['id']}", json={"isActive": True})
    assert reactivated.status_code == 200
    goals = client.get("/api/nutrition-goals", params={"userId": uid}).json()
    assert [g["id"] for g in goals if g["isActive"]] == [first["id"]]

    assert client.delete(f"/api/nutrition-goals/{first['id']}").status_code == 200
    assert client.get("/api/nutrition-goals/active", params={"userId": uid}).status_code == 404
    assert client.patch("/api/nutrition-goals/999", json={"name": "x"}).status_code == 404


def test_progress_entries_crud_and_ordering(storage):
    client, uid = _client_for(storage)
    for day, grams in [("2024-02-01", 80000), ("2024-02-15", 79000), ("2024-02-08", 79500)]:
        assert client.post("/api/progress", json={"userId": uid, "date": day, "weight": grams}).status_code == 201

    newest_first = [e["date"] for e in client.get("/api/progress", params={"userId": uid}).json()]
    assert newest_first == ["2024-02-15", "2024-02-08", "2024-02-01"]

    ranged = client.get("/api/progress", params={"userId": uid, "startDate": "2024-02-01", "endDate": "2024-02-10"}).json()
    assert [e["date"] for e in ranged] == ["2024-02-01", "2024-02-08"]

    entry_id = ranged[0]["id"]
    patched = client.patch(f"/api/progress/{entry_id}", json={"notes": "after holidays", "weight": None})
    assert patched.status_code == 200
    assert patched.json()["notes"] == "after holidays"
    assert patched.json()["weight"] == 80000
    assert client.delete(f"/api/progress/{entry_id}").status_code == 200
    assert client.delete(f"/api/progress/{entry_id}").status_code == 404
    assert client.post("/api/progress", json={"userId": uid, "weight": 0}).status_code == 400


def test_profile_create_conflict_update_and_metrics(storage):
    client, uid = _client_for(storage)
    assert client.post("/api/user-profile", json={"userId": uid, "name": "dup"}).status_code == 409

    updated = client.patch(f"/api/user-profile/{uid}", json={"gender": "male", "activityLevel": "moderate", "age": "30"})
    assert updated.status_code == 200
    assert updated.json()["age"] == 30

    metrics = client.get("/api/user-profile/metrics").json()
    assert metrics["bmi"] == 22.9
    assert metrics["bmiCategory"] == "Normal weight"
    assert metrics["bmr"] == 1696
    assert metrics["tdee"] == round(1696 * 1.55)


def test_meal_plans_round_trip(storage):
    client, uid = _client_for(storage)
    assert client.post("/api/mealplans", json={"userId": uid, "query": "veg week", "response": "..."}).status_code == 201
    assert client.post("/api/mealplans", json={"userId": uid, "query": ""}).status_code == 400
    plans = client.get("/api/mealplans", params={"userId": uid}).json()
    assert [p["query"] for p in plans] == ["veg week"]


def test_notifications_default_welcome_and_mark_read(storage):
    client, uid = _client_for(storage)
    welcome = client.get("/api/notifications").json()
    assert welcome[0]["type"] == "welcome"

    note = storage.create_user_notification({"user_id": uid, "title": "Hi", "message": "Hello", "type": "info"})
    assert client.post(f"/api/notifications/{note.id}/read").json() == {"success": True}
    assert client.get("/api/notifications").json()[0]["read"] is True
    assert client.post("/api/notifications/abc/read").status_code == 400
    assert client.post("/api/notifications/999/read").status_code == 404


def test_export_data_is_an_attachment(storage):
    client, uid = _client_for(storage)
    client.post("/api/meals", json={"userId": uid, "food": "Pizza", "calories": 800, "mealType": "dinner"})
    resp = client.get("/api/export-data")
    assert resp.status_code == 200
    assert "attachment" in resp.headers["content-disposition"]
    data = resp.json()
    assert data["user"]["username"] == "anna"
    assert data["profile"]["userId"] == uid
    assert [m["food"] for m in data["meals"]] == ["Pizza"]
