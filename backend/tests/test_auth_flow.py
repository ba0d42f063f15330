from __future__ import annotations

import sys
import uuid
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auth.utils import hash_password, verify_password  # noqa: E402
from config import Settings, settings  # noqa: E402
from db.schemas import User  # noqa: E402
from mailer.providers import LogEmailProvider  # noqa: E402
from mailer.service import EmailService, get_email_service  # noqa: E402
from main import app  # noqa: E402
from services.rate_limit_service import RateLimitRule, SlidingWindowLimiter, reset_rate_limits  # noqa: E402
from services.registration_service import is_registration_blocked, record_registration  # noqa: E402
from storage import MemStorage, get_storage  # noqa: E402


@pytest.fixture()
def storage():
    mem = MemStorage()
    email_service = EmailService(LogEmailProvider("NutriEasy", "noreply@test.local"), retry_base_seconds=0)
    app.dependency_overrides[get_storage] = lambda: mem
    app.dependency_overrides[get_email_service] = lambda: email_service
    reset_rate_limits()
    yield mem
    app.dependency_overrides.clear()
    reset_rate_limits()


def _register(client: TestClient, **overrides):
    suffix = uuid.uuid4().hex[:8]
    body = {"username": f"user_{suffix}", "email": f"{suffix}@example.com", "password": "Secret!123"}
    body.update(overrides)
    return client.post("/api/register", json=body)


def test_password_hash_round_trip_and_malformed_values():
    stored = hash_password("correct horse")
    digest, _, salt = stored.partition(".")
    assert len(digest) == 128
    assert len(salt) == 32
    assert verify_password("correct horse", stored) is True
    assert verify_password("wrong", stored) is False
    assert verify_password("correct horse", "no-separator") is False
    assert verify_password("correct horse", "zz.salt") is False
    assert verify_password("correct horse", "") is False


def test_register_sets_cookie_creates_profile_and_logs_trial(storage):
    client = TestClient(app)
    resp = _register(client, username="mario", email="mario@example.com")
    assert resp.status_code == 201
    body = resp.json()
    assert body["username"] == "mario"
    assert body["isAdmin"] is False
    assert "password" not in body
    assert settings.AUTH_COOKIE_NAME in resp.cookies

    assert storage.get_user_profile(str(body["id"])) is not None
    logs = storage.get_registration_logs_by_email("mario@example.com")
    assert len(logs) == 1
    assert (logs[0].trial_end_date - logs[0].registered_at).days == settings.TRIAL_PERIOD_DAYS

    me = client.get("/api/user")
    assert me.status_code == 200
    assert me.json()["id"] == body["id"]


def test_register_requires_all_fields_and_rejects_duplicates(storage):
    client = TestClient(app)
    missing = client.post("/api/register", json={"username": "solo"})
    assert missing.status_code == 400

    assert _register(client, username="taken").status_code == 201
    dup = _register(TestClient(app), username="taken")
    assert dup.status_code == 400
    assert "username is already taken" in dup.json()["message"]


def test_third_registration_from_same_ip_is_blocked(storage):
    assert _register(TestClient(app)).status_code == 201
    assert _register(TestClient(app)).status_code == 201
    third = _register(TestClient(app))
    assert third.status_code == 400
    assert third.json()["message"].startswith("Too many registration attempts")


def test_login_failure_message_and_success(storage):
    client = TestClient(app)
    assert _register(client, username="luigi", password="Pa55word!").status_code == 201
    client.post("/api/logout")

    bad = TestClient(app).post("/api/login", json={"username": "luigi", "password": "nope"})
    assert bad.status_code == 401
    assert bad.json()["message"] == (
        "User not found. Check your username or password or register a new account."
    )

    fresh = TestClient(app)
    ok = fresh.post("/api/login", json={"username": "luigi", "password": "Pa55word!"})
    assert ok.status_code == 200
    assert ok.json()["username"] == "luigi"
    assert fresh.get("/api/user").status_code == 200


def test_login_is_rate_limited(storage, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_AUTH_LOGIN_ATTEMPTS", 2)
    client = TestClient(app)
    for _ in range(2):
        assert client.post("/api/login", json={"username": "ghost", "password": "x"}).status_code == 401
    limited = client.post("/api/login", json={"username": "ghost", "password": "x"})
    assert limited.status_code == 429
    assert int(limited.headers["Retry-After"]) >= 1


def test_logout_clears_session(storage):
    client = TestClient(app)
    assert _register(client).status_code == 201
    assert client.post("/api/logout").status_code == 200
    assert client.get("/api/user").status_code == 401


def test_admin_access_code(storage, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_ACCESS_CODE", "let-me-in-please")
    client = TestClient(app)
    assert client.post("/api/admin-access", json={"code": "wrong"}).status_code == 401

    ok = client.post("/api/admin-access", json={"code": "let-me-in-please"})
    assert ok.status_code == 200
    assert ok.json()["isAdmin"] is True
    assert ok.json()["id"] == settings.ADMIN_USER_ID

    assert client.get("/api/meals", params={"userId": settings.ADMIN_USER_ID}).json() == []
    profile = client.get("/api/user-profile").json()
    assert profile["name"] == "Administrator"


def test_admin_access_disabled_without_code(storage, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_ACCESS_CODE", "")
    assert TestClient(app).post("/api/admin-access", json={"code": ""}).status_code == 401


def test_unauthenticated_requests_are_rejected(storage):
    client = TestClient(app)
    assert client.get("/api/user").status_code == 401
    assert client.get("/api/meals", params={"userId": "1"}).status_code == 401
    assert client.get("/api/health").status_code == 200


def test_production_security_gate_rejects_default_secret_values():
    prod = Settings(ENVIRONMENT="production", AUTH_COOKIE_SECURE=False)
    with pytest.raises(RuntimeError):
        prod.validate_security_configuration()


def test_sliding_window_releases_old_hits():
    now = [1000.0]
    limiter = SlidingWindowLimiter(clock=lambda: now[0])
    rule = RateLimitRule(endpoint="/api/login", limit=2, window_seconds=60)
    assert limiter.hit("k", rule).remaining == 1
    assert limiter.hit("k", rule).allowed is True
    blocked = limiter.hit("k", rule)
    assert blocked.allowed is False
    assert blocked.retry_after == 60
    assert limiter.hit("other", rule).allowed is True
    now[0] += 61
    assert limiter.hit("k", rule).allowed is True


def test_third_registration_with_same_email_is_blocked_within_window():
    mem = MemStorage()
    start = datetime(2024, 3, 1, 9, 0)

    for attempt, ip in enumerate(["10.0.0.1", "10.0.0.2"]):
        now = start + timedelta(days=attempt * 5)
        assert is_registration_blocked(mem, email="Maria@Example.com", ip_address=ip, now=now) is False
        user = User(id=attempt + 1, username=f"maria{attempt}", password="h.s", email="maria@example.com")
        record_registration(mem, user, ip_address=ip, user_agent="pytest", now=now)

    third = start + timedelta(days=10)
    assert is_registration_blocked(mem, email="maria@example.com", ip_address="10.0.0.3", now=third) is True
    later = third + timedelta(days=31)
    assert is_registration_blocked(mem, email="maria@example.com", ip_address="10.0.0.4", now=later) is False
