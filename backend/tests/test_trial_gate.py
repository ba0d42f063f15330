from __future__ import annotations

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from fastapi import BackgroundTasks
from fastapi.testclient import TestClient


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auth.utils import SessionUser, create_token, hash_password  # noqa: E402
from config import settings  # noqa: E402
from mailer.providers import LogEmailProvider  # noqa: E402
from mailer.service import EmailService, get_email_service  # noqa: E402
from main import app  # noqa: E402
from services.trial_service import (  # noqa: E402
    FREE_FEATURES,
    PREMIUM_FEATURES,
    SubscriptionGate,
    build_trial_status,
    can_access,
    compute_trial_state,
    resolve_plan,
)
from storage import MemStorage, get_storage  # noqa: E402
from utils.datetime_utils import utcnow  # noqa: E402

NOW = datetime(2024, 6, 10, 12, 0)


def _user(storage: MemStorage, registered_at: datetime, *, with_profile: bool = True) -> SessionUser:
    record = storage.create_user({"username": "tina", "email": "tina@example.com", "password": hash_password("pw")})
    if with_profile:
        storage.create_user_profile({"user_id": record.id})
    storage.create_registration_log(
        {
            "ip_address": "1.2.3.4",
            "user_agent": "pytest",
            "email": record.email,
            "username": record.username,
            "registered_at": registered_at,
            "trial_end_date": registered_at + timedelta(days=settings.TRIAL_PERIOD_DAYS),
        }
    )
    return SessionUser(id=record.id, username=record.username, email=record.email)


def test_trial_state_rounds_days_up():
    state = compute_trial_state(NOW + timedelta(days=1, hours=1), NOW)
    assert state.days_left == 2
    assert state.active is True
    expired = compute_trial_state(NOW - timedelta(minutes=1), NOW)
    assert (expired.days_left, expired.active) == (0, False)


def test_gate_follows_plan_changes_without_rebuild():
    gate = SubscriptionGate()
    assert gate.can_access("ai-nutrition-chatbot") is False
    assert gate.can_access("basic-meal-tracking") is True
    gate.set_plan("premium-monthly")
    assert gate.is_premium is True
    assert gate.can_access("ai-nutrition-chatbot") is True
    assert gate.can_access("white-label") is False
    gate.set_plan("unlimited")
    assert gate.can_access("white-label") is True
    assert can_access("unknown-plan", "basic-meal-tracking") is True


def test_plan_resolution():
    trial = compute_trial_state(NOW + timedelta(days=3), NOW)
    assert resolve_plan(None, trial, NOW) == "trial"
    assert resolve_plan(None, compute_trial_state(NOW, NOW), NOW) == "free"
    sub = {"active": True, "plan": "premium-yearly", "endDate": "2025-06-10T00:00:00.000Z"}
    assert resolve_plan(sub, None, NOW) == "premium-yearly"
    lapsed = {**sub, "endDate": "2024-01-01T00:00:00Z"}
    assert resolve_plan(lapsed, None, NOW) == "free"


def test_active_trial_payload():
    storage = MemStorage()
    user = _user(storage, NOW - timedelta(days=1))
    payload = build_trial_status(storage, user, now=NOW, feature="ai-goal-recommendations")
    assert payload["trialActive"] is True
    assert payload["trialDaysLeft"] == 4
    assert payload["message"] is None
    assert payload["subscriptionPlan"] == "trial"
    assert payload["features"] == list(PREMIUM_FEATURES)
    assert payload["canAccess"] is True
    assert storage.get_user_notifications_by_user_id(user.user_id) == []


def test_expiring_trial_creates_one_notice_and_queues_email():
    storage = MemStorage()
    user = _user(storage, NOW - timedelta(days=4))
    service = EmailService(LogEmailProvider("NutriEasy", "noreply@test.local"))
    tasks = BackgroundTasks()

    payload = build_trial_status(storage, user, email_service=service, background_tasks=tasks, now=NOW)
    assert payload["trialDaysLeft"] == 1
    assert "expire in 1 day." in payload["message"]
    build_trial_status(storage, user, email_service=service, background_tasks=tasks, now=NOW)

    notes = storage.get_user_notifications_by_user_id(user.user_id)
    assert [n.type for n in notes] == ["trial_expiring"]
    assert len(tasks.tasks) == 1
    assert tasks.tasks[0].args[2] == 1


def test_read_expiring_notice_is_not_recreated():
    storage = MemStorage()
    user = _user(storage, NOW - timedelta(days=4))
    service = EmailService(LogEmailProvider("NutriEasy", "noreply@test.local"))
    tasks = BackgroundTasks()

    build_trial_status(storage, user, email_service=service, background_tasks=tasks, now=NOW)
    notice = storage.get_user_notifications_by_user_id(user.user_id)[0]
    storage.mark_user_notification_as_read(notice.id)
    build_trial_status(storage, user, email_service=service, background_tasks=tasks, now=NOW + timedelta(hours=12))

    notes = storage.get_user_notifications_by_user_id(user.user_id)
    assert len(notes) == 1
    assert notes[0].is_read is True
    assert len(tasks.tasks) == 1


def test_expired_trial_opens_grace_period_once():
    storage = MemStorage()
    user = _user(storage, NOW - timedelta(days=10))
    payload = build_trial_status(storage, user, now=NOW, feature="ai-nutrition-chatbot")
    assert payload["trialActive"] is False
    assert payload["hasGracePeriod"] is True
    assert payload["gracePeriodDaysLeft"] == settings.GRACE_PERIOD_DAYS
    assert payload["subscriptionPlan"] == "free"
    assert payload["features"] == list(FREE_FEATURES)
    assert payload["canAccess"] is False

    build_trial_status(storage, user, now=NOW + timedelta(days=1))
    notes = storage.get_user_notifications_by_user_id(user.user_id)
    assert [n.type for n in notes] == ["trial_expired"]


def test_session_subscription_wins_over_expired_trial():
    storage = MemStorage()
    user = _user(storage, NOW - timedelta(days=30))
    user.subscription = {"active": True, "plan": "premium-monthly", "startDate": "2024-06-01T00:00:00Z", "endDate": "2025-06-01T00:00:00Z"}
    payload = build_trial_status(storage, user, now=NOW, feature="meal-plan-export")
    assert payload["isPremium"] is True
    assert payload["trialDaysLeft"] == 999
    assert payload["canAccess"] is True
    assert storage.get_user_grace_period_by_user_id(user.user_id) is None


def test_missing_profile_and_admin():
    storage = MemStorage()
    user = _user(storage, NOW, with_profile=False)
    assert build_trial_status(storage, user, now=NOW) is None

    admin = SessionUser(id=settings.ADMIN_USER_ID, username="admin", email="a@b.c", role="admin")
    payload = build_trial_status(storage, admin, now=NOW, feature="white-label")
    assert payload["subscriptionPlan"] == "admin"
    assert payload["daysRemaining"] == 9999
    assert payload["canAccess"] is True


def test_force_expired_switch(monkeypatch):
    monkeypatch.setattr(settings, "TRIAL_FORCE_EXPIRED", True)
    storage = MemStorage()
    user = _user(storage, NOW - timedelta(days=1))
    payload = build_trial_status(storage, user, now=NOW)
    assert payload["trialActive"] is False
    assert payload["trialDaysLeft"] == 0
    assert payload["isPremium"] is False


@pytest.fixture()
def client_storage():
    mem = MemStorage()
    service = EmailService(LogEmailProvider("NutriEasy", "noreply@test.local"))
    app.dependency_overrides[get_storage] = lambda: mem
    app.dependency_overrides[get_email_service] = lambda: service
    yield mem
    app.dependency_overrides.clear()


def test_trial_status_route(client_storage):
    user = _user(client_storage, utcnow())
    client = TestClient(app)
    client.cookies.set(settings.AUTH_COOKIE_NAME, create_token(user.id))
    resp = client.get("/api/trial-status", params={"feature": "bmi-calculator"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["trialActive"] is True
    assert body["canAccess"] is True
    assert body["trialEndDate"].endswith("Z")


def test_trial_status_route_without_profile(client_storage):
    record = client_storage.create_user({"username": "np", "email": "np@example.com", "password": "h.s"})
    client = TestClient(app)
    client.cookies.set(settings.AUTH_COOKIE_NAME, create_token(record.id))
    assert client.get("/api/trial-status").status_code == 404


def test_trial_status_access_follows_the_resolved_plan():
    storage = MemStorage()
    user = _user(storage, NOW - timedelta(days=10))
    assert build_trial_status(storage, user, now=NOW, feature="basic-meal-tracking")["canAccess"] is True
    assert build_trial_status(storage, user, now=NOW, feature="bmi-calculator")["canAccess"] is False

    user.subscription = {"active": True, "plan": "premium-monthly", "endDate": "2025-06-01T00:00:00Z"}
    assert build_trial_status(storage, user, now=NOW, feature="bmi-calculator")["canAccess"] is True
    assert build_trial_status(storage, user, now=NOW, feature="white-label")["canAccess"] is False

    admin = SessionUser(id=settings.ADMIN_USER_ID, username="admin", email="a@b.c", role="admin")
    assert build_trial_status(storage, admin, now=NOW, feature="not-a-feature")["canAccess"] is True
    assert SubscriptionGate("admin").can_access("not-a-feature") is True
