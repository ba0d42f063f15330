"""Trial window, plan resolution and feature gating."""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from fastapi import BackgroundTasks

from auth.utils import SessionUser
from config import settings
from db.schemas import User
from mailer.service import EmailService
from storage import Storage
from utils.datetime_utils import add_days, days_left_until, isoformat_z, parse_datetime, utcnow

logger = logging.getLogger(__name__)

FREE_FEATURES = ("basic-meal-tracking",)
PREMIUM_FEATURES = (
    "basic-meal-tracking",
    "bmi-calculator",
    "metabolism-calculator",
    "unlimited-meal-history",
    "advanced-meal-suggestions",
    "ai-nutrition-chatbot",
    "goal-tracking",
    "meal-plan-export",
    "premium-support",
    "ai-meal-recommendations",
    "ai-goal-recommendations",
    "api-access",
)

PLAN_FEATURES: dict[str, tuple[str, ...]] = {
    "free": FREE_FEATURES,
    "premium-monthly": PREMIUM_FEATURES,
    "premium-yearly": PREMIUM_FEATURES,
    "unlimited": PREMIUM_FEATURES + ("white-label",),
}
# An active trial unlocks the premium set; admin sees everything.
PLAN_FEATURES["trial"] = PREMIUM_FEATURES
PLAN_FEATURES["admin"] = PLAN_FEATURES["unlimited"]

PAID_PLANS = ("premium-monthly", "premium-yearly")


@dataclass(frozen=True)
class TrialState:
    trial_end: datetime
    days_left: int
    active: bool


def compute_trial_state(trial_end: datetime, now: datetime | None = None) -> TrialState:
    days_left = days_left_until(trial_end, now)
    return TrialState(trial_end=trial_end, days_left=days_left, active=days_left > 0)


def plan_features(plan: str) -> tuple[str, ...]:
    return PLAN_FEATURES.get(plan, FREE_FEATURES)


def can_access(plan: str, feature: str) -> bool:
    return feature in plan_features(plan)


class SubscriptionGate:
    """Feature gate over a mutable plan; every check reads the plan as it is now."""

    def __init__(self, plan: str = "free"):
        self.plan = plan

    def set_plan(self, plan: str) -> None:
        logger.info("Subscription plan changed %s -> %s", self.plan, plan)
        self.plan = plan

    @property
    def is_premium(self) -> bool:
        return self.plan != "free"

    @property
    def features(self) -> tuple[str, ...]:
        return plan_features(self.plan)

    def can_access(self, feature: str) -> bool:
        if self.plan == "admin":
            return True
        return can_access(self.plan, feature)


def is_subscription_active(subscription: dict[str, Any] | None, now: datetime | None = None) -> bool:
    if not subscription or subscription.get("active") is not True:
        return False
    end = subscription.get("endDate")
    if not end:
        return True
    try:
        return parse_datetime(end) > (now or utcnow())
    except ValueError:
        return False


def resolve_plan(
    subscription: dict[str, Any] | None,
    trial: TrialState | None,
    now: datetime | None = None,
) -> str:
    if is_subscription_active(subscription, now):
        return subscription.get("plan") or "premium-monthly"
    if trial is not None and trial.active:
        return "trial"
    return "free"


def trial_window(storage: Storage, user: User | None, now: datetime | None = None) -> tuple[datetime, datetime]:
    """(start, end) of the user's trial from the newest registration log, else account age."""
    now = now or utcnow()
    if user is not None:
        logs = storage.get_registration_logs_by_email(user.email)
        if logs:
            return logs[0].registered_at, logs[0].trial_end_date
        if user.created_at is not None:
            return user.created_at, add_days(user.created_at, settings.TRIAL_PERIOD_DAYS)
    return now, add_days(now, settings.TRIAL_PERIOD_DAYS)


def _plural(days: int) -> str:
    return "" if days == 1 else "s"


def _admin_payload(now: datetime) -> dict[str, Any]:
    return {
        "trialActive": True,
        "trialEnded": False,
        "daysRemaining": 9999,
        "trialDaysLeft": 9999,
        "subscription": {
            "active": True,
            "plan": "admin",
            "startDate": isoformat_z(now),
            "endDate": isoformat_z(datetime(2099, 12, 31)),
        },
        "gracePeriod": None,
        "isPremium": True,
        "subscriptionPlan": "admin",
        "features": list(plan_features("admin")),
    }


def _premium_payload(subscription: dict[str, Any], now: datetime) -> dict[str, Any]:
    plan = subscription.get("plan") or "premium-monthly"
    end = subscription.get("endDate") or isoformat_z(now + timedelta(days=365))
    return {
        "trialActive": True,
        "trialDaysLeft": 999,
        "trialEndDate": end,
        "trialStartDate": subscription.get("startDate") or isoformat_z(now),
        "message": None,
        "isPremium": True,
        "hasGracePeriod": False,
        "gracePeriodDaysLeft": 0,
        "gracePeriodEndDate": None,
        "subscriptionPlan": plan,
        "features": list(plan_features(plan)),
    }


def _with_access(payload: dict[str, Any], gate: SubscriptionGate, feature: str | None) -> dict[str, Any]:
    if feature:
        payload["canAccess"] = gate.can_access(feature)
    return payload


def build_trial_status(
    storage: Storage,
    user: SessionUser,
    *,
    email_service: EmailService | None = None,
    background_tasks: BackgroundTasks | None = None,
    feature: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any] | None:
    """Trial-status payload for ``user``; ``None`` when the user has no profile.

    Creates the expiring notice, or the grace period plus expired notice, as
    side effects, and queues the matching email on ``background_tasks``.
    """
    now = now or utcnow()
    if user.is_admin:
        return _with_access(_admin_payload(now), SubscriptionGate("admin"), feature)

    user_id = user.user_id
    if storage.get_user_profile(user_id) is None:
        return None

    if is_subscription_active(user.subscription, now):
        payload = _premium_payload(user.subscription, now)
        return _with_access(payload, SubscriptionGate(payload["subscriptionPlan"]), feature)

    record = storage.get_user(user.id)
    trial_start, trial_end = trial_window(storage, record, now)
    trial = compute_trial_state(trial_end, now)
    grace = storage.get_user_grace_period_by_user_id(user_id)

    def _queue(sender_name: str, *args) -> None:
        if email_service is None or background_tasks is None or record is None:
            return
        background_tasks.add_task(getattr(email_service, sender_name), record.email, record.username, *args)

    if trial.active and trial.days_left <= settings.TRIAL_EXPIRING_NOTICE_DAYS:
        # One notice per trial end, read or not.
        already_notified = any(
            n.type == "trial_expiring" and n.expires_at == trial.trial_end
            for n in storage.get_user_notifications_by_user_id(user_id)
        )
        if not already_notified:
            storage.create_user_notification(
                {
                    "user_id": user_id,
                    "title": "Trial Period Expiring Soon",
                    "message": (
                        f"Your free trial will expire in {trial.days_left} day{_plural(trial.days_left)}. "
                        "Upgrade to a premium plan to continue enjoying all features."
                    ),
                    "type": "trial_expiring",
                    "action_url": "/pricing",
                    "expires_at": trial.trial_end,
                }
            )
            logger.info("Trial expiring notice created for user %s (%d days left)", user_id, trial.days_left)
            _queue("send_trial_expiring_email", trial.days_left)

    if not trial.active and grace is None:
        grace_days = settings.GRACE_PERIOD_DAYS
        grace = storage.create_user_grace_period(
            {
                "user_id": user_id,
                "expires_at": add_days(now, grace_days),
                "active": True,
                "data_retention": True,
            }
        )
        storage.create_user_notification(
            {
                "user_id": user_id,
                "title": "Trial Period Expired",
                "message": (
                    f"Your free trial has expired. Your data will be retained for {grace_days} more days. "
                    "Upgrade to a premium plan to continue using all features."
                ),
                "type": "trial_expired",
                "action_url": "/pricing",
                "expires_at": grace.expires_at,
            }
        )
        logger.info("Trial expired for user %s; grace period until %s", user_id, grace.expires_at)
        _queue("send_subscription_ended_email")

    has_grace = grace is not None and grace.active
    grace_days_left = days_left_until(grace.expires_at, now) if has_grace else 0
    grace_end = isoformat_z(grace.expires_at) if has_grace else None

    if settings.TRIAL_FORCE_EXPIRED:
        payload = {
            "trialActive": False,
            "trialDaysLeft": 0,
            "trialEndDate": isoformat_z(now),
            "trialStartDate": isoformat_z(now - timedelta(days=settings.TRIAL_PERIOD_DAYS)),
            "message": (
                f"Your trial period has expired. Your data will be retained for {grace_days_left} more days. "
                "Upgrade to premium to keep access to all features."
                if has_grace
                else "Your trial period has expired. Upgrade to premium to continue using all features."
            ),
            "isPremium": False,
            "hasGracePeriod": has_grace,
            "gracePeriodDaysLeft": grace_days_left,
            "gracePeriodEndDate": grace_end,
            "subscriptionPlan": "trial",
            "features": list(FREE_FEATURES),
        }
        return _with_access(payload, SubscriptionGate("free"), feature)

    if trial.active:
        message = (
            f"Your trial will expire in {trial.days_left} day{_plural(trial.days_left)}. "
            "Upgrade to premium to continue using all features."
            if trial.days_left <= settings.TRIAL_EXPIRING_NOTICE_DAYS
            else None
        )
    else:
        message = "Your trial period has expired. Upgrade to premium to continue using all features."

    gate = SubscriptionGate(resolve_plan(user.subscription, trial, now))
    payload = {
        "trialActive": trial.active,
        "trialDaysLeft": trial.days_left,
        "trialEndDate": isoformat_z(trial.trial_end),
        "trialStartDate": isoformat_z(trial_start),
        "message": message,
        "isPremium": False,
        "hasGracePeriod": has_grace,
        "gracePeriodDaysLeft": grace_days_left,
        "gracePeriodEndDate": grace_end,
        "subscriptionPlan": gate.plan,
        "features": list(gate.features),
    }
    return _with_access(payload, gate, feature)
