from __future__ import annotations

import itertools
import threading
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Mapping

from db.schemas import (
    Meal,
    MealCreate,
    MealPlan,
    MealPlanCreate,
    NutritionGoal,
    NutritionGoalCreate,
    NutritionGoalUpdate,
    ProgressEntry,
    ProgressEntryCreate,
    ProgressEntryUpdate,
    RegistrationLog,
    RegistrationLogCreate,
    User,
    UserCreate,
    UserGracePeriod,
    UserGracePeriodCreate,
    UserNotification,
    UserNotificationCreate,
    UserProfile,
    UserProfileCreate,
    UserProfileUpdate,
)
from storage.base import (
    GOAL_REQUIRED_FIELDS,
    PROGRESS_REQUIRED_FIELDS,
    Storage,
    validate_insert,
    validate_updates,
)
from utils.datetime_utils import today_utc, utcnow


class MemStorage(Storage):
    """Dict-backed storage for tests and throwaway instances.

    Every entity lives in its own ``{id: model}`` dict with a monotonically
    increasing id counter. Read models are immutable snapshots, so updates
    replace the stored object rather than mutating it.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._rows: dict[str, dict[int, Any]] = defaultdict(dict)
        self._ids: dict[str, itertools.count] = defaultdict(lambda: itertools.count(1))

    def _insert(self, table: str, model_cls, values: dict[str, Any]):
        with self._lock:
            row_id = next(self._ids[table])
            row = model_cls.model_validate({**values, "id": row_id})
            self._rows[table][row_id] = row
            return row

    def _all(self, table: str) -> list:
        with self._lock:
            return list(self._rows[table].values())

    # ─── users ───

    def get_user(self, user_id: int) -> User | None:
        return self._rows["users"].get(user_id)

    def get_user_by_username(self, username: str) -> User | None:
        return next((u for u in self._all("users") if u.username == username), None)

    def get_user_by_email(self, email: str) -> User | None:
        wanted = (email or "").strip().lower()
        return next((u for u in self._all("users") if u.email.lower() == wanted), None)

    def create_user(self, data: UserCreate | Mapping[str, Any]) -> User:
        parsed = validate_insert(UserCreate, data)
        return self._insert("users", User, {**parsed.model_dump(), "created_at": utcnow()})

    # ─── profiles ───

    def get_user_profile(self, user_id: str) -> UserProfile | None:
        return next((p for p in self._all("profiles") if p.user_id == str(user_id)), None)

    def create_user_profile(self, data: UserProfileCreate | Mapping[str, Any]) -> UserProfile:
        parsed = validate_insert(UserProfileCreate, data)
        now = utcnow()
        return self._insert("profiles", UserProfile, {**parsed.model_dump(), "created_at": now, "updated_at": now})

    def update_user_profile(
        self, user_id: str, updates: UserProfileUpdate | Mapping[str, Any]
    ) -> UserProfile | None:
        changes = validate_updates(UserProfileUpdate, updates)
        with self._lock:
            current = self.get_user_profile(user_id)
            if current is None:
                return None
            updated = current.model_copy(update={**changes, "updated_at": utcnow()})
            self._rows["profiles"][current.id] = updated
            return updated

    # ─── meals ───

    def get_meal(self, meal_id: int) -> Meal | None:
        return self._rows["meals"].get(meal_id)

    def get_meals_by_user_id(self, user_id: str) -> list[Meal]:
        meals = [m for m in self._all("meals") if m.user_id == str(user_id)]
        return sorted(meals, key=lambda m: (m.timestamp, m.id), reverse=True)

    def get_meals_by_user_id_and_date_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Meal]:
        return [m for m in self.get_meals_by_user_id(user_id) if start <= m.timestamp <= end]

    def create_meal(self, data: MealCreate | Mapping[str, Any]) -> Meal:
        parsed = validate_insert(MealCreate, data)
        return self._insert("meals", Meal, parsed.model_dump())

    def delete_meal(self, meal_id: int) -> bool:
        with self._lock:
            return self._rows["meals"].pop(meal_id, None) is not None

    # ─── meal plans ───

    def get_meal_plans_by_user_id(self, user_id: str) -> list[MealPlan]:
        plans = [p for p in self._all("meal_plans") if p.user_id == str(user_id)]
        return sorted(plans, key=lambda p: (p.timestamp, p.id), reverse=True)

    def create_meal_plan(self, data: MealPlanCreate | Mapping[str, Any]) -> MealPlan:
        parsed = validate_insert(MealPlanCreate, data)
        return self._insert("meal_plans", MealPlan, parsed.model_dump())

    # ─── nutrition goals ───

    def _deactivate_goals(self, user_id: str, keep_id: int | None = None) -> None:
        table = self._rows["goals"]
        for goal_id, goal in list(table.items()):
            if goal.user_id == user_id and goal.is_active and goal_id != keep_id:
                table[goal_id] = goal.model_copy(update={"is_active": False})

    def get_nutrition_goal(self, goal_id: int) -> NutritionGoal | None:
        return self._rows["goals"].get(goal_id)

    def get_nutrition_goals_by_user_id(self, user_id: str) -> list[NutritionGoal]:
        goals = [g for g in self._all("goals") if g.user_id == str(user_id)]
        return sorted(goals, key=lambda g: (g.created_at, g.id), reverse=True)

    def get_active_nutrition_goal(self, user_id: str, today: date | None = None) -> NutritionGoal | None:
        day = today or today_utc()
        return next(
            (g for g in self.get_nutrition_goals_by_user_id(user_id) if g.is_active and g.covers(day)),
            None,
        )

    def create_nutrition_goal(self, data: NutritionGoalCreate | Mapping[str, Any]) -> NutritionGoal:
        parsed = validate_insert(NutritionGoalCreate, data)
        with self._lock:
            if parsed.is_active:
                self._deactivate_goals(parsed.user_id)
            return self._insert("goals", NutritionGoal, {**parsed.model_dump(), "created_at": utcnow()})

    def update_nutrition_goal(
        self, goal_id: int, updates: NutritionGoalUpdate | Mapping[str, Any]
    ) -> NutritionGoal | None:
        changes = validate_updates(NutritionGoalUpdate, updates, GOAL_REQUIRED_FIELDS)
        with self._lock:
            current = self._rows["goals"].get(goal_id)
            if current is None:
                return None
            if changes.get("is_active"):
                self._deactivate_goals(current.user_id, keep_id=goal_id)
            updated = current.model_copy(update=changes)
            self._rows["goals"][goal_id] = updated
            return updated

    def delete_nutrition_goal(self, goal_id: int) -> bool:
        with self._lock:
            return self._rows["goals"].pop(goal_id, None) is not None

    # ─── progress ───

    def get_progress_entry(self, entry_id: int) -> ProgressEntry | None:
        return self._rows["progress"].get(entry_id)

    def get_progress_entries_by_user_id(self, user_id: str) -> list[ProgressEntry]:
        entries = [e for e in self._all("progress") if e.user_id == str(user_id)]
        return sorted(entries, key=lambda e: (e.date, e.id), reverse=True)

    def get_progress_entries_by_date_range(
        self, user_id: str, start: date, end: date
    ) -> list[ProgressEntry]:
        entries = [
            e for e in self._all("progress")
            if e.user_id == str(user_id) and start <= e.date <= end
        ]
        return sorted(entries, key=lambda e: (e.date, e.id))

    def create_progress_entry(self, data: ProgressEntryCreate | Mapping[str, Any]) -> ProgressEntry:
        parsed = validate_insert(ProgressEntryCreate, data)
        return self._insert("progress", ProgressEntry, {**parsed.model_dump(), "created_at": utcnow()})

    def update_progress_entry(
        self, entry_id: int, updates: ProgressEntryUpdate | Mapping[str, Any]
    ) -> ProgressEntry | None:
        changes = validate_updates(ProgressEntryUpdate, updates, PROGRESS_REQUIRED_FIELDS)
        with self._lock:
            current = self._rows["progress"].get(entry_id)
            if current is None:
                return None
            updated = current.model_copy(update=changes)
            self._rows["progress"][entry_id] = updated
            return updated

    def delete_progress_entry(self, entry_id: int) -> bool:
        with self._lock:
            return self._rows["progress"].pop(entry_id, None) is not None

    # ─── registration logs ───

    def create_registration_log(self, data: RegistrationLogCreate | Mapping[str, Any]) -> RegistrationLog:
        parsed = validate_insert(RegistrationLogCreate, data)
        return self._insert("registration_logs", RegistrationLog, parsed.model_dump())

    def _logs_where(self, predicate, since: datetime | None) -> list[RegistrationLog]:
        logs = [
            log for log in self._all("registration_logs")
            if predicate(log) and (since is None or log.registered_at >= since)
        ]
        return sorted(logs, key=lambda log: (log.registered_at, log.id), reverse=True)

    def get_registration_logs_by_email(self, email: str, since: datetime | None = None) -> list[RegistrationLog]:
        wanted = (email or "").strip().lower()
        return self._logs_where(lambda log: log.email.lower() == wanted, since)

    def get_registration_logs_by_ip_address(
        self, ip_address: str, since: datetime | None = None
    ) -> list[RegistrationLog]:
        return self._logs_where(lambda log: log.ip_address == ip_address, since)

    # ─── notifications ───

    def get_user_notifications_by_user_id(self, user_id: str) -> list[UserNotification]:
        notes = [n for n in self._all("notifications") if n.user_id == str(user_id)]
        return sorted(notes, key=lambda n: (n.created_at, n.id), reverse=True)

    def create_user_notification(
        self, data: UserNotificationCreate | Mapping[str, Any]
    ) -> UserNotification:
        parsed = validate_insert(UserNotificationCreate, data)
        return self._insert(
            "notifications",
            UserNotification,
            {**parsed.model_dump(), "is_read": False, "created_at": utcnow()},
        )

    def mark_user_notification_as_read(self, notification_id: int) -> UserNotification | None:
        with self._lock:
            current = self._rows["notifications"].get(notification_id)
            if current is None:
                return None
            updated = current.model_copy(update={"is_read": True})
            self._rows["notifications"][notification_id] = updated
            return updated

    # ─── grace periods ───

    def get_user_grace_period_by_user_id(self, user_id: str) -> UserGracePeriod | None:
        periods = [
            p for p in self._all("grace_periods")
            if p.user_id == str(user_id) and p.active
        ]
        periods.sort(key=lambda p: (p.created_at, p.id), reverse=True)
        return periods[0] if periods else None

    def create_user_grace_period(
        self, data: UserGracePeriodCreate | Mapping[str, Any]
    ) -> UserGracePeriod:
        parsed = validate_insert(UserGracePeriodCreate, data)
        return self._insert("grace_periods", UserGracePeriod, {**parsed.model_dump(), "created_at": utcnow()})
