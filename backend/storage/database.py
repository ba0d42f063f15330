from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from db import models
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


def _read(schema, row):
    return schema.model_validate(row) if row is not None else None


class DatabaseStorage(Storage):
    """SQLAlchemy-backed storage bound to one request-scoped session."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _add(self, row, schema):
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return schema.model_validate(row)

    def _delete(self, model, row_id: int) -> bool:
        row = self.db.get(model, row_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.commit()
        return True

    # ─── users ───

    def get_user(self, user_id: int) -> User | None:
        return _read(User, self.db.get(models.User, user_id))

    def get_user_by_username(self, username: str) -> User | None:
        row = self.db.query(models.User).filter(models.User.username == username).first()
        return _read(User, row)

    def get_user_by_email(self, email: str) -> User | None:
        wanted = (email or "").strip().lower()
        row = self.db.query(models.User).filter(func.lower(models.User.email) == wanted).first()
        return _read(User, row)

    def create_user(self, data: UserCreate | Mapping[str, Any]) -> User:
        parsed = validate_insert(UserCreate, data)
        return self._add(models.User(**parsed.model_dump(), created_at=utcnow()), User)

    # ─── profiles ───

    def _profile_row(self, user_id: str):
        return (
            self.db.query(models.UserProfile)
            .filter(models.UserProfile.user_id == str(user_id))
            .first()
        )

    def get_user_profile(self, user_id: str) -> UserProfile | None:
        return _read(UserProfile, self._profile_row(user_id))

    def create_user_profile(self, data: UserProfileCreate | Mapping[str, Any]) -> UserProfile:
        parsed = validate_insert(UserProfileCreate, data)
        return self._add(models.UserProfile(**parsed.model_dump()), UserProfile)

    def update_user_profile(
        self, user_id: str, updates: UserProfileUpdate | Mapping[str, Any]
    ) -> UserProfile | None:
        changes = validate_updates(UserProfileUpdate, updates)
        row = self._profile_row(user_id)
        if row is None:
            return None
        for key, value in changes.items():
            setattr(row, key, value)
        row.updated_at = utcnow()
        self.db.commit()
        self.db.refresh(row)
        return UserProfile.model_validate(row)

    # ─── meals ───

    def get_meal(self, meal_id: int) -> Meal | None:
        return _read(Meal, self.db.get(models.Meal, meal_id))

    def get_meals_by_user_id(self, user_id: str) -> list[Meal]:
        rows = (
            self.db.query(models.Meal)
            .filter(models.Meal.user_id == str(user_id))
            .order_by(models.Meal.timestamp.desc(), models.Meal.id.desc())
            .all()
        )
        return [Meal.model_validate(r) for r in rows]

    def get_meals_by_user_id_and_date_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Meal]:
        rows = (
            self.db.query(models.Meal)
            .filter(
                models.Meal.user_id == str(user_id),
                models.Meal.timestamp >= start,
                models.Meal.timestamp <= end,
            )
            .order_by(models.Meal.timestamp.desc(), models.Meal.id.desc())
            .all()
        )
        return [Meal.model_validate(r) for r in rows]

    def create_meal(self, data: MealCreate | Mapping[str, Any]) -> Meal:
        parsed = validate_insert(MealCreate, data)
        return self._add(models.Meal(**parsed.model_dump()), Meal)

    def delete_meal(self, meal_id: int) -> bool:
        return self._delete(models.Meal, meal_id)

    # ─── meal plans ───

    def get_meal_plans_by_user_id(self, user_id: str) -> list[MealPlan]:
        rows = (
            self.db.query(models.MealPlan)
            .filter(models.MealPlan.user_id == str(user_id))
            .order_by(models.MealPlan.timestamp.desc(), models.MealPlan.id.desc())
            .all()
        )
        return [MealPlan.model_validate(r) for r in rows]

    def create_meal_plan(self, data: MealPlanCreate | Mapping[str, Any]) -> MealPlan:
        parsed = validate_insert(MealPlanCreate, data)
        return self._add(models.MealPlan(**parsed.model_dump()), MealPlan)

    # ─── nutrition goals ───

    def _deactivate_goals(self, user_id: str, keep_id: int | None = None) -> None:
        stmt = (
            update(models.NutritionGoal)
            .where(
                models.NutritionGoal.user_id == user_id,
                models.NutritionGoal.is_active.is_(True),
            )
            .values(is_active=False)
        )
        if keep_id is not None:
            stmt = stmt.where(models.NutritionGoal.id != keep_id)
        self.db.execute(stmt)

    def get_nutrition_goal(self, goal_id: int) -> NutritionGoal | None:
        return _read(NutritionGoal, self.db.get(models.NutritionGoal, goal_id))

    def get_nutrition_goals_by_user_id(self, user_id: str) -> list[NutritionGoal]:
        rows = (
            self.db.query(models.NutritionGoal)
            .filter(models.NutritionGoal.user_id == str(user_id))
            .order_by(models.NutritionGoal.created_at.desc(), models.NutritionGoal.id.desc())
            .all()
        )
        return [NutritionGoal.model_validate(r) for r in rows]

    def get_active_nutrition_goal(self, user_id: str, today: date | None = None) -> NutritionGoal | None:
        day = today or today_utc()
        row = (
            self.db.query(models.NutritionGoal)
            .filter(
                models.NutritionGoal.user_id == str(user_id),
                models.NutritionGoal.is_active.is_(True),
                models.NutritionGoal.start_date <= day,
                (models.NutritionGoal.end_date.is_(None)) | (models.NutritionGoal.end_date >= day),
            )
            .order_by(models.NutritionGoal.created_at.desc(), models.NutritionGoal.id.desc())
            .first()
        )
        return _read(NutritionGoal, row)

    def create_nutrition_goal(self, data: NutritionGoalCreate | Mapping[str, Any]) -> NutritionGoal:
        parsed = validate_insert(NutritionGoalCreate, data)
        if parsed.is_active:
            self._deactivate_goals(parsed.user_id)
        return self._add(models.NutritionGoal(**parsed.model_dump(), created_at=utcnow()), NutritionGoal)

    def update_nutrition_goal(
        self, goal_id: int, updates: NutritionGoalUpdate | Mapping[str, Any]
    ) -> NutritionGoal | None:
        changes = validate_updates(NutritionGoalUpdate, updates, GOAL_REQUIRED_FIELDS)
        row = self.db.get(models.NutritionGoal, goal_id)
        if row is None:
            return None
        if changes.get("is_active"):
            self._deactivate_goals(row.user_id, keep_id=goal_id)
        for key, value in changes.items():
            setattr(row, key, value)
        self.db.commit()
        self.db.refresh(row)
        return NutritionGoal.model_validate(row)

    def delete_nutrition_goal(self, goal_id: int) -> bool:
        return self._delete(models.NutritionGoal, goal_id)

    # ─── progress ───

    def get_progress_entry(self, entry_id: int) -> ProgressEntry | None:
        return _read(ProgressEntry, self.db.get(models.ProgressEntry, entry_id))

    def get_progress_entries_by_user_id(self, user_id: str) -> list[ProgressEntry]:
        rows = (
            self.db.query(models.ProgressEntry)
            .filter(models.ProgressEntry.user_id == str(user_id))
            .order_by(models.ProgressEntry.date.desc(), models.ProgressEntry.id.desc())
            .all()
        )
        return [ProgressEntry.model_validate(r) for r in rows]

    def get_progress_entries_by_date_range(
        self, user_id: str, start: date, end: date
    ) -> list[ProgressEntry]:
        rows = (
            self.db.query(models.ProgressEntry)
            .filter(
                models.ProgressEntry.user_id == str(user_id),
                models.ProgressEntry.date >= start,
                models.ProgressEntry.date <= end,
            )
            .order_by(models.ProgressEntry.date.asc(), models.ProgressEntry.id.asc())
            .all()
        )
        return [ProgressEntry.model_validate(r) for r in rows]

    def create_progress_entry(self, data: ProgressEntryCreate | Mapping[str, Any]) -> ProgressEntry:
        parsed = validate_insert(ProgressEntryCreate, data)
        return self._add(models.ProgressEntry(**parsed.model_dump(), created_at=utcnow()), ProgressEntry)

    def update_progress_entry(
        self, entry_id: int, updates: ProgressEntryUpdate | Mapping[str, Any]
    ) -> ProgressEntry | None:
        changes = validate_updates(ProgressEntryUpdate, updates, PROGRESS_REQUIRED_FIELDS)
        row = self.db.get(models.ProgressEntry, entry_id)
        if row is None:
            return None
        for key, value in changes.items():
            setattr(row, key, value)
        self.db.commit()
        self.db.refresh(row)
        return ProgressEntry.model_validate(row)

    def delete_progress_entry(self, entry_id: int) -> bool:
        return self._delete(models.ProgressEntry, entry_id)

    # ─── registration logs ───

    def create_registration_log(self, data: RegistrationLogCreate | Mapping[str, Any]) -> RegistrationLog:
        parsed = validate_insert(RegistrationLogCreate, data)
        return self._add(models.RegistrationLog(**parsed.model_dump()), RegistrationLog)

    def _logs(self, condition, since: datetime | None) -> list[RegistrationLog]:
        q = self.db.query(models.RegistrationLog).filter(condition)
        if since is not None:
            q = q.filter(models.RegistrationLog.registered_at >= since)
        rows = q.order_by(
            models.RegistrationLog.registered_at.desc(), models.RegistrationLog.id.desc()
        ).all()
        return [RegistrationLog.model_validate(r) for r in rows]

    def get_registration_logs_by_email(self, email: str, since: datetime | None = None) -> list[RegistrationLog]:
        wanted = (email or "").strip().lower()
        return self._logs(func.lower(models.RegistrationLog.email) == wanted, since)

    def get_registration_logs_by_ip_address(
        self, ip_address: str, since: datetime | None = None
    ) -> list[RegistrationLog]:
        return self._logs(models.RegistrationLog.ip_address == ip_address, since)

    # ─── notifications ───

    def get_user_notifications_by_user_id(self, user_id: str) -> list[UserNotification]:
        rows = (
            self.db.query(models.UserNotification)
            .filter(models.UserNotification.user_id == str(user_id))
            .order_by(models.UserNotification.created_at.desc(), models.UserNotification.id.desc())
            .all()
        )
        return [UserNotification.model_validate(r) for r in rows]

    def create_user_notification(
        self, data: UserNotificationCreate | Mapping[str, Any]
    ) -> UserNotification:
        parsed = validate_insert(UserNotificationCreate, data)
        row = models.UserNotification(**parsed.model_dump(), is_read=False, created_at=utcnow())
        return self._add(row, UserNotification)

    def mark_user_notification_as_read(self, notification_id: int) -> UserNotification | None:
        row = self.db.get(models.UserNotification, notification_id)
        if row is None:
            return None
        row.is_read = True
        self.db.commit()
        self.db.refresh(row)
        return UserNotification.model_validate(row)

    # ─── grace periods ───

    def get_user_grace_period_by_user_id(self, user_id: str) -> UserGracePeriod | None:
        row = (
            self.db.query(models.UserGracePeriod)
            .filter(
                models.UserGracePeriod.user_id == str(user_id),
                models.UserGracePeriod.active.is_(True),
            )
            .order_by(models.UserGracePeriod.created_at.desc(), models.UserGracePeriod.id.desc())
            .first()
        )
        return _read(UserGracePeriod, row)

    def create_user_grace_period(
        self, data: UserGracePeriodCreate | Mapping[str, Any]
    ) -> UserGracePeriod:
        parsed = validate_insert(UserGracePeriodCreate, data)
        row = models.UserGracePeriod(**parsed.model_dump(), created_at=utcnow())
        return self._add(row, UserGracePeriod)
