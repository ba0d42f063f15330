from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Mapping, TypeVar

from pydantic import BaseModel

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

SchemaT = TypeVar("SchemaT", bound=BaseModel)


def validate_insert(schema: type[SchemaT], data: SchemaT | Mapping[str, Any]) -> SchemaT:
    """Run ``data`` through ``schema``; raises pydantic ``ValidationError``."""
    if isinstance(data, schema):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump()
    return schema.model_validate(data)


def validate_updates(
    schema: type[BaseModel],
    updates: BaseModel | Mapping[str, Any],
    required: tuple[str, ...] = (),
) -> dict[str, Any]:
    """Validate a partial update and keep only the keys the caller actually sent.

    Explicit nulls are dropped for ``required`` columns.
    """
    if isinstance(updates, BaseModel):
        parsed = updates
    else:
        parsed = schema.model_validate(dict(updates))
    changes = parsed.model_dump(exclude_unset=True)
    return {k: v for k, v in changes.items() if not (k in required and v is None)}


GOAL_REQUIRED_FIELDS = ("name", "calories", "proteins", "carbs", "fats", "start_date", "is_active")
PROGRESS_REQUIRED_FIELDS = ("date", "weight")


class Storage(ABC):
    """Persistence contract shared by the in-memory and SQL backends."""

    # ─── users ───

    @abstractmethod
    def get_user(self, user_id: int) -> User | None: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> User | None: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> User | None: ...

    @abstractmethod
    def create_user(self, data: UserCreate | Mapping[str, Any]) -> User:
        """Persist a user; ``password`` must already be hashed."""

    # ─── profiles ───

    @abstractmethod
    def get_user_profile(self, user_id: str) -> UserProfile | None: ...

    @abstractmethod
    def create_user_profile(self, data: UserProfileCreate | Mapping[str, Any]) -> UserProfile: ...

    @abstractmethod
    def update_user_profile(
        self, user_id: str, updates: UserProfileUpdate | Mapping[str, Any]
    ) -> UserProfile | None: ...

    # ─── meals ───

    @abstractmethod
    def get_meal(self, meal_id: int) -> Meal | None: ...

    @abstractmethod
    def get_meals_by_user_id(self, user_id: str) -> list[Meal]: ...

    @abstractmethod
    def get_meals_by_user_id_and_date_range(
        self, user_id: str, start: datetime, end: datetime
    ) -> list[Meal]:
        """Meals with ``start <= timestamp <= end``, newest first."""

    @abstractmethod
    def create_meal(self, data: MealCreate | Mapping[str, Any]) -> Meal: ...

    @abstractmethod
    def delete_meal(self, meal_id: int) -> bool: ...

    # ─── meal plans ───

    @abstractmethod
    def get_meal_plans_by_user_id(self, user_id: str) -> list[MealPlan]: ...

    @abstractmethod
    def create_meal_plan(self, data: MealPlanCreate | Mapping[str, Any]) -> MealPlan: ...

    # ─── nutrition goals ───

    @abstractmethod
    def get_nutrition_goal(self, goal_id: int) -> NutritionGoal | None: ...

    @abstractmethod
    def get_nutrition_goals_by_user_id(self, user_id: str) -> list[NutritionGoal]: ...

    @abstractmethod
    def get_active_nutrition_goal(self, user_id: str, today: date | None = None) -> NutritionGoal | None:
        """Newest active goal whose date window contains ``today``."""

    @abstractmethod
    def create_nutrition_goal(self, data: NutritionGoalCreate | Mapping[str, Any]) -> NutritionGoal:
        """Insert a goal; an active goal deactivates the user's other active goals."""

    @abstractmethod
    def update_nutrition_goal(
        self, goal_id: int, updates: NutritionGoalUpdate | Mapping[str, Any]
    ) -> NutritionGoal | None: ...

    @abstractmethod
    def delete_nutrition_goal(self, goal_id: int) -> bool: ...

    # ─── progress ───

    @abstractmethod
    def get_progress_entry(self, entry_id: int) -> ProgressEntry | None: ...

    @abstractmethod
    def get_progress_entries_by_user_id(self, user_id: str) -> list[ProgressEntry]: ...

    @abstractmethod
    def get_progress_entries_by_date_range(
        self, user_id: str, start: date, end: date
    ) -> list[ProgressEntry]:
        """Entries with ``start <= date <= end`` in ascending date order."""

    @abstractmethod
    def create_progress_entry(self, data: ProgressEntryCreate | Mapping[str, Any]) -> ProgressEntry: ...

    @abstractmethod
    def update_progress_entry(
        self, entry_id: int, updates: ProgressEntryUpdate | Mapping[str, Any]
    ) -> ProgressEntry | None: ...

    @abstractmethod
    def delete_progress_entry(self, entry_id: int) -> bool: ...

    # ─── registration logs ───

    @abstractmethod
    def create_registration_log(self, data: RegistrationLogCreate | Mapping[str, Any]) -> RegistrationLog: ...

    @abstractmethod
    def get_registration_logs_by_email(self, email: str, since: datetime | None = None) -> list[RegistrationLog]:
        """Logs for ``email`` (newest first), optionally limited to ``registered_at >= since``."""

    @abstractmethod
    def get_registration_logs_by_ip_address(
        self, ip_address: str, since: datetime | None = None
    ) -> list[RegistrationLog]: ...

    # ─── notifications ───

    @abstractmethod
    def get_user_notifications_by_user_id(self, user_id: str) -> list[UserNotification]: ...

    @abstractmethod
    def create_user_notification(
        self, data: UserNotificationCreate | Mapping[str, Any]
    ) -> UserNotification: ...

    @abstractmethod
    def mark_user_notification_as_read(self, notification_id: int) -> UserNotification | None: ...

    # ─── grace periods ───

    @abstractmethod
    def get_user_grace_period_by_user_id(self, user_id: str) -> UserGracePeriod | None:
        """The user's newest active grace period, if any."""

    @abstractmethod
    def create_user_grace_period(
        self, data: UserGracePeriodCreate | Mapping[str, Any]
    ) -> UserGracePeriod: ...
