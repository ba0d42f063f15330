"""Insert and read schemas for every persisted entity.

Insert schemas validate and coerce incoming payloads before anything touches
storage; read schemas are what storage hands back to callers. Both speak
camelCase on the wire (``userId``, ``mealType``) and accept snake_case too.
"""
from datetime import date, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from utils.datetime_utils import parse_datetime, to_naive_utc, today_utc, utcnow
from utils.units import round_half_up

MealType = Literal["breakfast", "lunch", "dinner", "snack"]
CalendarDay = date
MACRO_FIELDS = ("calories", "proteins", "carbs", "fats")


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


def _coerce_user_id(value):
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return str(int(value))
    if isinstance(value, str):
        return value.strip()
    return value


def _coerce_optional_int(value):
    if value is None or value == "":
        return None
    return round_half_up(value)


def _coerce_optional_float(value):
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return value


def _coerce_date(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value).date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if "T" in raw:
        return parse_datetime(raw).date()
    return raw


def _coerce_datetime(value):
    if value is None or value == "":
        return None
    if isinstance(value, (str, datetime, date)):
        try:
            return parse_datetime(value)
        except ValueError:
            return value
    return value


# ─── Users ───


class UserCreate(CamelModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=1)
    email: str = Field(min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

    @field_validator("username", "email", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value


class User(CamelModel):
    id: int
    username: str
    password: str
    email: str
    created_at: Optional[datetime] = None


# ─── User profiles ───


class UserProfileUpdate(CamelModel):
    name: Optional[str] = Field(default=None, max_length=100)
    age: Optional[int] = Field(default=None, ge=0, le=130)
    gender: Optional[str] = None
    weight: Optional[float] = Field(default=None, ge=0)
    height: Optional[float] = Field(default=None, ge=0)
    activity_level: Optional[str] = None

    @field_validator("age", mode="before")
    @classmethod
    def _age(cls, value):
        return _coerce_optional_int(value)

    @field_validator("weight", "height", mode="before")
    @classmethod
    def _measures(cls, value):
        return _coerce_optional_float(value)


class UserProfileCreate(UserProfileUpdate):
    user_id: str = Field(min_length=1)

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id(cls, value):
        return _coerce_user_id(value)


class UserProfile(UserProfileCreate):
    id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ─── Meals ───


class MealCreate(CamelModel):
    user_id: str = Field(min_length=1)
    food: str = Field(min_length=1, max_length=300)
    calories: int = 0
    proteins: int = 0
    carbs: int = 0
    fats: int = 0
    meal_type: MealType
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id(cls, value):
        return _coerce_user_id(value)

    @field_validator(*MACRO_FIELDS, mode="before")
    @classmethod
    def _macros(cls, value):
        return round_half_up(value)

    @field_validator("meal_type", mode="before")
    @classmethod
    def _meal_type(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value):
        coerced = _coerce_datetime(value)
        return utcnow() if coerced is None else coerced


class Meal(MealCreate):
    id: int


# ─── Meal plans ───


class MealPlanCreate(CamelModel):
    user_id: str = Field(min_length=1)
    query: str = Field(min_length=1)
    response: str = Field(min_length=1)
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id(cls, value):
        return _coerce_user_id(value)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value):
        coerced = _coerce_datetime(value)
        return utcnow() if coerced is None else coerced


class MealPlan(MealPlanCreate):
    id: int


# ─── Nutrition goals ───


class NutritionGoalUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    calories: Optional[int] = Field(default=None, ge=0)
    proteins: Optional[int] = Field(default=None, ge=0)
    carbs: Optional[int] = Field(default=None, ge=0)
    fats: Optional[int] = Field(default=None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None

    @field_validator(*MACRO_FIELDS, mode="before")
    @classmethod
    def _macros(cls, value):
        return _coerce_optional_int(value)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _dates(cls, value):
        return _coerce_date(value)


class NutritionGoalCreate(CamelModel):
    user_id: str = Field(min_length=1)
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    calories: int = Field(default=0, ge=0)
    proteins: int = Field(default=0, ge=0)
    carbs: int = Field(default=0, ge=0)
    fats: int = Field(default=0, ge=0)
    start_date: date = Field(default_factory=today_utc)
    end_date: Optional[date] = None
    is_active: bool = True

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id(cls, value):
        return _coerce_user_id(value)

    @field_validator(*MACRO_FIELDS, mode="before")
    @classmethod
    def _macros(cls, value):
        return round_half_up(value)

    @field_validator("start_date", mode="before")
    @classmethod
    def _start_date(cls, value):
        coerced = _coerce_date(value)
        return today_utc() if coerced is None else coerced

    @field_validator("end_date", mode="before")
    @classmethod
    def _end_date(cls, value):
        return _coerce_date(value)

    @field_validator("is_active", mode="before")
    @classmethod
    def _is_active(cls, value):
        return True if value is None else value


class NutritionGoal(NutritionGoalCreate):
    id: int
    created_at: Optional[datetime] = None

    def covers(self, day: date) -> bool:
        if self.start_date > day:
            return False
        return self.end_date is None or self.end_date >= day


# ─── Progress entries ───


class ProgressEntryUpdate(CamelModel):
    date: Optional[CalendarDay] = None
    weight: Optional[int] = Field(default=None, gt=0)
    notes: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, value):
        return _coerce_date(value)

    @field_validator("weight", mode="before")
    @classmethod
    def _weight(cls, value):
        return _coerce_optional_int(value)


class ProgressEntryCreate(CamelModel):
    user_id: str = Field(min_length=1)
    date: CalendarDay = Field(default_factory=today_utc)
    weight: int = Field(gt=0, description="Body weight in grams")
    notes: Optional[str] = None

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id(cls, value):
        return _coerce_user_id(value)

    @field_validator("date", mode="before")
    @classmethod
    def _date(cls, value):
        coerced = _coerce_date(value)
        return today_utc() if coerced is None else coerced

    @field_validator("weight", mode="before")
    @classmethod
    def _weight(cls, value):
        return _coerce_optional_int(value)


class ProgressEntry(ProgressEntryCreate):
    id: int
    created_at: Optional[datetime] = None


# ─── Registration logs ───


class RegistrationLogCreate(CamelModel):
    ip_address: str = Field(min_length=1)
    user_agent: str = Field(min_length=1)
    email: str = Field(min_length=1)
    username: str = Field(min_length=1)
    trial_end_date: datetime
    registered_at: datetime = Field(default_factory=utcnow)

    @field_validator("trial_end_date", "registered_at", mode="before")
    @classmethod
    def _datetimes(cls, value):
        return _coerce_datetime(value)


class RegistrationLog(RegistrationLogCreate):
    id: int


# ─── Notifications and grace periods ───


class UserNotificationCreate(CamelModel):
    user_id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    type: str = Field(min_length=1)
    action_url: Optional[str] = None
    expires_at: Optional[datetime] = None

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id(cls, value):
        return _coerce_user_id(value)

    @field_validator("expires_at", mode="before")
    @classmethod
    def _expires_at(cls, value):
        return _coerce_datetime(value)


class UserNotification(UserNotificationCreate):
    id: int
    is_read: bool = False
    created_at: Optional[datetime] = None


class UserGracePeriodCreate(CamelModel):
    user_id: str = Field(min_length=1)
    expires_at: datetime
    active: bool = True
    data_retention: bool = True

    @field_validator("user_id", mode="before")
    @classmethod
    def _user_id(cls, value):
        return _coerce_user_id(value)

    @field_validator("expires_at", mode="before")
    @classmethod
    def _expires_at(cls, value):
        return _coerce_datetime(value)


class UserGracePeriod(UserGracePeriodCreate):
    id: int
    created_at: Optional[datetime] = None
