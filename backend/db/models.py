from datetime import datetime
from sqlalchemy import (
    Column, Integer, Text, Float, Boolean, Date, Index,
    DateTime,
)
from db.database import Base


# Ownership columns hold the user id as a string and carry no foreign key,
# so rows for the admin pseudo-user or deleted users never violate integrity.


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(Text, unique=True, nullable=False)
    password = Column(Text, nullable=False)  # scrypt "<hex>.<salt>"
    email = Column(Text, unique=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class UserProfile(Base):
    __tablename__ = "user_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, unique=True, nullable=False)
    name = Column(Text)
    age = Column(Integer)
    gender = Column(Text)
    weight = Column(Float)  # kg
    height = Column(Float)  # cm
    activity_level = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Meal(Base):
    __tablename__ = "meals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    food = Column(Text, nullable=False)
    calories = Column(Integer, nullable=False)
    proteins = Column(Integer, nullable=False)
    carbs = Column(Integer, nullable=False)
    fats = Column(Integer, nullable=False)
    meal_type = Column(Text, nullable=False)  # breakfast | lunch | dinner | snack
    timestamp = Column(DateTime, nullable=False)


class MealPlan(Base):
    __tablename__ = "meal_plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    query = Column(Text, nullable=False)
    response = Column(Text, nullable=False)
    timestamp = Column(DateTime, nullable=False)


class NutritionGoal(Base):
    __tablename__ = "nutrition_goals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text)
    calories = Column(Integer, nullable=False)
    proteins = Column(Integer, nullable=False)
    carbs = Column(Integer, nullable=False)
    fats = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class ProgressEntry(Base):
    __tablename__ = "progress_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    date = Column(Date, nullable=False)
    weight = Column(Integer, nullable=False)  # grams
    notes = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow)


class RegistrationLog(Base):
    __tablename__ = "registration_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ip_address = Column(Text, nullable=False)
    user_agent = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    username = Column(Text, nullable=False)
    registered_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    trial_end_date = Column(DateTime, nullable=False)


class UserNotification(Base):
    __tablename__ = "user_notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    type = Column(Text, nullable=False)  # welcome | trial_expiring | trial_expired | subscription_activated
    action_url = Column(Text)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime)


class UserGracePeriod(Base):
    __tablename__ = "user_grace_periods"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    data_retention = Column(Boolean, nullable=False, default=True)


Index("idx_meals_user_date", Meal.user_id, Meal.timestamp)
Index("idx_meal_plans_user", MealPlan.user_id)
Index("idx_nutrition_goals_user_active", NutritionGoal.user_id, NutritionGoal.is_active)
Index("idx_progress_entries_user_date", ProgressEntry.user_id, ProgressEntry.date)
Index("idx_registration_logs_email", RegistrationLog.email, RegistrationLog.registered_at)
Index("idx_registration_logs_ip", RegistrationLog.ip_address, RegistrationLog.registered_at)
Index("idx_user_notifications_user_read", UserNotification.user_id, UserNotification.is_read)
Index("idx_user_grace_periods_user", UserGracePeriod.user_id, UserGracePeriod.active)
