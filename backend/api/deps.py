"""Shared route helpers: AI provider dependencies, ownership and input checks."""
from datetime import datetime

from fastapi import HTTPException, status
from pydantic import ValidationError

from ai.providers import AIProvider, get_provider
from auth.utils import SessionUser, ensure_owner
from db.schemas import UserProfile
from storage import Storage
from utils.datetime_utils import end_of_day, parse_datetime


def get_openai_provider() -> AIProvider:
    return get_provider("openai")


def get_perplexity_provider() -> AIProvider:
    return get_provider("perplexity")


def parse_id(raw: str, message: str = "Invalid ID format") -> int:
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)


def require_owned(user: SessionUser, record, not_found: str):
    """404 when ``record`` is missing, 403 when it belongs to someone else."""
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=not_found)
    if str(record.user_id) != user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return record


def load_profile(storage: Storage, user: SessionUser, user_id) -> UserProfile:
    owner_id = ensure_owner(user, user_id)
    profile = storage.get_user_profile(owner_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User profile not found")
    return profile


def validation_error(message: str, exc: ValidationError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"message": message, "errors": exc.errors(include_url=False, include_context=False)},
    )


def parse_range_bound(raw: str | None, *, end: bool = False) -> datetime | None:
    """Parse a ``startDate``/``endDate`` query value; a bare date as ``endDate`` covers the whole day."""
    if not raw:
        return None
    try:
        value = parse_datetime(raw)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid date: {raw}")
    if end and "T" not in raw:
        return end_of_day(value.date())
    return value
