import logging

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import ValidationError

from api.deps import validation_error
from auth.utils import SessionUser, ensure_owner, get_current_user
from config import settings
from db.schemas import UserProfile
from storage import Storage, get_storage
from utils.datetime_utils import utcnow
from utils.fitness import calculate_bmi, calculate_bmr, calculate_tdee, interpret_bmi

router = APIRouter(prefix="/user-profile", tags=["user-profile"])
logger = logging.getLogger(__name__)


def _admin_profile() -> UserProfile:
    now = utcnow()
    return UserProfile(
        id=999,
        user_id=str(settings.ADMIN_USER_ID),
        name="Administrator",
        age=35,
        gender="other",
        height=180,
        weight=75,
        activity_level="moderate",
        created_at=now,
        updated_at=now,
    )


def _own_profile(user: SessionUser, storage: Storage) -> UserProfile:
    if user.is_admin:
        return _admin_profile()
    profile = storage.get_user_profile(user.user_id)
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User profile not found")
    return profile


@router.get("")
def get_profile(user: SessionUser = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return _own_profile(user, storage)


@router.get("/metrics")
def get_metrics(user: SessionUser = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    profile = _own_profile(user, storage)
    bmi = calculate_bmi(profile.weight, profile.height)
    bmr = calculate_bmr(profile.weight, profile.height, profile.age, profile.gender)
    return {
        "bmi": bmi,
        "bmiCategory": interpret_bmi(bmi),
        "bmr": bmr,
        "tdee": calculate_tdee(bmr, profile.activity_level),
        "activityLevel": profile.activity_level,
    }


@router.post("", status_code=status.HTTP_201_CREATED)
def create_profile(
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    owner_id = ensure_owner(user, payload.get("userId", payload.get("user_id")))
    if storage.get_user_profile(owner_id) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="User profile already exists")
    try:
        profile = storage.create_user_profile(payload)
    except ValidationError as exc:
        raise validation_error("Invalid user profile data", exc)
    logger.info("Profile created for user %s", owner_id)
    return profile


@router.patch("/{user_id}")
def update_profile(
    user_id: str,
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    owner_id = ensure_owner(user, user_id)
    try:
        updated = storage.update_user_profile(owner_id, payload)
    except ValidationError as exc:
        raise validation_error("Invalid user profile data", exc)
    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User profile not found")
    return updated
