import hmac
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response, status
from pydantic import ValidationError

from auth.models import AdminAccessRequest, CheckRegistrationRequest, LoginRequest, RegisterRequest, UserResponse
from auth.utils import (
    SessionUser,
    admin_session_user,
    client_ip,
    create_token,
    get_current_user,
    hash_password,
    session_max_age_seconds,
    verify_password,
)
from config import settings
from mailer.service import EmailService, get_email_service
from services.rate_limit_service import throttle_login
from services.registration_service import is_registration_blocked, record_registration
from storage import Storage, get_storage

router = APIRouter(tags=["auth"])
logger = logging.getLogger(__name__)

LOGIN_FAILED = "User not found. Check your username or password or register a new account."


def _cookie_name() -> str:
    return (settings.AUTH_COOKIE_NAME or "nutrieasy_session").strip() or "nutrieasy_session"


def set_session_cookie(response: Response, token: str, *, max_age_seconds: int | None = None) -> None:
    samesite = (settings.AUTH_COOKIE_SAMESITE or "lax").strip().lower()
    if samesite not in {"strict", "lax", "none"}:
        samesite = "lax"
    response.set_cookie(
        key=_cookie_name(),
        value=token,
        httponly=bool(settings.AUTH_COOKIE_HTTPONLY),
        secure=bool(settings.AUTH_COOKIE_SECURE),
        samesite=samesite,  # type: ignore[arg-type]
        domain=settings.AUTH_COOKIE_DOMAIN,
        path=settings.AUTH_COOKIE_PATH or "/",
        max_age=max(int(max_age_seconds or session_max_age_seconds()), 1),
    )


def _clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        key=_cookie_name(),
        domain=settings.AUTH_COOKIE_DOMAIN,
        path=settings.AUTH_COOKIE_PATH or "/",
    )


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    req: RegisterRequest,
    request: Request,
    response: Response,
    background_tasks: BackgroundTasks,
    storage: Storage = Depends(get_storage),
    email_service: EmailService = Depends(get_email_service),
):
    username = req.username.strip()
    email = req.email.strip()
    if not username or not email or not req.password:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="All fields (username, email, and password) are required.",
        )
    if storage.get_user_by_username(username):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This username is already taken. Please choose another one.",
        )
    if storage.get_user_by_email(email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This email is already registered. Please use another email or try to login.",
        )

    ip_address = client_ip(request)
    if is_registration_blocked(storage, email=email, ip_address=ip_address):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Too many registration attempts. Please try again later or contact support.",
        )

    try:
        user = storage.create_user({"username": username, "email": email, "password": hash_password(req.password)})
    except ValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid registration data") from exc
    storage.create_user_profile({"user_id": str(user.id), "name": user.username})
    record_registration(
        storage,
        user,
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent", "unknown"),
    )
    logger.info("Registered user %s from %s", user.id, ip_address)

    set_session_cookie(response, create_token(user.id))
    background_tasks.add_task(email_service.send_welcome_email, user.email, user.username)
    return SessionUser(id=user.id, username=user.username, email=user.email).public()


@router.post("/login", response_model=UserResponse)
def login(
    req: LoginRequest,
    request: Request,
    response: Response,
    storage: Storage = Depends(get_storage),
):
    username = req.username.strip()
    ip_address = client_ip(request)
    decision = throttle_login(ip_address, username)
    if not decision.allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
            headers={"Retry-After": str(decision.retry_after)},
        )
    user = storage.get_user_by_username(username) if username else None
    if not user or not verify_password(req.password, user.password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=LOGIN_FAILED)
    set_session_cookie(response, create_token(user.id))
    return SessionUser(id=user.id, username=user.username, email=user.email).public()


@router.post("/logout")
def logout(response: Response):
    _clear_session_cookie(response)
    return {"status": "ok"}


@router.post("/admin-access", response_model=UserResponse)
def admin_access(req: AdminAccessRequest, request: Request, response: Response):
    expected = (settings.ADMIN_ACCESS_CODE or "").strip()
    supplied = (req.code or "").strip()
    if not expected or not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        logger.warning("Rejected admin access attempt from %s", client_ip(request))
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access code")
    admin = admin_session_user()
    set_session_cookie(response, create_token(admin.id, role="admin"))
    logger.info("Admin session opened from %s", client_ip(request))
    return admin.public()


@router.get("/user", response_model=UserResponse)
def current_user(user: SessionUser = Depends(get_current_user)):
    return user.public()


@router.post("/check-registration")
def check_registration(req: CheckRegistrationRequest, storage: Storage = Depends(get_storage)):
    email = req.email.strip()
    ip_address = req.ipAddress.strip()
    if not email or not ip_address:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email and IP address are required")
    previous = bool(
        storage.get_registration_logs_by_email(email) or storage.get_registration_logs_by_ip_address(ip_address)
    )
    return {
        "hasPreviousRegistration": previous,
        "message": "Previous registrations found." if previous else "No previous registrations found.",
    }
