import hashlib
import hmac
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config import settings
from storage import Storage, get_storage

security = HTTPBearer(auto_error=False)

# scrypt cost parameters; changing them invalidates every stored hash.
SCRYPT_N = 16384
SCRYPT_R = 8
SCRYPT_P = 1
SCRYPT_KEY_LENGTH = 64
SCRYPT_MAXMEM = 64 * 1024 * 1024


@dataclass
class SessionUser:
    """The authenticated principal for one request."""

    id: int
    username: str
    email: str
    role: str = "user"
    subscription: dict[str, Any] | None = field(default=None)

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def user_id(self) -> str:
        return str(self.id)

    def public(self) -> dict[str, Any]:
        return {"id": self.id, "username": self.username, "email": self.email, "isAdmin": self.is_admin}


def _derive(password: str, salt: str) -> bytes:
    return hashlib.scrypt(
        password.encode("utf-8"),
        salt=salt.encode("utf-8"),
        n=SCRYPT_N,
        r=SCRYPT_R,
        p=SCRYPT_P,
        dklen=SCRYPT_KEY_LENGTH,
        maxmem=SCRYPT_MAXMEM,
    )


def hash_password(password: str) -> str:
    salt = secrets.token_hex(16)
    return f"{_derive(password, salt).hex()}.{salt}"


def verify_password(password: str, stored: str) -> bool:
    hashed, sep, salt = (stored or "").partition(".")
    if not sep or not hashed or not salt:
        return False
    try:
        expected = bytes.fromhex(hashed)
    except ValueError:
        return False
    return hmac.compare_digest(_derive(password, salt), expected)


def create_token(
    user_id: int,
    role: str = "user",
    subscription: dict[str, Any] | None = None,
    expiry_hours_override: int | None = None,
) -> str:
    expiry_hours = (
        int(expiry_hours_override)
        if expiry_hours_override is not None
        else settings.SESSION_EXPIRY_HOURS
    )
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "role": role,
        "exp": now + timedelta(hours=expiry_hours),
        "iat": now,
    }
    if subscription:
        payload["subscription"] = subscription
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")


def session_max_age_seconds() -> int:
    return max(int(settings.SESSION_EXPIRY_HOURS), 1) * 3600


def _token_from_request(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
) -> str | None:
    if credentials and credentials.credentials:
        return credentials.credentials
    cookie_name = (settings.AUTH_COOKIE_NAME or "").strip() or "nutrieasy_session"
    cookie_token = request.cookies.get(cookie_name)
    if cookie_token:
        return cookie_token
    return None


def admin_session_user(subscription: dict[str, Any] | None = None) -> SessionUser:
    return SessionUser(
        id=settings.ADMIN_USER_ID,
        username=settings.ADMIN_USERNAME,
        email=settings.ADMIN_EMAIL,
        role="admin",
        subscription=subscription,
    )


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for", "")
    if forwarded.strip():
        return forwarded.split(",")[0].strip()
    return (request.client.host if request.client else "") or "unknown"


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    storage: Storage = Depends(get_storage),
) -> SessionUser:
    token = _token_from_request(request, credentials)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    token_payload = decode_token(token)
    try:
        user_id = int(token_payload.get("sub", 0))
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid session")
    subscription = token_payload.get("subscription") or None
    if token_payload.get("role") == "admin" and user_id == settings.ADMIN_USER_ID:
        user = admin_session_user(subscription)
    else:
        record = storage.get_user(user_id)
        if not record:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
        user = SessionUser(
            id=record.id,
            username=record.username,
            email=record.email,
            subscription=subscription,
        )
    request.state.user_id = user.id
    return user


def ensure_owner(user: SessionUser, user_id: Any) -> str:
    """Return ``user_id`` as a string, or 403 when it is not the session user's."""
    requested = str(user_id).strip() if user_id is not None else ""
    if not requested:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userId is required")
    if requested != user.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return requested
