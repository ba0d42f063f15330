"""Sliding-window throttling for login attempts."""
from __future__ import annotations

import hashlib
import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass

from config import settings

logger = logging.getLogger(__name__)

LOGIN_ENDPOINT = "/api/login"


@dataclass(frozen=True)
class RateLimitRule:
    endpoint: str
    limit: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0
    remaining: int = 0


class SlidingWindowLimiter:
    """Counts hits per key over the last ``window_seconds``; thread-safe."""

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._hits: dict[str, deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()

    def hit(self, key: str, rule: RateLimitRule) -> RateLimitDecision:
        now = self._clock()
        window = max(int(rule.window_seconds), 1)
        capacity = max(int(rule.limit), 1)
        with self._lock:
            hits = self._hits[key]
            while hits and hits[0] <= now - window:
                hits.popleft()
            if len(hits) >= capacity:
                wait = max(int(hits[0] + window - now), 1)
                return RateLimitDecision(allowed=False, retry_after=wait)
            hits.append(now)
            return RateLimitDecision(allowed=True, remaining=capacity - len(hits))

    def clear(self) -> None:
        with self._lock:
            self._hits.clear()


_limiter = SlidingWindowLimiter()


def login_rule() -> RateLimitRule:
    return RateLimitRule(
        endpoint=LOGIN_ENDPOINT,
        limit=settings.RATE_LIMIT_AUTH_LOGIN_ATTEMPTS,
        window_seconds=settings.RATE_LIMIT_AUTH_LOGIN_WINDOW_SECONDS,
    )


def _digest(scope: str) -> str:
    return hashlib.sha256((scope or "").encode("utf-8")).hexdigest()[:24]


def throttle_login(ip_address: str, username: str) -> RateLimitDecision:
    """Record one login attempt for (ip, username) and decide whether it may proceed."""
    rule = login_rule()
    scope = f"{ip_address}:{(username or '').strip().lower()}"
    decision = _limiter.hit(f"{rule.endpoint}:{scope}", rule)
    if not decision.allowed:
        # Usernames stay out of the log; only a digest of the scope is written.
        logger.warning(
            "Login throttled scope=%s ip=%s limit=%d/%ds retry_after=%ds",
            _digest(scope),
            ip_address or "unknown",
            rule.limit,
            rule.window_seconds,
            decision.retry_after,
        )
    return decision


def reset_rate_limits() -> None:
    _limiter.clear()
