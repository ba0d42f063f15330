"""Minimal Stripe REST client (Checkout sessions) and webhook signature checks."""
import hashlib
import hmac
import json
import logging
import time
from typing import Any

import httpx

from config import settings

logger = logging.getLogger(__name__)

PLAN_DETAILS = {
    "premium-monthly": {"name": "Monthly Premium Plan", "amount": "$3.99/month", "label": "monthly"},
    "premium-yearly": {"name": "Yearly Premium Plan", "amount": "$39.99/year", "label": "yearly"},
}


class StripeError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class StripeSignatureError(StripeError):
    pass


def _flatten_form(data: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Encode nested dicts and lists with Stripe's bracket notation."""
    items: list[tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if isinstance(value, dict):
            items.extend(_flatten_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, element in enumerate(value):
                element_name = f"{name}[{index}]"
                if isinstance(element, dict):
                    items.extend(_flatten_form(element, element_name))
                else:
                    items.append((element_name, str(element)))
        elif isinstance(value, bool):
            items.append((name, "true" if value else "false"))
        elif value is not None:
            items.append((name, str(value)))
    return items


class StripeClient:
    BASE_URL = "https://api.stripe.com/v1"
    TIMEOUT_SECONDS = 30

    def __init__(self, secret_key: str):
        self._headers = {"Authorization": f"Bearer {secret_key}"}

    async def _request(self, method: str, path: str, form: dict[str, Any] | None = None) -> dict:
        url = f"{self.BASE_URL}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.TIMEOUT_SECONDS) as client:
                resp = await client.request(
                    method,
                    url,
                    headers=self._headers,
                    data=_flatten_form(form) if form else None,
                )
        except httpx.HTTPError as exc:
            logger.error("Stripe %s %s failed: %s", method, path, exc)
            raise StripeError(f"Stripe request failed: {exc}") from exc
        if resp.status_code >= 400:
            logger.error("Stripe %s %s returned %s: %s", method, path, resp.status_code, resp.text)
            try:
                detail = resp.json().get("error", {}).get("message") or resp.text
            except ValueError:
                detail = resp.text
            raise StripeError(f"Stripe API error: {detail}", resp.status_code)
        return resp.json()

    async def create_checkout_session(
        self,
        *,
        price_id: str,
        plan_id: str,
        user_id: str,
        origin: str,
    ) -> dict:
        form = {
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "mode": "subscription",
            "success_url": f"{origin}/payment-success?session_id={{CHECKOUT_SESSION_ID}}&plan={plan_id}",
            "cancel_url": f"{origin}/pricing",
            "metadata": {"planId": plan_id, "userId": user_id},
            "client_reference_id": user_id,
            "locale": "en",
        }
        session = await self._request("POST", "/checkout/sessions", form)
        logger.info("Created Stripe checkout session %s for user %s (%s)", session.get("id"), user_id, plan_id)
        return session

    async def retrieve_checkout_session(self, session_id: str) -> dict:
        return await self._request("GET", f"/checkout/sessions/{session_id}")


def get_stripe_client() -> StripeClient | None:
    if not settings.STRIPE_SECRET_KEY:
        return None
    return StripeClient(settings.STRIPE_SECRET_KEY)


def price_id_for_plan(plan_id: str) -> str | None:
    if plan_id == "premium-monthly":
        return settings.STRIPE_PRICE_ID_MONTHLY
    if plan_id == "premium-yearly":
        return settings.STRIPE_PRICE_ID_YEARLY
    raise KeyError(plan_id)


def sign_webhook_payload(payload: bytes, secret: str, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header value for ``payload``."""
    ts = int(timestamp if timestamp is not None else time.time())
    signed = f"{ts}.".encode() + payload
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


def construct_event(
    payload: bytes,
    signature_header: str | None,
    secret: str,
    tolerance_seconds: int | None = None,
    now: float | None = None,
) -> dict:
    """Verify the signature and return the decoded event."""
    if not signature_header:
        raise StripeSignatureError("Missing Stripe-Signature header")
    timestamp: int | None = None
    candidates: list[str] = []
    for part in signature_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise StripeSignatureError("Invalid signature timestamp")
        elif key == "v1":
            candidates.append(value)
    if timestamp is None or not candidates:
        raise StripeSignatureError("Malformed Stripe-Signature header")

    signed = f"{timestamp}.".encode() + payload
    expected = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, candidate) for candidate in candidates):
        raise StripeSignatureError("No signatures found matching the expected signature for payload")

    tolerance = settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS if tolerance_seconds is None else tolerance_seconds
    current = time.time() if now is None else now
    if tolerance and abs(current - timestamp) > tolerance:
        raise StripeSignatureError("Timestamp outside the tolerance zone")
    return parse_event(payload)


def parse_event(payload: bytes) -> dict:
    try:
        event = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise StripeError("Invalid payload") from exc
    if not isinstance(event, dict) or "type" not in event:
        raise StripeError("Invalid payload")
    return event
