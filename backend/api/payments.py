import logging

from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, Request, Response, status
from fastapi.responses import PlainTextResponse

from auth.routes import set_session_cookie
from auth.utils import SessionUser, create_token, get_current_user
from config import settings
from mailer.service import EmailService, get_email_service
from services.stripe_service import (
    PLAN_DETAILS,
    StripeClient,
    StripeError,
    construct_event,
    get_stripe_client,
    parse_event,
    price_id_for_plan,
)
from services.trial_service import PAID_PLANS, is_subscription_active
from storage import Storage, get_storage
from utils.datetime_utils import add_days, add_months, isoformat_z, utcnow

router = APIRouter(tags=["payments"])
logger = logging.getLogger(__name__)


def _require_stripe(client: StripeClient | None) -> StripeClient:
    if client is None:
        logger.error("Stripe requested but STRIPE_SECRET_KEY is not set")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe is not configured. Please set STRIPE_SECRET_KEY environment variable.",
        )
    return client


@router.post("/create-payment-intent")
async def create_payment_intent(
    request: Request,
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    stripe: StripeClient | None = Depends(get_stripe_client),
):
    client = _require_stripe(stripe)
    plan_id = payload.get("planId")
    try:
        price_id = price_id_for_plan(plan_id)
    except KeyError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid plan ID.")
    if not price_id:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe price ID not configured for the selected plan.",
        )
    origin = request.headers.get("origin") or settings.PUBLIC_BASE_URL
    try:
        session = await client.create_checkout_session(
            price_id=price_id, plan_id=plan_id, user_id=user.user_id, origin=origin
        )
    except StripeError as exc:
        logger.error("Checkout session for user %s failed: %s", user.id, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create payment intent")
    return {"url": session.get("url")}


@router.post("/verify-payment")
async def verify_payment(
    response: Response,
    payload: dict = Body(...),
    user: SessionUser = Depends(get_current_user),
    stripe: StripeClient | None = Depends(get_stripe_client),
):
    client = _require_stripe(stripe)
    session_id = payload.get("sessionId")
    if not session_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing payment session ID")
    try:
        session = await client.retrieve_checkout_session(session_id)
    except StripeError as exc:
        logger.error("Payment verification for user %s failed: %s", user.id, exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error verifying the payment")

    if session.get("payment_status") != "paid":
        response.status_code = status.HTTP_400_BAD_REQUEST
        return {"success": False, "message": "The payment has not been completed."}

    owner = str(session.get("client_reference_id") or "")
    if owner != user.user_id:
        logger.warning("User %s tried to verify checkout session %s owned by %s", user.id, session_id, owner or "nobody")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")

    plan_id = (session.get("metadata") or {}).get("planId")
    if plan_id not in PAID_PLANS:
        logger.error("Checkout session %s carries unknown plan %r", session_id, plan_id)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid plan ID.")
    subscription = user.subscription
    if not is_subscription_active(subscription):
        now = utcnow()
        subscription = {
            "active": True,
            "plan": plan_id,
            "startDate": isoformat_z(now),
            "endDate": isoformat_z(add_months(now, 12)),
        }
        set_session_cookie(response, create_token(user.id, role=user.role, subscription=subscription))
        logger.info("Subscription %s activated for user %s", plan_id, user.id)
    return {
        "success": True,
        "subscriptionActive": True,
        "plan": subscription.get("plan", plan_id),
        "message": "Subscription activated successfully!",
    }


def _handle_checkout_completed(
    session: dict,
    storage: Storage,
    email_service: EmailService,
    background_tasks: BackgroundTasks,
) -> None:
    metadata = session.get("metadata") or {}
    user_id = session.get("client_reference_id") or metadata.get("userId")
    plan_id = metadata.get("planId") or "premium-monthly"
    logger.info("Checkout completed for user %s, plan %s", user_id, plan_id)
    if not user_id:
        return

    now = utcnow()
    end = add_months(now, 12 if plan_id == "premium-yearly" else 1)
    details = PLAN_DETAILS.get(plan_id, PLAN_DETAILS["premium-monthly"])
    storage.create_user_notification(
        {
            "user_id": str(user_id),
            "title": "Subscription Activated",
            "message": (
                f"Your {details['label']} subscription has been successfully activated. "
                "Enjoy all premium features!"
            ),
            "type": "subscription_activated",
            "action_url": "/home",
            "expires_at": add_days(now, 30),
        }
    )
    record = storage.get_user(int(user_id)) if str(user_id).isdigit() else None
    if record is not None:
        background_tasks.add_task(
            email_service.send_payment_confirmation_email,
            record.email,
            record.username,
            details["name"],
            details["amount"],
            end.date().isoformat(),
        )


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    storage: Storage = Depends(get_storage),
    email_service: EmailService = Depends(get_email_service),
):
    body = await request.body()
    secret = settings.STRIPE_WEBHOOK_SECRET
    try:
        if secret:
            event = construct_event(body, request.headers.get("stripe-signature"), secret)
        else:
            event = parse_event(body)
    except StripeError as exc:
        logger.warning("Webhook rejected: %s", exc)
        return PlainTextResponse(f"Webhook Error: {exc}", status_code=status.HTTP_400_BAD_REQUEST)

    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    if event_type == "checkout.session.completed":
        _handle_checkout_completed(obj, storage, email_service, background_tasks)
    elif event_type in {"customer.subscription.created", "customer.subscription.updated"}:
        logger.info("Subscription %s %s", obj.get("id"), event_type.rsplit(".", 1)[-1])
    elif event_type == "customer.subscription.deleted":
        logger.info("Subscription %s ended for customer %s", obj.get("id"), obj.get("customer"))
    elif event_type == "invoice.payment_succeeded":
        logger.info("Payment succeeded for invoice %s", obj.get("id"))
    elif event_type == "invoice.payment_failed":
        logger.warning("Payment failed for invoice %s, customer %s", obj.get("id"), obj.get("customer"))
    else:
        logger.info("Unhandled webhook event type: %s", event_type)
    return {"received": True}
