"""
Billing endpoints - subscription status, promo validation, Stripe checkout/webhook,
PayPal order creation and capture
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from outreach.app.core.config import PRO_MONTHLY_PRICE
from outreach.app.core.dependencies import get_current_user, get_db
from outreach.app.core.logging_config import get_logger
from outreach.app.models.billing import DISCOUNT_FREE_TRIAL, PromoCode
from outreach.app.models.user import User
from outreach.app.schemas.billing import (
    CheckoutRequest,
    CheckoutResponse,
    CreateOrderResponse,
    PromoValidateRequest,
    PromoValidateResponse,
    SubscriptionInfo,
    SubscriptionStatusResponse,
)
from outreach.app.services import paypal_service, stripe_service, subscription_service
from outreach.app.services.email_tracking import get_base_url
from outreach.app.services.promo_service import PromoCodeError, compute_discount, get_valid_promo
from outreach.app.utils import cache

logger = get_logger("api.billing")
router = APIRouter(tags=["billing"])


def _optional_promo(db: Session, code: Optional[str], user_id: int) -> Optional[PromoCode]:
    """A promo the user may redeem, or None. Invalid codes are ignored at checkout."""
    if not code or not code.strip():
        return None
    try:
        return get_valid_promo(db, code, user_id)
    except PromoCodeError as e:
        logger.info("Ignoring promo at checkout user_id=%s code=%s reason=%s", user_id, code, e)
        return None


def _pricing_redirect(reason: str) -> RedirectResponse:
    return RedirectResponse(f"{get_base_url()}/pricing?error={reason}", status_code=status.HTTP_302_FOUND)


@router.get("/subscription", response_model=SubscriptionStatusResponse)
def get_subscription(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    info = subscription_service.get_subscription_status(db, current_user)
    sub = info["subscription"]
    return SubscriptionStatusResponse(
        is_pro=info["is_pro"],
        free_emails_used=info["free_emails_used"],
        free_emails_remaining=info["free_emails_remaining"],
        subscription=SubscriptionInfo.model_validate(sub) if sub else None,
    )


@router.post("/promo-codes/validate", response_model=PromoValidateResponse)
def validate_promo_code(
    body: PromoValidateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        promo = get_valid_promo(db, body.code, current_user.id)
    except PromoCodeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    discount = compute_discount(promo, PRO_MONTHLY_PRICE)
    return PromoValidateResponse(
        code=promo.code,
        description=promo.description,
        discount_type=promo.discount_type,
        discount_value=promo.discount_value,
        **discount,
    )


# --- Stripe ---

@router.post("/stripe/checkout", response_model=CheckoutResponse)
def stripe_checkout(
    body: Optional[CheckoutRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Hosted Stripe checkout for the Pro subscription."""
    if not stripe_service.is_configured():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Stripe is not configured")
    promo = _optional_promo(db, body.promo_code if body else None, current_user.id)
    try:
        url = stripe_service.create_checkout_session(current_user.id, current_user.email, promo)
    except Exception:
        logger.exception("Stripe checkout failed user_id=%s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create checkout session",
        )
    return CheckoutResponse(url=url)


@router.post("/stripe/webhook")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """Signature-verified Stripe events that drive subscription state."""
    if not stripe_service.webhook_configured():
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Stripe webhook is not configured")
    payload = await request.body()
    try:
        event = stripe_service.construct_event(payload, request.headers.get("stripe-signature"))
    except stripe_service.StripeWebhookError as e:
        logger.warning("Stripe webhook signature verification failed error=%s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    try:
        await run_in_threadpool(stripe_service.handle_event, db, event)
    except Exception:
        logger.exception("Stripe webhook handler failed type=%s", stripe_service.event_type(event))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Webhook handler failed")
    return {"received": True}


# --- PayPal ---

@router.post("/paypal/create-order", response_model=CreateOrderResponse)
def paypal_create_order(
    body: Optional[CheckoutRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """One-month Pro as a one-off PayPal order; percentage and fixed promos reduce the amount."""
    if not paypal_service.is_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="PayPal is not configured. Please contact support.",
        )
    promo = _optional_promo(db, body.promo_code if body else None, current_user.id)
    amount = PRO_MONTHLY_PRICE
    # Free trials only apply to the Stripe subscription flow
    if promo is not None and promo.discount_type == DISCOUNT_FREE_TRIAL:
        promo = None
    if promo is not None:
        amount = compute_discount(promo, PRO_MONTHLY_PRICE)["final_price"]

    base_url = get_base_url()
    try:
        order = paypal_service.create_order(
            amount,
            paypal_service.encode_custom_id(current_user.id, promo.code if promo else None),
            return_url=f"{base_url}/api/paypal/capture",
            cancel_url=f"{base_url}/pricing?canceled=true",
        )
    except paypal_service.PayPalError:
        logger.exception("PayPal create order failed user_id=%s", current_user.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create PayPal order")

    approval = paypal_service.approval_url(order)
    if not approval:
        logger.error("No approval URL in PayPal order order_id=%s", order.get("id"))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to get PayPal approval URL")
    return CreateOrderResponse(id=order["id"], approval_url=approval)


@router.get("/paypal/capture")
async def paypal_capture(token: Optional[str] = None, db: Session = Depends(get_db)):
    """
    PayPal return URL. Captures the approved order and activates Pro in one transaction.
    Repeated callbacks for an already captured order are recognised and succeed without new rows.
    """
    if not token:
        return _pricing_redirect("missing_token")
    try:
        order = await run_in_threadpool(paypal_service.get_order, token)
        user_id, promo_code = paypal_service.parse_custom_id(paypal_service.order_custom_id(order))
        if user_id is None or db.query(User).filter(User.id == user_id).first() is None:
            return _pricing_redirect("invalid_order")

        if order.get("status") == "COMPLETED":
            captured = order
        else:
            captured = await run_in_threadpool(paypal_service.capture_order, token)
        if captured.get("status") != "COMPLETED":
            logger.warning("PayPal capture not completed order_id=%s status=%s", token, captured.get("status"))
            return _pricing_redirect("payment_failed")

        details = paypal_service.capture_details(captured)
        await run_in_threadpool(
            subscription_service.apply_paypal_capture,
            db,
            user_id,
            details["capture_id"],
            details["amount"],
            details["currency"],
            promo_code=promo_code,
            discount_amount=round(max(PRO_MONTHLY_PRICE - details["amount"], 0.0), 2),
        )
    except Exception:
        logger.exception("PayPal capture failed order_id=%s", token)
        return _pricing_redirect("capture_failed")

    await cache.invalidate_dashboard(user_id)
    return RedirectResponse(f"{get_base_url()}/dashboard?success=true&payment=paypal", status_code=status.HTTP_302_FOUND)
