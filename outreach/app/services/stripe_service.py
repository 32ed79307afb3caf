"""
Stripe checkout sessions and webhook reconciliation.
"""
from datetime import datetime
from typing import Any, Optional

import stripe
from sqlalchemy.orm import Session

from outreach.app.core.config import PRO_CURRENCY, settings
from outreach.app.core.logging_config import get_logger
from outreach.app.models.billing import (
    DISCOUNT_FIXED_AMOUNT,
    DISCOUNT_FREE_TRIAL,
    DISCOUNT_PERCENTAGE,
    PROVIDER_STRIPE,
    SUB_ACTIVE,
    SUB_CANCELED,
    SUB_FREE,
    SUB_PAST_DUE,
    SUB_UNPAID,
    PaymentTransaction,
    PromoCode,
    Subscription,
)
from outreach.app.services.email_tracking import get_base_url
from outreach.app.services.promo_service import record_promo_use
from outreach.app.services.subscription_service import activate_subscription

logger = get_logger("services.stripe")

STATUS_MAP = {
    "active": SUB_ACTIVE,
    "trialing": SUB_ACTIVE,
    "canceled": SUB_CANCELED,
    "past_due": SUB_PAST_DUE,
    "unpaid": SUB_UNPAID,
}


class StripeWebhookError(Exception):
    """Payload or signature could not be verified."""


def is_configured() -> bool:
    return bool(settings.stripe_secret_key and settings.stripe_pro_price_id)


def webhook_configured() -> bool:
    return bool(settings.stripe_secret_key and settings.stripe_webhook_secret)


def _client() -> Any:
    stripe.api_key = settings.stripe_secret_key
    return stripe


def _field(obj: Any, key: str, default: Any = None) -> Any:
    """Read a key from a dict or StripeObject."""
    if obj is None:
        return default
    try:
        value = obj[key]
    except (KeyError, TypeError, AttributeError):
        return default
    return default if value is None else value


def _ts(value: Any) -> Optional[datetime]:
    return datetime.utcfromtimestamp(int(value)) if value else None


def create_checkout_session(user_id: int, email: str, promo: Optional[PromoCode] = None) -> str:
    """
    Subscription-mode checkout for the Pro price. A valid promo code becomes a one-off
    coupon (percentage or fixed amount) or a trial period (free-trial days).
    Returns the hosted checkout URL.
    """
    client = _client()
    base_url = get_base_url()
    params: dict[str, Any] = {
        "customer_email": email,
        "mode": "subscription",
        "payment_method_types": ["card"],
        "line_items": [{"price": settings.stripe_pro_price_id, "quantity": 1}],
        "success_url": f"{base_url}/dashboard?success=true",
        "cancel_url": f"{base_url}/pricing?canceled=true",
        "metadata": {"userId": str(user_id), "promoCode": promo.code if promo else ""},
    }
    if promo is not None:
        value = float(promo.discount_value)
        if promo.discount_type == DISCOUNT_PERCENTAGE:
            coupon = client.Coupon.create(percent_off=min(value, 100.0), duration="once", name=promo.code)
            params["discounts"] = [{"coupon": _field(coupon, "id")}]
        elif promo.discount_type == DISCOUNT_FIXED_AMOUNT:
            coupon = client.Coupon.create(
                amount_off=int(round(value * 100)),
                currency=PRO_CURRENCY.lower(),
                duration="once",
                name=promo.code,
            )
            params["discounts"] = [{"coupon": _field(coupon, "id")}]
        elif promo.discount_type == DISCOUNT_FREE_TRIAL:
            params["subscription_data"] = {"trial_period_days": int(value)}

    session = client.checkout.Session.create(**params)
    session_url = _field(session, "url")
    logger.info("Stripe checkout created user_id=%s session_id=%s promo=%s", user_id, _field(session, "id"), promo.code if promo else None)
    return session_url


def construct_event(payload: bytes, signature: Optional[str]) -> Any:
    try:
        return stripe.Webhook.construct_event(
            payload=payload,
            sig_header=signature or "",
            secret=settings.stripe_webhook_secret,
        )
    except (ValueError, stripe.SignatureVerificationError) as e:
        raise StripeWebhookError(str(e)) from e


def _period_bounds(subscription: Any) -> tuple[Optional[datetime], Optional[datetime]]:
    """Period start/end from the subscription, falling back to its first item."""
    start = _field(subscription, "current_period_start")
    end = _field(subscription, "current_period_end")
    if not (start and end):
        items = _field(_field(subscription, "items"), "data", [])
        if items:
            start = start or _field(items[0], "current_period_start")
            end = end or _field(items[0], "current_period_end")
    return _ts(start), _ts(end)


def _first_price_id(subscription: Any) -> Optional[str]:
    items = _field(_field(subscription, "items"), "data", [])
    return _field(_field(items[0], "price"), "id") if items else None


def _by_stripe_id(db: Session, stripe_subscription_id: Optional[str]) -> list[Subscription]:
    if not stripe_subscription_id:
        return []
    return db.query(Subscription).filter(Subscription.stripe_subscription_id == stripe_subscription_id).all()


def handle_checkout_completed(db: Session, session: Any) -> None:
    metadata = _field(session, "metadata", {})
    user_ref = _field(metadata, "userId")
    stripe_subscription_id = _field(session, "subscription")
    if not user_ref or not stripe_subscription_id:
        logger.info("Checkout session without user or subscription session_id=%s", _field(session, "id"))
        return
    user_id = int(user_ref)
    subscription = _client().Subscription.retrieve(stripe_subscription_id)
    start, end = _period_bounds(subscription)
    activate_subscription(
        db,
        user_id,
        PROVIDER_STRIPE,
        start=start,
        end=end,
        stripe_customer_id=_field(session, "customer"),
        stripe_subscription_id=stripe_subscription_id,
        stripe_price_id=_first_price_id(subscription),
    )

    session_id = _field(session, "id")
    exists = (
        db.query(PaymentTransaction)
        .filter(PaymentTransaction.provider == PROVIDER_STRIPE, PaymentTransaction.external_id == session_id)
        .first()
    )
    promo_code = _field(metadata, "promoCode") or None
    if exists is None:
        db.add(PaymentTransaction(
            user_id=user_id,
            provider=PROVIDER_STRIPE,
            external_id=session_id,
            amount=(_field(session, "amount_total", 0) or 0) / 100,
            currency=str(_field(session, "currency", PRO_CURRENCY)).upper(),
            status="COMPLETED",
            promo_code=promo_code,
            discount_amount=(_field(_field(session, "total_details"), "amount_discount", 0) or 0) / 100,
            description="Pro subscription",
        ))
        if promo_code:
            promo = db.query(PromoCode).filter(PromoCode.code == promo_code).first()
            if promo is not None:
                record_promo_use(db, promo, user_id)
    db.commit()
    logger.info("Stripe subscription activated user_id=%s subscription_id=%s", user_id, stripe_subscription_id)


def handle_subscription_updated(db: Session, subscription: Any) -> None:
    start, end = _period_bounds(subscription)
    status = STATUS_MAP.get(_field(subscription, "status"), SUB_FREE)
    for sub in _by_stripe_id(db, _field(subscription, "id")):
        sub.status = status
        if start:
            sub.current_period_start = start
        if end:
            sub.current_period_end = end
        sub.cancel_at_period_end = bool(_field(subscription, "cancel_at_period_end", False))
    db.commit()


def handle_subscription_deleted(db: Session, subscription: Any) -> None:
    for sub in _by_stripe_id(db, _field(subscription, "id")):
        sub.status = SUB_CANCELED
        sub.cancel_at_period_end = False
    db.commit()


def handle_payment_failed(db: Session, invoice: Any) -> None:
    stripe_subscription_id = _field(invoice, "subscription")
    if not stripe_subscription_id:
        # Newer API versions nest it under parent.subscription_details
        stripe_subscription_id = _field(_field(_field(invoice, "parent"), "subscription_details"), "subscription")
    for sub in _by_stripe_id(db, stripe_subscription_id):
        sub.status = SUB_PAST_DUE
    db.commit()


EVENT_HANDLERS = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_failed": handle_payment_failed,
}


def event_type(event: Any) -> Optional[str]:
    return _field(event, "type")


def handle_event(db: Session, event: Any) -> bool:
    """Dispatch a verified event. Returns False for event types we ignore."""
    event_type = _field(event, "type")
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        return False
    obj = _field(_field(event, "data"), "object")
    try:
        handler(db, obj)
    except Exception:
        db.rollback()
        raise
    logger.info("Stripe event handled type=%s id=%s", event_type, _field(event, "id"))
    return True
