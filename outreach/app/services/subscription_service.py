"""
Subscription state: free-tier quota, Pro activation, and payment reconciliation.
"""
from datetime import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from outreach.app.core.config import FREE_EMAIL_LIMIT
from outreach.app.core.logging_config import get_logger
from outreach.app.models.billing import (
    PROVIDER_PAYPAL,
    SUB_ACTIVE,
    PaymentTransaction,
    PromoCode,
    Subscription,
)
from outreach.app.models.user import User
from outreach.app.services.app_settings import get_setting
from outreach.app.services.promo_service import normalize_code, record_promo_use

logger = get_logger("services.subscription")


def free_email_limit(db: Session) -> int:
    return int(get_setting(db, "billing.free_email_limit", FREE_EMAIL_LIMIT))


def get_subscription(db: Session, user_id: int) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.user_id == user_id).first()


def is_pro(db: Session, user_id: int) -> bool:
    sub = get_subscription(db, user_id)
    return bool(sub and sub.is_pro())


def can_generate_email(db: Session, user: User) -> dict:
    if is_pro(db, user.id):
        return {"allowed": True, "is_pro": True, "remaining_free": None}
    limit = free_email_limit(db)
    used = user.free_emails_used or 0
    if used < limit:
        return {"allowed": True, "is_pro": False, "remaining_free": limit - used}
    return {
        "allowed": False,
        "is_pro": False,
        "remaining_free": 0,
        "reason": "Free limit reached. Please upgrade to Pro for unlimited emails.",
    }


def increment_email_usage(db: Session, user: User) -> None:
    """Count a generation against the free quota (no-op for Pro users)."""
    sub = get_subscription(db, user.id)
    if sub is None or sub.status != SUB_ACTIVE:
        user.free_emails_used = (user.free_emails_used or 0) + 1
        db.commit()


def get_subscription_status(db: Session, user: User) -> dict:
    sub = get_subscription(db, user.id)
    limit = free_email_limit(db)
    used = user.free_emails_used or 0
    return {
        "is_pro": bool(sub and sub.is_pro()),
        "free_emails_used": used,
        "free_emails_remaining": max(0, limit - used),
        "subscription": sub,
    }


def activate_subscription(
    db: Session,
    user_id: int,
    provider: str,
    months: int = 1,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    **fields,
) -> Subscription:
    """Upsert the user's subscription to ACTIVE for [start, end). Does not commit."""
    start = start or datetime.utcnow()
    end = end or (start + relativedelta(months=months))
    sub = get_subscription(db, user_id)
    if sub is None:
        sub = Subscription(user_id=user_id)
        db.add(sub)
    sub.status = SUB_ACTIVE
    sub.provider = provider
    sub.current_period_start = start
    sub.current_period_end = end
    sub.cancel_at_period_end = False
    for key, value in fields.items():
        setattr(sub, key, value)
    return sub


def apply_paypal_capture(
    db: Session,
    user_id: int,
    capture_id: str,
    amount: float,
    currency: str,
    promo_code: Optional[str] = None,
    discount_amount: float = 0.0,
) -> bool:
    """
    Persist a completed PayPal capture in one transaction: subscription upsert,
    payment transaction, and promo code use. Returns False if this capture was
    already recorded (callback retry), True otherwise.
    """
    existing = (
        db.query(PaymentTransaction)
        .filter(PaymentTransaction.provider == PROVIDER_PAYPAL, PaymentTransaction.external_id == capture_id)
        .first()
    )
    if existing is not None:
        logger.info("PayPal capture already recorded capture_id=%s user_id=%s", capture_id, user_id)
        return False

    code = normalize_code(promo_code) or None
    try:
        activate_subscription(db, user_id, PROVIDER_PAYPAL, months=1)
        db.add(PaymentTransaction(
            user_id=user_id,
            provider=PROVIDER_PAYPAL,
            external_id=capture_id,
            amount=amount,
            currency=currency,
            status="COMPLETED",
            promo_code=code,
            discount_amount=discount_amount,
            description="Pro subscription - 1 month",
        ))
        if code:
            promo = db.query(PromoCode).filter(PromoCode.code == code).first()
            if promo is not None:
                record_promo_use(db, promo, user_id)
        db.commit()
    except IntegrityError:
        # Concurrent callback for the same capture won the unique constraint
        db.rollback()
        logger.info("PayPal capture recorded concurrently capture_id=%s", capture_id)
        return False
    except Exception:
        db.rollback()
        raise
    logger.info("PayPal capture applied user_id=%s capture_id=%s amount=%.2f %s", user_id, capture_id, amount, currency)
    return True
