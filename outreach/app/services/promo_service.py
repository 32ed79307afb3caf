"""
Promo code validation, discount math and redemption.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from outreach.app.core.config import PRO_MONTHLY_PRICE
from outreach.app.models.billing import (
    DISCOUNT_FIXED_AMOUNT,
    DISCOUNT_FREE_TRIAL,
    DISCOUNT_PERCENTAGE,
    PromoCode,
    PromoCodeUse,
)


class PromoCodeError(Exception):
    """Promo code cannot be applied; message is safe to show to the user."""


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def get_valid_promo(db: Session, code: Optional[str], user_id: int, now: Optional[datetime] = None) -> PromoCode:
    """Return the promo code if this user may redeem it now, else raise PromoCodeError."""
    code = normalize_code(code)
    if not code:
        raise PromoCodeError("Promo code is required")
    promo = db.query(PromoCode).filter(PromoCode.code == code).first()
    if promo is None:
        raise PromoCodeError("Invalid promo code")
    now = now or datetime.utcnow()
    if not promo.is_active:
        raise PromoCodeError("This promo code is no longer active")
    if promo.valid_from and promo.valid_from > now:
        raise PromoCodeError("This promo code is not yet valid")
    if promo.valid_until and promo.valid_until < now:
        raise PromoCodeError("This promo code has expired")
    if promo.max_uses is not None and promo.current_uses >= promo.max_uses:
        raise PromoCodeError("This promo code has reached its usage limit")
    if has_used(db, promo.id, user_id):
        raise PromoCodeError("You have already used this promo code")
    return promo


def has_used(db: Session, promo_code_id: int, user_id: int) -> bool:
    return (
        db.query(PromoCodeUse)
        .filter(PromoCodeUse.promo_code_id == promo_code_id, PromoCodeUse.user_id == user_id)
        .first()
        is not None
    )


def compute_discount(promo: PromoCode, base_price: float = PRO_MONTHLY_PRICE) -> dict:
    """Discount amount, final price and a display string. Free trials do not change the price."""
    value = float(promo.discount_value)
    if promo.discount_type == DISCOUNT_PERCENTAGE:
        pct = min(max(value, 0.0), 100.0)
        amount = round(base_price * pct / 100, 2)
        text = f"{pct:g}% off"
    elif promo.discount_type == DISCOUNT_FIXED_AMOUNT:
        amount = round(min(value, base_price), 2)
        text = f"${amount:.2f} off"
    elif promo.discount_type == DISCOUNT_FREE_TRIAL:
        amount = 0.0
        text = f"{int(value)} day free trial"
    else:
        amount = 0.0
        text = "Discount"
    return {
        "discount_amount": amount,
        "final_price": round(max(base_price - amount, 0.0), 2),
        "discount_text": text,
    }


def record_promo_use(db: Session, promo: PromoCode, user_id: int) -> bool:
    """
    Add a PromoCodeUse and bump current_uses, unless this user already has one.
    Does not commit; callers include it in their own transaction.
    """
    if has_used(db, promo.id, user_id):
        return False
    db.add(PromoCodeUse(promo_code_id=promo.id, user_id=user_id))
    promo.current_uses = (promo.current_uses or 0) + 1
    return True
