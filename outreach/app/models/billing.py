"""Billing models: subscription, payment transactions, promo codes and their uses."""
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import backref, relationship

from outreach.app.db.base import Base

SUB_FREE = "FREE"
SUB_ACTIVE = "ACTIVE"
SUB_CANCELED = "CANCELED"
SUB_PAST_DUE = "PAST_DUE"
SUB_UNPAID = "UNPAID"

PROVIDER_STRIPE = "STRIPE"
PROVIDER_PAYPAL = "PAYPAL"
PROVIDER_MANUAL = "MANUAL"

DISCOUNT_PERCENTAGE = "PERCENTAGE"
DISCOUNT_FIXED_AMOUNT = "FIXED_AMOUNT"
DISCOUNT_FREE_TRIAL = "FREE_TRIAL"
DISCOUNT_TYPES = (DISCOUNT_PERCENTAGE, DISCOUNT_FIXED_AMOUNT, DISCOUNT_FREE_TRIAL)


class Subscription(Base):
    """One row per user. Only payment flows and admins change it."""
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)

    status = Column(String(20), default=SUB_FREE, nullable=False)
    provider = Column(String(20), nullable=True)  # STRIPE | PAYPAL | MANUAL
    stripe_customer_id = Column(String(255), nullable=True, unique=True)
    stripe_subscription_id = Column(String(255), nullable=True, unique=True)
    stripe_price_id = Column(String(255), nullable=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", backref=backref("subscription", uselist=False, cascade="all, delete-orphan"))

    def is_pro(self, now: datetime | None = None) -> bool:
        now = now or datetime.utcnow()
        return (
            self.status == SUB_ACTIVE
            and self.current_period_end is not None
            and self.current_period_end > now
        )


class PaymentTransaction(Base):
    """Immutable record of collected funds. (provider, external_id) is unique."""
    __tablename__ = "payment_transactions"
    __table_args__ = (
        UniqueConstraint("provider", "external_id", name="uq_payment_provider_external_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    provider = Column(String(20), nullable=False)
    external_id = Column(String(255), nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(10), default="USD", nullable=False)
    status = Column(String(20), default="COMPLETED", nullable=False)
    promo_code = Column(String(50), nullable=True)
    discount_amount = Column(Float, default=0.0)
    description = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class PromoCode(Base):
    __tablename__ = "promo_codes"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, index=True, nullable=False)  # stored uppercase
    description = Column(Text, nullable=True)

    discount_type = Column(String(20), nullable=False)  # PERCENTAGE | FIXED_AMOUNT | FREE_TRIAL
    discount_value = Column(Float, nullable=False)  # percent, USD, or trial days
    max_uses = Column(Integer, nullable=True)  # None = unlimited
    current_uses = Column(Integer, default=0, nullable=False)
    valid_from = Column(DateTime, default=datetime.utcnow, nullable=False)
    valid_until = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class PromoCodeUse(Base):
    """Append-only; one row per (promo code, user)."""
    __tablename__ = "promo_code_uses"
    __table_args__ = (
        UniqueConstraint("promo_code_id", "user_id", name="uq_promo_code_use_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    promo_code_id = Column(Integer, ForeignKey("promo_codes.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    used_at = Column(DateTime, default=datetime.utcnow)

    promo_code = relationship("PromoCode", backref="uses")
