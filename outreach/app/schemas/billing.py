"""
Billing schemas: subscription status, promo validation, checkout/order creation
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class PromoValidateRequest(BaseModel):
    code: Optional[str] = None


class PromoValidateResponse(BaseModel):
    valid: bool = True
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: float
    discount_text: str
    discount_amount: float
    final_price: float


class CheckoutRequest(BaseModel):
    promo_code: Optional[str] = None


class CheckoutResponse(BaseModel):
    url: str


class CreateOrderResponse(BaseModel):
    id: str
    approval_url: Optional[str] = None


class SubscriptionInfo(BaseModel):
    status: str
    provider: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False

    class Config:
        from_attributes = True


class SubscriptionStatusResponse(BaseModel):
    is_pro: bool
    free_emails_used: int
    free_emails_remaining: int
    subscription: Optional[SubscriptionInfo] = None
