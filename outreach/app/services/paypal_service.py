"""
PayPal Orders v2 REST client (create order, get order, capture) and custom_id codec.
"""
import json
from typing import Any, Optional

import requests

from outreach.app.core.config import PRO_CURRENCY, PRO_PLAN_DESCRIPTION, settings
from outreach.app.core.logging_config import get_logger

logger = get_logger("services.paypal")

PAYPAL_API_BASE = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}


class PayPalError(Exception):
    pass


def is_configured() -> bool:
    return bool(settings.paypal_client_id and settings.paypal_client_secret)


def _base_url() -> str:
    return PAYPAL_API_BASE.get(settings.paypal_mode, PAYPAL_API_BASE["sandbox"])


def _access_token() -> str:
    resp = requests.post(
        f"{_base_url()}/v1/oauth2/token",
        auth=(settings.paypal_client_id, settings.paypal_client_secret),
        data={"grant_type": "client_credentials"},
        headers={"Accept": "application/json"},
        timeout=settings.http_request_timeout,
    )
    if resp.status_code != 200:
        raise PayPalError(f"PayPal auth failed: {resp.status_code}")
    return resp.json()["access_token"]


def _request(method: str, path: str, **kwargs) -> dict:
    try:
        resp = requests.request(
            method,
            f"{_base_url()}{path}",
            headers={
                "Authorization": f"Bearer {_access_token()}",
                "Content-Type": "application/json",
                "Prefer": "return=representation",
            },
            timeout=settings.http_request_timeout,
            **kwargs,
        )
    except requests.RequestException as e:
        raise PayPalError(f"PayPal request failed: {e}") from e
    if resp.status_code >= 400:
        raise PayPalError(f"PayPal API error {resp.status_code}: {resp.text[:500]}")
    return resp.json() if resp.content else {}


# --- custom_id codec ---

def encode_custom_id(user_id: int, promo_code: Optional[str] = None) -> str:
    return json.dumps({"userId": user_id, "promoCode": promo_code}, separators=(",", ":"))


def parse_custom_id(custom_id: Optional[str]) -> tuple[Optional[int], Optional[str]]:
    """
    Read back (user_id, promo_code) from an order's custom_id.
    Accepts the JSON envelope {"userId": .., "promoCode": ..} and the legacy bare user id.
    """
    if not custom_id:
        return None, None
    raw = custom_id.strip()
    user_ref: Any = raw
    promo_code = None
    try:
        data = json.loads(raw)
    except ValueError:
        data = None
    if isinstance(data, dict):
        user_ref = data.get("userId")
        promo_code = data.get("promoCode") or None
    try:
        return int(user_ref), promo_code
    except (TypeError, ValueError):
        return None, promo_code


# --- Orders ---

def create_order(amount: float, custom_id: str, return_url: str, cancel_url: str) -> dict:
    body = {
        "intent": "CAPTURE",
        "purchase_units": [
            {
                "amount": {"currency_code": PRO_CURRENCY, "value": f"{amount:.2f}"},
                "description": PRO_PLAN_DESCRIPTION,
                "custom_id": custom_id,
            }
        ],
        "application_context": {
            "brand_name": settings.app_name,
            "landing_page": "BILLING",
            "user_action": "PAY_NOW",
            "return_url": return_url,
            "cancel_url": cancel_url,
        },
    }
    order = _request("POST", "/v2/checkout/orders", json=body)
    logger.info("PayPal order created order_id=%s amount=%.2f", order.get("id"), amount)
    return order


def get_order(order_id: str) -> dict:
    return _request("GET", f"/v2/checkout/orders/{order_id}")


def capture_order(order_id: str) -> dict:
    return _request("POST", f"/v2/checkout/orders/{order_id}/capture", json={})


def approval_url(order: dict) -> Optional[str]:
    for link in order.get("links") or []:
        if link.get("rel") in ("approve", "payer-action"):
            return link.get("href")
    return None


def order_custom_id(order: dict) -> Optional[str]:
    units = order.get("purchase_units") or []
    return units[0].get("custom_id") if units else None


def capture_details(captured: dict) -> dict:
    """Capture id, amount and currency from a capture response."""
    units = captured.get("purchase_units") or []
    captures = ((units[0].get("payments") or {}).get("captures") or []) if units else []
    first = captures[0] if captures else {}
    amount = first.get("amount") or {}
    return {
        "capture_id": first.get("id") or captured.get("id"),
        "amount": float(amount.get("value") or 0),
        "currency": amount.get("currency_code") or PRO_CURRENCY,
    }
