"""
Gmail connection endpoints - OAuth consent, callback, status, sent mail, disconnect
"""
from datetime import datetime, timedelta
from typing import Optional

import requests
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from outreach.app.core.config import settings
from outreach.app.core.dependencies import get_current_user, get_db
from outreach.app.core.logging_config import get_logger
from outreach.app.core.security import create_oauth_state, decode_oauth_state
from outreach.app.models.user import User
from outreach.app.services import gmail_service
from outreach.app.services.email_tracking import get_base_url
from outreach.app.utils import cache

logger = get_logger("api.gmail")
router = APIRouter(prefix="/gmail", tags=["gmail"])

OAUTH_STATE_PURPOSE = "gmail_oauth"


def _settings_redirect(query: str) -> RedirectResponse:
    return RedirectResponse(f"{get_base_url()}/settings?{query}", status_code=status.HTTP_302_FOUND)


@router.get("/connect")
def connect(current_user: User = Depends(get_current_user)):
    """Google consent URL; the state parameter is a short-lived signed token for this user."""
    if not settings.google_client_id or not settings.google_client_secret:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Google OAuth is not configured")
    state = create_oauth_state(current_user.id, OAUTH_STATE_PURPOSE)
    return {"url": gmail_service.build_auth_url(state)}


@router.get("/callback")
async def callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """OAuth redirect target. Always answers with a redirect to the settings page."""
    if error:
        logger.warning("Gmail OAuth error=%s", error)
        return _settings_redirect("error=gmail_auth_failed")
    if not code:
        return _settings_redirect("error=no_code")
    user_id = decode_oauth_state(state or "", OAUTH_STATE_PURPOSE)
    if user_id is None or db.query(User).filter(User.id == user_id).first() is None:
        return _settings_redirect("error=invalid_state")

    try:
        tokens = await run_in_threadpool(gmail_service.exchange_code_for_tokens, code)
        if not tokens.get("access_token") or not tokens.get("refresh_token"):
            return _settings_redirect("error=invalid_tokens")
        email = await run_in_threadpool(gmail_service.fetch_user_email, tokens["access_token"])
        if not email:
            return _settings_redirect("error=no_email")
        expires_at = datetime.utcnow() + timedelta(seconds=int(tokens.get("expires_in") or 3600))
        gmail_service.save_connection(db, user_id, tokens["access_token"], tokens["refresh_token"], expires_at, email)
    except (requests.RequestException, gmail_service.GmailAPIError, ValueError):
        logger.exception("Gmail callback failed user_id=%s", user_id)
        return _settings_redirect("error=callback_failed")

    logger.info("Gmail connected user_id=%s", user_id)
    await cache.invalidate_dashboard(user_id)
    return _settings_redirect("success=gmail_connected")


@router.get("/status")
def connection_status(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    conn = gmail_service.get_connection(db, current_user.id)
    return {
        "connected": conn is not None,
        "email": conn.connected_email if conn else None,
        "expires_at": conn.expires_at if conn else None,
        "connected_at": conn.created_at if conn else None,
    }


@router.get("/sent")
def sent_messages(
    limit: int = Query(20, ge=1, le=100),
    page_token: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Recent messages from the SENT label of the connected mailbox."""
    if gmail_service.get_connection(db, current_user.id) is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Gmail not connected")
    try:
        result = gmail_service.list_sent_messages(db, current_user.id, limit, page_token)
    except gmail_service.GmailAuthError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except gmail_service.GmailAPIError:
        logger.exception("Sent mail fetch failed user_id=%s", current_user.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch sent emails")
    return {"emails": result["messages"], "next_page_token": result["next_page_token"]}


@router.post("/disconnect")
async def disconnect(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    removed = gmail_service.disconnect(db, current_user.id)
    if removed:
        logger.info("Gmail disconnected user_id=%s", current_user.id)
    await cache.invalidate_dashboard(current_user.id)
    return {"success": True, "disconnected": removed}
