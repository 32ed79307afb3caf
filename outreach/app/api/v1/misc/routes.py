"""
Small user-facing endpoints - account status, AI provider info, page-view analytics,
tracking URL diagnostics
"""
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from outreach.app.core.config import SESSION_COOKIE_MAX_AGE, SESSION_COOKIE_NAME, settings
from outreach.app.core.dependencies import get_current_user, get_db, get_optional_user
from outreach.app.core.logging_config import get_logger
from outreach.app.models.analytics import PageView
from outreach.app.models.user import STATUS_ACTIVE, STATUS_BANNED, STATUS_SUSPENDED, User
from outreach.app.schemas.analytics import PageViewIn
from outreach.app.services import ai_service
from outreach.app.services.email_tracking import tracking_diagnostics
from outreach.app.utils.request import user_agent

logger = get_logger("api.misc")
router = APIRouter(tags=["misc"])


@router.get("/user/status")
def user_status(current_user: User = Depends(get_current_user)):
    return {
        "status": current_user.status,
        "role": current_user.role,
        "is_active": current_user.status == STATUS_ACTIVE,
        "is_suspended": current_user.status == STATUS_SUSPENDED,
        "is_banned": current_user.status == STATUS_BANNED,
    }


@router.get("/ai/providers")
def ai_providers(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Providers with a configured key. `default` is the configured default when usable."""
    providers = ai_service.get_available_providers()
    preferred = ai_service.get_default_provider(db)
    default = preferred if preferred in providers else (providers[0] if providers else None)
    return {"providers": providers, "default": default}


@router.get("/settings/ai")
def ai_settings(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return {"default_provider": ai_service.get_default_provider(db)}


@router.post("/analytics/track")
def track_page_view(
    body: PageViewIn,
    request: Request,
    response: Response,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    """Record a page view. Anonymous visitors are grouped by a session cookie."""
    cookie_id = request.cookies.get(SESSION_COOKIE_NAME)
    session_id = cookie_id or secrets.token_hex(16)
    try:
        db.add(PageView(
            user_id=current_user.id if current_user else None,
            session_id=session_id,
            path=body.path,
            referrer=body.referrer or None,
            user_agent=user_agent(request) or None,
        ))
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Page view record failed path=%s", body.path)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to track page view")

    if not cookie_id:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            session_id,
            max_age=SESSION_COOKIE_MAX_AGE,
            httponly=True,
            samesite="lax",
            secure=settings.environment == "production",
        )
    return {"success": True}


@router.get("/debug/tracking-url")
def debug_tracking_url(current_user: User = Depends(get_current_user)):
    return tracking_diagnostics()
