"""
Public open/click tracking endpoints embedded in sent emails.
Recording is best-effort: the pixel and the redirect are always served.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from outreach.app.core.dependencies import get_db
from outreach.app.core.logging_config import get_logger
from outreach.app.models.email_tracking import EmailOpen, LinkClick
from outreach.app.models.generated_email import GeneratedEmail
from outreach.app.services.email_tracking import (
    PIXEL_HEADERS,
    TRACKING_PIXEL_GIF,
    get_base_url,
    is_trackable_url,
)
from outreach.app.utils.request import client_ip, user_agent

logger = get_logger("api.tracking")
router = APIRouter(prefix="/track", tags=["tracking"])


def _email_id_for(db: Session, tracking_id: str) -> Optional[int]:
    row = db.query(GeneratedEmail.id).filter(GeneratedEmail.tracking_id == tracking_id).first()
    return row[0] if row else None


@router.get("/open/{tracking_id}")
def track_open(tracking_id: str, request: Request, db: Session = Depends(get_db)):
    try:
        email_id = _email_id_for(db, tracking_id)
        if email_id is not None:
            db.add(EmailOpen(email_id=email_id, ip_address=client_ip(request), user_agent=user_agent(request)))
            db.commit()
            logger.info("Open recorded email_id=%s", email_id)
        else:
            logger.info("Open for unknown tracking_id=%s", tracking_id)
    except Exception:
        db.rollback()
        logger.exception("Failed to record open tracking_id=%s", tracking_id)
    return Response(content=TRACKING_PIXEL_GIF, media_type="image/gif", headers=PIXEL_HEADERS)


@router.get("/click/{tracking_id}")
def track_click(
    tracking_id: str,
    request: Request,
    url: Optional[str] = None,
    db: Session = Depends(get_db),
):
    target = (url or "").strip()
    if not is_trackable_url(target):
        return RedirectResponse(f"{get_base_url()}/", status_code=status.HTTP_302_FOUND)
    try:
        email_id = _email_id_for(db, tracking_id)
        if email_id is not None:
            db.add(LinkClick(
                email_id=email_id,
                original_url=target,
                ip_address=client_ip(request),
                user_agent=user_agent(request),
            ))
            db.commit()
            logger.info("Click recorded email_id=%s", email_id)
        else:
            logger.info("Click for unknown tracking_id=%s", tracking_id)
    except Exception:
        db.rollback()
        logger.exception("Failed to record click tracking_id=%s", tracking_id)
    return RedirectResponse(target, status_code=status.HTTP_302_FOUND)
