"""
Dashboard API - profile completion, counts, Gmail state, recent emails, subscription
"""
from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from outreach.app.core.dependencies import get_current_user, get_db
from outreach.app.core.logging_config import get_logger
from outreach.app.models.document import Document
from outreach.app.models.generated_email import EMAIL_STATUSES, GeneratedEmail
from outreach.app.models.profile import Profile
from outreach.app.models.recipient import Recipient
from outreach.app.models.user import User
from outreach.app.services import gmail_service, subscription_service
from outreach.app.services.profile_service import profile_completion
from outreach.app.utils import cache

logger = get_logger("api.dashboard")
router = APIRouter(prefix="/dashboard", tags=["dashboard"])

RECENT_EMAILS_LIMIT = 5


def _build_dashboard_summary(db: Session, user: User) -> dict:
    """Build the dashboard payload from DB queries."""
    user_id = user.id
    profile = db.query(Profile).filter(Profile.user_id == user_id).first()

    by_status = {s: 0 for s in EMAIL_STATUSES}
    rows = (
        db.query(GeneratedEmail.status, func.count(GeneratedEmail.id))
        .filter(GeneratedEmail.user_id == user_id)
        .group_by(GeneratedEmail.status)
        .all()
    )
    for status_value, count in rows:
        by_status[status_value] = count

    recent = (
        db.query(GeneratedEmail)
        .filter(GeneratedEmail.user_id == user_id)
        .order_by(GeneratedEmail.created_at.desc(), GeneratedEmail.id.desc())
        .limit(RECENT_EMAILS_LIMIT)
        .all()
    )
    recent_emails = [
        {
            "id": e.id,
            "subject": e.subject,
            "status": e.status,
            "purpose": e.purpose,
            "recipient": {
                "id": e.recipient.id,
                "name": e.recipient.name,
                "email": e.recipient.email,
                "organization": e.recipient.organization,
            } if e.recipient else None,
            "reply_count": e.reply_count or 0,
            "conversation_read": bool(e.conversation_read),
            "sent_at": e.sent_at.isoformat() if e.sent_at else None,
            "created_at": e.created_at.isoformat() if e.created_at else None,
        }
        for e in recent
    ]

    sub_info = subscription_service.get_subscription_status(db, user)
    sub = sub_info["subscription"]
    conn = gmail_service.get_connection(db, user_id)

    return {
        "profile_completion": profile_completion(profile),
        "stats": {
            "documents": db.query(Document).filter(Document.user_id == user_id).count(),
            "recipients": db.query(Recipient).filter(Recipient.user_id == user_id).count(),
            "emails_total": sum(by_status.values()),
            "emails_by_status": by_status,
            "unread_conversations": (
                db.query(GeneratedEmail)
                .filter(GeneratedEmail.user_id == user_id, GeneratedEmail.conversation_read.is_(False))
                .count()
            ),
        },
        "gmail_connected": conn is not None,
        "gmail_email": conn.connected_email if conn else None,
        "recent_emails": recent_emails,
        "subscription": {
            "is_pro": sub_info["is_pro"],
            "status": sub.status if sub else "FREE",
            "provider": sub.provider if sub else None,
            "current_period_end": sub.current_period_end.isoformat() if sub and sub.current_period_end else None,
            "free_emails_used": sub_info["free_emails_used"],
            "free_emails_remaining": sub_info["free_emails_remaining"],
        },
    }


@router.get("")
async def get_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict:
    """
    Dashboard summary for the current user.
    Cached per user (ttl from config); writes that change it invalidate the key.
    """
    cache_key = cache.dashboard_key(current_user.id)
    try:
        cached = await cache.get(cache_key)
        if cached is not None:
            return cached
    except Exception as e:
        logger.warning("Dashboard cache read failed user_id=%s error=%s", current_user.id, e)

    result = _build_dashboard_summary(db, current_user)

    try:
        await cache.set(cache_key, result)
    except Exception as e:
        logger.warning("Dashboard cache write failed user_id=%s error=%s", current_user.id, e)

    return result
