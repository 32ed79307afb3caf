"""
Admin back-office queries and user management
"""
from datetime import datetime, timedelta
from typing import Optional

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from outreach.app.core.config import ATTACHMENTS_SUBDIR, DOCUMENTS_SUBDIR
from outreach.app.core.logging_config import get_logger
from outreach.app.models.admin import EmailBroadcast
from outreach.app.models.analytics import AIUsage, PageView
from outreach.app.models.billing import (
    PROVIDER_MANUAL,
    SUB_ACTIVE,
    SUB_CANCELED,
    PaymentTransaction,
    PromoCodeUse,
    Subscription,
)
from outreach.app.models.document import Document
from outreach.app.models.generated_email import STATUS_DRAFT, STATUS_SENT, EmailAttachment, GeneratedEmail
from outreach.app.models.gmail_connection import GmailConnection
from outreach.app.models.profile import Profile
from outreach.app.models.recipient import Recipient
from outreach.app.models.support import SupportTicket, Feedback
from outreach.app.models.user import ROLE_ADMIN, ROLE_USER, STATUS_ACTIVE, STATUS_BANNED, STATUS_SUSPENDED, User
from outreach.app.services import storage
from outreach.app.services.mailer import BulkRecipient
from outreach.app.services.subscription_service import activate_subscription

logger = get_logger("services.admin")

PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90}
DAILY_BREAKDOWN_DAYS = 7


class AdminActionError(Exception):
    """Requested admin action is not allowed on this user."""


def period_start(period: str, now: Optional[datetime] = None) -> datetime:
    """Start of a 7d/30d/90d window. Unknown periods fall back to 7 days."""
    now = now or datetime.utcnow()
    return now - timedelta(days=PERIOD_DAYS.get(period, 7))


def paginate(query: Query, page: int, limit: int) -> tuple[list, dict]:
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": (total + limit - 1) // limit if limit else 0,
    }


def get_admin_stats(db: Session) -> dict:
    week_ago = datetime.utcnow() - timedelta(days=7)
    return {
        "total_users": db.query(User).count(),
        "total_emails": db.query(GeneratedEmail).count(),
        "total_emails_sent": db.query(GeneratedEmail).filter(GeneratedEmail.status == STATUS_SENT).count(),
        "pro_users": db.query(Subscription).filter(Subscription.status == SUB_ACTIVE).count(),
        "open_tickets": db.query(SupportTicket).filter(SupportTicket.status.in_(("OPEN", "IN_PROGRESS"))).count(),
        "total_feedback": db.query(Feedback).count(),
        "new_users_this_week": db.query(User).filter(User.created_at >= week_ago).count(),
        "emails_this_week": db.query(GeneratedEmail).filter(GeneratedEmail.created_at >= week_ago).count(),
    }


def user_summary(db: Session, user: User) -> dict:
    sub = db.query(Subscription).filter(Subscription.user_id == user.id).first()
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "image": user.image,
        "role": user.role,
        "status": user.status,
        "free_emails_used": user.free_emails_used or 0,
        "last_login_at": user.last_login_at,
        "created_at": user.created_at,
        "subscription": {
            "status": sub.status,
            "provider": sub.provider,
            "current_period_end": sub.current_period_end,
        } if sub else None,
        "email_count": db.query(GeneratedEmail).filter(GeneratedEmail.user_id == user.id).count(),
    }


def user_detail(db: Session, user: User) -> dict:
    detail = user_summary(db, user)
    profile = db.query(Profile).filter(Profile.user_id == user.id).first()
    detail.update({
        "headline": profile.headline if profile else None,
        "document_count": db.query(Document).filter(Document.user_id == user.id).count(),
        "recipient_count": db.query(Recipient).filter(Recipient.user_id == user.id).count(),
        "gmail_connected": db.query(GmailConnection).filter(GmailConnection.user_id == user.id).first() is not None,
    })
    return detail


def apply_user_action(db: Session, admin: User, user: User, action: str, months: int = 1) -> tuple[dict, dict]:
    """
    Apply an admin action and commit. Returns (old_value, new_value) for the audit log.
    Raises AdminActionError when an admin tries to demote themselves.
    """
    if action == "make_admin":
        old = {"role": user.role}
        user.role = ROLE_ADMIN
        new = {"role": ROLE_ADMIN}
    elif action == "remove_admin":
        if user.id == admin.id:
            raise AdminActionError("Cannot remove your own admin role")
        old = {"role": user.role}
        user.role = ROLE_USER
        new = {"role": ROLE_USER}
    elif action in ("suspend", "ban", "activate"):
        if user.id == admin.id and action != "activate":
            raise AdminActionError("Cannot suspend or ban your own account")
        target = {"suspend": STATUS_SUSPENDED, "ban": STATUS_BANNED, "activate": STATUS_ACTIVE}[action]
        old = {"status": user.status}
        user.status = target
        new = {"status": target}
    elif action == "grant_pro":
        sub = db.query(Subscription).filter(Subscription.user_id == user.id).first()
        old = {"status": sub.status if sub else None}
        now = datetime.utcnow()
        activate_subscription(db, user.id, PROVIDER_MANUAL, start=now, end=now + relativedelta(months=months))
        db.add(PaymentTransaction(
            user_id=user.id,
            provider=PROVIDER_MANUAL,
            external_id=f"manual-{user.id}-{int(now.timestamp() * 1000)}",
            amount=0.0,
            status="COMPLETED",
            description=f"Manual Pro grant for {months} month(s)",
        ))
        new = {"status": SUB_ACTIVE, "months": months}
    elif action == "revoke_pro":
        sub = db.query(Subscription).filter(Subscription.user_id == user.id).first()
        old = {"status": sub.status if sub else None}
        if sub is not None:
            sub.status = SUB_CANCELED
            sub.cancel_at_period_end = False
        new = {"status": SUB_CANCELED}
    elif action == "reset_email_count":
        old = {"free_emails_used": user.free_emails_used}
        user.free_emails_used = 0
        new = {"free_emails_used": 0}
    else:
        raise AdminActionError(f"Invalid action: {action}")
    db.commit()
    db.refresh(user)
    logger.info("Admin action admin_id=%s user_id=%s action=%s", admin.id, user.id, action)
    return old, new


def delete_user_data(db: Session, user: User) -> None:
    """Delete a user with every row and stored file they own, in one commit."""
    user_id = user.id
    documents = db.query(Document).filter(Document.user_id == user_id).all()
    attachments = db.query(EmailAttachment).filter(EmailAttachment.user_id == user_id).all()
    doc_files = [d.file_name for d in documents]
    attachment_files = [a.file_name for a in attachments]

    for email in db.query(GeneratedEmail).filter(GeneratedEmail.user_id == user_id).all():
        db.delete(email)  # cascades opens and clicks
    db.flush()
    for model in (EmailAttachment, Document, Recipient, Profile, GmailConnection, PaymentTransaction,
                  PromoCodeUse, SupportTicket):
        db.query(model).filter(model.user_id == user_id).delete(synchronize_session=False)
    for model in (Feedback, AIUsage, PageView):
        db.query(model).filter(model.user_id == user_id).update({model.user_id: None}, synchronize_session=False)
    db.delete(user)  # cascades the subscription
    db.commit()

    for name in doc_files:
        storage.delete_file(DOCUMENTS_SUBDIR, name)
    for name in attachment_files:
        storage.delete_file(ATTACHMENTS_SUBDIR, name)
    logger.info("User deleted user_id=%s documents=%s attachments=%s", user_id, len(doc_files), len(attachment_files))


def revenue_stats(db: Session) -> dict:
    total, count = (
        db.query(func.coalesce(func.sum(PaymentTransaction.amount), 0.0), func.count(PaymentTransaction.id))
        .filter(PaymentTransaction.status == "COMPLETED")
        .one()
    )
    by_provider = (
        db.query(PaymentTransaction.provider, func.count(PaymentTransaction.id), func.sum(PaymentTransaction.amount))
        .filter(PaymentTransaction.status == "COMPLETED")
        .group_by(PaymentTransaction.provider)
        .all()
    )
    return {
        "total_revenue": round(float(total or 0), 2),
        "total_transactions": count,
        "by_provider": [
            {"provider": p, "count": c, "revenue": round(float(s or 0), 2)} for p, c, s in by_provider
        ],
    }


def email_stats(db: Session) -> dict:
    return {
        "total": db.query(GeneratedEmail).count(),
        "sent": db.query(GeneratedEmail).filter(GeneratedEmail.status == STATUS_SENT).count(),
        "draft": db.query(GeneratedEmail).filter(GeneratedEmail.status == STATUS_DRAFT).count(),
        "failed": db.query(GeneratedEmail).filter(GeneratedEmail.status == "FAILED").count(),
    }


def _daily_counts(db: Session, column, days: int = DAILY_BREAKDOWN_DAYS) -> list[dict]:
    """Counts per calendar day (UTC) for the last `days` days, oldest first, zero-filled."""
    today = datetime.utcnow().date()
    first = today - timedelta(days=days - 1)
    rows = (
        db.query(func.date(column), func.count())
        .filter(column >= datetime.combine(first, datetime.min.time()))
        .group_by(func.date(column))
        .all()
    )
    counts = {str(d): c for d, c in rows}
    return [
        {"date": (first + timedelta(days=i)).isoformat(), "count": counts.get((first + timedelta(days=i)).isoformat(), 0)}
        for i in range(days)
    ]


def ai_usage_stats(db: Session, start: datetime, provider: Optional[str] = None) -> dict:
    base = db.query(AIUsage).filter(AIUsage.created_at >= start)
    if provider:
        base = base.filter(AIUsage.provider == provider)
    total = base.count()
    successes = base.filter(AIUsage.success.is_(True)).count()
    by_provider = (
        db.query(AIUsage.provider, func.count(AIUsage.id))
        .filter(AIUsage.created_at >= start)
        .group_by(AIUsage.provider)
        .all()
    )
    return {
        "stats": {
            "total_requests": total,
            "success_rate": round(successes * 100 / total, 1) if total else 100.0,
        },
        "by_provider": [{"provider": p, "count": c} for p, c in by_provider],
        "daily_usage": _daily_counts(db, AIUsage.created_at),
    }


def analytics(db: Session, period: str) -> dict:
    start = period_start(period)
    active_users = (
        db.query(func.count(func.distinct(GeneratedEmail.user_id)))
        .filter(GeneratedEmail.created_at >= start)
        .scalar()
    )
    unique_visitors = (
        db.query(func.count(func.distinct(PageView.session_id)))
        .filter(PageView.created_at >= start)
        .scalar()
    )
    top_pages = (
        db.query(PageView.path, func.count(PageView.id).label("views"))
        .filter(PageView.created_at >= start)
        .group_by(PageView.path)
        .order_by(func.count(PageView.id).desc())
        .limit(10)
        .all()
    )
    pro_users = db.query(Subscription).filter(Subscription.status == SUB_ACTIVE).count()
    total_users = db.query(User).count()
    recent_signups = db.query(User).order_by(User.created_at.desc()).limit(10).all()
    return {
        "period": period if period in PERIOD_DAYS else "7d",
        "users": {
            "total": total_users,
            "new_in_period": db.query(User).filter(User.created_at >= start).count(),
            "active_in_period": active_users or 0,
        },
        "subscriptions": {
            "total_pro": pro_users,
            "new_pro_in_period": (
                db.query(Subscription)
                .filter(Subscription.status == SUB_ACTIVE, Subscription.created_at >= start)
                .count()
            ),
            "canceled_in_period": (
                db.query(Subscription)
                .filter(Subscription.status == SUB_CANCELED, Subscription.updated_at >= start)
                .count()
            ),
            "conversion_rate": round(pro_users * 100 / total_users, 1) if total_users else 0.0,
        },
        "emails": {
            "total": db.query(GeneratedEmail).count(),
            "in_period": db.query(GeneratedEmail).filter(GeneratedEmail.created_at >= start).count(),
            "sent_in_period": (
                db.query(GeneratedEmail)
                .filter(GeneratedEmail.status == STATUS_SENT, GeneratedEmail.created_at >= start)
                .count()
            ),
        },
        "page_views": {
            "total": db.query(PageView).count(),
            "in_period": db.query(PageView).filter(PageView.created_at >= start).count(),
            "unique_visitors": unique_visitors or 0,
            "top_pages": [{"path": path, "views": views} for path, views in top_pages],
        },
        "daily": {
            "page_views": _daily_counts(db, PageView.created_at),
            "new_users": _daily_counts(db, User.created_at),
            "emails": _daily_counts(db, GeneratedEmail.created_at),
        },
        "users_by_plan": {"pro": pro_users, "free": max(total_users - pro_users, 0)},
        "recent_signups": [
            {"id": u.id, "email": u.email, "name": u.name, "created_at": u.created_at} for u in recent_signups
        ],
    }


def broadcast_recipients(db: Session, broadcast: EmailBroadcast) -> list[BulkRecipient]:
    """Active users addressed by the broadcast's target type."""
    query = db.query(User).filter(User.status == STATUS_ACTIVE)
    active_ids = db.query(Subscription.user_id).filter(Subscription.status == SUB_ACTIVE)
    if broadcast.target_type == "PRO_USERS":
        query = query.filter(User.id.in_(active_ids))
    elif broadcast.target_type == "FREE_USERS":
        query = query.filter(~User.id.in_(active_ids))
    elif broadcast.target_type == "SPECIFIC_USERS":
        ids = [int(i) for i in (broadcast.target_user_ids or [])]
        if not ids:
            return []
        query = query.filter(User.id.in_(ids))
    return [BulkRecipient(email=u.email, name=u.name) for u in query.order_by(User.id).all()]
