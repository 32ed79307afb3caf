"""
Admin API - users, promo codes, announcements, support, feedback, payments, emails,
AI usage, analytics, audit logs, broadcasts and runtime settings.
Every route requires an admin session; every mutation writes an audit log entry.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session

from outreach.app.core.dependencies import get_db, require_admin
from outreach.app.core.logging_config import get_logger
from outreach.app.models.admin import AppSetting, AuditLog, EmailBroadcast
from outreach.app.models.analytics import AIUsage
from outreach.app.models.billing import PaymentTransaction, PromoCode
from outreach.app.models.generated_email import GeneratedEmail
from outreach.app.models.support import Announcement, Feedback, SupportTicket
from outreach.app.models.user import User
from outreach.app.schemas.admin import (
    AnnouncementCreate,
    AnnouncementUpdate,
    BroadcastCreate,
    BroadcastResponse,
    BroadcastUpdate,
    PromoCodeCreate,
    PromoCodeResponse,
    PromoCodeUpdate,
    SupportTicketUpdate,
    UserActionRequest,
)
from outreach.app.schemas.support import AnnouncementResponse, FeedbackResponse, SupportTicketResponse
from outreach.app.services import admin_service, mailer
from outreach.app.services.app_settings import list_settings_grouped, upsert_setting
from outreach.app.services.audit import create_audit_log
from outreach.app.services.promo_service import normalize_code
from outreach.app.utils import cache

logger = get_logger("api.admin")
router = APIRouter(prefix="/admin", tags=["admin"])

TICKET_CLOSED_STATUSES = ("RESOLVED", "CLOSED")


def _get_or_404(db: Session, model, entity_id: int, label: str):
    row = db.query(model).filter(model.id == entity_id).first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return row


def _validation_detail(e: ValidationError) -> str:
    first = e.errors()[0] if e.errors() else {}
    loc = ".".join(str(p) for p in first.get("loc", ()))
    return f"{loc}: {first.get('msg', 'Invalid value')}" if loc else first.get("msg", "Invalid value")


# --- Stats ---

@router.get("/stats")
def stats(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return admin_service.get_admin_stats(db)


# --- Users ---

@router.get("/users")
def list_users(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(User)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(or_(User.email.ilike(term), User.name.ilike(term)))
    users, pagination = admin_service.paginate(query.order_by(User.created_at.desc(), User.id.desc()), page, limit)
    return {
        "users": [admin_service.user_summary(db, u) for u in users],
        "pagination": pagination,
    }


@router.get("/users/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = _get_or_404(db, User, user_id, "User")
    return admin_service.user_detail(db, user)


@router.patch("/users/{user_id}")
async def update_user(
    user_id: int,
    body: UserActionRequest,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Apply one action: role change, status change, Pro grant/revoke, or free-usage reset."""
    user = _get_or_404(db, User, user_id, "User")
    try:
        old, new = admin_service.apply_user_action(db, admin, user, body.action, body.months)
    except admin_service.AdminActionError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    create_audit_log(
        db,
        user_id=admin.id,
        action=body.action.upper(),
        entity_type="User",
        entity_id=user.id,
        old_value=old,
        new_value=new,
        request=request,
    )
    await cache.invalidate_dashboard(user.id)
    return admin_service.user_detail(db, user)


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = _get_or_404(db, User, user_id, "User")
    if user.id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete your own account")
    snapshot = {"email": user.email, "name": user.name}
    try:
        admin_service.delete_user_data(db, user)
    except Exception:
        db.rollback()
        logger.exception("Delete user failed user_id=%s", user_id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to delete user")
    create_audit_log(
        db, user_id=admin.id, action="DELETE_USER", entity_type="User",
        entity_id=user_id, old_value=snapshot, request=request,
    )
    return {"success": True}


# --- Promo codes ---

@router.get("/promo-codes", response_model=List[PromoCodeResponse])
def list_promo_codes(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return db.query(PromoCode).order_by(PromoCode.created_at.desc()).all()


@router.post("/promo-codes", response_model=PromoCodeResponse, status_code=status.HTTP_201_CREATED)
def create_promo_code(
    body: PromoCodeCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    code = normalize_code(body.code)
    if not code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Code is required")
    if db.query(PromoCode).filter(PromoCode.code == code).first():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Promo code already exists")
    if body.discount_type == "PERCENTAGE" and body.discount_value > 100:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Percentage discount cannot exceed 100")

    data = body.model_dump(exclude={"code", "valid_from"})
    promo = PromoCode(code=code, created_by=admin.id, valid_from=body.valid_from or datetime.utcnow(), **data)
    db.add(promo)
    db.commit()
    db.refresh(promo)
    create_audit_log(
        db, user_id=admin.id, action="CREATE_PROMO_CODE", entity_type="PromoCode",
        entity_id=promo.id, new_value=body.model_dump(mode="json") | {"code": code}, request=request,
    )
    return promo


@router.put("/promo-codes/{promo_id}", response_model=PromoCodeResponse)
def update_promo_code(
    promo_id: int,
    body: PromoCodeUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    promo = _get_or_404(db, PromoCode, promo_id, "Promo code")
    changes = body.model_dump(exclude_unset=True)
    discount_type = changes.get("discount_type", promo.discount_type)
    discount_value = changes.get("discount_value", promo.discount_value)
    if discount_type == "PERCENTAGE" and discount_value is not None and discount_value > 100:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Percentage discount cannot exceed 100")
    old = {k: getattr(promo, k) for k in changes}
    for key, value in changes.items():
        setattr(promo, key, value)
    db.commit()
    db.refresh(promo)
    create_audit_log(
        db, user_id=admin.id, action="UPDATE_PROMO_CODE", entity_type="PromoCode", entity_id=promo.id,
        old_value={k: (v.isoformat() if isinstance(v, datetime) else v) for k, v in old.items()},
        new_value=body.model_dump(mode="json", exclude_unset=True), request=request,
    )
    return promo


@router.delete("/promo-codes/{promo_id}")
def delete_promo_code(
    promo_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    promo = _get_or_404(db, PromoCode, promo_id, "Promo code")
    code = promo.code
    db.delete(promo)
    db.commit()
    create_audit_log(
        db, user_id=admin.id, action="DELETE_PROMO_CODE", entity_type="PromoCode",
        entity_id=promo_id, old_value={"code": code}, request=request,
    )
    return {"success": True}


# --- Announcements ---

@router.get("/announcements", response_model=List[AnnouncementResponse])
def list_announcements(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return db.query(Announcement).order_by(Announcement.created_at.desc()).all()


@router.post("/announcements", response_model=AnnouncementResponse, status_code=status.HTTP_201_CREATED)
def create_announcement(
    body: AnnouncementCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    data = body.model_dump(exclude={"starts_at"})
    announcement = Announcement(created_by=admin.id, starts_at=body.starts_at or datetime.utcnow(), **data)
    db.add(announcement)
    db.commit()
    db.refresh(announcement)
    create_audit_log(
        db, user_id=admin.id, action="CREATE_ANNOUNCEMENT", entity_type="Announcement",
        entity_id=announcement.id, new_value={"title": announcement.title}, request=request,
    )
    return announcement


@router.put("/announcements/{announcement_id}", response_model=AnnouncementResponse)
def update_announcement(
    announcement_id: int,
    body: AnnouncementUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    announcement = _get_or_404(db, Announcement, announcement_id, "Announcement")
    changes = body.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(announcement, key, value)
    db.commit()
    db.refresh(announcement)
    create_audit_log(
        db, user_id=admin.id, action="UPDATE_ANNOUNCEMENT", entity_type="Announcement",
        entity_id=announcement.id, new_value=body.model_dump(mode="json", exclude_unset=True), request=request,
    )
    return announcement


@router.delete("/announcements/{announcement_id}")
def delete_announcement(
    announcement_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    announcement = _get_or_404(db, Announcement, announcement_id, "Announcement")
    title = announcement.title
    db.delete(announcement)
    db.commit()
    create_audit_log(
        db, user_id=admin.id, action="DELETE_ANNOUNCEMENT", entity_type="Announcement",
        entity_id=announcement_id, old_value={"title": title}, request=request,
    )
    return {"success": True}


# --- Support tickets ---

@router.get("/support")
def list_tickets(
    ticket_status: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(SupportTicket)
    if ticket_status:
        query = query.filter(SupportTicket.status == ticket_status)
    tickets, pagination = admin_service.paginate(query.order_by(SupportTicket.created_at.desc()), page, limit)
    emails = dict(db.query(User.id, User.email).filter(User.id.in_({t.user_id for t in tickets})).all())
    return {
        "tickets": [
            SupportTicketResponse.model_validate(t).model_dump() | {"user_email": emails.get(t.user_id)}
            for t in tickets
        ],
        "pagination": pagination,
    }


@router.patch("/support/{ticket_id}", response_model=SupportTicketResponse)
def update_ticket(
    ticket_id: int,
    body: SupportTicketUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    ticket = _get_or_404(db, SupportTicket, ticket_id, "Support ticket")
    old = {"status": ticket.status, "priority": ticket.priority}
    if body.status is not None:
        ticket.status = body.status
        if body.status in TICKET_CLOSED_STATUSES:
            ticket.resolved_at = datetime.utcnow()
    if body.priority is not None:
        ticket.priority = body.priority
    if body.admin_notes is not None:
        ticket.admin_notes = body.admin_notes
    db.commit()
    db.refresh(ticket)
    create_audit_log(
        db, user_id=admin.id, action="UPDATE_SUPPORT_TICKET", entity_type="SupportTicket",
        entity_id=ticket.id, old_value=old,
        new_value={"status": ticket.status, "priority": ticket.priority}, request=request,
    )
    return ticket


# --- Feedback ---

@router.get("/feedback")
def list_feedback(
    feedback_type: Optional[str] = Query(None, alias="type"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(Feedback)
    if feedback_type:
        query = query.filter(Feedback.type == feedback_type)
    items, pagination = admin_service.paginate(query.order_by(Feedback.created_at.desc()), page, limit)
    return {
        "feedback": [FeedbackResponse.model_validate(f) for f in items],
        "pagination": pagination,
    }


@router.delete("/feedback/{feedback_id}")
def delete_feedback(
    feedback_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    feedback = _get_or_404(db, Feedback, feedback_id, "Feedback")
    db.delete(feedback)
    db.commit()
    create_audit_log(
        db, user_id=admin.id, action="DELETE_FEEDBACK", entity_type="Feedback",
        entity_id=feedback_id, request=request,
    )
    return {"success": True}


# --- Payments ---

@router.get("/payments")
def list_payments(
    provider: Optional[str] = None,
    payment_status: Optional[str] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(PaymentTransaction)
    if provider:
        query = query.filter(PaymentTransaction.provider == provider.upper())
    if payment_status:
        query = query.filter(PaymentTransaction.status == payment_status)
    rows, pagination = admin_service.paginate(query.order_by(PaymentTransaction.created_at.desc()), page, limit)
    users = {u.id: u for u in db.query(User).filter(User.id.in_({t.user_id for t in rows})).all()}
    return {
        "transactions": [
            {
                "id": t.id,
                "provider": t.provider,
                "external_id": t.external_id,
                "amount": t.amount,
                "currency": t.currency,
                "status": t.status,
                "promo_code": t.promo_code,
                "discount_amount": t.discount_amount,
                "description": t.description,
                "created_at": t.created_at,
                "user": {
                    "id": users[t.user_id].id,
                    "email": users[t.user_id].email,
                    "name": users[t.user_id].name,
                } if t.user_id in users else None,
            }
            for t in rows
        ],
        "pagination": pagination,
        "stats": admin_service.revenue_stats(db),
    }


# --- Emails ---

@router.get("/emails")
def list_emails(
    email_status: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(GeneratedEmail)
    if email_status:
        query = query.filter(GeneratedEmail.status == email_status)
    if search and search.strip():
        term = f"%{search.strip()}%"
        query = query.filter(or_(GeneratedEmail.subject.ilike(term), GeneratedEmail.body.ilike(term)))
    rows, pagination = admin_service.paginate(query.order_by(GeneratedEmail.created_at.desc()), page, limit)
    owners = dict(db.query(User.id, User.email).filter(User.id.in_({e.user_id for e in rows})).all())
    return {
        "emails": [
            {
                "id": e.id,
                "subject": e.subject,
                "status": e.status,
                "purpose": e.purpose,
                "tone": e.tone,
                "sent_at": e.sent_at,
                "created_at": e.created_at,
                "user_email": owners.get(e.user_id),
                "recipient": {
                    "id": e.recipient.id,
                    "name": e.recipient.name,
                    "email": e.recipient.email,
                    "organization": e.recipient.organization,
                } if e.recipient else None,
                "open_count": len(e.opens),
                "click_count": len(e.clicks),
            }
            for e in rows
        ],
        "pagination": pagination,
        "stats": admin_service.email_stats(db),
    }


# --- AI usage & analytics ---

@router.get("/ai-usage")
def ai_usage(
    period: str = "7d",
    provider: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    start = admin_service.period_start(period)
    query = db.query(AIUsage).filter(AIUsage.created_at >= start)
    if provider:
        query = query.filter(AIUsage.provider == provider)
    rows, pagination = admin_service.paginate(query.order_by(AIUsage.created_at.desc()), page, limit)
    users = dict(db.query(User.id, User.email).filter(User.id.in_({u.user_id for u in rows if u.user_id})).all())
    return {
        "usage": [
            {
                "id": u.id,
                "provider": u.provider,
                "model": u.model,
                "operation": u.operation,
                "success": u.success,
                "error_message": u.error_message,
                "user_email": users.get(u.user_id),
                "created_at": u.created_at,
            }
            for u in rows
        ],
        "pagination": pagination,
        **admin_service.ai_usage_stats(db, start, provider),
    }


@router.get("/analytics")
def analytics(
    period: str = "7d",
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    return admin_service.analytics(db, period)


@router.get("/audit-logs")
def list_audit_logs(
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(AuditLog)
    if action:
        query = query.filter(AuditLog.action == action)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    rows, pagination = admin_service.paginate(query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()), page, limit)
    return {
        "logs": [
            {
                "id": log.id,
                "user_id": log.user_id,
                "action": log.action,
                "entity_type": log.entity_type,
                "entity_id": log.entity_id,
                "old_value": log.old_value,
                "new_value": log.new_value,
                "ip_address": log.ip_address,
                "created_at": log.created_at,
            }
            for log in rows
        ],
        "pagination": pagination,
    }


# --- Broadcasts ---

@router.get("/broadcasts", response_model=List[BroadcastResponse])
def list_broadcasts(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return db.query(EmailBroadcast).order_by(EmailBroadcast.created_at.desc()).all()


@router.post("/broadcasts", response_model=BroadcastResponse, status_code=status.HTTP_201_CREATED)
def create_broadcast(
    body: BroadcastCreate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    if body.target_type == "SPECIFIC_USERS" and not body.target_user_ids:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Select at least one user")
    broadcast = EmailBroadcast(created_by=admin.id, status="DRAFT", **body.model_dump())
    db.add(broadcast)
    db.commit()
    db.refresh(broadcast)
    create_audit_log(
        db, user_id=admin.id, action="CREATE_BROADCAST", entity_type="EmailBroadcast",
        entity_id=broadcast.id, new_value={"subject": broadcast.subject, "target_type": broadcast.target_type},
        request=request,
    )
    return broadcast


@router.put("/broadcasts/{broadcast_id}", response_model=BroadcastResponse)
def update_broadcast(
    broadcast_id: int,
    body: BroadcastUpdate,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    broadcast = _get_or_404(db, EmailBroadcast, broadcast_id, "Broadcast")
    if broadcast.status != "DRAFT":
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Only draft broadcasts can be edited")
    changes = body.model_dump(exclude_unset=True)
    for key, value in changes.items():
        setattr(broadcast, key, value)
    db.commit()
    db.refresh(broadcast)
    create_audit_log(
        db, user_id=admin.id, action="UPDATE_BROADCAST", entity_type="EmailBroadcast",
        entity_id=broadcast.id, new_value=changes, request=request,
    )
    return broadcast


@router.delete("/broadcasts/{broadcast_id}")
def delete_broadcast(
    broadcast_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    broadcast = _get_or_404(db, EmailBroadcast, broadcast_id, "Broadcast")
    subject = broadcast.subject
    db.delete(broadcast)
    db.commit()
    create_audit_log(
        db, user_id=admin.id, action="DELETE_BROADCAST", entity_type="EmailBroadcast",
        entity_id=broadcast_id, old_value={"subject": subject}, request=request,
    )
    return {"success": True}


@router.post("/broadcasts/{broadcast_id}/send")
def send_broadcast(
    broadcast_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Send synchronously over SMTP. Per-recipient failures are counted, not raised."""
    broadcast = _get_or_404(db, EmailBroadcast, broadcast_id, "Broadcast")
    if broadcast.status in ("SENDING", "SENT"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Broadcast has already been sent")
    if not mailer.is_email_configured():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Email service is not configured. Set SMTP or Gmail credentials.",
        )

    recipients = admin_service.broadcast_recipients(db, broadcast)
    broadcast.status = "SENDING"
    db.commit()

    result = mailer.send_bulk_emails(recipients, broadcast.subject, broadcast.content)
    broadcast.sent_count = result["sent"]
    broadcast.failed_count = result["failed"]
    broadcast.status = "FAILED" if recipients and result["sent"] == 0 else "SENT"
    broadcast.sent_at = datetime.utcnow()
    db.commit()
    logger.info(
        "Broadcast sent broadcast_id=%s recipients=%s sent=%s failed=%s",
        broadcast.id, len(recipients), result["sent"], result["failed"],
    )
    create_audit_log(
        db, user_id=admin.id, action="SEND_BROADCAST", entity_type="EmailBroadcast", entity_id=broadcast.id,
        new_value={"recipients": len(recipients), "sent": result["sent"], "failed": result["failed"]},
        request=request,
    )
    return {
        "success": True,
        "status": broadcast.status,
        "recipients": len(recipients),
        "sent": result["sent"],
        "failed": result["failed"],
    }


# --- Runtime settings ---

@router.get("/settings")
def get_settings(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return {"settings": list_settings_grouped(db)}


@router.put("/settings")
def put_setting(
    request: Request,
    body: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Upsert one setting. Unknown keys and values of the wrong shape are rejected with 400."""
    key = body.get("key")
    old = db.query(AppSetting.value).filter(AppSetting.key == key).first() if isinstance(key, str) else None
    try:
        row = upsert_setting(db, body, admin.id)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=_validation_detail(e))
    create_audit_log(
        db, user_id=admin.id, action="UPDATE_SETTING", entity_type="AppSetting", entity_id=row.key,
        old_value={"value": old[0]} if old else None, new_value={"value": row.value}, request=request,
    )
    return {"key": row.key, "value": row.value, "category": row.category, "description": row.description}


@router.delete("/settings/{key}")
def delete_setting(
    key: str,
    request: Request,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    row = db.query(AppSetting).filter(AppSetting.key == key).first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Setting not found")
    old_value = row.value
    db.delete(row)
    db.commit()
    create_audit_log(
        db, user_id=admin.id, action="DELETE_SETTING", entity_type="AppSetting", entity_id=key,
        old_value={"value": old_value}, request=request,
    )
    return {"success": True}
