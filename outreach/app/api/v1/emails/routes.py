"""
Generated email endpoints - drafts, AI generation, Gmail send/reply/thread, tracking stats
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from outreach.app.core.config import GENERATE_RATE_LIMIT, GENERATE_RATE_WINDOW_SECONDS
from outreach.app.core.dependencies import get_current_user, get_db
from outreach.app.core.logging_config import get_logger
from outreach.app.models.generated_email import (
    EMAIL_PURPOSES,
    EMAIL_STATUSES,
    EMAIL_TONES,
    STATUS_SENT,
    GeneratedEmail,
)
from outreach.app.models.recipient import Recipient
from outreach.app.models.user import User
from outreach.app.schemas.email import (
    EmailCreate,
    EmailResponse,
    EmailUpdate,
    GenerateEmailRequest,
    GenerateEmailResponse,
    GenerateReplyRequest,
    ReplyRequest,
)
from outreach.app.services import ai_service, email_service, gmail_service, subscription_service
from outreach.app.services.ai_prompts import build_reply_prompt
from outreach.app.services.app_settings import get_setting
from outreach.app.services.rate_limit import check_rate_limit
from outreach.app.utils import cache
from outreach.app.utils.text import plain_text_to_html, truncate

logger = get_logger("api.emails")
router = APIRouter(prefix="/emails", tags=["emails"])

SUBJECT_MAX = 500
BODY_MAX = 50_000


def _get_owned_email(db: Session, email_id: int, user_id: int) -> GeneratedEmail:
    email = (
        db.query(GeneratedEmail)
        .filter(GeneratedEmail.id == email_id, GeneratedEmail.user_id == user_id)
        .first()
    )
    if not email:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Email not found")
    return email


def _get_owned_recipient(db: Session, recipient_id: Optional[int], user_id: int) -> Recipient:
    recipient = (
        db.query(Recipient)
        .filter(Recipient.id == recipient_id, Recipient.user_id == user_id)
        .first()
        if recipient_id
        else None
    )
    if not recipient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipient not found")
    return recipient


def _check_purpose_tone(purpose: Optional[str], tone: Optional[str]) -> None:
    if purpose is not None and purpose not in EMAIL_PURPOSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email purpose")
    if tone is not None and tone not in EMAIL_TONES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email tone")


def _require_thread(email: GeneratedEmail) -> None:
    if not email.gmail_thread_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This email does not have a Gmail thread associated",
        )


@router.get("")
def list_emails(
    status_filter: Optional[str] = Query(None, alias="status"),
    recipient_id: Optional[int] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Newest first, with open/click counts per email."""
    q = db.query(GeneratedEmail).filter(GeneratedEmail.user_id == current_user.id)
    if status_filter:
        if status_filter not in EMAIL_STATUSES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid status filter")
        q = q.filter(GeneratedEmail.status == status_filter)
    if recipient_id:
        q = q.filter(GeneratedEmail.recipient_id == recipient_id)
    total = q.count()
    emails = (
        q.order_by(GeneratedEmail.created_at.desc(), GeneratedEmail.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "emails": email_service.to_responses(db, emails),
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": (total + limit - 1) // limit,
        },
    }


@router.post("", response_model=EmailResponse, status_code=status.HTTP_201_CREATED)
async def create_email(
    body: EmailCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Save a draft for an owned recipient."""
    subject = truncate(body.subject, SUBJECT_MAX)
    text = (body.body or "").strip()[:BODY_MAX]
    if not body.recipient_id or not subject or not text:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Recipient, subject, and body are required",
        )
    _check_purpose_tone(body.purpose, body.tone)
    recipient = _get_owned_recipient(db, body.recipient_id, current_user.id)

    email = GeneratedEmail(
        user_id=current_user.id,
        recipient_id=recipient.id,
        subject=subject,
        body=text,
        purpose=body.purpose,
        tone=body.tone,
        attached_documents=email_service.owned_document_ids(db, current_user.id, body.attached_documents),
    )
    db.add(email)
    db.flush()
    email_service.link_attachments(db, email, body.attachment_ids)
    db.commit()
    db.refresh(email)
    logger.info("Email draft created user_id=%s email_id=%s recipient_id=%s", current_user.id, email.id, recipient.id)
    await cache.invalidate_dashboard(current_user.id)
    return email_service.to_response(email)


@router.post("/generate", response_model=GenerateEmailResponse)
def generate_email(
    body: GenerateEmailRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Draft subject and body with the AI provider. Rate limited per user, and counted
    against the free quota for non-Pro users.
    """
    limit = int(get_setting(db, "ai.rate_limit_per_minute", GENERATE_RATE_LIMIT))
    allowed, retry_after = check_rate_limit(f"generate:{current_user.id}", limit, GENERATE_RATE_WINDOW_SECONDS)
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please wait a minute before generating more emails.",
            headers={"Retry-After": str(retry_after)},
        )

    quota = subscription_service.can_generate_email(db, current_user)
    if not quota["allowed"]:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": quota["reason"], "requires_upgrade": True},
        )

    _check_purpose_tone(body.purpose, body.tone)
    recipient = _get_owned_recipient(db, body.recipient_id, current_user.id)
    try:
        provider = ai_service.resolve_provider(db, body.provider)
    except ai_service.AIProviderError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        result = ai_service.generate_email(
            provider,
            ai_service.get_user_context(db, current_user),
            ai_service.get_recipient_context(recipient),
            body.purpose,
            body.tone,
            body.additional_context,
        )
    except ai_service.AIProviderError as e:
        ai_service.record_ai_usage(db, current_user.id, provider, "generate_email", success=False, error=str(e))
        logger.warning("Email generation failed user_id=%s provider=%s error=%s", current_user.id, provider, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    subscription_service.increment_email_usage(db, current_user)
    ai_service.record_ai_usage(db, current_user.id, provider, "generate_email")
    return GenerateEmailResponse(subject=result["subject"], body=result["body"], provider=provider)


@router.get("/{email_id}", response_model=EmailResponse)
def get_email(
    email_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    email = _get_owned_email(db, email_id, current_user.id)
    return email_service.to_responses(db, [email])[0]


@router.put("/{email_id}", response_model=EmailResponse)
def update_email(
    email_id: int,
    body: EmailUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    email = _get_owned_email(db, email_id, current_user.id)
    if email.status == STATUS_SENT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot edit a sent email")
    _check_purpose_tone(body.purpose, body.tone)

    if body.subject is not None:
        subject = truncate(body.subject, SUBJECT_MAX)
        if not subject:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Subject cannot be empty")
        email.subject = subject
    if body.body is not None:
        text = body.body.strip()[:BODY_MAX]
        if not text:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Body cannot be empty")
        email.body = text
    if body.purpose is not None:
        email.purpose = body.purpose
    if body.tone is not None:
        email.tone = body.tone
    if body.attached_documents is not None:
        email.attached_documents = email_service.owned_document_ids(db, current_user.id, body.attached_documents)
    if body.attachment_ids is not None:
        email_service.link_attachments(db, email, body.attachment_ids)
    db.commit()
    db.refresh(email)
    return email_service.to_responses(db, [email])[0]


@router.delete("/{email_id}")
async def delete_email(
    email_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    email = _get_owned_email(db, email_id, current_user.id)
    db.delete(email)
    db.commit()
    logger.info("Email deleted user_id=%s email_id=%s", current_user.id, email_id)
    await cache.invalidate_dashboard(current_user.id)
    return {"success": True}


@router.post("/{email_id}/send", response_model=EmailResponse)
async def send_email(
    email_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Send through the user's connected Gmail with open and click tracking."""
    if gmail_service.get_connection(db, current_user.id) is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Gmail not connected. Please connect Gmail in settings.",
        )
    email = _get_owned_email(db, email_id, current_user.id)
    if email.status == STATUS_SENT:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email has already been sent")

    try:
        email = await run_in_threadpool(email_service.send_email, db, email)
    except email_service.EmailSendError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to send email. Please try again.",
        )
    await cache.invalidate_dashboard(current_user.id)
    return email_service.to_response(email)


@router.get("/{email_id}/thread")
def get_thread(
    email_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Gmail conversation for a sent email; refreshes the stored reply count."""
    email = _get_owned_email(db, email_id, current_user.id)
    _require_thread(email)
    try:
        messages = gmail_service.get_thread_messages(db, current_user.id, email.gmail_thread_id)
    except gmail_service.GmailNotConnectedError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Gmail not connected")
    except gmail_service.GmailAuthError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except gmail_service.GmailAPIError:
        logger.exception("Thread fetch failed user_id=%s email_id=%s", current_user.id, email.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load conversation")

    reply_count = email_service.reconcile_thread(db, email, messages)
    recipient = email.recipient
    return {
        "email": {
            "id": email.id,
            "subject": email.subject,
            "sent_at": email.sent_at,
            "conversation_read": email.conversation_read,
            "recipient": {
                "name": recipient.name,
                "email": recipient.email,
                "organization": recipient.organization,
            },
        },
        "thread": {
            "id": email.gmail_thread_id,
            "message_count": len(messages),
            "reply_count": reply_count,
            "messages": messages,
        },
    }


@router.post("/{email_id}/reply")
def reply_to_email(
    email_id: int,
    body: ReplyRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Reply in the Gmail thread to the latest counterpart."""
    text = (body.body or "").strip()
    if not text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reply body is required")
    email = _get_owned_email(db, email_id, current_user.id)
    if not email.gmail_thread_id or not email.gmail_message_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="This email does not have a Gmail thread associated",
        )

    try:
        messages = gmail_service.get_thread_messages(db, current_user.id, email.gmail_thread_id)
        latest, to_addr = email_service.reply_target(email, messages)
        if latest is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Could not find messages in thread")
        result = gmail_service.send_message(
            db,
            current_user.id,
            to_addr,
            email_service.reply_subject(email.subject),
            plain_text_to_html(text),
            thread_id=email.gmail_thread_id,
            in_reply_to=latest.get("message_id") or None,
        )
    except HTTPException:
        raise
    except gmail_service.GmailNotConnectedError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Gmail not connected")
    except gmail_service.GmailAuthError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except gmail_service.GmailAPIError:
        logger.exception("Reply failed user_id=%s email_id=%s", current_user.id, email.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send reply")

    email.conversation_read = True
    db.commit()
    return {"success": True, "message_id": result.get("id"), "thread_id": result.get("threadId")}


@router.post("/{email_id}/read")
def mark_read(
    email_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    email = _get_owned_email(db, email_id, current_user.id)
    email.conversation_read = True
    db.commit()
    return {"success": True}


@router.get("/{email_id}/tracking")
def get_tracking(
    email_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Open and click statistics for a sent email."""
    email = _get_owned_email(db, email_id, current_user.id)
    return email_service.tracking_stats(db, email)


@router.post("/{email_id}/generate-reply")
def generate_reply(
    email_id: int,
    body: GenerateReplyRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """AI-drafted reply based on the Gmail conversation. Nothing is sent."""
    email = _get_owned_email(db, email_id, current_user.id)
    _require_thread(email)
    try:
        provider = ai_service.resolve_provider(db, body.provider)
    except ai_service.AIProviderError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        messages = gmail_service.get_thread_messages(db, current_user.id, email.gmail_thread_id)
    except gmail_service.GmailNotConnectedError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Gmail not connected")
    except gmail_service.GmailAuthError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except gmail_service.GmailAPIError:
        logger.exception("Thread fetch failed user_id=%s email_id=%s", current_user.id, email.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to load conversation")

    prompt = build_reply_prompt(current_user.name, email.recipient.name, messages, body.instructions)
    try:
        reply = ai_service.generate_reply(provider, prompt)
    except ai_service.AIProviderError as e:
        ai_service.record_ai_usage(db, current_user.id, provider, "generate_reply", success=False, error=str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    ai_service.record_ai_usage(db, current_user.id, provider, "generate_reply")
    return {"body": reply, "provider": provider}
