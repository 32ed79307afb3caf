"""
Generated-email workflows: response shaping, sending through Gmail, thread
reconciliation and tracking statistics.
"""
from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from outreach.app.core.config import ATTACHMENTS_SUBDIR, DOCUMENTS_SUBDIR
from outreach.app.core.logging_config import get_logger
from outreach.app.models.document import Document
from outreach.app.models.email_tracking import EmailOpen, LinkClick
from outreach.app.models.generated_email import (
    STATUS_FAILED,
    STATUS_SENT,
    EmailAttachment,
    GeneratedEmail,
)
from outreach.app.schemas.email import EmailResponse
from outreach.app.services import gmail_service, storage
from outreach.app.services.email_tracking import add_tracking_to_email, generate_tracking_id
from outreach.app.utils.text import parse_email_address, plain_text_to_html

logger = get_logger("services.email")

RECENT_EVENTS_LIMIT = 10


class EmailSendError(Exception):
    """Gmail rejected or failed the send; the email row is already marked FAILED."""


def tracking_counts(db: Session, email_ids: Iterable[int]) -> tuple[dict[int, int], dict[int, int]]:
    ids = list(email_ids)
    if not ids:
        return {}, {}
    opens = dict(
        db.query(EmailOpen.email_id, func.count(EmailOpen.id))
        .filter(EmailOpen.email_id.in_(ids))
        .group_by(EmailOpen.email_id)
        .all()
    )
    clicks = dict(
        db.query(LinkClick.email_id, func.count(LinkClick.id))
        .filter(LinkClick.email_id.in_(ids))
        .group_by(LinkClick.email_id)
        .all()
    )
    return opens, clicks


def to_response(email: GeneratedEmail, open_count: int = 0, click_count: int = 0) -> EmailResponse:
    resp = EmailResponse.model_validate(email)
    resp.attached_documents = list(email.attached_documents or [])
    resp.open_count = open_count
    resp.click_count = click_count
    return resp


def to_responses(db: Session, emails: list[GeneratedEmail]) -> list[EmailResponse]:
    opens, clicks = tracking_counts(db, (e.id for e in emails))
    return [to_response(e, opens.get(e.id, 0), clicks.get(e.id, 0)) for e in emails]


def owned_document_ids(db: Session, user_id: int, ids: Iterable[int]) -> list[int]:
    """Keep only ids of documents the user owns, preserving order."""
    wanted = [int(i) for i in ids]
    if not wanted:
        return []
    owned = {
        row[0]
        for row in db.query(Document.id).filter(Document.user_id == user_id, Document.id.in_(wanted)).all()
    }
    return [i for i in dict.fromkeys(wanted) if i in owned]


def link_attachments(db: Session, email: GeneratedEmail, attachment_ids: Iterable[int]) -> None:
    """Point the given owned attachments at this email; others previously linked are released."""
    ids = [int(i) for i in attachment_ids]
    for att in list(email.attachments):
        if att.id not in ids:
            att.email_id = None
    if not ids:
        return
    for att in (
        db.query(EmailAttachment)
        .filter(EmailAttachment.user_id == email.user_id, EmailAttachment.id.in_(ids))
        .all()
    ):
        att.email_id = email.id


def _outgoing_attachments(db: Session, email: GeneratedEmail) -> list[gmail_service.OutgoingAttachment]:
    out = []
    doc_ids = owned_document_ids(db, email.user_id, email.attached_documents or [])
    if doc_ids:
        for doc in db.query(Document).filter(Document.id.in_(doc_ids)).all():
            out.append(gmail_service.OutgoingAttachment(
                filename=doc.name,
                content=storage.read_file(DOCUMENTS_SUBDIR, doc.file_name),
                mime_type=doc.mime_type or "application/octet-stream",
            ))
    for att in email.attachments:
        out.append(gmail_service.OutgoingAttachment(
            filename=att.original_name,
            content=storage.read_file(ATTACHMENTS_SUBDIR, att.file_name),
            mime_type=att.mime_type or "application/octet-stream",
        ))
    return out


def send_email(db: Session, email: GeneratedEmail) -> GeneratedEmail:
    """
    Send a draft (or previously failed) email through the owner's Gmail with open/click
    tracking. On failure the row is marked FAILED and EmailSendError is raised.
    """
    tracking_id = email.tracking_id or generate_tracking_id()
    html_body = add_tracking_to_email(plain_text_to_html(email.body), tracking_id)
    try:
        attachments = _outgoing_attachments(db, email)
        result = gmail_service.send_message(
            db,
            email.user_id,
            email.recipient.email,
            email.subject,
            html_body,
            attachments=attachments,
        )
    except (gmail_service.GmailAPIError, OSError) as e:
        email.status = STATUS_FAILED
        email.error_message = str(e)[:1000] or "Failed to send email"
        db.commit()
        logger.warning("Email send failed user_id=%s email_id=%s error=%s", email.user_id, email.id, e)
        raise EmailSendError(str(e)) from e

    email.status = STATUS_SENT
    email.sent_at = datetime.utcnow()
    email.tracking_id = tracking_id
    email.gmail_message_id = result.get("id")
    email.gmail_thread_id = result.get("threadId")
    email.error_message = None
    db.commit()
    db.refresh(email)
    logger.info("Email sent user_id=%s email_id=%s tracking_id=%s", email.user_id, email.id, tracking_id)
    return email


def _message_time(message: dict) -> Optional[datetime]:
    raw = message.get("date")
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def reconcile_thread(db: Session, email: GeneratedEmail, messages: list[dict]) -> int:
    """
    Update reply_count / last_reply_at from the Gmail thread. New replies mark the
    conversation unread. Returns the reply count.
    """
    replies = [m for m in messages if not m.get("is_from_me")]
    reply_count = len(replies)
    if reply_count != (email.reply_count or 0):
        if reply_count > (email.reply_count or 0):
            email.conversation_read = False
        email.reply_count = reply_count
        times = [t for t in (_message_time(m) for m in replies) if t]
        email.last_reply_at = max(times) if times else datetime.utcnow()
        db.commit()
    return reply_count


def reply_target(email: GeneratedEmail, messages: list[dict]) -> tuple[Optional[dict], str]:
    """(latest message, address to reply to). Our own latest message means reply to the recipient."""
    latest = messages[-1] if messages else None
    if latest is None or latest.get("is_from_me"):
        return latest, email.recipient.email
    return latest, parse_email_address(latest.get("from") or "") or email.recipient.email


def reply_subject(subject: str) -> str:
    return subject if subject.lower().startswith("re:") else f"Re: {subject}"


def tracking_stats(db: Session, email: GeneratedEmail) -> dict:
    opens = (
        db.query(EmailOpen)
        .filter(EmailOpen.email_id == email.id)
        .order_by(EmailOpen.opened_at.desc(), EmailOpen.id.desc())
        .all()
    )
    clicks = (
        db.query(LinkClick)
        .filter(LinkClick.email_id == email.id)
        .order_by(LinkClick.clicked_at.desc(), LinkClick.id.desc())
        .all()
    )
    by_url: dict[str, int] = {}
    for c in clicks:
        by_url[c.original_url] = by_url.get(c.original_url, 0) + 1
    return {
        "email_id": email.id,
        "tracking_id": email.tracking_id,
        "opens": {
            "total": len(opens),
            "unique": len({o.ip_address for o in opens}),
            "recent": [
                {"opened_at": o.opened_at, "ip_address": o.ip_address, "user_agent": o.user_agent}
                for o in opens[:RECENT_EVENTS_LIMIT]
            ],
        },
        "clicks": {
            "total": len(clicks),
            "unique": len({(c.ip_address, c.original_url) for c in clicks}),
            "by_url": by_url,
            "recent": [
                {"clicked_at": c.clicked_at, "url": c.original_url, "ip_address": c.ip_address}
                for c in clicks[:RECENT_EVENTS_LIMIT]
            ],
        },
    }
