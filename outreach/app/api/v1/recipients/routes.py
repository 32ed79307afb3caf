"""
Recipient CRM endpoints
"""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from outreach.app.core.dependencies import get_current_user, get_db
from outreach.app.core.logging_config import get_logger
from outreach.app.models.generated_email import GeneratedEmail
from outreach.app.models.recipient import Recipient
from outreach.app.models.user import User
from outreach.app.schemas.recipient import (
    FIELD_LIMITS,
    RecipientEmailSummary,
    RecipientIn,
    RecipientResponse,
)
from outreach.app.utils import cache
from outreach.app.utils.text import is_valid_email, truncate

logger = get_logger("api.recipients")
router = APIRouter(prefix="/recipients", tags=["recipients"])

RECENT_EMAILS_LIMIT = 5


def _clean_fields(body: RecipientIn, partial: bool) -> dict:
    """Truncated column values; raises 400 for missing name/email or a malformed email."""
    sent = body.model_fields_set if partial else set(FIELD_LIMITS)
    # Validate the address as sent; truncation could cut off its domain
    raw_email = body.email if "email" in sent else None
    if raw_email and not is_valid_email(raw_email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email format")
    data = {
        field: truncate(getattr(body, field), limit)
        for field, limit in FIELD_LIMITS.items()
        if field in sent
    }
    if not partial and (not data.get("name") or not data.get("email")):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name and email are required")
    if partial and (("name" in data and not data["name"]) or ("email" in data and not data["email"])):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name and email are required")
    return data


def _get_owned_recipient(db: Session, recipient_id: int, user_id: int) -> Recipient:
    recipient = (
        db.query(Recipient)
        .filter(Recipient.id == recipient_id, Recipient.user_id == user_id)
        .first()
    )
    if not recipient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Recipient not found")
    return recipient


def _email_count(db: Session, recipient_id: int) -> int:
    return db.query(func.count(GeneratedEmail.id)).filter(GeneratedEmail.recipient_id == recipient_id).scalar() or 0


def _to_response(db: Session, recipient: Recipient, with_recent: bool = False) -> RecipientResponse:
    resp = RecipientResponse.model_validate(recipient)
    resp.email_count = _email_count(db, recipient.id)
    if with_recent:
        recent = (
            db.query(GeneratedEmail)
            .filter(GeneratedEmail.recipient_id == recipient.id)
            .order_by(GeneratedEmail.created_at.desc(), GeneratedEmail.id.desc())
            .limit(RECENT_EMAILS_LIMIT)
            .all()
        )
        resp.recent_emails = [RecipientEmailSummary.model_validate(e) for e in recent]
    return resp


@router.get("", response_model=List[RecipientResponse])
def list_recipients(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    counts = dict(
        db.query(GeneratedEmail.recipient_id, func.count(GeneratedEmail.id))
        .filter(GeneratedEmail.user_id == current_user.id)
        .group_by(GeneratedEmail.recipient_id)
        .all()
    )
    recipients = (
        db.query(Recipient)
        .filter(Recipient.user_id == current_user.id)
        .order_by(Recipient.created_at.desc(), Recipient.id.desc())
        .all()
    )
    result = []
    for r in recipients:
        resp = RecipientResponse.model_validate(r)
        resp.email_count = counts.get(r.id, 0)
        result.append(resp)
    return result


@router.post("", response_model=RecipientResponse, status_code=status.HTTP_201_CREATED)
async def create_recipient(
    body: RecipientIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    recipient = Recipient(user_id=current_user.id, **_clean_fields(body, partial=False))
    db.add(recipient)
    db.commit()
    db.refresh(recipient)
    logger.info("Recipient created user_id=%s recipient_id=%s", current_user.id, recipient.id)
    await cache.invalidate_dashboard(current_user.id)
    return _to_response(db, recipient)


@router.get("/{recipient_id}", response_model=RecipientResponse)
def get_recipient(
    recipient_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _to_response(db, _get_owned_recipient(db, recipient_id, current_user.id), with_recent=True)


@router.put("/{recipient_id}", response_model=RecipientResponse)
def update_recipient(
    recipient_id: int,
    body: RecipientIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    recipient = _get_owned_recipient(db, recipient_id, current_user.id)
    for key, value in _clean_fields(body, partial=True).items():
        setattr(recipient, key, value)
    db.commit()
    db.refresh(recipient)
    return _to_response(db, recipient)


@router.delete("/{recipient_id}")
async def delete_recipient(
    recipient_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete the recipient and every email drafted for it."""
    recipient = _get_owned_recipient(db, recipient_id, current_user.id)
    db.delete(recipient)
    db.commit()
    logger.info("Recipient deleted user_id=%s recipient_id=%s", current_user.id, recipient_id)
    await cache.invalidate_dashboard(current_user.id)
    return {"success": True}
