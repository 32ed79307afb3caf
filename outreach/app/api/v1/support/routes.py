"""
User-facing announcements, feedback and support tickets
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from outreach.app.core.dependencies import get_current_user, get_db, get_optional_user
from outreach.app.core.logging_config import get_logger
from outreach.app.models.support import Announcement, Feedback, SupportTicket
from outreach.app.models.user import User
from outreach.app.schemas.support import (
    AnnouncementResponse,
    FeedbackCreate,
    FeedbackResponse,
    SupportTicketCreate,
    SupportTicketResponse,
)
from outreach.app.services.subscription_service import is_pro

logger = get_logger("api.support")
router = APIRouter(tags=["support"])


def audience_for(db: Session, user: Optional[User]) -> set[str]:
    """Announcement targets that apply to the caller. Anonymous callers only see ALL."""
    if user is None:
        return {"ALL"}
    audience = {"ALL", "USER"}
    if user.is_admin:
        audience.add("ADMIN")
    audience.add("PRO" if is_pro(db, user.id) else "FREE")
    return audience


@router.get("/announcements")
def list_announcements(
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user),
):
    now = datetime.utcnow()
    rows = (
        db.query(Announcement)
        .filter(
            Announcement.is_active.is_(True),
            Announcement.starts_at <= now,
            or_(Announcement.ends_at.is_(None), Announcement.ends_at >= now),
        )
        .order_by(Announcement.created_at.desc())
        .all()
    )
    audience = audience_for(db, current_user)
    visible = [a for a in rows if not a.target_roles or audience.intersection(a.target_roles)]
    return {"announcements": [AnnouncementResponse.model_validate(a) for a in visible]}


@router.post("/feedback", response_model=FeedbackResponse, status_code=status.HTTP_201_CREATED)
def create_feedback(
    body: FeedbackCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        feedback = Feedback(
            user_id=current_user.id,
            type=body.type,
            rating=body.rating,
            message=body.message.strip(),
            page=body.page or None,
        )
        db.add(feedback)
        db.commit()
        db.refresh(feedback)
        logger.info("Feedback submitted user_id=%s feedback_id=%s type=%s", current_user.id, feedback.id, feedback.type)
        return feedback
    except Exception:
        db.rollback()
        logger.exception("Feedback submit failed user_id=%s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit feedback",
        )


@router.get("/feedback", response_model=List[FeedbackResponse])
def list_feedback(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return (
        db.query(Feedback)
        .filter(Feedback.user_id == current_user.id)
        .order_by(Feedback.created_at.desc())
        .all()
    )


@router.post("/support", response_model=SupportTicketResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(
    body: SupportTicketCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    subject = body.subject.strip()
    description = body.description.strip()
    if not subject or not description:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Subject and description are required",
        )
    try:
        ticket = SupportTicket(
            user_id=current_user.id,
            subject=subject,
            description=description,
            priority=body.priority,
        )
        db.add(ticket)
        db.commit()
        db.refresh(ticket)
        logger.info("Support ticket opened user_id=%s ticket_id=%s", current_user.id, ticket.id)
        return ticket
    except Exception:
        db.rollback()
        logger.exception("Support ticket create failed user_id=%s", current_user.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create support ticket",
        )


@router.get("/support", response_model=List[SupportTicketResponse])
def list_tickets(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return (
        db.query(SupportTicket)
        .filter(SupportTicket.user_id == current_user.id)
        .order_by(SupportTicket.created_at.desc())
        .all()
    )
