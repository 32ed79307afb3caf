"""Announcements, support tickets and user feedback."""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text

from outreach.app.db.base import Base

ANNOUNCEMENT_TYPES = ("INFO", "WARNING", "SUCCESS", "ERROR")
ANNOUNCEMENT_TARGETS = ("ALL", "ADMIN", "PRO", "FREE", "USER")

TICKET_STATUSES = ("OPEN", "IN_PROGRESS", "RESOLVED", "CLOSED")
TICKET_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "URGENT")

FEEDBACK_TYPES = ("BUG", "FEATURE", "IMPROVEMENT", "GENERAL")


class Announcement(Base):
    __tablename__ = "announcements"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    type = Column(String(20), default="INFO", nullable=False)
    target_roles = Column(JSON, default=lambda: ["ALL"])
    is_active = Column(Boolean, default=True, nullable=False)
    starts_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    ends_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class SupportTicket(Base):
    __tablename__ = "support_tickets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subject = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(20), default="OPEN", nullable=False, index=True)
    priority = Column(String(20), default="MEDIUM", nullable=False)
    admin_notes = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Feedback(Base):
    __tablename__ = "feedback"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    type = Column(String(20), default="GENERAL", nullable=False)
    rating = Column(Integer, nullable=True)  # 1..5
    message = Column(Text, nullable=False)
    page = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
