"""
GeneratedEmail - drafted or sent outreach message, plus uploaded attachments
"""
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import backref, relationship

from outreach.app.db.base import Base

STATUS_DRAFT = "DRAFT"
STATUS_SENT = "SENT"
STATUS_FAILED = "FAILED"
EMAIL_STATUSES = (STATUS_DRAFT, STATUS_SENT, STATUS_FAILED)

EMAIL_PURPOSES = (
    "JOB_APPLICATION",
    "RESEARCH_INQUIRY",
    "COLLABORATION",
    "MENTORSHIP",
    "NETWORKING",
    "OTHER",
)
EMAIL_TONES = ("FORMAL", "FRIENDLY", "CONCISE", "ENTHUSIASTIC")


class GeneratedEmail(Base):
    __tablename__ = "generated_emails"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_id = Column(Integer, ForeignKey("recipients.id", ondelete="CASCADE"), nullable=False, index=True)

    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)
    purpose = Column(String(30), default="OTHER", nullable=False)
    tone = Column(String(20), default="FORMAL", nullable=False)
    status = Column(String(20), default=STATUS_DRAFT, nullable=False, index=True)
    attached_documents = Column(JSON, default=list)  # [document_id, ...]

    # Assigned once, at send time
    tracking_id = Column(String(64), unique=True, nullable=True, index=True)
    gmail_message_id = Column(String(255), nullable=True)
    gmail_thread_id = Column(String(255), nullable=True)
    sent_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)

    # Thread reconciliation
    reply_count = Column(Integer, default=0, nullable=False)
    last_reply_at = Column(DateTime, nullable=True)
    conversation_read = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    recipient = relationship("Recipient", backref=backref("generated_emails", cascade="all, delete-orphan"))
    opens = relationship("EmailOpen", back_populates="email", cascade="all, delete-orphan")
    clicks = relationship("LinkClick", back_populates="email", cascade="all, delete-orphan")
    attachments = relationship("EmailAttachment", back_populates="email")


class EmailAttachment(Base):
    """Ad-hoc file attached to an email (not a profile Document)."""
    __tablename__ = "email_attachments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    email_id = Column(Integer, ForeignKey("generated_emails.id", ondelete="SET NULL"), nullable=True, index=True)

    original_name = Column(String(255), nullable=False)
    file_name = Column(String(255), nullable=False)  # generated name on disk
    mime_type = Column(String(255), nullable=False)
    size = Column(Integer, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)

    email = relationship("GeneratedEmail", back_populates="attachments")
