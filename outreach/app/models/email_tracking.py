"""Append-only open/click events recorded by the tracking endpoints."""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from outreach.app.db.base import Base


class EmailOpen(Base):
    __tablename__ = "email_opens"

    id = Column(Integer, primary_key=True, index=True)
    email_id = Column(Integer, ForeignKey("generated_emails.id", ondelete="CASCADE"), nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    opened_at = Column(DateTime, default=datetime.utcnow, index=True)

    email = relationship("GeneratedEmail", back_populates="opens")


class LinkClick(Base):
    __tablename__ = "link_clicks"

    id = Column(Integer, primary_key=True, index=True)
    email_id = Column(Integer, ForeignKey("generated_emails.id", ondelete="CASCADE"), nullable=False, index=True)
    original_url = Column(Text, nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    clicked_at = Column(DateTime, default=datetime.utcnow, index=True)

    email = relationship("GeneratedEmail", back_populates="clicks")
