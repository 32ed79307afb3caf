"""Admin back-office models: audit log, app settings, email broadcasts."""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text

from outreach.app.db.base import Base

BROADCAST_TARGETS = ("ALL", "PRO_USERS", "FREE_USERS", "SPECIFIC_USERS")
BROADCAST_STATUSES = ("DRAFT", "SENDING", "SENT", "FAILED")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=True)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class AppSetting(Base):
    """Key/value runtime setting. Keys and value shapes are fixed in schemas.admin."""
    __tablename__ = "app_settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, index=True, nullable=False)
    value = Column(JSON, nullable=True)
    category = Column(String(50), default="general", nullable=False)
    description = Column(Text, nullable=True)
    updated_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class EmailBroadcast(Base):
    __tablename__ = "email_broadcasts"

    id = Column(Integer, primary_key=True, index=True)
    subject = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)  # HTML; supports {{name}} / {{email}}
    target_type = Column(String(20), default="ALL", nullable=False)
    target_user_ids = Column(JSON, default=list)
    status = Column(String(20), default="DRAFT", nullable=False)
    sent_count = Column(Integer, default=0)
    failed_count = Column(Integer, default=0)
    sent_at = Column(DateTime, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
