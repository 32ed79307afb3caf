"""
Document - user-uploaded file (CV, transcript, ...) with cached extracted text
"""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from outreach.app.db.base import Base

DOCUMENT_TYPES = ("CV", "TRANSCRIPT", "COVER_LETTER", "OTHER")


class Document(Base):
    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)  # display name, user-editable
    type = Column(String(20), default="OTHER", nullable=False)
    file_name = Column(String(255), nullable=False)  # generated name on disk
    mime_type = Column(String(255), nullable=False)
    size = Column(Integer, default=0)
    extracted_text = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
