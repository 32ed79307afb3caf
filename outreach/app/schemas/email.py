"""
Generated email schemas
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class EmailCreate(BaseModel):
    recipient_id: Optional[int] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    purpose: str = "OTHER"
    tone: str = "FORMAL"
    attached_documents: List[int] = Field(default_factory=list)
    attachment_ids: List[int] = Field(default_factory=list)


class EmailUpdate(BaseModel):
    subject: Optional[str] = None
    body: Optional[str] = None
    purpose: Optional[str] = None
    tone: Optional[str] = None
    attached_documents: Optional[List[int]] = None
    attachment_ids: Optional[List[int]] = None


class GenerateEmailRequest(BaseModel):
    recipient_id: int
    purpose: str
    tone: str
    additional_context: Optional[str] = None
    provider: Optional[str] = None


class GenerateEmailResponse(BaseModel):
    subject: str
    body: str
    provider: str


class ReplyRequest(BaseModel):
    body: Optional[str] = None


class GenerateReplyRequest(BaseModel):
    instructions: Optional[str] = None
    provider: Optional[str] = None


class RecipientBrief(BaseModel):
    id: int
    name: str
    email: str
    organization: Optional[str] = None

    class Config:
        from_attributes = True


class AttachmentBrief(BaseModel):
    id: int
    original_name: str
    mime_type: str
    size: int = 0

    class Config:
        from_attributes = True


class EmailResponse(BaseModel):
    id: int
    recipient_id: int
    subject: str
    body: str
    purpose: str
    tone: str
    status: str
    attached_documents: List[int] = Field(default_factory=list)
    tracking_id: Optional[str] = None
    gmail_message_id: Optional[str] = None
    gmail_thread_id: Optional[str] = None
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    reply_count: int = 0
    last_reply_at: Optional[datetime] = None
    conversation_read: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    recipient: Optional[RecipientBrief] = None
    attachments: List[AttachmentBrief] = Field(default_factory=list)
    open_count: int = 0
    click_count: int = 0

    class Config:
        from_attributes = True
