"""
Feedback, support ticket and announcement schemas (user-facing)
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class FeedbackCreate(BaseModel):
    type: Literal["BUG", "FEATURE", "IMPROVEMENT", "GENERAL"] = "GENERAL"
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    message: str = Field(min_length=1, max_length=5000)
    page: Optional[str] = Field(default=None, max_length=255)


class FeedbackResponse(BaseModel):
    id: int
    user_id: Optional[int] = None
    type: str
    rating: Optional[int] = None
    message: str
    page: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SupportTicketCreate(BaseModel):
    subject: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=10000)
    priority: Literal["LOW", "MEDIUM", "HIGH", "URGENT"] = "MEDIUM"


class SupportTicketResponse(BaseModel):
    id: int
    user_id: int
    subject: str
    description: str
    status: str
    priority: str
    admin_notes: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AnnouncementResponse(BaseModel):
    id: int
    title: str
    content: str
    type: str
    target_roles: List[str] = Field(default_factory=list)
    is_active: bool = True
    starts_at: Optional[datetime] = None
    ends_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
