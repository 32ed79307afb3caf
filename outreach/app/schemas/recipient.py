"""
Recipient schemas. Required-field and format checks happen in the route so they
return the exact 400 messages clients rely on.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

SHORT_MAX = 200
URL_MAX = 500
LONG_MAX = 2000

FIELD_LIMITS = {
    "name": SHORT_MAX,
    "email": SHORT_MAX,
    "organization": SHORT_MAX,
    "role": SHORT_MAX,
    "website": URL_MAX,
    "linkedin_url": URL_MAX,
    "work_focus": LONG_MAX,
    "additional_notes": LONG_MAX,
}


class RecipientIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    organization: Optional[str] = None
    role: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    work_focus: Optional[str] = None
    additional_notes: Optional[str] = None

    model_config = {"extra": "ignore"}


class RecipientEmailSummary(BaseModel):
    id: int
    subject: str
    status: str
    purpose: str
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RecipientResponse(BaseModel):
    id: int
    name: str
    email: str
    organization: Optional[str] = None
    role: Optional[str] = None
    website: Optional[str] = None
    linkedin_url: Optional[str] = None
    work_focus: Optional[str] = None
    additional_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    email_count: int = 0
    recent_emails: Optional[List[RecipientEmailSummary]] = None

    class Config:
        from_attributes = True
