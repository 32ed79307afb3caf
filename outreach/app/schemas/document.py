"""
Document and attachment schemas
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class DocumentResponse(BaseModel):
    id: int
    name: str
    type: str
    mime_type: str
    size: int = 0
    has_extracted_text: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DocumentDetail(DocumentResponse):
    extracted_text: Optional[str] = None


class DocumentUpdate(BaseModel):
    name: Optional[str] = None
    type: Optional[str] = None


class AttachmentResponse(BaseModel):
    id: int
    original_name: str
    mime_type: str
    size: int = 0
    email_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def document_to_response(doc, include_text: bool = False) -> DocumentResponse:
    data = dict(
        id=doc.id,
        name=doc.name,
        type=doc.type,
        mime_type=doc.mime_type,
        size=doc.size or 0,
        has_extracted_text=bool(doc.extracted_text),
        created_at=doc.created_at,
        updated_at=doc.updated_at,
    )
    if include_text:
        return DocumentDetail(extracted_text=doc.extracted_text, **data)
    return DocumentResponse(**data)
