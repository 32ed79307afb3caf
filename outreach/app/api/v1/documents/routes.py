"""
Document endpoints - upload, list, view, rename, delete and text extraction
"""
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from outreach.app.core.config import DOCUMENT_MIME_TYPES, DOCUMENTS_SUBDIR
from outreach.app.core.dependencies import get_current_user, get_db
from outreach.app.core.logging_config import get_logger
from outreach.app.models.document import DOCUMENT_TYPES, Document
from outreach.app.models.user import User
from outreach.app.schemas.document import (
    DocumentDetail,
    DocumentResponse,
    DocumentUpdate,
    document_to_response,
)
from outreach.app.services import storage
from outreach.app.services.document_text import DocumentTextError, extract_document_text
from outreach.app.utils import cache
from outreach.app.utils.text import truncate

logger = get_logger("api.documents")
router = APIRouter(prefix="/documents", tags=["documents"])


def _get_owned_document(db: Session, document_id: int, user_id: int) -> Document:
    doc = db.query(Document).filter(Document.id == document_id, Document.user_id == user_id).first()
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return doc


@router.get("", response_model=List[DocumentResponse])
def list_documents(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    docs = (
        db.query(Document)
        .filter(Document.user_id == current_user.id)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .all()
    )
    return [document_to_response(d) for d in docs]


@router.post("", response_model=DocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    type: str = Form("OTHER"),
    name: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Upload a PDF, Word or plain-text document (max 10MB)."""
    doc_type = (type or "OTHER").upper()
    if doc_type not in DOCUMENT_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid document type")
    mime_type = (file.content_type or "").split(";")[0].strip().lower()
    ext = DOCUMENT_MIME_TYPES.get(mime_type)
    if not ext:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Only PDF, Word and text files are allowed.",
        )

    try:
        file_name, size = storage.save_upload(file, DOCUMENTS_SUBDIR, ext)
    except storage.UploadTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    doc = Document(
        user_id=current_user.id,
        name=truncate(name, 255) or truncate(file.filename, 255) or f"document{ext}",
        type=doc_type,
        file_name=file_name,
        mime_type=mime_type,
        size=size,
    )
    try:
        db.add(doc)
        db.commit()
    except Exception:
        db.rollback()
        storage.delete_file(DOCUMENTS_SUBDIR, file_name)
        logger.exception("Failed to save document user_id=%s", current_user.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to upload document")
    db.refresh(doc)
    logger.info("Document uploaded user_id=%s document_id=%s type=%s bytes=%d", current_user.id, doc.id, doc_type, size)
    await cache.invalidate_dashboard(current_user.id)
    return document_to_response(doc)


@router.get("/{document_id}", response_model=DocumentDetail)
def get_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return document_to_response(_get_owned_document(db, document_id, current_user.id), include_text=True)


@router.put("/{document_id}", response_model=DocumentResponse)
def update_document(
    document_id: int,
    body: DocumentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    doc = _get_owned_document(db, document_id, current_user.id)
    if body.name is not None:
        name = truncate(body.name, 255)
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Name cannot be empty")
        doc.name = name
    if body.type is not None:
        doc_type = body.type.upper()
        if doc_type not in DOCUMENT_TYPES:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid document type")
        doc.type = doc_type
    db.commit()
    db.refresh(doc)
    return document_to_response(doc)


@router.delete("/{document_id}")
async def delete_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    doc = _get_owned_document(db, document_id, current_user.id)
    storage.delete_file(DOCUMENTS_SUBDIR, doc.file_name)
    db.delete(doc)
    db.commit()
    logger.info("Document deleted user_id=%s document_id=%s", current_user.id, document_id)
    await cache.invalidate_dashboard(current_user.id)
    return {"success": True}


@router.get("/{document_id}/view")
def view_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Stream the stored file inline."""
    doc = _get_owned_document(db, document_id, current_user.id)
    path = storage.stored_path(DOCUMENTS_SUBDIR, doc.file_name)
    if not path.exists():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(
        path,
        media_type=doc.mime_type,
        filename=doc.name,
        content_disposition_type="inline",
    )


@router.post("/{document_id}/extract", response_model=DocumentDetail)
def extract_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Extract and store the document's plain text."""
    doc = _get_owned_document(db, document_id, current_user.id)
    path: Path = storage.stored_path(DOCUMENTS_SUBDIR, doc.file_name)
    if not path.exists():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    try:
        doc.extracted_text = extract_document_text(path, doc.mime_type)
    except DocumentTextError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    db.commit()
    db.refresh(doc)
    logger.info("Document text extracted user_id=%s document_id=%s chars=%d", current_user.id, doc.id, len(doc.extracted_text))
    return document_to_response(doc, include_text=True)
