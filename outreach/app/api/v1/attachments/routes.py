"""
Email attachment endpoints - upload, download, delete
"""
from pathlib import Path

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from outreach.app.core.config import ATTACHMENTS_SUBDIR
from outreach.app.core.dependencies import get_current_user, get_db
from outreach.app.core.logging_config import get_logger
from outreach.app.models.generated_email import EmailAttachment
from outreach.app.models.user import User
from outreach.app.schemas.document import AttachmentResponse
from outreach.app.services import storage
from outreach.app.utils.text import truncate

logger = get_logger("api.attachments")
router = APIRouter(prefix="/attachments", tags=["attachments"])


def _get_owned_attachment(db: Session, attachment_id: int, user_id: int) -> EmailAttachment:
    att = (
        db.query(EmailAttachment)
        .filter(EmailAttachment.id == attachment_id, EmailAttachment.user_id == user_id)
        .first()
    )
    if not att:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attachment not found")
    return att


@router.post("/upload", response_model=AttachmentResponse, status_code=status.HTTP_201_CREATED)
def upload_attachment(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Upload any file (max 10MB) to attach to an email later."""
    original_name = truncate(Path(file.filename or "").name, 255) or "attachment"
    suffix = Path(original_name).suffix[:16]
    try:
        file_name, size = storage.save_upload(file, ATTACHMENTS_SUBDIR, suffix)
    except storage.UploadTooLargeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    att = EmailAttachment(
        user_id=current_user.id,
        original_name=original_name,
        file_name=file_name,
        mime_type=file.content_type or "application/octet-stream",
        size=size,
    )
    db.add(att)
    db.commit()
    db.refresh(att)
    logger.info("Attachment uploaded user_id=%s attachment_id=%s bytes=%d", current_user.id, att.id, size)
    return att


@router.get("/{attachment_id}")
def download_attachment(
    attachment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    att = _get_owned_attachment(db, attachment_id, current_user.id)
    path = storage.stored_path(ATTACHMENTS_SUBDIR, att.file_name)
    if not path.exists():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(path, media_type=att.mime_type, filename=att.original_name)


@router.delete("/{attachment_id}")
def delete_attachment(
    attachment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    att = _get_owned_attachment(db, attachment_id, current_user.id)
    storage.delete_file(ATTACHMENTS_SUBDIR, att.file_name)
    db.delete(att)
    db.commit()
    return {"success": True}
