"""
Profile endpoints - GET and PUT profile data, AI extraction from an uploaded resume
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from outreach.app.core.dependencies import get_current_user, get_db
from outreach.app.core.logging_config import get_logger
from outreach.app.models.document import Document
from outreach.app.models.user import User
from outreach.app.schemas.profile import (
    ExtractFromResumeRequest,
    ProfileResponse,
    ProfileUpdate,
    profile_model_to_response,
    sanitize_profile_update,
)
from outreach.app.services import ai_service
from outreach.app.services.profile_service import ProfileService
from outreach.app.utils import cache

logger = get_logger("api.profile")
router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileResponse)
def get_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get current user's profile, creating an empty one on first access."""
    profile = ProfileService.get_or_create_profile(db, current_user)
    return profile_model_to_response(profile)


@router.put("", response_model=ProfileResponse)
async def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Update the fields present in the body; lists and strings are clipped to their limits."""
    profile = ProfileService.update_profile(db, current_user, sanitize_profile_update(payload))
    result = profile_model_to_response(profile)
    await cache.invalidate_dashboard(current_user.id)
    return result


@router.post("/extract-from-resume")
def extract_from_resume(
    body: ExtractFromResumeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Structured profile suggested by the AI from a document's extracted text. Nothing is saved."""
    document = (
        db.query(Document)
        .filter(Document.id == body.document_id, Document.user_id == current_user.id)
        .first()
    )
    if not document:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    if not document.extracted_text:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Document text has not been extracted. Please extract text first.",
        )

    try:
        provider = ai_service.resolve_provider(db, body.provider)
    except ai_service.AIProviderError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        extracted = ai_service.extract_profile(provider, document.extracted_text)
    except ai_service.AIProviderError as e:
        ai_service.record_ai_usage(db, current_user.id, provider, "extract_profile", success=False, error=str(e))
        logger.warning("Profile extraction failed user_id=%s document_id=%s error=%s", current_user.id, document.id, e)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    ai_service.record_ai_usage(db, current_user.id, provider, "extract_profile")
    return {"success": True, "provider": provider, "extracted_profile": extracted}
