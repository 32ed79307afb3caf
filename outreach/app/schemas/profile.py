"""
Profile Pydantic schemas and sanitizing converters
"""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, Field

HEADLINE_MAX = 200
BIO_MAX = 5000
GOALS_MAX = 2000
URL_MAX = 500
NAME_MAX = 100
TAG_MAX = 100
MAX_TAGS = 20
MAX_HISTORY_ITEMS = 10
MAX_OTHER_LINKS = 10


# --- Nested schemas ---
class Education(BaseModel):
    institution: str = ""
    degree: str = ""
    field: str = ""
    year: str = ""


class Experience(BaseModel):
    company: str = ""
    role: str = ""
    duration: str = ""
    description: str = ""


class OtherLink(BaseModel):
    label: str = ""
    url: str = ""


class ProfileResponse(BaseModel):
    id: int
    user_id: int
    name: Optional[str] = None
    email: str = ""
    headline: Optional[str] = None
    bio: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    interests: List[str] = Field(default_factory=list)
    education: List[Education] = Field(default_factory=list)
    experience: List[Experience] = Field(default_factory=list)
    goals: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    other_links: List[OtherLink] = Field(default_factory=list)
    updated_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    """Loose input; everything is sanitized by sanitize_profile_update."""
    name: Optional[str] = None
    headline: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[Any]] = None
    interests: Optional[List[Any]] = None
    education: Optional[List[Any]] = None
    experience: Optional[List[Any]] = None
    goals: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    other_links: Optional[List[Any]] = None

    model_config = {"extra": "ignore"}


class ExtractFromResumeRequest(BaseModel):
    document_id: int
    provider: Optional[str] = None


def _clip(value: Optional[str], limit: int) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value[:limit] if value else None


def _string_list(items: List[Any], limit: int = MAX_TAGS) -> List[str]:
    return [str(i).strip()[:TAG_MAX] for i in items if isinstance(i, str) and i.strip()][:limit]


def _model_list(items: List[Any], model: type[BaseModel]) -> List[dict]:
    out = []
    for item in items:
        if not isinstance(item, dict):
            continue
        out.append(model.model_validate({k: str(v)[:BIO_MAX] for k, v in item.items() if v is not None}).model_dump())
        if len(out) >= MAX_HISTORY_ITEMS:
            break
    return out


def sanitize_profile_update(payload: ProfileUpdate) -> dict:
    """
    Convert ProfileUpdate to Profile column values, applying length and count limits.
    Only fields present in the request are returned. `name` belongs to User, not Profile.
    """
    sent = payload.model_fields_set
    data: dict[str, Any] = {}
    if "name" in sent:
        data["name"] = _clip(payload.name, NAME_MAX)
    if "headline" in sent:
        data["headline"] = _clip(payload.headline, HEADLINE_MAX)
    if "bio" in sent:
        data["bio"] = _clip(payload.bio, BIO_MAX)
    if "goals" in sent:
        data["goals"] = _clip(payload.goals, GOALS_MAX)
    for url_field in ("linkedin_url", "github_url", "portfolio_url"):
        if url_field in sent:
            data[url_field] = _clip(getattr(payload, url_field), URL_MAX)
    if "skills" in sent:
        data["skills"] = _string_list(payload.skills or [])
    if "interests" in sent:
        data["interests"] = _string_list(payload.interests or [])
    if "education" in sent:
        data["education"] = _model_list(payload.education or [], Education)
    if "experience" in sent:
        data["experience"] = _model_list(payload.experience or [], Experience)
    if "other_links" in sent:
        links = []
        for item in payload.other_links or []:
            if isinstance(item, dict) and item.get("url"):
                links.append({
                    "label": str(item.get("label") or "")[:NAME_MAX],
                    "url": str(item["url"])[:URL_MAX],
                })
        data["other_links"] = links[:MAX_OTHER_LINKS]
    return data


def profile_model_to_response(profile) -> ProfileResponse:
    """Convert Profile DB model (with its user) to ProfileResponse"""
    user = profile.user
    return ProfileResponse(
        id=profile.id,
        user_id=profile.user_id,
        name=user.name if user else None,
        email=user.email if user else "",
        headline=profile.headline,
        bio=profile.bio,
        skills=[s for s in (profile.skills or []) if isinstance(s, str)],
        interests=[s for s in (profile.interests or []) if isinstance(s, str)],
        education=[Education.model_validate(e) for e in (profile.education or []) if isinstance(e, dict)],
        experience=[Experience.model_validate(e) for e in (profile.experience or []) if isinstance(e, dict)],
        goals=profile.goals,
        linkedin_url=profile.linkedin_url,
        github_url=profile.github_url,
        portfolio_url=profile.portfolio_url,
        other_links=[OtherLink.model_validate(o) for o in (profile.other_links or []) if isinstance(o, dict)],
        updated_at=profile.updated_at,
    )
