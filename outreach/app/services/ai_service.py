"""
AI text generation across providers (Gemini, Groq, Claude, ChatGPT).

Each provider is a thin call that takes a system prompt and a user prompt and returns
text; email generation then parses the model output into {subject, body}.
"""
import json
import re
from typing import Any, Optional

import anthropic
from google import genai
from google.genai import types as genai_types
from openai import OpenAI
from sqlalchemy.orm import Session

from outreach.app.core.config import settings
from outreach.app.core.logging_config import get_logger
from outreach.app.models.analytics import AIUsage
from outreach.app.models.document import Document
from outreach.app.models.profile import Profile
from outreach.app.models.recipient import Recipient
from outreach.app.models.user import User
from outreach.app.schemas.profile import ProfileUpdate, sanitize_profile_update
from outreach.app.services.ai_prompts import (
    EMAIL_SYSTEM_PROMPT,
    PROFILE_EXTRACTION_PROMPT,
    REPLY_SYSTEM_PROMPT,
    build_email_prompt,
)
from outreach.app.services.app_settings import get_setting

logger = get_logger("services.ai")

PROVIDERS = ("gemini", "groq", "claude", "chatgpt")

_PLACEHOLDER_KEYS = {"your-anthropic-api-key", "your-openai-api-key", "your-gemini-api-key", "your-groq-api-key"}

PROFILE_TEXT_MAX_CHARS = 15_000


class AIProviderError(Exception):
    """Provider missing, misconfigured, or upstream call failed."""


class AIResponseParseError(AIProviderError):
    pass


def _api_key(provider: str) -> str:
    key = {
        "gemini": settings.google_gemini_api_key,
        "groq": settings.groq_api_key,
        "claude": settings.anthropic_api_key,
        "chatgpt": settings.openai_api_key,
    }.get(provider, "")
    return "" if key in _PLACEHOLDER_KEYS else key


def provider_model(provider: str) -> str:
    return {
        "gemini": settings.gemini_model,
        "groq": settings.groq_model,
        "claude": settings.anthropic_model,
        "chatgpt": settings.openai_model,
    }.get(provider, "")


def get_available_providers() -> list[str]:
    return [p for p in PROVIDERS if _api_key(p)]


def get_default_provider(db: Session) -> str:
    return get_setting(db, "ai.default_provider", settings.default_ai_provider)


def resolve_provider(db: Session, requested: Optional[str]) -> str:
    """Requested provider, else the configured default. Raises AIProviderError if unusable."""
    provider = (requested or get_default_provider(db) or "").lower()
    if provider not in PROVIDERS:
        raise AIProviderError(f"Unknown AI provider: {provider}")
    if provider not in get_available_providers():
        raise AIProviderError(f"AI provider '{provider}' is not configured")
    return provider


# --- Provider calls ---

def _complete_gemini(system_prompt: str, prompt: str, max_tokens: int) -> str:
    client = genai.Client(api_key=_api_key("gemini"))
    response = client.models.generate_content(
        model=settings.gemini_model,
        contents=prompt,
        config=genai_types.GenerateContentConfig(
            system_instruction=system_prompt,
            temperature=settings.ai_temperature,
            max_output_tokens=max_tokens,
        ),
    )
    return response.text or ""


def _complete_openai_compatible(client: OpenAI, model: str, system_prompt: str, prompt: str, max_tokens: int) -> str:
    resp = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": prompt},
        ],
        temperature=settings.ai_temperature,
        max_tokens=max_tokens,
    )
    return resp.choices[0].message.content or ""


def _complete_claude(system_prompt: str, prompt: str, max_tokens: int) -> str:
    client = anthropic.Anthropic(api_key=_api_key("claude"))
    resp = client.messages.create(
        model=settings.anthropic_model,
        max_tokens=max_tokens,
        system=system_prompt,
        messages=[{"role": "user", "content": prompt}],
    )
    return "".join(block.text for block in resp.content if getattr(block, "type", "") == "text")


def complete(provider: str, system_prompt: str, prompt: str, max_tokens: Optional[int] = None) -> str:
    """Run one completion. Raises AIProviderError on any upstream failure or empty output."""
    if not _api_key(provider):
        raise AIProviderError(f"AI provider '{provider}' is not configured")
    max_tokens = max_tokens or settings.ai_max_tokens
    try:
        if provider == "gemini":
            text = _complete_gemini(system_prompt, prompt, max_tokens)
        elif provider == "groq":
            client = OpenAI(api_key=_api_key("groq"), base_url=settings.groq_base_url)
            text = _complete_openai_compatible(client, settings.groq_model, system_prompt, prompt, max_tokens)
        elif provider == "claude":
            text = _complete_claude(system_prompt, prompt, max_tokens)
        elif provider == "chatgpt":
            client = OpenAI(api_key=_api_key("chatgpt"))
            text = _complete_openai_compatible(client, settings.openai_model, system_prompt, prompt, max_tokens)
        else:
            raise AIProviderError(f"Unknown AI provider: {provider}")
    except AIProviderError:
        raise
    except Exception as e:
        logger.warning("AI completion failed provider=%s error=%s", provider, e)
        raise AIProviderError(f"{provider} request failed") from e
    if not text or not text.strip():
        raise AIProviderError(f"No response from {provider}")
    return text


# --- Output parsing ---

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_PLACEHOLDER_RE = re.compile(r"\[[^\]]*\]")


def clean_email_output(subject: str, body: str) -> dict[str, str]:
    clean_subject = re.sub(r"^[:：\s]+", "", subject).replace("\\n", " ").strip()
    clean_body = (
        body.replace("\\n", "\n")
        .replace("\\r", "")
        .replace("\\t", "  ")
        .replace('\\"', '"')
    )
    clean_body = _PLACEHOLDER_RE.sub("", clean_body)
    clean_body = re.sub(r"\n{3,}", "\n\n", clean_body).strip()
    return {"subject": clean_subject, "body": clean_body}


def _strip_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def _load_json_object(text: str) -> Optional[dict]:
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        return None
    try:
        # strict=False tolerates raw newlines inside strings
        data = json.loads(match.group(0), strict=False)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def parse_ai_response(text: str) -> dict[str, str]:
    """
    Turn model output into {subject, body}. Tries, in order: a JSON object, "subject"/"body"
    key extraction from broken JSON, "Subject:"/greeting patterns, first line as subject.
    """
    clean_text = _strip_fences(text or "")

    data = _load_json_object(clean_text)
    if data and data.get("subject") and data.get("body"):
        return clean_email_output(str(data["subject"]), str(data["body"]))

    json_match = _JSON_OBJECT_RE.search(clean_text)
    if json_match:
        json_str = json_match.group(0)
        subject_match = re.search(r'"subject"\s*:\s*"([^"]+)"', json_str)
        body_match = re.search(r'"body"\s*:\s*"([\s\S]*?)(?:"\s*\}|"$)', json_str)
        if subject_match:
            body_content = body_match.group(1) if body_match else ""
            if not body_content:
                tail = re.search(r'"body"\s*:\s*"([\s\S]*)$', json_str)
                if tail:
                    body_content = re.sub(r'"\s*\}\s*$', "", tail.group(1))
            if body_content:
                return clean_email_output(subject_match.group(1), body_content)

    subject = ""
    for pattern in (r"\*\*subject\*\*[:\s]*[\"']?([^\"'\n]+)[\"']?", r"subject[:\s]*[\"']?([^\"'\n]+)[\"']?"):
        match = re.search(pattern, clean_text, re.IGNORECASE)
        if match:
            subject = match.group(1).strip()
            break

    body = ""
    for pattern in (
        r"\*\*body\*\*[:\s]*[\"']?([\s\S]+)$",
        r"body[:\s]*[\"']?([\s\S]+)$",
        r"(Dear\s+[\s\S]+)",
        r"(Hi\s+[\s\S]+)",
        r"(Hello\s+[\s\S]+)",
    ):
        match = re.search(pattern, clean_text, re.IGNORECASE)
        if match:
            body = re.sub(r"\}\s*$", "", match.group(1).strip("\"'")).strip()
            break

    if subject and body:
        return clean_email_output(subject, body)

    lines = [line for line in clean_text.split("\n") if line.strip()]
    if len(lines) >= 2:
        strip_chars = "\"'{}[]"
        return clean_email_output(
            lines[0].strip(strip_chars)[:100],
            "\n".join(lines[1:]).strip(strip_chars),
        )

    logger.warning("Could not parse AI response preview=%r", (text or "")[:200])
    raise AIResponseParseError("Failed to parse AI response. Please try again.")


# --- Context ---

def get_user_context(db: Session, user: User) -> dict[str, Any]:
    profile = db.query(Profile).filter(Profile.user_id == user.id).first()
    documents = (
        db.query(Document)
        .filter(Document.user_id == user.id, Document.extracted_text.isnot(None))
        .order_by(Document.created_at.desc())
        .all()
    )
    return {
        "name": user.name,
        "headline": profile.headline if profile else None,
        "bio": profile.bio if profile else None,
        "skills": (profile.skills or []) if profile else [],
        "interests": (profile.interests or []) if profile else [],
        "education": (profile.education or []) if profile else [],
        "experience": (profile.experience or []) if profile else [],
        "goals": profile.goals if profile else None,
        "linkedin_url": profile.linkedin_url if profile else None,
        "github_url": profile.github_url if profile else None,
        "portfolio_url": profile.portfolio_url if profile else None,
        "documents": [
            {"name": d.name, "type": d.type, "content": d.extracted_text or ""}
            for d in documents
        ],
    }


def get_recipient_context(recipient: Recipient) -> dict[str, Any]:
    return {
        "name": recipient.name,
        "email": recipient.email,
        "organization": recipient.organization,
        "role": recipient.role,
        "website": recipient.website,
        "linkedin_url": recipient.linkedin_url,
        "work_focus": recipient.work_focus,
        "additional_notes": recipient.additional_notes,
    }


# --- Operations ---

def generate_email(
    provider: str,
    user_context: dict[str, Any],
    recipient_context: dict[str, Any],
    purpose: str,
    tone: str,
    additional_context: Optional[str] = None,
) -> dict[str, str]:
    prompt = build_email_prompt(user_context, recipient_context, purpose, tone, additional_context)
    text = complete(provider, EMAIL_SYSTEM_PROMPT, prompt)
    return parse_ai_response(text)


def generate_reply(provider: str, prompt: str) -> str:
    text = complete(provider, REPLY_SYSTEM_PROMPT, prompt, max_tokens=800)
    return clean_email_output("", _strip_fences(text))["body"]


def extract_profile(provider: str, resume_text: str) -> dict[str, Any]:
    """AI-structured profile from resume text, sanitized like a profile update."""
    text = complete(provider, "You extract structured data from resumes.", PROFILE_EXTRACTION_PROMPT + resume_text[:PROFILE_TEXT_MAX_CHARS])
    data = _load_json_object(_strip_fences(text))
    if data is None:
        raise AIResponseParseError("Failed to parse AI response. Please try again.")
    try:
        payload = ProfileUpdate.model_validate({k: v for k, v in data.items() if v not in (None, "")})
    except ValueError as e:
        raise AIResponseParseError("AI returned an unexpected profile format") from e
    return sanitize_profile_update(payload)


def record_ai_usage(
    db: Session,
    user_id: Optional[int],
    provider: str,
    operation: str,
    success: bool = True,
    error: Optional[str] = None,
) -> None:
    """Best-effort usage row; failures are logged and ignored."""
    try:
        db.add(AIUsage(
            user_id=user_id,
            provider=provider,
            model=provider_model(provider),
            operation=operation,
            success=success,
            error_message=(error or None) and error[:1000],
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning("Failed to record AI usage user_id=%s provider=%s error=%s", user_id, provider, e)
