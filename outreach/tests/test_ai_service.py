"""Tests for AI provider selection and model output parsing"""
from unittest.mock import patch

import pytest

from outreach.app.core.config import settings
from outreach.app.services import ai_service
from outreach.app.services.ai_service import AIProviderError, AIResponseParseError, parse_ai_response


def test_parse_fenced_json():
    text = '```json\n{"subject": "Research inquiry", "body": "Dear Dr. Smith,\\n\\nI enjoyed your paper."}\n```'
    assert parse_ai_response(text) == {
        "subject": "Research inquiry",
        "body": "Dear Dr. Smith,\n\nI enjoyed your paper.",
    }


def test_parse_json_strips_placeholders():
    text = '{"subject": ": Quick question", "body": "Hi Ana,\\nThanks.\\n\\n\\n\\nBest,\\n[Your Name]"}'
    assert parse_ai_response(text) == {"subject": "Quick question", "body": "Hi Ana,\nThanks.\n\nBest,"}


def test_parse_broken_json():
    """Unescaped quotes break json.loads; keys are still pulled out by pattern."""
    text = '{"subject": "Lab visit", "body": "Dear Prof. Lee,\nI read "Deep Nets" twice."}'
    result = parse_ai_response(text)
    assert result["subject"] == "Lab visit"
    assert result["body"].startswith("Dear Prof. Lee,")


def test_parse_subject_and_greeting():
    text = "Subject: Collaboration idea\n\nDear Dr. Kim,\nI work on graph algorithms."
    assert parse_ai_response(text) == {
        "subject": "Collaboration idea",
        "body": "Dear Dr. Kim,\nI work on graph algorithms.",
    }


def test_parse_first_line_fallback():
    result = parse_ai_response("Quick question\nI wanted to ask about your lab.")
    assert result == {"subject": "Quick question", "body": "I wanted to ask about your lab."}


def test_parse_unusable_output():
    with pytest.raises(AIResponseParseError):
        parse_ai_response("ok")


def test_available_providers_ignore_placeholders(monkeypatch):
    monkeypatch.setattr(settings, "google_gemini_api_key", "real-key")
    monkeypatch.setattr(settings, "groq_api_key", "")
    monkeypatch.setattr(settings, "anthropic_api_key", "your-anthropic-api-key")
    monkeypatch.setattr(settings, "openai_api_key", "sk-live")
    assert ai_service.get_available_providers() == ["gemini", "chatgpt"]


def test_resolve_provider(db_session, monkeypatch):
    monkeypatch.setattr(settings, "default_ai_provider", "gemini")
    with patch.object(ai_service, "get_available_providers", return_value=["gemini"]):
        assert ai_service.resolve_provider(db_session, None) == "gemini"
        assert ai_service.resolve_provider(db_session, "GEMINI") == "gemini"
        with pytest.raises(AIProviderError):
            ai_service.resolve_provider(db_session, "claude")
        with pytest.raises(AIProviderError):
            ai_service.resolve_provider(db_session, "llama")


def test_default_provider_setting_overrides_env(db_session, monkeypatch):
    from outreach.app.services.app_settings import upsert_setting

    monkeypatch.setattr(settings, "default_ai_provider", "gemini")
    upsert_setting(db_session, {"key": "ai.default_provider", "value": "groq"}, None)
    assert ai_service.get_default_provider(db_session) == "groq"


def test_complete_wraps_upstream_errors(monkeypatch):
    monkeypatch.setattr(settings, "anthropic_api_key", "key")
    with patch.object(ai_service, "_complete_claude", side_effect=RuntimeError("timeout")):
        with pytest.raises(AIProviderError, match="claude request failed"):
            ai_service.complete("claude", "sys", "prompt")
    with patch.object(ai_service, "_complete_claude", return_value="   "):
        with pytest.raises(AIProviderError, match="No response"):
            ai_service.complete("claude", "sys", "prompt")


def test_generate_email_end_to_end(monkeypatch):
    monkeypatch.setattr(settings, "groq_api_key", "key")
    raw = '{"subject": "Hello", "body": "Dear Grace,\\nBest"}'
    with patch.object(ai_service, "_complete_openai_compatible", return_value=raw) as call:
        result = ai_service.generate_email(
            "groq",
            {"name": "Test User", "skills": ["python"], "documents": []},
            {"name": "Grace Hopper", "email": "grace@navy.mil", "organization": "US Navy"},
            "MENTORSHIP",
            "FRIENDLY",
        )
    assert result == {"subject": "Hello", "body": "Dear Grace,\nBest"}
    prompt = call.call_args.args[3]
    assert "Grace Hopper" in prompt


def test_extract_profile_sanitizes(monkeypatch):
    monkeypatch.setattr(settings, "openai_api_key", "key")
    raw = '```json\n{"headline": "  Data scientist ", "skills": ["python", 3], "bio": null}\n```'
    with patch.object(ai_service, "_complete_openai_compatible", return_value=raw):
        result = ai_service.extract_profile("chatgpt", "resume text")
    assert result == {"headline": "Data scientist", "skills": ["python"]}
