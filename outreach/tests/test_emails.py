"""Tests for /api/emails: drafts, generation quota/rate limit, Gmail send"""
import asyncio
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from outreach.app.core.config import GENERATE_RATE_LIMIT
from outreach.app.models.billing import PROVIDER_MANUAL, SUB_ACTIVE, Subscription
from outreach.app.models.generated_email import GeneratedEmail
from outreach.app.models.recipient import Recipient
from outreach.app.models.user import User
from outreach.app.services import gmail_service
from outreach.app.services.rate_limit import check_rate_limit


@pytest.fixture
def recipient(db_session, test_user):
    r = Recipient(user_id=test_user.id, name="Grace Hopper", email="grace@navy.mil", organization="US Navy")
    db_session.add(r)
    db_session.commit()
    db_session.refresh(r)
    return r


@pytest.fixture
def draft(db_session, test_user, recipient):
    e = GeneratedEmail(
        user_id=test_user.id,
        recipient_id=recipient.id,
        subject="Question about COBOL",
        body="Dear Admiral Hopper,\n\nSee https://example.org/paper for details.\n\nBest,\nTest",
    )
    db_session.add(e)
    db_session.commit()
    db_session.refresh(e)
    return e


def _generated(*args, **kwargs):
    return {"subject": "Hello from a test", "body": "Dear Grace,\nThanks."}


def test_create_draft(client, auth_headers, recipient):
    r = client.post(
        "/api/emails",
        headers=auth_headers,
        json={"recipient_id": recipient.id, "subject": "Hi", "body": "Body text", "purpose": "NETWORKING"},
    )
    assert r.status_code == 201
    data = r.json()
    assert data["status"] == "DRAFT"
    assert data["purpose"] == "NETWORKING"
    assert data["tracking_id"] is None


def test_create_draft_requires_fields(client, auth_headers, recipient):
    r = client.post("/api/emails", headers=auth_headers, json={"recipient_id": recipient.id, "subject": "Hi"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Recipient, subject, and body are required"


def test_create_draft_for_foreign_recipient(client, other_headers, recipient):
    r = client.post(
        "/api/emails",
        headers=other_headers,
        json={"recipient_id": recipient.id, "subject": "Hi", "body": "x"},
    )
    assert r.status_code == 404


def test_invalid_purpose(client, auth_headers, recipient):
    r = client.post(
        "/api/emails",
        headers=auth_headers,
        json={"recipient_id": recipient.id, "subject": "Hi", "body": "x", "purpose": "SPAM"},
    )
    assert r.status_code == 400


def test_list_emails_with_pagination(client, auth_headers, draft):
    r = client.get("/api/emails", headers=auth_headers, params={"status": "DRAFT"})
    assert r.status_code == 200
    data = r.json()
    assert data["pagination"]["total"] == 1
    assert data["emails"][0]["id"] == draft.id
    assert data["emails"][0]["open_count"] == 0


def test_list_emails_rejects_unknown_status(client, auth_headers):
    r = client.get("/api/emails", headers=auth_headers, params={"status": "ARCHIVED"})
    assert r.status_code == 400


def test_edit_draft(client, auth_headers, draft):
    r = client.put(f"/api/emails/{draft.id}", headers=auth_headers, json={"subject": "  New subject  "})
    assert r.status_code == 200
    assert r.json()["subject"] == "New subject"


def test_cannot_edit_sent_email(client, auth_headers, db_session, draft):
    draft.status = "SENT"
    db_session.commit()
    r = client.put(f"/api/emails/{draft.id}", headers=auth_headers, json={"subject": "Too late"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot edit a sent email"


def test_other_user_cannot_see_email(client, other_headers, draft):
    assert client.get(f"/api/emails/{draft.id}", headers=other_headers).status_code == 404


def test_generate_counts_free_quota(client, auth_headers, db_session, test_user, recipient):
    with patch("outreach.app.services.ai_service.resolve_provider", return_value="gemini"), \
         patch("outreach.app.services.ai_service.generate_email", side_effect=_generated):
        r = client.post(
            "/api/emails/generate",
            headers=auth_headers,
            json={"recipient_id": recipient.id, "purpose": "MENTORSHIP", "tone": "FRIENDLY"},
        )
        assert r.status_code == 200
        assert r.json() == {"subject": "Hello from a test", "body": "Dear Grace,\nThanks.", "provider": "gemini"}

        # Free limit is one email
        r = client.post(
            "/api/emails/generate",
            headers=auth_headers,
            json={"recipient_id": recipient.id, "purpose": "MENTORSHIP", "tone": "FRIENDLY"},
        )
    assert r.status_code == 403
    assert r.json()["requires_upgrade"] is True

    db_session.expire_all()
    assert db_session.get(User, test_user.id).free_emails_used == 1


def test_generate_pro_user_is_not_counted(client, auth_headers, db_session, test_user, recipient):
    test_user.free_emails_used = 5
    db_session.add(Subscription(
        user_id=test_user.id,
        status=SUB_ACTIVE,
        provider=PROVIDER_MANUAL,
        current_period_start=datetime.utcnow(),
        current_period_end=datetime.utcnow() + timedelta(days=30),
    ))
    db_session.commit()

    with patch("outreach.app.services.ai_service.resolve_provider", return_value="claude"), \
         patch("outreach.app.services.ai_service.generate_email", side_effect=_generated):
        r = client.post(
            "/api/emails/generate",
            headers=auth_headers,
            json={"recipient_id": recipient.id, "purpose": "OTHER", "tone": "FORMAL"},
        )
    assert r.status_code == 200
    db_session.expire_all()
    assert db_session.get(User, test_user.id).free_emails_used == 5


def test_generate_rate_limited(client, auth_headers, test_user, recipient):
    for _ in range(GENERATE_RATE_LIMIT):
        check_rate_limit(f"generate:{test_user.id}", GENERATE_RATE_LIMIT)
    r = client.post(
        "/api/emails/generate",
        headers=auth_headers,
        json={"recipient_id": recipient.id, "purpose": "OTHER", "tone": "FORMAL"},
    )
    assert r.status_code == 429
    assert "Retry-After" in r.headers


def test_generate_without_configured_provider(client, auth_headers, recipient):
    with patch("outreach.app.services.ai_service.get_available_providers", return_value=[]):
        r = client.post(
            "/api/emails/generate",
            headers=auth_headers,
            json={"recipient_id": recipient.id, "purpose": "OTHER", "tone": "FORMAL", "provider": "groq"},
        )
    assert r.status_code == 400


def test_send_requires_gmail(client, auth_headers, draft):
    r = client.post(f"/api/emails/{draft.id}/send", headers=auth_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Gmail not connected. Please connect Gmail in settings."


def test_send_adds_tracking(client, auth_headers, db_session, draft):
    """Sent HTML carries a tracked link and the open pixel; the row becomes SENT."""
    send = MagicMock(return_value={"id": "msg-1", "threadId": "thread-1"})
    with patch("outreach.app.services.gmail_service.get_connection", return_value=MagicMock()), \
         patch("outreach.app.services.gmail_service.send_message", send):
        r = client.post(f"/api/emails/{draft.id}/send", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "SENT"
    assert data["gmail_thread_id"] == "thread-1"
    tracking_id = data["tracking_id"]
    assert len(tracking_id) == 32

    args = send.call_args.args
    assert args[2] == "grace@navy.mil"
    html_body = args[4]
    assert f"https://app.example.com/api/track/open/{tracking_id}" in html_body
    assert f"/api/track/click/{tracking_id}?url=https%3A%2F%2Fexample.org%2Fpaper" in html_body

    with patch("outreach.app.services.gmail_service.get_connection", return_value=MagicMock()):
        again = client.post(f"/api/emails/{draft.id}/send", headers=auth_headers)
    assert again.status_code == 400
    assert again.json()["detail"] == "Email has already been sent"


def test_send_runs_gmail_call_off_the_event_loop(client, auth_headers, draft):
    loops = []

    def _send(*args, **kwargs):
        try:
            loops.append(asyncio.get_running_loop())
        except RuntimeError:
            loops.append(None)
        return {"id": "msg-1", "threadId": "thread-1"}

    with patch("outreach.app.services.gmail_service.get_connection", return_value=MagicMock()), \
         patch("outreach.app.services.gmail_service.send_message", side_effect=_send):
        r = client.post(f"/api/emails/{draft.id}/send", headers=auth_headers)
    assert r.status_code == 200
    assert loops == [None]


def test_send_failure_marks_failed(client, auth_headers, db_session, draft):
    with patch("outreach.app.services.gmail_service.get_connection", return_value=MagicMock()), \
         patch("outreach.app.services.gmail_service.send_message", side_effect=gmail_service.GmailAPIError("quota")):
        r = client.post(f"/api/emails/{draft.id}/send", headers=auth_headers)
    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to send email. Please try again."
    db_session.expire_all()
    row = db_session.get(GeneratedEmail, draft.id)
    assert row.status == "FAILED"
    assert row.error_message == "quota"


def test_thread_reconciliation_marks_unread(client, auth_headers, db_session, draft):
    draft.status = "SENT"
    draft.gmail_thread_id = "thread-9"
    draft.gmail_message_id = "msg-9"
    db_session.commit()
    messages = [
        {"id": "a", "from": "me@example.com", "is_from_me": True, "date": "2026-01-01T10:00:00+00:00"},
        {"id": "b", "from": "Grace <grace@navy.mil>", "is_from_me": False, "date": "2026-01-02T10:00:00+00:00"},
    ]
    with patch("outreach.app.services.gmail_service.get_thread_messages", return_value=messages):
        r = client.get(f"/api/emails/{draft.id}/thread", headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["thread"]["reply_count"] == 1
    assert r.json()["email"]["conversation_read"] is False

    assert client.post(f"/api/emails/{draft.id}/read", headers=auth_headers).json() == {"success": True}
    db_session.expire_all()
    assert db_session.get(GeneratedEmail, draft.id).conversation_read is True


def test_thread_requires_gmail_thread(client, auth_headers, draft):
    r = client.get(f"/api/emails/{draft.id}/thread", headers=auth_headers)
    assert r.status_code == 400
