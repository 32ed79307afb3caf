"""Tests for announcements, feedback, support tickets, page view tracking and misc endpoints"""
from datetime import datetime, timedelta
from unittest.mock import patch

from outreach.app.models.analytics import PageView
from outreach.app.models.billing import PROVIDER_MANUAL, SUB_ACTIVE, Subscription
from outreach.app.models.support import Announcement


def _announce(db, title, target_roles, **fields):
    fields.setdefault("starts_at", datetime.utcnow() - timedelta(minutes=5))
    db.add(Announcement(title=title, content=f"{title} body", target_roles=target_roles, **fields))
    db.commit()


def _titles(response):
    return sorted(a["title"] for a in response.json()["announcements"])


def test_announcements_targeting(client, auth_headers, admin_headers, db_session, test_user):
    _announce(db_session, "everyone", ["ALL"])
    _announce(db_session, "users", ["USER"])
    _announce(db_session, "admins", ["ADMIN"])
    _announce(db_session, "free", ["FREE"])
    _announce(db_session, "pro", ["PRO"])
    _announce(db_session, "untargeted", [])
    _announce(db_session, "expired", ["ALL"], ends_at=datetime.utcnow() - timedelta(minutes=1))
    _announce(db_session, "scheduled", ["ALL"], starts_at=datetime.utcnow() + timedelta(days=1))
    _announce(db_session, "inactive", ["ALL"], is_active=False)

    assert _titles(client.get("/api/announcements")) == ["everyone", "untargeted"]
    assert _titles(client.get("/api/announcements", headers=auth_headers)) == [
        "everyone", "free", "untargeted", "users",
    ]
    assert _titles(client.get("/api/announcements", headers=admin_headers)) == [
        "admins", "everyone", "free", "untargeted", "users",
    ]

    db_session.add(Subscription(
        user_id=test_user.id,
        status=SUB_ACTIVE,
        provider=PROVIDER_MANUAL,
        current_period_end=datetime.utcnow() + timedelta(days=30),
    ))
    db_session.commit()
    assert "pro" in _titles(client.get("/api/announcements", headers=auth_headers))


def test_feedback_create_and_list(client, auth_headers, other_headers):
    r = client.post(
        "/api/feedback",
        headers=auth_headers,
        json={"type": "BUG", "rating": 4, "message": "  Button misaligned  ", "page": "/emails"},
    )
    assert r.status_code == 201
    assert r.json()["message"] == "Button misaligned"

    assert len(client.get("/api/feedback", headers=auth_headers).json()) == 1
    assert client.get("/api/feedback", headers=other_headers).json() == []


def test_feedback_rating_out_of_range(client, auth_headers):
    r = client.post("/api/feedback", headers=auth_headers, json={"rating": 9, "message": "x"})
    assert r.status_code == 400


def test_support_ticket_requires_text(client, auth_headers):
    r = client.post("/api/support", headers=auth_headers, json={"subject": "   ", "description": "   "})
    assert r.status_code == 400
    assert r.json()["detail"] == "Subject and description are required"


def test_support_tickets_are_private(client, auth_headers, other_headers):
    r = client.post("/api/support", headers=auth_headers, json={"subject": "Help", "description": "Please"})
    assert r.status_code == 201
    assert r.json()["status"] == "OPEN"
    assert len(client.get("/api/support", headers=auth_headers).json()) == 1
    assert client.get("/api/support", headers=other_headers).json() == []


def test_page_view_sets_session_cookie(client, db_session):
    r = client.post("/api/analytics/track", json={"path": "/pricing", "referrer": "https://search.example"})
    assert r.status_code == 200
    assert r.json() == {"success": True}
    session_id = r.cookies.get("session_id")
    assert session_id

    client.post("/api/analytics/track", json={"path": "/"})
    views = db_session.query(PageView).order_by(PageView.id).all()
    assert [v.path for v in views] == ["/pricing", "/"]
    assert {v.session_id for v in views} == {session_id}
    assert views[0].user_id is None


def test_page_view_records_user(client, auth_headers, db_session, test_user):
    client.post("/api/analytics/track", headers=auth_headers, json={"path": "/dashboard"})
    assert db_session.query(PageView).one().user_id == test_user.id


def test_page_view_requires_path(client):
    assert client.post("/api/analytics/track", json={"path": ""}).status_code == 400


def test_user_status(client, auth_headers):
    r = client.get("/api/user/status", headers=auth_headers)
    assert r.json() == {
        "status": "ACTIVE",
        "role": "USER",
        "is_active": True,
        "is_suspended": False,
        "is_banned": False,
    }


def test_ai_providers_default(client, auth_headers):
    with patch("outreach.app.services.ai_service.get_available_providers", return_value=["groq", "claude"]), \
         patch("outreach.app.services.ai_service.get_default_provider", return_value="gemini"):
        r = client.get("/api/ai/providers", headers=auth_headers)
    assert r.json() == {"providers": ["groq", "claude"], "default": "groq"}

    with patch("outreach.app.services.ai_service.get_available_providers", return_value=[]):
        assert client.get("/api/ai/providers", headers=auth_headers).json()["default"] is None


def test_tracking_url_diagnostics(client, auth_headers):
    r = client.get("/api/debug/tracking-url", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["tracking_url"] == "https://app.example.com"
    assert data["issue"] is None
