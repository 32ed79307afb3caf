"""Tests for GET /api/dashboard"""
from unittest.mock import AsyncMock, MagicMock, patch

from outreach.app.models.generated_email import GeneratedEmail
from outreach.app.models.recipient import Recipient


def test_dashboard_requires_auth(client):
    assert client.get("/api/dashboard").status_code == 401


def test_dashboard_empty_account(client, auth_headers):
    r = client.get("/api/dashboard", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["stats"] == {
        "documents": 0,
        "recipients": 0,
        "emails_total": 0,
        "emails_by_status": {"DRAFT": 0, "SENT": 0, "FAILED": 0},
        "unread_conversations": 0,
    }
    assert data["gmail_connected"] is False
    assert data["recent_emails"] == []
    assert data["subscription"]["is_pro"] is False
    assert data["subscription"]["status"] == "FREE"
    assert data["subscription"]["free_emails_remaining"] == 1


def test_dashboard_counts_and_recent(client, auth_headers, db_session, test_user):
    recipient = Recipient(user_id=test_user.id, name="Alan Turing", email="alan@example.org")
    db_session.add(recipient)
    db_session.flush()
    for i in range(7):
        db_session.add(GeneratedEmail(
            user_id=test_user.id,
            recipient_id=recipient.id,
            subject=f"Email {i}",
            body="B",
            status="SENT" if i % 2 else "DRAFT",
            reply_count=1 if i == 1 else 0,
            conversation_read=i != 1,
        ))
    db_session.commit()

    data = client.get("/api/dashboard", headers=auth_headers).json()
    assert data["stats"]["recipients"] == 1
    assert data["stats"]["emails_total"] == 7
    assert data["stats"]["emails_by_status"]["SENT"] == 3
    assert data["stats"]["unread_conversations"] == 1
    assert len(data["recent_emails"]) == 5
    assert data["recent_emails"][0]["recipient"]["name"] == "Alan Turing"


def test_dashboard_second_call_uses_cache(client, auth_headers):
    """Cache hit skips the DB build."""
    from outreach.app.api.v1.dashboard import routes as dashboard_routes

    build_mock = MagicMock(wraps=dashboard_routes._build_dashboard_summary)

    with patch.object(dashboard_routes, "_build_dashboard_summary", build_mock), \
         patch("outreach.app.utils.cache.get", new_callable=AsyncMock) as mock_get, \
         patch("outreach.app.utils.cache.set", new_callable=AsyncMock) as mock_set:
        mock_get.return_value = None
        r1 = client.get("/api/dashboard", headers=auth_headers)
        assert r1.status_code == 200
        mock_set.assert_awaited_once()
        assert mock_set.call_args.args[0] == "dashboard:1"

        mock_get.return_value = r1.json()
        r2 = client.get("/api/dashboard", headers=auth_headers)
        assert r2.status_code == 200
        assert r2.json() == r1.json()

    assert build_mock.call_count == 1


def test_dashboard_survives_cache_errors(client, auth_headers):
    with patch("outreach.app.utils.cache.get", new_callable=AsyncMock, side_effect=RuntimeError("down")), \
         patch("outreach.app.utils.cache.set", new_callable=AsyncMock, side_effect=RuntimeError("down")):
        r = client.get("/api/dashboard", headers=auth_headers)
    assert r.status_code == 200


def test_creating_recipient_invalidates_dashboard(client, auth_headers):
    with patch("outreach.app.utils.cache.delete", new_callable=AsyncMock) as mock_delete:
        client.post("/api/recipients", headers=auth_headers, json={"name": "N", "email": "n@example.org"})
    mock_delete.assert_awaited_with("dashboard:1")
