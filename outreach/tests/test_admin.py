"""Tests for /api/admin back-office endpoints"""
from unittest.mock import patch

from outreach.app.models.admin import AppSetting, AuditLog, EmailBroadcast
from outreach.app.models.billing import PROVIDER_MANUAL, PaymentTransaction, PromoCode, Subscription
from outreach.app.models.generated_email import GeneratedEmail
from outreach.app.models.recipient import Recipient
from outreach.app.models.user import User


def test_admin_requires_session(client):
    assert client.get("/api/admin/stats").status_code == 401


def test_admin_forbidden_for_users(client, auth_headers):
    r = client.get("/api/admin/stats", headers=auth_headers)
    assert r.status_code == 403
    assert r.json()["detail"] == "Forbidden: Admin access required"


def test_admin_stats(client, admin_headers, other_user):
    r = client.get("/api/admin/stats", headers=admin_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["total_users"] == 3
    assert data["pro_users"] == 0


def test_list_users_search_and_pagination(client, admin_headers, other_user):
    r = client.get("/api/admin/users", headers=admin_headers, params={"search": "other", "limit": 1})
    assert r.status_code == 200
    data = r.json()
    assert [u["email"] for u in data["users"]] == ["other@example.com"]
    assert data["pagination"] == {"page": 1, "limit": 1, "total": 1, "total_pages": 1}


def test_get_missing_user(client, admin_headers):
    r = client.get("/api/admin/users/999", headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["detail"] == "User not found"


def test_suspend_user_is_audited(client, admin_headers, db_session, admin_user, test_user):
    r = client.patch(f"/api/admin/users/{test_user.id}", headers=admin_headers, json={"action": "suspend"})
    assert r.status_code == 200
    assert r.json()["status"] == "SUSPENDED"

    log = db_session.query(AuditLog).one()
    assert log.user_id == admin_user.id
    assert log.action == "SUSPEND"
    assert log.entity_type == "User"
    assert log.entity_id == str(test_user.id)
    assert log.old_value == {"status": "ACTIVE"}
    assert log.new_value == {"status": "SUSPENDED"}


def test_admin_cannot_demote_or_suspend_self(client, admin_headers, admin_user):
    r = client.patch(f"/api/admin/users/{admin_user.id}", headers=admin_headers, json={"action": "remove_admin"})
    assert r.status_code == 400
    r = client.patch(f"/api/admin/users/{admin_user.id}", headers=admin_headers, json={"action": "ban"})
    assert r.status_code == 400


def test_unknown_action_is_400(client, admin_headers, test_user):
    r = client.patch(f"/api/admin/users/{test_user.id}", headers=admin_headers, json={"action": "promote"})
    assert r.status_code == 400


def test_grant_and_revoke_pro(client, admin_headers, db_session, test_user):
    r = client.patch(
        f"/api/admin/users/{test_user.id}", headers=admin_headers, json={"action": "grant_pro", "months": 3},
    )
    assert r.status_code == 200
    assert r.json()["subscription"]["status"] == "ACTIVE"
    assert r.json()["subscription"]["provider"] == PROVIDER_MANUAL

    txn = db_session.query(PaymentTransaction).one()
    assert txn.provider == PROVIDER_MANUAL
    assert txn.amount == 0.0

    r = client.patch(f"/api/admin/users/{test_user.id}", headers=admin_headers, json={"action": "revoke_pro"})
    assert r.status_code == 200
    db_session.expire_all()
    assert db_session.query(Subscription).one().status == "CANCELED"


def test_reset_email_count(client, admin_headers, db_session, test_user):
    test_user.free_emails_used = 4
    db_session.commit()
    r = client.patch(f"/api/admin/users/{test_user.id}", headers=admin_headers, json={"action": "reset_email_count"})
    assert r.status_code == 200
    assert r.json()["free_emails_used"] == 0


def test_delete_user_removes_owned_rows(client, admin_headers, db_session, test_user):
    recipient = Recipient(user_id=test_user.id, name="R", email="r@example.org")
    db_session.add(recipient)
    db_session.flush()
    db_session.add(GeneratedEmail(user_id=test_user.id, recipient_id=recipient.id, subject="S", body="B"))
    db_session.commit()

    r = client.delete(f"/api/admin/users/{test_user.id}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {"success": True}
    db_session.expire_all()
    assert db_session.get(User, test_user.id) is None
    assert db_session.query(Recipient).count() == 0
    assert db_session.query(GeneratedEmail).count() == 0
    assert db_session.query(AuditLog).filter(AuditLog.action == "DELETE_USER").count() == 1


def test_admin_cannot_delete_self(client, admin_headers, admin_user):
    r = client.delete(f"/api/admin/users/{admin_user.id}", headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot delete your own account"


def test_promo_code_crud(client, admin_headers, db_session):
    body = {"code": " spring25 ", "discount_type": "PERCENTAGE", "discount_value": 25}
    r = client.post("/api/admin/promo-codes", headers=admin_headers, json=body)
    assert r.status_code == 201
    promo_id = r.json()["id"]
    assert r.json()["code"] == "SPRING25"

    r = client.post("/api/admin/promo-codes", headers=admin_headers, json=body)
    assert r.status_code == 400
    assert r.json()["detail"] == "Promo code already exists"

    r = client.put(f"/api/admin/promo-codes/{promo_id}", headers=admin_headers, json={"is_active": False})
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    assert client.delete(f"/api/admin/promo-codes/{promo_id}", headers=admin_headers).status_code == 200
    db_session.expire_all()
    assert db_session.query(PromoCode).count() == 0


def test_promo_percentage_over_100(client, admin_headers):
    r = client.post(
        "/api/admin/promo-codes",
        headers=admin_headers,
        json={"code": "TOOMUCH", "discount_type": "PERCENTAGE", "discount_value": 150},
    )
    assert r.status_code == 400


def test_settings_put_validates_key_and_value(client, admin_headers, db_session):
    r = client.put("/api/admin/settings", headers=admin_headers, json={"key": "ai.default_provider", "value": "claude"})
    assert r.status_code == 200
    assert r.json() == {
        "key": "ai.default_provider",
        "value": "claude",
        "category": "ai",
        "description": "Provider used when a request does not name one",
    }

    bad_value = {"key": "ai.rate_limit_per_minute", "value": "lots"}
    assert client.put("/api/admin/settings", headers=admin_headers, json=bad_value).status_code == 400
    unknown = {"key": "env.DATABASE_URL", "value": "sqlite://"}
    assert client.put("/api/admin/settings", headers=admin_headers, json=unknown).status_code == 400
    assert db_session.query(AppSetting).count() == 1

    r = client.get("/api/admin/settings", headers=admin_headers)
    assert r.json()["settings"]["ai"][0]["value"] == "claude"

    assert client.delete("/api/admin/settings/ai.default_provider", headers=admin_headers).status_code == 200
    assert client.delete("/api/admin/settings/ai.default_provider", headers=admin_headers).status_code == 404


def test_free_email_limit_setting_applies(client, admin_headers, auth_headers):
    client.put("/api/admin/settings", headers=admin_headers, json={"key": "billing.free_email_limit", "value": 5})
    r = client.get("/api/subscription", headers=auth_headers)
    assert r.json()["free_emails_remaining"] == 5


def test_broadcast_specific_users_requires_ids(client, admin_headers):
    r = client.post(
        "/api/admin/broadcasts",
        headers=admin_headers,
        json={"subject": "Hi", "content": "<p>Hi</p>", "target_type": "SPECIFIC_USERS"},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Select at least one user"


def test_broadcast_send(client, admin_headers, db_session, other_user):
    r = client.post(
        "/api/admin/broadcasts",
        headers=admin_headers,
        json={"subject": "News", "content": "<p>Hello {{name}}</p>"},
    )
    assert r.status_code == 201
    broadcast_id = r.json()["id"]
    assert r.json()["status"] == "DRAFT"

    with patch("outreach.app.services.mailer.is_email_configured", return_value=True), \
         patch("outreach.app.services.mailer.send_bulk_emails", return_value={"sent": 3, "failed": 0}) as bulk:
        r = client.post(f"/api/admin/broadcasts/{broadcast_id}/send", headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {"success": True, "status": "SENT", "recipients": 3, "sent": 3, "failed": 0}
    recipients = bulk.call_args.args[0]
    assert sorted(rcpt.email for rcpt in recipients) == [
        "admin@example.com", "other@example.com", "test@example.com",
    ]

    with patch("outreach.app.services.mailer.is_email_configured", return_value=True):
        again = client.post(f"/api/admin/broadcasts/{broadcast_id}/send", headers=admin_headers)
    assert again.status_code == 400
    edit = client.put(f"/api/admin/broadcasts/{broadcast_id}", headers=admin_headers, json={"subject": "Edited"})
    assert edit.status_code == 400
    db_session.expire_all()
    assert db_session.get(EmailBroadcast, broadcast_id).sent_count == 3


def test_broadcast_send_without_mail_config(client, admin_headers):
    broadcast_id = client.post(
        "/api/admin/broadcasts", headers=admin_headers, json={"subject": "S", "content": "C"},
    ).json()["id"]
    with patch("outreach.app.services.mailer.is_email_configured", return_value=False):
        r = client.post(f"/api/admin/broadcasts/{broadcast_id}/send", headers=admin_headers)
    assert r.status_code == 503


def test_broadcast_pro_audience(client, admin_headers, db_session, test_user, other_user):
    client.patch(f"/api/admin/users/{other_user.id}", headers=admin_headers, json={"action": "grant_pro"})
    broadcast_id = client.post(
        "/api/admin/broadcasts",
        headers=admin_headers,
        json={"subject": "Pro news", "content": "C", "target_type": "PRO_USERS"},
    ).json()["id"]
    with patch("outreach.app.services.mailer.is_email_configured", return_value=True), \
         patch("outreach.app.services.mailer.send_bulk_emails", return_value={"sent": 1, "failed": 0}) as bulk:
        client.post(f"/api/admin/broadcasts/{broadcast_id}/send", headers=admin_headers)
    assert [rcpt.email for rcpt in bulk.call_args.args[0]] == ["other@example.com"]


def test_support_ticket_resolution(client, auth_headers, admin_headers):
    ticket = client.post(
        "/api/support", headers=auth_headers, json={"subject": "Broken", "description": "It broke"},
    ).json()
    r = client.patch(f"/api/admin/support/{ticket['id']}", headers=admin_headers, json={"status": "RESOLVED"})
    assert r.status_code == 200
    assert r.json()["status"] == "RESOLVED"
    assert r.json()["resolved_at"] is not None

    listing = client.get("/api/admin/support", headers=admin_headers, params={"status": "RESOLVED"}).json()
    assert listing["tickets"][0]["user_email"] == "test@example.com"


def test_analytics_and_audit_logs(client, admin_headers, test_user):
    client.patch(f"/api/admin/users/{test_user.id}", headers=admin_headers, json={"action": "ban"})
    r = client.get("/api/admin/analytics", headers=admin_headers, params={"period": "30d"})
    assert r.status_code == 200
    assert r.json()["period"] == "30d"

    logs = client.get("/api/admin/audit-logs", headers=admin_headers, params={"action": "BAN"}).json()
    assert logs["pagination"]["total"] == 1
