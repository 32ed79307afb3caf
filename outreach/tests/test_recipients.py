"""Tests for /api/recipients"""
from outreach.app.models.generated_email import GeneratedEmail
from outreach.app.models.recipient import Recipient


def _create(client, headers, **fields):
    body = {"name": "Dr. Ada Lovelace", "email": "ada@uni.edu", **fields}
    return client.post("/api/recipients", headers=headers, json=body)


def test_recipients_require_auth(client):
    assert client.get("/api/recipients").status_code == 401


def test_create_and_list(client, auth_headers):
    r = _create(client, auth_headers, organization="Analytical Engines Lab", role="Professor")
    assert r.status_code == 201
    created = r.json()
    assert created["email_count"] == 0
    assert created["organization"] == "Analytical Engines Lab"

    r = client.get("/api/recipients", headers=auth_headers)
    assert r.status_code == 200
    assert [x["id"] for x in r.json()] == [created["id"]]


def test_create_requires_name_and_email(client, auth_headers):
    r = client.post("/api/recipients", headers=auth_headers, json={"name": "  ", "email": "a@b.co"})
    assert r.status_code == 400
    assert r.json()["detail"] == "Name and email are required"


def test_create_rejects_bad_email(client, auth_headers):
    r = _create(client, auth_headers, email="not-an-email")
    assert r.status_code == 400
    assert r.json()["detail"] == "Invalid email format"


def test_long_fields_are_truncated(client, auth_headers):
    r = _create(client, auth_headers, website="https://x.io/" + "a" * 900)
    assert r.status_code == 201
    assert len(r.json()["website"]) == 500


def test_long_name_and_email_are_truncated_after_validation(client, auth_headers):
    r = _create(client, auth_headers, name="n" * 300, email="a" * 300 + "@example.com")
    assert r.status_code == 201
    data = r.json()
    assert data["name"] == "n" * 200
    assert data["email"] == "a" * 200


def test_update_validates_full_email(client, auth_headers):
    rid = _create(client, auth_headers).json()["id"]
    r = client.put(f"/api/recipients/{rid}", headers=auth_headers, json={"email": "b" * 250 + "@example.org"})
    assert r.status_code == 200
    assert len(r.json()["email"]) == 200

    r = client.put(f"/api/recipients/{rid}", headers=auth_headers, json={"email": "no-at-sign"})
    assert r.status_code == 400


def test_update_partial(client, auth_headers):
    rid = _create(client, auth_headers).json()["id"]
    r = client.put(f"/api/recipients/{rid}", headers=auth_headers, json={"role": "Dean"})
    assert r.status_code == 200
    assert r.json()["role"] == "Dean"
    assert r.json()["name"] == "Dr. Ada Lovelace"


def test_get_includes_recent_emails(client, auth_headers, db_session, test_user):
    rid = _create(client, auth_headers).json()["id"]
    db_session.add(GeneratedEmail(user_id=test_user.id, recipient_id=rid, subject="Hello", body="Hi"))
    db_session.commit()

    r = client.get(f"/api/recipients/{rid}", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["email_count"] == 1
    assert data["recent_emails"][0]["subject"] == "Hello"


def test_other_users_recipient_is_404(client, auth_headers, other_headers):
    rid = _create(client, other_headers).json()["id"]
    assert client.get(f"/api/recipients/{rid}", headers=auth_headers).status_code == 404
    assert client.put(f"/api/recipients/{rid}", headers=auth_headers, json={"role": "x"}).status_code == 404
    assert client.delete(f"/api/recipients/{rid}", headers=auth_headers).status_code == 404


def test_delete_removes_emails(client, auth_headers, db_session, test_user):
    rid = _create(client, auth_headers).json()["id"]
    db_session.add(GeneratedEmail(user_id=test_user.id, recipient_id=rid, subject="S", body="B"))
    db_session.commit()

    r = client.delete(f"/api/recipients/{rid}", headers=auth_headers)
    assert r.status_code == 200
    assert r.json() == {"success": True}
    db_session.expire_all()
    assert db_session.query(Recipient).count() == 0
    assert db_session.query(GeneratedEmail).count() == 0
