"""Tests for /api/auth: register, login, me, refresh"""
from datetime import timedelta

from outreach.app.core.security import create_access_token, create_oauth_state
from outreach.app.models.user import STATUS_BANNED, STATUS_SUSPENDED, User

PASSWORD = "testpass123"


def test_register_returns_token_and_user(client, db_session):
    """New account is created and logged in immediately."""
    r = client.post(
        "/api/auth/register",
        json={"name": "New Person", "email": "New@Example.com", "password": "longenough1"},
    )
    assert r.status_code == 201
    data = r.json()
    assert data["access_token"]
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == "new@example.com"
    assert data["user"]["role"] == "USER"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
    assert me.status_code == 200
    assert me.json()["name"] == "New Person"


def test_register_duplicate_email(client, test_user):
    r = client.post(
        "/api/auth/register",
        json={"name": "Again", "email": "test@example.com", "password": "longenough1"},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Email already registered"


def test_register_short_password(client):
    r = client.post(
        "/api/auth/register",
        json={"name": "Shorty", "email": "short@example.com", "password": "abc"},
    )
    assert r.status_code == 400


def test_register_missing_field_is_400(client):
    """Schema validation errors are reported as 400, not 422."""
    r = client.post("/api/auth/register", json={"email": "x@example.com"})
    assert r.status_code == 400


def test_login_success(client, test_user):
    r = client.post("/api/auth/login", json={"email": "test@example.com", "password": PASSWORD})
    assert r.status_code == 200
    assert r.json()["user"]["id"] == test_user.id


def test_login_wrong_password(client, test_user):
    r = client.post("/api/auth/login", json={"email": "test@example.com", "password": "nope-nope"})
    assert r.status_code == 401
    assert r.json()["detail"] == "Invalid email or password"


def test_login_suspended_and_banned(client, db_session, test_user):
    """Suspended and banned accounts cannot log in."""
    test_user.status = STATUS_SUSPENDED
    db_session.commit()
    r = client.post("/api/auth/login", json={"email": "test@example.com", "password": PASSWORD})
    assert r.status_code == 403
    assert "suspended" in r.json()["detail"]

    test_user.status = STATUS_BANNED
    db_session.commit()
    r = client.post("/api/auth/login", json={"email": "test@example.com", "password": PASSWORD})
    assert r.status_code == 403
    assert "banned" in r.json()["detail"]


def test_me_requires_auth(client):
    assert client.get("/api/auth/me").status_code == 401


def test_me_rejects_garbage_token(client):
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert r.status_code == 401


def test_oauth_state_is_not_a_session(client, test_user):
    """Gmail consent state is signed with the same key but must not authenticate."""
    state = create_oauth_state(test_user.id, "gmail_oauth")
    r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {state}"})
    assert r.status_code == 401


def test_refresh_accepts_expired_token(client, test_user):
    expired = create_access_token(
        data={"sub": str(test_user.id), "email": test_user.email},
        expires_delta=timedelta(minutes=-5),
    )
    assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"}).status_code == 401

    r = client.post("/api/auth/refresh", headers={"Authorization": f"Bearer {expired}"})
    assert r.status_code == 200
    fresh = r.json()["access_token"]
    assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {fresh}"}).status_code == 200


def test_refresh_without_token(client):
    assert client.post("/api/auth/refresh").status_code == 401


def test_signups_can_be_disabled(client, db_session):
    from outreach.app.services.app_settings import upsert_setting

    upsert_setting(db_session, {"key": "app.signups_enabled", "value": False}, None)
    r = client.post(
        "/api/auth/register",
        json={"name": "Late", "email": "late@example.com", "password": "longenough1"},
    )
    assert r.status_code == 403
    assert db_session.query(User).filter(User.email == "late@example.com").first() is None
