"""
Pytest fixtures for OutreachAI API tests.
Uses in-memory SQLite, mocks Redis, provides seeded users and auth tokens.
"""
import os

import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Use in-memory SQLite for tests - set before config/session load
# Must override any .env DATABASE_URL
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["REDIS_URL"] = ""
os.environ["APP_URL"] = "https://app.example.com"

from outreach.app.db.base import Base
from outreach.main import app
from outreach.app.core.config import settings
from outreach.app.core.dependencies import get_db
from outreach.app.core.security import create_access_token, get_password_hash
from outreach.app.models.user import ROLE_ADMIN, User
from outreach.app.services import rate_limit

# In-memory SQLite for tests - StaticPool ensures all sessions share same DB
engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Patch the session module so app uses our test engine
import outreach.app.db.session as session_module
session_module.engine = engine
session_module.SessionLocal = TestingSessionLocal
# main.py imports engine directly; patch so startup uses our engine
import outreach.main as main_module
main_module.engine = engine


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db

PASSWORD = "testpass123"


def _make_user(db, user_id: int, email: str, name: str, role: str = "USER") -> User:
    user = User(
        id=user_id,
        name=name,
        email=email,
        hashed_password=get_password_hash(PASSWORD),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def headers_for(user: User) -> dict:
    token = create_access_token(data={"sub": str(user.id), "email": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def db_session():
    """Create tables and a fresh DB session per test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def test_user(db_session):
    return _make_user(db_session, 1, "test@example.com", "Test User")


@pytest.fixture
def other_user(db_session):
    """Second ordinary user, for ownership checks."""
    return _make_user(db_session, 2, "other@example.com", "Other User")


@pytest.fixture
def admin_user(db_session):
    return _make_user(db_session, 3, "admin@example.com", "Admin User", role=ROLE_ADMIN)


@pytest.fixture
def auth_headers(test_user):
    """Bearer token for test user."""
    return headers_for(test_user)


@pytest.fixture
def other_headers(other_user):
    return headers_for(other_user)


@pytest.fixture
def admin_headers(admin_user):
    return headers_for(admin_user)


@pytest.fixture
def client(db_session, test_user):
    """TestClient with DB and test user pre-seeded."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch):
    """Uploaded files go to a per-test temp dir."""
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    return tmp_path / "uploads"


@pytest.fixture(autouse=True)
def reset_rate_limit():
    rate_limit.clear()
    yield
    rate_limit.clear()


@pytest.fixture(autouse=True)
def mock_redis():
    """Mock Redis cache: get returns None (cache miss), set/delete no-op. Skip connect."""
    with patch("outreach.app.utils.cache.get", new_callable=AsyncMock, return_value=None), \
         patch("outreach.app.utils.cache.set", new_callable=AsyncMock), \
         patch("outreach.app.utils.cache.delete", new_callable=AsyncMock), \
         patch("outreach.app.utils.cache.connect", new_callable=AsyncMock):
        yield
