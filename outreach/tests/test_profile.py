"""Tests for /api/profile"""
from unittest.mock import patch

from outreach.app.models.document import Document
from outreach.app.models.profile import Profile
from outreach.app.services.profile_service import profile_completion


def test_profile_requires_auth(client):
    assert client.get("/api/profile").status_code == 401


def test_profile_created_on_first_read(client, auth_headers, db_session):
    r = client.get("/api/profile", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["email"] == "test@example.com"
    assert data["skills"] == []
    assert db_session.query(Profile).count() == 1


def test_profile_update_sanitizes(client, auth_headers):
    r = client.put(
        "/api/profile",
        headers=auth_headers,
        json={
            "name": "Renamed User",
            "headline": "  PhD student  ",
            "skills": ["python", "", 42, "  sql "] + [f"s{i}" for i in range(30)],
            "education": [{"institution": "MIT", "degree": "BSc", "year": 2020}, "junk"],
            "other_links": [{"label": "Blog", "url": "https://blog.example"}, {"label": "no url"}],
        },
    )
    assert r.status_code == 200
    data = r.json()
    assert data["name"] == "Renamed User"
    assert data["headline"] == "PhD student"
    assert data["skills"][:2] == ["python", "sql"]
    assert len(data["skills"]) == 20
    assert data["education"] == [{"institution": "MIT", "degree": "BSc", "field": "", "year": "2020"}]
    assert data["other_links"] == [{"label": "Blog", "url": "https://blog.example"}]


def test_profile_update_keeps_unsent_fields(client, auth_headers):
    client.put("/api/profile", headers=auth_headers, json={"bio": "Researcher"})
    r = client.put("/api/profile", headers=auth_headers, json={"goals": "Find a lab"})
    assert r.json()["bio"] == "Researcher"
    assert r.json()["goals"] == "Find a lab"


def test_profile_completion():
    assert profile_completion(None) == 0
    assert profile_completion(Profile(headline="h", bio="b", skills=["x"], linkedin_url="u")) == 50


def test_extract_from_resume_requires_text(client, auth_headers, db_session, test_user):
    doc = Document(user_id=test_user.id, name="cv.pdf", type="CV", file_name="x.pdf", mime_type="application/pdf")
    db_session.add(doc)
    db_session.commit()
    r = client.post("/api/profile/extract-from-resume", headers=auth_headers, json={"document_id": doc.id})
    assert r.status_code == 400


def test_extract_from_resume_returns_suggestion(client, auth_headers, db_session, test_user):
    doc = Document(
        user_id=test_user.id, name="cv.pdf", type="CV", file_name="x.pdf",
        mime_type="application/pdf", extracted_text="Jane Doe, Python developer",
    )
    db_session.add(doc)
    db_session.commit()
    suggestion = {"headline": "Python developer", "skills": ["python"]}
    with patch("outreach.app.services.ai_service.resolve_provider", return_value="gemini"), \
         patch("outreach.app.services.ai_service.extract_profile", return_value=suggestion):
        r = client.post("/api/profile/extract-from-resume", headers=auth_headers, json={"document_id": doc.id})
    assert r.status_code == 200
    assert r.json() == {"success": True, "provider": "gemini", "extracted_profile": suggestion}
    # suggestion only; nothing persisted
    assert db_session.query(Profile).count() == 0


def test_extract_from_foreign_document(client, other_headers, db_session, test_user):
    doc = Document(user_id=test_user.id, name="cv.pdf", type="CV", file_name="x.pdf", mime_type="application/pdf")
    db_session.add(doc)
    db_session.commit()
    r = client.post("/api/profile/extract-from-resume", headers=other_headers, json={"document_id": doc.id})
    assert r.status_code == 404
