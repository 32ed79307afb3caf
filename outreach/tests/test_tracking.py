"""Tests for link wrapping, pixel injection and the public /api/track endpoints"""
import pytest

from outreach.app.core.config import settings
from outreach.app.models.email_tracking import EmailOpen, LinkClick
from outreach.app.models.generated_email import GeneratedEmail
from outreach.app.models.recipient import Recipient
from outreach.app.services.email_tracking import (
    TRACKING_PIXEL_GIF,
    add_tracking_to_email,
    get_base_url,
    inject_tracking_pixel,
    is_trackable_url,
    wrap_links_with_tracking,
)

BASE = "https://t.example.com"
TID = "a" * 32


def test_wrap_links_skips_non_http():
    html = (
        '<a href="https://example.org/x?a=1&amp;b=2">x</a>'
        '<a href="mailto:me@example.org">m</a>'
        "<a href='#top'>t</a>"
        '<a href="tel:+15550100">call</a>'
        '<div data-href="https://example.org/card">c</div>'
    )
    out = wrap_links_with_tracking(html, TID, BASE)
    assert f"{BASE}/api/track/click/{TID}?url=https%3A%2F%2Fexample.org%2Fx%3Fa%3D1%26b%3D2" in out
    assert 'href="mailto:me@example.org"' in out
    assert "href='#top'" in out
    assert 'href="tel:+15550100"' in out
    assert 'data-href="https://example.org/card"' in out
    assert out.count("/api/track/click/") == 1


def test_add_tracking_is_idempotent():
    html = '<html><body><p><a href="http://example.org">x</a></p></body></html>'
    once = add_tracking_to_email(html, TID, BASE)
    twice = add_tracking_to_email(once, TID, BASE)
    assert once == twice
    assert once.count(f"{BASE}/api/track/open/{TID}") == 1
    assert once.index("/api/track/open/") < once.index("</body>")


def test_pixel_placement_without_body_tag():
    assert inject_tracking_pixel("<p>hi</p></html>", TID, BASE).endswith("</html>")
    assert inject_tracking_pixel("plain", TID, BASE).startswith("plain<img")


@pytest.mark.parametrize("url,expected", [
    ("https://example.org", True),
    ("HTTP://EXAMPLE.ORG/A", True),
    ("javascript:alert(1)", False),
    ("tel:+123", False),
    ("/relative/path", False),
    (f"{BASE}/api/track/click/x?url=y", False),
])
def test_is_trackable_url(url, expected):
    assert is_trackable_url(url) is expected


def test_base_url_precedence(monkeypatch):
    monkeypatch.setattr(settings, "app_url", "")
    monkeypatch.setattr(settings, "auth_callback_url", "")
    monkeypatch.setattr(settings, "vercel_url", "my-app.vercel.app")
    assert get_base_url() == "https://my-app.vercel.app"
    monkeypatch.setattr(settings, "auth_callback_url", "https://auth.example.com/")
    assert get_base_url() == "https://auth.example.com"
    monkeypatch.setattr(settings, "app_url", "https://app.example.com/")
    assert get_base_url() == "https://app.example.com"


@pytest.fixture
def sent_email(db_session, test_user):
    recipient = Recipient(user_id=test_user.id, name="R", email="r@example.org")
    db_session.add(recipient)
    db_session.flush()
    email = GeneratedEmail(
        user_id=test_user.id, recipient_id=recipient.id, subject="S", body="B",
        status="SENT", tracking_id=TID,
    )
    db_session.add(email)
    db_session.commit()
    return email


def test_open_pixel_records_event(client, db_session, sent_email):
    r = client.get(f"/api/track/open/{TID}", headers={"User-Agent": "MailClient/1.0"})
    assert r.status_code == 200
    assert r.headers["content-type"] == "image/gif"
    assert r.content == TRACKING_PIXEL_GIF
    assert "no-store" in r.headers["cache-control"]
    opens = db_session.query(EmailOpen).all()
    assert len(opens) == 1
    assert opens[0].user_agent == "MailClient/1.0"


def test_open_pixel_unknown_id_still_served(client, db_session):
    r = client.get("/api/track/open/unknown")
    assert r.status_code == 200
    assert r.content == TRACKING_PIXEL_GIF
    assert db_session.query(EmailOpen).count() == 0


def test_click_redirects_and_records(client, db_session, sent_email):
    r = client.get(
        f"/api/track/click/{TID}",
        params={"url": "https://example.org/paper"},
        follow_redirects=False,
    )
    assert r.status_code == 302
    assert r.headers["location"] == "https://example.org/paper"
    clicks = db_session.query(LinkClick).all()
    assert [c.original_url for c in clicks] == ["https://example.org/paper"]


def test_click_rejects_unsafe_target(client, db_session, sent_email):
    r = client.get(
        f"/api/track/click/{TID}",
        params={"url": "javascript:alert(1)"},
        follow_redirects=False,
    )
    assert r.status_code == 302
    assert r.headers["location"] == "https://app.example.com/"
    assert db_session.query(LinkClick).count() == 0


def test_email_tracking_stats(client, auth_headers, sent_email):
    client.get(f"/api/track/open/{TID}")
    client.get(f"/api/track/open/{TID}")
    client.get(f"/api/track/click/{TID}", params={"url": "https://example.org"}, follow_redirects=False)
    r = client.get(f"/api/emails/{sent_email.id}/tracking", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["opens"]["total"] == 2
    assert data["opens"]["unique"] == 1
    assert data["clicks"]["by_url"] == {"https://example.org": 1}
