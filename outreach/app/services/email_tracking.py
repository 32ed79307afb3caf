"""
Open/click tracking for outgoing emails.

Outgoing HTML gets two rewrites:
- every http(s) link is routed through /api/track/click/{tracking_id}?url=<original>
- a hidden 1x1 image pointing at /api/track/open/{tracking_id} is appended to the body

Both rewrites are idempotent: links that already point at a tracking endpoint are left
alone and the pixel is only added once.
"""
import base64
import html
import re
import secrets
from urllib.parse import quote, urlparse

from outreach.app.core.config import LOCAL_BASE_URL, settings

TRACKING_PATH = "/api/track/"

# 1x1 transparent GIF
TRACKING_PIXEL_GIF = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")

PIXEL_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

_HREF_RE = re.compile(r"""(?<![\w-])href\s*=\s*(["'])(.*?)\1""", re.IGNORECASE | re.DOTALL)
_BODY_CLOSE_RE = re.compile(r"</body\s*>", re.IGNORECASE)
_HTML_CLOSE_RE = re.compile(r"</html\s*>", re.IGNORECASE)


def generate_tracking_id() -> str:
    """128 bits of randomness, hex-encoded."""
    return secrets.token_hex(16)


def get_base_url() -> str:
    """
    Public base URL used in tracking links.
    Precedence: APP_URL -> AUTH_CALLBACK_URL -> VERCEL_URL (https) -> localhost.
    """
    if settings.app_url:
        return settings.app_url.rstrip("/")
    if settings.auth_callback_url:
        return settings.auth_callback_url.rstrip("/")
    vercel_url = settings.vercel_url
    if vercel_url:
        if not vercel_url.startswith(("http://", "https://")):
            vercel_url = f"https://{vercel_url}"
        return vercel_url.rstrip("/")
    return LOCAL_BASE_URL


def open_url(tracking_id: str, base_url: str | None = None) -> str:
    return f"{base_url or get_base_url()}{TRACKING_PATH}open/{tracking_id}"


def click_url(tracking_id: str, original_url: str, base_url: str | None = None) -> str:
    return f"{base_url or get_base_url()}{TRACKING_PATH}click/{tracking_id}?url={quote(original_url, safe='')}"


def is_trackable_url(url: str) -> bool:
    """Absolute http(s) targets only; never mailto:, tel:, anchors or existing tracking links."""
    url = url.strip()
    if not url or url.startswith("#") or TRACKING_PATH in url:
        return False
    scheme = urlparse(url).scheme.lower()
    return scheme in ("http", "https")


def wrap_links_with_tracking(body_html: str, tracking_id: str, base_url: str | None = None) -> str:
    base = base_url or get_base_url()

    def _replace(match: re.Match) -> str:
        raw = match.group(2)
        target = html.unescape(raw).strip()
        if not is_trackable_url(target):
            return match.group(0)
        return f'href="{html.escape(click_url(tracking_id, target, base))}"'

    return _HREF_RE.sub(_replace, body_html)


def tracking_pixel_tag(tracking_id: str, base_url: str | None = None) -> str:
    return (
        f'<img src="{open_url(tracking_id, base_url)}" width="1" height="1" '
        'style="display:none;visibility:hidden;" alt="" />'
    )


def inject_tracking_pixel(body_html: str, tracking_id: str, base_url: str | None = None) -> str:
    """Insert the pixel before </body>, else before </html>, else append it."""
    if open_url(tracking_id, base_url) in body_html:
        return body_html
    pixel = tracking_pixel_tag(tracking_id, base_url)
    for pattern in (_BODY_CLOSE_RE, _HTML_CLOSE_RE):
        match = pattern.search(body_html)
        if match:
            return body_html[:match.start()] + pixel + body_html[match.start():]
    return body_html + pixel


def add_tracking_to_email(body_html: str, tracking_id: str, base_url: str | None = None) -> str:
    base = base_url or get_base_url()
    wrapped = wrap_links_with_tracking(body_html, tracking_id, base)
    return inject_tracking_pixel(wrapped, tracking_id, base)


def tracking_diagnostics() -> dict:
    """Resolved base URL and its inputs; warns when tracking links would point at localhost."""
    base = get_base_url()
    issue = None
    if "localhost" in base or "127.0.0.1" in base:
        issue = (
            "Tracking URLs point at localhost; opens and clicks from real recipients will not be "
            "recorded. Set APP_URL to the public URL of this deployment."
        )
    return {
        "tracking_url": base,
        "example_pixel_url": open_url("<tracking_id>", base),
        "env": {
            "APP_URL": settings.app_url or None,
            "AUTH_CALLBACK_URL": settings.auth_callback_url or None,
            "VERCEL_URL": settings.vercel_url or None,
        },
        "issue": issue,
    }
