"""
Small text helpers shared by routes and services: truncation, email format, plain text to HTML.
"""
import html
import re
from typing import Optional

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_URL_RE = re.compile(r"(https?://[^\s<>\"']+)")
_WS_RE = re.compile(r"\s+")


def truncate(value: Optional[str], limit: int) -> Optional[str]:
    """Trim and cut to `limit` chars. Empty strings become None."""
    if value is None:
        return None
    value = str(value).strip()
    if not value:
        return None
    return value[:limit]


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_RE.match(value or ""))


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def _paragraph_html(paragraph: str) -> str:
    escaped = html.escape(paragraph)
    linked = _URL_RE.sub(lambda m: f'<a href="{m.group(1)}">{m.group(1)}</a>', escaped)
    return linked.replace("\n", "<br>")


def plain_text_to_html(body: str) -> str:
    """
    Convert a plain-text email body to HTML: blank-line separated paragraphs become <p>,
    single newlines become <br>, bare http(s) URLs become links.
    """
    paragraphs = [p for p in re.split(r"\n\s*\n", (body or "").replace("\r\n", "\n")) if p.strip()]
    inner = "".join(f"<p>{_paragraph_html(p.strip())}</p>" for p in paragraphs)
    return f"<html><body>{inner}</body></html>"


def parse_email_address(header_value: str) -> str:
    """Extract bare address from a header like 'Jane <jane@x.com>'."""
    match = re.search(r"<([^>]+)>", header_value or "")
    return (match.group(1) if match else (header_value or "")).strip()
