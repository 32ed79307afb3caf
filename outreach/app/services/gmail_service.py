"""
Gmail integration over the Google OAuth 2.0 and Gmail REST APIs.

Tokens are stored encrypted in gmail_connections and refreshed when they expire
within GMAIL_TOKEN_REFRESH_MARGIN_SECONDS.
"""
import base64
from datetime import datetime, timedelta
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parsedate_to_datetime
from typing import Any, NamedTuple, Optional
from urllib.parse import urlencode

import requests
from sqlalchemy.orm import Session

from outreach.app.core.config import GMAIL_TOKEN_REFRESH_MARGIN_SECONDS, settings
from outreach.app.core.encryption import DecryptionError, decrypt, encrypt
from outreach.app.core.logging_config import get_logger
from outreach.app.models.gmail_connection import GmailConnection
from outreach.app.services.email_tracking import get_base_url
from outreach.app.utils.text import parse_email_address

logger = get_logger("services.gmail")

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1"

GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.compose",
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/userinfo.email",
]


class GmailAPIError(RuntimeError):
    """Raised when Gmail API operations fail"""


class GmailAuthError(GmailAPIError):
    """Raised when Gmail API authentication fails"""


class GmailNotConnectedError(GmailAPIError):
    pass


class OutgoingAttachment(NamedTuple):
    filename: str
    content: bytes
    mime_type: str


# --- OAuth ---

def redirect_uri() -> str:
    return f"{get_base_url()}/api/gmail/callback"


def build_auth_url(state: str) -> str:
    params = {
        "client_id": settings.google_client_id,
        "redirect_uri": redirect_uri(),
        "response_type": "code",
        "scope": " ".join(GMAIL_SCOPES),
        "access_type": "offline",
        "prompt": "consent",
        "include_granted_scopes": "true",
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


def exchange_code_for_tokens(code: str) -> dict:
    resp = requests.post(
        GOOGLE_TOKEN_URL,
        data={
            "code": code,
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "redirect_uri": redirect_uri(),
            "grant_type": "authorization_code",
        },
        timeout=settings.http_request_timeout,
    )
    resp.raise_for_status()
    return resp.json()


def refresh_access_token(refresh_token: str) -> dict:
    resp = requests.post(
        GOOGLE_TOKEN_URL,
        data={
            "refresh_token": refresh_token,
            "client_id": settings.google_client_id,
            "client_secret": settings.google_client_secret,
            "grant_type": "refresh_token",
        },
        timeout=settings.http_request_timeout,
    )
    if resp.status_code in (400, 401):
        raise GmailAuthError("Gmail authorization expired. Please reconnect your Gmail account.")
    resp.raise_for_status()
    return resp.json()


def fetch_user_email(access_token: str) -> Optional[str]:
    resp = requests.get(
        GOOGLE_USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=settings.http_request_timeout,
    )
    resp.raise_for_status()
    return resp.json().get("email")


# --- Connection storage ---

def save_connection(
    db: Session,
    user_id: int,
    access_token: str,
    refresh_token: str,
    expires_at: datetime,
    email: str,
) -> GmailConnection:
    conn = db.query(GmailConnection).filter(GmailConnection.user_id == user_id).first()
    if conn is None:
        conn = GmailConnection(user_id=user_id)
        db.add(conn)
    conn.access_token = encrypt(access_token)
    conn.refresh_token = encrypt(refresh_token)
    conn.expires_at = expires_at
    conn.connected_email = email
    db.commit()
    db.refresh(conn)
    return conn


def get_connection(db: Session, user_id: int) -> Optional[GmailConnection]:
    return db.query(GmailConnection).filter(GmailConnection.user_id == user_id).first()


def disconnect(db: Session, user_id: int) -> bool:
    conn = get_connection(db, user_id)
    if conn is None:
        return False
    db.delete(conn)
    db.commit()
    return True


def get_valid_access_token(db: Session, conn: GmailConnection) -> str:
    """Decrypted access token, refreshed first if it expires soon."""
    margin = timedelta(seconds=GMAIL_TOKEN_REFRESH_MARGIN_SECONDS)
    if conn.expires_at and conn.expires_at > datetime.utcnow() + margin:
        return decrypt(conn.access_token)

    tokens = refresh_access_token(decrypt(conn.refresh_token))
    new_token = tokens.get("access_token")
    if not new_token:
        raise GmailAuthError("Failed to refresh access token")
    conn.access_token = encrypt(new_token)
    conn.expires_at = datetime.utcnow() + timedelta(seconds=int(tokens.get("expires_in", 3600)))
    if tokens.get("refresh_token"):
        conn.refresh_token = encrypt(tokens["refresh_token"])
    db.commit()
    logger.info("Refreshed Gmail token user_id=%s", conn.user_id)
    return new_token


# --- Gmail REST ---

def _gmail_request(method: str, path: str, access_token: str, **kwargs) -> dict:
    try:
        resp = requests.request(
            method,
            f"{GMAIL_API_BASE}{path}",
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=settings.http_request_timeout,
            **kwargs,
        )
    except requests.RequestException as e:
        raise GmailAPIError(f"Gmail request failed: {e}") from e
    if resp.status_code == 401:
        raise GmailAuthError("Authentication failed. Please reconnect your Gmail account.")
    if resp.status_code >= 400:
        try:
            message = resp.json().get("error", {}).get("message", resp.text)
        except ValueError:
            message = resp.text
        raise GmailAPIError(f"Gmail API error {resp.status_code}: {message}")
    return resp.json() if resp.content else {}


def _authorized(db: Session, user_id: int) -> tuple[GmailConnection, str]:
    conn = get_connection(db, user_id)
    if conn is None:
        raise GmailNotConnectedError("No Gmail connection found")
    try:
        return conn, get_valid_access_token(db, conn)
    except DecryptionError as e:
        raise GmailAuthError(str(e)) from e
    except requests.RequestException as e:
        raise GmailAPIError(f"Token refresh failed: {e}") from e


def build_raw_message(
    from_addr: str,
    to: str,
    subject: str,
    html_body: str,
    attachments: Optional[list[OutgoingAttachment]] = None,
    in_reply_to: Optional[str] = None,
) -> str:
    """RFC 2822 message, base64url-encoded for the Gmail send endpoint."""
    if attachments:
        msg = MIMEMultipart("mixed")
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        for att in attachments:
            maintype, _, subtype = (att.mime_type or "application/octet-stream").partition("/")
            part = MIMEApplication(att.content, _subtype=subtype or "octet-stream")
            part.replace_header("Content-Type", f'{maintype}/{subtype or "octet-stream"}; name="{att.filename}"')
            part.add_header("Content-Disposition", "attachment", filename=att.filename)
            msg.attach(part)
    else:
        msg = MIMEText(html_body, "html", "utf-8")
    msg["From"] = from_addr
    msg["To"] = to
    msg["Subject"] = subject
    if in_reply_to:
        msg["In-Reply-To"] = in_reply_to
        msg["References"] = in_reply_to
    return base64.urlsafe_b64encode(msg.as_bytes()).decode("ascii").rstrip("=")


def send_message(
    db: Session,
    user_id: int,
    to: str,
    subject: str,
    html_body: str,
    attachments: Optional[list[OutgoingAttachment]] = None,
    thread_id: Optional[str] = None,
    in_reply_to: Optional[str] = None,
) -> dict:
    """Send through the user's Gmail. Returns {"id", "threadId"}."""
    conn, token = _authorized(db, user_id)
    raw = build_raw_message(conn.connected_email, to, subject, html_body, attachments, in_reply_to)
    body: dict[str, Any] = {"raw": raw}
    if thread_id:
        body["threadId"] = thread_id
    result = _gmail_request("POST", "/users/me/messages/send", token, json=body)
    logger.info("Gmail message sent user_id=%s message_id=%s thread_id=%s", user_id, result.get("id"), result.get("threadId"))
    return result


def _header(headers: list[dict], name: str) -> str:
    name = name.lower()
    for h in headers or []:
        if (h.get("name") or "").lower() == name:
            return h.get("value") or ""
    return ""


def _decode_part(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")


def _extract_body(payload: dict) -> str:
    if payload.get("body", {}).get("data"):
        return _decode_part(payload["body"]["data"])
    parts = payload.get("parts") or []
    for mime in ("text/plain", "text/html"):
        for part in parts:
            if part.get("mimeType") == mime and part.get("body", {}).get("data"):
                return _decode_part(part["body"]["data"])
    for part in parts:
        if part.get("parts"):
            nested = _extract_body(part)
            if nested:
                return nested
    return ""


def parse_message(msg: dict, my_email: str = "") -> dict:
    payload = msg.get("payload") or {}
    headers = payload.get("headers") or []
    sender = _header(headers, "From")
    date_header = _header(headers, "Date")
    try:
        date_iso = parsedate_to_datetime(date_header).isoformat() if date_header else None
    except (TypeError, ValueError):
        date_iso = None
    return {
        "id": msg.get("id"),
        "thread_id": msg.get("threadId"),
        "message_id": _header(headers, "Message-ID") or _header(headers, "Message-Id"),
        "subject": _header(headers, "Subject"),
        "from": sender,
        "to": _header(headers, "To"),
        "date": date_iso or date_header,
        "snippet": msg.get("snippet") or "",
        "body": _extract_body(payload),
        "is_from_me": bool(my_email) and parse_email_address(sender).lower() == my_email.lower(),
    }


def list_sent_messages(db: Session, user_id: int, max_results: int = 20, page_token: Optional[str] = None) -> dict:
    conn, token = _authorized(db, user_id)
    params: dict[str, Any] = {"labelIds": "SENT", "maxResults": max_results}
    if page_token:
        params["pageToken"] = page_token
    listing = _gmail_request("GET", "/users/me/messages", token, params=params)
    messages = []
    for ref in listing.get("messages") or []:
        full = _gmail_request("GET", f"/users/me/messages/{ref['id']}", token, params={"format": "full"})
        messages.append(parse_message(full, conn.connected_email))
    return {"messages": messages, "next_page_token": listing.get("nextPageToken")}


def get_thread_messages(db: Session, user_id: int, thread_id: str) -> list[dict]:
    """All messages in a thread, oldest first."""
    conn, token = _authorized(db, user_id)
    thread = _gmail_request("GET", f"/users/me/threads/{thread_id}", token, params={"format": "full"})
    return [parse_message(m, conn.connected_email) for m in thread.get("messages") or []]
