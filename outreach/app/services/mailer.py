"""
Outbound SMTP for admin broadcasts.

Uses SMTP_HOST/SMTP_USER/SMTP_PASS when set, else a Gmail account with an app password.
"""
import re
import smtplib
import ssl
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import Iterable, NamedTuple, Optional

from outreach.app.core.config import BULK_EMAIL_DELAY_SECONDS, settings
from outreach.app.core.logging_config import get_logger

logger = get_logger("services.mailer")

GMAIL_SMTP_HOST = "smtp.gmail.com"
GMAIL_SMTP_PORT = 465
DEFAULT_FROM = "noreply@outreachai.com"

_TAG_RE = re.compile(r"<[^>]*>")


class SMTPConfig(NamedTuple):
    host: str
    port: int
    use_ssl: bool
    user: str
    password: str


class BulkRecipient(NamedTuple):
    email: str
    name: Optional[str] = None


def smtp_config() -> Optional[SMTPConfig]:
    if settings.smtp_host and settings.smtp_user and settings.smtp_pass:
        return SMTPConfig(settings.smtp_host, settings.smtp_port, settings.smtp_secure, settings.smtp_user, settings.smtp_pass)
    if settings.gmail_user and settings.gmail_app_password:
        return SMTPConfig(GMAIL_SMTP_HOST, GMAIL_SMTP_PORT, True, settings.gmail_user, settings.gmail_app_password)
    return None


def is_email_configured() -> bool:
    return smtp_config() is not None


def _build_message(from_addr: str, to: str, subject: str, html: str, text: Optional[str]) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = formataddr((settings.app_name, from_addr))
    msg["To"] = to
    msg["Subject"] = subject
    msg["Date"] = formatdate(localtime=False)
    msg["Message-ID"] = make_msgid(domain=from_addr.split("@")[-1])
    msg.attach(MIMEText(text if text is not None else _TAG_RE.sub("", html), "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


def _open(config: SMTPConfig) -> smtplib.SMTP:
    timeout = settings.http_request_timeout
    if config.use_ssl:
        server = smtplib.SMTP_SSL(config.host, config.port, timeout=timeout, context=ssl.create_default_context())
    else:
        server = smtplib.SMTP(config.host, config.port, timeout=timeout)
        server.ehlo()
        if server.has_extn("starttls"):
            server.starttls(context=ssl.create_default_context())
            server.ehlo()
    server.login(config.user, config.password)
    return server


def send_email(to: str, subject: str, html: str, text: Optional[str] = None) -> bool:
    """Send one message. Returns False (and logs) instead of raising on failure."""
    config = smtp_config()
    if config is None:
        logger.error("No SMTP transport configured; set SMTP_* or GMAIL_USER/GMAIL_APP_PASSWORD")
        return False
    from_addr = settings.smtp_from or settings.gmail_user or DEFAULT_FROM
    msg = _build_message(from_addr, to, subject, html, text)
    try:
        server = _open(config)
        try:
            server.sendmail(from_addr, [to], msg.as_string())
        finally:
            server.quit()
    except (smtplib.SMTPException, OSError) as e:
        logger.warning("SMTP send failed to=%s error=%s", to, e)
        return False
    return True


def personalize(template: str, recipient: BulkRecipient) -> str:
    return template.replace("{{name}}", recipient.name or "there").replace("{{email}}", recipient.email)


def send_bulk_emails(recipients: Iterable[BulkRecipient], subject: str, html_template: str) -> dict:
    """Send to each recipient with a short pause in between. Returns {sent, failed}."""
    sent = failed = 0
    for index, recipient in enumerate(recipients):
        if index:
            time.sleep(BULK_EMAIL_DELAY_SECONDS)
        if send_email(recipient.email, subject, personalize(html_template, recipient)):
            sent += 1
        else:
            failed += 1
    logger.info("Bulk send finished sent=%s failed=%s", sent, failed)
    return {"sent": sent, "failed": failed}
