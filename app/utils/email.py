from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from app.config import settings

logger = logging.getLogger(__name__)


def is_email_enabled() -> bool:
    """Return True when email notifications are configured and enabled."""
    return bool(
        settings.EMAIL_NOTIFICATIONS_ENABLED
        and settings.SMTP_SERVER
        and settings.EMAIL_FROM
    )


def build_message(
    *,
    to_email: str,
    subject: str,
    body_text: str,
    body_html: Optional[str] = None,
) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["From"] = settings.EMAIL_FROM or ""
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.attach(MIMEText(body_text, "plain", "utf-8"))
    if body_html:
        msg.attach(MIMEText(body_html, "html", "utf-8"))
    return msg


def _open_smtp_connection() -> smtplib.SMTP:
    smtp_cls = smtplib.SMTP_SSL if settings.SMTP_USE_SSL else smtplib.SMTP
    server = smtp_cls(
        settings.SMTP_SERVER,
        settings.SMTP_PORT,
        timeout=settings.SMTP_TIMEOUT_SECONDS,
    )
    if settings.SMTP_USE_TLS and not settings.SMTP_USE_SSL:
        server.starttls()
    password = settings.EMAIL_PASSWORD or ""
    if password:
        server.login(settings.SMTP_USERNAME or settings.EMAIL_FROM, password)
    return server


def send_email(
    *,
    to_email: str,
    subject: str,
    body_text: str,
    body_html: Optional[str] = None,
) -> bool:
    """
    Send an email using SMTP settings.

    Returns True on success. Failures are logged and False is returned;
    the SMTP timeout bounds how long a send may block.
    """
    if not is_email_enabled():
        return False

    msg = build_message(to_email=to_email, subject=subject, body_text=body_text, body_html=body_html)
    try:
        with _open_smtp_connection() as server:
            server.sendmail(settings.EMAIL_FROM, [to_email], msg.as_string())
        return True
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning("Email send failed for '%s': %s", to_email, exc)
        return False
