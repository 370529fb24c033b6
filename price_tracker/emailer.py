"""Email notifier via SMTP.

Sends plain-text messages to one or more recipients using SMTP.
Supports STARTTLS (587) or SSL (465).  Delivery is fire-and-forget:
failures are logged and never raised to the caller.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Optional, Sequence

from . import config

logger = logging.getLogger(__name__)


def _build_message(subject: str, body: str, recipients: Sequence[str]) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = f"{config.EMAIL_SUBJECT_PREFIX} {subject}".strip()
    msg["From"] = config.EMAIL_FROM or (config.EMAIL_USERNAME or "")
    msg["To"] = ", ".join(recipients)
    msg.set_content(body)
    return msg


def _send(msg: EmailMessage) -> bool:
    if not (config.EMAIL_USERNAME and config.EMAIL_PASSWORD):
        logger.error("Email config incomplete; set EMAIL_USERNAME, EMAIL_PASSWORD, EMAIL_TO")
        return False

    host, port = config.EMAIL_SMTP_HOST, int(config.EMAIL_SMTP_PORT)
    try:
        if config.EMAIL_USE_TLS and port == 587:
            with smtplib.SMTP(host, port, timeout=20) as s:
                s.ehlo()
                s.starttls(context=ssl.create_default_context())
                s.login(config.EMAIL_USERNAME, config.EMAIL_PASSWORD)
                s.send_message(msg)
        else:
            with smtplib.SMTP_SSL(host, port, context=ssl.create_default_context(), timeout=20) as s:
                s.login(config.EMAIL_USERNAME, config.EMAIL_PASSWORD)
                s.send_message(msg)
        logger.info("Email sent to %s (subject=%s)", msg.get("To"), msg.get("Subject"))
        return True
    except Exception:
        logger.exception("Failed to send email")
        return False


def send_email(subject: str, body: str, recipients: Optional[Sequence[str]] = None) -> bool:
    """Send a plain-text email; returns whether the SMTP server accepted it."""
    if not config.EMAIL_ENABLED:
        logger.info("Email disabled; not sending %r", subject)
        return False

    to = list(recipients or config.EMAIL_TO)
    if not to:
        logger.error("No email recipients configured; set EMAIL_TO")
        return False
    return _send(_build_message(subject, body, to))


def send_test_email(address: str) -> bool:
    """Send a short message to *address* to check the SMTP settings."""
    return send_email("Testing", "This is a testing message.", [address])


__all__ = ["send_email", "send_test_email"]
