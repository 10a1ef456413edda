# app/notifications/email.py
from __future__ import annotations

import logging

from settings import settings
from app.notifications.templates import EmailMessage
from app.providers.http import HttpClient, is_retryable_http
from services.redaction import redact_text

logger = logging.getLogger("partnerpay.email")


class EmailError(Exception):
    pass


def send_email(message: EmailMessage) -> bool:
    """
    Send one transactional email through the Resend HTTP API.
    Returns False when email is not configured (dev); raises EmailError on provider failure.
    """
    if not (settings.RESEND_API_KEY or "").strip():
        logger.warning("email not configured, skipping subject=%r to=%s", message.subject, redact_text(message.to))
        return False

    with HttpClient(timeout_s=settings.EMAIL_HTTP_TIMEOUT_S) as client:
        resp = client.post(
            settings.RESEND_API_URL,
            headers={
                "Authorization": f"Bearer {settings.RESEND_API_KEY}",
                "Content-Type": "application/json",
            },
            json_body={
                "from": settings.EMAIL_FROM,
                "to": [message.to],
                "subject": message.subject,
                "html": message.html,
                "text": message.text,
            },
        )

    if not resp.ok:
        raise EmailError(
            f"EMAIL_SEND_FAILED status={resp.status_code} retryable={is_retryable_http(resp.status_code)}"
        )

    logger.info("email sent subject=%r to=%s", message.subject, redact_text(message.to))
    return True
