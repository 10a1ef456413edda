from __future__ import annotations

import logging
from contextvars import ContextVar

from settings import settings
from app.providers.http import HttpClient


logger = logging.getLogger("partnerpay.events")

_request_id: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(value: str | None) -> None:
    _request_id.set(value)


def get_request_id() -> str | None:
    return _request_id.get()


def log_event(message: str, type_: str = "errors") -> None:
    """
    Operator-facing log entry. Always logged locally; also posted to the
    configured chat webhook (LOG_WEBHOOK_URL) when set.
    """
    logger.warning("event type=%s request_id=%s message=%s", type_, get_request_id(), message)

    url = (settings.LOG_WEBHOOK_URL or "").strip()
    if not url:
        return

    with HttpClient(timeout_s=5.0) as client:
        resp = client.post(
            url,
            headers={"Content-Type": "application/json"},
            json_body={"text": f"[{type_}] {message}"},
        )
    if not resp.ok:
        logger.warning("event webhook post failed status=%s", resp.status_code)
