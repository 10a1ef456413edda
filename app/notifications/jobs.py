# app/notifications/jobs.py
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, Optional, Protocol

from settings import settings
from app.notifications import email as email_api
from app.notifications.templates import EmailMessage, partner_payout_confirmed, partner_payout_sent
from services.redaction import redact_text

logger = logging.getLogger("partnerpay.jobs")


class JobQueue(Protocol):
    """Anything with FastAPI BackgroundTasks' add_task signature."""

    def add_task(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None: ...


def run_best_effort(job_name: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Run a detached job. Failures are logged and swallowed: the request that
    scheduled the job has already committed (and usually already responded).
    """
    try:
        return func(*args, **kwargs)
    except Exception:
        logger.exception("background job failed job=%s", job_name)
        return None


def enqueue(jobs: Optional[JobQueue], job_name: str, func: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    """
    Hand a job to the queue. Without a queue (scripts, workers) the job runs
    inline, still best-effort.
    """
    if jobs is None:
        run_best_effort(job_name, func, *args, **kwargs)
        return
    jobs.add_task(run_best_effort, job_name, func, *args, **kwargs)


def _send_one(message: EmailMessage) -> bool:
    try:
        return bool(email_api.send_email(message))
    except Exception as exc:
        logger.warning("email failed subject=%r to=%s err=%s", message.subject, redact_text(message.to), exc)
        return False


def send_emails_concurrently(messages: Iterable[EmailMessage], max_workers: Optional[int] = None) -> int:
    """
    Independent sends; one failure does not stop the others. Returns the number sent.
    """
    batch = list(messages)
    if not batch:
        return 0
    workers = max(1, min(len(batch), max_workers or settings.NOTIFY_MAX_WORKERS))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(_send_one, batch))
    sent = sum(1 for r in results if r)
    logger.info("email batch done sent=%s total=%s", sent, len(batch))
    return sent


def notify_payouts_confirmed(payouts: list[dict[str, Any]]) -> int:
    messages = [
        partner_payout_confirmed(
            email=p["partner_email"],
            program_name=p.get("program_name") or "",
            program_logo=p.get("program_logo"),
            payout_id=p["id"],
            amount=int(p["amount"]),
            period_start=p.get("period_start"),
            period_end=p.get("period_end"),
        )
        for p in payouts
        if p.get("partner_email")
    ]
    return send_emails_concurrently(messages)


def notify_payout_sent(payout: dict[str, Any]) -> bool:
    if not payout.get("partner_email"):
        return False
    return email_api.send_email(
        partner_payout_sent(
            email=payout["partner_email"],
            program_name=payout.get("program_name") or "",
            program_logo=payout.get("program_logo"),
            payout_id=payout["id"],
            amount=int(payout["amount"]),
            period_start=payout.get("period_start"),
            period_end=payout.get("period_end"),
        )
    )
