

# routes/paypal_webhook.py
from __future__ import annotations

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import PlainTextResponse
from starlette.concurrency import run_in_threadpool

from app.payouts import service as payouts_service
from app.notifications.jobs import enqueue
from app.payouts.state_machine import RELEVANT_EVENTS
from app.providers import paypal
from schemas import PaypalPayoutEvent
from services.observability import log_event
from services.redaction import redact_dict


router = APIRouter(prefix="/api/paypal", tags=["webhooks"])
logger = logging.getLogger("partnerpay.webhooks")

INVALID_SIGNATURE_BODY = "Invalid signature"
UNSUPPORTED_EVENT_BODY = "Unsupported event, skipping..."
HANDLER_FAILED_BODY = 'Webhook error: "Webhook handler failed. View logs."'


def _process(parsed: dict, jobs: BackgroundTasks) -> dict:
    body = PaypalPayoutEvent.model_validate(parsed)
    return payouts_service.apply_payout_event(body, jobs=jobs)


@router.post("/webhook")
async def paypal_webhook(req: Request, background_tasks: BackgroundTasks):
    raw = await req.body()

    # Signature is checked against the exact bytes received, before anything is parsed.
    sig_ok, sig_err = await run_in_threadpool(
        paypal.verify_webhook_signature, raw=raw, headers=req.headers
    )
    if not sig_ok:
        logger.warning("paypal webhook rejected reason=%s request_id=%s", sig_err, getattr(req.state, "request_id", None))
        return PlainTextResponse(INVALID_SIGNATURE_BODY, status_code=400)

    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("paypal webhook body is not valid JSON")
        return PlainTextResponse(HANDLER_FAILED_BODY, status_code=400)

    event_type = parsed.get("event_type") if isinstance(parsed, dict) else None
    if not isinstance(event_type, str) or event_type not in RELEVANT_EVENTS:
        return PlainTextResponse(UNSUPPORTED_EVENT_BODY)

    logger.info("paypal webhook received event_type=%s body=%s", event_type, redact_dict(parsed))

    try:
        result = await run_in_threadpool(_process, parsed, background_tasks)
    except Exception as exc:
        logger.exception("paypal webhook handler failed event_type=%s", event_type)
        enqueue(
            background_tasks,
            "webhook-error-log",
            log_event,
            f"Paypal webhook failed. Error: {type(exc).__name__}: {exc}",
            "errors",
        )
        return PlainTextResponse(HANDLER_FAILED_BODY, status_code=400)

    logger.info(
        "paypal webhook processed event_type=%s applied=%s reason=%s",
        event_type,
        result.get("applied"),
        result.get("reason"),
    )
    return PlainTextResponse("OK")
