# app/payouts/service.py
from __future__ import annotations

import logging
from typing import Any, Callable, ContextManager, Optional

from db import get_conn
from app.invoices import repository as invoices_repo
from app.invoices.fees import (
    ALLOWED_PAYMENT_METHOD_TYPES,
    UnsupportedPlan,
    fee_rate,
    invoice_totals,
    method_category,
)
from app.notifications.jobs import JobQueue, enqueue, notify_payout_sent, notify_payouts_confirmed
from app.payouts import repository as payouts_repo
from app.payouts.model import PayoutStatus
from app.payouts.state_machine import (
    PayoutItemEvent,
    accepts_webhook_event,
    assert_transition,
    parse_event,
    status_for_event,
)
from app.programs import repository as programs_repo
from app.providers.stripe_api import StripeClient, StripeError, get_stripe_client
from schemas import PaypalPayoutEvent
from services.errors import Conflict, DomainError, Forbidden, NotFound, UpstreamError
from services.observability import log_event
from services.redaction import redact_text

logger = logging.getLogger("partnerpay.payouts")

Transaction = Callable[[], ContextManager[Any]]


# ==========================================================
# Confirm payouts (invoice + charge)
# ==========================================================

def _load_workspace_program(conn, *, workspace_id: str) -> tuple[dict, dict]:
    workspace = programs_repo.get_workspace(conn, workspace_id=workspace_id)
    if not workspace:
        raise NotFound("WORKSPACE_NOT_FOUND", "Workspace not found.")

    program_id = workspace.get("default_program_id")
    if not program_id:
        raise NotFound("PROGRAM_NOT_FOUND", "Workspace does not have a default program.")

    program = programs_repo.get_program(conn, program_id=program_id, workspace_id=workspace_id)
    if not program:
        raise NotFound("PROGRAM_NOT_FOUND", "Program not found.")
    return workspace, program


def _retrieve_payment_method(stripe: StripeClient, payment_method_id: str) -> dict:
    try:
        return stripe.retrieve_payment_method(payment_method_id)
    except StripeError as e:
        if e.http_status in (400, 404):
            raise DomainError("INVALID_PAYMENT_METHOD", "Invalid payout method.") from e
        raise UpstreamError("PAYMENT_PROVIDER_ERROR", str(e)) from e


def confirm_payouts(
    *,
    workspace_id: str,
    payment_method_id: str,
    user_id: str,
    stripe: Optional[StripeClient] = None,
    jobs: Optional[JobQueue] = None,
    transaction: Optional[Transaction] = None,
) -> dict[str, Any]:
    """
    Batch every eligible pending payout of the workspace's program into one
    invoice, charge the payment method for it and move the payouts to
    processing. Invoice, payout updates and the charge succeed or fail together.
    """
    stripe = stripe or get_stripe_client()
    transaction = transaction or get_conn

    with transaction() as conn:
        workspace, program = _load_workspace_program(conn, workspace_id=workspace_id)

    if not workspace.get("stripe_id"):
        raise DomainError("WORKSPACE_STRIPE_ID_MISSING", "Workspace does not have a valid Stripe ID.")

    payment_method = _retrieve_payment_method(stripe, payment_method_id)

    if payment_method.get("customer") != workspace["stripe_id"]:
        raise Forbidden("INVALID_PAYMENT_METHOD", "Invalid payout method.")

    pm_type = payment_method.get("type")
    if pm_type not in ALLOWED_PAYMENT_METHOD_TYPES:
        raise DomainError(
            "UNSUPPORTED_PAYMENT_METHOD",
            "We only support ACH and Card for now. Please update your payout method to one of these.",
        )

    category = method_category(pm_type)
    try:
        fee_rate(workspace.get("plan"), category)
    except UnsupportedPlan as e:
        raise DomainError("UNSUPPORTED_PLAN", f"Payouts are not available on the {e} plan.") from e

    with transaction() as conn:
        payouts = payouts_repo.list_eligible_payouts(
            conn,
            program_id=program["id"],
            min_payout_amount=int(program.get("min_payout_amount") or 0),
        )
        if not payouts:
            raise DomainError("NO_PENDING_PAYOUTS", "No pending payouts found.")

        amount = sum(int(p["amount"]) for p in payouts)
        fee, total = invoice_totals(amount, workspace.get("plan"), category)

        number = invoices_repo.next_invoice_number(
            conn, workspace_id=workspace["id"], prefix=workspace.get("invoice_prefix") or "INV"
        )
        invoice = invoices_repo.create_invoice(
            conn,
            workspace_id=workspace["id"],
            program_id=program["id"],
            number=number,
            amount=amount,
            fee=fee,
            total=total,
        )

        updated = payouts_repo.mark_payouts_processing(
            conn,
            payout_ids=[p["id"] for p in payouts],
            invoice_id=invoice["id"],
            user_id=user_id,
        )
        if updated != len(payouts):
            raise Conflict("PAYOUTS_CHANGED", "Payouts changed while confirming. Please try again.")

        # Last step inside the transaction: if the charge fails nothing above persists.
        try:
            stripe.create_payment_intent(
                amount=invoice["total"],
                customer=workspace["stripe_id"],
                payment_method=payment_method.get("id") or payment_method_id,
                payment_method_types=ALLOWED_PAYMENT_METHOD_TYPES,
                transfer_group=invoice["id"],
                description=f"Partner payout invoice ({invoice['id']})",
            )
        except StripeError as e:
            logger.warning(
                "payout charge failed workspace=%s invoice=%s err=%s", workspace["id"], invoice["id"], e
            )
            raise UpstreamError("CHARGE_FAILED", f"Failed to charge payment method: {e}") from e

    logger.info(
        "payouts confirmed workspace=%s invoice=%s number=%s payouts=%s amount=%s fee=%s",
        workspace["id"],
        invoice["id"],
        invoice["number"],
        len(payouts),
        amount,
        fee,
    )

    # ACH takes several business days; let partners know money is coming.
    if category == "ach":
        enqueue(jobs, "payouts-confirmed-emails", notify_payouts_confirmed, payouts)

    return {
        "ok": True,
        "invoice_id": invoice["id"],
        "invoice_number": invoice["number"],
        "payout_count": len(payouts),
        "amount": amount,
        "fee": fee,
        "total": total,
    }


# ==========================================================
# PayPal payout item status changes
# ==========================================================

def _ignored(reason: str, **extra: Any) -> dict[str, Any]:
    return {"applied": False, "ignored": True, "reason": reason, **extra}


def apply_payout_event(
    body: PaypalPayoutEvent,
    *,
    jobs: Optional[JobQueue] = None,
    transaction: Optional[Transaction] = None,
) -> dict[str, Any]:
    transaction = transaction or get_conn
    event = parse_event(body.event_type)

    resource = body.resource
    invoice_id = resource.sender_batch_id
    payout_item_id = resource.payout_item_id
    payout_id = resource.payout_item.sender_item_id
    receiver = redact_text(resource.payout_item.receiver)

    if event == PayoutItemEvent.UNCLAIMED:
        logger.info("paypal payout unclaimed invoice=%s payout=%s partner=%s", invoice_id, payout_id, receiver)
        return _ignored("UNMAPPED_EVENT", event=event.value)

    new_status = status_for_event(event)

    with transaction() as conn:
        payout = payouts_repo.get_payout(conn, payout_id=payout_id, for_update=True)
        if not payout:
            logger.info("payout not found for invoice %s and partner %s", invoice_id, receiver)
            return _ignored("PAYOUT_NOT_FOUND")

        current = PayoutStatus(payout["status"])

        if event == PayoutItemEvent.SUCCEEDED and current == PayoutStatus.COMPLETED:
            logger.info("payout already completed for invoice %s and partner %s", invoice_id, receiver)
            return _ignored("ALREADY_COMPLETED", payout_id=payout_id)

        if not accepts_webhook_event(current):
            logger.warning(
                "paypal event ignored payout=%s status=%s event=%s", payout_id, current.value, event.value
            )
            return _ignored(f"ALREADY_{current.value.upper()}", payout_id=payout_id)

        assert_transition(current, new_status)

        if event == PayoutItemEvent.SUCCEEDED:
            payouts_repo.complete_payout(conn, payout_id=payout_id, paypal_transfer_id=payout_item_id)
            payouts_repo.mark_commissions_paid(conn, payout_id=payout_id)
        else:
            payouts_repo.update_payout_status(
                conn,
                payout_id=payout_id,
                new_status=new_status,
                paypal_transfer_id=payout_item_id,
            )

    if event == PayoutItemEvent.SUCCEEDED:
        enqueue(jobs, "payout-sent-email", notify_payout_sent, payout)
    else:
        enqueue(
            jobs,
            "payout-status-log",
            log_event,
            f"Paypal payout status changed to {event.value} for invoice {invoice_id} and partner {receiver}",
            "errors",
        )

    return {
        "applied": True,
        "ignored": False,
        "payout_id": payout_id,
        "status_before": current.value,
        "status_after": new_status.value,
    }


# ==========================================================
# Manual "mark as paid"
# ==========================================================

PAYABLE_STATUSES = (PayoutStatus.PENDING.value, PayoutStatus.FAILED.value)


def mark_payout_paid(
    *,
    program_id: str,
    payout_id: str,
    user_id: str,
    transaction: Optional[Transaction] = None,
) -> dict[str, Any]:
    transaction = transaction or get_conn
    with transaction() as conn:
        payout = payouts_repo.get_payout(conn, payout_id=payout_id, for_update=True)
        if not payout or payout["program_id"] != program_id:
            raise NotFound("PAYOUT_NOT_FOUND", "Payout not found.")

        current = PayoutStatus(payout["status"])
        if current.value not in PAYABLE_STATUSES:
            raise Conflict("PAYOUT_NOT_PAYABLE", f"Payout is {current.value} and cannot be marked as paid.")
        assert_transition(current, PayoutStatus.COMPLETED)

        payouts_repo.complete_payout(
            conn,
            payout_id=payout_id,
            paypal_transfer_id=None,
            from_statuses=PAYABLE_STATUSES,
            user_id=user_id,
        )
        commissions = payouts_repo.mark_commissions_paid(conn, payout_id=payout_id)

    logger.info("payout marked paid payout=%s user=%s commissions=%s", payout_id, user_id, commissions)
    return {"ok": True, "payout_id": payout_id, "status": PayoutStatus.COMPLETED.value}
