
# app/payouts/state_machine.py
from __future__ import annotations

from enum import Enum

from app.payouts.model import PayoutStatus


class InvalidTransition(Exception):
    pass


class UnknownPayoutEvent(KeyError):
    pass


class PayoutItemEvent(str, Enum):
    SUCCEEDED = "PAYMENT.PAYOUTS-ITEM.SUCCEEDED"
    BLOCKED = "PAYMENT.PAYOUTS-ITEM.BLOCKED"
    CANCELED = "PAYMENT.PAYOUTS-ITEM.CANCELED"
    DENIED = "PAYMENT.PAYOUTS-ITEM.DENIED"
    FAILED = "PAYMENT.PAYOUTS-ITEM.FAILED"
    HELD = "PAYMENT.PAYOUTS-ITEM.HELD"
    REFUNDED = "PAYMENT.PAYOUTS-ITEM.REFUNDED"
    RETURNED = "PAYMENT.PAYOUTS-ITEM.RETURNED"
    UNCLAIMED = "PAYMENT.PAYOUTS-ITEM.UNCLAIMED"


RELEVANT_EVENTS = frozenset(e.value for e in PayoutItemEvent)

# UNCLAIMED is relevant (acknowledged + logged) but has no status of its own.
EVENT_STATUS: dict[PayoutItemEvent, PayoutStatus] = {
    PayoutItemEvent.SUCCEEDED: PayoutStatus.COMPLETED,
    PayoutItemEvent.BLOCKED: PayoutStatus.FAILED,
    PayoutItemEvent.DENIED: PayoutStatus.FAILED,
    PayoutItemEvent.FAILED: PayoutStatus.FAILED,
    PayoutItemEvent.REFUNDED: PayoutStatus.FAILED,
    PayoutItemEvent.RETURNED: PayoutStatus.FAILED,
    PayoutItemEvent.CANCELED: PayoutStatus.CANCELED,
    PayoutItemEvent.HELD: PayoutStatus.PROCESSING,
}

ALLOWED: dict[PayoutStatus, set[PayoutStatus]] = {
    # pending -> completed / failed -> completed: manual "mark as paid"
    PayoutStatus.PENDING: {PayoutStatus.PROCESSING, PayoutStatus.COMPLETED},
    PayoutStatus.PROCESSING: {
        PayoutStatus.COMPLETED,
        PayoutStatus.FAILED,
        PayoutStatus.CANCELED,
        PayoutStatus.PROCESSING,  # held
    },
    PayoutStatus.FAILED: {PayoutStatus.COMPLETED},
    PayoutStatus.COMPLETED: set(),
    PayoutStatus.CANCELED: set(),
}


def parse_event(event_type: str) -> PayoutItemEvent:
    try:
        return PayoutItemEvent(event_type)
    except ValueError:
        raise UnknownPayoutEvent(event_type) from None


def status_for_event(event: PayoutItemEvent | str) -> PayoutStatus:
    """
    Map a PayPal payout-item event to the payout status it produces.
    Raises UnknownPayoutEvent for anything outside the mapping (UNCLAIMED included).
    """
    if not isinstance(event, PayoutItemEvent):
        event = parse_event(event)
    try:
        return EVENT_STATUS[event]
    except KeyError:
        raise UnknownPayoutEvent(event.value) from None


def can_transition(old: PayoutStatus | str, new: PayoutStatus | str) -> bool:
    return PayoutStatus(new) in ALLOWED.get(PayoutStatus(old), set())


def assert_transition(old: PayoutStatus | str, new: PayoutStatus | str) -> None:
    if not can_transition(old, new):
        raise InvalidTransition(f"Illegal payout transition: {PayoutStatus(old).value} -> {PayoutStatus(new).value}")


def accepts_webhook_event(current: PayoutStatus | str) -> bool:
    """
    Processor events are only applied to payouts that are in flight.
    Anything else (pending, or already terminal) is acknowledged and ignored.
    """
    return PayoutStatus(current) == PayoutStatus.PROCESSING
