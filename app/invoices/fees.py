# app/invoices/fees.py
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Literal

MethodCategory = Literal["ach", "card"]

# fee rate per plan family and payment-method category
PAYOUT_FEES: dict[str, dict[str, Decimal]] = {
    "business": {"ach": Decimal("0.05"), "card": Decimal("0.08")},
    "advanced": {"ach": Decimal("0.04"), "card": Decimal("0.07")},
    "enterprise": {"ach": Decimal("0.03"), "card": Decimal("0.06")},
}

DEFAULT_PLAN = "business"

ALLOWED_PAYMENT_METHOD_TYPES = ("us_bank_account", "card", "link")
ACH_PAYMENT_METHOD_TYPE = "us_bank_account"


class UnsupportedPlan(ValueError):
    pass


def plan_family(plan: str | None) -> str:
    """
    "business plus" -> "business"; missing plan falls back to business.
    """
    p = (plan or "").strip().lower()
    if not p:
        return DEFAULT_PLAN
    return p.split(" ")[0]


def method_category(payment_method_type: str) -> MethodCategory:
    return "ach" if payment_method_type == ACH_PAYMENT_METHOD_TYPE else "card"


def fee_rate(plan: str | None, category: MethodCategory) -> Decimal:
    family = plan_family(plan)
    rates = PAYOUT_FEES.get(family)
    if rates is None:
        raise UnsupportedPlan(family)
    return rates[category]


def compute_fee(amount_cents: int, rate: Decimal) -> int:
    # rounded half-up to a whole cent
    return int((Decimal(amount_cents) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def invoice_totals(amount_cents: int, plan: str | None, category: MethodCategory) -> tuple[int, int]:
    """
    Returns (fee, total) for an invoice amount.
    """
    fee = compute_fee(amount_cents, fee_rate(plan, category))
    return fee, amount_cents + fee
