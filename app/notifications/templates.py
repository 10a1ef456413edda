# app/notifications/templates.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from html import escape
from typing import Optional

from settings import settings


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


def format_currency(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def format_period(start: Optional[datetime], end: Optional[datetime]) -> str:
    if not start or not end:
        return "-"
    return f"{start:%b %d, %Y} - {end:%b %d, %Y}"


def _layout(title: str, body: str, program_logo: Optional[str]) -> str:
    logo = f'<img src="{escape(program_logo)}" alt="" width="48" height="48" />' if program_logo else ""
    return (
        "<!DOCTYPE html><html><body style=\"font-family: sans-serif; color: #171717;\">"
        f"{logo}<h1 style=\"font-size: 20px;\">{escape(title)}</h1>{body}"
        f"<p style=\"color: #737373; font-size: 12px;\">Sent via {escape(settings.APP_DOMAIN)}</p>"
        "</body></html>"
    )


def partner_payout_confirmed(
    *,
    email: str,
    program_name: str,
    program_logo: Optional[str],
    payout_id: str,
    amount: int,
    period_start: Optional[datetime],
    period_end: Optional[datetime],
) -> EmailMessage:
    """
    Bank-debit payouts take a few business days; tell the partner money is on the way.
    """
    amount_s = format_currency(amount)
    period_s = format_period(period_start, period_end)
    body = (
        f"<p>{escape(program_name)} has confirmed a payout of <strong>{amount_s}</strong> "
        f"for {escape(period_s)}.</p>"
        "<p>The funds are being processed and should reach your account in 4-5 business days.</p>"
        f"<p style=\"color: #737373;\">Payout ID: {escape(payout_id)}</p>"
    )
    text = (
        f"{program_name} has confirmed a payout of {amount_s} for {period_s}. "
        f"The funds should reach your account in 4-5 business days. Payout ID: {payout_id}"
    )
    return EmailMessage(
        to=email,
        subject="You've got money coming your way!",
        html=_layout("You've got money coming your way!", body, program_logo),
        text=text,
    )


def partner_payout_sent(
    *,
    email: str,
    program_name: str,
    program_logo: Optional[str],
    payout_id: str,
    amount: int,
    period_start: Optional[datetime],
    period_end: Optional[datetime],
) -> EmailMessage:
    amount_s = format_currency(amount)
    period_s = format_period(period_start, period_end)
    body = (
        f"<p>{escape(program_name)} has sent you <strong>{amount_s}</strong> "
        f"for {escape(period_s)}.</p>"
        "<p>The payout is now on its way to your PayPal account.</p>"
        f"<p style=\"color: #737373;\">Payout ID: {escape(payout_id)}</p>"
    )
    text = f"{program_name} has sent you {amount_s} for {period_s}. Payout ID: {payout_id}"
    return EmailMessage(
        to=email,
        subject="You've been paid!",
        html=_layout("You've been paid!", body, program_logo),
        text=text,
    )
