# app/payouts/repository.py
from __future__ import annotations

from typing import Any, Optional, Sequence

from psycopg2.extras import RealDictCursor

from app.payouts.model import PayoutStatus

SORT_COLUMNS = {
    "period_start": "p.period_start",
    "amount": "p.amount",
    "paid_at": "p.paid_at",
}

_PAYOUT_COLUMNS = """
    p.id,
    p.program_id,
    p.partner_id,
    p.invoice_id,
    p.user_id,
    p.amount,
    p.status,
    p.paypal_transfer_id,
    p.period_start,
    p.period_end,
    p.paid_at,
    p.created_at,
    p.updated_at
"""


def _rows(cur) -> list[dict[str, Any]]:
    return [dict(r) for r in cur.fetchall()]


# ==========================================================
# Confirmation (invoice batching)
# ==========================================================

def list_eligible_payouts(conn, *, program_id: str, min_payout_amount: int) -> list[dict[str, Any]]:
    """
    Pending, not yet invoiced, above the program minimum, partner can receive payouts.
    Rows are locked; a concurrent confirmation skips them and sees a disjoint set.
    """
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT
              {_PAYOUT_COLUMNS},
              pa.email AS partner_email,
              pr.name AS program_name,
              pr.logo AS program_logo
            FROM app.payouts p
            JOIN app.partners pa ON pa.id = p.partner_id
            JOIN app.programs pr ON pr.id = p.program_id
            WHERE p.program_id = %s
              AND p.status = 'pending'
              AND p.invoice_id IS NULL
              AND p.amount >= %s
              AND pa.payouts_enabled_at IS NOT NULL
            ORDER BY p.created_at
            FOR UPDATE OF p SKIP LOCKED
            """,
            (program_id, min_payout_amount),
        )
        return _rows(cur)


def mark_payouts_processing(conn, *, payout_ids: Sequence[str], invoice_id: str, user_id: str) -> int:
    """
    pending -> processing for the batch. Re-checks the eligibility guard so a
    concurrent confirmation cannot claim the same rows twice.
    NOTE: caller owns the transaction.
    """
    if not payout_ids:
        return 0
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE app.payouts
            SET invoice_id = %s,
                status = 'processing',
                user_id = %s,
                updated_at = now()
            WHERE id = ANY(%s)
              AND status = 'pending'
              AND invoice_id IS NULL
            """,
            (invoice_id, user_id, list(payout_ids)),
        )
        return cur.rowcount


# ==========================================================
# Webhook-driven status changes
# ==========================================================

def get_payout(conn, *, payout_id: str, for_update: bool = False) -> Optional[dict[str, Any]]:
    lock = "FOR UPDATE OF p" if for_update else ""
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT
              {_PAYOUT_COLUMNS},
              pa.email AS partner_email,
              pa.name AS partner_name,
              pr.name AS program_name,
              pr.logo AS program_logo
            FROM app.payouts p
            JOIN app.partners pa ON pa.id = p.partner_id
            JOIN app.programs pr ON pr.id = p.program_id
            WHERE p.id = %s
            {lock}
            """,
            (payout_id,),
        )
        row = cur.fetchone()
        return dict(row) if row else None


def complete_payout(
    conn,
    *,
    payout_id: str,
    paypal_transfer_id: Optional[str],
    from_statuses: Sequence[str] = (PayoutStatus.PROCESSING.value,),
    user_id: Optional[str] = None,
) -> bool:
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE app.payouts
            SET status = 'completed',
                paid_at = now(),
                paypal_transfer_id = COALESCE(%s, paypal_transfer_id),
                user_id = COALESCE(%s, user_id),
                updated_at = now()
            WHERE id = %s
              AND status = ANY(%s)
            """,
            (paypal_transfer_id, user_id, payout_id, list(from_statuses)),
        )
        return cur.rowcount == 1


def update_payout_status(
    conn,
    *,
    payout_id: str,
    new_status: PayoutStatus,
    paypal_transfer_id: Optional[str],
    from_status: PayoutStatus = PayoutStatus.PROCESSING,
) -> bool:
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE app.payouts
            SET status = %s,
                paypal_transfer_id = COALESCE(%s, paypal_transfer_id),
                updated_at = now()
            WHERE id = %s
              AND status = %s
            """,
            (PayoutStatus(new_status).value, paypal_transfer_id, payout_id, PayoutStatus(from_status).value),
        )
        return cur.rowcount == 1


def mark_commissions_paid(conn, *, payout_id: str) -> int:
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE app.commissions
            SET status = 'paid',
                updated_at = now()
            WHERE payout_id = %s
              AND status <> 'paid'
            """,
            (payout_id,),
        )
        return cur.rowcount


# ==========================================================
# Listing
# ==========================================================

def _filters_sql(
    *,
    program_id: str,
    status: Optional[str],
    partner_id: Optional[str],
    invoice_id: Optional[str],
) -> tuple[str, list[Any]]:
    clauses = ["p.program_id = %s"]
    params: list[Any] = [program_id]
    if status:
        clauses.append("p.status = %s")
        params.append(status)
    if partner_id:
        clauses.append("p.partner_id = %s")
        params.append(partner_id)
    if invoice_id:
        clauses.append("p.invoice_id = %s")
        params.append(invoice_id)
    return " AND ".join(clauses), params


def list_payouts(
    conn,
    *,
    program_id: str,
    status: Optional[str] = None,
    partner_id: Optional[str] = None,
    invoice_id: Optional[str] = None,
    sort_by: str = "amount",
    sort_order: str = "desc",
    page: int = 1,
    page_size: int = 100,
) -> list[dict[str, Any]]:
    column = SORT_COLUMNS.get(sort_by)
    if column is None:
        raise ValueError(f"unsupported sort_by: {sort_by}")
    direction = "ASC" if sort_order == "asc" else "DESC"

    where, params = _filters_sql(
        program_id=program_id, status=status, partner_id=partner_id, invoice_id=invoice_id
    )
    offset = (max(page, 1) - 1) * page_size

    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT
              {_PAYOUT_COLUMNS},
              pa.name AS partner_name,
              pa.email AS partner_email,
              pa.image AS partner_image,
              pa.payouts_enabled_at AS partner_payouts_enabled_at
            FROM app.payouts p
            JOIN app.partners pa ON pa.id = p.partner_id
            WHERE {where}
            ORDER BY {column} {direction} NULLS LAST, p.id
            LIMIT %s OFFSET %s
            """,
            (*params, page_size, offset),
        )
        return _rows(cur)


def count_payouts(
    conn,
    *,
    program_id: str,
    status: Optional[str] = None,
    partner_id: Optional[str] = None,
    invoice_id: Optional[str] = None,
) -> int:
    where, params = _filters_sql(
        program_id=program_id, status=status, partner_id=partner_id, invoice_id=invoice_id
    )
    with conn.cursor() as cur:
        cur.execute(f"SELECT COUNT(*) FROM app.payouts p WHERE {where}", params)
        return int(cur.fetchone()[0])


def count_payouts_by_status(
    conn,
    *,
    program_id: str,
    partner_id: Optional[str] = None,
    invoice_id: Optional[str] = None,
) -> list[dict[str, Any]]:
    where, params = _filters_sql(
        program_id=program_id, status=None, partner_id=partner_id, invoice_id=invoice_id
    )
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            f"""
            SELECT p.status, COUNT(*) AS count
            FROM app.payouts p
            WHERE {where}
            GROUP BY p.status
            ORDER BY p.status
            """,
            params,
        )
        return [{"status": r["status"], "count": int(r["count"])} for r in cur.fetchall()]
