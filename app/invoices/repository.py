# app/invoices/repository.py
from __future__ import annotations

from typing import Any

import psycopg2
from psycopg2.extras import RealDictCursor

from services.db_errors import raise_http_from_db_error
from services.ids import create_id

INVOICE_NUMBER_WIDTH = 4


def format_invoice_number(prefix: str, existing_count: int) -> str:
    """
    3 existing invoices with prefix "INV" -> "INV-0004".
    """
    return f"{prefix}-{str(existing_count + 1).zfill(INVOICE_NUMBER_WIDTH)}"


def count_invoices(conn, *, workspace_id: str) -> int:
    with conn.cursor() as cur:
        cur.execute(
            "SELECT COUNT(*) FROM app.invoices WHERE workspace_id = %s",
            (workspace_id,),
        )
        return int(cur.fetchone()[0])


def next_invoice_number(conn, *, workspace_id: str, prefix: str) -> str:
    return format_invoice_number(prefix, count_invoices(conn, workspace_id=workspace_id))


def create_invoice(
    conn,
    *,
    workspace_id: str,
    program_id: str,
    number: str,
    amount: int,
    fee: int,
    total: int,
) -> dict[str, Any]:
    """
    Insert an invoice row. NOTE: caller owns the transaction.
    """
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(
                """
                INSERT INTO app.invoices (id, number, workspace_id, program_id, amount, fee, total)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                RETURNING id, number, workspace_id, program_id, amount, fee, total, created_at
                """,
                (create_id("inv_"), number, workspace_id, program_id, amount, fee, total),
            )
            row = cur.fetchone()
    except psycopg2.Error as e:
        # a concurrent confirmation took the same number
        raise_http_from_db_error(e)
        raise
    assert row and row["id"], "create_invoice: missing id"
    return dict(row)
