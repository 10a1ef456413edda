# app/programs/repository.py
from __future__ import annotations

from typing import Any, Optional

from db_exec import db_fetchone


def get_workspace(conn, *, workspace_id: str) -> Optional[dict[str, Any]]:
    return db_fetchone(
        conn,
        """
        SELECT id, name, slug, plan, stripe_id, invoice_prefix, default_program_id
        FROM app.workspaces
        WHERE id = %s
        """,
        (workspace_id,),
    )


def is_workspace_member(conn, *, workspace_id: str, user_id: str) -> bool:
    row = db_fetchone(
        conn,
        "SELECT 1 AS ok FROM app.workspace_users WHERE workspace_id = %s AND user_id = %s",
        (workspace_id, user_id),
    )
    return row is not None


def get_program(conn, *, program_id: str, workspace_id: Optional[str] = None) -> Optional[dict[str, Any]]:
    sql = """
        SELECT id, workspace_id, name, logo, min_payout_amount, default_reward_id
        FROM app.programs
        WHERE id = %s
    """
    params: list[Any] = [program_id]
    if workspace_id is not None:
        sql += " AND workspace_id = %s"
        params.append(workspace_id)
    return db_fetchone(conn, sql, params)
