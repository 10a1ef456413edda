# app/rewards/repository.py
from __future__ import annotations

from typing import Any, Optional, Sequence

from psycopg2.extras import RealDictCursor

from services.ids import create_id

_REWARD_SELECT = """
    SELECT
      r.id, r.program_id, r.event, r.type, r.amount, r.max_duration, r.max_amount,
      r.created_at, r.updated_at,
      (SELECT COUNT(*) FROM app.partner_rewards prw WHERE prw.reward_id = r.id)::int AS partners_count
    FROM app.rewards r
"""


def list_rewards(conn, *, program_id: str) -> list[dict[str, Any]]:
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(_REWARD_SELECT + " WHERE r.program_id = %s ORDER BY r.created_at", (program_id,))
        return [dict(r) for r in cur.fetchall()]


def get_reward(conn, *, program_id: str, reward_id: str, for_update: bool = False) -> Optional[dict[str, Any]]:
    sql = _REWARD_SELECT + " WHERE r.program_id = %s AND r.id = %s"
    if for_update:
        sql += " FOR UPDATE OF r"
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(sql, (program_id, reward_id))
        row = cur.fetchone()
        return dict(row) if row else None


def program_wide_reward_exists(conn, *, program_id: str, event: str, exclude_reward_id: Optional[str] = None) -> bool:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT 1
            FROM app.rewards r
            WHERE r.program_id = %s
              AND r.event = %s
              AND (%s::text IS NULL OR r.id <> %s)
              AND NOT EXISTS (SELECT 1 FROM app.partner_rewards prw WHERE prw.reward_id = r.id)
            LIMIT 1
            """,
            (program_id, event, exclude_reward_id, exclude_reward_id),
        )
        return cur.fetchone() is not None


def count_enrolled_partners(conn, *, program_id: str, partner_ids: Sequence[str]) -> int:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT COUNT(DISTINCT partner_id)
            FROM app.program_enrollments
            WHERE program_id = %s
              AND partner_id = ANY(%s)
            """,
            (program_id, list(partner_ids)),
        )
        return int(cur.fetchone()[0])


def insert_reward(
    conn,
    *,
    program_id: str,
    event: str,
    type: str,
    amount: int,
    max_duration: Optional[int],
    max_amount: Optional[int],
) -> str:
    reward_id = create_id("rw_")
    with conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO app.rewards (id, program_id, event, type, amount, max_duration, max_amount)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (reward_id, program_id, event, type, amount, max_duration, max_amount),
        )
    return reward_id


def update_reward(
    conn,
    *,
    reward_id: str,
    type: str,
    amount: int,
    max_duration: Optional[int],
    max_amount: Optional[int],
) -> None:
    with conn.cursor() as cur:
        cur.execute(
            """
            UPDATE app.rewards
            SET type = %s, amount = %s, max_duration = %s, max_amount = %s, updated_at = now()
            WHERE id = %s
            """,
            (type, amount, max_duration, max_amount, reward_id),
        )


def replace_reward_partners(conn, *, reward_id: str, partner_ids: Sequence[str]) -> None:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM app.partner_rewards WHERE reward_id = %s", (reward_id,))
        for partner_id in dict.fromkeys(partner_ids):
            cur.execute(
                "INSERT INTO app.partner_rewards (reward_id, partner_id) VALUES (%s, %s)",
                (reward_id, partner_id),
            )


def delete_reward(conn, *, reward_id: str) -> None:
    with conn.cursor() as cur:
        cur.execute("DELETE FROM app.partner_rewards WHERE reward_id = %s", (reward_id,))
        cur.execute("DELETE FROM app.rewards WHERE id = %s", (reward_id,))
