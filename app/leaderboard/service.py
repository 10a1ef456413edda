# app/leaderboard/service.py
from __future__ import annotations

from typing import Any

from psycopg2.extras import RealDictCursor
from pydantic import TypeAdapter

from settings import settings
from app.leaderboard.names import generate_random_name
from schemas import LeaderboardPartner

LEADERBOARD_LIMIT = 20

_leaderboard_adapter = TypeAdapter(list[LeaderboardPartner])


def fetch_leaderboard_rows(conn, *, program_id: str, limit: int = LEADERBOARD_LIMIT) -> list[dict[str, Any]]:
    """
    Approved partners of the program with click/lead/sale counters summed over
    all of their links in that program.
    """
    with conn.cursor(cursor_factory=RealDictCursor) as cur:
        cur.execute(
            """
            SELECT
              pa.id,
              COALESCE(metrics.total_clicks, 0)::bigint AS total_clicks,
              COALESCE(metrics.total_leads, 0)::bigint AS total_leads,
              COALESCE(metrics.total_sales, 0)::bigint AS total_sales,
              COALESCE(metrics.total_sale_amount, 0)::bigint AS total_sale_amount
            FROM app.program_enrollments pe
            JOIN app.partners pa ON pa.id = pe.partner_id
            LEFT JOIN (
              SELECT
                partner_id,
                SUM(clicks) AS total_clicks,
                SUM(leads) AS total_leads,
                SUM(sales) AS total_sales,
                SUM(sale_amount) AS total_sale_amount
              FROM app.links
              WHERE program_id = %s
              GROUP BY partner_id
            ) metrics ON metrics.partner_id = pe.partner_id
            WHERE pe.program_id = %s
              AND pe.status = 'approved'
            ORDER BY
              total_sale_amount DESC,
              total_leads DESC,
              total_clicks DESC,
              pa.id
            LIMIT %s
            """,
            (program_id, program_id, limit),
        )
        return [dict(r) for r in cur.fetchall()]


def build_leaderboard(rows: list[dict[str, Any]]) -> list[LeaderboardPartner]:
    """
    Pseudonymize partners and validate the shape. Rows with missing or
    non-integer counters raise pydantic.ValidationError.
    """
    payload = [
        {
            "id": row["id"],
            "name": generate_random_name(row["id"]),
            "image": f"{settings.AVATAR_URL_BASE}{row['id']}",
            "clicks": row.get("total_clicks"),
            "leads": row.get("total_leads"),
            "sales": row.get("total_sales"),
            "saleAmount": row.get("total_sale_amount"),
        }
        for row in rows[:LEADERBOARD_LIMIT]
    ]
    return _leaderboard_adapter.validate_python(payload)


def get_leaderboard(conn, *, program_id: str) -> list[LeaderboardPartner]:
    return build_leaderboard(fetch_leaderboard_rows(conn, program_id=program_id))
