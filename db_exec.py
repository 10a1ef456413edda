
# db_exec.py
from __future__ import annotations

from typing import Any, Optional, Sequence

import psycopg2
from psycopg2.extensions import connection as Connection
from psycopg2.extras import RealDictCursor

from services.db_errors import raise_http_from_db_error


def db_fetchone(conn: Connection, sql: str, params: Optional[Sequence[Any]] = None) -> Optional[dict]:
    try:
        with conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(sql, params or ())
            row = cur.fetchone()
            return dict(row) if row is not None else None
    except psycopg2.Error as e:
        raise_http_from_db_error(e)
        raise
