from __future__ import annotations

import os
from typing import Optional

from fastapi import APIRouter

from db import get_conn
from settings import settings

router = APIRouter(tags=["health"])

MIGRATION_REVISION = "0001_baseline_schema"


def _ping_db() -> Optional[str]:
    """None when the database answers, else the error class name."""
    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
        return None
    except Exception as exc:
        return type(exc).__name__


def _current_revision() -> Optional[str]:
    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT to_regclass('public.alembic_version');")
                if cur.fetchone()[0] is None:
                    return None
                cur.execute("SELECT version_num FROM alembic_version LIMIT 1;")
                row = cur.fetchone()
                return row[0] if row else None
    except Exception:
        return None


@router.get("/healthz")
def healthz():
    return {"ok": True, "env": settings.ENV, "db_ok": _ping_db() is None}


@router.get("/readyz")
def readyz():
    db_error = _ping_db()
    revision = _current_revision() if db_error is None else None
    migrations_ok = revision == MIGRATION_REVISION
    return {
        "ready": db_error is None and migrations_ok,
        "db_ok": db_error is None,
        "db_error": db_error,
        "migrations_ok": migrations_ok,
        "migration_revision": MIGRATION_REVISION,
        "current_revision": revision,
    }


@router.get("/version")
def version():
    return {"git_sha": os.getenv("GIT_SHA", "unknown"), "env": settings.ENV}
