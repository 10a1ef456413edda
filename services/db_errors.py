# services/db_errors.py
from __future__ import annotations

from fastapi import HTTPException
from psycopg2 import errors as pg_errors

# constraint name -> (http status, error code)
CONSTRAINT_HTTP_MAP: dict[str, tuple[int, str]] = {
    "invoices_workspace_number_key": (409, "INVOICE_NUMBER_CONFLICT"),
    "payouts_invoice_id_fkey": (409, "INVOICE_NOT_FOUND"),
    "partner_rewards_pkey": (409, "DUPLICATE_PARTNER_REWARD"),
    "rewards_program_id_fkey": (404, "PROGRAM_NOT_FOUND"),
}


def _constraint_name(exc: Exception) -> str | None:
    diag = getattr(exc, "diag", None)
    if diag is None:
        return None
    name = getattr(diag, "constraint_name", None)
    return name if isinstance(name, str) and name else None


def http_status_for_db_error(exc: Exception) -> tuple[int, str]:
    """
    Map a psycopg2 error to (status, code). Unknown errors fail closed as 500.
    """
    name = _constraint_name(exc)
    if name and name in CONSTRAINT_HTTP_MAP:
        return CONSTRAINT_HTTP_MAP[name]

    if isinstance(exc, pg_errors.UniqueViolation):
        return 409, "CONFLICT"
    if isinstance(exc, pg_errors.ForeignKeyViolation):
        return 409, "REFERENCE_NOT_FOUND"
    if isinstance(exc, pg_errors.QueryCanceled):
        return 503, "DB_TIMEOUT"

    return 500, "INTERNAL_ERROR"


def raise_http_from_db_error(exc: Exception) -> None:
    status, code = http_status_for_db_error(exc)
    if status >= 500 and code == "INTERNAL_ERROR":
        raise HTTPException(status_code=500, detail="Internal server error")
    raise HTTPException(status_code=status, detail={"error": code})
