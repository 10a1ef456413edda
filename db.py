
import logging
from contextlib import contextmanager

from psycopg2.pool import SimpleConnectionPool

from settings import settings

logger = logging.getLogger("partnerpay.db")

_pool: SimpleConnectionPool | None = None


def init_pool():
    """
    Create the PostgreSQL connection pool. Called lazily on first use.
    """
    global _pool
    if _pool is None:
        _pool = SimpleConnectionPool(
            minconn=settings.DB_POOL_MIN,
            maxconn=settings.DB_POOL_MAX,
            dsn=settings.DATABASE_URL,
            connect_timeout=5,
        )
        logger.info("db pool ready min=%s max=%s", settings.DB_POOL_MIN, settings.DB_POOL_MAX)


def close_pool():
    global _pool
    if _pool:
        _pool.closeall()
        _pool = None


def _configure_session(conn) -> None:
    with conn.cursor() as cur:
        cur.execute("SET statement_timeout = %s;", (f"{settings.DB_STATEMENT_TIMEOUT_MS}ms",))
        cur.execute("SET application_name = 'partnerpay_api';")


@contextmanager
def get_conn():
    """
    One transaction on a pooled connection.
    Commits when the block exits normally; rolls back on any exception,
    including failures of external calls made while the block is open.
    """
    if _pool is None:
        init_pool()

    conn = _pool.getconn()
    try:
        _configure_session(conn)
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        _pool.putconn(conn)
