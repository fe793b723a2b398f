from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Optional
from uuid import UUID

import psycopg2
import psycopg2.extras
from psycopg2.pool import SimpleConnectionPool

from settings import settings

_pool: Optional[SimpleConnectionPool] = None

APPLICATION_NAME = "catering_workflow"


def init_pool() -> SimpleConnectionPool:
    """
    Open the PostgreSQL pool on first use.
    Only the postgres workflow store and its audit sink need it.
    """
    global _pool
    if _pool is not None:
        return _pool

    dsn = (settings.DATABASE_URL or "").strip()
    if not dsn:
        raise RuntimeError("DATABASE_URL is not configured")

    psycopg2.extras.register_uuid()
    _pool = SimpleConnectionPool(
        minconn=settings.DB_POOL_MIN,
        maxconn=settings.DB_POOL_MAX,
        dsn=dsn,
        connect_timeout=5,
        application_name=APPLICATION_NAME,
    )
    return _pool


def close_pool() -> None:
    global _pool
    if _pool is not None:
        _pool.closeall()
        _pool = None


def as_uuid(value: Any) -> Optional[str]:
    """Canonical text form of a uuid id, or None when it cannot be one."""
    try:
        return str(UUID(str(value)))
    except (TypeError, ValueError):
        return None


@contextmanager
def get_conn():
    """
    One transaction per block: commit on success, rollback on error.
    Every statement runs under DB_STATEMENT_TIMEOUT_MS.
    """
    pool = init_pool()
    conn = pool.getconn()
    try:
        with conn.cursor() as cur:
            cur.execute("SET statement_timeout = %s;", (f"{settings.DB_STATEMENT_TIMEOUT_MS}ms",))
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        pool.putconn(conn)


def check_connection() -> tuple[bool, str | None]:
    """Readiness check: (ok, error) without raising."""
    try:
        with get_conn() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True, None
    except Exception as exc:
        return False, f"{type(exc).__name__}: {exc}"
