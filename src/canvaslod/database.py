"""PostgreSQL connections for the bounded data endpoints.

The database is optional: without ``CANVASLOD_DATABASE_URL`` the service still
plans and compiles queries, it just has nothing to run them against.
"""

import logging
from contextlib import contextmanager
from typing import Generator

import psycopg
from psycopg.rows import dict_row

from canvaslod.config import settings

logger = logging.getLogger("canvaslod.database")


class DatabaseNotConfigured(RuntimeError):
    """No database URL is configured"""
    pass


def get_connection() -> psycopg.Connection:
    """Open a connection that returns rows as dicts.

    Raises:
        DatabaseNotConfigured: If no database URL is set
    """
    if not settings.database_url:
        raise DatabaseNotConfigured("CANVASLOD_DATABASE_URL is not set")
    return psycopg.connect(
        settings.database_url,
        row_factory=dict_row,
        connect_timeout=settings.db_connect_timeout,
    )


@contextmanager
def get_db() -> Generator[psycopg.Connection, None, None]:
    """Connection scoped to one unit of work, committed on success."""
    conn = get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def ping() -> bool:
    """Whether the configured database answers ``SELECT 1``."""
    try:
        with get_db() as conn:
            conn.execute("SELECT 1")
    except psycopg.Error as e:
        logger.warning(f"Database ping failed: {e}")
        return False
    return True
