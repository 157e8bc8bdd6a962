"""Row fetching for planned access queries.

This is the only place the service touches storage. The LOD engine produces
the descriptor and the parameterized statement; this module runs it.
"""

import logging
from typing import Any

from canvaslod.config import settings
from canvaslod.database import get_db
from canvaslod.services.sql import AccessQuery

logger = logging.getLogger("canvaslod.data")


def is_configured() -> bool:
    """Whether a database is available for fetching rows."""
    return bool(settings.database_url)


def fetch_rows(query: AccessQuery) -> list[dict[str, Any]]:
    """Execute ``query`` and return its rows as dicts.

    Returns an empty list when no database is configured.
    """
    if not is_configured():
        logger.debug("No database configured, returning no rows")
        return []

    with get_db() as conn:
        with conn.cursor() as cur:
            cur.execute(query.statement, query.params)
            rows = cur.fetchall()

    logger.info(f"Fetched {len(rows)} rows")
    return rows
