"""
Database Connection Management
Handles PostgreSQL connections with context manager pattern.

Only callers (CLI commands, scheduled jobs) open connections. The engine
receives an already-open cursor wrapped in a CrmStore.
"""

import psycopg2
from psycopg2.extras import RealDictCursor
from contextlib import contextmanager
import logging

from corretorcrm.config import config

logger = logging.getLogger(__name__)


@contextmanager
def get_db_connection(autocommit=False):
    """
    Context manager for database connections.
    Commits on success, rolls back on error, always closes.

    With autocommit=True every statement is committed on its own; batch jobs
    use this so one failed lead doesn't undo the others.

    Usage:
        with get_db_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM leads")
            results = cur.fetchall()
    """
    conn = None
    try:
        conn = psycopg2.connect(config.DATABASE_URL)
        conn.autocommit = autocommit
        logger.debug(f"Database connection established (autocommit={autocommit})")
        yield conn
        if not autocommit:
            conn.commit()
            logger.debug("Transaction committed")
    except Exception as e:
        if conn and not autocommit:
            conn.rollback()
            logger.error(f"Transaction rolled back due to error: {e}")
        raise
    finally:
        if conn:
            conn.close()
            logger.debug("Database connection closed")


@contextmanager
def get_db_cursor(dict_cursor=True, autocommit=False):
    """
    Context manager for database cursor.
    Returns RealDictCursor by default for row-as-dict results.

    Usage:
        with get_db_cursor() as cur:
            store = CrmStore(cur)
            lead = store.get_lead(lead_id)
    """
    with get_db_connection(autocommit=autocommit) as conn:
        cursor_factory = RealDictCursor if dict_cursor else None
        cur = conn.cursor(cursor_factory=cursor_factory)
        try:
            yield cur
        finally:
            cur.close()
