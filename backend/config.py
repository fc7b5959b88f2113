"""
Centralized configuration for the query builder.

Single source of truth for:
  - Database path and connection management
  - Logging configuration
"""

import logging
import os
import sqlite3
from contextlib import contextmanager

# ─── Database ────────────────────────────────────────────────────────────────

# ":memory:" unless QUERY_BUILDER_DB points at a file
DB_PATH = os.environ.get("QUERY_BUILDER_DB", ":memory:")


def get_db_connection(path=None):
    """
    Open a sqlite3 connection with sqlite3.Row rows, for wrapping in
    SqliteDatabase when the handle must outlive a with-block.
    Closing it is the caller's job; get_db() does that automatically.
    """
    conn = sqlite3.connect(path or DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db(path=None):
    """
    Context-managed database handle.

    Usage:
        with get_db() as db:
            rows, err = select().from_("users", ["*"]).use(db).query()

    The underlying connection is closed when the block exits,
    even if an exception occurs.
    """
    from database import SqliteDatabase

    conn = get_db_connection(path)
    try:
        yield SqliteDatabase(conn)
    finally:
        conn.close()


# ─── Logging ─────────────────────────────────────────────────────────────────

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level=logging.INFO):
    """Configure logging for the application."""
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )


def get_logger(name: str) -> logging.Logger:
    """Get a named logger instance."""
    return logging.getLogger(name)
