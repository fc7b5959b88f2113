"""
Database handles for executing built queries.

The query builder never opens or closes connections itself; it is given a
handle satisfying the Database protocol and delegates execution to it.
SqliteDatabase is the shipped implementation over the standard sqlite3
driver (qmark "?" placeholders).
"""

import sqlite3
from typing import Any, Optional, Protocol, Tuple, runtime_checkable

from config import get_logger

logger = get_logger(__name__)

# Everything the sqlite3 driver raises while binding, executing or fetching.
# OverflowError: int out of SQLite INTEGER range. Warning: multiple statements (< 3.12).
DRIVER_ERRORS = (sqlite3.Error, sqlite3.Warning, OverflowError)


class NoRowsError(LookupError):
    """Raised by Row.scan() when the query produced no rows."""


class Row:
    """
    Result of a single-row query.

    Errors are deferred: a failed query still yields a Row, and the error
    surfaces when scan() is called.
    """

    def __init__(self, values: Optional[Any] = None, error: Optional[Exception] = None):
        self.values = values
        self.err = error

    def scan(self) -> Any:
        """
        Return the fetched row.

        Raises:
            The deferred execution error, if the query failed.
            NoRowsError if the query succeeded but matched nothing.
        """
        if self.err is not None:
            raise self.err
        if self.values is None:
            raise NoRowsError("query returned no rows")
        return self.values

    def __repr__(self):
        return f"Row(values={self.values!r}, err={self.err!r})"


@runtime_checkable
class Database(Protocol):
    """Capability the query builder executes against."""

    def query(self, sql: str, *args: Any) -> Tuple[Optional[Any], Optional[Exception]]:
        """Run a statement, returning (rows_cursor, None) or (None, error)."""
        ...

    def query_row(self, sql: str, *args: Any) -> Row:
        """Run a statement and return its first row."""
        ...


class SqliteDatabase:
    """
    Database handle wrapping an existing sqlite3 connection.

    The connection is owned by the caller (see config.get_db()).
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def query(self, sql: str, *args: Any) -> Tuple[Optional[sqlite3.Cursor], Optional[Exception]]:
        """
        Execute a statement.

        Returns:
            (cursor, None) on success
            (None, error) if the driver rejected the statement or its arguments
        """
        try:
            cursor = self.conn.execute(sql, args)
        except DRIVER_ERRORS as e:
            logger.error("SQL execution error: %s", e)
            return None, e
        return cursor, None

    def query_row(self, sql: str, *args: Any) -> Row:
        """Execute a statement and capture its first row (or the error)."""
        cursor, error = self.query(sql, *args)
        if error is not None:
            return Row(error=error)
        try:
            return Row(values=cursor.fetchone())
        except DRIVER_ERRORS as e:
            logger.error("SQL fetch error: %s", e)
            return Row(error=e)
        finally:
            cursor.close()
