"""
Query Builder Module
====================
Fluent construction of SELECT statements, executed against an injected
database handle.

Usage:
    query = (
        select()
        .from_("users", ["id"])
        .inner_join("payments", "payments.user_id = users.id", ["amount"])
        .where("payments.amount > ? AND payments.is_approved", 10)
        .order_by(["users.id ASC"])
    )
    str(query)
    # SELECT id, amount FROM users INNER JOIN payments ON payments.user_id = users.id
    #   WHERE (payments.amount > ? AND payments.is_approved) ORDER BY users.id ASC

    rows, err = query.use(db).query()
    if err is MissingDatabase:
        ...

Every builder method mutates the query and returns it, so calls chain.
Table, column and predicate text is passed through untouched.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional, Tuple, Union

import pandas as pd

from config import get_logger
from database import Database, Row

logger = get_logger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════════════════════


class QueryBuilderError(Exception):
    """Base class for query builder errors."""


class MissingDatabaseError(QueryBuilderError):
    """The query was executed before a database handle was set with use()."""


class EmptyQueryError(QueryBuilderError):
    """The query has no FROM table, so there is no statement to execute."""


# Sentinels returned by Query.query(). Compare with `is`; never raise them,
# a raised instance keeps its traceback (and those frames) across calls.
MissingDatabase = MissingDatabaseError("no database associated with query, call use() first")
EmptyQuery = EmptyQueryError("query has no FROM table")


# ═══════════════════════════════════════════════════════════════════════════════
# CLAUSE STATE
# ═══════════════════════════════════════════════════════════════════════════════


class JoinType(Enum):
    """Supported joins. Values are the rendered SQL keywords."""

    INNER_JOIN = "INNER JOIN"
    LEFT_JOIN = "LEFT JOIN"
    RIGHT_JOIN = "RIGHT JOIN"
    FULL_JOIN = "FULL OUTER JOIN"


INNER_JOIN = JoinType.INNER_JOIN
LEFT_JOIN = JoinType.LEFT_JOIN
RIGHT_JOIN = JoinType.RIGHT_JOIN
FULL_JOIN = JoinType.FULL_JOIN


@dataclass
class TableRef:
    """A table name and the columns selected from it."""

    table_name: str
    columns: List[str] = field(default_factory=list)


@dataclass
class Join:
    """One JOIN clause."""

    join_type: JoinType
    table: TableRef
    predicate: str

    def render(self) -> str:
        return f"{self.join_type.value} {self.table.table_name} ON {self.predicate}"


@dataclass
class Predicate:
    """
    A WHERE condition and the values bound to its placeholders.

    Attributes:
        condition: SQL condition text, e.g. "first_name = ? AND age > ?"
        args: Values for the placeholders, in occurrence order
    """

    condition: str
    args: List[Any] = field(default_factory=list)


# ═══════════════════════════════════════════════════════════════════════════════
# QUERY
# ═══════════════════════════════════════════════════════════════════════════════


class Query:
    """
    Mutable SELECT builder.

    Clause state accumulates in call order and is rendered by string().
    A query without a FROM table renders to "" and is never executed.
    """

    def __init__(self):
        self.table: Optional[TableRef] = None
        self.joins: List[Join] = []
        self.where_parts: List[Predicate] = []
        self.order_by_parts: List[str] = []
        self.limit_value: Optional[int] = None
        self.using: Optional[Database] = None

    # ─── Clause accumulators ────────────────────────────────────────────────

    def from_(self, table_name: str, columns: List[str]) -> "Query":
        """
        Set the primary table. A later call replaces an earlier one.

        Args:
            table_name: Table to select from (e.g., "users")
            columns: Column expressions to select (e.g., ["*"] or ["id", "name"])

        Returns:
            self for method chaining
        """
        self.table = TableRef(table_name, list(columns))
        return self

    def join(
        self,
        join_type: Union[JoinType, str],
        table_name: str,
        predicate: str,
        columns: List[str],
    ) -> "Query":
        """
        Append a JOIN clause.

        Args:
            join_type: A JoinType, or its keyword (e.g., "LEFT JOIN")
            table_name: Table to join
            predicate: ON condition (e.g., "payments.user_id = users.id")
            columns: Columns selected from the joined table

        Returns:
            self for method chaining

        Raises:
            ValueError: join_type is not a supported join
        """
        self.joins.append(Join(JoinType(join_type), TableRef(table_name, list(columns)), predicate))
        return self

    def inner_join(self, table_name: str, predicate: str, columns: List[str]) -> "Query":
        """Append an INNER JOIN."""
        return self.join(JoinType.INNER_JOIN, table_name, predicate, columns)

    def left_join(self, table_name: str, predicate: str, columns: List[str]) -> "Query":
        """Append a LEFT JOIN."""
        return self.join(JoinType.LEFT_JOIN, table_name, predicate, columns)

    def where(self, condition: str, *args: Any) -> "Query":
        """
        Append one WHERE predicate.

        Each call adds its own parenthesized group; groups are ANDed together.
        Use AND/OR inside the condition to combine terms within a group.

        Args:
            condition: SQL condition with ? placeholders (e.g., "first_name = ?")
            *args: One value per placeholder, in order

        Returns:
            self for method chaining
        """
        self.where_parts.append(Predicate(condition, list(args)))
        return self

    def filter(
        self,
        condition: str,
        value: Any,
        skip_none: bool = True,
        skip_empty: bool = True,
    ) -> "Query":
        """
        Like where() with one bound value, but a no-op for absent values.

        Useful for optional search fields: pass the raw input and the
        predicate only lands in the WHERE clause when something was given.

        Args:
            condition: Condition holding exactly one ? (e.g., "users.last_name = ?")
            value: Bound to the placeholder
            skip_none: Treat None as absent (default: True)
            skip_empty: Treat "" as absent (default: True)

        Returns:
            self for method chaining
        """
        absent = (skip_none and value is None) or (skip_empty and value == "")
        if absent:
            return self
        return self.where(condition, value)

    def where_in(self, column: str, values: Optional[List[Any]]) -> "Query":
        """
        Add an IN predicate with one placeholder per value.

        Args:
            column: Column name (e.g., "users.id")
            values: List of values. If None or empty, nothing is added.

        Returns:
            self for method chaining
        """
        if not values:
            return self
        placeholders = ", ".join("?" for _ in values)
        return self.where(f"{column} IN ({placeholders})", *values)

    def order_by(self, expressions: Union[List[str], str]) -> "Query":
        """
        Append ORDER BY expressions.

        Args:
            expressions: Expressions with direction (e.g., ["users.id ASC"]).
                A single string is treated as one expression.

        Returns:
            self for method chaining
        """
        if isinstance(expressions, str):
            expressions = [expressions]
        self.order_by_parts.extend(expressions)
        return self

    def limit(self, n: Optional[int]) -> "Query":
        """
        Cap the result set with a trailing LIMIT, rendered inline.

        Args:
            n: Maximum row count; None removes a previously set cap.

        Returns:
            self for method chaining

        Raises:
            ValueError: n is negative or not an int
        """
        if n is not None and (isinstance(n, bool) or not isinstance(n, int) or n < 0):
            raise ValueError(f"limit must be a non-negative integer, got {n!r}")
        self.limit_value = n
        return self

    # ─── Rendering ──────────────────────────────────────────────────────────

    def string(self) -> str:
        """
        Render the statement.

        Returns "" when no FROM table is set. Clauses are emitted in the fixed
        order SELECT, FROM, JOINs, WHERE, ORDER BY, LIMIT.
        """
        if self.table is None:
            return ""

        columns = list(self.table.columns)
        for join in self.joins:
            columns.extend(join.table.columns)

        parts = [f"SELECT {', '.join(columns)} FROM {self.table.table_name}"]
        parts.extend(join.render() for join in self.joins)

        if self.where_parts:
            conditions = " AND ".join(f"({p.condition})" for p in self.where_parts)
            parts.append(f"WHERE {conditions}")

        if self.order_by_parts:
            parts.append(f"ORDER BY {', '.join(self.order_by_parts)}")

        if self.limit_value is not None:
            parts.append(f"LIMIT {self.limit_value}")

        return " ".join(parts)

    def __str__(self):
        return self.string()

    def args(self) -> List[Any]:
        """Predicate arguments flattened in placeholder order."""
        return [arg for predicate in self.where_parts for arg in predicate.args]

    def build(self) -> Tuple[str, List[Any]]:
        """Rendered SQL paired with its flattened arguments, e.g. for a DB-API execute()."""
        return self.string(), self.args()

    # ─── Execution ──────────────────────────────────────────────────────────

    def use(self, db: Database) -> "Query":
        """
        Associate a database handle. The query does not own or close it.

        Returns:
            self for method chaining
        """
        self.using = db
        return self

    def query(self) -> Tuple[Optional[Any], Optional[Exception]]:
        """
        Execute the statement through the associated handle.

        Returns:
            (None, MissingDatabase) if use() was never called
            (None, EmptyQuery) if no FROM table is set
            otherwise the handle's (rows, error) result, unchanged
        """
        if self.using is None:
            logger.warning("query() called without a database")
            return None, MissingDatabase

        sql, params = self.build()
        if not sql:
            return None, EmptyQuery

        logger.debug("Executing query: %s params=%s", sql, params)
        return self.using.query(sql, *params)

    def query_row(self) -> Row:
        """
        Execute the statement and return its first row.

        Unlike query(), a missing database is a programming error here and
        raises instead of being returned. MissingDatabaseError shares the
        QueryBuilderError base with the sentinels query() returns, so an
        `except QueryBuilderError` around this call also catches the fatal case.

        Raises:
            MissingDatabaseError: use() was never called
            EmptyQueryError: no FROM table is set
        """
        if self.using is None:
            raise MissingDatabaseError("query_row() called without a database, call use() first")

        sql, params = self.build()
        if not sql:
            raise EmptyQueryError("query_row() called on a query with no FROM table")

        logger.debug("Executing single-row query: %s params=%s", sql, params)
        return self.using.query_row(sql, *params)

    def to_frame(self) -> Tuple[Optional[pd.DataFrame], Optional[Exception]]:
        """
        Execute and load the result set into a DataFrame.

        Returns:
            (DataFrame, None) on success, or (None, error) with the same
            errors query() returns
        """
        rows, error = self.query()
        if error is not None:
            return None, error

        try:
            columns = [d[0] for d in rows.description] if rows.description else []
            records = [tuple(row) for row in rows.fetchall()]
        finally:
            rows.close()

        logger.debug("Loaded %d rows into frame", len(records))
        return pd.DataFrame.from_records(records, columns=columns), None


def select() -> Query:
    """Start a new, empty query."""
    return Query()
