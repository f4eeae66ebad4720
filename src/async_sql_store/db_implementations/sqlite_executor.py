# src/async_sql_store/db_implementations/sqlite_executor.py

import re
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, List, Optional, Sequence

# --- aiosqlite Driver Import ---
import aiosqlite

# --- Framework Imports ---
from async_sql_store.base.errors import DbError, DbErrorKind
from async_sql_store.base.interfaces import Row, TableQuery
from async_sql_store.base.sql import SqlQueryExecutor

DB_CONNECTION_TYPE = aiosqlite.Connection

_UNIQUE_FAILED = re.compile(r"UNIQUE constraint failed: (.+)$")
_INVALID_VALUE_MARKERS = (
    "datatype mismatch",
    "cannot store",
    "binding parameter",
    "type 'dict' is not supported",
    "type 'list' is not supported",
)

# SQLite has no ILIKE; LIKE is case-insensitive for ASCII text.
_OPERATORS = {
    "ILIKE": "LIKE",
    "NOT ILIKE": "NOT LIKE",
}


class SqliteExecutor(SqlQueryExecutor):
    """
    SQLite query executor using aiosqlite.

    This executor expects an active `aiosqlite.Connection` to be provided
    during initialization, typically managed by a Unit of Work or Service Layer
    that handles transaction boundaries (commit/rollback).

    Requires SQLite >= 3.35 for ``RETURNING``. Unique violations are reported
    with a constraint name of the form ``<table>:unique:<columns>`` built from
    SQLite's error message.
    """

    def __init__(self, db_connection: DB_CONNECTION_TYPE):
        """
        Args:
            db_connection: An active aiosqlite.Connection object managed externally.
        """
        if not isinstance(db_connection, aiosqlite.Connection):
            raise TypeError("db_connection must be an instance of aiosqlite.Connection")
        super().__init__()
        self._conn = db_connection
        # Ensure connection uses dict-like rows for convenience
        self._conn.row_factory = aiosqlite.Row
        self._logger.info("SQLite executor created.")

    def placeholder(self, index: int) -> str:
        return "?"

    def sql_operator(self, operator: str) -> str:
        return _OPERATORS.get(operator, operator)

    # --- Connection/Session Management (UoW Aware) ---
    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[aiosqlite.Connection, None]:
        """
        Provides the externally managed connection within a context.
        Does NOT handle commit/rollback; expects the caller (UoW) to manage it.
        """
        yield self._conn

    async def _fetch_rows(
        self, sql: str, params: Sequence[Any], timeout: Optional[float]
    ) -> List[Row]:
        # aiosqlite has no per-statement timeout; it is configured on connect.
        async with self._get_session() as conn:
            async with conn.execute(sql, tuple(params)) as cursor:
                records = await cursor.fetchall()
        return [dict(record) for record in records]

    async def _fetch_value(
        self, sql: str, params: Sequence[Any], timeout: Optional[float]
    ) -> Any:
        async with self._get_session() as conn:
            async with conn.execute(sql, tuple(params)) as cursor:
                record = await cursor.fetchone()
        return record[0] if record is not None else None

    def _normalize_error(self, error: Exception, query: TableQuery) -> DbError:
        """Map sqlite3/aiosqlite exceptions onto DbError kinds."""
        message = str(error)

        if isinstance(error, aiosqlite.IntegrityError):
            match = _UNIQUE_FAILED.search(message)
            if match:
                return DbError(
                    DbErrorKind.UNIQUE_VIOLATION,
                    message=message,
                    constraint=self._constraint_name(match.group(1), query),
                    original=error,
                )

        if isinstance(error, aiosqlite.Error) and any(
            marker in message for marker in _INVALID_VALUE_MARKERS
        ):
            return DbError(
                DbErrorKind.INVALID_VALUE,
                message=f"Invalid value for table '{query.table}': {message}",
                original=error,
            )

        return DbError(DbErrorKind.OTHER, message=message, original=error)

    @staticmethod
    def _constraint_name(columns: str, query: TableQuery) -> str:
        """``"users.email, users.name"`` -> ``"users:unique:email,name"``."""
        scope = query.table
        fields = []
        for qualified in columns.split(","):
            table, _, column = qualified.strip().rpartition(".")
            scope = table or scope
            fields.append(column)
        return f"{scope}:unique:{','.join(fields)}"
