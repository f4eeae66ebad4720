# src/async_sql_store/db_implementations/postgresql_executor.py

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, List, Optional, Sequence

# --- asyncpg Driver Import ---
import asyncpg

# --- Framework Imports ---
from async_sql_store.base.errors import DbError, DbErrorKind
from async_sql_store.base.interfaces import Row, TableQuery
from async_sql_store.base.sql import SqlQueryExecutor

DB_POOL_TYPE = asyncpg.Pool


class PostgresExecutor(SqlQueryExecutor):
    """
    PostgreSQL query executor using asyncpg.

    Requires an asyncpg.Pool during initialization and handles connection
    acquisition/release internally. Each statement runs on its own pooled
    connection; transactions and commits are handled externally.

    Unique constraints are expected to be named ``<table>:unique:<columns>``
    (e.g. ``users:unique:email``) so that violations can be reported against
    the offending columns.
    """

    def __init__(self, db_pool: DB_POOL_TYPE):
        """
        Args:
            db_pool: An active asyncpg.Pool object.
        """
        if not isinstance(db_pool, asyncpg.Pool):
            raise TypeError("db_pool must be an instance of asyncpg.Pool")
        super().__init__()
        self._pool = db_pool
        self._logger.info("PostgreSQL executor created (Pool).")

    def placeholder(self, index: int) -> str:
        return f"${index}"

    # --- Connection/Session Management ---
    @asynccontextmanager
    async def _get_session(self) -> AsyncGenerator[asyncpg.Connection, None]:
        """Acquire a connection from the pool and release it afterwards."""
        conn: Optional[asyncpg.Connection] = None
        try:
            conn = await self._pool.acquire()
            self._logger.debug(f"Acquired connection {conn} from pool.")
            yield conn
        finally:
            if conn:
                try:
                    await self._pool.release(conn)
                    self._logger.debug(f"Released connection {conn} back to pool.")
                except Exception as release_error:
                    self._logger.error(
                        f"Error releasing connection {conn}: {release_error}",
                        exc_info=True,
                    )

    async def _fetch_rows(
        self, sql: str, params: Sequence[Any], timeout: Optional[float]
    ) -> List[Row]:
        async with self._get_session() as conn:
            records = await conn.fetch(sql, *params, timeout=timeout)
        return [dict(record) for record in records]

    async def _fetch_value(
        self, sql: str, params: Sequence[Any], timeout: Optional[float]
    ) -> Any:
        async with self._get_session() as conn:
            return await conn.fetchval(sql, *params, timeout=timeout)

    def _normalize_error(self, error: Exception, query: TableQuery) -> DbError:
        """Map asyncpg exceptions onto DbError kinds."""
        if isinstance(error, asyncpg.UniqueViolationError):
            return DbError(
                DbErrorKind.UNIQUE_VIOLATION,
                message=str(error),
                constraint=error.constraint_name,
                original=error,
            )

        # Invalid text representation, numeric out of range, invalid
        # datetime format, string too long, ...
        if isinstance(error, asyncpg.DataError):
            return DbError(
                DbErrorKind.INVALID_VALUE,
                message=f"Invalid value for table '{query.table}': {error}",
                original=error,
            )

        # Client-side encoding failures ("invalid input for query argument")
        # are InterfaceErrors that are also ValueErrors.
        if isinstance(error, asyncpg.InterfaceError) and isinstance(error, ValueError):
            return DbError(
                DbErrorKind.INVALID_VALUE,
                message=f"Invalid value for table '{query.table}': {error}",
                original=error,
            )

        return DbError(DbErrorKind.OTHER, message=str(error), original=error)
