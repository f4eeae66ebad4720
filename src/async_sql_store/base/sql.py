# src/async_sql_store/base/sql.py
"""
SQL rendering shared by the relational executors.

SqlQueryExecutor turns TableQuery handles into parameterized SQL. Concrete
executors provide the driver calls, the placeholder style, identifier
quoting, operator spelling and the normalization of driver errors.
"""

import logging
from abc import abstractmethod
from typing import Any, List, Optional, Sequence, Tuple

from .errors import DbError, DbErrorKind, ExecutorError
from .interfaces import QueryExecutor, Row, TableQuery
from .query import WHERE_IN


class _Params:
    """Collects parameter values and hands out placeholders in order."""

    def __init__(self, executor: "SqlQueryExecutor"):
        self._executor = executor
        self.values: List[Any] = []

    def add(self, value: Any) -> str:
        self.values.append(value)
        return self._executor.placeholder(len(self.values))


class SqlQueryExecutor(QueryExecutor):
    """Base class for executors talking to a SQL database."""

    def __init__(self):
        self._logger = logging.getLogger(f"{type(self).__module__}.{type(self).__name__}")

    # --- Dialect hooks ---

    @abstractmethod
    def placeholder(self, index: int) -> str:
        """Placeholder for the ``index``-th (1-based) parameter."""
        pass

    def quote_identifier(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def sql_operator(self, operator: str) -> str:
        return operator

    def qualified_table(self, query: TableQuery) -> str:
        table = self.quote_identifier(query.table)
        if query.schema:
            return f"{self.quote_identifier(query.schema)}.{table}"
        return table

    # --- Driver hooks ---

    @abstractmethod
    async def _fetch_rows(
        self, sql: str, params: Sequence[Any], timeout: Optional[float]
    ) -> List[Row]:
        pass

    @abstractmethod
    async def _fetch_value(
        self, sql: str, params: Sequence[Any], timeout: Optional[float]
    ) -> Any:
        pass

    @abstractmethod
    def _normalize_error(self, error: Exception, query: TableQuery) -> DbError:
        """Describe a driver exception as a DbError."""
        pass

    # --- Rendering ---

    def _render_where(self, query: TableQuery, params: _Params) -> str:
        conditions = []
        for predicate in query.predicates:
            column = self.quote_identifier(predicate.column)
            if predicate.clause == WHERE_IN:
                if not predicate.value:
                    conditions.append("1=0")
                    continue
                placeholders = ", ".join(params.add(v) for v in predicate.value)
                conditions.append(f"{column} IN ({placeholders})")
            elif predicate.value is None:
                if predicate.operator == "=":
                    conditions.append(f"{column} IS NULL")
                elif predicate.operator in ("!=", "<>"):
                    conditions.append(f"{column} IS NOT NULL")
                else:
                    raise ValueError(
                        f"Operator '{predicate.operator}' cannot compare with NULL."
                    )
            else:
                operator = self.sql_operator(predicate.operator)
                conditions.append(f"{column} {operator} {params.add(predicate.value)}")
        return f"WHERE {' AND '.join(conditions)}" if conditions else ""

    def _render_order(self, query: TableQuery) -> str:
        if not query.order:
            return ""
        column, direction = query.order
        return f"ORDER BY {self.quote_identifier(column)} {direction}"

    def _render_select(
        self,
        query: TableQuery,
        params: _Params,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> str:
        parts = [
            f"SELECT * FROM {self.qualified_table(query)}",
            self._render_where(query, params),
            self._render_order(query),
        ]
        if limit is not None:
            parts.append(f"LIMIT {params.add(limit)}")
        if offset:
            parts.append(f"OFFSET {params.add(offset)}")
        return " ".join(p for p in parts if p)

    # --- Error handling ---

    def _raise_executor_error(
        self, error: Exception, query: TableQuery, context: str
    ) -> None:
        if isinstance(error, ExecutorError):
            raise error
        db_error = self._normalize_error(error, query)
        if db_error.kind is DbErrorKind.OTHER:
            self._logger.error(f"Error during {context}: {error}", exc_info=True)
        else:
            self._logger.debug(f"Error during {context} classified as {db_error.kind.value}.")
        raise ExecutorError(db_error) from error

    def _require(self, row: Optional[Row], query: TableQuery, kind: DbErrorKind) -> Row:
        if row is None:
            raise ExecutorError(
                DbError(kind, message=f"No matching row found in '{query.table}'.")
            )
        return row

    # --- QueryExecutor implementation ---

    async def fetch_all(
        self, query: TableQuery, timeout: Optional[float] = None
    ) -> List[Row]:
        params = _Params(self)
        try:
            sql = self._render_select(query, params)
            self._logger.debug(f"Executing fetch_all: SQL='{sql}', Params={params.values}")
            return await self._fetch_rows(sql, params.values, timeout)
        except Exception as e:
            self._raise_executor_error(e, query, f"fetching rows from '{query.table}'")

    async def fetch_page(
        self,
        query: TableQuery,
        limit: int,
        offset: int = 0,
        timeout: Optional[float] = None,
    ) -> Tuple[List[Row], int]:
        count_params = _Params(self)
        page_params = _Params(self)
        try:
            where_clause = self._render_where(query, count_params)
            count_sql = " ".join(
                p
                for p in (f"SELECT COUNT(*) FROM {self.qualified_table(query)}", where_clause)
                if p
            )
            page_sql = self._render_select(query, page_params, limit, offset)
            self._logger.debug(
                f"Executing fetch_page: SQL='{page_sql}', Params={page_params.values}"
            )
            row_count = await self._fetch_value(count_sql, count_params.values, timeout)
            rows = await self._fetch_rows(page_sql, page_params.values, timeout)
            return rows, int(row_count or 0)
        except Exception as e:
            self._raise_executor_error(e, query, f"fetching a page from '{query.table}'")

    async def fetch_one(
        self,
        query: TableQuery,
        require: bool = True,
        timeout: Optional[float] = None,
    ) -> Optional[Row]:
        params = _Params(self)
        try:
            sql = self._render_select(query, params, limit=1)
            self._logger.debug(f"Executing fetch_one: SQL='{sql}', Params={params.values}")
            rows = await self._fetch_rows(sql, params.values, timeout)
            row = rows[0] if rows else None
            return self._require(row, query, DbErrorKind.NOT_FOUND) if require else row
        except Exception as e:
            self._raise_executor_error(e, query, f"fetching one row from '{query.table}'")

    async def insert(
        self, query: TableQuery, data: Row, timeout: Optional[float] = None
    ) -> Row:
        params = _Params(self)
        try:
            table = self.qualified_table(query)
            if data:
                columns = ", ".join(self.quote_identifier(k) for k in data)
                placeholders = ", ".join(params.add(v) for v in data.values())
                sql = f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) RETURNING *"
            else:
                sql = f"INSERT INTO {table} DEFAULT VALUES RETURNING *"
            self._logger.debug(f"Executing insert: SQL='{sql}', Params={params.values}")
            rows = await self._fetch_rows(sql, params.values, timeout)
            return rows[0]
        except Exception as e:
            self._raise_executor_error(e, query, f"inserting into '{query.table}'")

    async def update(
        self,
        query: TableQuery,
        data: Row,
        require: bool = True,
        timeout: Optional[float] = None,
    ) -> Optional[Row]:
        if not data:
            return await self.fetch_one(query, require=require, timeout=timeout)

        params = _Params(self)
        try:
            assignments = ", ".join(
                f"{self.quote_identifier(k)} = {params.add(v)}" for k, v in data.items()
            )
            parts = [
                f"UPDATE {self.qualified_table(query)} SET {assignments}",
                self._render_where(query, params),
                "RETURNING *",
            ]
            sql = " ".join(p for p in parts if p)
            self._logger.debug(f"Executing update: SQL='{sql}', Params={params.values}")
            rows = await self._fetch_rows(sql, params.values, timeout)
            if len(rows) > 1:
                self._logger.warning(
                    f"update on '{query.table}' matched {len(rows)} rows."
                )
            row = rows[0] if rows else None
            return self._require(row, query, DbErrorKind.NO_ROWS_AFFECTED) if require else row
        except Exception as e:
            self._raise_executor_error(e, query, f"updating '{query.table}'")

    async def delete(
        self,
        query: TableQuery,
        require: bool = True,
        timeout: Optional[float] = None,
    ) -> Optional[Row]:
        params = _Params(self)
        try:
            where_clause = self._render_where(query, params)
            if not where_clause:
                raise ValueError(
                    "Cannot delete without a filter expression (safety check)."
                )
            sql = f"DELETE FROM {self.qualified_table(query)} {where_clause} RETURNING *"
            self._logger.debug(f"Executing delete: SQL='{sql}', Params={params.values}")
            rows = await self._fetch_rows(sql, params.values, timeout)
            if len(rows) > 1:
                self._logger.warning(
                    f"delete on '{query.table}' removed {len(rows)} rows."
                )
            row = rows[0] if rows else None
            return self._require(row, query, DbErrorKind.NO_ROWS_AFFECTED) if require else row
        except Exception as e:
            self._raise_executor_error(e, query, f"deleting from '{query.table}'")


