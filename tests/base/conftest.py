from typing import Any, List, Optional, Sequence, Tuple

import pytest

from async_sql_store.base.errors import DbError, DbErrorKind
from async_sql_store.base.interfaces import Row, TableQuery
from async_sql_store.base.sql import SqlQueryExecutor


class RecordingHandle:
    """Stand-in queryable handle that records every clause applied to it."""

    def __init__(self, calls: Tuple[tuple, ...] = ()):
        self.calls = calls

    def query(self, clause: str, column: str, *args: Any) -> "RecordingHandle":
        return RecordingHandle(self.calls + ((clause, column, *args),))


class FakeUniqueViolation(Exception):
    def __init__(self, constraint: str):
        super().__init__(f"duplicate key value violates unique constraint \"{constraint}\"")
        self.constraint = constraint


class CapturingExecutor(SqlQueryExecutor):
    """
    SQL executor that records rendered statements instead of running them.

    ``rows`` is returned from every row-fetching statement and ``value`` from
    every scalar statement; ``error`` (if set) is raised by every statement.
    """

    def __init__(self, rows: Optional[List[Row]] = None, value: Any = 0, error: Exception = None):
        super().__init__()
        self.rows = rows if rows is not None else []
        self.value = value
        self.error = error
        self.statements: List[Tuple[str, list]] = []

    def placeholder(self, index: int) -> str:
        return f"${index}"

    async def _fetch_rows(self, sql: str, params: Sequence[Any], timeout: Optional[float]) -> List[Row]:
        self.statements.append((sql, list(params)))
        if self.error:
            raise self.error
        return [dict(row) for row in self.rows]

    async def _fetch_value(self, sql: str, params: Sequence[Any], timeout: Optional[float]) -> Any:
        self.statements.append((sql, list(params)))
        if self.error:
            raise self.error
        return self.value

    def _normalize_error(self, error: Exception, query: TableQuery) -> DbError:
        if isinstance(error, FakeUniqueViolation):
            return DbError(
                DbErrorKind.UNIQUE_VIOLATION, str(error), constraint=error.constraint, original=error
            )
        return DbError(DbErrorKind.OTHER, str(error), original=error)


@pytest.fixture
def recording_handle():
    return RecordingHandle()


@pytest.fixture
def capturing_executor():
    return CapturingExecutor()


@pytest.fixture
def make_capturing_executor():
    return CapturingExecutor


@pytest.fixture
def unique_violation():
    return FakeUniqueViolation
