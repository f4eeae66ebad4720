# src/async_sql_store/base/interfaces.py

from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .query import ASC, DESC, WHERE, WHERE_IN

Row = Dict[str, Any]

# Operators a `where` predicate may use. Anything else is rejected before any
# SQL is rendered.
WHERE_OPERATORS = frozenset(
    ["=", "!=", "<>", "<", ">", "<=", ">=", "LIKE", "NOT LIKE", "ILIKE", "NOT ILIKE"]
)


@dataclass(frozen=True)
class Predicate:
    """A where/whereIn predicate with its column already in internal form."""

    clause: str
    column: str
    operator: Optional[str]
    value: Any


@dataclass(frozen=True)
class TableQuery:
    """
    Immutable query handle scoped to one table.

    Every builder method returns a new handle, so a base handle can be shared
    by concurrent operations. Execution is delegated to the executor that
    created the handle.
    """

    executor: "QueryExecutor"
    table: str
    schema: Optional[str] = None
    predicates: Tuple[Predicate, ...] = ()
    order: Optional[Tuple[str, str]] = None

    def query(self, clause: str, column: str, *args: Any) -> "TableQuery":
        """Apply a clause by name, e.g. ``query("where", "age", ">", 3)``."""
        if clause == WHERE:
            if len(args) != 2:
                raise ValueError("where expects an operator and a value.")
            return self.where(column, *args)
        if clause == WHERE_IN:
            if len(args) != 1:
                raise ValueError("whereIn expects a single list of values.")
            return self.where_in(column, args[0])
        raise ValueError(f"Unsupported query clause '{clause}'.")

    def where(self, column: str, operator: str, value: Any) -> "TableQuery":
        normalized = operator.upper() if isinstance(operator, str) else operator
        if normalized not in WHERE_OPERATORS:
            raise ValueError(f"Unsupported where operator {operator!r}.")
        predicate = Predicate(WHERE, column, normalized, value)
        return replace(self, predicates=self.predicates + (predicate,))

    def where_in(self, column: str, values: Sequence[Any]) -> "TableQuery":
        if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple, set)):
            raise ValueError("whereIn expects a list of values.")
        predicate = Predicate(WHERE_IN, column, None, list(values))
        return replace(self, predicates=self.predicates + (predicate,))

    def order_by(self, column: str, direction: str = ASC) -> "TableQuery":
        direction = direction.upper()
        if direction not in (ASC, DESC):
            raise ValueError(f"Unsupported sort direction {direction!r}.")
        return replace(self, order=(column, direction))

    # --- Execution ---

    async def fetch_all(self, timeout: Optional[float] = None) -> List[Row]:
        return await self.executor.fetch_all(self, timeout=timeout)

    async def fetch_page(
        self, limit: int, offset: int = 0, timeout: Optional[float] = None
    ) -> Tuple[List[Row], int]:
        return await self.executor.fetch_page(self, limit, offset, timeout=timeout)

    async def fetch_one(
        self, require: bool = True, timeout: Optional[float] = None
    ) -> Optional[Row]:
        return await self.executor.fetch_one(self, require=require, timeout=timeout)

    async def insert(self, data: Row, timeout: Optional[float] = None) -> Row:
        return await self.executor.insert(self, data, timeout=timeout)

    async def update(
        self, data: Row, require: bool = True, timeout: Optional[float] = None
    ) -> Optional[Row]:
        return await self.executor.update(self, data, require=require, timeout=timeout)

    async def delete(
        self, require: bool = True, timeout: Optional[float] = None
    ) -> Optional[Row]:
        return await self.executor.delete(self, require=require, timeout=timeout)


class QueryExecutor(ABC):
    """
    The query capability a store runs against.

    Implementations execute TableQuery handles and must report every failure
    as an ExecutorError carrying a DbError, so the store can translate it.
    Rows are returned as plain dicts keyed by column name.
    """

    def table(self, name: str, schema: Optional[str] = None) -> TableQuery:
        """Create a base query handle for ``name``."""
        return TableQuery(executor=self, table=name, schema=schema)

    @abstractmethod
    async def fetch_all(
        self, query: TableQuery, timeout: Optional[float] = None
    ) -> List[Row]:
        """Fetch every row matching ``query``, ordered."""
        pass

    @abstractmethod
    async def fetch_page(
        self,
        query: TableQuery,
        limit: int,
        offset: int = 0,
        timeout: Optional[float] = None,
    ) -> Tuple[List[Row], int]:
        """
        Fetch one page of rows and the total number of matching rows.

        Returns:
            A ``(rows, row_count)`` tuple.
        """
        pass

    @abstractmethod
    async def fetch_one(
        self,
        query: TableQuery,
        require: bool = True,
        timeout: Optional[float] = None,
    ) -> Optional[Row]:
        """
        Fetch the first matching row.

        Raises:
            ExecutorError: With kind NOT_FOUND when ``require`` is set and no
                row matches.
        """
        pass

    @abstractmethod
    async def insert(
        self, query: TableQuery, data: Row, timeout: Optional[float] = None
    ) -> Row:
        """Insert ``data`` and return the stored row."""
        pass

    @abstractmethod
    async def update(
        self,
        query: TableQuery,
        data: Row,
        require: bool = True,
        timeout: Optional[float] = None,
    ) -> Optional[Row]:
        """
        Update the columns in ``data`` on matching rows; return the updated row.

        Raises:
            ExecutorError: With kind NO_ROWS_AFFECTED when ``require`` is set
                and nothing matched.
        """
        pass

    @abstractmethod
    async def delete(
        self,
        query: TableQuery,
        require: bool = True,
        timeout: Optional[float] = None,
    ) -> Optional[Row]:
        """
        Delete matching rows and return the row as it was before deletion.

        Raises:
            ExecutorError: With kind NO_ROWS_AFFECTED when ``require`` is set
                and nothing matched.
        """
        pass
