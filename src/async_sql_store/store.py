# src/async_sql_store/store.py

import logging
import math
from logging import LoggerAdapter
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar, Union

from pydantic import BaseModel

from async_sql_store.base.config import StoreConfig, normalize_config
from async_sql_store.base.errors import ExecutorError, translate_error
from async_sql_store.base.exceptions import StoreException
from async_sql_store.base.interfaces import QueryExecutor, Row, TableQuery
from async_sql_store.base.keys import is_omitted
from async_sql_store.base.query import WHERE, FilterOp, apply_filters, normalize_query
from async_sql_store.base.utils import check_for_unrecognized_properties, prepare_for_storage

R = TypeVar("R")

Meta = Optional[Mapping[str, Any]]

# Keys of meta["options"] forwarded to every executor call.
EXECUTOR_OPTIONS = ("timeout",)


class Pagination(BaseModel):
    row_count: int
    page_count: int
    limit: int
    offset: int


class Page(BaseModel):
    """Envelope returned by ``find`` on paginated stores."""

    results: List[Dict[str, Any]]
    pagination: Pagination


class SqlStore:
    """
    CRUD store over a single table.

    Queries handed to ``find`` are untrusted and normalized against the
    configuration; ``meta["filters"]`` are trusted filters applied before the
    derived ones. Property names in filters are external and are serialized
    to column names when the query is built. Results are plain row dicts in
    column form; use ``unserialize`` to convert them for API callers.

    Every operation awaits the executor exactly once. Failures reported by the
    executor are translated into StoreException subclasses (NOT_FOUND,
    BAD_REQUEST, UNPROCESSABLE_ENTITY) or re-raised unchanged when they cannot
    be classified.
    """

    def __init__(self, executor: QueryExecutor, config: Union[Dict[str, Any], StoreConfig]):
        """
        Args:
            executor: The query executor rows are read from and written to.
            config: A store configuration dict (see ``normalize_config``) or an
                already normalized StoreConfig.

        Raises:
            ConfigurationError: If ``config`` is invalid.
        """
        self._config = config if isinstance(config, StoreConfig) else normalize_config(config)
        self._model: TableQuery = executor.table(
            self._config.table, **dict(self._config.extra_model_options)
        )
        self._logger = logging.getLogger(
            f"{__name__}.{self.__class__.__name__}[{self._config.table}]"
        )
        self._logger.info(
            f"Store created for table '{self._config.table}' "
            f"(sort: '{self._config.sort}', limit: {self._config.limit})."
        )

    @property
    def config(self) -> StoreConfig:
        return self._config

    @property
    def serialize(self) -> Callable[[Any], Any]:
        """Convert external data (camelCase keys) to column form."""
        return self._config.serialize

    @property
    def unserialize(self) -> Callable[[Any], Any]:
        """Convert rows (column keys) to external form."""
        return self._config.unserialize

    # --- Helpers ---

    def _log(self, logger: Optional[LoggerAdapter]) -> Union[logging.Logger, LoggerAdapter]:
        return logger if logger is not None else self._logger

    def _column(self, prop: str) -> str:
        column = self._config.serialize_property(prop)
        if is_omitted(column):
            raise ValueError(f"Property '{prop}' does not map to a column.")
        return column

    @staticmethod
    def _meta_filters(meta: Meta) -> List[Any]:
        filters = (meta or {}).get("filters")
        if filters is None:
            return []
        if not isinstance(filters, (list, tuple)):
            raise TypeError("meta['filters'] must be a list of filter operations.")
        return list(filters)

    @staticmethod
    def _options(meta: Meta) -> Dict[str, Any]:
        options = (meta or {}).get("options")
        if options is None:
            return {}
        if not isinstance(options, Mapping):
            raise TypeError("meta['options'] must be a mapping of executor options.")
        check_for_unrecognized_properties("meta['options']", options, EXECUTOR_OPTIONS)
        return dict(options)

    def _by_id(self, id: Any, meta: Meta) -> TableQuery:
        filters = [*self._meta_filters(meta), FilterOp(WHERE, "id", "=", id)]
        return apply_filters(self._model, filters, self._config.serialize_property)

    async def _execute(
        self, operation: Awaitable[R], logger: Union[logging.Logger, LoggerAdapter], context: str
    ) -> R:
        """Await an executor call, translating its failure if it reports one."""
        try:
            return await operation
        except ExecutorError as e:
            failure = e

        translated = translate_error(failure.error)
        if isinstance(translated, StoreException):
            logger.warning(f"{context} failed: {translated.kind.value}: {translated}")
            translated.__cause__ = failure
        else:
            logger.error(f"Unclassified error during {context}: {translated}")
        raise translated

    # --- CRUD ---

    async def create(self, data: Any, logger: Optional[LoggerAdapter] = None) -> Row:
        """
        Insert a row. ``data`` must already be in column form (see ``serialize``);
        pydantic models and dataclasses are flattened first.
        """
        log = self._log(logger)
        row_data = prepare_for_storage(data)
        if not isinstance(row_data, dict):
            raise TypeError(
                f"create() expects a dict, dataclass or pydantic model, got {type(data).__name__}."
            )
        log.debug(f"Creating row in '{self._config.table}' with columns {list(row_data)}.")
        row = await self._execute(
            self._model.insert(row_data), log, f"creating row in '{self._config.table}'"
        )
        log.info(f"Created row in '{self._config.table}'.")
        return row

    async def find(
        self,
        query: Optional[Mapping[str, Any]] = None,
        meta: Meta = None,
        logger: Optional[LoggerAdapter] = None,
    ) -> Union[Dict[str, Any], List[Row]]:
        """
        Find rows matching ``meta["filters"]``, ``query["search"]`` and ``query["ids"]``.

        Returns:
            A page dict (``results`` and ``pagination``) when the store has a
            limit configured, otherwise the full list of matching rows.
        """
        log = self._log(logger)
        normalized = normalize_query(
            query,
            searchable_properties=self._config.searchable_properties,
            sort=self._config.sort,
            limit=self._config.limit,
        )
        log.debug(f"Finding rows in '{self._config.table}': {normalized!r}")

        handle = apply_filters(
            self._model,
            [*self._meta_filters(meta), *normalized.filters],
            self._config.serialize_property,
        ).order_by(self._column(normalized.sort.property), normalized.sort.direction)
        context = f"finding rows in '{self._config.table}'"

        if not self._config.paginated:
            rows = await self._execute(handle.fetch_all(**self._options(meta)), log, context)
            log.info(f"Found {len(rows)} row(s) in '{self._config.table}'.")
            return rows

        rows, row_count = await self._execute(
            handle.fetch_page(normalized.limit, normalized.offset, **self._options(meta)),
            log,
            context,
        )
        page = Page(
            results=rows,
            pagination=Pagination(
                row_count=row_count,
                page_count=math.ceil(row_count / normalized.limit),
                limit=normalized.limit,
                offset=normalized.offset,
            ),
        )
        log.info(
            f"Found {len(rows)} of {row_count} row(s) in '{self._config.table}' "
            f"(offset {normalized.offset})."
        )
        return page.model_dump()

    async def find_one(
        self, id: Any, meta: Meta = None, logger: Optional[LoggerAdapter] = None
    ) -> Row:
        """
        Retrieve the row with ``id`` that also matches ``meta["filters"]``.

        Raises:
            ObjectNotFoundException: If no such row exists.
        """
        log = self._log(logger)
        log.debug(f"Getting row '{id}' from '{self._config.table}'.")
        row = await self._execute(
            self._by_id(id, meta).fetch_one(require=True, **self._options(meta)),
            log,
            f"getting row '{id}' from '{self._config.table}'",
        )
        log.info(f"Retrieved row '{id}' from '{self._config.table}'.")
        return row

    async def find_one_and_update(
        self,
        id: Any,
        data: Any,
        meta: Meta = None,
        logger: Optional[LoggerAdapter] = None,
    ) -> Row:
        """
        Update only the columns present in ``data`` and return the updated row.

        Raises:
            ObjectNotFoundException: If no row matches ``id`` and ``meta["filters"]``.
        """
        log = self._log(logger)
        row_data = prepare_for_storage(data)
        if not isinstance(row_data, dict):
            raise TypeError(
                f"find_one_and_update() expects a dict, got {type(data).__name__}."
            )
        log.debug(
            f"Updating row '{id}' in '{self._config.table}' with columns {list(row_data)}."
        )
        row = await self._execute(
            self._by_id(id, meta).update(row_data, require=True, **self._options(meta)),
            log,
            f"updating row '{id}' in '{self._config.table}'",
        )
        log.info(f"Updated row '{id}' in '{self._config.table}'.")
        return row

    async def find_one_and_delete(
        self, id: Any, meta: Meta = None, logger: Optional[LoggerAdapter] = None
    ) -> Row:
        """
        Delete the row with ``id`` and return it as it was before deletion.

        Raises:
            ObjectNotFoundException: If no row matches ``id`` and ``meta["filters"]``.
        """
        log = self._log(logger)
        log.debug(f"Deleting row '{id}' from '{self._config.table}'.")
        row = await self._execute(
            self._by_id(id, meta).delete(require=True, **self._options(meta)),
            log,
            f"deleting row '{id}' from '{self._config.table}'",
        )
        log.info(f"Deleted row '{id}' from '{self._config.table}'.")
        return row


def create_sql_store_creator(executor: QueryExecutor) -> Callable[[Dict[str, Any]], SqlStore]:
    """
    Bind an executor and return a factory building stores from config dicts.

    Example:
        create_store = create_sql_store_creator(PostgresExecutor(pool))
        users = create_store({"table": "users", "searchable_properties": ["name"]})
    """

    def create_sql_store(config: Dict[str, Any]) -> SqlStore:
        return SqlStore(executor, config)

    return create_sql_store
