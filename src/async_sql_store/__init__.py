# src/async_sql_store/__init__.py

"""
Async SQL Store Library Initialization.

This package builds configuration-driven CRUD stores over single relational
tables. Untrusted query mappings are normalized into filter operations,
external property names are translated to column names, and database
errors are reported through a small, stable set of exceptions.

It initializes a logger with a NullHandler and makes the store factory,
query helpers, exceptions and executor implementations available at the
top level.
"""

import logging

# --------------------------------------------------------------------------
# Logging Setup
# --------------------------------------------------------------------------
# Library logs are discarded unless the consuming application configures
# logging for "async_sql_store".
logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())
logger.propagate = False

# --------------------------------------------------------------------------
# Store and Configuration Exports
# --------------------------------------------------------------------------
from .store import Page, Pagination, SqlStore, create_sql_store_creator
from .base.config import StoreConfig, normalize_config

# --------------------------------------------------------------------------
# Exception Exports
# --------------------------------------------------------------------------
from .base.exceptions import (
    ConfigurationError,
    ErrorKind,
    InvalidValueException,
    KeyAlreadyExistsException,
    ObjectNotFoundException,
    StoreException,
)
from .base.errors import DbError, DbErrorKind, ExecutorError, translate_error

# --------------------------------------------------------------------------
# Query and Key Translation Exports
# --------------------------------------------------------------------------
from .base.keys import OMIT, PropertyNameCodec, camel_case, map_keys_deep, snake_case
from .base.query import (
    FilterOp,
    NormalizedQuery,
    SortSpec,
    apply_filters,
    normalize_query,
    parse_ids,
    parse_search,
    parse_sort,
)
from .base.interfaces import QueryExecutor, TableQuery

# --------------------------------------------------------------------------
# Executor Implementation Exports
# --------------------------------------------------------------------------
# Users can import them like: from async_sql_store import PostgresExecutor
from .db_implementations.postgresql_executor import PostgresExecutor
from .db_implementations.sqlite_executor import SqliteExecutor

__all__ = [
    # Store
    "SqlStore",
    "create_sql_store_creator",
    "Page",
    "Pagination",
    "StoreConfig",
    "normalize_config",
    # Exceptions
    "ConfigurationError",
    "ErrorKind",
    "StoreException",
    "ObjectNotFoundException",
    "InvalidValueException",
    "KeyAlreadyExistsException",
    # Error translation
    "DbError",
    "DbErrorKind",
    "ExecutorError",
    "translate_error",
    # Keys
    "OMIT",
    "PropertyNameCodec",
    "camel_case",
    "snake_case",
    "map_keys_deep",
    # Query
    "FilterOp",
    "NormalizedQuery",
    "SortSpec",
    "apply_filters",
    "normalize_query",
    "parse_ids",
    "parse_search",
    "parse_sort",
    "QueryExecutor",
    "TableQuery",
    # Executors
    "PostgresExecutor",
    "SqliteExecutor",
    # Logging
    "logger",
]

__version__ = "0.1.0"
