# src/async_sql_store/base/config.py
"""
Validation and defaulting of per-store configuration.

A store is configured with a plain dict. ``normalize_config`` validates it
field by field, failing on the first problem with a ConfigurationError that
names the field, then resolves every default into an immutable StoreConfig.
"""

import copy
import logging
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .exceptions import ConfigurationError
from .keys import KeyTranslator, PropertyNameCodec, camel_case, snake_case
from .query import SORT_REGEXP, SortSpec, parse_sort
from .utils import check_for_unrecognized_properties

log = logging.getLogger(__name__)

DataTransform = Callable[[Any], Any]

RECOGNIZED_PROPERTIES = (
    "table",
    "searchable_properties",
    "sort",
    "limit",
    "serialize_property",
    "unserialize_column",
    "serialize",
    "unserialize",
    "extra_model_options",
)
_CALLABLE_PROPERTIES = (
    "serialize_property",
    "unserialize_column",
    "serialize",
    "unserialize",
)

# Options accepted by QueryExecutor.table.
MODEL_OPTIONS = ("schema",)

DEFAULT_SORT = "+id"


@dataclass(frozen=True)
class StoreConfig:
    """Fully resolved store configuration."""

    table: str
    searchable_properties: Tuple[str, ...]
    codec: PropertyNameCodec
    serialize: DataTransform
    unserialize: DataTransform
    sort: str = DEFAULT_SORT
    limit: Optional[int] = None
    extra_model_options: Mapping[str, Any] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def default_sort(self) -> SortSpec:
        return parse_sort(self.sort)

    @property
    def paginated(self) -> bool:
        return self.limit is not None

    def serialize_property(self, name: str):
        return self.codec.serialize(name)

    def unserialize_column(self, column: str):
        return self.codec.unserialize(column)


def _is_valid_limit(limit: Any) -> bool:
    if isinstance(limit, bool) or not isinstance(limit, (int, float)):
        return False
    if limit < 1:
        return False
    return isinstance(limit, int) or limit == math.inf


def _validate(config: Any) -> None:
    if not isinstance(config, dict):
        raise ConfigurationError("config parameter must be a plain dict.")

    table = config.get("table")
    if not isinstance(table, str) or not table:
        raise ConfigurationError("config.table parameter must be a non-empty string.")

    searchable = config.get("searchable_properties")
    if not isinstance(searchable, list):
        raise ConfigurationError("config.searchable_properties must be a list.")
    for i, prop in enumerate(searchable):
        if not isinstance(prop, str) or not prop:
            raise ConfigurationError(
                f"config.searchable_properties[{i}] must be a non-empty string."
            )

    sort = config.get("sort")
    if sort is not None and (not isinstance(sort, str) or not SORT_REGEXP.match(sort)):
        raise ConfigurationError(
            r"config.sort must be a string matching ^[+-]\S+$ or None."
        )

    limit = config.get("limit")
    if limit is not None and not _is_valid_limit(limit):
        raise ConfigurationError(
            "config.limit must be a positive integer, math.inf, or None."
        )

    for name in _CALLABLE_PROPERTIES:
        value = config.get(name)
        if value is not None and not callable(value):
            raise ConfigurationError(f"config.{name} must be a callable or None.")

    extra = config.get("extra_model_options")
    if extra is not None and not isinstance(extra, dict):
        raise ConfigurationError(
            "config.extra_model_options must be a plain dict or None."
        )
    if extra:
        check_for_unrecognized_properties(
            "config.extra_model_options", extra, MODEL_OPTIONS
        )
        schema = extra.get("schema")
        if schema is not None and (not isinstance(schema, str) or not schema):
            raise ConfigurationError(
                "config.extra_model_options.schema must be a non-empty string or None."
            )

    check_for_unrecognized_properties("config", config, RECOGNIZED_PROPERTIES)


def _with_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Merge defaults under ``config`` without overwriting supplied values."""
    defaults = {
        "sort": DEFAULT_SORT,
        "serialize_property": snake_case,
        "unserialize_column": camel_case,
        "extra_model_options": {},
    }
    merged = {k: v for k, v in config.items() if v is not None}
    for key, value in defaults.items():
        merged.setdefault(key, value)
    merged["extra_model_options"] = copy.deepcopy(merged["extra_model_options"])
    return merged


def normalize_config(config: Any) -> StoreConfig:
    """
    Validate ``config`` and resolve it into a StoreConfig.

    Args:
        config: A dict with the keys listed in RECOGNIZED_PROPERTIES.

    Returns:
        The immutable, fully defaulted StoreConfig.

    Raises:
        ConfigurationError: On the first invalid field, or listing every
            unrecognized key.
    """
    _validate(config)
    resolved = _with_defaults(config)

    serialize_property: KeyTranslator = resolved["serialize_property"]
    unserialize_column: KeyTranslator = resolved["unserialize_column"]
    codec = PropertyNameCodec(serialize_property, unserialize_column)

    limit = resolved.get("limit")
    if not limit or limit == math.inf:
        limit = None

    store_config = StoreConfig(
        table=resolved["table"],
        searchable_properties=tuple(resolved["searchable_properties"]),
        codec=codec,
        serialize=resolved.get("serialize", codec.serialize_data),
        unserialize=resolved.get("unserialize", codec.unserialize_data),
        sort=resolved["sort"],
        limit=limit,
        extra_model_options=MappingProxyType(resolved["extra_model_options"]),
    )
    log.debug(f"Normalized store configuration for table '{store_config.table}'.")
    return store_config
