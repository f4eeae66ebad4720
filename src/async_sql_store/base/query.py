# src/async_sql_store/base/query.py
"""
Parsing of untrusted query mappings into filter operations, and the
compilation of those operations onto a queryable handle.

The parsers never raise on malformed caller input; they produce no filter
(or fall back to the configured default) instead.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Sequence

from .keys import KeyTranslation, is_omitted

log = logging.getLogger(__name__)

WHERE = "where"
WHERE_IN = "whereIn"
CLAUSES = (WHERE, WHERE_IN)

ASC = "ASC"
DESC = "DESC"

SORT_REGEXP = re.compile(r"^([+-])(\S+)$")
_INTEGER_REGEXP = re.compile(r"^\s*[+-]?\d+\s*$")

# Search operators accepted from callers, mapped to the SQL operator used.
SEARCH_OPERATORS = {
    "=": "=",
    "!=": "!=",
    "~": "ILIKE",
    "!~": "NOT ILIKE",
}
_SUBSTRING_OPERATORS = ("~", "!~")
NULL_LITERAL = "NULL"


@dataclass(frozen=True)
class FilterOp:
    """One predicate to apply, with the property in external form."""

    clause: str
    property: str
    operator: Optional[str]
    value: Any

    def __post_init__(self):
        if self.clause not in CLAUSES:
            raise ValueError(
                f"Unsupported filter clause '{self.clause}'. "
                f"Expected one of {', '.join(CLAUSES)}."
            )
        if not isinstance(self.property, str) or not self.property:
            raise ValueError("Filter property must be a non-empty string.")

    @classmethod
    def coerce(cls, raw: Any) -> "FilterOp":
        """Accept a FilterOp or a ``(clause, property, [operator,] value)`` sequence."""
        if isinstance(raw, FilterOp):
            return raw
        if isinstance(raw, (list, tuple)):
            if len(raw) == 3 and raw[0] == WHERE_IN:
                clause, prop, value = raw
                return cls(clause, prop, None, value)
            if len(raw) == 4 and raw[0] == WHERE:
                clause, prop, operator, value = raw
                return cls(clause, prop, operator, value)
        raise ValueError(f"Cannot interpret {raw!r} as a filter operation.")

    def args(self) -> tuple:
        if self.clause == WHERE_IN:
            return (self.value,)
        return (self.operator, self.value)


@dataclass(frozen=True)
class SortSpec:
    property: str
    direction: str = ASC


@dataclass(frozen=True)
class NormalizedQuery:
    sort: SortSpec
    search: List[FilterOp] = field(default_factory=list)
    limit: Optional[int] = None
    offset: int = 0
    ids: List[FilterOp] = field(default_factory=list)

    @property
    def filters(self) -> List[FilterOp]:
        return [*self.search, *self.ids]


def _is_scalar(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def parse_search(
    search: Any, searchable_properties: Sequence[str]
) -> List[FilterOp]:
    """
    Turn a ``{property: value | {operator: value}}`` mapping into filters.

    Properties outside ``searchable_properties`` and operators outside
    ``SEARCH_OPERATORS`` are ignored. Substring operators wrap the operand in
    ``%`` and map to ``ILIKE``/``NOT ILIKE``; the literal string ``"NULL"``
    stands for a SQL NULL. Filters follow the key order of ``search``.
    """
    if not isinstance(search, Mapping):
        return []

    filters = []
    for prop, query in search.items():
        if prop not in searchable_properties:
            log.debug(f"Ignoring search on non-searchable property '{prop}'.")
            continue

        if isinstance(query, Mapping):
            if len(query) != 1:
                log.debug(f"Ignoring search on '{prop}': expected one operator.")
                continue
            ((operator, value),) = query.items()
        elif _is_scalar(query):
            operator, value = "=", query
        else:
            log.debug(f"Ignoring search on '{prop}': unsupported value {query!r}.")
            continue

        if operator not in SEARCH_OPERATORS:
            log.debug(f"Ignoring search on '{prop}': operator {operator!r}.")
            continue
        if not _is_scalar(value):
            log.debug(f"Ignoring search on '{prop}': unsupported operand {value!r}.")
            continue

        if operator in _SUBSTRING_OPERATORS:
            value = f"%{value}%"
        if value == NULL_LITERAL:
            value = None
        filters.append(FilterOp(WHERE, prop, SEARCH_OPERATORS[operator], value))
    return filters


def parse_sort(sort: Any) -> Optional[SortSpec]:
    """``"+name"`` -> ascending on name, ``"-name"`` -> descending; else None."""
    if not isinstance(sort, str):
        return None
    match = SORT_REGEXP.match(sort)
    if not match:
        return None
    direction, prop = match.groups()
    return SortSpec(property=prop, direction=ASC if direction == "+" else DESC)


def parse_ids(ids: Any) -> List[FilterOp]:
    if not isinstance(ids, (list, tuple)):
        return []
    ids_to_filter = [i for i in ids if isinstance(i, str) and i]
    if not ids_to_filter:
        return []
    return [FilterOp(WHERE_IN, "id", None, ids_to_filter)]


def parse_integer(value: Any) -> Optional[int]:
    """Parse ints, integral floats and decimal strings; anything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) and value.is_integer() else None
    if isinstance(value, str) and _INTEGER_REGEXP.match(value):
        return int(value)
    return None


def resolve_limit(requested: Any, cap: Optional[int]) -> Optional[int]:
    """The requested page size if it fits under ``cap``; without a cap there is no paging."""
    if cap is None:
        return None
    limit = parse_integer(requested)
    if limit is not None and 0 < limit <= cap:
        return limit
    return cap


def resolve_offset(requested: Any) -> int:
    offset = parse_integer(requested)
    return offset if offset is not None and offset >= 0 else 0


def normalize_query(
    query: Any,
    searchable_properties: Sequence[str],
    sort: str,
    limit: Optional[int],
) -> NormalizedQuery:
    """
    Resolve every facet of a caller query against the store configuration.

    Args:
        query: The caller's query mapping (anything else counts as empty).
        searchable_properties: Allow-list of searchable external properties.
        sort: The configured default sort directive, e.g. ``"+id"``.
        limit: The configured page size cap, or None for no pagination.

    Returns:
        A NormalizedQuery whose limit never exceeds ``limit``.
    """
    if not isinstance(query, Mapping):
        query = {}

    resolved_sort = parse_sort(query.get("sort")) or parse_sort(sort)
    if resolved_sort is None:
        raise ValueError(f"Default sort directive {sort!r} is not valid.")

    return NormalizedQuery(
        search=parse_search(query.get("search"), searchable_properties),
        sort=resolved_sort,
        limit=resolve_limit(query.get("limit"), limit),
        offset=resolve_offset(query.get("offset")),
        ids=parse_ids(query.get("ids")),
    )


def apply_filters(
    handle: Any,
    filters: Any,
    serialize_property: Callable[[str], KeyTranslation],
) -> Any:
    """
    Apply ``filters`` to ``handle`` in order, serializing property names.

    ``handle`` is anything exposing ``query(clause, column, *args)`` that
    returns a new handle. A ``filters`` value that is not a list/tuple leaves
    the handle unchanged.
    """
    if not isinstance(filters, (list, tuple)):
        return handle

    for raw in filters:
        filter_op = FilterOp.coerce(raw)
        column = serialize_property(filter_op.property)
        if is_omitted(column):
            raise ValueError(
                f"Property '{filter_op.property}' does not map to a column."
            )
        handle = handle.query(filter_op.clause, column, *filter_op.args())
    return handle
