# src/async_sql_store/base/keys.py
"""
Key translation between external property names and internal column names.

External names are what API callers use (``userName``), internal names are
what the table stores (``user_name``). ``map_keys_deep`` renames the keys of
nested dict/list structures; a translator may return ``OMIT`` to drop a key
entirely, which is how write-only or read-only virtual fields are hidden.
"""

import logging
import re
from typing import Any, Callable, List, Optional, Union

log = logging.getLogger(__name__)


class _Omit:
    """Marker returned by a key translator to drop the key."""

    _instance: Optional["_Omit"] = None

    def __new__(cls) -> "_Omit":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "OMIT"

    def __bool__(self) -> bool:
        return False


OMIT = _Omit()

KeyTranslation = Union[str, _Omit, None]
KeyTranslator = Callable[[str], KeyTranslation]

_WORD_PATTERN = re.compile(
    r"[A-Z]+(?=[A-Z][a-z]|[0-9]|_|\b)|[A-Z]?[a-z]+|[A-Z]+|[0-9]+"
)


def _words(value: str) -> List[str]:
    return _WORD_PATTERN.findall(value)


def snake_case(value: str) -> str:
    """``userName`` -> ``user_name``; ``HTTPServer`` -> ``http_server``."""
    return "_".join(word.lower() for word in _words(value))


def camel_case(value: str) -> str:
    """``user_name`` -> ``userName``; ``created-at`` -> ``createdAt``."""
    words = _words(value)
    if not words:
        return ""
    head, *rest = words
    return head.lower() + "".join(word[:1].upper() + word[1:].lower() for word in rest)


def is_omitted(translation: KeyTranslation) -> bool:
    return translation is OMIT or translation is None


def map_keys_deep(value: Any, translate: KeyTranslator) -> Any:
    """
    Recursively rename the keys of dicts inside ``value``.

    Lists are mapped element-wise, dicts get every key passed through
    ``translate``; keys translated to ``OMIT`` (or ``None``) are dropped.
    Any other value is returned unchanged. The input is never mutated.

    Args:
        value: A dict, a list or a scalar.
        translate: Function from key to new key (or ``OMIT``).

    Returns:
        A fresh structure with translated keys.
    """
    if isinstance(value, list):
        return [map_keys_deep(item, translate) for item in value]
    if not isinstance(value, dict):
        return value

    result = {}
    for key, item in value.items():
        new_key = translate(key)
        if is_omitted(new_key):
            log.debug(f"Dropping key '{key}' during key translation.")
            continue
        result[new_key] = map_keys_deep(item, translate)
    return result


class PropertyNameCodec:
    """
    Strategy translating single property names in both directions.

    ``serialize`` turns an external property name into a column name,
    ``unserialize`` turns a column name back into a property name.
    """

    def __init__(
        self,
        serialize_property: KeyTranslator = snake_case,
        unserialize_column: KeyTranslator = camel_case,
    ):
        self._serialize_property = serialize_property
        self._unserialize_column = unserialize_column

    def serialize(self, name: str) -> KeyTranslation:
        return self._serialize_property(name)

    def unserialize(self, column: str) -> KeyTranslation:
        return self._unserialize_column(column)

    def serialize_data(self, data: Any) -> Any:
        return map_keys_deep(data, self._serialize_property)

    def unserialize_data(self, data: Any) -> Any:
        return map_keys_deep(data, self._unserialize_column)

    def __repr__(self) -> str:
        return (
            f"PropertyNameCodec(serialize_property={self._serialize_property!r}, "
            f"unserialize_column={self._unserialize_column!r})"
        )
