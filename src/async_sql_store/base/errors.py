# src/async_sql_store/base/errors.py
"""
Translation of normalized executor failures into store exceptions.

Executors catch their driver's exceptions and describe them with a DbError
before raising ExecutorError. ``translate_error`` then maps that description
onto the ErrorKind vocabulary; it never raises and never inspects driver
types, so every store operation reports failures the same way.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .exceptions import (
    InvalidValueException,
    KeyAlreadyExistsException,
    ObjectNotFoundException,
)

CONSTRAINT_SEPARATOR = ":"
FIELD_SEPARATOR = ","
UNIQUE_CONSTRAINT_TYPE = "unique"


class DbErrorKind(Enum):
    NOT_FOUND = "not_found"
    NO_ROWS_AFFECTED = "no_rows_affected"
    INVALID_VALUE = "invalid_value"
    UNIQUE_VIOLATION = "unique_violation"
    OTHER = "other"


@dataclass(frozen=True)
class DbError:
    """Structured description of a failure reported by an executor."""

    kind: DbErrorKind
    message: str = ""
    constraint: Optional[str] = None
    original: Optional[BaseException] = None


class ExecutorError(Exception):
    """Raised by executors; carries the normalized DbError."""

    def __init__(self, error: DbError):
        super().__init__(error.message or error.kind.value)
        self.error = error


@dataclass(frozen=True)
class ConstraintName:
    scope: str
    type: str
    fields: Tuple[str, ...]


def parse_constraint_name(name: Optional[str]) -> Optional[ConstraintName]:
    """Parse ``<scope>:<type>:<field>[,<field>...]``; None for other shapes."""
    if not name:
        return None
    parts = name.split(CONSTRAINT_SEPARATOR)
    if len(parts) != 3 or not all(parts):
        return None
    scope, constraint_type, fields = parts
    field_names = tuple(f.strip() for f in fields.split(FIELD_SEPARATOR) if f.strip())
    if not field_names:
        return None
    return ConstraintName(scope, constraint_type, field_names)


def _passthrough(error: DbError) -> BaseException:
    if error.original is not None:
        return error.original
    return ExecutorError(error)


def translate_error(error: DbError) -> BaseException:
    """
    Map a DbError to the exception a store operation should raise.

    Precedence: not-found signals, malformed values, unique violations with a
    ``<scope>:unique:<fields>`` constraint name, then pass-through of the
    original exception for anything unclassified.
    """
    if error.kind in (DbErrorKind.NOT_FOUND, DbErrorKind.NO_ROWS_AFFECTED):
        return ObjectNotFoundException(error.message or None)

    if error.kind is DbErrorKind.INVALID_VALUE:
        return InvalidValueException(error.message or None)

    if error.kind is DbErrorKind.UNIQUE_VIOLATION:
        constraint = parse_constraint_name(error.constraint)
        if constraint is not None and constraint.type == UNIQUE_CONSTRAINT_TYPE:
            fields = ", ".join(f'"{f}"' for f in constraint.fields)
            noun = "Field" if len(constraint.fields) == 1 else "Fields"
            return KeyAlreadyExistsException(
                f"{noun} {fields} must be unique.", fields=constraint.fields
            )

    return _passthrough(error)
