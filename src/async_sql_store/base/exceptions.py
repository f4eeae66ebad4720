from enum import Enum
from typing import Optional, Sequence


class ErrorKind(Enum):
    """Stable error vocabulary surfaced by store operations."""

    NOT_FOUND = "NOT_FOUND"
    BAD_REQUEST = "BAD_REQUEST"
    UNPROCESSABLE_ENTITY = "UNPROCESSABLE_ENTITY"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.UNPROCESSABLE_ENTITY: 422,
}


class ConfigurationError(TypeError):
    """Raised synchronously when a store configuration is malformed."""

    pass


class StoreException(Exception):
    """Base class for classified errors raised by store operations."""

    kind: ErrorKind
    default_message = "The store operation failed."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ObjectNotFoundException(StoreException):
    """Exception raised when no row matches the requested identifier and filters."""

    kind = ErrorKind.NOT_FOUND
    default_message = "The requested object was not found."


class InvalidValueException(StoreException):
    """Exception raised when the storage engine rejects a malformed value."""

    kind = ErrorKind.BAD_REQUEST
    default_message = "A supplied value is not valid for its column."


class KeyAlreadyExistsException(StoreException):
    """Exception raised when a write would violate a unique constraint."""

    kind = ErrorKind.UNPROCESSABLE_ENTITY
    default_message = "An object with the same key already exists."

    def __init__(
        self, message: Optional[str] = None, fields: Sequence[str] = ()
    ):
        super().__init__(message)
        self.fields = tuple(fields)
