import logging
from dataclasses import asdict, is_dataclass
from typing import Any, Iterable, Mapping, Optional

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def prepare_for_storage(data: Any) -> Any:
    """
    Recursively convert Pydantic models and dataclasses to plain data.

    Row data handed to a store may be a pydantic model, a dataclass or a
    plain dict. Models are dumped with their aliases so that aliased fields
    keep their column names.

    Args:
        data: The data to convert

    Returns:
        Plain dicts, lists and scalars
    """
    if data is None:
        return None

    if is_dataclass(data) and not isinstance(data, type):
        return prepare_for_storage(asdict(data))

    if hasattr(data, "model_dump") and callable(getattr(data, "model_dump")):
        return prepare_for_storage(data.model_dump(by_alias=True))

    if isinstance(data, dict):
        return {k: prepare_for_storage(v) for k, v in data.items()}

    if isinstance(data, (list, tuple, set)):
        return [prepare_for_storage(item) for item in data]

    # Pydantic URL types and similar wrappers
    if data.__class__.__module__.startswith("pydantic"):
        return str(data)

    return data


def check_for_unrecognized_properties(
    parameter_name: str,
    obj: Optional[Mapping[str, Any]],
    expected_properties: Iterable[str],
) -> None:
    """Raise a ConfigurationError naming every key of ``obj`` not in ``expected_properties``."""
    if not obj:
        return

    expected = set(expected_properties)
    invalid_keys = [str(key) for key in obj if key not in expected]
    if invalid_keys:
        joined = '", "'.join(invalid_keys)
        raise ConfigurationError(
            f'Unexpected properties on {parameter_name} parameter: "{joined}".'
        )
