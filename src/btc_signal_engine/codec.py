from __future__ import annotations

from functools import lru_cache
from typing import Any, TypeVar

from pydantic import TypeAdapter

T = TypeVar("T")


@lru_cache(maxsize=None)
def _adapter(tp: Any) -> TypeAdapter[Any]:
    return TypeAdapter(tp)


def to_dict(obj: Any) -> Any:
    return _adapter(type(obj)).dump_python(obj, mode="json")


def from_dict(tp: type[T], payload: Any) -> T:
    """Validate a JSON-style document into ``tp`` (a dataclass or a container of them).

    Unknown keys are ignored and missing keys fall back to field defaults. Raises
    ``pydantic.ValidationError`` (a ``ValueError``) on missing required fields or bad values.
    """
    return _adapter(tp).validate_python(payload)
