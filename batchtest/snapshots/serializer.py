"""Stable pretty-printer used for storing and comparing snapshot values."""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Mapping
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel
from pydantic_core import PydanticSerializationError, to_jsonable_python

CIRCULAR = "[Circular]"


def _sort_key(value: Any) -> str:
    return json.dumps(value, sort_keys=True, ensure_ascii=False)


def _key(key: Any, ancestors: set[int]) -> str:
    if isinstance(key, str):
        return key
    # Tagged with the key's type so that 1 and "1" stay separate entries
    return f"<{type(key).__name__}>{_sort_key(normalize_value(key, ancestors))}"


def normalize_value(value: Any, _ancestors: Optional[set[int]] = None) -> Any:
    """Reduce a value to JSON-compatible data that does not depend on identity or ordering.

    Mapping keys end up sorted at dump time, set members are sorted by their
    serialized form, and models/dataclasses are compared by their fields.
    A container that contains itself is written as ``"[Circular]"`` where it recurs.
    """
    if value is None or isinstance(value, (bool, int, str, float)):
        return value
    if isinstance(value, Enum):
        return normalize_value(value.value, _ancestors)

    ancestors = set() if _ancestors is None else _ancestors
    if id(value) in ancestors:
        return CIRCULAR
    ancestors.add(id(value))
    try:
        return _normalize_object(value, ancestors)
    finally:
        ancestors.discard(id(value))


def _normalize_object(value: Any, ancestors: set[int]) -> Any:
    if isinstance(value, BaseModel):
        return normalize_value(value.model_dump(), ancestors)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: normalize_value(getattr(value, f.name), ancestors) for f in dataclasses.fields(value)}
    if isinstance(value, Mapping):
        return {_key(k, ancestors): normalize_value(v, ancestors) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted((normalize_value(v, ancestors) for v in value), key=_sort_key)
    if isinstance(value, (list, tuple)):
        return [normalize_value(v, ancestors) for v in value]

    try:
        jsonable = to_jsonable_python(value)
    except PydanticSerializationError:
        if hasattr(value, "__dict__"):
            fields = {k: normalize_value(v, ancestors) for k, v in vars(value).items() if not k.startswith("_")}
            return {"__type__": type(value).__qualname__, **fields}
        return repr(value)
    return normalize_value(jsonable, ancestors)


def serialize_value(value: Any) -> str:
    """Serialize a value deterministically; equal structures always give equal text."""
    return json.dumps(normalize_value(value), indent=2, sort_keys=True, ensure_ascii=False)
