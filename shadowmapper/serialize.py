"""Conversion of frozen result objects to plain JSON-ready values."""

from __future__ import annotations

import dataclasses
from enum import Enum
from typing import Any, Mapping


def to_plain(value: Any) -> Any:
    """Recursively turn dataclasses, enums, tuples and mappings into dicts/lists/scalars."""
    if isinstance(value, Enum):
        return value.value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        if hasattr(value, "to_dict"):
            return value.to_dict()
        return fields_to_dict(value)
    if isinstance(value, Mapping):
        return {to_plain(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (set, frozenset)):
        return sorted(to_plain(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    return value


def fields_to_dict(obj: Any) -> dict:
    """Field-by-field conversion, used by result objects' to_dict()."""
    return {f.name: to_plain(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
