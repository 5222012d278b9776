"""Helpers for reading raw feature records."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def lookup_field(record: Mapping[str, Any], name: str) -> Any:
    """Read *name* from *record*: exact key first, then a case-folded scan."""
    if not name:
        return None
    if name in record:
        return record[name]
    folded = name.casefold()
    for key, value in record.items():
        if key.casefold() == folded:
            return value
    return None


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")
