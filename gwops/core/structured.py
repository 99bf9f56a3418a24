"""Helpers for safely reading untyped TOML/JSON structures.

Use these at the boundaries where config files and the release metadata file
are ingested. They validate at runtime and narrow types statically.
"""

from __future__ import annotations

from typing import Mapping, TypeGuard, cast

StrDict = dict[str, object]
ObjList = list[object]


def is_str_dict(obj: object) -> TypeGuard[StrDict]:
    """Return True if obj is a dict with string keys."""
    if not isinstance(obj, dict):
        return False
    d = cast(dict[object, object], obj)
    return all(isinstance(k, str) for k in d.keys())


def as_str_dict(obj: object) -> StrDict | None:
    if is_str_dict(obj):
        return obj
    return None


def as_obj_list(obj: object) -> ObjList | None:
    if isinstance(obj, list):
        return cast(ObjList, obj)
    return None


def get_str(table: Mapping[str, object], key: str) -> str | None:
    """Get a string value, stripping whitespace.

    Returns None if missing, not a str, or empty after stripping.
    """
    value = table.get(key)
    if not isinstance(value, str):
        return None
    s = value.strip()
    return s or None


def get_raw_str(table: Mapping[str, object], key: str) -> str | None:
    """Get a string value as-is (empty strings are preserved)."""
    value = table.get(key)
    if not isinstance(value, str):
        return None
    return value.strip()


def get_int(table: Mapping[str, object], key: str) -> int | None:
    """Get an int value (bools are rejected)."""
    value = table.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def get_bool(table: Mapping[str, object], key: str) -> bool | None:
    value = table.get(key)
    if not isinstance(value, bool):
        return None
    return value


def get_table(table: Mapping[str, object], key: str) -> StrDict | None:
    """Get a nested table (dict with string keys) from a mapping."""
    return as_str_dict(table.get(key))


def get_str_list(table: Mapping[str, object], key: str) -> list[str] | None:
    """Get a list of non-empty strings; None if the value is not a list."""
    items = as_obj_list(table.get(key))
    if items is None:
        return None
    return [s.strip() for s in items if isinstance(s, str) and s.strip()]
