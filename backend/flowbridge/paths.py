# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Dot-path helpers shared by conditions, mappers and templates.

Paths look like `order.lines.0.sku`; a leading `$.` (or a bare `$`) refers
to the root value.
"""

from typing import Any, Dict


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def resolve_path(data: Any, path: str) -> Any:
    """Walk a dot path. Returns MISSING when any segment is absent."""
    path = path.strip()
    if path in ("", "$"):
        return data
    if path.startswith("$."):
        path = path[2:]

    current = data
    for key in path.split("."):
        if isinstance(current, dict):
            if key not in current:
                return MISSING
            current = current[key]
        elif isinstance(current, list):
            try:
                current = current[int(key)]
            except (ValueError, IndexError):
                return MISSING
        else:
            return MISSING
    return current


def get_nested_value(data: Any, path: str) -> Any:
    """Like resolve_path, but a missing path resolves to None."""
    value = resolve_path(data, path)
    return None if value is MISSING else value


def has_nested_value(data: Any, path: str) -> bool:
    return resolve_path(data, path) is not MISSING


def set_nested_value(target: Dict[str, Any], path: str, value: Any) -> None:
    """Set `a.b.c` in target, creating intermediate dicts."""
    keys = path.split(".")
    current = target
    for key in keys[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[keys[-1]] = value
