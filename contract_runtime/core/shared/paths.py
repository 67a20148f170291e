# contract_runtime/core/shared/paths.py
"""
Dot-path helpers for reading and writing nested record fields.

    get_path({"name": {"first": "Ada"}}, "name.first")  -> "Ada"
    get_path({"tags": ["a", "b"]}, "tags.1")             -> "b"
    set_path(record, "address.city", "Paris")            creates "address" if needed
"""

from typing import Any, Dict

_MISSING = object()


def get_path(record: Any, path: str, default: Any = None) -> Any:
    """Return the value at a dot path, or default when any segment is missing."""
    current = record
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return default
        if current is _MISSING:
            return default
    return current


def set_path(record: Dict[str, Any], path: str, value: Any) -> None:
    """Write value at a dot path, creating intermediate objects."""
    parts = path.split(".")
    current = record
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value
