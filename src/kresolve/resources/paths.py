"""Dotted-path helpers for nested dicts.

Paths are dot-separated, e.g. ``"spec.replicas"`` → ``raw["spec"]["replicas"]``.
"""

from __future__ import annotations

from typing import Any

def split_path(path: str) -> list[str]:
    segments = path.split(".")
    if not path or any(not s for s in segments):
        raise ValueError(f"Invalid field path: {path!r}")
    return segments


def get_path(raw: Any, path: str, default: Any = None) -> Any:
    """Resolve a dot-separated path in a nested dict."""
    current: Any = raw
    for segment in split_path(path):
        if not isinstance(current, dict) or segment not in current:
            return default
        current = current[segment]
    return current


def set_path(raw: dict[str, Any], path: str, value: Any) -> None:
    """Set *value* at *path*, creating (or replacing non-dict) intermediate maps."""
    *parents, leaf = split_path(path)
    current = raw
    for segment in parents:
        child = current.get(segment)
        if not isinstance(child, dict):
            child = {}
            current[segment] = child
        current = child
    current[leaf] = value
