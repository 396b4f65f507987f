"""Utilities for reading and extending execution context maps."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Sequence, Tuple

from interfaces import JsonValue


class PathResolutionError(KeyError):
    """Raised when a dotted path cannot be resolved."""


_MISSING = object()


def _split_path(path: str) -> Tuple[str, ...]:
    if not path or not path.strip():
        raise ValueError("Path must be a non-empty string.")
    return tuple(part.strip() for part in path.split(".") if part.strip())


def _step_into(current: Any, part: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(part, _MISSING)
    if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
        if part.lstrip("-").isdigit():
            index = int(part)
            if -len(current) <= index < len(current):
                return current[index]
    return _MISSING


def resolve_path(data: Mapping[str, Any], path: str, *, default: Any = None, raise_on_missing: bool = True) -> Any:
    """Resolve a dotted path inside nested mappings; numeric segments index lists."""
    current: Any = data
    for part in _split_path(path):
        current = _step_into(current, part)
        if current is _MISSING:
            if raise_on_missing:
                raise PathResolutionError(f"Path '{path}' not found at segment '{part}'.")
            return default
    return current


def merge_context(context: Mapping[str, JsonValue], additions: Mapping[str, JsonValue]) -> Dict[str, JsonValue]:
    """Return a new context where ``additions`` overwrite same-named top-level keys."""
    merged: Dict[str, JsonValue] = dict(context)
    merged.update(additions)
    return merged
