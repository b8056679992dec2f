"""Field-path helpers over generic JSON-like records.

A field-path is a ``/``-delimited sequence of mapping keys, e.g.
``spec/template/metadata``. A leading ``/`` is ignored. Sequences are never
indexed: every segment must name a key of a mapping.
"""

from __future__ import annotations

import copy
from typing import Any

from mcfetcher.errors import SanitizationError

_MISSING = object()


def split_path(path: str) -> list[str]:
    """Split a field-path into its key segments."""
    return path.removeprefix("/").split("/")


def get_nested(record: dict[str, Any], segments: list[str]) -> tuple[Any, bool]:
    """Resolve ``segments`` in ``record`` strictly left to right.

    Returns ``(value, True)`` when every segment names a key of a mapping,
    otherwise ``(None, False)``. Traversing through a non-mapping is not found.
    """
    current: Any = record
    for segment in segments:
        if not isinstance(current, dict):
            return None, False
        current = current.get(segment, _MISSING)
        if current is _MISSING:
            return None, False
    return current, True


def set_nested(record: dict[str, Any], segments: list[str], value: Any) -> None:
    """Set ``value`` at ``segments``, creating intermediate mappings as needed.

    Raises:
        SanitizationError: If an intermediate value exists and is not a mapping.
    """
    current = record
    for depth, segment in enumerate(segments[:-1]):
        child = current.get(segment)
        if child is None:
            child = {}
            current[segment] = child
        elif not isinstance(child, dict):
            path = "/".join(segments[: depth + 1])
            msg = "cannot set nested field through a non-mapping value"
            raise SanitizationError(msg, path="/".join(segments), conflict=path)
        current = child
    current[segments[-1]] = value


def remove_nested(record: dict[str, Any], segments: list[str]) -> None:
    """Remove the field at ``segments`` if present; anything else is a no-op."""
    current: Any = record
    for segment in segments[:-1]:
        current = current.get(segment) if isinstance(current, dict) else None
        if current is None:
            return
    if isinstance(current, dict):
        current.pop(segments[-1], None)


def copy_nested(source: dict[str, Any], target: dict[str, Any], segments: list[str]) -> bool:
    """Deep-copy the field at ``segments`` from ``source`` into ``target``.

    Returns whether the field was found in ``source``.
    """
    value, found = get_nested(source, segments)
    if found:
        set_nested(target, segments, copy.deepcopy(value))
    return found
