"""Record sanitization: decide whether a record survives and reduce it to allow-listed fields."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from mcfetcher.paths import copy_nested, get_nested, remove_nested, split_path
from mcfetcher.policy import ResourceKindPolicy

log = structlog.get_logger()


def _matches_any(value: str, patterns: Iterable[re.Pattern[str]]) -> bool:
    return any(p.search(value) for p in patterns)


def _metadata(record: Mapping[str, Any]) -> Mapping[str, Any]:
    metadata = record.get("metadata")
    return metadata if isinstance(metadata, Mapping) else {}


def identity_key(record: Mapping[str, Any]) -> str:
    """Return ``namespace/name``, or just ``name`` for cluster-scoped records."""
    metadata = _metadata(record)
    name = metadata.get("name") or ""
    namespace = metadata.get("namespace") or ""
    if namespace:
        return f"{namespace}/{name}"
    return name


def _filter_string_map(source: Any, patterns: tuple[re.Pattern[str], ...]) -> dict[str, Any]:
    if not isinstance(source, Mapping):
        return {}
    return {k: v for k, v in source.items() if _matches_any(k, patterns)}


def _passes_path_value_filters(record: dict[str, Any], policy: ResourceKindPolicy, key: str) -> bool:
    for path, value_re in policy.path_value_filters.items():
        value, found = get_nested(record, split_path(path))
        if not found:
            log.warning("path_not_found", key=key, path=path, option="path-value-filters")
            continue
        if not isinstance(value, str):
            # a mapping, list, number or null cannot be matched; same as not found
            log.warning("path_value_not_string", key=key, path=path, value_type=type(value).__name__)
            continue
        if not value_re.search(value):
            log.debug("dropping_record", key=key, reason="path_value_filter", path=path, value=value)
            return False
    return True


def sanitize(record: dict[str, Any], policy: ResourceKindPolicy) -> dict[str, Any] | None:
    """Reduce ``record`` according to ``policy``.

    Checks run in order and short-circuit: name exclusion, deletion marker,
    then path-value filters. A surviving record is rebuilt from scratch with
    its identity fields, the allowed annotations and labels, every keep-path
    found in the source, minus the ignore-paths. The input is never mutated.

    Returns:
        The sanitized record, or None when the record is dropped.

    Raises:
        SanitizationError: If a keep-path cannot be set in the output record.
    """
    key = identity_key(record)
    if _matches_any(key, policy.name_exclusion_patterns):
        log.debug("dropping_record", key=key, reason="ignore_names")
        return None

    metadata = _metadata(record)
    if metadata.get("deletionTimestamp") is not None and not policy.retain_deleted:
        log.debug("dropping_record", key=key, reason="deleted")
        return None

    if not _passes_path_value_filters(record, policy, key):
        return None

    out_metadata: dict[str, Any] = {}
    if metadata.get("name"):
        out_metadata["name"] = metadata["name"]
    if metadata.get("namespace"):
        out_metadata["namespace"] = metadata["namespace"]

    annotations = _filter_string_map(metadata.get("annotations"), policy.keep_annotation_patterns)
    if annotations:
        out_metadata["annotations"] = annotations
    labels = _filter_string_map(metadata.get("labels"), policy.keep_label_patterns)
    if labels:
        out_metadata["labels"] = labels

    sanitized: dict[str, Any] = {}
    if record.get("apiVersion"):
        sanitized["apiVersion"] = record["apiVersion"]
    if record.get("kind"):
        sanitized["kind"] = record["kind"]
    if out_metadata:
        sanitized["metadata"] = out_metadata

    for path in policy.keep_paths:
        if not copy_nested(record, sanitized, split_path(path)):
            log.warning("path_not_found", key=key, path=path, option="keep-paths")

    for path in policy.ignore_paths:
        remove_nested(sanitized, split_path(path))

    return sanitized
