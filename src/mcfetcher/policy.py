"""Per-kind sanitization policies and kind-key parsing."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from pydantic import ValidationError

from mcfetcher.errors import ConfigError
from mcfetcher.models import RawKindPolicy

POLICY_SECTION = "gvk"

_VERSION_RE = re.compile(r"^v\d+")


@dataclass(frozen=True)
class GroupVersionKind:
    """A resource kind, optionally qualified by API group and version."""

    group: str
    version: str
    kind: str

    def __str__(self) -> str:
        group_version = "/".join(part for part in (self.group, self.version) if part)
        return f"{group_version}, Kind={self.kind}"


@dataclass(frozen=True)
class ResourceKindPolicy:
    """Compiled sanitization policy for one configured kind key."""

    key: str
    gvk: GroupVersionKind
    name_exclusion_patterns: tuple[re.Pattern[str], ...] = ()
    keep_annotation_patterns: tuple[re.Pattern[str], ...] = ()
    keep_label_patterns: tuple[re.Pattern[str], ...] = ()
    keep_paths: tuple[str, ...] = ()
    ignore_paths: tuple[str, ...] = ()
    path_value_filters: Mapping[str, re.Pattern[str]] = field(default_factory=lambda: MappingProxyType({}))
    retain_deleted: bool = False


def parse_kind_key(key: str) -> GroupVersionKind:
    """Parse ``kind[.version][.group]`` or ``kind[.group]`` into a GroupVersionKind.

    Kinds are normally written ``kind.group``; a version is only recognised when
    the segment after the kind looks like ``v<digits>...``. Otherwise everything
    after the first dot is the group, so ``namespace.`` has an empty group.

    Examples:
        ``namespace`` -> ("", "", "namespace")
        ``group.example.com`` -> ("example.com", "", "group")
        ``group.v1alpha1.example.com`` -> ("example.com", "v1alpha1", "group")
    """
    kind, sep, rest = key.partition(".")
    if not sep:
        return GroupVersionKind(group="", version="", kind=kind)

    head, sep, tail = rest.partition(".")
    if not sep:
        if _VERSION_RE.match(rest):
            return GroupVersionKind(group="", version=rest, kind=kind)
        return GroupVersionKind(group=rest, version="", kind=kind)

    if _VERSION_RE.match(head):
        return GroupVersionKind(group=tail, version=head, kind=kind)
    # doesn't look like a version; the whole remainder is the group
    return GroupVersionKind(group=rest, version="", kind=kind)


def _compile_patterns(raw: list[str], kind_key: str, option: str) -> tuple[re.Pattern[str], ...]:
    compiled: list[re.Pattern[str]] = []
    for pattern in raw:
        try:
            compiled.append(re.compile(pattern))
        except re.error as e:
            raise ConfigError("invalid regex", cause=e, gvk=kind_key, option=option, pattern=pattern) from e
    return tuple(compiled)


def _parse_path_value_filters(raw: list[str], kind_key: str) -> Mapping[str, re.Pattern[str]]:
    """Parse ``path=value-regex`` entries into a read-only mapping."""
    filters: dict[str, re.Pattern[str]] = {}
    for entry in raw:
        tokens = entry.split("=")
        if len(tokens) != 2:
            raise ConfigError("unexpected number of tokens in path-value filter", gvk=kind_key, filter=entry)
        path, pattern = tokens
        try:
            filters[path] = re.compile(pattern)
        except re.error as e:
            raise ConfigError("invalid regex", cause=e, gvk=kind_key, option="path-value-filters", pattern=pattern) from e
    return MappingProxyType(filters)


def build_policy(kind_key: str, raw: RawKindPolicy) -> ResourceKindPolicy:
    """Compile one validated configuration entry."""
    return ResourceKindPolicy(
        key=kind_key,
        gvk=parse_kind_key(kind_key),
        name_exclusion_patterns=_compile_patterns(raw.ignore_names, kind_key, "ignore-names"),
        keep_annotation_patterns=_compile_patterns(raw.keep_annotations, kind_key, "keep-annotations"),
        keep_label_patterns=_compile_patterns(raw.keep_labels, kind_key, "keep-labels"),
        keep_paths=tuple(raw.keep_paths),
        ignore_paths=tuple(raw.ignore_paths),
        path_value_filters=_parse_path_value_filters(raw.path_value_filters, kind_key),
        retain_deleted=raw.keep_deleted,
    )


def load_policies(raw_config: Mapping[str, Any] | None) -> dict[str, ResourceKindPolicy]:
    """Build the kind-key to policy mapping from the raw configuration.

    Args:
        raw_config: The parsed configuration document; policies are read from
            its ``gvk`` section.

    Returns:
        A dict mapping each configured kind key to its compiled policy.

    Raises:
        ConfigError: If the section is absent or empty, an entry has unknown or
            mistyped options, a regex fails to compile, or a path-value filter
            is not exactly one ``path=regex`` pair.
    """
    section = raw_config.get(POLICY_SECTION) if raw_config else None
    if not section:
        raise ConfigError(f"{POLICY_SECTION!r} is required")
    if not isinstance(section, Mapping):
        raise ConfigError(f"{POLICY_SECTION!r} must be a mapping", got=type(section).__name__)

    policies: dict[str, ResourceKindPolicy] = {}
    for kind_key, entry in section.items():
        if not isinstance(kind_key, str) or not kind_key:
            raise ConfigError("kind key must be a non-empty string", gvk=kind_key)
        try:
            raw = RawKindPolicy.model_validate(entry or {})
        except ValidationError as e:
            raise ConfigError("invalid policy", cause=e, gvk=kind_key) from e
        policies[kind_key] = build_policy(kind_key, raw)
    return policies
