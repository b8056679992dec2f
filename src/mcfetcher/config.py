"""Run configuration: YAML file, environment variable overrides, and explicit overrides."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from mcfetcher.cache import ensure_dir
from mcfetcher.errors import ConfigError
from mcfetcher.policy import ResourceKindPolicy, load_policies

DEFAULT_CONCURRENCY = 10
DEFAULT_WORK_DIR = "."
ENV_PREFIX = "MCFETCHER_"


@dataclass(frozen=True)
class FetchConfig:
    """Everything a run needs, built once at startup and passed explicitly."""

    work_dir: Path
    contexts: tuple[str, ...]
    policies: Mapping[str, ResourceKindPolicy]
    kubeconfig: Path | None = None
    concurrency: int = DEFAULT_CONCURRENCY


def _env(env: Mapping[str, str], key: str) -> str | None:
    """Look up ``MCFETCHER_<KEY>`` with dashes mapped to underscores."""
    value = env.get(ENV_PREFIX + key.upper().replace("-", "_"))
    return value if value else None


def read_config_file(path: Path) -> dict[str, Any]:
    """Parse a YAML configuration file.

    Raises:
        ConfigError: If the file is missing, unreadable, not YAML, or not a mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError("failed to read config file", cause=e, path=str(path)) from e
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError("failed to parse config file", cause=e, path=str(path)) from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config file must contain a mapping", path=str(path), got=type(raw).__name__)
    return raw


def _as_contexts(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items: Sequence[Any] = value.split(",")
    elif isinstance(value, list | tuple):
        items = value
    else:
        raise ConfigError("kubeconfig-contexts must be a list or a comma-separated string", got=type(value).__name__)
    return tuple(str(item).strip() for item in items if str(item).strip())


def _as_concurrency(value: Any) -> int:
    try:
        concurrency = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigError("concurrency must be an integer", cause=e, value=value) from e
    if concurrency < 1:
        raise ConfigError("concurrency must be at least 1", value=concurrency)
    return concurrency


def load_config(
    config_file: Path | None = None,
    *,
    work_dir: Path | None = None,
    kubeconfig: Path | None = None,
    contexts: Sequence[str] | None = None,
    concurrency: int | None = None,
    env: Mapping[str, str] | None = None,
) -> FetchConfig:
    """Build a FetchConfig.

    Precedence, lowest first: the YAML file, ``MCFETCHER_*`` environment
    variables, then the keyword overrides (CLI flags). Policies come only from
    the file's ``gvk`` section. The work directory is made absolute and created.

    Raises:
        ConfigError: On any missing or invalid setting.
    """
    env = os.environ if env is None else env
    raw = read_config_file(config_file) if config_file is not None else {}
    policies = load_policies(raw)

    def pick(key: str, override: Any) -> Any:
        if override is not None:
            return override
        from_env = _env(env, key)
        if from_env is not None:
            return from_env
        return raw.get(key)

    resolved_contexts = _as_contexts(pick("kubeconfig-contexts", list(contexts) if contexts else None))
    if not resolved_contexts:
        raise ConfigError('"kubeconfig-contexts" is required')

    raw_concurrency = pick("concurrency", concurrency)
    resolved_concurrency = _as_concurrency(DEFAULT_CONCURRENCY if raw_concurrency is None else raw_concurrency)

    resolved_kubeconfig = pick("kubeconfig", kubeconfig)
    kubeconfig_path = Path(resolved_kubeconfig).expanduser() if resolved_kubeconfig else None

    work_dir_path = Path(pick("work-dir", work_dir) or DEFAULT_WORK_DIR).expanduser().resolve()
    try:
        ensure_dir(work_dir_path)
    except OSError as e:
        raise ConfigError("failed to ensure work dir", cause=e, path=str(work_dir_path)) from e

    return FetchConfig(
        work_dir=work_dir_path,
        contexts=resolved_contexts,
        policies=policies,
        kubeconfig=kubeconfig_path,
        concurrency=resolved_concurrency,
    )
