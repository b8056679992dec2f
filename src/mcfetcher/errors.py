"""Error taxonomy for configuration, cache, adapter, and record-level failures."""

from __future__ import annotations

from typing import Any


class McfetcherError(Exception):
    """Base error carrying a message, an optional cause, and key/value context.

    Rendered as ``message k1=v1 k2=v2: cause`` so a single log line identifies
    the failing unit of work without a traceback.
    """

    def __init__(self, message: str, cause: BaseException | None = None, **context: Any) -> None:
        self.message = message
        self.cause = cause
        self.context = context
        super().__init__(str(self))

    def __str__(self) -> str:
        text = self.message
        if self.context:
            pairs = " ".join(f"{key}={value}" for key, value in self.context.items())
            text = f"{text} {pairs}"
        if self.cause is not None:
            text = f"{text}: {self.cause}"
        return text


class ConfigError(McfetcherError):
    """Invalid or missing configuration. Fatal before any fetch starts."""


class CacheCorruptionError(McfetcherError):
    """An existing cache file could not be parsed. Fatal for one (context, kind) pair."""


class CacheWriteError(McfetcherError):
    """A cache file could not be written. Fatal for one (context, kind) pair."""


class AdapterError(McfetcherError):
    """Client construction, kind resolution, or list failure. Fatal for one pair."""


class SanitizationError(McfetcherError):
    """A single record could not be reduced. The record is dropped, the pair continues."""
