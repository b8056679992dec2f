"""Disk-backed cache of sanitized records, one file per (context, kind) pair."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any
from urllib.parse import quote

import structlog

from mcfetcher.errors import CacheCorruptionError, CacheWriteError

log = structlog.get_logger()

CACHE_EXTENSION = "json"
DIR_MODE = 0o751
FILE_MODE = 0o644

# Characters left readable in path segments; everything else (notably "/") is percent-encoded.
_SAFE_SEGMENT_CHARS = ":@+=,"


def _segment(value: str) -> str:
    return quote(value, safe=_SAFE_SEGMENT_CHARS)


def ensure_dir(path: Path) -> Path:
    """Create ``path`` and its parents if missing."""
    path.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
    return path


class CacheStore:
    """Maps (context, kind) pairs to ``<work_dir>/<kind>/<context>.json``.

    Presence of the file is the only cache-hit signal. Each pair owns exactly
    one file, so concurrent workers on distinct pairs never touch the same path.
    """

    def __init__(self, work_dir: Path) -> None:
        self._work_dir = work_dir

    @property
    def work_dir(self) -> Path:
        return self._work_dir

    def path_for(self, context: str, kind_key: str) -> Path:
        return self._work_dir / _segment(kind_key) / f"{_segment(context)}.{CACHE_EXTENSION}"

    def lookup(self, context: str, kind_key: str) -> list[dict[str, Any]] | None:
        """Return the cached records for the pair, or None when no file exists.

        Raises:
            CacheCorruptionError: If the file exists but is not a JSON array of objects.
        """
        path = self.path_for(context, kind_key)
        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheCorruptionError("failed to read cached records", cause=e, filename=str(path)) from e

        try:
            records = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CacheCorruptionError("failed to parse cached records", cause=e, filename=str(path)) from e
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            raise CacheCorruptionError("cached records are not a list of objects", filename=str(path))
        return records

    def store(self, context: str, kind_key: str, records: list[dict[str, Any]]) -> Path:
        """Serialize ``records`` and atomically replace the pair's cache file.

        The payload is written to a temporary file in the destination directory
        and renamed over the target, so a reader sees either the old file, the
        new file, or no file at all.

        Raises:
            CacheWriteError: If serialization or any filesystem step fails.
        """
        path = self.path_for(context, kind_key)
        try:
            payload = json.dumps(records, sort_keys=True, separators=(",", ":"))
        except (TypeError, ValueError) as e:
            raise CacheWriteError("failed to serialize records", cause=e, filename=str(path)) from e

        tmp_name: str | None = None
        try:
            ensure_dir(path.parent)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(tmp_name, FILE_MODE)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise CacheWriteError("failed to write records", cause=e, filename=str(path)) from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        log.debug("cache_written", filename=str(path), object_count=len(records))
        return path
