"""Tests for cache.py: layout, lookup, atomic store, corruption handling."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from mcfetcher.cache import CacheStore
from mcfetcher.errors import CacheCorruptionError, CacheWriteError


@pytest.fixture
def store(tmp_path: Path) -> CacheStore:
    return CacheStore(tmp_path)


class TestLayout:
    def test_one_directory_per_kind_one_file_per_context(self, store: CacheStore, tmp_path: Path) -> None:
        assert store.path_for("kind-dev", "deployment.apps") == tmp_path / "deployment.apps" / "kind-dev.json"

    def test_trailing_dot_kind_key_kept_literally(self, store: CacheStore, tmp_path: Path) -> None:
        assert store.path_for("ctx", "namespace.") == tmp_path / "namespace." / "ctx.json"

    def test_slashes_in_context_are_encoded(self, store: CacheStore) -> None:
        path = store.path_for("arn:aws:eks:us-east-1:123456789012:cluster/prod", "pod")
        assert path.parent.name == "pod"
        assert path.name == "arn:aws:eks:us-east-1:123456789012:cluster%2Fprod.json"

    def test_distinct_pairs_never_collide(self, store: CacheStore) -> None:
        paths = {
            store.path_for(context, kind)
            for context in ("a/b", "a%2Fb", "a_b", "a")
            for kind in ("pod", "pod.", "pod.apps")
        }
        assert len(paths) == 12


class TestLookup:
    def test_miss_when_no_file(self, store: CacheStore) -> None:
        assert store.lookup("kind-dev", "pod") is None

    def test_hit_returns_records(self, store: CacheStore) -> None:
        records = [{"kind": "Pod", "metadata": {"name": "a"}}]
        store.store("kind-dev", "pod", records)
        assert store.lookup("kind-dev", "pod") == records

    def test_empty_list_is_a_hit(self, store: CacheStore) -> None:
        store.store("kind-dev", "pod", [])
        assert store.lookup("kind-dev", "pod") == []

    @pytest.mark.parametrize("payload", [b'[{"kind": "Pod"', b"[\xff\xfe]"])
    def test_unparseable_file_is_corruption(self, store: CacheStore, payload: bytes) -> None:
        path = store.path_for("kind-dev", "pod")
        path.parent.mkdir(parents=True)
        path.write_bytes(payload)
        with pytest.raises(CacheCorruptionError, match="failed to parse cached records"):
            store.lookup("kind-dev", "pod")

    @pytest.mark.parametrize("payload", ['{"kind": "Pod"}', "[1, 2]", '"text"', "null"])
    def test_wrong_shape_is_corruption(self, store: CacheStore, payload: str) -> None:
        path = store.path_for("kind-dev", "pod")
        path.parent.mkdir(parents=True)
        path.write_text(payload)
        with pytest.raises(CacheCorruptionError, match="not a list of objects"):
            store.lookup("kind-dev", "pod")


class TestStore:
    def test_creates_kind_directory(self, store: CacheStore, tmp_path: Path) -> None:
        path = store.store("kind-dev", "deployment.apps", [])
        assert path.parent == tmp_path / "deployment.apps"
        assert path.parent.is_dir()

    def test_output_is_compact_and_sorted(self, store: CacheStore) -> None:
        path = store.store("kind-dev", "pod", [{"metadata": {"name": "a"}, "kind": "Pod", "apiVersion": "v1"}])
        assert path.read_text() == '[{"apiVersion":"v1","kind":"Pod","metadata":{"name":"a"}}]'

    def test_replaces_existing_file(self, store: CacheStore) -> None:
        store.store("kind-dev", "pod", [{"a": 1}])
        store.store("kind-dev", "pod", [{"b": 2}])
        assert store.lookup("kind-dev", "pod") == [{"b": 2}]

    def test_no_temp_files_left_behind(self, store: CacheStore) -> None:
        path = store.store("kind-dev", "pod", [{"a": 1}])
        assert os.listdir(path.parent) == ["kind-dev.json"]

    def test_failed_replace_keeps_previous_file(self, store: CacheStore) -> None:
        path = store.store("kind-dev", "pod", [{"old": True}])
        with patch("mcfetcher.cache.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(CacheWriteError, match="failed to write records.*disk full"):
                store.store("kind-dev", "pod", [{"new": True}])
        assert json.loads(path.read_text()) == [{"old": True}]
        assert os.listdir(path.parent) == ["kind-dev.json"]

    def test_unserializable_records(self, store: CacheStore) -> None:
        with pytest.raises(CacheWriteError, match="failed to serialize records"):
            store.store("kind-dev", "pod", [{"when": object()}])
        assert store.lookup("kind-dev", "pod") is None
