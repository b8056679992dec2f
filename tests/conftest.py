"""Shared test fixtures for all test modules."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import structlog

from mcfetcher.config import FetchConfig
from mcfetcher.policy import ResourceKindPolicy
from tests.factories import make_policy, make_record


@pytest.fixture(autouse=True)
def _reset_structlog() -> Any:
    """Undo any structlog.configure() a test triggered (e.g. through the CLI)."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def policies() -> dict[str, ResourceKindPolicy]:
    return {
        "pod": make_policy(
            "pod",
            keep_labels=["^app$"],
            keep_paths=["spec/nodeName", "status/phase"],
        ),
        "deployment.apps": make_policy(
            "deployment.apps",
            keep_annotations=["^deployment\\.kubernetes\\.io/"],
            keep_paths=["spec/replicas"],
        ),
    }


@pytest.fixture
def cluster_objects() -> dict[str, dict[str, list[dict[str, Any]]]]:
    """Three contexts with a few pods and one deployment each."""
    objects: dict[str, dict[str, list[dict[str, Any]]]] = {}
    for context in ("kind-dev", "kind-prod", "kind-staging"):
        objects[context] = {
            "pod": [
                make_record(
                    name=f"{context}-web-{i}",
                    labels={"app": "web", "pod-template-hash": "abc"},
                    spec={"nodeName": f"node-{i}", "containers": [{"name": "web"}]},
                    status={"phase": "Running", "podIP": "10.0.0.1"},
                )
                for i in range(3)
            ],
            "deployment": [
                make_record(
                    name="web",
                    kind="Deployment",
                    api_version="apps/v1",
                    annotations={"deployment.kubernetes.io/revision": "3", "kubectl.kubernetes.io/last": "{}"},
                    spec={"replicas": 3, "template": {}},
                )
            ],
        }
    return objects


@pytest.fixture
def fetch_config(tmp_path: Path, policies: dict[str, ResourceKindPolicy]) -> FetchConfig:
    work_dir = tmp_path / "work"
    work_dir.mkdir()
    return FetchConfig(
        work_dir=work_dir,
        contexts=("kind-dev", "kind-prod", "kind-staging"),
        policies=policies,
        concurrency=2,
    )
