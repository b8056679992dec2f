"""Cluster client adapters for Kubernetes API servers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Protocol

from kubernetes import client as k8s_client
from kubernetes.config import new_client_from_config

from mcfetcher.policy import GroupVersionKind


class ClusterClient(Protocol):
    """What the fetch orchestrator needs from a per-context client."""

    async def list_objects(self, gvk: GroupVersionKind) -> list[dict[str, Any]]:
        """Return every object of ``gvk`` in the cluster, or raise AdapterError."""
        ...


def load_k8s_api_client(context: str, kubeconfig: Path | None = None) -> k8s_client.ApiClient:
    """Create an isolated Kubernetes API client for the given kubeconfig context.

    Uses new_client_from_config so that no global SDK configuration is touched;
    workers fetching from different contexts concurrently each get their own
    ApiClient. With no explicit kubeconfig the SDK's default loading rules apply
    (``KUBECONFIG``, then ``~/.kube/config``).
    """
    config_file = str(kubeconfig) if kubeconfig is not None else None
    return new_client_from_config(config_file=config_file, context=context)
