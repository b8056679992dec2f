"""Kubernetes dynamic client wrapper: kind discovery and paginated listing."""

from __future__ import annotations

import asyncio
import threading
from pathlib import Path
from typing import Any

import structlog
from kubernetes.client.exceptions import ApiException
from kubernetes.dynamic import DynamicClient
from kubernetes.dynamic.resource import Resource, ResourceList

from mcfetcher.clients import load_k8s_api_client
from mcfetcher.errors import AdapterError
from mcfetcher.policy import GroupVersionKind

log = structlog.get_logger()

PAGE_SIZE = 500
REQUEST_TIMEOUT_SECONDS = 300
_HTTP_GONE = 410


def _matches_kind(resource: Any, kind: str) -> bool:
    if isinstance(resource, ResourceList) or "/" in (getattr(resource, "name", None) or ""):
        return False
    wanted = kind.lower()
    names = {
        (getattr(resource, "kind", None) or "").lower(),
        getattr(resource, "name", None) or "",
        getattr(resource, "singular_name", None) or "",
    }
    return wanted in names or wanted in (getattr(resource, "short_names", None) or [])


class K8sDynamicClient:
    """Lists arbitrary kinds in one kubeconfig context through API discovery."""

    def __init__(self, context: str, kubeconfig: Path | None = None) -> None:
        self._context = context
        self._kubeconfig = kubeconfig
        # Created on first use: discovery performs network calls.
        self._client: DynamicClient | None = None
        self._lock = threading.Lock()

    @property
    def context(self) -> str:
        return self._context

    def _get_client(self) -> DynamicClient:
        with self._lock:
            if self._client is None:
                try:
                    api_client = load_k8s_api_client(self._context, self._kubeconfig)
                except Exception as e:
                    raise AdapterError("failed to get rest config", cause=e, context=self._context) from e
                try:
                    self._client = DynamicClient(api_client)
                except Exception as e:
                    msg = "failed to create client (is proxy configured correctly?)"
                    raise AdapterError(msg, cause=e, context=self._context) from e
            return self._client

    def resolve(self, gvk: GroupVersionKind) -> Resource:
        """Resolve a configured kind to a discovered API resource.

        The kind may be given as the resource kind, plural, singular, or short
        name in any case. Preferred versions win, then the core group when no
        group was configured.

        Raises:
            AdapterError: If discovery fails or no resource matches.
        """
        client = self._get_client()
        filters: dict[str, str] = {}
        if gvk.group:
            filters["group"] = gvk.group
        if gvk.version:
            filters["api_version"] = gvk.version
        try:
            candidates = client.resources.search(**filters)
        except Exception as e:
            log.error("failed_to_get_rest_mapping", context=self._context, gvk=str(gvk))
            raise AdapterError("failed to get rest mapping", cause=e, context=self._context, gvk=gvk) from e

        matches = [r for r in candidates if _matches_kind(r, gvk.kind)]
        if not matches:
            raise AdapterError("failed to get rest mapping: no matching resource", context=self._context, gvk=gvk)
        matches.sort(key=lambda r: (not getattr(r, "preferred", False), bool(r.group)))
        return matches[0]

    def _get_page(self, resource: Resource, token: str | None, paginate: bool = True) -> dict[str, Any]:
        client = self._get_client()
        params: dict[str, Any] = {"_request_timeout": REQUEST_TIMEOUT_SECONDS}
        if paginate:
            params["limit"] = PAGE_SIZE
            if token:
                params["_continue"] = token
        return client.get(resource, **params).to_dict()

    @staticmethod
    def _page_items(page: dict[str, Any], resource: Resource) -> list[dict[str, Any]]:
        # List items may omit apiVersion/kind; fill them from the list itself.
        api_version = page.get("apiVersion") or resource.group_version
        kind = (page.get("kind") or "").removesuffix("List") or resource.kind
        return [{"apiVersion": api_version, "kind": kind, **item} for item in page.get("items") or []]

    def list_all(self, gvk: GroupVersionKind) -> list[dict[str, Any]]:
        """Return every object of ``gvk`` across all namespaces, following continue tokens.

        If a continue token expires mid-listing the pager starts over with one
        unpaginated list call.

        Raises:
            AdapterError: On resolution or any list failure. Partial results are never returned.
        """
        resource = self.resolve(gvk)
        items: list[dict[str, Any]] = []
        token: str | None = None
        try:
            while True:
                try:
                    page = self._get_page(resource, token)
                except ApiException as e:
                    if e.status != _HTTP_GONE or token is None:
                        raise
                    log.warning("continue_token_expired", context=self._context, gvk=str(gvk), fetched=len(items))
                    return self._page_items(self._get_page(resource, None, paginate=False), resource)
                items.extend(self._page_items(page, resource))
                token = (page.get("metadata") or {}).get("continue")
                if not token:
                    return items
        except AdapterError:
            raise
        except Exception as e:
            log.error("failed_to_list_objects", context=self._context, gvk=str(gvk))
            raise AdapterError("failed to list", cause=e, context=self._context, gvk=gvk) from e

    async def list_objects(self, gvk: GroupVersionKind) -> list[dict[str, Any]]:
        """Async wrapper running the blocking pager in a worker thread."""
        return await asyncio.to_thread(self.list_all, gvk)
