"""Fetch orchestrator: a fixed worker pool draining a queue of kubeconfig contexts."""

from __future__ import annotations

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from mcfetcher.cache import CacheStore
from mcfetcher.clients import ClusterClient
from mcfetcher.clients.k8s_dynamic import K8sDynamicClient
from mcfetcher.config import FetchConfig
from mcfetcher.errors import AdapterError, McfetcherError, SanitizationError
from mcfetcher.models import FetchSummary, PairFailure
from mcfetcher.policy import ResourceKindPolicy
from mcfetcher.sanitize import identity_key, sanitize

log = structlog.get_logger()

ClientFactory = Callable[[str], ClusterClient]


@dataclass
class _WorkerStats:
    fetched: int = 0
    cached: int = 0
    records_written: int = 0


def sanitize_records(records: list[dict[str, Any]], policy: ResourceKindPolicy) -> list[dict[str, Any]]:
    """Sanitize every record, keeping survivors in their original order.

    A record that fails to sanitize is logged and dropped; it never fails the batch.
    """
    kept: list[dict[str, Any]] = []
    for record in records:
        try:
            sanitized = sanitize(record, policy)
        except SanitizationError as e:
            log.warning("failed_to_sanitize", key=identity_key(record), error=str(e))
            continue
        if sanitized is not None:
            kept.append(sanitized)
    return kept


class Fetcher:
    """Fetches, sanitizes and caches every configured kind for every context.

    ``concurrency`` workers each take one context at a time from a shared queue
    and process all of its kinds sequentially. Failures for a (context, kind)
    pair are sent to an error funnel and the worker moves on; nothing aborts
    the run.
    """

    def __init__(
        self,
        config: FetchConfig,
        cache: CacheStore | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._cache = cache if cache is not None else CacheStore(config.work_dir)
        self._client_factory = client_factory or self._default_client_factory

    def _default_client_factory(self, context: str) -> ClusterClient:
        return K8sDynamicClient(context, self._config.kubeconfig)

    async def run(self) -> FetchSummary:
        """Process every (context, kind) pair exactly once and summarize the outcome."""
        contexts = self._config.contexts
        summary = FetchSummary(contexts=len(contexts), kinds=len(self._config.policies))

        # Blocking list calls run via asyncio.to_thread; size its pool to the worker count.
        executor = ThreadPoolExecutor(max_workers=self._config.concurrency, thread_name_prefix="mcfetcher")
        asyncio.get_running_loop().set_default_executor(executor)
        try:
            await self._run(contexts, summary)
        finally:
            executor.shutdown(wait=True)

        if summary.failures:
            log.info("fetch_failed", failed=summary.failed, hint="errors written to stderr")
        return summary

    async def _run(self, contexts: tuple[str, ...], summary: FetchSummary) -> None:
        work: asyncio.Queue[str | None] = asyncio.Queue()
        # Unbounded: producers never block on error reporting.
        errors: asyncio.Queue[PairFailure | None] = asyncio.Queue()

        collector = asyncio.create_task(self._collect_errors(errors, summary))
        workers = [
            asyncio.create_task(self._worker(worker_id, work, errors))
            for worker_id in range(1, self._config.concurrency + 1)
        ]

        for index, context in enumerate(contexts, start=1):
            log.info("queuing_context", context=context, progress=f"{index}/{len(contexts)}")
            await work.put(context)
        for _ in workers:
            await work.put(None)
        log.info("all_contexts_queued", workers=len(workers))

        for stats in await asyncio.gather(*workers):
            summary.fetched += stats.fetched
            summary.cached += stats.cached
            summary.records_written += stats.records_written

        await errors.put(None)
        await collector

    async def _collect_errors(self, errors: asyncio.Queue[PairFailure | None], summary: FetchSummary) -> None:
        while (failure := await errors.get()) is not None:
            summary.failures.append(failure)
            log.error("pair_failed", context=failure.context, gvk=failure.kind, error=failure.error)

    async def _worker(
        self,
        worker_id: int,
        work: asyncio.Queue[str | None],
        errors: asyncio.Queue[PairFailure | None],
    ) -> _WorkerStats:
        stats = _WorkerStats()
        with structlog.contextvars.bound_contextvars(worker=worker_id):
            while (context := await work.get()) is not None:
                with structlog.contextvars.bound_contextvars(context=context):
                    log.info("processing_context")
                    await self._process_context(context, errors, stats)
        return stats

    async def _process_context(
        self,
        context: str,
        errors: asyncio.Queue[PairFailure | None],
        stats: _WorkerStats,
    ) -> None:
        client: ClusterClient | None = None
        for kind_key, policy in self._config.policies.items():
            with structlog.contextvars.bound_contextvars(gvk=kind_key):
                try:
                    records = self._cache.lookup(context, kind_key)
                    if records is not None:
                        log.info(
                            "using_cached_records",
                            filename=str(self._cache.path_for(context, kind_key)),
                            object_count=len(records),
                            hint="to skip cache, delete file",
                        )
                        stats.cached += 1
                        continue
                    if client is None:
                        client = self._new_client(context)
                    written = await self._fetch_pair(client, context, kind_key, policy)
                except Exception as e:
                    error = e if isinstance(e, McfetcherError) else McfetcherError("unexpected failure", cause=e)
                    errors.put_nowait(PairFailure(context=context, kind=kind_key, error=str(error)))
                    continue
                stats.fetched += 1
                stats.records_written += written

    def _new_client(self, context: str) -> ClusterClient:
        try:
            return self._client_factory(context)
        except McfetcherError:
            raise
        except Exception as e:
            raise AdapterError("failed to create client", cause=e, context=context) from e

    async def _fetch_pair(
        self,
        client: ClusterClient,
        context: str,
        kind_key: str,
        policy: ResourceKindPolicy,
    ) -> int:
        log.info("fetching_objects")
        start = time.monotonic()
        raw_records = await client.list_objects(policy.gvk)
        log.info("fetched_objects", duration_s=round(time.monotonic() - start, 3), object_count=len(raw_records))

        kept = sanitize_records(raw_records, policy)
        log.info("caching_records", filename=str(self._cache.path_for(context, kind_key)), object_count=len(kept))
        self._cache.store(context, kind_key, kept)
        return len(kept)


def run_fetch(config: FetchConfig, client_factory: ClientFactory | None = None) -> int:
    """Run a full fetch and return the process exit status (0 ok, 1 if any pair failed)."""
    summary = asyncio.run(Fetcher(config, client_factory=client_factory).run())
    log.info(
        "fetch_summary",
        contexts=summary.contexts,
        kinds=summary.kinds,
        fetched=summary.fetched,
        cached=summary.cached,
        failed=summary.failed,
        records_written=summary.records_written,
    )
    return summary.exit_code
