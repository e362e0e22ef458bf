"""FetchCoordinator: deduplicated, concurrency-bounded registry fetches."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any

import httpx
import structlog

from plugin_market.installer.cache import VersionCache, build_version_map
from plugin_market.installer.models import VersionMap
from plugin_market.installer.naming import CompatibilityCheck, accept_all
from plugin_market.installer.registry_client import RegistryClient

log = structlog.get_logger("plugin_market.fetcher")

_MAX_CONCURRENCY = 10


class FetchCoordinator:
    """One fetch task per package name, reused until :meth:`clear`."""

    def __init__(
        self,
        cache: VersionCache,
        client: RegistryClient | None = None,
        compatible: CompatibilityCheck = accept_all,
    ) -> None:
        self.cache = cache
        self.client = client
        self.compatible = compatible
        self._tasks: dict[str, asyncio.Future[VersionMap | None]] = {}
        self._generation = 0

    def __contains__(self, name: str) -> bool:
        return name in self._tasks

    async def fetch(self, name: str) -> VersionMap | None:
        """Return the version map of *name*, or ``None`` if the registry
        could not provide one.

        Concurrent callers share the same in-flight task; one caller being
        cancelled does not cancel it for the others.
        """
        task = self._tasks.get(name)
        if task is None:
            task = asyncio.ensure_future(self._fetch(name, self._generation))
            self._tasks[name] = task
        return await asyncio.shield(task)

    async def fetch_all(self, names: Iterable[str]) -> dict[str, VersionMap | None]:
        """Fetch many packages with at most 10 requests in flight."""
        sem = asyncio.Semaphore(_MAX_CONCURRENCY)
        unique = list(dict.fromkeys(names))

        async def _one(name: str) -> VersionMap | None:
            async with sem:
                return await self.fetch(name)

        results = await asyncio.gather(*(_one(name) for name in unique))
        return dict(zip(unique, results))

    def seed(self, name: str, remotes: Iterable[dict[str, Any]]) -> VersionMap:
        """Store externally obtained versions as an already-completed fetch.

        Must be called from inside the running event loop.
        """
        entry = self.cache.record_versions(name, remotes)
        future: asyncio.Future[VersionMap | None] = asyncio.get_running_loop().create_future()
        future.set_result(entry)
        self._tasks[name] = future
        return entry

    def clear(self) -> None:
        """Forget every task. In-flight fetches still resolve for their
        waiters but no longer write into the cache."""
        self._tasks = {}
        self._generation += 1

    async def _fetch(self, name: str, generation: int) -> VersionMap | None:
        if self.client is None:
            log.warning("registry.not_started", name=name)
            return None
        try:
            doc = await self.client.get_package(name)
            published = doc.get("versions") or {}
            if not isinstance(published, dict):
                raise ValueError(f"malformed versions for {name!r}")
            remotes = [
                remote
                for remote in published.values()
                if isinstance(remote, dict) and self.compatible(name, remote)
            ]
            if generation != self._generation:
                return build_version_map(remotes)
            return self.cache.record_versions(name, remotes)
        except (httpx.HTTPError, ValueError, TypeError, AttributeError) as exc:
            log.warning("registry.fetch_failed", name=name, error=str(exc) or type(exc).__name__)
            return None
