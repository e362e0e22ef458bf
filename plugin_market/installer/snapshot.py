"""DependencySnapshotBuilder: declared / resolved / latest state per dependency."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from plugin_market.installer import versions
from plugin_market.installer.fetcher import FetchCoordinator
from plugin_market.installer.manifest import ProjectManifest, load_local_package
from plugin_market.installer.models import Dependency, LocalPackage

log = structlog.get_logger("plugin_market.snapshot")

_MAX_CONCURRENCY = 10

Snapshot = dict[str, Dependency]


class DependencySnapshotBuilder:
    """Builds the snapshot and memoizes it until :meth:`invalidate`."""

    def __init__(
        self,
        manifest: ProjectManifest,
        fetcher: FetchCoordinator,
        base_dir: Path,
    ) -> None:
        self.manifest = manifest
        self.fetcher = fetcher
        self.base_dir = base_dir
        self._task: asyncio.Future[Snapshot] | None = None

    async def build(self) -> Snapshot:
        """Return the memoized snapshot, computing it on first use."""
        if self._task is None:
            self.rebuild()
        assert self._task is not None
        return await asyncio.shield(self._task)

    def rebuild(self) -> None:
        """Drop the memoized snapshot and start computing a fresh one."""
        task = asyncio.ensure_future(self._build())
        task.add_done_callback(self._forget_failed)
        self._task = task

    def invalidate(self) -> None:
        self._task = None

    def resolve_local(self, name: str) -> LocalPackage | None:
        """Installed manifest of *name*, or ``None`` if it is not installed."""
        try:
            return load_local_package(name, self.base_dir)
        except (OSError, ValueError) as exc:
            log.debug("snapshot.not_installed", name=name, error=str(exc))
            return None

    def local_snapshot(self, requests: dict[str, str]) -> Snapshot:
        """Local-only records for *requests*; no registry access."""
        result: Snapshot = {}
        for name, request in requests.items():
            dep = Dependency(request=request)
            local = self.resolve_local(name)
            if local is not None:
                dep.resolved = local.version
                dep.workspace = local.workspace
            result[name] = dep
        return result

    async def _build(self) -> Snapshot:
        declared = self.manifest.dependencies()
        result: Snapshot = {
            name: Dependency(request=versions.strip_range(request))
            for name, request in declared.items()
        }
        sem = asyncio.Semaphore(_MAX_CONCURRENCY)

        async def _fill(name: str, dep: Dependency) -> None:
            async with sem:
                # some dependencies may be left with no local installation
                local = self.resolve_local(name)
                if local is not None:
                    dep.resolved = local.version
                    dep.workspace = local.workspace
                    if local.workspace:
                        return

                if not versions.is_valid(dep.request):
                    dep.invalid = True

                available = await self.fetcher.fetch(name)
                if available:
                    dep.latest = next(iter(available))

        await asyncio.gather(*(_fill(name, dep) for name, dep in result.items()))
        log.debug("snapshot.built", dependencies=len(result))
        return result

    def _forget_failed(self, task: asyncio.Future[Snapshot]) -> None:
        if task.cancelled() or task.exception() is not None:
            if self._task is task:
                self._task = None
