"""Installer: orchestrates decide / install / refresh / targeted reload."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from plugin_market.core.config import InstallerConfig
from plugin_market.installer.agent import detect_agent
from plugin_market.installer.cache import VersionCache
from plugin_market.installer.collaborators import Console, Loader
from plugin_market.installer.decision import decide
from plugin_market.installer.fetcher import FetchCoordinator
from plugin_market.installer.manifest import ProjectManifest
from plugin_market.installer.models import AgentInfo, Dependency, VersionMap
from plugin_market.installer.naming import (
    CompatibilityCheck,
    PluginNaming,
    accept_all,
    peer_compatibility,
)
from plugin_market.installer.process import ProcessRunner
from plugin_market.installer.registry_client import RegistryClient, discover_registry
from plugin_market.installer.snapshot import DependencySnapshotBuilder, Snapshot

log = structlog.get_logger("plugin_market.installer")

REGISTRY_CHANNEL = "market/registry"


class Installer:
    """Long-lived owner of the version caches, fetch tasks and snapshot.

    *console* and *loader* are optional and may be attached or detached at
    any time; a missing collaborator turns the corresponding call into a
    no-op.
    """

    def __init__(
        self,
        config: InstallerConfig,
        *,
        console: Console | None = None,
        loader: Loader | None = None,
        agent: AgentInfo | None = None,
        compatible: CompatibilityCheck | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.console = console
        self.loader = loader
        self.agent = agent or detect_agent() or AgentInfo(name="npm")
        self.naming = PluginNaming(config.official_scope, config.plugin_prefix)
        if compatible is None:
            if config.host_package and config.host_version:
                compatible = peer_compatibility(
                    self.naming, config.host_package, config.host_version
                )
            else:
                compatible = accept_all

        self.endpoint: str | None = None
        self._transport = transport
        self.manifest = ProjectManifest(config.base_dir)
        self.cache = VersionCache(self._broadcast, config.broadcast_interval)
        self.fetcher = FetchCoordinator(self.cache, compatible=compatible)
        self.snapshot = DependencySnapshotBuilder(self.manifest, self.fetcher, config.base_dir)
        self.runner = ProcessRunner(config.base_dir, self.agent)

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def start(self) -> None:
        self.endpoint = self.config.endpoint or await discover_registry(
            self.agent, cwd=self.config.base_dir, timeout=self.config.timeout
        )
        self.fetcher.client = RegistryClient(
            self.endpoint,
            timeout=self.config.timeout,
            transport=self._transport,
        )
        log.info("installer.started", endpoint=self.endpoint, agent=self.agent.name)

    async def close(self) -> None:
        self.cache.close()
        if self.fetcher.client is not None:
            await self.fetcher.client.close()
            self.fetcher.client = None

    async def __aenter__(self) -> Installer:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── registry data ──────────────────────────────────────────────────────

    def resolve_name(self, name: str) -> list[str]:
        return self.naming.resolve(name)

    async def get_package(self, name: str) -> VersionMap | None:
        return await self.fetcher.fetch(name)

    async def find_version(self, names: list[str]) -> dict[str, str] | None:
        """Latest version of the first candidate in *names* the registry knows."""
        found = await self.fetcher.fetch_all(names)
        for name in names:
            available = found.get(name)
            if available:
                return {name: next(iter(available))}
        return None

    def set_package(self, name: str, versions: list[dict[str, Any]]) -> VersionMap:
        return self.fetcher.seed(name, versions)

    async def get_deps(self) -> Snapshot:
        return await self.snapshot.build()

    # ── invalidation ───────────────────────────────────────────────────────

    def refresh(self, notify: bool = False) -> None:
        """Drop fetch tasks and both caches, then recompute the snapshot."""
        self.fetcher.clear()
        self.cache.clear()
        self.snapshot.rebuild()
        if notify:
            self.refresh_data()

    def refresh_data(self) -> None:
        console = self.console
        if console is None:
            return
        console.refresh("registry")
        console.refresh("packages")

    # ── install ────────────────────────────────────────────────────────────

    async def override(self, deps: dict[str, str]) -> None:
        self.manifest.apply(deps)
        log.info("installer.manifest_written", changed=sorted(deps))

    def install_args(self) -> list[str]:
        if self.config.endpoint and self.endpoint:
            return ["--registry", self.endpoint]
        return []

    async def install(self, deps: dict[str, str], forced: bool = False) -> int:
        """Apply *deps* (empty range = remove) and install if needed.

        Returns ``0`` on success, otherwise the package manager's exit code
        (``-1`` if it could not be started).
        """
        if not deps and not forced:
            log.debug("installer.noop")
            return 0

        previous = self.snapshot.local_snapshot(deps)
        if deps:
            await self.override(deps)

        decision = decide(deps, previous, forced)
        if decision.forced:
            log.info("installer.run", reason=decision.reason)
            code = await self.runner.run(self.install_args())
            if code:
                log.warning("installer.failed", code=code)
                self.refresh(notify=True)
                return code
        else:
            log.info("installer.skip", packages=sorted(deps))

        self.refresh()
        await self.reconcile(previous)
        self.refresh_data()
        return 0

    async def reconcile(self, previous: Snapshot) -> bool:
        """Request a full reload if a loaded, non-workspace package changed
        version. Returns whether a reload was requested."""
        current = await self.snapshot.build()
        changed = [
            name
            for name, before in previous.items()
            if _version_changed(before, current.get(name))
        ]
        reload = False
        for name in changed:
            if self._is_loaded(name):
                reload = True

        if not reload:
            return False
        loader = self.loader
        if loader is None:
            return False
        log.info("installer.reload", changed=changed)
        loader.full_reload()
        return True

    def _is_loaded(self, name: str) -> bool:
        loader = self.loader
        if loader is None:
            return False
        try:
            return loader.is_loaded(name)
        except Exception:
            log.exception("installer.loaded_check_failed", name=name)
            return True

    def _broadcast(self, payload: dict[str, VersionMap]) -> None:
        console = self.console
        if console is not None:
            console.broadcast(REGISTRY_CHANNEL, payload)


def _version_changed(before: Dependency, after: Dependency | None) -> bool:
    if before.workspace or after is None:
        return False
    return after.resolved != before.resolved
