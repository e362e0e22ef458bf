"""Version metadata cache with throttled delta broadcasts."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Any, Callable

import structlog

from plugin_market.core.config import DEFAULT_BROADCAST_INTERVAL
from plugin_market.installer import versions
from plugin_market.installer.models import META_KEYS, VersionMap

log = structlog.get_logger("plugin_market.cache")


def build_version_map(remotes: Iterable[dict[str, Any]]) -> VersionMap:
    """Turn remote version records into ``{version: meta}``, newest first.

    Records without a valid semver ``version`` are dropped.
    """
    by_version: dict[str, dict[str, Any]] = {}
    for remote in remotes:
        version = remote.get("version")
        if isinstance(version, str) and versions.is_valid(version):
            by_version[version] = remote
    return {
        version: {k: by_version[version][k] for k in META_KEYS if k in by_version[version]}
        for version in versions.sort_descending(list(by_version))
    }


class Throttle:
    """Coalesce calls: the first call arms a timer, later calls within the
    window ride along, *fn* runs once when the timer fires."""

    def __init__(self, fn: Callable[[], None], interval: float) -> None:
        self.fn = fn
        self.interval = interval
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def __call__(self) -> None:
        if self._handle is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # no event loop to defer to
            self.fn()
            return
        self._handle = loop.call_later(self.interval, self._fire)

    def flush(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self.fn()


class VersionCache:
    """Full cache plus the delta accumulated since the last broadcast.

    Both stores are always written together, so the delta is a subset of the
    full cache.
    """

    def __init__(
        self,
        sink: Callable[[dict[str, VersionMap]], None] | None = None,
        interval: float = DEFAULT_BROADCAST_INTERVAL,
    ) -> None:
        self.full: dict[str, VersionMap] = {}
        self.delta: dict[str, VersionMap] = {}
        self._sink = sink
        self._throttle = Throttle(self._broadcast, interval)

    def record_versions(self, name: str, remotes: Iterable[dict[str, Any]]) -> VersionMap:
        entry = build_version_map(remotes)
        self.full[name] = self.delta[name] = entry
        self._throttle()
        return entry

    def lookup(self, name: str) -> VersionMap | None:
        return self.full.get(name)

    def clear(self) -> None:
        self.full = {}
        self.delta = {}

    def drain(self) -> dict[str, VersionMap]:
        payload, self.delta = self.delta, {}
        return payload

    def flush(self) -> None:
        """Emit any pending broadcast right away."""
        self._throttle.flush()

    def close(self) -> None:
        self._throttle.cancel()

    def _broadcast(self) -> None:
        payload = self.drain()
        if not payload or self._sink is None:
            return
        log.debug("cache.broadcast", packages=len(payload))
        self._sink(payload)
