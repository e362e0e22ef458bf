"""Async package-registry client."""

from __future__ import annotations

import asyncio
import contextlib
import os
from pathlib import Path
from typing import Any

import httpx
import structlog

from plugin_market.core.config import DEFAULT_TIMEOUT
from plugin_market.installer.models import AgentInfo

log = structlog.get_logger("plugin_market.registry")

DEFAULT_REGISTRY = "https://registry.npmjs.org"


class RegistryClient:
    """Thin async wrapper around ``GET /<package-name>``.

    Requests are never retried; a timeout is surfaced like any other
    transport error.
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.endpoint,
            headers={"Accept": "application/json"},
            timeout=timeout,
            transport=transport,
            follow_redirects=True,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RegistryClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_package(self, name: str) -> dict[str, Any]:
        """Fetch the registry document of *name*.

        Raises ``httpx.HTTPError`` on transport failure or non-2xx status and
        ``ValueError`` when the body is not a JSON object.
        """
        resp = await self._client.get(f"/{name}")
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"unexpected registry document for {name!r}")
        return data


async def discover_registry(
    agent: AgentInfo | None = None,
    cwd: Path | None = None,
    timeout: float = DEFAULT_TIMEOUT,
) -> str:
    """Find the registry the local package manager is configured with.

    Order: ``npm_config_registry`` env var, the manager's own config read in
    *cwd* (so project-level ``.npmrc`` / ``.yarnrc.yml`` apply), then the
    public default. A config query slower than *timeout* seconds is killed.
    """
    from_env = os.environ.get("npm_config_registry")
    if from_env:
        return from_env.rstrip("/")

    name = agent.name if agent else "npm"
    if name == "yarn" and agent is not None and (agent.major or 0) >= 2:
        cmd = ["yarn", "config", "get", "npmRegistryServer"]
    else:
        cmd = [name, "config", "get", "registry"]

    try:
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=str(cwd) if cwd is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        log.debug("registry.discover_failed", cmd=cmd, error=str(exc))
        return DEFAULT_REGISTRY

    try:
        stdout, _ = await asyncio.wait_for(proc.communicate(), timeout)
    except asyncio.TimeoutError:
        log.debug("registry.discover_timeout", cmd=cmd, timeout=timeout)
        with contextlib.suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()
        return DEFAULT_REGISTRY

    value = stdout.decode(errors="replace").strip()
    if proc.returncode != 0 or not value.startswith(("http://", "https://")):
        return DEFAULT_REGISTRY
    return value.rstrip("/")
