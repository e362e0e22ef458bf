"""Shared fixtures: throwaway project trees, a fake registry, fake collaborators."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest

REGISTRY_URL = "https://registry.test"


def write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n")


def registry_doc(name: str, *versions: str, peers: dict[str, str] | None = None) -> dict:
    return {
        "name": name,
        "versions": {
            v: {"name": name, "version": v, "peerDependencies": dict(peers or {})}
            for v in versions
        },
    }


class FakeRegistry:
    """httpx.MockTransport backend serving ``GET /<name>`` from a dict."""

    def __init__(self, documents: dict[str, dict] | None = None) -> None:
        self.documents = dict(documents or {})
        self.requests: list[str] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        name = request.url.path.lstrip("/")
        self.requests.append(name)
        doc = self.documents.get(name)
        if doc is None:
            return httpx.Response(404, json={"error": "Not found"})
        return httpx.Response(200, json=doc)


class FakeConsole:
    def __init__(self) -> None:
        self.broadcasts: list[tuple[str, dict]] = []
        self.refreshed: list[str] = []

    def broadcast(self, channel: str, payload: dict) -> None:
        self.broadcasts.append((channel, payload))

    def refresh(self, key: str) -> None:
        self.refreshed.append(key)


class FakeLoader:
    def __init__(self, loaded: set[str] | None = None, fail: bool = False) -> None:
        self.loaded = set(loaded or ())
        self.fail = fail
        self.reloads = 0

    def is_loaded(self, name: str) -> bool:
        if self.fail:
            raise RuntimeError("module cache unavailable")
        return name in self.loaded

    def full_reload(self) -> None:
        self.reloads += 1


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A project root with an empty-dependency package.json."""
    root = tmp_path / "app"
    write_json(
        root / "package.json",
        {"name": "app", "version": "0.0.0", "private": True, "dependencies": {}},
    )
    return root


@pytest.fixture
def declare(project: Path):
    def _declare(**deps: str) -> None:
        path = project / "package.json"
        data = json.loads(path.read_text())
        data["dependencies"].update({k.replace("_", "-"): v for k, v in deps.items()})
        write_json(path, data)

    return _declare


@pytest.fixture
def install_pkg(project: Path):
    """Place ``node_modules/<name>/package.json`` at *version*."""

    def _install(name: str, version: str) -> Path:
        pkg_dir = project / "node_modules" / name
        write_json(pkg_dir / "package.json", {"name": name, "version": version})
        return pkg_dir

    return _install


@pytest.fixture
def link_workspace(project: Path):
    """Create a sibling workspace package and symlink it into node_modules."""

    def _link(name: str, version: str) -> Path:
        ws_dir = project / "packages" / name.replace("/", "__")
        write_json(ws_dir / "package.json", {"name": name, "version": version})
        link = project / "node_modules" / name
        link.parent.mkdir(parents=True, exist_ok=True)
        link.symlink_to(ws_dir, target_is_directory=True)
        return ws_dir

    return _link
