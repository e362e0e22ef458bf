"""Tests for DependencySnapshotBuilder."""

from __future__ import annotations

import pytest
from conftest import REGISTRY_URL, FakeRegistry, registry_doc, write_json

from plugin_market.core.exceptions import ManifestError
from plugin_market.installer.cache import VersionCache
from plugin_market.installer.fetcher import FetchCoordinator
from plugin_market.installer.manifest import ProjectManifest
from plugin_market.installer.registry_client import RegistryClient
from plugin_market.installer.snapshot import DependencySnapshotBuilder


@pytest.fixture
def registry() -> FakeRegistry:
    return FakeRegistry(
        {
            "left-pad": registry_doc("left-pad", "1.0.0", "1.0.5", "1.3.0"),
            "right-pad": registry_doc("right-pad", "2.0.0"),
            "ws-lib": registry_doc("ws-lib", "9.9.9"),
        }
    )


@pytest.fixture
def builder(project, registry):
    client = RegistryClient(REGISTRY_URL, transport=registry.transport)
    fetcher = FetchCoordinator(VersionCache(interval=60), client)
    return DependencySnapshotBuilder(ProjectManifest(project), fetcher, project)


class TestBuild:
    @pytest.mark.asyncio
    async def test_installed_dependency(self, builder, declare, install_pkg):
        declare(left_pad="^1.0.0")
        install_pkg("left-pad", "1.0.5")

        snapshot = await builder.build()
        dep = snapshot["left-pad"]
        assert dep.request == "1.0.0"
        assert dep.resolved == "1.0.5"
        assert dep.workspace is False
        assert dep.invalid is False
        assert dep.latest == "1.3.0"

    @pytest.mark.asyncio
    async def test_not_installed_dependency(self, builder, declare):
        declare(right_pad="~2.0.0")
        dep = (await builder.build())["right-pad"]
        assert dep.request == "2.0.0"
        assert dep.resolved is None
        assert dep.latest == "2.0.0"

    @pytest.mark.asyncio
    async def test_workspace_dependency_skips_checks(self, builder, declare, link_workspace, registry):
        declare(ws_lib="workspace:*")
        link_workspace("ws-lib", "0.1.0")

        dep = (await builder.build())["ws-lib"]
        assert dep.workspace is True
        assert dep.resolved == "0.1.0"
        assert dep.invalid is False
        assert dep.latest is None
        assert "ws-lib" not in registry.requests

    @pytest.mark.asyncio
    async def test_invalid_request_flagged(self, builder, declare):
        declare(right_pad=">=1.0.0 <3")
        dep = (await builder.build())["right-pad"]
        assert dep.invalid is True
        assert dep.latest == "2.0.0"

    @pytest.mark.asyncio
    async def test_unknown_to_registry(self, builder, declare):
        declare(ghost="^1.0.0")
        dep = (await builder.build())["ghost"]
        assert dep.latest is None
        assert dep.invalid is False

    @pytest.mark.asyncio
    async def test_empty_manifest(self, builder):
        assert await builder.build() == {}

    @pytest.mark.asyncio
    async def test_non_string_request_flagged_invalid(self, builder, project, install_pkg):
        write_json(project / "package.json", {"dependencies": {"left-pad": None}})
        install_pkg("left-pad", "1.0.5")
        dep = (await builder.build())["left-pad"]
        assert dep.request == ""
        assert dep.invalid is True
        assert dep.resolved == "1.0.5"

    @pytest.mark.asyncio
    async def test_installed_with_malformed_dependencies(self, builder, project, declare):
        declare(left_pad="^1.0.0")
        write_json(
            project / "node_modules" / "left-pad" / "package.json",
            {"version": "1.0.5", "dependencies": 5},
        )
        dep = (await builder.build())["left-pad"]
        assert dep.resolved is None
        assert dep.latest == "1.3.0"


class TestMemoization:
    @pytest.mark.asyncio
    async def test_repeated_builds_share_result(self, builder, declare, registry):
        declare(left_pad="^1.0.0")
        first = await builder.build()
        second = await builder.build()
        assert first is second
        assert registry.requests == ["left-pad"]

    @pytest.mark.asyncio
    async def test_invalidate_recomputes(self, builder, declare, install_pkg):
        declare(left_pad="^1.0.0")
        install_pkg("left-pad", "1.0.0")
        first = await builder.build()

        install_pkg("left-pad", "1.3.0")
        assert (await builder.build())["left-pad"].resolved == "1.0.0"

        builder.invalidate()
        second = await builder.build()
        assert second is not first
        assert second["left-pad"].resolved == "1.3.0"

    @pytest.mark.asyncio
    async def test_failed_build_is_not_memoized(self, builder, project, declare):
        manifest = project / "package.json"
        saved = manifest.read_text()
        manifest.write_text("{broken")
        with pytest.raises(ManifestError):
            await builder.build()
        manifest.write_text(saved)
        assert await builder.build() == {}


class TestLocalSnapshot:
    def test_local_only(self, builder, install_pkg, link_workspace, registry):
        install_pkg("left-pad", "1.0.5")
        link_workspace("ws-lib", "0.1.0")
        local = builder.local_snapshot({"left-pad": "^2.0.0", "ws-lib": "", "ghost": "^1.0.0"})

        assert local["left-pad"].request == "^2.0.0"
        assert local["left-pad"].resolved == "1.0.5"
        assert local["ws-lib"].workspace is True
        assert local["ghost"].resolved is None
        assert registry.requests == []
