"""Plugin naming rules and the registry compatibility filter."""

from __future__ import annotations

from typing import Any, Callable

from plugin_market.installer import versions

# (package name, remote version record) -> keep?
CompatibilityCheck = Callable[[str, dict[str, Any]], bool]


class PluginNaming:
    """Maps short plugin names to full package names.

    Official plugins live under ``<official_scope>/plugin-<x>``, community
    plugins are named ``<prefix><x>`` or ``@scope/<prefix><x>``.
    """

    def __init__(self, official_scope: str, plugin_prefix: str) -> None:
        self.official = f"{official_scope}/plugin-"
        self.prefix = plugin_prefix

    def is_plugin(self, name: str) -> bool:
        if name.startswith(self.official):
            return True
        base = name.rsplit("/", 1)[-1]
        return base.startswith(self.prefix)

    def resolve(self, name: str) -> list[str]:
        if self.is_plugin(name):
            return [name]
        if name.startswith("@"):
            scope, _, rest = name.partition("/")
            return [f"{scope}/{self.prefix}{rest}"]
        return [f"{self.official}{name}", f"{self.prefix}{name}"]


def accept_all(name: str, remote: dict[str, Any]) -> bool:
    return True


def peer_compatibility(
    naming: PluginNaming,
    host_package: str,
    host_version: str,
) -> CompatibilityCheck:
    """Keep non-plugin versions, and plugin versions whose peer dependency on
    *host_package* admits *host_version*."""

    def check(name: str, remote: dict[str, Any]) -> bool:
        if not naming.is_plugin(name):
            return True
        peers = remote.get("peerDependencies")
        if not isinstance(peers, dict):
            return False
        declared = peers.get(host_package)
        if not isinstance(declared, str):
            return False
        return versions.satisfies(host_version, declared)

    return check
