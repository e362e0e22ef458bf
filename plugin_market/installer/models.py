"""Data models for the installer engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

# version string -> {peerDependencies, peerDependenciesMeta, deprecated}
VersionMeta = dict[str, Any]
VersionMap = dict[str, VersionMeta]

META_KEYS = ("peerDependencies", "peerDependenciesMeta", "deprecated")


@dataclass
class Dependency:
    """Declared / resolved / available state of one dependency.

    ``request`` is the declared range with a single leading ``^`` or ``~``
    stripped, e.g. ``^1.2.3`` -> ``1.2.3``.
    """

    request: str
    resolved: str | None = None
    workspace: bool = False
    invalid: bool = False
    latest: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v not in (None, False)}


@dataclass
class LocalPackage:
    """An installed package's own manifest."""

    name: str
    version: str
    path: Path
    # resolved through a workspace link rather than a managed dependency dir
    workspace: bool = False
    dependencies: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class AgentInfo:
    """The package manager that drives physical installs."""

    name: str
    version: str | None = None

    @property
    def major(self) -> int | None:
        if not self.version:
            return None
        head = self.version.split(".", 1)[0]
        return int(head) if head.isdigit() else None
