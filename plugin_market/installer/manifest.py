"""Project manifest (``package.json``) access and local package resolution."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from plugin_market.core.exceptions import ManifestError
from plugin_market.installer.models import LocalPackage

log = structlog.get_logger("plugin_market.manifest")

MANIFEST_NAME = "package.json"
MODULES_DIR = "node_modules"


def find_package_dir(name: str, base_dir: Path) -> Path | None:
    """Locate *name* the way the host runtime does: walk up from *base_dir*
    looking into each ``node_modules`` directory."""
    for parent in (base_dir, *base_dir.parents):
        candidate = parent / MODULES_DIR / name / MANIFEST_NAME
        if candidate.is_file():
            return candidate
    return None


def load_local_package(name: str, base_dir: Path) -> LocalPackage:
    """Read the installed manifest of *name*.

    Symlinks are resolved first; a package whose real location lies outside
    any ``node_modules`` directory is a workspace link.

    Raises ``FileNotFoundError`` when the package is not installed and
    ``ValueError`` when its manifest is unreadable.
    """
    filename = find_package_dir(name, base_dir)
    if filename is None:
        raise FileNotFoundError(f"package {name!r} is not installed")
    real = filename.resolve()
    data = json.loads(real.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not isinstance(data.get("version"), str):
        raise ValueError(f"malformed manifest: {real}")
    dependencies = data.get("dependencies") or {}
    if not isinstance(dependencies, dict):
        raise ValueError(f"malformed dependencies in {real}")
    return LocalPackage(
        name=name,
        version=data["version"],
        path=real.parent,
        workspace=MODULES_DIR not in real.parts,
        dependencies=dict(dependencies),
    )


class ProjectManifest:
    """The project's own ``package.json``.

    Only the ``dependencies`` mapping is ever changed; every other top-level
    field is written back untouched.
    """

    def __init__(self, base_dir: Path) -> None:
        self.path = base_dir / MANIFEST_NAME

    def load(self) -> dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError as exc:
            raise ManifestError(str(self.path), "file not found") from exc
        except (OSError, ValueError) as exc:
            raise ManifestError(str(self.path), str(exc)) from exc
        if not isinstance(data, dict):
            raise ManifestError(str(self.path), "top-level value is not an object")
        if not isinstance(data.get("dependencies"), dict):
            data["dependencies"] = {}
        return data

    def dependencies(self) -> dict[str, str]:
        """Declared ranges. A non-string range is reported as an empty one,
        which the snapshot flags as invalid."""
        declared: dict[str, str] = {}
        for name, request in self.load()["dependencies"].items():
            if not isinstance(request, str):
                log.debug("manifest.bad_range", name=name, request=repr(request))
                request = ""
            declared[name] = request
        return declared

    def apply(self, deps: dict[str, str]) -> dict[str, Any]:
        """Apply *deps* to the dependency map and rewrite the whole file.

        An empty range removes the dependency. Removing a dependency that
        was never declared is a no-op.
        """
        data = self.load()
        current: dict[str, str] = data["dependencies"]
        for name, request in deps.items():
            if request:
                current[name] = request
            elif current.pop(name, None) is None:
                log.debug("manifest.remove_missing", name=name)
        data["dependencies"] = dict(sorted(current.items()))
        self.path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        return data
