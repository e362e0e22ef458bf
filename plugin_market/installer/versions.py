"""Thin wrappers over node-semver so range semantics match the registry's."""

from __future__ import annotations

from functools import cmp_to_key

import nodesemver


def strip_range(request: str) -> str:
    """Drop a single leading ``^`` or ``~`` from a requested range."""
    if request[:1] in ("^", "~"):
        return request[1:]
    return request


def is_valid(version: str) -> bool:
    try:
        return nodesemver.valid(version, False) is not None
    except (ValueError, TypeError):
        return False


def satisfies(version: str, range_: str) -> bool:
    """Range check with pre-release versions admitted."""
    try:
        return bool(nodesemver.satisfies(version, range_, False, include_prerelease=True))
    except (ValueError, TypeError):
        return False


def sort_descending(versions: list[str]) -> list[str]:
    """Sort by full semver precedence, newest first. Callers pass valid versions."""
    return sorted(versions, key=cmp_to_key(lambda a, b: nodesemver.compare(b, a, False)))
