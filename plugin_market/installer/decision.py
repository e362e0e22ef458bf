"""InstallDecisionEngine: is a physical install unavoidable?"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from plugin_market.installer import versions
from plugin_market.installer.models import Dependency

log = structlog.get_logger("plugin_market.decision")


@dataclass(frozen=True)
class Decision:
    forced: bool
    # first override that could not be satisfied locally
    reason: str | None = None


def is_satisfied(request: str, local: Dependency | None) -> bool:
    """Whether the local installation already fulfils *request*.

    Workspace links always do. An empty request means removal and never does.
    """
    if local is None:
        return False
    if local.workspace:
        return True
    return bool(request and local.resolved and versions.satisfies(local.resolved, request))


def decide(
    overrides: dict[str, str],
    local: dict[str, Dependency],
    explicit_force: bool = False,
) -> Decision:
    """Decide whether *overrides* require running the package manager.

    *local* is a local-only snapshot of the override keys. Evaluation stops at
    the first unsatisfied override.
    """
    if explicit_force:
        return Decision(forced=True, reason="explicit")
    for name, request in overrides.items():
        if is_satisfied(request, local.get(name)):
            continue
        log.debug("decision.forced", name=name, request=request)
        return Decision(forced=True, reason=name)
    return Decision(forced=False)
