"""Detect which package manager launched us."""

from __future__ import annotations

import os

from plugin_market.installer.models import AgentInfo

USER_AGENT_ENV = "npm_config_user_agent"


def detect_agent(user_agent: str | None = None) -> AgentInfo | None:
    """Parse ``npm_config_user_agent`` (``yarn/3.2.1 npm/? node/v18.0.0 ...``).

    Returns ``None`` when no package manager is recorded in the environment.
    """
    if user_agent is None:
        user_agent = os.environ.get(USER_AGENT_ENV, "")
    head = user_agent.strip().split(" ", 1)[0]
    if not head:
        return None
    name, _, version = head.partition("/")
    return AgentInfo(name=name, version=version or None)


def supports_json(agent: AgentInfo) -> bool:
    """Only yarn 2+ emits JSON-line logs."""
    return agent.name == "yarn" and (agent.major or 0) >= 2
