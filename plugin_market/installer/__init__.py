"""Installer engine: registry cache, install decision, package-manager runs."""

from plugin_market.installer.installer import Installer
from plugin_market.installer.models import AgentInfo, Dependency, LocalPackage

__all__ = ["AgentInfo", "Dependency", "Installer", "LocalPackage"]
