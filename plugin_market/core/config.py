"""Installer configuration."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TIMEOUT = 5.0
DEFAULT_BROADCAST_INTERVAL = 0.5


class InstallerConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_dir: Path = Field(default_factory=Path.cwd)
    # registry base URL; auto-discovered when unset
    endpoint: str | None = None
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)

    host_package: str | None = None
    host_version: str | None = None
    official_scope: str = "@koishijs"
    plugin_prefix: str = "koishi-plugin-"

    broadcast_interval: float = Field(default=DEFAULT_BROADCAST_INTERVAL, ge=0)

    @field_validator("endpoint", mode="before")
    @classmethod
    def _strip_endpoint(cls, v: str | None) -> str | None:
        if isinstance(v, str):
            v = v.strip().rstrip("/")
            return v or None
        return v

    @classmethod
    def from_env(cls, **overrides: object) -> InstallerConfig:
        """Build a config from ``PLUGIN_MARKET_*`` environment variables.

        Keyword *overrides* take precedence over the environment.
        """
        values: dict[str, object] = {}
        env_map = {
            "base_dir": "PLUGIN_MARKET_BASE_DIR",
            "endpoint": "PLUGIN_MARKET_ENDPOINT",
            "timeout": "PLUGIN_MARKET_TIMEOUT",
            "host_package": "PLUGIN_MARKET_HOST_PACKAGE",
            "host_version": "PLUGIN_MARKET_HOST_VERSION",
        }
        for field, key in env_map.items():
            value = os.environ.get(key)
            if value:
                values[field] = value
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
