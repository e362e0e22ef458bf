"""Tests for InstallerConfig."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from plugin_market.core.config import InstallerConfig


class TestInstallerConfig:
    def test_defaults(self):
        config = InstallerConfig()
        assert config.endpoint is None
        assert config.timeout == 5.0
        assert config.broadcast_interval == 0.5
        assert config.base_dir == Path.cwd()

    def test_endpoint_normalized(self):
        assert InstallerConfig(endpoint=" https://r.test/ ").endpoint == "https://r.test"
        assert InstallerConfig(endpoint="").endpoint is None

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            InstallerConfig(timeout=0)

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("PLUGIN_MARKET_BASE_DIR", str(tmp_path))
        monkeypatch.setenv("PLUGIN_MARKET_ENDPOINT", "https://env.test")
        monkeypatch.setenv("PLUGIN_MARKET_TIMEOUT", "2.5")
        config = InstallerConfig.from_env()
        assert config.base_dir == tmp_path
        assert config.endpoint == "https://env.test"
        assert config.timeout == 2.5

    def test_from_env_overrides(self, monkeypatch):
        monkeypatch.setenv("PLUGIN_MARKET_TIMEOUT", "2.5")
        assert InstallerConfig.from_env(timeout=9.0, endpoint=None).timeout == 9.0

    def test_from_env_invalid(self, monkeypatch):
        monkeypatch.setenv("PLUGIN_MARKET_TIMEOUT", "soon")
        with pytest.raises(ValidationError):
            InstallerConfig.from_env()
