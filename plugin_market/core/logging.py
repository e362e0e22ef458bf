"""Logging for the market: structlog events rendered through stdlib handlers."""

from __future__ import annotations

import logging
import logging.config
import os

import structlog


def logger_levels(level: str, agent_level: str | None = None) -> dict[str, dict[str, str]]:
    """Per-logger levels for the ``dictConfig`` loggers table.

    ``plugin_market.agent`` carries the package manager's own output, one
    record per line, and gets its own threshold so an install can be
    silenced (or traced) independently of the market events.
    """
    return {
        "plugin_market": {"level": level},
        "plugin_market.agent": {"level": (agent_level or level).upper()},
        "httpx": {"level": "WARNING"},
        "httpcore": {"level": "WARNING"},
    }


def setup_logging(level: str | None = None, agent_level: str | None = None) -> None:
    """Wire structlog through stdlib logging onto stderr.

    Environment:
        PLUGIN_MARKET_LOG_LEVEL: market events (default: INFO)
        PLUGIN_MARKET_AGENT_LOG_LEVEL: package-manager output (default: same)
        PLUGIN_MARKET_LOG_FORMAT: console | json (default: console)

    Explicit arguments win over the environment.
    """
    log_level = (level or os.environ.get("PLUGIN_MARKET_LOG_LEVEL", "INFO")).upper()
    agent_level = agent_level or os.environ.get("PLUGIN_MARKET_AGENT_LOG_LEVEL")
    log_format = os.environ.get("PLUGIN_MARKET_LOG_FORMAT", "console").lower()

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=shared_processors
        + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "structlog": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": shared_processors,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        renderer,
                    ],
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "structlog",
                },
            },
            "root": {
                "handlers": ["default"],
                "level": log_level,
            },
            "loggers": logger_levels(log_level, agent_level),
        }
    )
