"""
temporal_config -- single public entrypoint for engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component may read configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``temporal_kernel`` and below
    ``temporal_modules``.  The kernel MUST NEVER import from
    ``temporal_config``; ``temporal_config.bridges`` translates an
    ``EngineConfig`` into kernel constructor calls.

Failure modes:
    - ``FileNotFoundError`` -- the requested config file does not exist.
    - ``ValueError`` -- a value fails validation (message names the key).

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``TEMPORAL_CONFIG_TRACE`` log entry with the source and checksum of the
    effective configuration.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping

from temporal_config.loader import load_config
from temporal_config.schema import (
    ClockSettings,
    DatabaseSettings,
    EngineConfig,
    LoggingSettings,
)

_logger = logging.getLogger("temporal_kernel.config")


def get_active_config(
    path: Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Optional YAML file merged over the packaged defaults.
        overrides: Optional nested mapping merged last (tests, CLIs).

    Returns:
        EngineConfig -- frozen, validated.

    Raises:
        FileNotFoundError: If ``path`` does not exist.
        ValueError: If validation fails.
    """
    config = load_config(Path(path) if path is not None else None, overrides)

    _logger.info(
        "TEMPORAL_CONFIG_TRACE",
        extra={
            "trace_type": "TEMPORAL_CONFIG_TRACE",
            "config_source": config.source,
            "checksum": config.checksum,
            "dialect": config.database.url.split(":", 1)[0],
            "clock_granularity": config.clock.granularity,
            "log_level": config.logging.level,
        },
    )
    return config


__all__ = [
    "ClockSettings",
    "DatabaseSettings",
    "EngineConfig",
    "LoggingSettings",
    "get_active_config",
]
