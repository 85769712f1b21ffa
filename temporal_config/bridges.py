"""
Config -> Kernel Bridges.

Functions that turn an ``EngineConfig`` into kernel objects.  They live in
temporal_config (the producer) because the kernel must NEVER import
temporal_config.

Usage:
    from temporal_config import get_active_config
    from temporal_config.bridges import (
        clock_from_config,
        configure_logging_from_config,
        init_engine_from_config,
    )

    config = get_active_config()
    configure_logging_from_config(config)
    init_engine_from_config(config)
    clock = clock_from_config(config)
"""

from __future__ import annotations

import logging

from sqlalchemy.engine import Engine

from temporal_config.schema import EngineConfig
from temporal_kernel.db.engine import init_engine_from_url
from temporal_kernel.domain.clock import (
    Clock,
    ClockGranularity,
    SystemClock,
    TruncatingClock,
)
from temporal_kernel.logging_config import configure_logging


def init_engine_from_config(config: EngineConfig) -> Engine:
    """
    Initialize the kernel's engine and session factory from ``config.database``.

    Also turns on the version-row immutability listeners, so every process
    started from config refuses ORM updates and deletes of history rows.
    """
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        isolation_level=db.isolation_level,
    )


def clock_from_config(config: EngineConfig, inner: Clock | None = None) -> TruncatingClock:
    """
    Clock truncated to the configured granularity.

    ``inner`` defaults to SystemClock; tests pass a DeterministicClock.
    """
    return TruncatingClock(inner or SystemClock(), ClockGranularity(config.clock.granularity))


def configure_logging_from_config(config: EngineConfig, **kwargs) -> None:
    """Configure kernel logging at the configured level (idempotent)."""
    configure_logging(level=getattr(logging, config.logging.level), **kwargs)
