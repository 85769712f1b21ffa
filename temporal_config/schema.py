"""
EngineConfig schema.

Typed, frozen view of the engine's runtime settings.  YAML documents are
parsed into these types by the loader; the bridges turn them into kernel
constructor arguments.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection and pool settings for the temporal store."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    isolation_level: str = "REPEATABLE READ"


@dataclass(frozen=True)
class ClockSettings:
    """Instant source shared by writers and point-in-time readers."""

    granularity: str = "microsecond"  # microsecond | millisecond


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    """
    Complete runtime configuration.

    ``checksum`` is the SHA-256 of the effective (post-override,
    post-expansion) document and identifies the config in logs.
    """

    database: DatabaseSettings
    clock: ClockSettings = field(default_factory=ClockSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    source: str = "<defaults>"
    checksum: str = ""
