"""
Configuration Loader (``temporal_config.loader``).

Responsibility
--------------
Loads YAML documents, merges them over the packaged defaults, expands
``${VAR}`` / ``${VAR:-default}`` environment references, and parses the
result into the frozen dataclasses of ``temporal_config.schema``.  The
single public entry point for runtime config is
``temporal_config.get_active_config()``.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  No dependency on services,
selectors or entity modules.

Invariants enforced
-------------------
* Environment variables are read here and nowhere else.
* Every parse error raises ``ValueError`` naming the offending key; no
  silent defaults for malformed values.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unset ``${VAR}`` without default, wrong type, unknown enum value
  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping

import yaml

from temporal_config.schema import (
    ClockSettings,
    DatabaseSettings,
    EngineConfig,
    LoggingSettings,
)
from temporal_kernel.domain.clock import ClockGranularity

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def merge_documents(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merge ``override`` onto ``base``; mappings merge, other values replace."""
    merged = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_documents(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def expand_env(
    data: Any,
    environ: Mapping[str, str] | None = None,
    _path: str = "",
) -> Any:
    """
    Expand ``${VAR}`` and ``${VAR:-default}`` in every string value.

    Raises:
        ValueError: if a referenced variable is unset and has no default.
    """
    env = os.environ if environ is None else environ

    if isinstance(data, dict):
        return {
            key: expand_env(value, env, f"{_path}.{key}" if _path else str(key))
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [expand_env(item, env, f"{_path}[{i}]") for i, item in enumerate(data)]
    if not isinstance(data, str):
        return data

    def _substitute(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        if name in env:
            return env[name]
        if default is not None:
            return default
        raise ValueError(f"{_path}: environment variable {name} is not set")

    return _ENV_REF.sub(_substitute, data)


# ---------------------------------------------------------------------------
# Scalar coercion (expanded env values arrive as strings)
# ---------------------------------------------------------------------------


def _as_int(value: Any, key: str, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected an integer, got {value!r}")
    try:
        result = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{key}: expected an integer, got {value!r}") from exc
    if result < minimum:
        raise ValueError(f"{key}: must be >= {minimum}, got {result}")
    return result


def _as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "yes", "1", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "no", "0", "off", ""):
        return False
    raise ValueError(f"{key}: expected a boolean, got {value!r}")


def _section(data: Mapping[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{name}: expected a mapping, got {type(section).__name__}")
    return section


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    """Parse the ``database`` section."""
    url = data.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ValueError("database.url: a database URL is required")
    return DatabaseSettings(
        url=url,
        echo=_as_bool(data.get("echo", False), "database.echo"),
        pool_size=_as_int(data.get("pool_size", 20), "database.pool_size", minimum=1),
        max_overflow=_as_int(data.get("max_overflow", 10), "database.max_overflow"),
        pool_timeout=_as_int(data.get("pool_timeout", 30), "database.pool_timeout"),
        pool_recycle=_as_int(data.get("pool_recycle", 1800), "database.pool_recycle"),
        isolation_level=str(data.get("isolation_level", "REPEATABLE READ")).upper(),
    )


def parse_clock(data: dict[str, Any]) -> ClockSettings:
    """Parse the ``clock`` section."""
    granularity = str(data.get("granularity", ClockGranularity.MICROSECOND.value)).lower()
    allowed = [g.value for g in ClockGranularity]
    if granularity not in allowed:
        raise ValueError(f"clock.granularity: expected one of {allowed}, got {granularity!r}")
    return ClockSettings(granularity=granularity)


def parse_logging(data: dict[str, Any]) -> LoggingSettings:
    """Parse the ``logging`` section."""
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level: expected one of {list(_LOG_LEVELS)}, got {level!r}")
    return LoggingSettings(level=level)


def parse_engine_config(data: dict[str, Any], source: str = "<defaults>") -> EngineConfig:
    """Parse a fully merged and expanded document into an EngineConfig."""
    return EngineConfig(
        database=parse_database(_section(data, "database")),
        clock=parse_clock(_section(data, "clock")),
        logging=parse_logging(_section(data, "logging")),
        source=source,
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def load_config(
    path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
) -> EngineConfig:
    """
    Defaults, then ``path``, then ``overrides``; env expanded last.

    ``overrides`` uses the same nested shape as the YAML document, e.g.
    ``{"database": {"url": "sqlite://"}}``.
    """
    document = load_yaml_file(DEFAULTS_PATH)
    source = str(DEFAULTS_PATH)
    if path is not None:
        document = merge_documents(document, load_yaml_file(Path(path)))
        source = str(path)
    if overrides:
        document = merge_documents(document, overrides)
    document = expand_env(document, environ)
    logging.getLogger("temporal_kernel.config").debug(
        "config_document_loaded", extra={"source": source}
    )
    return parse_engine_config(document, source=source)
