"""Pure domain layer: envelope, interval, clock, mapping, chain checks."""

from temporal_kernel.domain.chain import ChainReport, ChainViolation, verify_chain
from temporal_kernel.domain.clock import (
    Clock,
    ClockGranularity,
    DeterministicClock,
    SequentialClock,
    SystemClock,
    TruncatingClock,
    clock_granularity,
    normalize_instant,
)
from temporal_kernel.domain.envelope import VersionEnvelope
from temporal_kernel.domain.interval import ValidityInterval
from temporal_kernel.domain.mapping import EntityMapper, FunctionMapper, IdentityMapper

__all__ = [
    "ChainReport",
    "ChainViolation",
    "Clock",
    "ClockGranularity",
    "DeterministicClock",
    "EntityMapper",
    "FunctionMapper",
    "IdentityMapper",
    "SequentialClock",
    "SystemClock",
    "TruncatingClock",
    "ValidityInterval",
    "VersionEnvelope",
    "clock_granularity",
    "normalize_instant",
    "verify_chain",
]
