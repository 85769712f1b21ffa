"""Services for the temporal kernel (write side and repository contract)."""

from temporal_kernel.services.temporal_store import (
    CloseOperation,
    InsertOperation,
    TemporalStore,
    WriteOutcome,
)
from temporal_kernel.services.transition_coordinator import (
    TransitionKind,
    TransitionResult,
    VersionTransitionCoordinator,
)
from temporal_kernel.services.temporal_repository import TemporalRepository

__all__ = [
    "CloseOperation",
    "InsertOperation",
    "TemporalRepository",
    "TemporalStore",
    "TransitionKind",
    "TransitionResult",
    "VersionTransitionCoordinator",
    "WriteOutcome",
]
