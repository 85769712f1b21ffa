"""
Kernel Invariants Contract.

These invariants are structural law for every business-key chain.  No
entity repository, mapper, or configuration may relax them.

This module exists solely to declare the invariants explicitly.  The
enforcement is distributed across VersionTransitionCoordinator (guarded
transitions, single captured instant), TemporalStore (atomic writes),
the temporal table constraints, and the ORM immutability listeners.
``temporal_kernel.domain.chain.verify_chain`` checks them after the fact.
"""

from enum import Enum, unique


@unique
class TemporalInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    SINGLE_CURRENT = "single_current"
    """Exactly one row per business key has is_current = true, except
    deleted keys, which have zero.  Enforced by the guarded close and the
    partial unique index on (business_key) WHERE is_current."""

    CONTIGUOUS_INTERVALS = "contiguous_intervals"
    """Row v's valid_to equals row v+1's valid_from; intervals never
    overlap.  Enforced by using one captured instant per transition."""

    GAPLESS_VERSIONS = "gapless_versions"
    """Versions form 1..N with no gaps.  Enforced by the WHERE version = N-1
    guard and the unique (business_key, version) constraint."""

    APPEND_ONLY = "append_only"
    """Technical ids are never reassigned and history rows are never
    physically deleted.  Enforced by the immutability listeners."""

    STABLE_CREATED_AT = "stable_created_at"
    """created_at is identical across all versions of a business key.
    Enforced by the coordinator copying it from the predecessor."""

    CURRENT_FLAG_CONSISTENT = "current_flag_consistent"
    """is_current is true iff valid_to is open.  Enforced by a table check
    constraint."""


ALL_TEMPORAL_INVARIANTS: frozenset[TemporalInvariant] = frozenset(TemporalInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "temporal_config",
    "temporal_modules",
)
