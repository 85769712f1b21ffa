"""
Chain verification -- after-the-fact check of a business key's history.

Responsibility:
    Given every stored version of one business key, report which temporal
    invariants (if any) the chain violates.  Used by tests, by the
    repository's ``verify_chain``, and by operators auditing a key.

Architecture position:
    Kernel > Domain -- pure function over envelopes, zero I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from temporal_kernel.domain.envelope import VersionEnvelope
from temporal_kernel.invariants import TemporalInvariant


@dataclass(frozen=True)
class ChainViolation:
    """One broken invariant, located at a version where possible."""

    invariant: TemporalInvariant
    detail: str
    version: int | None = None


@dataclass(frozen=True)
class ChainReport:
    """Outcome of verifying one business key's chain."""

    business_key: str
    version_count: int
    current_version: int | None
    is_deleted: bool
    violations: tuple[ChainViolation, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return not self.violations

    def violated(self) -> frozenset[TemporalInvariant]:
        return frozenset(v.invariant for v in self.violations)


def verify_chain(
    envelopes: Iterable[VersionEnvelope],
    *,
    expect_deleted: bool | None = None,
) -> ChainReport:
    """
    Check the temporal invariants of one business key's chain.

    Args:
        envelopes: Stored versions of a single business key, any order.
        expect_deleted: If True, the chain must have zero current rows;
            if False, exactly one.  If None, a chain whose last version is
            closed is treated as deleted.

    Returns:
        ChainReport.  An empty chain yields a report with version_count=0
        and no violations.

    Raises:
        ValueError: If envelopes span more than one business key or
            include drafts.
    """
    chain = sorted(envelopes, key=lambda e: e.version)
    if not chain:
        return ChainReport(
            business_key="",
            version_count=0,
            current_version=None,
            is_deleted=False,
        )

    business_key = chain[0].business_key
    if any(e.business_key != business_key for e in chain):
        raise ValueError("verify_chain expects versions of a single business key")
    if any(e.is_draft for e in chain):
        raise ValueError("verify_chain expects stored versions, not drafts")

    violations: list[ChainViolation] = []

    # Current flag must mirror the open interval
    for env in chain:
        if env.is_current != (env.valid_to is None):
            violations.append(
                ChainViolation(
                    TemporalInvariant.CURRENT_FLAG_CONSISTENT,
                    f"is_current={env.is_current} but valid_to={env.valid_to}",
                    env.version,
                )
            )

    # Exactly one current, or zero once deleted
    current = [e for e in chain if e.is_current]
    deleted = expect_deleted if expect_deleted is not None else chain[-1].valid_to is not None
    expected_current = 0 if deleted else 1
    if len(current) != expected_current:
        violations.append(
            ChainViolation(
                TemporalInvariant.SINGLE_CURRENT,
                f"expected {expected_current} current row(s), found {len(current)}",
            )
        )
    elif current and current[0].version != chain[-1].version:
        violations.append(
            ChainViolation(
                TemporalInvariant.SINGLE_CURRENT,
                f"current row is v{current[0].version}, not the latest v{chain[-1].version}",
                current[0].version,
            )
        )

    # Versions 1..N
    versions = [e.version for e in chain]
    if versions != list(range(1, len(chain) + 1)):
        violations.append(
            ChainViolation(
                TemporalInvariant.GAPLESS_VERSIONS,
                f"versions {versions} are not 1..{len(chain)}",
            )
        )

    # Contiguous, strictly increasing
    for prev, nxt in zip(chain, chain[1:]):
        if prev.valid_to != nxt.valid_from:
            violations.append(
                ChainViolation(
                    TemporalInvariant.CONTIGUOUS_INTERVALS,
                    f"v{prev.version}.valid_to={prev.valid_to} != "
                    f"v{nxt.version}.valid_from={nxt.valid_from}",
                    nxt.version,
                )
            )
        if nxt.valid_from <= prev.valid_from:
            violations.append(
                ChainViolation(
                    TemporalInvariant.CONTIGUOUS_INTERVALS,
                    f"valid_from does not increase at v{nxt.version}",
                    nxt.version,
                )
            )

    # created_at stable
    created = chain[0].created_at
    for env in chain[1:]:
        if env.created_at != created:
            violations.append(
                ChainViolation(
                    TemporalInvariant.STABLE_CREATED_AT,
                    f"created_at {env.created_at} differs from v1 {created}",
                    env.version,
                )
            )

    return ChainReport(
        business_key=business_key,
        version_count=len(chain),
        current_version=current[0].version if len(current) == 1 else None,
        is_deleted=deleted,
        violations=tuple(violations),
    )
