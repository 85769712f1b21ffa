"""
TemporalRepository -- generic repository contract over versioned entities.

Responsibility:
    The one entry point entity repositories use.  Maps domain objects to
    envelopes through an EntityMapper, sends writes through the
    VersionTransitionCoordinator, and reads through the TemporalStore and
    PointInTimeQueryEngine.  Entity repositories add domain-specific
    finders on top; they never touch temporal columns themselves.

Architecture position:
    Kernel > Services.  Depends on domain/ (envelope, mapping, clock,
    chain), the store, the coordinator and the point-in-time selector.

Invariants enforced:
    Delegated: every write goes through the coordinator, every read
    through the store, so callers cannot bypass the guard.

Failure modes:
    - NotFoundError for find_current_by_id, find_history, find_at_time
      and delete when nothing matches.
    - ConflictError / DuplicateKeyError / PersistenceError from save.
    - MappingError when the mapper yields a non-envelope.
    - InvalidInstantError for naive ``as_of`` / window bounds.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Generic, Mapping, Sequence, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from temporal_kernel.db.base import TemporalBase
from temporal_kernel.domain.chain import ChainReport, verify_chain
from temporal_kernel.domain.clock import Clock, clock_granularity, normalize_instant
from temporal_kernel.domain.envelope import VersionEnvelope
from temporal_kernel.domain.mapping import EntityMapper
from temporal_kernel.exceptions import MappingError, NotFoundError
from temporal_kernel.logging_config import LogContext, get_logger
from temporal_kernel.models.temporal_record import TemporalRecord
from temporal_kernel.selectors.point_in_time import PointInTimeQueryEngine
from temporal_kernel.services.temporal_store import TemporalStore
from temporal_kernel.services.transition_coordinator import (
    TransitionResult,
    VersionTransitionCoordinator,
)

logger = get_logger("services.temporal_repository")

T = TypeVar("T")


class TemporalRepository(Generic[T]):
    """
    Current, historical and point-in-time access to one entity type.

    Contract:
        ``mapper.from_envelope(mapper.to_envelope(x)) == x`` for every
        entity the repository stores.  The session's transaction is owned
        by the caller; ``save`` and ``delete`` leave it open.

    Usage:
        repo = TemporalRepository(session, ContractMapper(), clock)
        repo.save(contract)                 # version 1
        repo.save(contract.with_changes(...))  # version 2
        session.commit()
    """

    def __init__(
        self,
        session: Session,
        mapper: EntityMapper[T],
        clock: Clock,
        row_class: type[TemporalBase] = TemporalRecord,
        entity_type: str | None = None,
    ):
        self.session = session
        self.mapper = mapper
        self.clock = clock
        self.entity_type = entity_type or mapper.entity_type
        self._granularity = clock_granularity(clock)
        self.store = TemporalStore(session, row_class, self.entity_type)
        self.coordinator = VersionTransitionCoordinator(
            session, clock, row_class, self.entity_type, store=self.store
        )
        self.queries = PointInTimeQueryEngine(
            session, row_class, self.entity_type, granularity=self._granularity
        )

    def _to_domain(self, envelope: VersionEnvelope) -> T:
        return self.mapper.from_envelope(envelope)

    def _to_envelope(self, entity: T) -> VersionEnvelope:
        envelope = self.mapper.to_envelope(entity)
        if not isinstance(envelope, VersionEnvelope):
            raise MappingError(
                self.entity_type,
                f"to_envelope returned {type(envelope).__name__}, expected VersionEnvelope",
            )
        return envelope

    # ------------------------------------------------------------------
    # Current
    # ------------------------------------------------------------------

    def find_current_by_id(self, id: UUID | str) -> T:
        """
        Current version addressed by a technical id or a business key.

        A technical id of any version resolves to its key's current row.

        Raises:
            NotFoundError: If neither lookup finds a current row.
        """
        row = self.store.read_by_technical_id(id)
        if row is not None:
            current = row if row.is_current else self.store.read_current(row.business_key)
        else:
            current = self.store.read_current(str(id))
        if current is None:
            raise NotFoundError(self.entity_type, str(id))
        return self._to_domain(current)

    def find_current_by_business_key(self, business_key: str) -> T | None:
        """Current version, or None when never saved or deleted."""
        current = self.store.read_current(business_key)
        return self._to_domain(current) if current is not None else None

    def exists(self, business_key: str) -> bool:
        """True while the key has a current version."""
        return self.store.read_current(business_key) is not None

    def find_current(
        self,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] | None = None,
        limit: int | None = None,
    ) -> list[T]:
        """Current versions whose payload matches ``filters``."""
        return [
            self._to_domain(env)
            for env in self.store.read_current_where(filters, order_by, limit)
        ]

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def find_history(self, business_key: str) -> list[T]:
        """
        Every version, oldest first.

        Raises:
            NotFoundError: If the key has no rows.
        """
        history = self.queries.find_history(business_key)
        if not history:
            raise NotFoundError(self.entity_type, business_key)
        return [self._to_domain(env) for env in history]

    def find_at_time(self, business_key: str, as_of: datetime) -> T:
        """
        Version valid at ``as_of``.

        Raises:
            NotFoundError: If no version was valid then (before creation,
                or after deletion).
        """
        envelope = self.queries.find_at_time(business_key, as_of)
        if envelope is None:
            raise NotFoundError(
                self.entity_type,
                business_key,
                as_of=normalize_instant(as_of, self._granularity, "as_of").isoformat(),
            )
        return self._to_domain(envelope)

    def find_changes_between(self, business_key: str, start: datetime, end: datetime) -> list[T]:
        """Versions that became valid in ``[start, end]``; empty if none."""
        return [
            self._to_domain(env)
            for env in self.queries.find_changes_between(business_key, start, end)
        ]

    def find_all_at_time(
        self,
        as_of: datetime,
        filters: Mapping[str, Any] | None = None,
    ) -> list[T]:
        """Every entity of this type as it stood at ``as_of``."""
        return [self._to_domain(env) for env in self.queries.find_all_at_time(as_of, filters)]

    def verify_chain(self, business_key: str) -> ChainReport:
        """Check the stored chain of ``business_key`` against the invariants."""
        return verify_chain(self.store.read_history(business_key))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, entity: T) -> None:
        """
        Persist ``entity``: version 1 creates, version N supersedes N-1.

        Raises:
            DuplicateKeyError: version 1 for a key that already has rows.
            NotFoundError: version N > 1 for an unknown key.
            ConflictError: version N-1 is no longer current.
            InvalidVersionError: version N skips past current + 1.
            PersistenceError: storage failure (safe to retry).
        """
        self.save_envelope(self._to_envelope(entity))

    def save_envelope(self, envelope: VersionEnvelope) -> TransitionResult:
        """Like ``save`` but takes an envelope and returns the transition."""
        with LogContext.bind(
            entity_type=self.entity_type,
            business_key=envelope.business_key,
            actor_id=envelope.updated_by or envelope.created_by,
        ):
            logger.debug("repository_save_requested", extra={"version": envelope.version})
            return self.coordinator.save(envelope)

    def update(self, entity: T) -> T:
        """Save ``entity`` and return the stored current version."""
        result = self.save_envelope(self._to_envelope(entity))
        return self._to_domain(result.record)

    def delete(
        self,
        business_key: str,
        actor: str | None = None,
        reason: str | None = None,
    ) -> None:
        """
        Soft delete: close the current version.  History is kept.

        Raises:
            NotFoundError: If the key has no current version.
            ConflictError: If the current version changed concurrently.
        """
        with LogContext.bind(entity_type=self.entity_type, business_key=business_key, actor_id=actor):
            logger.debug("repository_delete_requested", extra={"reason": reason})
            self.coordinator.retire(business_key, actor=actor, reason=reason)
