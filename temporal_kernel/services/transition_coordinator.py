"""
VersionTransitionCoordinator -- the single writer path for version rows.

Responsibility:
    Decides what a save means (create version 1, or transition N-1 -> N),
    captures one instant, stamps every temporal field, and hands the store
    a close+insert pair to apply atomically.  Also retires a key (soft
    delete): a guarded close with no successor.

Architecture position:
    Kernel > Services -- imperative shell.  Called by TemporalRepository.
    Uses TemporalStore for all I/O and a Clock for time.

Invariants enforced:
    - Single current row: the predecessor must be the current row at write
      time (guarded close); otherwise ConflictError.
    - Contiguous intervals: the closed row's valid_to and the new row's
      valid_from are the same captured instant.
    - Gapless versions: version N is only written on top of N-1.
    - Stable created_at: copied from the predecessor, never from the caller.
    - No resurrection: version 1 for a key with any history is rejected.

Failure modes:
    - DuplicateKeyError: version 1 for a key that already has rows.
    - NotFoundError: version N > 1 for a key that has no rows; retire of a
      key with no current row.
    - ConflictError: predecessor no longer current, or the key was retired.
    - ClockRegressionError: captured instant not after predecessor valid_from.
    - InvalidVersionError / InvalidBusinessKeyError: malformed envelope, or
      version N when the current row is older than N-1.
    - PersistenceError: propagated from the store, never retried.

Audit relevance:
    Every transition logs one structured event (version_created,
    version_transitioned, version_retired) naming the versions and instant;
    conflicts log transition_conflict.  save and retire bind entity_type and
    business_key into LogContext, so every record emitted underneath them
    (store events included) carries the key.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy.orm import Session

from temporal_kernel.db.base import TemporalBase
from temporal_kernel.domain.clock import Clock, clock_granularity, normalize_instant
from temporal_kernel.domain.envelope import DEFAULT_ENTITY_TYPE, VersionEnvelope
from temporal_kernel.exceptions import (
    ClockRegressionError,
    ConflictError,
    DuplicateKeyError,
    InvalidBusinessKeyError,
    InvalidVersionError,
    NotFoundError,
)
from temporal_kernel.logging_config import LogContext, get_logger
from temporal_kernel.services.base import BaseService
from temporal_kernel.services.temporal_store import (
    CloseOperation,
    InsertOperation,
    TemporalStore,
)

logger = get_logger("services.transition_coordinator")


class TransitionKind(str, Enum):
    """What a coordinator call did to the chain."""

    CREATED = "created"
    TRANSITIONED = "transitioned"
    RETIRED = "retired"


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of one committed-to-session transition.

    ``record`` is the new current version (None after a retire);
    ``closed`` is the version that was closed (None on create).
    """

    kind: TransitionKind
    record: VersionEnvelope | None
    closed: VersionEnvelope | None
    instant: datetime


class VersionTransitionCoordinator(BaseService[TemporalBase]):
    """
    Turns save/delete intents into guarded store writes.

    Contract:
        One instance per session (per request or thread).  The caller owns
        commit.  No method retries or merges: a lost race surfaces as
        ConflictError and the caller reloads.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock,
        row_class: type[TemporalBase],
        entity_type: str = DEFAULT_ENTITY_TYPE,
        store: TemporalStore | None = None,
    ):
        super().__init__(session)
        self._clock = clock
        self._granularity = clock_granularity(clock)
        self.entity_type = entity_type
        self.store = store or TemporalStore(session, row_class, entity_type)

    def _capture_instant(self) -> datetime:
        # Exactly one reading per transition; used for close and insert.
        return normalize_instant(self._clock.now_utc(), self._granularity)

    def _validate(self, envelope: VersionEnvelope) -> None:
        key = envelope.business_key
        if not isinstance(key, str) or not key.strip():
            raise InvalidBusinessKeyError(key)
        version = envelope.version
        if isinstance(version, bool) or not isinstance(version, int) or version < 1:
            raise InvalidVersionError(key, version)

    def save(self, envelope: VersionEnvelope) -> TransitionResult:
        """
        Persist ``envelope`` as version 1 or as the successor of N-1.

        Temporal fields on the envelope (technical_id, valid_from,
        valid_to, is_current, created_at, closed_by) are ignored and
        reassigned here.
        """
        self._validate(envelope)
        envelope = replace(envelope, entity_type=self.entity_type)
        with LogContext.bind(entity_type=self.entity_type, business_key=envelope.business_key):
            if envelope.version == 1:
                return self._create(envelope)
            return self._transition(envelope)

    def _create(self, envelope: VersionEnvelope) -> TransitionResult:
        key = envelope.business_key
        if self.store.key_exists(key):
            logger.warning("duplicate_business_key_rejected", extra={"version": 1})
            raise DuplicateKeyError(self.entity_type, key)

        instant = self._capture_instant()
        draft = replace(envelope, closed_by=None)
        outcome = self.store.write_atomic(
            insert_op=InsertOperation(
                draft.stamped(technical_id=uuid4(), valid_from=instant, created_at=instant)
            )
        )

        logger.info(
            "version_created",
            extra={
                "version": 1,
                "technical_id": str(outcome.inserted.technical_id),
                "valid_from": instant.isoformat(),
                "actor": envelope.created_by,
            },
        )
        return TransitionResult(
            kind=TransitionKind.CREATED,
            record=outcome.inserted,
            closed=None,
            instant=instant,
        )

    def _transition(self, envelope: VersionEnvelope) -> TransitionResult:
        key = envelope.business_key
        expected = envelope.version - 1

        predecessor = self.store.read_version(key, expected)
        if predecessor is None:
            if not self.store.key_exists(key):
                raise NotFoundError(self.entity_type, key)
            current = self.store.read_current(key)
            if current is not None:
                # Versions are gapless, so a missing N-1 means N skips ahead.
                logger.warning(
                    "version_skip_rejected",
                    extra={"version": envelope.version, "current_version": current.version},
                )
                raise InvalidVersionError(key, envelope.version, current_version=current.version)
            self._log_conflict(expected, "predecessor_missing")
            raise ConflictError(self.entity_type, key, expected)
        if not predecessor.is_current:
            self._log_conflict(expected, "predecessor_not_current")
            raise ConflictError(self.entity_type, key, expected)

        instant = self._capture_instant()
        if instant <= predecessor.valid_from:
            logger.error(
                "clock_regression_rejected",
                extra={
                    "predecessor_valid_from": predecessor.valid_from.isoformat(),
                    "instant": instant.isoformat(),
                },
            )
            raise ClockRegressionError(key, predecessor.valid_from.isoformat(), instant.isoformat())

        successor = replace(
            envelope,
            created_by=envelope.created_by or predecessor.created_by,
            closed_by=None,
        ).stamped(
            technical_id=uuid4(),
            valid_from=instant,
            created_at=predecessor.created_at,
        )
        try:
            outcome = self.store.write_atomic(
                close_op=CloseOperation(
                    business_key=key,
                    expected_version=expected,
                    closed_at=instant,
                    closed_by=envelope.updated_by,
                ),
                insert_op=InsertOperation(successor),
            )
        except ConflictError:
            self._log_conflict(expected, "guard_missed")
            raise

        logger.info(
            "version_transitioned",
            extra={
                "from_version": expected,
                "version": successor.version,
                "technical_id": str(outcome.inserted.technical_id),
                "valid_from": instant.isoformat(),
                "actor": envelope.updated_by,
                "reason": envelope.reason,
            },
        )
        return TransitionResult(
            kind=TransitionKind.TRANSITIONED,
            record=outcome.inserted,
            closed=outcome.closed,
            instant=instant,
        )

    def retire(
        self,
        business_key: str,
        actor: str | None = None,
        reason: str | None = None,
    ) -> TransitionResult:
        """
        Soft delete: close the current row and insert nothing.

        Raises:
            NotFoundError: If the key has no current row.
            ConflictError: If the current row changed before the close.
        """
        if not isinstance(business_key, str) or not business_key.strip():
            raise InvalidBusinessKeyError(business_key)
        with LogContext.bind(entity_type=self.entity_type, business_key=business_key):
            return self._retire(business_key, actor, reason)

    def _retire(self, business_key: str, actor: str | None, reason: str | None) -> TransitionResult:
        current = self.store.read_current(business_key)
        if current is None:
            raise NotFoundError(self.entity_type, business_key)

        instant = self._capture_instant()
        if instant <= current.valid_from:
            raise ClockRegressionError(
                business_key, current.valid_from.isoformat(), instant.isoformat()
            )

        try:
            outcome = self.store.write_atomic(
                close_op=CloseOperation(
                    business_key=business_key,
                    expected_version=current.version,
                    closed_at=instant,
                    closed_by=actor,
                )
            )
        except ConflictError:
            self._log_conflict(current.version, "guard_missed")
            raise

        logger.info(
            "version_retired",
            extra={
                "version": current.version,
                "valid_to": instant.isoformat(),
                "actor": actor,
                "reason": reason,
            },
        )
        return TransitionResult(
            kind=TransitionKind.RETIRED,
            record=None,
            closed=outcome.closed,
            instant=instant,
        )

    def _log_conflict(self, expected_version: int, cause: str) -> None:
        logger.warning(
            "transition_conflict",
            extra={
                "expected_version": expected_version,
                "cause": cause,
            },
        )
