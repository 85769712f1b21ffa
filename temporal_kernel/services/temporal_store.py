"""
TemporalStore -- persistence of version rows with an atomic close+insert.

Responsibility:
    Reads version rows (current, by technical id, by version, at an
    instant, history, changes in a window, filtered current sets) and
    applies a version transition as one unit: close the predecessor and
    insert the successor, or neither.

Architecture position:
    Kernel > Services -- the only code that issues SQL against temporal
    tables.  Called by VersionTransitionCoordinator (writes) and by
    TemporalRepository / PointInTimeQueryEngine (reads).

Invariants enforced:
    - Single current row: the close is a guarded UPDATE
      ``WHERE business_key = K AND version = N AND is_current``; zero
      matched rows means another writer got there first.
    - Atomicity: ``write_atomic`` runs inside a SAVEPOINT of the caller's
      transaction.  On any failure the savepoint is rolled back, so the
      caller's session is left usable and the store has no partial effect.
    - Technical ids are never reused (checked before insert, backed by the
      primary key).

Failure modes:
    - ConflictError: guard miss, a unique-index violation during a
      transition, or a serialization failure / deadlock (SQLSTATE
      40001 / 40P01).
    - DuplicateKeyError: unique-index violation while inserting version 1.
    - TechnicalIdReusedError: insert with a technical id already stored.
    - MappingError: payload the row class cannot store.
    - PersistenceError: any other driver error, with the driver exception
      chained as ``__cause__``.  Never retried here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Iterable, Mapping, Sequence
from uuid import UUID, uuid4

from sqlalchemy import ColumnElement, and_, exists, insert, or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from temporal_kernel.db.base import TemporalBase
from temporal_kernel.domain.envelope import DEFAULT_ENTITY_TYPE, VersionEnvelope
from temporal_kernel.exceptions import (
    ConflictError,
    DuplicateKeyError,
    MappingError,
    PersistenceError,
    TechnicalIdReusedError,
)
from temporal_kernel.logging_config import LogContext, get_logger
from temporal_kernel.services.base import BaseService, RowType

logger = get_logger("services.temporal_store")

# SQLSTATEs a snapshot-isolation database uses to abort the losing writer.
SERIALIZATION_FAILURE_CODES = frozenset({"40001", "40P01"})

# Sort keys that name envelope columns rather than payload fields.
_ENVELOPE_SORT_KEYS = frozenset(
    {"business_key", "version", "valid_from", "valid_to", "created_at", "created_by", "updated_by"}
)


@dataclass(frozen=True)
class CloseOperation:
    """Guarded close of the current row ``expected_version`` of a key."""

    business_key: str
    expected_version: int
    closed_at: datetime
    closed_by: str | None = None


@dataclass(frozen=True)
class InsertOperation:
    """Insert of a new current row; the envelope must be stamped."""

    envelope: VersionEnvelope


@dataclass(frozen=True)
class WriteOutcome:
    """Rows as they read after a successful ``write_atomic``."""

    closed: VersionEnvelope | None
    inserted: VersionEnvelope | None


class TemporalStore(BaseService[RowType], Generic[RowType]):
    """
    Version-row persistence for one entity type in one temporal table.

    Contract:
        Every read and write is scoped to ``entity_type`` through the row
        class's scope columns (``TemporalRecord`` shares one table across
        entity types; typed tables have no scope columns).  Reads return
        frozen envelopes, never ORM rows.

    Non-goals:
        - No commit or rollback of the caller's transaction.
        - No retry of any kind.
    """

    def __init__(
        self,
        session: Session,
        row_class: type[RowType],
        entity_type: str = DEFAULT_ENTITY_TYPE,
    ):
        super().__init__(session)
        self.row_class = row_class
        self.entity_type = entity_type
        self._scope = row_class.scope_for(entity_type)

    # ------------------------------------------------------------------
    # Row helpers
    # ------------------------------------------------------------------

    def _scope_criteria(self) -> list[ColumnElement[bool]]:
        return [getattr(self.row_class, name) == value for name, value in self._scope.items()]

    def _key_criteria(self, business_key: str) -> list[ColumnElement[bool]]:
        return self._scope_criteria() + [self.row_class.business_key == business_key]

    def _select(self, *criteria: ColumnElement[bool]):
        # populate_existing: rows closed by a Core UPDATE must not be served
        # stale from the identity map.
        return (
            select(self.row_class)
            .where(*criteria)
            .execution_options(populate_existing=True)
        )

    def _to_envelope(self, row: TemporalBase) -> VersionEnvelope:
        return VersionEnvelope(
            business_key=row.business_key,
            version=row.version,
            payload=row.payload_dict(),
            technical_id=row.id,
            valid_from=row.valid_from,
            valid_to=row.valid_to,
            is_current=row.is_current,
            created_at=row.created_at,
            created_by=row.created_by,
            updated_by=row.updated_by,
            reason=row.reason,
            closed_by=row.closed_by,
            entity_type=self.entity_type,
        )

    def _many(self, stmt) -> tuple[VersionEnvelope, ...]:
        return tuple(self._to_envelope(row) for row in self.session.scalars(stmt))

    def _one(self, stmt) -> VersionEnvelope | None:
        row = self.session.scalars(stmt).first()
        return self._to_envelope(row) if row is not None else None

    def _valid_at(self, as_of: datetime) -> ColumnElement[bool]:
        rc = self.row_class
        return and_(
            rc.valid_from <= as_of,
            or_(rc.valid_to.is_(None), rc.valid_to > as_of),
        )

    def _filter_criteria(self, filters: Mapping[str, Any] | None) -> list[ColumnElement[bool]]:
        criteria: list[ColumnElement[bool]] = []
        for key, value in (filters or {}).items():
            if isinstance(value, (list, tuple, set, frozenset)):
                criteria.append(or_(*(self.row_class.payload_criterion(key, v) for v in value)))
            else:
                criteria.append(self.row_class.payload_criterion(key, value))
        return criteria

    def _ordering(self, order_by: Sequence[str] | None) -> list:
        clauses = []
        for term in order_by or ():
            descending = term.startswith("-")
            key = term.lstrip("-")
            if key in _ENVELOPE_SORT_KEYS:
                expr = getattr(self.row_class, key)
            else:
                expr = self.row_class.payload_sort_key(key)
            clauses.append(expr.desc() if descending else expr.asc())
        # Deterministic tail
        clauses.append(self.row_class.business_key.asc())
        return clauses

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def read_current(self, business_key: str) -> VersionEnvelope | None:
        """Current row of ``business_key``, or None (never saved, or deleted)."""
        stmt = self._select(
            *self._key_criteria(business_key),
            self.row_class.is_current.is_(True),
        )
        return self._one(stmt)

    def read_by_technical_id(self, technical_id: UUID | str) -> VersionEnvelope | None:
        """Row with this technical id (any version, current or not)."""
        if not isinstance(technical_id, UUID):
            try:
                technical_id = UUID(str(technical_id))
            except ValueError:
                return None
        stmt = self._select(*self._scope_criteria(), self.row_class.id == technical_id)
        return self._one(stmt)

    def read_version(self, business_key: str, version: int) -> VersionEnvelope | None:
        stmt = self._select(
            *self._key_criteria(business_key),
            self.row_class.version == version,
        )
        return self._one(stmt)

    def read_at_time(self, business_key: str, as_of: datetime) -> VersionEnvelope | None:
        """Row with ``valid_from <= as_of < valid_to`` (open end = infinity)."""
        stmt = (
            self._select(*self._key_criteria(business_key), self._valid_at(as_of))
            .order_by(self.row_class.version.desc())
            .limit(1)
        )
        return self._one(stmt)

    def read_history(self, business_key: str) -> tuple[VersionEnvelope, ...]:
        """All versions, ascending by version."""
        stmt = self._select(*self._key_criteria(business_key)).order_by(
            self.row_class.version.asc()
        )
        return self._many(stmt)

    def read_changes_between(
        self,
        business_key: str,
        start: datetime,
        end: datetime,
    ) -> tuple[VersionEnvelope, ...]:
        """Versions that became valid within ``[start, end]`` (both inclusive)."""
        rc = self.row_class
        stmt = self._select(
            *self._key_criteria(business_key),
            rc.valid_from >= start,
            rc.valid_from <= end,
        ).order_by(rc.version.asc())
        return self._many(stmt)

    def read_current_where(
        self,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] | None = None,
        limit: int | None = None,
        criteria: Iterable[ColumnElement[bool]] = (),
    ) -> tuple[VersionEnvelope, ...]:
        """
        Current rows of this entity type matching payload ``filters``.

        A filter value that is a list/tuple/set matches any of its members.
        ``order_by`` entries name envelope columns or payload fields; a
        leading ``-`` sorts descending.  ``criteria`` are extra SQL
        expressions against the row class (typed tables only).
        """
        stmt = self._select(
            *self._scope_criteria(),
            self.row_class.is_current.is_(True),
            *self._filter_criteria(filters),
            *criteria,
        ).order_by(*self._ordering(order_by))
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._many(stmt)

    def read_all_at_time(
        self,
        as_of: datetime,
        filters: Mapping[str, Any] | None = None,
    ) -> tuple[VersionEnvelope, ...]:
        """One row per business key that was valid at ``as_of``."""
        stmt = self._select(
            *self._scope_criteria(),
            self._valid_at(as_of),
            *self._filter_criteria(filters),
        ).order_by(self.row_class.business_key.asc())
        return self._many(stmt)

    def key_exists(self, business_key: str) -> bool:
        """True if the key has any row at all, deleted keys included."""
        stmt = select(exists().where(*self._key_criteria(business_key)))
        return bool(self.session.scalar(stmt))

    def technical_id_exists(self, technical_id: UUID) -> bool:
        # Across all scopes: a technical id is unique table-wide.
        stmt = select(exists().where(self.row_class.id == technical_id))
        return bool(self.session.scalar(stmt))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def write_atomic(
        self,
        close_op: CloseOperation | None = None,
        insert_op: InsertOperation | None = None,
    ) -> WriteOutcome:
        """
        Apply a close and/or an insert as one unit.

        Preconditions:
            At least one operation.  ``insert_op.envelope`` is stamped
            (``valid_from`` and ``created_at`` set).

        Postconditions:
            Either both operations are applied (and flushed) or neither is.
            The caller's outer transaction is left open for commit.

        Raises:
            ConflictError, DuplicateKeyError, TechnicalIdReusedError,
            MappingError, PersistenceError (see module docstring).
        """
        if close_op is None and insert_op is None:
            raise ValueError("write_atomic needs a close or an insert operation")

        values = self._insert_values(insert_op) if insert_op is not None else None
        business_key = (close_op or insert_op.envelope).business_key  # type: ignore[union-attr]
        with LogContext.bind(entity_type=self.entity_type, business_key=business_key):
            return self._write(close_op, insert_op, values, business_key)

    def _write(
        self,
        close_op: CloseOperation | None,
        insert_op: InsertOperation | None,
        values: dict[str, Any] | None,
        business_key: str,
    ) -> WriteOutcome:
        try:
            with self.session.begin_nested():
                closed = self._apply_close(close_op) if close_op is not None else None
                inserted = self._apply_insert(insert_op, values) if insert_op is not None else None
        except IntegrityError as exc:
            if close_op is None and insert_op is not None and insert_op.envelope.version == 1:
                logger.warning("temporal_write_duplicate_key", extra={"version": 1})
                raise DuplicateKeyError(self.entity_type, business_key) from exc
            logger.warning("temporal_write_conflict", extra={"cause": "integrity_error"})
            raise ConflictError(
                self.entity_type,
                business_key,
                close_op.expected_version if close_op is not None else None,
            ) from exc
        except DBAPIError as exc:
            pgcode = getattr(exc.orig, "pgcode", None)
            if pgcode in SERIALIZATION_FAILURE_CODES:
                logger.warning(
                    "temporal_write_conflict",
                    extra={
                        "cause": "serialization_failure",
                        "sqlstate": pgcode,
                    },
                )
                raise ConflictError(
                    self.entity_type,
                    business_key,
                    close_op.expected_version if close_op is not None else None,
                ) from exc
            logger.error("temporal_write_failed", extra={"sqlstate": pgcode})
            raise PersistenceError("write_atomic", str(exc.orig)) from exc

        logger.debug(
            "temporal_write_applied",
            extra={
                "closed_version": closed.version if closed else None,
                "inserted_version": inserted.version if inserted else None,
            },
        )
        return WriteOutcome(closed=closed, inserted=inserted)

    def _insert_values(self, insert_op: InsertOperation) -> dict[str, Any]:
        env = insert_op.envelope
        if env.valid_from is None or env.created_at is None:
            raise MappingError(self.entity_type, "insert requires a stamped envelope")
        try:
            payload_values = self.row_class.payload_columns(env.payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise MappingError(self.entity_type, str(exc)) from exc
        return {
            **self._scope,
            **payload_values,
            "id": env.technical_id or uuid4(),
            "business_key": env.business_key,
            "version": env.version,
            "valid_from": env.valid_from,
            "valid_to": None,
            "is_current": True,
            "created_at": env.created_at,
            "created_by": env.created_by,
            "updated_by": env.updated_by,
            "reason": env.reason,
            "closed_by": None,
        }

    def _apply_close(self, close_op: CloseOperation) -> VersionEnvelope:
        rc = self.row_class
        stmt = (
            update(rc)
            .where(
                *self._key_criteria(close_op.business_key),
                rc.version == close_op.expected_version,
                rc.is_current.is_(True),
            )
            .values(valid_to=close_op.closed_at, is_current=False, closed_by=close_op.closed_by)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        if result.rowcount != 1:
            logger.warning(
                "temporal_close_guard_missed",
                extra={"expected_version": close_op.expected_version},
            )
            raise ConflictError(self.entity_type, close_op.business_key, close_op.expected_version)

        closed = self.read_version(close_op.business_key, close_op.expected_version)
        assert closed is not None
        return closed

    def _apply_insert(self, insert_op: InsertOperation, values: dict[str, Any]) -> VersionEnvelope:
        env = insert_op.envelope
        if env.technical_id is not None and self.technical_id_exists(env.technical_id):
            raise TechnicalIdReusedError(self.entity_type, env.business_key, str(env.technical_id))

        self.session.execute(insert(self.row_class).values(**values))
        return env.stamped(
            technical_id=values["id"],
            valid_from=env.valid_from,
            created_at=env.created_at,
        )
