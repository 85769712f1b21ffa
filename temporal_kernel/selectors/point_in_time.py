"""
PointInTimeQueryEngine -- read-only historical queries over version chains.

Responsibility:
    Answers "what did this entity look like at instant t", "what changed
    between t1 and t2", "show the full chain", and "what did every entity
    of this type look like at t".  Also derives a key's timeline and a
    payload diff between two of its versions.

Architecture position:
    Kernel > Selectors.  Read-only; never adds, flushes or commits.  Safe to
    point at a read replica by passing a replica session.

Invariants enforced:
    - ``as_of`` and window bounds are normalized with the same granularity
      writers use, so ``valid_from <= as_of < valid_to`` means the same on
      both sides of the boundary.

Failure modes:
    - InvalidInstantError: naive ``as_of`` or bound.
    - InvalidIntervalError: window end before its start.
    - NotFoundError: ``diff_versions`` on a version that does not exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from sqlalchemy.orm import Session

from temporal_kernel.db.base import TemporalBase
from temporal_kernel.domain.clock import (
    DEFAULT_GRANULARITY,
    ClockGranularity,
    normalize_instant,
)
from temporal_kernel.domain.envelope import DEFAULT_ENTITY_TYPE, VersionEnvelope
from temporal_kernel.domain.interval import ValidityInterval
from temporal_kernel.exceptions import InvalidIntervalError, NotFoundError
from temporal_kernel.logging_config import get_logger
from temporal_kernel.models.temporal_record import TemporalRecord
from temporal_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.point_in_time")

_MISSING = object()


@dataclass(frozen=True)
class PayloadDiff:
    """Field-level difference between two versions of one key."""

    business_key: str
    from_version: int
    to_version: int
    added: dict[str, Any] = field(default_factory=dict)
    removed: dict[str, Any] = field(default_factory=dict)
    changed: dict[str, tuple[Any, Any]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.changed)

    @property
    def changed_fields(self) -> frozenset[str]:
        return frozenset(self.added) | frozenset(self.removed) | frozenset(self.changed)


class PointInTimeQueryEngine(BaseSelector):
    """
    Historical reads for one entity type.

    All results are snapshots taken at call time and returned as frozen
    envelopes (or DTOs built from them).
    """

    def __init__(
        self,
        session: Session,
        row_class: type[TemporalBase] = TemporalRecord,
        entity_type: str = DEFAULT_ENTITY_TYPE,
        granularity: ClockGranularity = DEFAULT_GRANULARITY,
    ):
        super().__init__(session)
        self.entity_type = entity_type
        self.granularity = granularity
        # Inline import: services/ imports this selector.
        from temporal_kernel.services.temporal_store import TemporalStore

        self._store = TemporalStore(session, row_class, entity_type)

    def _normalize(self, value: datetime, name: str) -> datetime:
        return normalize_instant(value, self.granularity, field=name)

    def find_at_time(self, business_key: str, as_of: datetime) -> VersionEnvelope | None:
        """The version with ``valid_from <= as_of < valid_to``, or None."""
        as_of = self._normalize(as_of, "as_of")
        envelope = self._store.read_at_time(business_key, as_of)
        logger.debug(
            "point_in_time_lookup",
            extra={
                "entity_type": self.entity_type,
                "business_key": business_key,
                "as_of": as_of.isoformat(),
                "found_version": envelope.version if envelope else None,
            },
        )
        return envelope

    def find_changes_between(
        self,
        business_key: str,
        start: datetime,
        end: datetime,
    ) -> tuple[VersionEnvelope, ...]:
        """Versions whose ``valid_from`` falls in ``[start, end]``."""
        start = self._normalize(start, "start")
        end = self._normalize(end, "end")
        if end < start:
            raise InvalidIntervalError(start.isoformat(), end.isoformat())
        return self._store.read_changes_between(business_key, start, end)

    def find_history(self, business_key: str) -> tuple[VersionEnvelope, ...]:
        """Every version of ``business_key``, ascending; empty if unknown."""
        return self._store.read_history(business_key)

    def find_all_at_time(
        self,
        as_of: datetime,
        filters: Mapping[str, Any] | None = None,
    ) -> tuple[VersionEnvelope, ...]:
        """One version per key valid at ``as_of``, ordered by business key."""
        return self._store.read_all_at_time(self._normalize(as_of, "as_of"), filters)

    def timeline(self, business_key: str) -> list[tuple[int, ValidityInterval]]:
        """(version, interval) pairs for the whole chain."""
        return [(env.version, env.interval) for env in self.find_history(business_key)]

    def diff_versions(self, business_key: str, from_version: int, to_version: int) -> PayloadDiff:
        """
        Payload changes going from ``from_version`` to ``to_version``.

        Raises:
            NotFoundError: If either version does not exist.
        """
        older = self._store.read_version(business_key, from_version)
        if older is None:
            raise NotFoundError(self.entity_type, f"{business_key} v{from_version}")
        newer = self._store.read_version(business_key, to_version)
        if newer is None:
            raise NotFoundError(self.entity_type, f"{business_key} v{to_version}")

        added: dict[str, Any] = {}
        removed: dict[str, Any] = {}
        changed: dict[str, tuple[Any, Any]] = {}
        for key in sorted(set(older.payload) | set(newer.payload)):
            before = older.payload.get(key, _MISSING)
            after = newer.payload.get(key, _MISSING)
            if before is _MISSING:
                added[key] = after
            elif after is _MISSING:
                removed[key] = before
            elif before != after:
                changed[key] = (before, after)

        return PayloadDiff(
            business_key=business_key,
            from_version=from_version,
            to_version=to_version,
            added=added,
            removed=removed,
            changed=changed,
        )
