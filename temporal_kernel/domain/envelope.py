"""
VersionEnvelope -- canonical shape of one stored row-version.

Responsibility:
    The envelope is the only thing the kernel knows about an entity: its
    business key, version number, validity interval, current flag, audit
    metadata, and an opaque payload.  Entity repositories translate their
    domain objects to and from this shape through a mapper.

Architecture position:
    Kernel > Domain -- pure value object, zero I/O.

Invariants enforced:
    - ``is_current`` is True iff ``valid_to`` is None (checked on stored
      envelopes; drafts carry no temporal fields yet).

Drafts:
    A mapper may hand the kernel an envelope whose ``technical_id``,
    ``valid_from``, and ``created_at`` are unset.  The transition
    coordinator assigns every temporal field; caller-supplied validity
    fields on a draft are ignored.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any
from uuid import UUID

from temporal_kernel.domain.interval import ValidityInterval

DEFAULT_ENTITY_TYPE = "record"


@dataclass(frozen=True)
class VersionEnvelope:
    """
    One immutable version of a business-keyed entity.

    Guarantees:
        - Equality compares every field, payload included.
        - Instances are never mutated; use ``replace``-style helpers.
    """

    business_key: str
    version: int
    payload: dict[str, Any] = field(default_factory=dict, hash=False)
    technical_id: UUID | None = None
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    is_current: bool = True
    created_at: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None
    reason: str | None = None
    closed_by: str | None = None
    entity_type: str = DEFAULT_ENTITY_TYPE

    @property
    def is_draft(self) -> bool:
        """True until the coordinator has stamped the temporal fields."""
        return self.valid_from is None

    @property
    def interval(self) -> ValidityInterval:
        """Validity interval of a stored envelope."""
        if self.valid_from is None:
            raise ValueError(
                f"Draft {self.entity_type} {self.business_key} v{self.version} "
                f"has no validity interval yet"
            )
        return ValidityInterval(start=self.valid_from, end=self.valid_to)

    def is_valid_at(self, instant: datetime) -> bool:
        return not self.is_draft and self.interval.contains(instant)

    def next_draft(
        self,
        payload: dict[str, Any],
        updated_by: str | None = None,
        reason: str | None = None,
    ) -> VersionEnvelope:
        """
        Draft of the successor version built on top of this one.

        The successor keeps the business key, entity type, creator and
        ``created_at``; its temporal fields are left for the coordinator.
        """
        return VersionEnvelope(
            business_key=self.business_key,
            version=self.version + 1,
            payload=dict(payload),
            technical_id=None,
            created_at=self.created_at,
            created_by=self.created_by,
            updated_by=updated_by,
            reason=reason,
            entity_type=self.entity_type,
        )

    def stamped(
        self,
        *,
        technical_id: UUID,
        valid_from: datetime,
        created_at: datetime,
    ) -> VersionEnvelope:
        """Copy with the temporal fields of a freshly inserted current row."""
        return replace(
            self,
            technical_id=technical_id,
            valid_from=valid_from,
            valid_to=None,
            is_current=True,
            created_at=created_at,
            closed_by=None,
        )

    def closed(self, instant: datetime, closed_by: str | None = None) -> VersionEnvelope:
        """Copy of this row as it reads after being closed at ``instant``."""
        return replace(self, valid_to=instant, is_current=False, closed_by=closed_by)
