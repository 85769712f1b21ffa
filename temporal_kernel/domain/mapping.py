"""
Entity mappers -- the seam between domain objects and envelopes.

Every entity repository supplies one mapper: ``to_envelope`` turns a
domain object into a (draft or stored) ``VersionEnvelope`` and
``from_envelope`` rebuilds the domain object.  The pair must round-trip:
``from_envelope(to_envelope(x)) == x``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Generic, TypeVar

from temporal_kernel.domain.envelope import VersionEnvelope

T = TypeVar("T")


class EntityMapper(ABC, Generic[T]):
    """Bidirectional mapping between a domain type and the envelope."""

    entity_type: str = "record"

    @abstractmethod
    def to_envelope(self, entity: T) -> VersionEnvelope:
        ...

    @abstractmethod
    def from_envelope(self, envelope: VersionEnvelope) -> T:
        ...


class FunctionMapper(EntityMapper[T]):
    """Mapper assembled from a plain function pair."""

    def __init__(
        self,
        entity_type: str,
        to_envelope: Callable[[T], VersionEnvelope],
        from_envelope: Callable[[VersionEnvelope], T],
    ):
        self.entity_type = entity_type
        self._to_envelope = to_envelope
        self._from_envelope = from_envelope

    def to_envelope(self, entity: T) -> VersionEnvelope:
        return self._to_envelope(entity)

    def from_envelope(self, envelope: VersionEnvelope) -> T:
        return self._from_envelope(envelope)


class IdentityMapper(EntityMapper[VersionEnvelope]):
    """Repository over raw envelopes (no domain type)."""

    def __init__(self, entity_type: str = "record"):
        self.entity_type = entity_type

    def to_envelope(self, entity: VersionEnvelope) -> VersionEnvelope:
        return entity

    def from_envelope(self, envelope: VersionEnvelope) -> VersionEnvelope:
        return envelope
