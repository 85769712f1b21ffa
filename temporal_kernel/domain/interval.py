"""
ValidityInterval -- half-open ``[start, end)`` validity window.

Responsibility:
    Encodes interval membership exactly once so the store, the point-in-time
    engine, and chain verification agree on boundary instants.

Architecture position:
    Kernel > Domain -- pure value object, zero I/O.

Invariants enforced:
    - ``end`` is exclusive; ``end is None`` means unbounded (+infinity).
    - ``end`` (when set) is strictly after ``start``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from temporal_kernel.exceptions import InvalidIntervalError, InvalidInstantError


@dataclass(frozen=True)
class ValidityInterval:
    """Half-open validity interval of one row-version."""

    start: datetime
    end: datetime | None = None

    def __post_init__(self) -> None:
        if self.start.tzinfo is None:
            raise InvalidInstantError(self.start, field="start")
        if self.end is not None:
            if self.end.tzinfo is None:
                raise InvalidInstantError(self.end, field="end")
            if self.end <= self.start:
                raise InvalidIntervalError(
                    self.start.isoformat(), self.end.isoformat()
                )

    @property
    def is_open(self) -> bool:
        return self.end is None

    def contains(self, instant: datetime) -> bool:
        """True iff ``start <= instant < end`` (open end is +infinity)."""
        if instant < self.start:
            return False
        return self.end is None or instant < self.end

    def overlaps(self, other: ValidityInterval) -> bool:
        """True iff the two intervals share at least one instant."""
        starts_before_other_ends = other.end is None or self.start < other.end
        other_starts_before_self_ends = self.end is None or other.start < self.end
        return starts_before_other_ends and other_starts_before_self_ends

    def abuts(self, successor: ValidityInterval) -> bool:
        """True iff ``successor`` begins exactly where this interval ends."""
        return self.end is not None and self.end == successor.start

    def close_at(self, instant: datetime) -> ValidityInterval:
        """Return a copy ending at ``instant``."""
        return ValidityInterval(start=self.start, end=instant)

    def __str__(self) -> str:
        end = self.end.isoformat() if self.end is not None else "∞"
        return f"[{self.start.isoformat()}, {end})"
