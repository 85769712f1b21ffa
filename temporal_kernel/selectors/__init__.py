"""Selectors for the temporal kernel (read side)."""

from temporal_kernel.selectors.point_in_time import PayloadDiff, PointInTimeQueryEngine

__all__ = [
    "PayloadDiff",
    "PointInTimeQueryEngine",
]
