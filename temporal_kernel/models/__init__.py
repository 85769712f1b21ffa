"""ORM models owned by the temporal kernel."""

from temporal_kernel.models.temporal_record import TemporalRecord

__all__ = [
    "TemporalRecord",
]
