"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service in the kernel.  Services receive a SQLAlchemy
    ``Session`` and work inside the caller's transaction, using savepoints
    and ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services never commit or roll back the outer
    transaction.  The caller (a request handler, ``session_scope()``, or
    the test harness) owns commit/rollback, so a service call can be one
    step of a larger unit of work.

Failure modes:
    - If a subclass calls ``session.commit()``, a transition could become
      visible before the rest of the caller's unit of work.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from temporal_kernel.db.base import TemporalBase

RowType = TypeVar("RowType", bound=TemporalBase)


class BaseService(ABC, Generic[RowType]):
    """
    Abstract base class for kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and persists
        changes within the active transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Read-only queries belong in ``temporal_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
