"""
Module: temporal_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors form the "Q" side of the CQRS-lite split: structured read
    access to version history without mutation capability.
Architecture position: Kernel > Selectors.  May import from db/, models/,
    domain/ and the read methods of services/temporal_store.py.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller but never
      call session.add(), session.delete(), session.commit(), or
      session.flush().
    - DTO return convention: selectors return frozen dataclasses
      (envelopes, diffs, intervals), never ORM rows.
    - Session ownership: the caller owns the session and its transaction
      scope, so a selector may run against a read replica.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
