"""
Lead Domain Models (``temporal_modules.leads.models``).

Responsibility
--------------
Frozen value objects for sales leads: a potential family or case coming
in through a funeral home.  Each ``Lead`` instance is one version of the
lead's business-key chain.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Persisted by
``LeadRepository`` through ``LeadMapper``.

Invariants enforced
-------------------
* All models are ``frozen=True``; a change is a new instance with the
  next version number (``with_changes``).
* ``score`` stays within 0..100.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from uuid import UUID


class LeadStatus(str, Enum):
    """Lead lifecycle states."""
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    NURTURING = "nurturing"
    CONVERTED = "converted"
    LOST = "lost"
    ARCHIVED = "archived"


class LeadSource(str, Enum):
    """Channel the inquiry arrived through."""
    WEBSITE = "website"
    PHONE = "phone"
    EMAIL = "email"
    REFERRAL = "referral"
    SOCIAL_MEDIA = "social_media"
    EVENT = "event"
    DIRECT_MAIL = "direct_mail"
    OTHER = "other"


class LeadType(str, Enum):
    AT_NEED = "at_need"
    PRE_NEED = "pre_need"
    GENERAL_INQUIRY = "general_inquiry"


# Leads in these states are no longer worked.
CLOSED_LEAD_STATUSES = frozenset({LeadStatus.CONVERTED, LeadStatus.LOST, LeadStatus.ARCHIVED})

HOT_LEAD_THRESHOLD = 70


@dataclass(frozen=True)
class Lead:
    """
    One version of a lead.

    ``technical_id``, ``created_at`` and ``valid_from`` are filled in by the
    repository on load; on a new or changed lead they are ignored.
    """
    business_key: str
    funeral_home_id: str
    first_name: str
    last_name: str
    source: LeadSource
    lead_type: LeadType
    created_by: str
    version: int = 1
    status: LeadStatus = LeadStatus.NEW
    score: int = 0
    email: str | None = None
    phone: str | None = None
    assigned_to: str | None = None
    referral_source_id: str | None = None
    notes: str | None = None
    last_contacted_at: datetime | None = None
    converted_to_case_id: str | None = None
    updated_by: str | None = None
    reason: str | None = None
    technical_id: UUID | None = None
    created_at: datetime | None = None
    valid_from: datetime | None = None

    def __post_init__(self):
        if not 0 <= self.score <= 100:
            raise ValueError(f"Lead score must be within 0..100, got {self.score}")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_active(self) -> bool:
        return self.status not in CLOSED_LEAD_STATUSES

    @property
    def is_hot(self) -> bool:
        return self.is_active and self.score >= HOT_LEAD_THRESHOLD

    def with_changes(
        self,
        *,
        updated_by: str | None = None,
        reason: str | None = None,
        **changes,
    ) -> Lead:
        """Next version of this lead with ``changes`` applied."""
        return replace(
            self,
            version=self.version + 1,
            technical_id=None,
            valid_from=None,
            updated_by=updated_by,
            reason=reason,
            **changes,
        )
