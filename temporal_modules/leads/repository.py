"""
LeadRepository -- versioned persistence and pipeline queries for leads.

Everything temporal is inherited from TemporalRepository; this class adds
the funeral-home pipeline views over current versions.
"""

from __future__ import annotations

from datetime import timedelta

from sqlalchemy import or_
from sqlalchemy.orm import Session

from temporal_kernel.domain.clock import Clock
from temporal_kernel.logging_config import get_logger
from temporal_kernel.services.temporal_repository import TemporalRepository
from temporal_modules.leads.mapper import LeadMapper
from temporal_modules.leads.models import (
    CLOSED_LEAD_STATUSES,
    HOT_LEAD_THRESHOLD,
    Lead,
    LeadStatus,
)
from temporal_modules.leads.orm import LeadVersionModel

logger = get_logger("modules.leads.repository")

_CLOSED_STATUS_VALUES = sorted(s.value for s in CLOSED_LEAD_STATUSES)


class LeadRepository(TemporalRepository[Lead]):
    """Leads stored in ``lead_versions``."""

    def __init__(self, session: Session, clock: Clock):
        super().__init__(session, LeadMapper(), clock, row_class=LeadVersionModel)

    def _current(self, filters=None, order_by=None, criteria=()) -> list[Lead]:
        return [
            self._to_domain(env)
            for env in self.store.read_current_where(filters, order_by, criteria=criteria)
        ]

    def find_by_funeral_home(
        self,
        funeral_home_id: str,
        status: LeadStatus | None = None,
        assigned_to: str | None = None,
        min_score: int | None = None,
    ) -> list[Lead]:
        """Current leads of a funeral home, highest score first."""
        filters: dict = {"funeral_home_id": funeral_home_id}
        if status is not None:
            filters["status"] = status.value
        if assigned_to is not None:
            filters["assigned_to"] = assigned_to
        criteria = []
        if min_score is not None:
            criteria.append(LeadVersionModel.score >= min_score)
        return self._current(filters, ["-score"], criteria)

    def find_hot_leads(
        self,
        funeral_home_id: str,
        threshold: int = HOT_LEAD_THRESHOLD,
    ) -> list[Lead]:
        """Open leads scoring at least ``threshold``, highest score first."""
        leads = self._current(
            {"funeral_home_id": funeral_home_id},
            ["-score"],
            [
                LeadVersionModel.score >= threshold,
                LeadVersionModel.status.notin_(_CLOSED_STATUS_VALUES),
            ],
        )
        logger.debug(
            "hot_leads_listed",
            extra={"funeral_home_id": funeral_home_id, "threshold": threshold, "count": len(leads)},
        )
        return leads

    def find_by_referral_source(self, referral_source_id: str) -> list[Lead]:
        """Current leads from one referral source, newest first."""
        return self._current({"referral_source_id": referral_source_id}, ["-created_at"])

    def find_needing_follow_up(self, funeral_home_id: str, days_threshold: int) -> list[Lead]:
        """
        Open leads not contacted within ``days_threshold`` days.

        Never-contacted leads are included.  The cutoff comes from the
        repository's clock.
        """
        cutoff = self.clock.now_utc() - timedelta(days=days_threshold)
        return self._current(
            {"funeral_home_id": funeral_home_id},
            ["-score"],
            [
                LeadVersionModel.status.notin_(_CLOSED_STATUS_VALUES),
                or_(
                    LeadVersionModel.last_contacted_at.is_(None),
                    LeadVersionModel.last_contacted_at < cutoff,
                ),
            ],
        )
