"""
Leads Module.

Prospective families moving through a funeral home's pipeline.  Every
change to a lead is a new version in ``lead_versions``.
"""

from temporal_modules.leads.mapper import LEAD_ENTITY_TYPE, LeadMapper
from temporal_modules.leads.models import (
    CLOSED_LEAD_STATUSES,
    HOT_LEAD_THRESHOLD,
    Lead,
    LeadSource,
    LeadStatus,
    LeadType,
)
from temporal_modules.leads.repository import LeadRepository

__all__ = [
    "CLOSED_LEAD_STATUSES",
    "HOT_LEAD_THRESHOLD",
    "LEAD_ENTITY_TYPE",
    "Lead",
    "LeadMapper",
    "LeadRepository",
    "LeadSource",
    "LeadStatus",
    "LeadType",
]
