"""
Lead ORM Models (``temporal_modules.leads.orm``).

Responsibility
--------------
Typed SCD Type 2 table for leads.  Envelope columns and key constraints
come from ``TemporalBase``; this module declares the payload columns.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``temporal_kernel.db.base``.
MUST NOT be imported by ``temporal_kernel``.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from temporal_kernel.db.base import TemporalBase, UTCDateTime


class LeadVersionModel(TemporalBase):
    """
    ORM model for lead versions.

    Maps to the ``Lead`` frozen dataclass through ``LeadMapper``.

    Guarantees:
        - One current row per business_key (from TemporalBase).
        - score within 0..100 (ck_lead_versions_score_range).
    """

    __tablename__ = "lead_versions"

    __extra_table_args__ = (
        Index("idx_lead_versions_funeral_home", "funeral_home_id", "is_current"),
        Index("idx_lead_versions_referral_source", "referral_source_id", "is_current"),
        CheckConstraint("score >= 0 AND score <= 100", name="ck_lead_versions_score_range"),
    )

    funeral_home_id: Mapped[str] = mapped_column(String(100), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    source: Mapped[str] = mapped_column(String(20), nullable=False)
    lead_type: Mapped[str] = mapped_column(String(20), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assigned_to: Mapped[str | None] = mapped_column(String(100), nullable=True)
    referral_source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_contacted_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    converted_to_case_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<LeadVersionModel {self.business_key} v{self.version} {self.status}>"
