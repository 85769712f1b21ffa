"""Lead <-> VersionEnvelope mapping."""

from __future__ import annotations

from temporal_kernel.domain.envelope import VersionEnvelope
from temporal_kernel.domain.mapping import EntityMapper
from temporal_modules.leads.models import Lead, LeadSource, LeadStatus, LeadType

LEAD_ENTITY_TYPE = "lead"


class LeadMapper(EntityMapper[Lead]):
    """Maps leads to the column layout of ``lead_versions``."""

    entity_type = LEAD_ENTITY_TYPE

    def to_envelope(self, entity: Lead) -> VersionEnvelope:
        return VersionEnvelope(
            business_key=entity.business_key,
            version=entity.version,
            payload={
                "funeral_home_id": entity.funeral_home_id,
                "first_name": entity.first_name,
                "last_name": entity.last_name,
                "email": entity.email,
                "phone": entity.phone,
                "status": entity.status.value,
                "source": entity.source.value,
                "lead_type": entity.lead_type.value,
                "score": entity.score,
                "assigned_to": entity.assigned_to,
                "referral_source_id": entity.referral_source_id,
                "notes": entity.notes,
                "last_contacted_at": entity.last_contacted_at,
                "converted_to_case_id": entity.converted_to_case_id,
            },
            technical_id=entity.technical_id,
            valid_from=entity.valid_from,
            created_at=entity.created_at,
            created_by=entity.created_by,
            updated_by=entity.updated_by,
            reason=entity.reason,
            entity_type=LEAD_ENTITY_TYPE,
        )

    def from_envelope(self, envelope: VersionEnvelope) -> Lead:
        p = envelope.payload
        return Lead(
            business_key=envelope.business_key,
            version=envelope.version,
            funeral_home_id=p["funeral_home_id"],
            first_name=p["first_name"],
            last_name=p["last_name"],
            email=p.get("email"),
            phone=p.get("phone"),
            status=LeadStatus(p["status"]),
            source=LeadSource(p["source"]),
            lead_type=LeadType(p["lead_type"]),
            score=p["score"],
            assigned_to=p.get("assigned_to"),
            referral_source_id=p.get("referral_source_id"),
            notes=p.get("notes"),
            last_contacted_at=p.get("last_contacted_at"),
            converted_to_case_id=p.get("converted_to_case_id"),
            created_by=envelope.created_by,
            updated_by=envelope.updated_by,
            reason=envelope.reason,
            technical_id=envelope.technical_id,
            created_at=envelope.created_at,
            valid_from=envelope.valid_from,
        )
