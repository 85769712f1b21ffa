"""
Contract <-> VersionEnvelope mapping.

Contracts live in the generic JSON table, so the payload must be plain
JSON: Decimals travel as strings (exact), line items as dicts.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from temporal_kernel.domain.envelope import VersionEnvelope
from temporal_kernel.domain.mapping import EntityMapper
from temporal_kernel.exceptions import MappingError
from temporal_modules.contracts.models import Contract, ContractStatus, LineItem

CONTRACT_ENTITY_TYPE = "contract"


def _item_to_json(item: LineItem) -> dict[str, Any]:
    return {
        "id": item.id,
        "name": item.name,
        "price": str(item.price),
        "description": item.description,
    }


def _item_from_json(data: dict[str, Any]) -> LineItem:
    return LineItem(
        id=data["id"],
        name=data["name"],
        price=Decimal(data["price"]),
        description=data.get("description"),
    )


class ContractMapper(EntityMapper[Contract]):
    entity_type = CONTRACT_ENTITY_TYPE

    def to_envelope(self, entity: Contract) -> VersionEnvelope:
        return VersionEnvelope(
            business_key=entity.business_key,
            version=entity.version,
            payload={
                "case_id": entity.case_id,
                "contract_version": entity.contract_version,
                "status": entity.status.value,
                "services": [_item_to_json(i) for i in entity.services],
                "products": [_item_to_json(i) for i in entity.products],
                "subtotal": str(entity.subtotal),
                "tax": str(entity.tax),
                "total_amount": str(entity.total_amount),
                "terms_and_conditions": entity.terms_and_conditions,
            },
            technical_id=entity.technical_id,
            valid_from=entity.valid_from,
            created_at=entity.created_at,
            created_by=entity.created_by,
            updated_by=entity.updated_by,
            reason=entity.reason,
            entity_type=CONTRACT_ENTITY_TYPE,
        )

    def from_envelope(self, envelope: VersionEnvelope) -> Contract:
        p = envelope.payload
        try:
            return Contract(
                business_key=envelope.business_key,
                version=envelope.version,
                case_id=p["case_id"],
                contract_version=p["contract_version"],
                status=ContractStatus(p["status"]),
                services=tuple(_item_from_json(i) for i in p.get("services", [])),
                products=tuple(_item_from_json(i) for i in p.get("products", [])),
                subtotal=Decimal(p["subtotal"]),
                tax=Decimal(p["tax"]),
                total_amount=Decimal(p["total_amount"]),
                terms_and_conditions=p["terms_and_conditions"],
                created_by=envelope.created_by,
                updated_by=envelope.updated_by,
                reason=envelope.reason,
                technical_id=envelope.technical_id,
                created_at=envelope.created_at,
                valid_from=envelope.valid_from,
            )
        except KeyError as exc:
            raise MappingError(
                CONTRACT_ENTITY_TYPE,
                f"{envelope.business_key} v{envelope.version} payload lacks {exc}",
            ) from exc
