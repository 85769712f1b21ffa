"""
Contract Domain Models (``temporal_modules.contracts.models``).

Responsibility
--------------
Frozen value objects for funeral service contracts: the services and
products sold on a case, with totals.

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Persisted in the
kernel's generic ``temporal_records`` table by ``ContractRepository``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* ``total_amount == subtotal + tax``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ContractStatus(str, Enum):
    """Contract lifecycle states."""
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    PENDING_SIGNATURES = "pending_signatures"
    FULLY_SIGNED = "fully_signed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class LineItem:
    """A service or product sold on the contract."""
    id: str
    name: str
    price: Decimal
    description: str | None = None


@dataclass(frozen=True)
class Contract:
    """One version of a contract."""
    business_key: str
    case_id: str
    terms_and_conditions: str
    created_by: str
    subtotal: Decimal
    tax: Decimal
    total_amount: Decimal
    version: int = 1
    contract_version: int = 1
    status: ContractStatus = ContractStatus.DRAFT
    services: tuple[LineItem, ...] = field(default_factory=tuple)
    products: tuple[LineItem, ...] = field(default_factory=tuple)
    updated_by: str | None = None
    reason: str | None = None
    technical_id: UUID | None = None
    created_at: datetime | None = None
    valid_from: datetime | None = None

    def __post_init__(self):
        if self.subtotal + self.tax != self.total_amount:
            raise ValueError(
                f"Contract {self.business_key}: total {self.total_amount} "
                f"!= subtotal {self.subtotal} + tax {self.tax}"
            )

    @classmethod
    def create(
        cls,
        business_key: str,
        case_id: str,
        terms_and_conditions: str,
        created_by: str,
        services: tuple[LineItem, ...] = (),
        products: tuple[LineItem, ...] = (),
        tax: Decimal = Decimal("0.00"),
    ) -> Contract:
        """Version-1 draft with totals computed from the line items."""
        subtotal = sum((item.price for item in (*services, *products)), Decimal("0.00"))
        return cls(
            business_key=business_key,
            case_id=case_id,
            terms_and_conditions=terms_and_conditions,
            created_by=created_by,
            services=tuple(services),
            products=tuple(products),
            subtotal=subtotal,
            tax=tax,
            total_amount=subtotal + tax,
        )

    @property
    def is_signed(self) -> bool:
        return self.status is ContractStatus.FULLY_SIGNED

    def with_changes(
        self,
        *,
        updated_by: str | None = None,
        reason: str | None = None,
        **changes,
    ) -> Contract:
        """Next version of this contract with ``changes`` applied."""
        return replace(
            self,
            version=self.version + 1,
            technical_id=None,
            valid_from=None,
            updated_by=updated_by,
            reason=reason,
            **changes,
        )
