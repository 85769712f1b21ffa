"""ContractRepository -- versioned contracts in the generic record table."""

from __future__ import annotations

from sqlalchemy.orm import Session

from temporal_kernel.domain.clock import Clock
from temporal_kernel.models.temporal_record import TemporalRecord
from temporal_kernel.services.temporal_repository import TemporalRepository
from temporal_modules.contracts.mapper import CONTRACT_ENTITY_TYPE, ContractMapper
from temporal_modules.contracts.models import Contract


class ContractRepository(TemporalRepository[Contract]):
    """Contracts stored as ``entity_type='contract'`` rows of ``temporal_records``."""

    def __init__(self, session: Session, clock: Clock):
        super().__init__(
            session,
            ContractMapper(),
            clock,
            row_class=TemporalRecord,
            entity_type=CONTRACT_ENTITY_TYPE,
        )

    def find_by_case(self, case_id: str) -> list[Contract]:
        """Current contracts of a case, most recently created first."""
        return self.find_current({"case_id": case_id}, order_by=["-created_at"])

    def find_current_by_case(self, case_id: str) -> Contract | None:
        """The case's most recently created current contract, if any."""
        contracts = self.find_current({"case_id": case_id}, order_by=["-created_at"], limit=1)
        return contracts[0] if contracts else None
