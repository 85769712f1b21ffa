"""
Contracts Module.

Funeral service contracts per case.  Stored in the kernel's shared
``temporal_records`` table; no table of its own.
"""

from temporal_modules.contracts.mapper import CONTRACT_ENTITY_TYPE, ContractMapper
from temporal_modules.contracts.models import Contract, ContractStatus, LineItem
from temporal_modules.contracts.repository import ContractRepository

__all__ = [
    "CONTRACT_ENTITY_TYPE",
    "Contract",
    "ContractMapper",
    "ContractRepository",
    "ContractStatus",
    "LineItem",
]
