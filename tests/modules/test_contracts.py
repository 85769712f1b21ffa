"""
Contract module: JSON-payload entity in the shared record table.
"""

from decimal import Decimal

import pytest

from temporal_kernel.domain.envelope import VersionEnvelope
from temporal_kernel.exceptions import MappingError, NotFoundError
from temporal_modules.contracts import (
    Contract,
    ContractMapper,
    ContractRepository,
    ContractStatus,
    LineItem,
)

SERVICES = (
    LineItem(id="svc-1", name="Visitation", price=Decimal("1200.00")),
    LineItem(id="svc-2", name="Memorial service", price=Decimal("850.50")),
)
PRODUCTS = (LineItem(id="prd-1", name="Urn", price=Decimal("249.99"), description="Bronze"),)


@pytest.fixture
def contract_repository(session, deterministic_clock):
    return ContractRepository(session, deterministic_clock)


@pytest.fixture
def make_contract(test_actor_id):
    def _make(key, case_id="case-1"):
        return Contract.create(
            business_key=key,
            case_id=case_id,
            terms_and_conditions="Standard terms",
            created_by=test_actor_id,
            services=SERVICES,
            products=PRODUCTS,
            tax=Decimal("92.41"),
        )

    return _make


class TestContractModel:

    def test_totals_computed(self, make_contract):
        contract = make_contract("K-1")
        assert contract.subtotal == Decimal("2300.49")
        assert contract.total_amount == Decimal("2392.90")

    def test_total_must_balance(self):
        with pytest.raises(ValueError):
            Contract(
                business_key="K-2",
                case_id="case-1",
                terms_and_conditions="",
                created_by="user-1",
                subtotal=Decimal("10.00"),
                tax=Decimal("1.00"),
                total_amount=Decimal("12.00"),
            )

    def test_is_signed(self, make_contract):
        contract = make_contract("K-3")
        assert not contract.is_signed
        signed = contract.with_changes(updated_by="user-2", status=ContractStatus.FULLY_SIGNED)
        assert signed.is_signed
        assert signed.version == 2


class TestContractMapper:

    def test_round_trip_keeps_decimals_exact(self, make_contract):
        mapper = ContractMapper()
        contract = make_contract("K-4")
        envelope = mapper.to_envelope(contract)
        assert envelope.payload["total_amount"] == "2392.90"
        assert envelope.payload["services"][0]["price"] == "1200.00"
        assert mapper.from_envelope(envelope) == contract

    def test_missing_field(self):
        envelope = VersionEnvelope(business_key="K-5", version=1, payload={"case_id": "case-1"})
        with pytest.raises(MappingError):
            ContractMapper().from_envelope(envelope)


class TestContractRepository:

    def test_save_and_load(self, contract_repository, make_contract):
        contract = make_contract("C-100")
        contract_repository.save(contract)
        loaded = contract_repository.find_current_by_business_key("C-100")
        assert loaded.products == PRODUCTS
        assert loaded.total_amount == Decimal("2392.90")
        assert loaded.technical_id is not None

    def test_lifecycle(self, contract_repository, make_contract, deterministic_clock):
        t0 = deterministic_clock.now()
        contract_repository.save(make_contract("C-101"))
        deterministic_clock.advance(3600)
        current = contract_repository.find_current_by_business_key("C-101")
        contract_repository.save(
            current.with_changes(updated_by="user-2", reason="family signed",
                                 status=ContractStatus.FULLY_SIGNED)
        )
        deterministic_clock.advance(3600)
        contract_repository.delete("C-101", actor="user-3", reason="case closed")

        assert contract_repository.find_current_by_business_key("C-101") is None
        history = contract_repository.find_history("C-101")
        assert [c.status for c in history] == [ContractStatus.DRAFT, ContractStatus.FULLY_SIGNED]
        assert contract_repository.find_at_time("C-101", t0).status is ContractStatus.DRAFT
        with pytest.raises(NotFoundError):
            contract_repository.find_current_by_id("C-101")

    def test_find_by_case(self, contract_repository, make_contract, deterministic_clock):
        contract_repository.save(make_contract("C-200", case_id="case-9"))
        deterministic_clock.advance(60)
        contract_repository.save(make_contract("C-201", case_id="case-9"))
        contract_repository.save(make_contract("C-202", case_id="case-8"))

        found = contract_repository.find_by_case("case-9")
        assert [c.business_key for c in found] == ["C-201", "C-200"]
        assert contract_repository.find_current_by_case("case-9").business_key == "C-201"
        assert contract_repository.find_current_by_case("case-404") is None

    def test_contracts_do_not_leak_into_other_entity_types(
        self, contract_repository, record_repository, make_contract
    ):
        contract_repository.save(make_contract("C-300"))
        assert record_repository.find_current_by_business_key("C-300") is None
