"""
TemporalRepository over raw envelopes: the full repository contract.

The contract lifecycle scenario walks one key through create, update and
delete and checks current, history and point-in-time views at each step.
"""

from datetime import timedelta

import pytest

from temporal_kernel.domain.envelope import VersionEnvelope
from temporal_kernel.domain.mapping import FunctionMapper, IdentityMapper
from temporal_kernel.exceptions import (
    ConflictError,
    DuplicateKeyError,
    InvalidInstantError,
    InvalidIntervalError,
    MappingError,
    NotFoundError,
)
from temporal_kernel.invariants import TemporalInvariant
from temporal_kernel.services.temporal_repository import TemporalRepository
from temporal_kernel.services.transition_coordinator import TransitionKind


class TestContractLifecycleScenario:
    """C-100: create at t0, update at t1, delete at t2."""

    def test_create_update_delete(self, record_repository, deterministic_clock, make_envelope):
        repo = record_repository
        t0 = deterministic_clock.now()

        repo.save(make_envelope("C-100", payload={"status": "draft"}))
        v1 = repo.find_current_by_business_key("C-100")
        assert v1.version == 1
        assert v1.valid_from == t0

        deterministic_clock.advance(3600)
        t1 = deterministic_clock.now()
        repo.save(make_envelope("C-100", version=2, payload={"status": "signed"}))
        current = repo.find_current_by_business_key("C-100")
        assert current.version == 2
        assert current.payload == {"status": "signed"}

        history = repo.find_history("C-100")
        assert [(e.version, e.valid_to) for e in history] == [(1, t1), (2, None)]

        deterministic_clock.advance(3600)
        t2 = deterministic_clock.now()
        repo.delete("C-100", actor="user-test-actor", reason="cancelled")
        assert repo.find_current_by_business_key("C-100") is None
        assert not repo.exists("C-100")

        history = repo.find_history("C-100")
        assert [(e.version, e.valid_to) for e in history] == [(1, t1), (2, t2)]
        assert not any(e.is_current for e in history)

        assert repo.find_at_time("C-100", t0).version == 1
        assert repo.find_at_time("C-100", t1).version == 2
        with pytest.raises(NotFoundError):
            repo.find_at_time("C-100", t2)

        report = repo.verify_chain("C-100")
        assert report.is_valid
        assert report.is_deleted


class TestCurrentLookups:

    def test_find_current_by_technical_id_of_current(self, record_repository, make_envelope):
        saved = record_repository.save_envelope(make_envelope("F-1")).record
        found = record_repository.find_current_by_id(saved.technical_id)
        assert found == saved

    def test_old_technical_id_resolves_to_current(
        self, record_repository, deterministic_clock, make_envelope
    ):
        v1 = record_repository.save_envelope(make_envelope("F-2")).record
        deterministic_clock.advance(10)
        record_repository.save(make_envelope("F-2", version=2))
        assert record_repository.find_current_by_id(str(v1.technical_id)).version == 2

    def test_business_key_accepted_as_id(self, record_repository, make_envelope):
        record_repository.save(make_envelope("F-3"))
        assert record_repository.find_current_by_id("F-3").business_key == "F-3"

    def test_unknown_id_not_found(self, record_repository):
        with pytest.raises(NotFoundError):
            record_repository.find_current_by_id("F-404")

    def test_deleted_key_id_not_found(self, record_repository, deterministic_clock, make_envelope):
        saved = record_repository.save_envelope(make_envelope("F-4")).record
        deterministic_clock.advance(10)
        record_repository.delete("F-4")
        with pytest.raises(NotFoundError):
            record_repository.find_current_by_id(saved.technical_id)

    def test_find_current_filters(self, record_repository, make_envelope):
        record_repository.save(make_envelope("F-5a", payload={"region": "north", "tier": 2}))
        record_repository.save(make_envelope("F-5b", payload={"region": "north", "tier": 1}))
        record_repository.save(make_envelope("F-5c", payload={"region": "south", "tier": 3}))
        north = record_repository.find_current({"region": "north"})
        assert [e.business_key for e in north] == ["F-5a", "F-5b"]
        tier_one = record_repository.find_current({"tier": 1})
        assert [e.business_key for e in tier_one] == ["F-5b"]


class TestHistoryQueries:

    def test_history_of_unknown_key(self, record_repository):
        with pytest.raises(NotFoundError):
            record_repository.find_history("H-404")

    def test_find_at_time_before_creation(self, record_repository, deterministic_clock, make_envelope):
        record_repository.save(make_envelope("H-1"))
        with pytest.raises(NotFoundError) as exc_info:
            record_repository.find_at_time("H-1", deterministic_clock.now() - timedelta(seconds=1))
        assert exc_info.value.as_of is not None

    def test_find_at_time_naive_instant(self, record_repository, deterministic_clock, make_envelope):
        record_repository.save(make_envelope("H-2"))
        with pytest.raises(InvalidInstantError):
            record_repository.find_at_time("H-2", deterministic_clock.now().replace(tzinfo=None))

    def test_changes_between(self, record_repository, deterministic_clock, make_envelope):
        t0 = deterministic_clock.now()
        record_repository.save(make_envelope("H-3"))
        for version in (2, 3, 4):
            deterministic_clock.advance(3600)
            record_repository.save(make_envelope("H-3", version=version))

        changes = record_repository.find_changes_between(
            "H-3", t0 + timedelta(hours=1), t0 + timedelta(hours=2)
        )
        assert [e.version for e in changes] == [2, 3]
        assert record_repository.find_changes_between(
            "H-3", t0 + timedelta(days=1), t0 + timedelta(days=2)
        ) == []

    def test_changes_between_reversed_window(self, record_repository, deterministic_clock):
        now = deterministic_clock.now()
        with pytest.raises(InvalidIntervalError):
            record_repository.find_changes_between("H-4", now, now - timedelta(seconds=1))

    def test_find_all_at_time(self, record_repository, deterministic_clock, make_envelope):
        t0 = deterministic_clock.now()
        record_repository.save(make_envelope("H-5a", payload={"kind": "x"}))
        deterministic_clock.advance(60)
        record_repository.save(make_envelope("H-5b", payload={"kind": "x"}))
        record_repository.save(make_envelope("H-5a", version=2, payload={"kind": "y"}))

        at_t0 = record_repository.find_all_at_time(t0)
        assert [(e.business_key, e.version) for e in at_t0] == [("H-5a", 1)]
        now = record_repository.find_all_at_time(deterministic_clock.now(), {"kind": "x"})
        assert [(e.business_key, e.version) for e in now] == [("H-5b", 1)]


class TestWrites:

    def test_save_envelope_returns_transition(self, record_repository, make_envelope):
        result = record_repository.save_envelope(make_envelope("W-1"))
        assert result.kind is TransitionKind.CREATED

    def test_update_returns_new_current(self, record_repository, deterministic_clock, make_envelope):
        record_repository.save(make_envelope("W-2", payload={"n": 1}))
        deterministic_clock.advance(1)
        updated = record_repository.update(make_envelope("W-2", version=2, payload={"n": 2}))
        assert updated.version == 2
        assert updated.payload == {"n": 2}

    def test_duplicate_create(self, record_repository, make_envelope):
        record_repository.save(make_envelope("W-3"))
        with pytest.raises(DuplicateKeyError):
            record_repository.save(make_envelope("W-3"))

    def test_stale_save_conflicts(self, record_repository, deterministic_clock, make_envelope):
        record_repository.save(make_envelope("W-4"))
        deterministic_clock.advance(1)
        stale_base = record_repository.find_current_by_business_key("W-4")
        record_repository.save(stale_base.next_draft({"by": "first"}, updated_by="a"))
        deterministic_clock.advance(1)
        with pytest.raises(ConflictError):
            record_repository.save(stale_base.next_draft({"by": "second"}, updated_by="b"))
        assert record_repository.find_current_by_business_key("W-4").payload == {"by": "first"}

    def test_delete_unknown(self, record_repository):
        with pytest.raises(NotFoundError):
            record_repository.delete("W-404")

    def test_mapper_must_return_envelope(self, session, deterministic_clock):
        broken = FunctionMapper("broken", to_envelope=lambda e: {"not": "an envelope"}, from_envelope=lambda e: e)
        repo = TemporalRepository(session, broken, deterministic_clock)
        with pytest.raises(MappingError):
            repo.save(object())

    def test_entity_types_isolated(self, session, deterministic_clock, make_envelope):
        notes = TemporalRepository(session, IdentityMapper("note"), deterministic_clock)
        tasks = TemporalRepository(session, IdentityMapper("task"), deterministic_clock)
        notes.save(make_envelope("SHARED-1", payload={"kind": "note"}))
        tasks.save(make_envelope("SHARED-1", payload={"kind": "task"}))
        assert notes.find_current_by_business_key("SHARED-1").payload == {"kind": "note"}
        assert tasks.find_current_by_business_key("SHARED-1").entity_type == "task"

    def test_verify_chain_after_many_updates(self, record_repository, deterministic_clock, make_envelope):
        record_repository.save(make_envelope("W-5"))
        for version in range(2, 8):
            deterministic_clock.advance(seconds=0, milliseconds=1)
            record_repository.save(make_envelope("W-5", version=version))
        report = record_repository.verify_chain("W-5")
        assert report.is_valid, report.violations
        assert report.version_count == 7
        assert report.current_version == 7
        assert TemporalInvariant.SINGLE_CURRENT not in report.violated()


class TestDomainMapping:

    def test_function_mapper_repository(self, session, deterministic_clock):
        mapper = FunctionMapper(
            "counter",
            to_envelope=lambda c: VersionEnvelope(
                business_key=c["key"], version=c["version"], payload={"count": c["count"]}
            ),
            from_envelope=lambda e: {"key": e.business_key, "version": e.version, "count": e.payload["count"]},
        )
        repo = TemporalRepository(session, mapper, deterministic_clock)
        repo.save({"key": "CNT-1", "version": 1, "count": 0})
        deterministic_clock.advance(1)
        repo.save({"key": "CNT-1", "version": 2, "count": 1})
        assert repo.find_current_by_business_key("CNT-1") == {"key": "CNT-1", "version": 2, "count": 1}
        assert [c["count"] for c in repo.find_history("CNT-1")] == [0, 1]
