"""
VersionEnvelope, entity mappers and chain verification.

verify_chain is pure: chains are built by hand here so that each broken
invariant can be produced in isolation.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from temporal_kernel.domain.chain import verify_chain
from temporal_kernel.domain.envelope import VersionEnvelope
from temporal_kernel.domain.interval import ValidityInterval
from temporal_kernel.domain.mapping import FunctionMapper, IdentityMapper
from temporal_kernel.invariants import ALL_TEMPORAL_INVARIANTS, TemporalInvariant

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def stored(key, version, valid_from, valid_to=None, created_at=T0, payload=None):
    return VersionEnvelope(
        business_key=key,
        version=version,
        payload=payload or {"v": version},
        technical_id=uuid4(),
        valid_from=valid_from,
        valid_to=valid_to,
        is_current=valid_to is None,
        created_at=created_at,
        created_by="user-1",
    )


def healthy_chain(key="K-1", length=3, step=timedelta(hours=1)):
    instants = [T0 + step * i for i in range(length + 1)]
    return [
        stored(key, i + 1, instants[i], instants[i + 1] if i + 1 < length else None)
        for i in range(length)
    ]


class TestVersionEnvelope:

    def test_draft_has_no_interval(self):
        draft = VersionEnvelope(business_key="K-1", version=1)
        assert draft.is_draft
        with pytest.raises(ValueError):
            draft.interval
        assert not draft.is_valid_at(T0)

    def test_stamped_sets_temporal_fields(self):
        draft = VersionEnvelope(business_key="K-1", version=1, closed_by="stale")
        tid = uuid4()
        env = draft.stamped(technical_id=tid, valid_from=T0, created_at=T0)
        assert env.technical_id == tid
        assert env.is_current
        assert env.valid_to is None
        assert env.closed_by is None
        assert env.interval == ValidityInterval(T0)

    def test_closed_copy(self):
        env = stored("K-1", 1, T0)
        t1 = T0 + timedelta(hours=1)
        closed = env.closed(t1, closed_by="user-2")
        assert not closed.is_current
        assert closed.valid_to == t1
        assert closed.closed_by == "user-2"
        assert env.is_current

    def test_next_draft_keeps_identity_fields(self):
        env = stored("K-1", 1, T0, payload={"status": "new"})
        draft = env.next_draft({"status": "won"}, updated_by="user-2", reason="closed deal")
        assert draft.version == 2
        assert draft.is_draft
        assert draft.technical_id is None
        assert draft.created_at == env.created_at
        assert draft.created_by == env.created_by
        assert draft.payload == {"status": "won"}
        assert draft.reason == "closed deal"

    def test_next_draft_copies_payload(self):
        payload = {"a": 1}
        draft = stored("K-1", 1, T0).next_draft(payload)
        payload["a"] = 2
        assert draft.payload == {"a": 1}

    def test_is_valid_at_boundaries(self):
        t1 = T0 + timedelta(hours=1)
        env = stored("K-1", 1, T0, t1)
        assert env.is_valid_at(T0)
        assert not env.is_valid_at(t1)

    def test_frozen(self):
        env = stored("K-1", 1, T0)
        with pytest.raises(AttributeError):
            env.version = 2


class TestMappers:

    def test_identity_mapper_round_trip(self):
        mapper = IdentityMapper("note")
        env = stored("K-1", 1, T0)
        assert mapper.from_envelope(mapper.to_envelope(env)) == env
        assert mapper.entity_type == "note"

    def test_function_mapper_round_trip(self):
        mapper = FunctionMapper(
            "counter",
            to_envelope=lambda pair: VersionEnvelope(
                business_key=pair[0], version=1, payload={"count": pair[1]}
            ),
            from_envelope=lambda env: (env.business_key, env.payload["count"]),
        )
        assert mapper.from_envelope(mapper.to_envelope(("C-1", 7))) == ("C-1", 7)


class TestVerifyChain:

    def test_healthy_chain(self):
        report = verify_chain(healthy_chain())
        assert report.is_valid
        assert report.version_count == 3
        assert report.current_version == 3
        assert not report.is_deleted

    def test_empty_chain(self):
        report = verify_chain([])
        assert report.is_valid
        assert report.version_count == 0

    def test_order_of_input_does_not_matter(self):
        assert verify_chain(list(reversed(healthy_chain()))).is_valid

    def test_deleted_chain_has_no_current(self):
        chain = healthy_chain(length=2)
        chain[-1] = chain[-1].closed(T0 + timedelta(hours=5))
        report = verify_chain(chain)
        assert report.is_valid
        assert report.is_deleted
        assert report.current_version is None

    def test_two_current_rows(self):
        chain = healthy_chain(length=2)
        chain[0] = replace(chain[0], valid_to=None, is_current=True)
        report = verify_chain(chain)
        assert TemporalInvariant.SINGLE_CURRENT in report.violated()

    def test_expected_live_but_deleted(self):
        chain = healthy_chain(length=1)
        chain[0] = chain[0].closed(T0 + timedelta(hours=1))
        report = verify_chain(chain, expect_deleted=False)
        assert TemporalInvariant.SINGLE_CURRENT in report.violated()

    def test_gap_in_intervals(self):
        chain = healthy_chain(length=2)
        chain[1] = replace(chain[1], valid_from=chain[1].valid_from + timedelta(minutes=1))
        report = verify_chain(chain)
        assert TemporalInvariant.CONTIGUOUS_INTERVALS in report.violated()

    def test_version_gap(self):
        chain = healthy_chain(length=2)
        chain[1] = replace(chain[1], version=3)
        report = verify_chain(chain)
        assert TemporalInvariant.GAPLESS_VERSIONS in report.violated()

    def test_created_at_drift(self):
        chain = healthy_chain(length=2)
        chain[1] = replace(chain[1], created_at=chain[1].valid_from)
        report = verify_chain(chain)
        assert report.violated() == {TemporalInvariant.STABLE_CREATED_AT}
        assert report.violations[0].version == 2

    def test_flag_mismatch(self):
        chain = healthy_chain(length=2)
        chain[0] = replace(chain[0], is_current=True)
        report = verify_chain(chain)
        assert TemporalInvariant.CURRENT_FLAG_CONSISTENT in report.violated()

    def test_mixed_keys_rejected(self):
        with pytest.raises(ValueError):
            verify_chain(healthy_chain("A", 1) + healthy_chain("B", 1))

    def test_drafts_rejected(self):
        with pytest.raises(ValueError):
            verify_chain([VersionEnvelope(business_key="K-1", version=1)])


class TestInvariantCatalogue:

    def test_every_invariant_listed(self):
        assert ALL_TEMPORAL_INVARIANTS == frozenset(TemporalInvariant)
        assert TemporalInvariant("append_only") is TemporalInvariant.APPEND_ONLY
