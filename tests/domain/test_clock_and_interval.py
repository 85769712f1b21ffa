"""
Clock and validity interval tests.

The half-open ``[start, end)`` rule is the single definition of "valid at"
shared by writers, the store and the point-in-time engine, so the boundary
cases are pinned down here.
"""

from datetime import datetime, timedelta, timezone

import pytest

from temporal_kernel.domain.clock import (
    ClockGranularity,
    DeterministicClock,
    SequentialClock,
    SystemClock,
    TruncatingClock,
    clock_granularity,
    normalize_instant,
)
from temporal_kernel.domain.interval import ValidityInterval
from temporal_kernel.exceptions import InvalidInstantError, InvalidIntervalError

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestNormalizeInstant:

    def test_naive_datetime_rejected(self):
        with pytest.raises(InvalidInstantError) as exc_info:
            normalize_instant(datetime(2024, 1, 1, 12, 0), field="as_of")
        assert exc_info.value.field == "as_of"
        assert exc_info.value.code == "INVALID_INSTANT"

    def test_non_datetime_rejected(self):
        with pytest.raises(InvalidInstantError):
            normalize_instant("2024-01-01T12:00:00Z")

    def test_converts_offset_to_utc(self):
        plus_two = timezone(timedelta(hours=2))
        local = datetime(2024, 1, 1, 14, 0, 0, tzinfo=plus_two)
        normalized = normalize_instant(local)
        assert normalized == T0
        assert normalized.tzinfo == timezone.utc

    def test_microsecond_granularity_keeps_digits(self):
        value = T0.replace(microsecond=123456)
        assert normalize_instant(value).microsecond == 123456

    def test_millisecond_granularity_truncates(self):
        value = T0.replace(microsecond=123456)
        normalized = normalize_instant(value, ClockGranularity.MILLISECOND)
        assert normalized.microsecond == 123000

    def test_idempotent(self):
        value = T0.replace(microsecond=987654)
        once = normalize_instant(value, ClockGranularity.MILLISECOND)
        assert normalize_instant(once, ClockGranularity.MILLISECOND) == once

    def test_granularity_step(self):
        assert ClockGranularity.MILLISECOND.step == timedelta(milliseconds=1)
        assert ClockGranularity.MICROSECOND.step == timedelta(microseconds=1)


class TestClocks:

    def test_deterministic_clock_is_stable_until_advanced(self):
        clock = DeterministicClock(T0)
        assert clock.now() == clock.now() == T0
        clock.advance(seconds=5)
        assert clock.now() == T0 + timedelta(seconds=5)

    def test_deterministic_clock_tick_and_set(self):
        clock = DeterministicClock(T0)
        assert clock.tick() == T0 + timedelta(seconds=1)
        later = T0 + timedelta(days=3)
        clock.set_time(later)
        assert clock.now_utc() == later

    def test_advance_milliseconds(self):
        clock = DeterministicClock(T0)
        clock.advance(seconds=0, milliseconds=1)
        assert clock.now() - T0 == timedelta(milliseconds=1)

    def test_sequential_clock_repeats_last_value(self):
        times = [T0, T0 + timedelta(seconds=1)]
        clock = SequentialClock(times)
        assert clock.now() == times[0]
        assert clock.now() == times[1]
        assert clock.now() == times[1]

    def test_sequential_clock_requires_times(self):
        with pytest.raises(ValueError):
            SequentialClock([])

    def test_system_clock_is_aware(self):
        assert SystemClock().now_utc().tzinfo is not None

    def test_truncating_clock(self):
        inner = DeterministicClock(T0.replace(microsecond=456789))
        clock = TruncatingClock(inner, ClockGranularity.MILLISECOND)
        assert clock.now().microsecond == 456000
        assert clock_granularity(clock) is ClockGranularity.MILLISECOND

    def test_plain_clock_reports_default_granularity(self):
        assert clock_granularity(DeterministicClock(T0)) is ClockGranularity.MICROSECOND


class TestValidityInterval:

    def test_start_is_inclusive(self):
        interval = ValidityInterval(T0, T0 + timedelta(hours=1))
        assert interval.contains(T0)

    def test_end_is_exclusive(self):
        end = T0 + timedelta(hours=1)
        interval = ValidityInterval(T0, end)
        assert not interval.contains(end)
        assert interval.contains(end - timedelta(microseconds=1))

    def test_before_start_not_contained(self):
        interval = ValidityInterval(T0)
        assert not interval.contains(T0 - timedelta(microseconds=1))

    def test_open_interval_is_unbounded(self):
        interval = ValidityInterval(T0)
        assert interval.is_open
        assert interval.contains(T0 + timedelta(days=365 * 100))

    def test_empty_interval_rejected(self):
        with pytest.raises(InvalidIntervalError):
            ValidityInterval(T0, T0)

    def test_reversed_interval_rejected(self):
        with pytest.raises(InvalidIntervalError):
            ValidityInterval(T0, T0 - timedelta(seconds=1))

    def test_naive_bounds_rejected(self):
        with pytest.raises(InvalidInstantError):
            ValidityInterval(datetime(2024, 1, 1))
        with pytest.raises(InvalidInstantError):
            ValidityInterval(T0, datetime(2024, 2, 1))

    def test_adjacent_intervals_abut_without_overlap(self):
        t1 = T0 + timedelta(hours=1)
        first = ValidityInterval(T0, t1)
        second = ValidityInterval(t1)
        assert first.abuts(second)
        assert not first.overlaps(second)

    def test_overlap_detected(self):
        first = ValidityInterval(T0, T0 + timedelta(hours=2))
        second = ValidityInterval(T0 + timedelta(hours=1))
        assert first.overlaps(second)
        assert second.overlaps(first)

    def test_close_at(self):
        t1 = T0 + timedelta(minutes=30)
        assert ValidityInterval(T0).close_at(t1) == ValidityInterval(T0, t1)

    def test_str_uses_infinity_for_open_end(self):
        assert str(ValidityInterval(T0)).endswith("∞)")
