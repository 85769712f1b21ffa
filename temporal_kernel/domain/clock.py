"""
Clock -- Deterministic time abstraction for validity intervals.

Responsibility:
    Supplies the instants that bound validity intervals.  Domain, service,
    and selector code never call ``datetime.now()`` directly; they receive a
    Clock through constructor injection.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).

Invariants enforced:
    - Every instant handed to the store is timezone-aware UTC, truncated to
      a single shared granularity.  Writers and point-in-time readers call
      ``normalize_instant`` with the same granularity, so a boundary instant
      means the same thing on both sides.

Failure modes:
    - InvalidInstantError when a naive datetime reaches normalize_instant.
    - SequentialClock raises RuntimeError if exhausted and no fallback time.

Audit relevance:
    Deterministic clocks make transition tests and replays reproducible:
    every valid_from / valid_to recorded is traceable to an injected Clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterator

from temporal_kernel.exceptions import InvalidInstantError


class ClockGranularity(str, Enum):
    """Resolution shared by writers and readers of validity instants."""

    MICROSECOND = "microsecond"
    MILLISECOND = "millisecond"

    @property
    def step(self) -> timedelta:
        """Smallest distinguishable gap between two instants."""
        if self is ClockGranularity.MILLISECOND:
            return timedelta(milliseconds=1)
        return timedelta(microseconds=1)


DEFAULT_GRANULARITY = ClockGranularity.MICROSECOND


def normalize_instant(
    value: datetime,
    granularity: ClockGranularity = DEFAULT_GRANULARITY,
    field: str = "instant",
) -> datetime:
    """
    Convert an aware datetime to UTC at the given granularity.

    Preconditions: value is a timezone-aware ``datetime``.
    Postconditions: Returns a UTC ``datetime`` whose sub-granularity digits
        are zero.  Idempotent.

    Raises:
        InvalidInstantError: If value is not a datetime or is naive.
    """
    if not isinstance(value, datetime) or value.tzinfo is None:
        raise InvalidInstantError(value, field=field)
    utc_value = value.astimezone(timezone.utc)
    if granularity is ClockGranularity.MILLISECOND:
        micros = (utc_value.microsecond // 1000) * 1000
        return utc_value.replace(microsecond=micros)
    return utc_value


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time must receive a Clock instance
        via constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``now_utc()`` returns a UTC-normalized ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    @abstractmethod
    def now_utc(self) -> datetime:
        """Get the current UTC time."""
        ...


class SystemClock(Clock):
    """
    Production clock that returns actual system time.

    Non-goals:
        Not suitable for deterministic tests.
    """

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def now_utc(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
        - ``tick()`` advances by exactly 1 second and returns the new time.
    """

    def __init__(self, fixed_time: datetime | None = None):
        """
        Initialize with optional fixed time.

        Args:
            fixed_time: Start instant.  Defaults to 2024-01-01 12:00 UTC.
        """
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._offset = timedelta(0)

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._offset = timedelta(0)

    def advance(self, seconds: float = 1, milliseconds: float = 0) -> None:
        """Advance the clock by the specified seconds and milliseconds."""
        self._offset += timedelta(seconds=seconds, milliseconds=milliseconds)

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        self.advance(1)
        return self.now()


class SequentialClock(Clock):
    """
    Clock that returns sequential times from a predefined list.

    Contract:
        Initialized with a non-empty list of ``datetime`` values.  After
        exhaustion, repeats the last value.

    Raises:
        ValueError: If initialized with an empty list.
    """

    def __init__(self, times: list[datetime]):
        if not times:
            raise ValueError("SequentialClock requires at least one time")
        self._times: Iterator[datetime] = iter(times)
        self._last_time: datetime | None = None
        self._exhausted = False

    def now(self) -> datetime:
        """Get the next time in sequence."""
        if self._exhausted:
            if self._last_time is None:
                raise RuntimeError("SequentialClock has no times")
            return self._last_time

        try:
            self._last_time = next(self._times)
            return self._last_time
        except StopIteration:
            self._exhausted = True
            if self._last_time is None:
                raise RuntimeError("SequentialClock exhausted with no times")
            return self._last_time

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class TruncatingClock(Clock):
    """
    Wraps another clock and truncates its readings to a granularity.

    Used when the storage medium (or a replica reading it) keeps fewer
    sub-second digits than the source clock produces.
    """

    def __init__(
        self,
        inner: Clock,
        granularity: ClockGranularity = DEFAULT_GRANULARITY,
    ):
        self._inner = inner
        self.granularity = granularity

    def now(self) -> datetime:
        return normalize_instant(self._inner.now(), self.granularity)

    def now_utc(self) -> datetime:
        return normalize_instant(self._inner.now_utc(), self.granularity)


def clock_granularity(clock: Clock) -> ClockGranularity:
    """Granularity a clock's readings are normalized to."""
    return getattr(clock, "granularity", DEFAULT_GRANULARITY)
