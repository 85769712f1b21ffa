"""
Typed Exception Hierarchy for the Temporal Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the repository contract must be able to tell "not found" from
"someone changed this record" from "the database is down" without parsing
message strings:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (business key, versions, instants)

Example - WRONG way to handle errors:
    try:
        repository.save(lead)
    except Exception as e:
        if "changed" in str(e):  # FRAGILE - message might change
            reload_and_retry()

Example - RIGHT way:
    try:
        repository.save(lead)
    except ConflictError as e:
        notify_user(e.user_message)          # "reload and retry"
        api_response(code=e.code, key=e.business_key)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TemporalKernelError (base)
    |
    +-- RecordError
    |   +-- NotFoundError
    |   +-- DuplicateKeyError
    |   +-- TechnicalIdReusedError
    |   +-- InvalidVersionError
    |   +-- InvalidBusinessKeyError
    |
    +-- TemporalError
    |   +-- InvalidInstantError
    |   +-- InvalidIntervalError
    |   +-- ClockRegressionError
    |
    +-- ConcurrencyError
    |   +-- ConflictError
    |
    +-- PersistenceError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- MappingError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                    | When Raised
-------------|-------------------------|--------------------------------------------
Record       | RECORD_NOT_FOUND        | No row for the key / id / instant
             | DUPLICATE_BUSINESS_KEY  | Version-1 insert for a key that has rows
             | TECHNICAL_ID_REUSED     | Insert with a technical id already stored
             | INVALID_VERSION         | Version < 1 or not an int
             | INVALID_BUSINESS_KEY    | Empty or non-string business key
-------------|-------------------------|--------------------------------------------
Temporal     | INVALID_INSTANT         | Naive (timezone-less) datetime supplied
             | INVALID_INTERVAL        | Interval end before its start
             | CLOCK_REGRESSION        | Transition instant not after predecessor
-------------|-------------------------|--------------------------------------------
Concurrency  | VERSION_CONFLICT        | Optimistic guard tripped (reload and retry)
-------------|-------------------------|--------------------------------------------
Persistence  | PERSISTENCE_ERROR       | Storage medium failure (safe to retry)
-------------|-------------------------|--------------------------------------------
Immutability | IMMUTABILITY_VIOLATION  | Modifying or deleting a history row
-------------|-------------------------|--------------------------------------------
Mapping      | MAPPING_ERROR           | Mapper produced an unusable envelope

===============================================================================
HANDLING PATTERNS
===============================================================================

1. NOT FOUND IS AN EXPECTED OUTCOME:

    try:
        contract = repository.find_at_time("C-100", last_tuesday)
    except NotFoundError:
        contract = None

2. CONFLICTS ARE NEVER RETRIED BY THE KERNEL:

    except ConflictError:
        fresh = repository.find_current_by_business_key(key)
        # re-apply the user's change on top of `fresh`, then save again

3. PERSISTENCE ERRORS ARE SAFE TO RETRY:
   ``write_atomic`` guarantees no partial effect, so the same save can be
   reissued once the medium is back.
"""


class TemporalKernelError(Exception):
    """
    Base exception for all temporal kernel errors.

    All subclasses have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "TEMPORAL_KERNEL_ERROR"


# Record-related exceptions


class RecordError(TemporalKernelError):
    """Base exception for record identity errors."""

    code: str = "RECORD_ERROR"


class NotFoundError(RecordError):
    """No row matches the requested key, id, or instant."""

    code: str = "RECORD_NOT_FOUND"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        as_of: str | None = None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.as_of = as_of
        if as_of is not None:
            message = f"{entity_type} {entity_id} not found at {as_of}"
        else:
            message = f"{entity_type} {entity_id} not found"
        super().__init__(message)


class DuplicateKeyError(RecordError):
    """
    A version-1 insert was attempted for a business key that already has rows.

    This is a programmer error: the coordinator never reinterprets an
    insert as a transition.
    """

    code: str = "DUPLICATE_BUSINESS_KEY"

    def __init__(self, entity_type: str, business_key: str):
        self.entity_type = entity_type
        self.business_key = business_key
        super().__init__(
            f"{entity_type} {business_key} already exists; "
            f"version 1 can only be saved once per business key"
        )


class TechnicalIdReusedError(DuplicateKeyError):
    """A new version carried a technical id that is already stored."""

    code: str = "TECHNICAL_ID_REUSED"

    def __init__(self, entity_type: str, business_key: str, technical_id: str):
        self.entity_type = entity_type
        self.business_key = business_key
        self.technical_id = technical_id
        RecordError.__init__(
            self,
            f"Technical id {technical_id} is already assigned; "
            f"every version of {entity_type} {business_key} needs a fresh id",
        )


class InvalidVersionError(RecordError):
    """Version number is not a positive integer, or skips past current + 1."""

    code: str = "INVALID_VERSION"

    def __init__(
        self,
        business_key: str,
        version: object,
        current_version: int | None = None,
    ):
        self.business_key = business_key
        self.version = version
        self.current_version = current_version
        if current_version is None:
            message = (
                f"Invalid version {version!r} for {business_key}: "
                f"versions are positive integers starting at 1"
            )
        else:
            message = (
                f"Invalid version {version!r} for {business_key}: "
                f"current version is {current_version}, next must be {current_version + 1}"
            )
        super().__init__(message)


class InvalidBusinessKeyError(RecordError):
    """Business key is empty or not a string."""

    code: str = "INVALID_BUSINESS_KEY"

    def __init__(self, business_key: object):
        self.business_key = business_key
        super().__init__(f"Invalid business key: {business_key!r}")


# Temporal exceptions


class TemporalError(TemporalKernelError):
    """Base exception for instant and interval errors."""

    code: str = "TEMPORAL_ERROR"


class InvalidInstantError(TemporalError):
    """A datetime without timezone information was supplied."""

    code: str = "INVALID_INSTANT"

    def __init__(self, value: object, field: str = "instant"):
        self.value = value
        self.field = field
        super().__init__(
            f"{field} must be a timezone-aware datetime, got {value!r}"
        )


class InvalidIntervalError(TemporalError):
    """Interval end precedes (or equals) its start."""

    code: str = "INVALID_INTERVAL"

    def __init__(self, start: str, end: str):
        self.start = start
        self.end = end
        super().__init__(f"Invalid interval: end {end} is not after start {start}")


class ClockRegressionError(TemporalError):
    """
    Transition instant does not advance past the predecessor's valid_from.

    Accepting it would create an empty or negative validity interval and
    break contiguity of the chain.
    """

    code: str = "CLOCK_REGRESSION"

    def __init__(self, business_key: str, predecessor_valid_from: str, instant: str):
        self.business_key = business_key
        self.predecessor_valid_from = predecessor_valid_from
        self.instant = instant
        super().__init__(
            f"Clock did not advance for {business_key}: "
            f"instant {instant} is not after {predecessor_valid_from}"
        )


# Concurrency exceptions


class ConcurrencyError(TemporalKernelError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class ConflictError(ConcurrencyError):
    """
    The optimistic guard tripped: the expected current version is gone.

    Another writer transitioned or deleted the record after the caller
    loaded it. The kernel performs no retry or merge.
    """

    code: str = "VERSION_CONFLICT"

    user_message: str = (
        "This record changed since you loaded it. Reload and retry."
    )

    def __init__(
        self,
        entity_type: str,
        business_key: str,
        expected_version: int | None = None,
    ):
        self.entity_type = entity_type
        self.business_key = business_key
        self.expected_version = expected_version
        detail = (
            f" (expected version {expected_version} to be current)"
            if expected_version is not None
            else ""
        )
        super().__init__(
            f"{entity_type} {business_key} changed since it was loaded{detail}; "
            f"reload and retry"
        )


# Persistence exceptions


class PersistenceError(TemporalKernelError):
    """
    Storage medium failure unrelated to the optimistic guard.

    Surfaced as-is without internal retry. Safe to retry: write_atomic
    guarantees no partial effect. The driver exception is chained as
    ``__cause__``.
    """

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str | None = None):
        self.operation = operation
        self.detail = detail
        message = f"Persistence failure during {operation}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


# Immutability exceptions


class ImmutabilityError(TemporalKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete a stored version row.

    History rows are append-only: the only permitted change is closing
    the current row.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


# Mapping exceptions


class MappingError(TemporalKernelError):
    """An entity mapper produced an envelope the kernel cannot persist."""

    code: str = "MAPPING_ERROR"

    def __init__(self, entity_type: str, reason: str):
        self.entity_type = entity_type
        self.reason = reason
        super().__init__(f"Cannot map {entity_type}: {reason}")
