"""
ORM-Level Immutability Enforcement for version rows.

===============================================================================
WHY THIS EXISTS
===============================================================================

A version row is a historical fact.  Once inserted, the only legitimate
change is closing it: the transition that supersedes it (or the soft delete
that retires it) sets ``valid_to``, flips ``is_current`` off, and records
``closed_by``.  Everything else about the row is frozen forever, and rows
are never physically deleted.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_update event] --> _check_version_row_update() --> ImmutabilityViolationError
         |                                                          ^
         v                                                          |
    [before_delete event] --> _check_version_row_delete() ---------+
         |
         v
    SQL sent to database (only if checks pass)

The temporal store closes rows with a Core UPDATE (the optimistic guard), so
these listeners do not fire on the normal write path.  They catch application
code that loads an ORM row and mutates or deletes it.

===============================================================================
ALLOWED UPDATE
===============================================================================

Field        | Before      | After
-------------|-------------|------------------
valid_to     | NULL        | instant
is_current   | true        | false
closed_by    | NULL        | actor (or NULL)

Any other changed attribute, any change to an already closed row, and any
re-opening is rejected.

===============================================================================
USAGE
===============================================================================

Called automatically during application startup:

    from temporal_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # Called once at startup

To temporarily disable (TESTS ONLY - never in production):

    from temporal_kernel.db.immutability import unregister_immutability_listeners
    unregister_immutability_listeners()
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm import Mapper
from sqlalchemy.orm.attributes import get_history

from temporal_kernel.db.base import CLOSABLE_COLUMNS, TemporalBase
from temporal_kernel.exceptions import ImmutabilityViolationError
from temporal_kernel.invariants import TemporalInvariant
from temporal_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _entity_label(target: TemporalBase) -> str:
    return type(target).__name__


def _reject(target: TemporalBase, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": TemporalInvariant.APPEND_ONLY.value,
            "row_class": _entity_label(target),
            "entity_id": str(target.id),
            "business_key": target.business_key,
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=_entity_label(target),
        entity_id=str(target.id),
        reason=reason,
    )


def _old_value(target: TemporalBase, key: str):
    """Value the row had in the database before this flush."""
    hist = get_history(target, key)
    if hist.deleted:
        return hist.deleted[0]
    if hist.added:
        # SQLAlchemy records no deleted value when the old value was NULL.
        return None
    return getattr(target, key)


def _check_version_row_update(mapper, connection, target):
    """
    Allow only the open -> closed transition on a stored version row.
    """
    if not isinstance(target, TemporalBase):
        return

    changed = [attr.key for attr in inspect(target).attrs if attr.history.has_changes()]
    if not changed:
        return

    for key in changed:
        if key not in CLOSABLE_COLUMNS:
            _reject(
                target,
                "UPDATE",
                f"Cannot modify field '{key}' on a stored version",
                field=key,
            )

    was_open = _old_value(target, "valid_to") is None
    if not was_open:
        _reject(target, "UPDATE", "Version is already closed", field=changed[0])

    if target.valid_to is None or target.is_current:
        _reject(
            target,
            "UPDATE",
            "A version may only be closed (valid_to set and is_current false)",
            field="valid_to",
        )


def _check_version_row_delete(mapper, connection, target):
    """
    Prevent physical deletion of version rows; deletion is a soft close.
    """
    if not isinstance(target, TemporalBase):
        return

    _reject(target, "DELETE", "History rows cannot be deleted")


def register_immutability_listeners():
    """
    Register the version-row immutability listeners on every mapper.

    Call this once during application initialization, after models are
    imported and before any database operations begin.  Calling it twice
    is harmless.
    """
    if not event.contains(Mapper, "before_update", _check_version_row_update):
        event.listen(Mapper, "before_update", _check_version_row_update)
    if not event.contains(Mapper, "before_delete", _check_version_row_delete):
        event.listen(Mapper, "before_delete", _check_version_row_delete)

    logger.info("immutability_listeners_registered")


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if it is not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the immutability listeners.

    WARNING: Only use this in tests that intentionally violate immutability
    to verify detection.
    """
    _safe_remove_listener(Mapper, "before_update", _check_version_row_update)
    _safe_remove_listener(Mapper, "before_delete", _check_version_row_delete)
