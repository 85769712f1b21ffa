"""Database layer - engine, base classes, column types, and immutability."""

from temporal_kernel.db.base import (
    CLOSABLE_COLUMNS,
    ENVELOPE_COLUMNS,
    UUID,
    Base,
    PayloadJSON,
    TemporalBase,
    UTCDateTime,
    UUIDString,
)
from temporal_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TemporalBase",
    "UUIDString",
    "UTCDateTime",
    "PayloadJSON",
    "UUID",
    "ENVELOPE_COLUMNS",
    "CLOSABLE_COLUMNS",
]
