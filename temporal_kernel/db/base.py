"""
Module: temporal_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention (the technical id), portable UTC timestamp
    and JSON column types, and the TemporalBase mixin that gives any table the
    version-envelope columns and constraints.
Architecture position: Kernel > DB.  This is the lowest-level import target
    within the kernel.  ALL model files import from here.  This module MUST NOT
    import from models/, services/, selectors/, or outer layers.

Invariants enforced:
    - Technical ids: every row inherits a uuid4 primary key that is never
      reassigned (primary key constraint).
    - Single current row: a partial unique index on (scope, business_key)
      WHERE is_current backs the optimistic guard at the database level.
    - Gapless versions: unique (scope, business_key, version).
    - Current flag consistency: is_current iff valid_to IS NULL (check).
    - Non-empty intervals: valid_to > valid_from when closed (check).
    - UTC timestamps: UTCDateTime always returns timezone-aware UTC values,
      also on dialects that store naive timestamps (SQLite).

Failure modes:
    - IntegrityError when a write would break one of the constraints above;
      the temporal store translates it into ConflictError / DuplicateKeyError.
"""

from datetime import datetime, timezone
from typing import Any, ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    String,
    UniqueConstraint,
    inspect as sa_inspect,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Guarantees:
        - process_bind_param: UUID -> str on INSERT/UPDATE.
        - process_result_value: str -> UUID on SELECT.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamp on every dialect.

    PostgreSQL keeps the offset (timestamptz).  SQLite keeps a naive
    ISO string, so values are written as naive UTC and re-tagged as UTC on
    load.  Lexicographic order of the SQLite strings matches time order
    because SQLAlchemy always writes six fractional digits.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime {value!r} cannot be stored as UTC")
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# JSON everywhere, JSONB on PostgreSQL
PayloadJSON = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - datetime maps to UTCDateTime -- always timezone-aware.
        - int maps to BigInteger.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        PyUUID: UUIDString(),
        int: BigInteger,
        dict[str, Any]: PayloadJSON,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


# Columns owned by the kernel; everything else on a temporal table is payload.
ENVELOPE_COLUMNS: frozenset[str] = frozenset(
    {
        "id",
        "business_key",
        "version",
        "valid_from",
        "valid_to",
        "is_current",
        "created_at",
        "created_by",
        "updated_by",
        "reason",
        "closed_by",
    }
)

# Columns an UPDATE may touch on a stored row (closing it).
CLOSABLE_COLUMNS: frozenset[str] = frozenset({"valid_to", "is_current", "closed_by"})


class TemporalBase(Base):
    """
    Abstract base for SCD Type 2 tables: one row per version.

    Contract:
        Subclasses declare ``__tablename__`` and their payload columns.  A
        subclass may scope business keys by extra columns (for instance an
        entity type discriminator) by listing them in
        ``__scope_columns__``; scope columns are part of every key index.
        Additional per-table constraints go in ``__extra_table_args__``.

    Guarantees:
        - Constraint and index names are derived from the table name, so
          several temporal tables coexist in one schema.
        - ``payload_fields`` lists every non-envelope, non-scope column.
    """

    __abstract__ = True

    __scope_columns__: ClassVar[tuple[str, ...]] = ()
    __extra_table_args__: ClassVar[tuple] = ()

    business_key: Mapped[str] = mapped_column(String(100), nullable=False)
    version: Mapped[int] = mapped_column(BigInteger, nullable=False)
    valid_from: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    valid_to: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    closed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reason: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    @declared_attr.directive
    def __table_args__(cls) -> tuple:
        name = cls.__tablename__
        scope = tuple(cls.__scope_columns__)
        return (
            UniqueConstraint(*scope, "business_key", "version", name=f"uq_{name}_key_version"),
            Index(
                f"uq_{name}_single_current",
                *scope,
                "business_key",
                unique=True,
                postgresql_where=text("is_current"),
                sqlite_where=text("is_current"),
            ),
            Index(f"idx_{name}_key_current", *scope, "business_key", "is_current"),
            Index(f"idx_{name}_key_valid_from", *scope, "business_key", "valid_from"),
            CheckConstraint("version >= 1", name=f"ck_{name}_version_positive"),
            CheckConstraint(
                "(is_current AND valid_to IS NULL) OR (NOT is_current AND valid_to IS NOT NULL)",
                name=f"ck_{name}_current_flag",
            ),
            CheckConstraint(
                "valid_to IS NULL OR valid_to > valid_from",
                name=f"ck_{name}_interval_order",
            ),
        ) + tuple(cls.__extra_table_args__)

    # ------------------------------------------------------------------
    # Payload mapping (overridden by JSON-payload tables)
    # ------------------------------------------------------------------

    @classmethod
    def scope_for(cls, entity_type: str) -> dict[str, Any]:
        """Values of the scope columns for rows of ``entity_type``."""
        return {}

    @classmethod
    def payload_fields(cls) -> tuple[str, ...]:
        excluded = ENVELOPE_COLUMNS | set(cls.__scope_columns__)
        return tuple(
            attr.key
            for attr in sa_inspect(cls).column_attrs
            if attr.key not in excluded
        )

    def payload_dict(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in self.payload_fields()}

    @classmethod
    def payload_columns(cls, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Column values for ``payload``.

        Raises:
            KeyError: If the payload names a field the table does not have.
        """
        fields = set(cls.payload_fields())
        unknown = set(payload) - fields
        if unknown:
            raise KeyError(f"{cls.__tablename__} has no payload column(s) {sorted(unknown)}")
        return dict(payload)

    @classmethod
    def payload_criterion(cls, key: str, value: Any):
        """SQL criterion matching rows whose payload field ``key`` equals ``value``."""
        if key not in cls.payload_fields():
            raise KeyError(f"{cls.__tablename__} has no payload column {key!r}")
        column = getattr(cls, key)
        if value is None:
            return column.is_(None)
        return column == value

    @classmethod
    def payload_sort_key(cls, key: str):
        """SQL expression ordering rows by payload field ``key``."""
        if key not in cls.payload_fields():
            raise KeyError(f"{cls.__tablename__} has no payload column {key!r}")
        return getattr(cls, key)


# Re-export UUID for convenience
UUID = PyUUID
