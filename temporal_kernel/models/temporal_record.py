"""
Module: temporal_kernel.models.temporal_record
Responsibility: Generic SCD Type 2 table for entities without a table of
    their own.  Rows of many entity types share ``temporal_records``; the
    ``entity_type`` column scopes business keys, and the entity's fields
    live in a JSON ``payload`` column (JSONB on PostgreSQL).
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    Everything TemporalBase declares, scoped by entity_type: one current row
    per (entity_type, business_key), unique (entity_type, business_key,
    version), current flag consistent with valid_to.

Failure modes:
    - TypeError from payload_columns() when the payload is not JSON
      serializable; the store reports it as a MappingError.
"""

import json
from enum import Enum
from typing import Any

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from temporal_kernel.db.base import PayloadJSON, TemporalBase


class TemporalRecord(TemporalBase):
    """
    One version of a JSON-payload entity.

    Contract:
        ``payload`` holds plain JSON values only (str, int, float, bool,
        None, lists and dicts of those).  Mappers convert richer types
        (Decimal, date, enums) before handing envelopes to the kernel.
    """

    __tablename__ = "temporal_records"
    __scope_columns__ = ("entity_type",)

    entity_type: Mapped[str] = mapped_column(String(100), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column(PayloadJSON, nullable=False, default=dict)

    def __repr__(self) -> str:
        return (
            f"<TemporalRecord {self.entity_type}:{self.business_key} "
            f"v{self.version} current={self.is_current}>"
        )

    @classmethod
    def scope_for(cls, entity_type: str) -> dict[str, Any]:
        return {"entity_type": entity_type}

    @classmethod
    def payload_fields(cls) -> tuple[str, ...]:
        # Open schema: any key is a payload field.
        return ()

    def payload_dict(self) -> dict[str, Any]:
        return dict(self.payload or {})

    @classmethod
    def payload_columns(cls, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Column values for ``payload``.

        Raises:
            TypeError: If the payload cannot be encoded as JSON.
        """
        json.dumps(payload)
        return {"payload": dict(payload)}

    @classmethod
    def payload_criterion(cls, key: str, value: Any):
        """
        SQL criterion ``payload[key] == value``.

        ``None`` matches a JSON ``null`` and an absent key alike, the same
        way a typed table matches a NULL column.
        """
        element = cls.payload[key]
        if isinstance(value, Enum):
            value = value.value
        if value is None:
            return element.as_string().is_(None)
        if isinstance(value, bool):
            return element.as_boolean() == value
        if isinstance(value, int):
            return element.as_integer() == value
        if isinstance(value, float):
            return element.as_float() == value
        return element.as_string() == str(value)

    @classmethod
    def payload_sort_key(cls, key: str):
        # Text ordering; store sortable values (ISO dates, padded codes) as strings.
        return cls.payload[key].as_string()
