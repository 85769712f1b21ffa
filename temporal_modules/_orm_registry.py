"""
Module ORM Registry (``temporal_modules._orm_registry``).

Responsibility
--------------
Ensure every SQLAlchemy model (kernel and modules) is imported so that
``Base.metadata`` holds all table definitions before tables are created,
and provide ``create_all_tables()`` -- the one call scripts, entrypoints
and ``tests/conftest.py`` use to build a complete schema.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``temporal_modules``
packages and from ``temporal_kernel.db`` (allowed: modules -> kernel).
MUST NOT be imported by ``temporal_kernel``.
"""

from sqlalchemy.engine import Engine


def import_all_orm_models() -> None:
    """Import kernel models and every ``temporal_modules.*.orm`` module.

    Idempotent -- repeated calls are harmless.  Contracts have no module
    table; they live in the kernel's ``temporal_records``.
    """
    import temporal_kernel.models  # noqa: F401
    import temporal_modules.leads.orm  # noqa: F401


def create_all_tables(engine: Engine | None = None) -> None:
    """Register all ORM models, then create every table."""
    from temporal_kernel.db.engine import create_tables

    import_all_orm_models()
    create_tables(engine)
