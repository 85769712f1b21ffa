"""
Temporal Kernel - SCD Type 2 versioning engine

An append-only entity versioning system with:
- Business-key chains of immutable row-versions
- Exactly one current version per key
- Optimistic, WHERE-guarded version transitions
- Point-in-time reconstruction and change history
- Soft deletion without data loss
"""

__version__ = "0.1.0"
