"""
Persistence for decoded transfers (SQLAlchemy; PostgreSQL or SQLite).
"""

from facilitator_sync.database.transfers import (  # noqa: F401
    TransferEvent,
    init_db,
    list_recent_transfers,
    reset_engine_for_test,
    summarize_transfers,
    upsert_transfers,
)

__all__ = [
    "TransferEvent",
    "init_db",
    "list_recent_transfers",
    "reset_engine_for_test",
    "summarize_transfers",
    "upsert_transfers",
]
