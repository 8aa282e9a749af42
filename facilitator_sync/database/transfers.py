"""
Transfer persistence: SQLAlchemy-backed TransferEvent table.

Uses SYNC_DB_URL / DATABASE_URL when set (PostgreSQL); otherwise falls back to
SQLite (SYNC_DB_PATH or facilitator_sync.db). Rows are upserted on
(chain, tx_hash, log_index) so re-running a window never duplicates transfers.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator

from sqlalchemy import Column, DateTime, Index, Integer, String, UniqueConstraint, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from facilitator_sync.starknet.models import NormalizedTransfer
from facilitator_sync.sync_logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()

DEFAULT_SQLITE_PATH = "facilitator_sync.db"


class TransferEvent(Base):
    """
    One decoded Transfer sent by a facilitator. amount is stored as a decimal
    string; u256 values overflow BIGINT.
    """

    __tablename__ = "transfer_events"
    __table_args__ = (
        UniqueConstraint("chain", "tx_hash", "log_index", name="uq_transfer_events_chain_tx_log"),
        Index("ix_transfer_events_ts_facilitator", "block_timestamp", "facilitator_id"),
        Index("ix_transfer_events_chain_ts_facilitator", "chain", "block_timestamp", "facilitator_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    address = Column(String(80), nullable=False)
    transaction_from = Column(String(80), nullable=False)
    sender = Column(String(80), nullable=False, index=True)
    recipient = Column(String(80), nullable=False, index=True)
    amount = Column(String(80), nullable=False)
    block_timestamp = Column(DateTime(timezone=True), nullable=False)
    tx_hash = Column(String(80), nullable=False)
    chain = Column(String(32), nullable=False)
    provider = Column(String(32), nullable=False)
    decimals = Column(Integer, nullable=False)
    facilitator_id = Column(String(64), nullable=False)
    log_index = Column(Integer, nullable=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "address": self.address,
            "transaction_from": self.transaction_from,
            "sender": self.sender,
            "recipient": self.recipient,
            "amount": self.amount,
            "block_timestamp": _as_utc(self.block_timestamp),
            "tx_hash": self.tx_hash,
            "chain": self.chain,
            "provider": self.provider,
            "decimals": self.decimals,
            "facilitator_id": self.facilitator_id,
            "log_index": self.log_index,
        }


def _as_utc(dt: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on round-trip
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


# -----------------------------------------------------------------------------
# Engine and session (SYNC_DB_URL / DATABASE_URL → Postgres, else SQLite)
# -----------------------------------------------------------------------------


def _get_database_url() -> str:
    url = (os.getenv("SYNC_DB_URL") or os.getenv("DATABASE_URL") or "").strip()
    if url:
        return url
    path = (os.getenv("SYNC_DB_PATH") or "").strip() or DEFAULT_SQLITE_PATH
    return f"sqlite:///{path}"


_engine = None
_SessionLocal: sessionmaker | None = None


def _get_engine():
    """Create or return cached engine."""
    global _engine
    if _engine is None:
        url = _get_database_url()
        connect_args = {}
        if url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        _engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        logger.info("transfers_db_engine", url=url.split("?")[0].split("//")[-1].split("@")[-1])
    return _engine


def _get_session_factory() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_get_engine())
    return _SessionLocal


@contextmanager
def _session_scope() -> Iterator[Session]:
    """Context manager for a single session. Commits on success, rolls back on error."""
    factory = _get_session_factory()
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def reset_engine_for_test() -> None:
    """Drop cached engine/session factory so the next call re-reads the environment."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def init_db() -> None:
    """Create tables if they do not exist. Safe to call on every startup."""
    try:
        Base.metadata.create_all(bind=_get_engine())
        logger.info("transfers_db_initialized")
    except Exception as e:
        logger.exception("transfers_db_init_failed", error=str(e))
        raise


# -----------------------------------------------------------------------------
# Writes
# -----------------------------------------------------------------------------

_UPDATABLE_FIELDS = (
    "address",
    "transaction_from",
    "sender",
    "recipient",
    "amount",
    "block_timestamp",
    "provider",
    "decimals",
    "facilitator_id",
)


def _row_values(t: NormalizedTransfer) -> dict[str, Any]:
    return {
        "address": t.address,
        "transaction_from": t.transaction_from,
        "sender": t.sender,
        "recipient": t.recipient,
        "amount": str(t.amount),
        "block_timestamp": t.block_timestamp,
        "tx_hash": t.tx_hash,
        "chain": t.chain,
        "provider": t.provider,
        "decimals": t.decimals,
        "facilitator_id": t.facilitator_id,
        "log_index": t.log_index,
    }


def upsert_transfers(transfers: Iterable[NormalizedTransfer]) -> tuple[int, int]:
    """
    Insert or update transfers keyed by (chain, tx_hash, log_index) in one
    transaction: either the whole window is written or nothing is.
    Returns (inserted, updated).
    """
    batch: dict[tuple[str, str, int], NormalizedTransfer] = {}
    for t in transfers:
        batch[t.dedup_key] = t
    if not batch:
        return 0, 0
    inserted = updated = 0
    try:
        with _session_scope() as session:
            for (chain, tx_hash, log_index), t in batch.items():
                row = (
                    session.query(TransferEvent)
                    .filter(
                        TransferEvent.chain == chain,
                        TransferEvent.tx_hash == tx_hash,
                        TransferEvent.log_index == log_index,
                    )
                    .one_or_none()
                )
                values = _row_values(t)
                if row is None:
                    session.add(TransferEvent(**values))
                    inserted += 1
                else:
                    for name in _UPDATABLE_FIELDS:
                        setattr(row, name, values[name])
                    updated += 1
    except Exception as e:
        logger.exception("transfers_upsert_failed", count=len(batch), error=str(e))
        raise
    logger.info("transfers_upserted", inserted=inserted, updated=updated)
    return inserted, updated


# -----------------------------------------------------------------------------
# Reads
# -----------------------------------------------------------------------------


def list_recent_transfers(chain: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
    """Most recent transfers first (by block_timestamp, then id)."""
    with _session_scope() as session:
        q = session.query(TransferEvent)
        if chain:
            q = q.filter(TransferEvent.chain == chain)
        rows = (
            q.order_by(TransferEvent.block_timestamp.desc(), TransferEvent.id.desc())
            .limit(max(1, int(limit)))
            .all()
        )
        return [r.to_dict() for r in rows]


def summarize_transfers(chain: str | None = None, limit: int = 50) -> dict[str, Any]:
    """
    Summary over the most recent `limit` transfers: counts, unique parties and
    per-facilitator totals (raw token units, as ints).
    """
    rows = list_recent_transfers(chain, limit)
    by_facilitator: dict[str, dict[str, int]] = {}
    for r in rows:
        stats = by_facilitator.setdefault(r["facilitator_id"], {"count": 0, "amount": 0})
        stats["count"] += 1
        stats["amount"] += int(r["amount"])
    return {
        "transfers": len(rows),
        "total_amount": sum(int(r["amount"]) for r in rows),
        "unique_facilitators": len({r["facilitator_id"] for r in rows}),
        "unique_senders": len({r["sender"] for r in rows}),
        "unique_recipients": len({r["recipient"] for r in rows}),
        "by_facilitator": by_facilitator,
        "rows": rows,
    }
