"""
In-run resolution cache: block number -> BlockMetadata, tx hash -> TransactionMetadata.

Each distinct key is fetched once, through RetryExecutor under BoundedScheduler.
A key whose lookup failed is stored as ABSENT, so the decoder can tell
"could not be resolved" (expected, falls back) from "never looked up" (bug,
raises UnresolvedKeyError). Keys are written exactly once.

Scoped to a single orchestrator invocation; never shared across windows.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Hashable, Iterable, TypeVar

from facilitator_sync.core.exceptions import (
    CacheConsistencyError,
    RemoteCallError,
    UnresolvedKeyError,
)
from facilitator_sync.ingestion.retry import RetryExecutor
from facilitator_sync.ingestion.scheduler import BoundedScheduler
from facilitator_sync.starknet.models import BlockMetadata, TransactionMetadata
from facilitator_sync.starknet.transport import EventTransport
from facilitator_sync.sync_logging import get_logger

logger = get_logger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class _Absent:
    """Marker for a key that was looked up but could not be resolved."""

    _instance: "_Absent | None" = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


class ResolutionCache:
    def __init__(
        self,
        transport: EventTransport,
        retry: RetryExecutor,
        scheduler: BoundedScheduler,
        *,
        log_context: dict | None = None,
    ) -> None:
        self._transport = transport
        self._retry = retry
        self._scheduler = scheduler
        self._blocks: dict[int, BlockMetadata | _Absent] = {}
        self._txs: dict[str, TransactionMetadata | _Absent] = {}
        self._log_context = log_context or {}

    async def resolve_blocks(self, block_numbers: Iterable[int | None]) -> dict[int, BlockMetadata | _Absent]:
        """Fetch each distinct, not yet cached block number once."""
        wanted = {int(n) for n in block_numbers if n is not None}
        await self._resolve(
            "block",
            wanted,
            self._blocks,
            lambda n: self._transport.get_block(n),
        )
        return {n: self._blocks[n] for n in wanted}

    async def resolve_transactions(
        self, tx_hashes: Iterable[str | None]
    ) -> dict[str, TransactionMetadata | _Absent]:
        """Fetch each distinct, not yet cached transaction hash once."""
        wanted = {h for h in tx_hashes if h}
        await self._resolve(
            "transaction",
            wanted,
            self._txs,
            lambda h: self._transport.get_transaction(h),
        )
        return {h: self._txs[h] for h in wanted}

    async def _resolve(
        self,
        kind: str,
        keys: set[K],
        store: dict[K, Any],
        fetch: Callable[[K], Awaitable[V]],
    ) -> None:
        pending = sorted(k for k in keys if k not in store)
        if not pending:
            return
        logger.info(f"{kind}_resolution_started", unique_keys=len(pending), **self._log_context)

        def _unit(key: K) -> Callable[[], Awaitable[V | _Absent]]:
            async def _lookup() -> V | _Absent:
                try:
                    value = await self._retry.run(lambda: fetch(key), key=key)
                except RemoteCallError as e:
                    logger.warning(
                        "resolution_failed",
                        kind=kind,
                        key=key,
                        error=str(e)[:200],
                        **self._log_context,
                    )
                    return ABSENT
                return ABSENT if value is None else value

            return _lookup

        results = await self._scheduler.run({k: _unit(k) for k in pending})
        for key, value in results.items():
            self._store(store, kind, key, value)

        absent = sum(1 for k in pending if store[k] is ABSENT)
        logger.info(
            f"{kind}_resolution_completed",
            resolved=len(pending) - absent,
            absent=absent,
            **self._log_context,
        )

    @staticmethod
    def _store(store: dict[K, Any], kind: str, key: K, value: Any) -> None:
        if key in store:
            raise CacheConsistencyError(
                f"{kind} {key!r} already cached", context={"kind": kind, "key": key}
            )
        store[key] = value

    def block(self, block_number: int) -> BlockMetadata | None:
        """Cached block, None if it could not be resolved; UnresolvedKeyError if never looked up."""
        try:
            value = self._blocks[block_number]
        except KeyError:
            raise UnresolvedKeyError(f"block {block_number} was never resolved") from None
        return None if value is ABSENT else value

    def transaction(self, tx_hash: str) -> TransactionMetadata | None:
        """Cached transaction, None if it could not be resolved; UnresolvedKeyError if never looked up."""
        try:
            value = self._txs[tx_hash]
        except KeyError:
            raise UnresolvedKeyError(f"transaction {tx_hash} was never resolved") from None
        return None if value is ABSENT else value

    def stats(self) -> dict[str, int]:
        return {
            "blocks_resolved": sum(1 for v in self._blocks.values() if v is not ABSENT),
            "blocks_absent": sum(1 for v in self._blocks.values() if v is ABSENT),
            "transactions_resolved": sum(1 for v in self._txs.values() if v is not ABSENT),
            "transactions_absent": sum(1 for v in self._txs.values() if v is ABSENT),
        }
