"""
Transport capability consumed by the ingestion core.

The paginator, cache and decoder only depend on this protocol, so a different
node client (or an in-memory fake in tests) can be swapped in without touching
decode or filter logic.
"""

from __future__ import annotations

from typing import Protocol, Sequence, runtime_checkable

from facilitator_sync.starknet.models import BlockMetadata, EventPage, TransactionMetadata


@runtime_checkable
class EventTransport(Protocol):
    """Remote event-log query plus block and transaction lookups."""

    async def get_latest_block_number(self) -> int:
        ...

    async def get_events(
        self,
        from_block: int,
        to_block: int,
        contract_address: str,
        event_selectors: Sequence[str],
        chunk_size: int,
        continuation_token: str | None = None,
    ) -> EventPage:
        ...

    async def get_block(self, block_number: int) -> BlockMetadata:
        ...

    async def get_transaction(self, tx_hash: str) -> TransactionMetadata:
        ...
