"""
Pytest fixtures for facilitator_sync tests.

In-memory FakeTransport (call counters, failure injection, in-flight tracking),
a valid SyncConfig, and a temporary SQLite DB for transfer persistence.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Sequence

import pytest

from facilitator_sync.config.settings import (
    FacilitatorConfig,
    QueryProvider,
    RetryProfile,
    SyncConfig,
    TokenConfig,
    TRANSFER_EVENT_SELECTOR,
)
from facilitator_sync.core.exceptions import RemoteCallError
from facilitator_sync.starknet.models import BlockMetadata, EventPage, RawEvent, TransactionMetadata

TOKEN_ADDRESS = "0x053c91253bc9682c04929ca02ed00b3e423f6710d2ee7e0d5ebb06f3ecf368a8"
FACILITATOR_ADDRESS = "0xAAA"
# 2024-01-01T00:00:00Z
BLOCK_TS = 1_704_067_200


class FakeTransport:
    """
    EventTransport double.

    pages are served in call order (an empty page once they run out).
    blocks maps block_number -> unix timestamp; transactions maps tx hash ->
    sender address. Unknown keys raise RemoteCallError. failures maps a method
    name to exceptions raised (in order) before the real answer is returned.
    """

    def __init__(
        self,
        *,
        latest_block: int = 100_000,
        pages: Sequence[EventPage] | None = None,
        blocks: dict[int, int] | None = None,
        transactions: dict[str, str | None] | None = None,
        failures: dict[str, list[Exception]] | None = None,
    ) -> None:
        self.latest_block = latest_block
        self.pages = list(pages or [])
        self.blocks = dict(blocks or {})
        self.transactions = dict(transactions or {})
        self.failures = {k: list(v) for k, v in (failures or {}).items()}
        self.calls: dict[str, int] = defaultdict(int)
        self.events_requests: list[dict[str, Any]] = []
        self.block_requests: list[int] = []
        self.transaction_requests: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._pages_served = 0

    def total_calls(self) -> int:
        return sum(self.calls.values())

    def _maybe_fail(self, method: str) -> None:
        queue = self.failures.get(method)
        if queue:
            raise queue.pop(0)

    async def _track(self) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
        finally:
            self.in_flight -= 1

    async def get_latest_block_number(self) -> int:
        self.calls["get_latest_block_number"] += 1
        await asyncio.sleep(0)
        self._maybe_fail("get_latest_block_number")
        return self.latest_block

    async def get_events(
        self,
        from_block: int,
        to_block: int,
        contract_address: str,
        event_selectors: Sequence[str],
        chunk_size: int,
        continuation_token: str | None = None,
    ) -> EventPage:
        self.calls["get_events"] += 1
        self.events_requests.append(
            {
                "from_block": from_block,
                "to_block": to_block,
                "contract_address": contract_address,
                "event_selectors": list(event_selectors),
                "chunk_size": chunk_size,
                "continuation_token": continuation_token,
            }
        )
        self._maybe_fail("get_events")
        served = self._pages_served
        self._pages_served += 1
        return self.pages[served] if served < len(self.pages) else EventPage()

    async def get_block(self, block_number: int) -> BlockMetadata:
        self.calls["get_block"] += 1
        self.block_requests.append(block_number)
        await self._track()
        self._maybe_fail("get_block")
        if block_number not in self.blocks:
            raise RemoteCallError(f"block {block_number} not found", method="starknet_getBlockWithTxHashes", code=24)
        return BlockMetadata(block_number=block_number, timestamp=self.blocks[block_number])

    async def get_transaction(self, tx_hash: str) -> TransactionMetadata:
        self.calls["get_transaction"] += 1
        self.transaction_requests.append(tx_hash)
        await self._track()
        self._maybe_fail("get_transaction")
        if tx_hash not in self.transactions:
            raise RemoteCallError(f"transaction {tx_hash} not found", method="starknet_getTransactionByHash", code=29)
        return TransactionMetadata(transaction_hash=tx_hash, sender_address=self.transactions[tx_hash])


def make_event(
    keys: Sequence[Any],
    data: Sequence[Any],
    *,
    tx_hash: str = "0x1",
    block_number: int | None = 10,
) -> RawEvent:
    return RawEvent(
        from_address=TOKEN_ADDRESS,
        keys=tuple(keys),
        data=tuple(data),
        block_number=block_number,
        transaction_hash=tx_hash,
    )


class RecordingSleep:
    """Async sleep stand-in that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def transport_factory():
    return FakeTransport


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(
        chain="starknet",
        provider=QueryProvider.STARKNET_RPC,
        rpc_url="http://starknet-node.test/rpc",
        token=TokenConfig(address=TOKEN_ADDRESS, decimals=6),
        facilitator=FacilitatorConfig(id="fac-1", address=FACILITATOR_ADDRESS),
        retry=RetryProfile(max_attempts=3, base_delay_seconds=1.5, backoff_factor=2.0),
        event_selector=TRANSFER_EVENT_SELECTOR,
    )


@pytest.fixture
def transfers_db(tmp_path, monkeypatch):
    """
    Point transfer persistence at a temporary SQLite DB and init tables.
    Resets engine cache so each test gets a fresh DB. Unset DB URLs so we use SQLite.
    """
    monkeypatch.delenv("SYNC_DB_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("SYNC_DB_PATH", str(tmp_path / "transfers.db"))

    import facilitator_sync.database.transfers as db

    db.reset_engine_for_test()
    db.init_db()
    yield db
    db.reset_engine_for_test()
