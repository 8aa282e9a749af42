"""
Data models for Starknet Transfer ingestion.

- RawEvent: one entry of a starknet_getEvents page.
- BlockMetadata / TransactionMetadata: resolved context, owned by the
  ResolutionCache for the lifetime of one window run.
- NormalizedTransfer: the persisted output unit.
- EventPage: one page of events plus the node's continuation token.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from facilitator_sync.core.exceptions import FeltError, RemoteResponseError
from facilitator_sync.starknet.felt import felt_to_hex, felt_to_int


@dataclass(frozen=True)
class RawEvent:
    """
    Event record as returned by the node's event log.

    keys[0] is the event selector. keys/data keep their source representation;
    EventDecoder normalizes them. block_number is None for pending events.
    """

    from_address: str
    keys: tuple[Any, ...]
    data: tuple[Any, ...]
    block_number: int | None
    transaction_hash: str

    @classmethod
    def from_rpc(cls, item: dict[str, Any]) -> "RawEvent":
        """Build from a single starknet_getEvents result item."""
        if not isinstance(item, dict):
            raise RemoteResponseError(f"event item must be an object, got {type(item).__name__}")
        tx_hash = item.get("transaction_hash")
        if tx_hash is None:
            raise RemoteResponseError("event item missing transaction_hash")
        try:
            tx_hash = felt_to_hex(tx_hash)
        except FeltError as e:
            raise RemoteResponseError(f"event item has malformed transaction_hash: {e}") from e
        block_number = item.get("block_number")
        try:
            block_number = felt_to_int(block_number) if block_number is not None else None
        except FeltError as e:
            raise RemoteResponseError(
                f"event item has malformed block_number: {e}",
                context={"transaction_hash": tx_hash},
            ) from e
        return cls(
            from_address=str(item.get("from_address") or ""),
            keys=tuple(item.get("keys") or ()),
            data=tuple(item.get("data") or ()),
            block_number=block_number,
            transaction_hash=tx_hash,
        )


@dataclass(frozen=True)
class BlockMetadata:
    """Block number and timestamp (unix seconds). Immutable once fetched."""

    block_number: int
    timestamp: int

    @classmethod
    def from_rpc(cls, block_number: int, payload: dict[str, Any]) -> "BlockMetadata":
        """Build from a starknet_getBlockWithTxHashes result."""
        if not isinstance(payload, dict) or payload.get("timestamp") is None:
            raise RemoteResponseError(
                "block payload missing timestamp",
                method="starknet_getBlockWithTxHashes",
                context={"block_number": block_number},
            )
        try:
            # some nodes report the timestamp as a hex felt
            timestamp = felt_to_int(payload["timestamp"])
        except FeltError as e:
            raise RemoteResponseError(
                f"block payload has malformed timestamp: {e}",
                method="starknet_getBlockWithTxHashes",
                context={"block_number": block_number},
            ) from e
        return cls(block_number=int(block_number), timestamp=timestamp)


@dataclass(frozen=True)
class TransactionMetadata:
    """Transaction hash and submitting account (None when the tx type has no sender)."""

    transaction_hash: str
    sender_address: str | None

    @classmethod
    def from_rpc(cls, tx_hash: str, payload: dict[str, Any]) -> "TransactionMetadata":
        """
        Build from a starknet_getTransactionByHash result.

        INVOKE/DECLARE carry sender_address; some node versions report the
        account as account_address. Other types (L1_HANDLER, DEPLOY_ACCOUNT)
        have neither and resolve to sender_address=None.
        """
        if not isinstance(payload, dict):
            raise RemoteResponseError(
                "transaction payload must be an object",
                method="starknet_getTransactionByHash",
                context={"transaction_hash": tx_hash},
            )
        sender = payload.get("sender_address") or payload.get("account_address")
        try:
            sender_hex = felt_to_hex(sender) if sender else None
        except FeltError as e:
            raise RemoteResponseError(
                f"transaction payload has malformed sender: {e}",
                method="starknet_getTransactionByHash",
            ) from e
        return cls(transaction_hash=tx_hash, sender_address=sender_hex)


@dataclass(frozen=True)
class NormalizedTransfer:
    """
    One decoded Transfer, ready for upsert.

    amount is the full u256 (low + (high << 128)) as a Python int; it is never
    converted to float. log_index is the event's position in the fetched batch.
    """

    address: str
    transaction_from: str
    sender: str
    recipient: str
    amount: int
    block_timestamp: datetime
    tx_hash: str
    chain: str
    provider: str
    decimals: int
    facilitator_id: str
    log_index: int

    @property
    def dedup_key(self) -> tuple[str, str, int]:
        return (self.chain, self.tx_hash, self.log_index)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dict."""
        return {
            "address": self.address,
            "transaction_from": self.transaction_from,
            "sender": self.sender,
            "recipient": self.recipient,
            "amount": str(self.amount),
            "block_timestamp": self.block_timestamp.isoformat(),
            "tx_hash": self.tx_hash,
            "chain": self.chain,
            "provider": self.provider,
            "decimals": self.decimals,
            "facilitator_id": self.facilitator_id,
            "log_index": self.log_index,
        }


@dataclass
class EventPage:
    """One starknet_getEvents page."""

    events: list[RawEvent] = field(default_factory=list)
    continuation_token: str | None = None
