"""
Transfer event decoder: raw event + resolved context to NormalizedTransfer.

Two on-chain encodings of the same Transfer event exist, told apart by the
number of keys:

Indexed (SNIP-13, len(keys) >= 3):
    keys = [selector, from, to]        data = [amount_low, amount_high]
Packed (legacy, len(keys) < 3):
    keys = [selector]                  data = [from, to, amount_low, amount_high]

amount = amount_low + (amount_high << 128) in both cases. Purely structural;
block timestamps and transaction submitters come from the ResolutionCache.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Sequence

from facilitator_sync.config.settings import SyncConfig
from facilitator_sync.core.exceptions import DecodeError
from facilitator_sync.ingestion.cache import ResolutionCache
from facilitator_sync.starknet.felt import felt_to_hex, u256_from_felts
from facilitator_sync.starknet.models import NormalizedTransfer, RawEvent
from facilitator_sync.sync_logging import get_logger

logger = get_logger(__name__)

INDEXED_FORM_MIN_KEYS = 3
INDEXED_FORM_MIN_DATA = 2
PACKED_FORM_MIN_DATA = 4


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def split_transfer_fields(event: RawEvent) -> tuple[str, str, int]:
    """Return (sender_hex, recipient_hex, amount) for either encoding; DecodeError if malformed."""
    keys, data = event.keys, event.data
    if not keys:
        raise DecodeError("event has no keys", context={"tx_hash": event.transaction_hash})
    if len(keys) >= INDEXED_FORM_MIN_KEYS:
        if len(data) < INDEXED_FORM_MIN_DATA:
            raise DecodeError(
                f"indexed transfer needs {INDEXED_FORM_MIN_DATA} data felts, got {len(data)}",
                context={"tx_hash": event.transaction_hash},
            )
        sender, recipient = felt_to_hex(keys[1]), felt_to_hex(keys[2])
        amount = u256_from_felts(data[0], data[1])
    else:
        if len(data) < PACKED_FORM_MIN_DATA:
            raise DecodeError(
                f"packed transfer needs {PACKED_FORM_MIN_DATA} data felts, got {len(data)}",
                context={"tx_hash": event.transaction_hash},
            )
        sender, recipient = felt_to_hex(data[0]), felt_to_hex(data[1])
        amount = u256_from_felts(data[2], data[3])
    return sender, recipient, amount


class EventDecoder:
    def __init__(
        self,
        config: SyncConfig,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._config = config
        self._clock = clock
        self._fallback_sender = felt_to_hex(config.facilitator.address)
        self._log_context = {"chain": config.chain, "facilitator_id": config.facilitator.id}

    def decode(self, event: RawEvent, index: int, cache: ResolutionCache) -> NormalizedTransfer:
        sender, recipient, amount = split_transfer_fields(event)
        return NormalizedTransfer(
            address=self._config.token.address,
            transaction_from=self._transaction_from(event, cache),
            sender=sender,
            recipient=recipient,
            amount=amount,
            block_timestamp=self._block_timestamp(event, cache),
            tx_hash=event.transaction_hash,
            chain=self._config.chain,
            provider=self._config.provider.value,
            decimals=self._config.token.decimals,
            facilitator_id=self._config.facilitator.id,
            log_index=index,
        )

    def decode_batch(self, events: Sequence[RawEvent], cache: ResolutionCache) -> list[NormalizedTransfer]:
        """Decode every event; malformed ones are logged and skipped."""
        out: list[NormalizedTransfer] = []
        failed = 0
        for index, event in enumerate(events):
            try:
                out.append(self.decode(event, index, cache))
            except DecodeError as e:
                failed += 1
                logger.warning(
                    "event_decode_failed",
                    index=index,
                    tx_hash=event.transaction_hash,
                    error=e.message,
                    **self._log_context,
                )
        logger.info("decode_completed", decoded=len(out), failed=failed, **self._log_context)
        return out

    def _block_timestamp(self, event: RawEvent, cache: ResolutionCache) -> datetime:
        block = cache.block(event.block_number) if event.block_number is not None else None
        if block is None:
            logger.warning(
                "cache_miss_fallback",
                kind="block",
                block_number=event.block_number,
                tx_hash=event.transaction_hash,
                fallback="current_time",
                **self._log_context,
            )
            return self._clock()
        return datetime.fromtimestamp(block.timestamp, tz=timezone.utc)

    def _transaction_from(self, event: RawEvent, cache: ResolutionCache) -> str:
        tx = cache.transaction(event.transaction_hash)
        if tx is None or not tx.sender_address:
            logger.warning(
                "cache_miss_fallback",
                kind="transaction",
                tx_hash=event.transaction_hash,
                fallback="facilitator_address",
                **self._log_context,
            )
            return self._fallback_sender
        return felt_to_hex(tx.sender_address)
