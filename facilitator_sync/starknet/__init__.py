"""
Starknet node access: felts, event/block/transaction models and the JSON-RPC transport.
"""

from facilitator_sync.starknet.felt import FieldElement, felt_to_hex, felt_to_int, u256_from_felts
from facilitator_sync.starknet.models import (
    BlockMetadata,
    EventPage,
    NormalizedTransfer,
    RawEvent,
    TransactionMetadata,
)
from facilitator_sync.starknet.rpc_client import StarknetRpcTransport
from facilitator_sync.starknet.transport import EventTransport

__all__ = [
    "BlockMetadata",
    "EventPage",
    "EventTransport",
    "FieldElement",
    "NormalizedTransfer",
    "RawEvent",
    "StarknetRpcTransport",
    "TransactionMetadata",
    "felt_to_hex",
    "felt_to_int",
    "u256_from_felts",
]
