"""
Starknet JSON-RPC transport over httpx.

Implements EventTransport with starknet_blockNumber, starknet_getEvents,
starknet_getBlockWithTxHashes and starknet_getTransactionByHash. The node URL
is required: no public or provider endpoint is baked in.

Errors are mapped onto the pipeline taxonomy: HTTP 429 and rate-limit
JSON-RPC errors become RateLimitError (retried by RetryExecutor), everything
else becomes RemoteCallError / RemoteResponseError.
"""

from __future__ import annotations

from typing import Any, Sequence

import httpx

from facilitator_sync.core.exceptions import RateLimitError, RemoteCallError, RemoteResponseError
from facilitator_sync.starknet.models import BlockMetadata, EventPage, RawEvent, TransactionMetadata
from facilitator_sync.sync_logging import get_logger

logger = get_logger(__name__)

DEFAULT_REQUEST_TIMEOUT_SEC = 30.0
# Provider-specific rate-limit code (Alchemy / Infura style)
RATE_LIMIT_RPC_CODE = -32097
_RATE_LIMIT_MARKERS = ("rate limit", "compute units")


def _is_rate_limit_rpc_error(code: int | None, message: str) -> bool:
    if code == RATE_LIMIT_RPC_CODE or code == 429:
        return True
    text = message.lower()
    return any(m in text for m in _RATE_LIMIT_MARKERS)


class StarknetRpcTransport:
    """
    Async JSON-RPC client for a Starknet node.

    Use as an async context manager, or pass an existing httpx.AsyncClient
    (which is then left open for the caller to close).
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_sec: float = DEFAULT_REQUEST_TIMEOUT_SEC,
    ) -> None:
        if not (rpc_url or "").strip():
            raise ValueError("rpc_url must be non-empty")
        self._rpc_url = rpc_url.strip()
        self._client = client or httpx.AsyncClient(timeout=timeout_sec)
        self._owns_client = client is None
        self._next_rpc_id = 0

    async def __aenter__(self) -> "StarknetRpcTransport":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _next_id(self) -> int:
        self._next_rpc_id += 1
        return self._next_rpc_id

    async def _call(self, method: str, params: Any) -> Any:
        """POST one JSON-RPC request and return its result; raise mapped errors."""
        body = {"jsonrpc": "2.0", "id": self._next_id(), "method": method, "params": params}
        try:
            resp = await self._client.post(self._rpc_url, json=body)
        except httpx.HTTPError as e:
            raise RemoteCallError(f"transport error: {e}", method=method) from e
        if resp.status_code == 429:
            raise RateLimitError("HTTP 429 Too Many Requests", method=method, status_code=429)
        if resp.status_code >= 400:
            raise RemoteCallError(
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                method=method,
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise RemoteResponseError(f"invalid JSON response: {e}", method=method) from e
        if not isinstance(data, dict):
            raise RemoteResponseError("JSON-RPC response must be an object", method=method)
        err = data.get("error")
        if err:
            code = err.get("code") if isinstance(err, dict) else None
            message = str(err.get("message") if isinstance(err, dict) else err)
            exc_cls = RateLimitError if _is_rate_limit_rpc_error(code, message) else RemoteCallError
            raise exc_cls(f"JSON-RPC error: {message}", method=method, code=code)
        if "result" not in data:
            raise RemoteResponseError("JSON-RPC response missing result", method=method)
        return data["result"]

    async def get_latest_block_number(self) -> int:
        result = await self._call("starknet_blockNumber", [])
        try:
            return int(result)
        except (TypeError, ValueError) as e:
            raise RemoteResponseError(
                f"unexpected block number: {result!r}", method="starknet_blockNumber"
            ) from e

    async def get_events(
        self,
        from_block: int,
        to_block: int,
        contract_address: str,
        event_selectors: Sequence[str],
        chunk_size: int,
        continuation_token: str | None = None,
    ) -> EventPage:
        event_filter: dict[str, Any] = {
            "from_block": {"block_number": from_block},
            "to_block": {"block_number": to_block},
            "address": contract_address,
            "keys": [list(event_selectors)],
            "chunk_size": chunk_size,
        }
        if continuation_token:
            event_filter["continuation_token"] = continuation_token
        result = await self._call("starknet_getEvents", {"filter": event_filter})
        if not isinstance(result, dict):
            raise RemoteResponseError("events result must be an object", method="starknet_getEvents")
        items = result.get("events") or []
        if not isinstance(items, list):
            raise RemoteResponseError("events must be a list", method="starknet_getEvents")
        return EventPage(
            events=[RawEvent.from_rpc(item) for item in items],
            continuation_token=result.get("continuation_token") or None,
        )

    async def get_block(self, block_number: int) -> BlockMetadata:
        result = await self._call(
            "starknet_getBlockWithTxHashes",
            {"block_id": {"block_number": block_number}},
        )
        return BlockMetadata.from_rpc(block_number, result)

    async def get_transaction(self, tx_hash: str) -> TransactionMetadata:
        result = await self._call(
            "starknet_getTransactionByHash",
            {"transaction_hash": tx_hash},
        )
        return TransactionMetadata.from_rpc(tx_hash, result)
