"""
Sync settings: one SyncConfig per (chain, provider, facilitator) run.

Provider profiles mirror the two transports the sync historically ran:
plain RPC (low concurrency, conservative backoff, 2000-event windows) and the
optimized provider (higher concurrency, faster backoff, 5000-event windows).
Both talk JSON-RPC; only these knobs differ.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from facilitator_sync.config.env import (
    get_env_float,
    get_env_int,
    get_env_str,
    get_facilitators_path,
    get_rpc_url,
)
from facilitator_sync.core.exceptions import ConfigurationError, FeltError
from facilitator_sync.starknet.felt import FieldElement

# starknet_keccak("Transfer")
TRANSFER_EVENT_SELECTOR = "0x99cd8bde557814842a3121e8ddfd433a539b8c9f14bf31ebf108d12e6196e9"

DEFAULT_CHAIN = "starknet"
DEFAULT_TOKEN_DECIMALS = 6
DEFAULT_MAX_PAGES = 10
# Node-side cap on starknet_getEvents chunk_size
DEFAULT_MAX_CHUNK_SIZE = 1000
# Starknet produces a block roughly every 6 seconds
DEFAULT_BLOCK_INTERVAL_SEC = 6.0
DEFAULT_TIME_WINDOW_SEC = 86_400
DEFAULT_MAX_DURATION_SEC = 15 * 60


class QueryProvider(str, Enum):
    STARKNET_RPC = "starknet-rpc"
    APIBARA = "apibara"


@dataclass(frozen=True)
class RetryProfile:
    """Bounded retry with exponential backoff: delay_i = base_delay_seconds * backoff_factor**i."""

    max_attempts: int
    base_delay_seconds: float
    backoff_factor: float

    def delay_for(self, attempt_index: int) -> float:
        return self.base_delay_seconds * (self.backoff_factor ** attempt_index)


CONSERVATIVE_PROFILE = RetryProfile(max_attempts=3, base_delay_seconds=1.5, backoff_factor=2.0)
AGGRESSIVE_PROFILE = RetryProfile(max_attempts=2, base_delay_seconds=0.5, backoff_factor=1.5)


@dataclass(frozen=True)
class ProviderDefaults:
    limit: int
    concurrency: int
    retry: RetryProfile


PROVIDER_DEFAULTS: dict[QueryProvider, ProviderDefaults] = {
    QueryProvider.STARKNET_RPC: ProviderDefaults(limit=2_000, concurrency=5, retry=CONSERVATIVE_PROFILE),
    QueryProvider.APIBARA: ProviderDefaults(limit=5_000, concurrency=10, retry=AGGRESSIVE_PROFILE),
}


@dataclass(frozen=True)
class TokenConfig:
    address: str
    decimals: int = DEFAULT_TOKEN_DECIMALS


@dataclass(frozen=True)
class FacilitatorConfig:
    """Facilitator of interest: transfers it sends are kept, all others dropped."""

    id: str
    address: str
    token: TokenConfig | None = None


@dataclass
class SyncConfig:
    """
    Config for one windowed sync run.

    limit: results cap per window and target page size (page size is clamped
        to max_chunk_size).
    max_pages: hard cap on getEvents pages per window.
    concurrency: ceiling for block / transaction resolution.
    retry: backoff profile for rate-limited calls.
    block_interval_seconds: average block time used to estimate the block range.
    """

    chain: str
    provider: QueryProvider
    rpc_url: str
    token: TokenConfig
    facilitator: FacilitatorConfig
    limit: int = PROVIDER_DEFAULTS[QueryProvider.STARKNET_RPC].limit
    max_pages: int = DEFAULT_MAX_PAGES
    max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE
    concurrency: int = PROVIDER_DEFAULTS[QueryProvider.STARKNET_RPC].concurrency
    retry: RetryProfile = field(default_factory=lambda: CONSERVATIVE_PROFILE)
    block_interval_seconds: float = DEFAULT_BLOCK_INTERVAL_SEC
    event_selector: str = TRANSFER_EVENT_SELECTOR
    time_window_seconds: int = DEFAULT_TIME_WINDOW_SEC
    max_duration_seconds: float = DEFAULT_MAX_DURATION_SEC

    def validate(self) -> None:
        """Raise ConfigurationError for anything that would make the run meaningless."""
        if not (self.chain or "").strip():
            raise ConfigurationError("chain must be non-empty")
        if not (self.rpc_url or "").strip():
            raise ConfigurationError("rpc_url must be non-empty")
        if not (self.token.address or "").strip():
            raise ConfigurationError("token address is required")
        if self.token.decimals < 0:
            raise ConfigurationError("token decimals must be >= 0")
        if not (self.facilitator.id or "").strip():
            raise ConfigurationError("facilitator id is required")
        if not (self.facilitator.address or "").strip():
            raise ConfigurationError(
                "facilitator address is required",
                context={"facilitator_id": self.facilitator.id},
            )
        if not (self.event_selector or "").strip():
            raise ConfigurationError("event_selector must be non-empty")
        for label, value in (
            ("token address", self.token.address),
            ("facilitator address", self.facilitator.address),
            ("event_selector", self.event_selector),
        ):
            try:
                FieldElement.parse(value)
            except FeltError as e:
                raise ConfigurationError(f"{label} is not a valid felt: {value!r}") from e
        for name in ("limit", "max_pages", "max_chunk_size", "concurrency", "time_window_seconds"):
            if int(getattr(self, name)) < 1:
                raise ConfigurationError(f"{name} must be >= 1")
        if self.block_interval_seconds <= 0:
            raise ConfigurationError("block_interval_seconds must be positive")
        if self.max_duration_seconds <= 0:
            raise ConfigurationError("max_duration_seconds must be positive")
        if self.retry.max_attempts < 1:
            raise ConfigurationError("retry max_attempts must be >= 1")
        if self.retry.base_delay_seconds < 0 or self.retry.backoff_factor < 1:
            raise ConfigurationError("retry delay must be >= 0 and backoff factor >= 1")

    def for_facilitator(self, facilitator: FacilitatorConfig) -> "SyncConfig":
        """Copy of this config targeting another facilitator (and its token, if it names one)."""
        return replace(self, facilitator=facilitator, token=facilitator.token or self.token)


def _parse_provider(raw: str | QueryProvider | None) -> QueryProvider:
    if isinstance(raw, QueryProvider):
        return raw
    s = (raw or QueryProvider.STARKNET_RPC.value).strip().lower()
    try:
        return QueryProvider(s)
    except ValueError as e:
        choices = ", ".join(p.value for p in QueryProvider)
        raise ConfigurationError(f"unknown provider {s!r} (expected one of: {choices})") from e


def get_settings(
    provider: str | QueryProvider | None = None,
    facilitator: FacilitatorConfig | None = None,
) -> SyncConfig:
    """
    Build a SyncConfig from environment variables.

    Provider defaults fill limit, concurrency and retry profile unless
    SYNC_LIMIT, SYNC_CONCURRENCY or RETRY_* override them. Does not validate;
    WindowOrchestrator validates before any network I/O.
    """
    prov = _parse_provider(provider or get_env_str("SYNC_PROVIDER"))
    defaults = PROVIDER_DEFAULTS[prov]
    token = TokenConfig(
        address=get_env_str("TOKEN_ADDRESS"),
        decimals=get_env_int("TOKEN_DECIMALS", DEFAULT_TOKEN_DECIMALS),
    )
    fac = facilitator or FacilitatorConfig(
        id=get_env_str("FACILITATOR_ID"),
        address=get_env_str("FACILITATOR_ADDRESS"),
    )
    retry = RetryProfile(
        max_attempts=get_env_int("RETRY_MAX_ATTEMPTS", defaults.retry.max_attempts),
        base_delay_seconds=get_env_float("RETRY_BASE_DELAY_MS", defaults.retry.base_delay_seconds * 1000) / 1000.0,
        backoff_factor=get_env_float("RETRY_BACKOFF_FACTOR", defaults.retry.backoff_factor),
    )
    return SyncConfig(
        chain=get_env_str("SYNC_CHAIN", DEFAULT_CHAIN),
        provider=prov,
        rpc_url=get_rpc_url(),
        token=fac.token or token,
        facilitator=fac,
        limit=get_env_int("SYNC_LIMIT", defaults.limit),
        max_pages=get_env_int("SYNC_MAX_PAGES", DEFAULT_MAX_PAGES),
        concurrency=get_env_int("SYNC_CONCURRENCY", defaults.concurrency),
        retry=retry,
        block_interval_seconds=get_env_float("BLOCK_TIME_SECONDS", DEFAULT_BLOCK_INTERVAL_SEC),
        time_window_seconds=int(get_env_float("SYNC_WINDOW_HOURS", DEFAULT_TIME_WINDOW_SEC / 3600) * 3600),
        max_duration_seconds=get_env_float("SYNC_MAX_DURATION_SEC", DEFAULT_MAX_DURATION_SEC),
    )


def _facilitator_from_dict(item: dict[str, Any]) -> FacilitatorConfig:
    if not isinstance(item, dict):
        raise ConfigurationError("facilitator entry must be an object")
    token_raw = item.get("token")
    token = None
    if isinstance(token_raw, dict) and token_raw.get("address"):
        token = TokenConfig(
            address=str(token_raw["address"]).strip(),
            decimals=int(token_raw.get("decimals", DEFAULT_TOKEN_DECIMALS)),
        )
    return FacilitatorConfig(
        id=str(item.get("id") or "").strip(),
        address=str(item.get("address") or "").strip(),
        token=token,
    )


def load_facilitators(path: str | Path | None = None) -> list[FacilitatorConfig]:
    """
    Load facilitators from a JSON list:
        [{"id": "...", "address": "0x...", "token": {"address": "0x...", "decimals": 6}}]
    Returns [] when no path is given and FACILITATORS_PATH is unset.
    """
    p = Path(path) if path else get_facilitators_path()
    if p is None:
        return []
    if not p.exists():
        raise ConfigurationError(f"facilitators file not found: {p}")
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"failed to parse {p}: {e}") from e
    if not isinstance(raw, list):
        raise ConfigurationError(f"{p} must contain a JSON list")
    return [_facilitator_from_dict(item) for item in raw]
