"""
Environment variable loading for facilitator_sync.

- STARKNET_RPC_URL: Starknet JSON-RPC endpoint (required; no default endpoint)
- SYNC_PROVIDER: starknet-rpc | apibara (default: starknet-rpc)
- FACILITATORS_PATH: optional JSON list of facilitators to sync
- Loads .env from project root when available.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from facilitator_sync.core.exceptions import ConfigurationError

# Project root: config is facilitator_sync/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_PACKAGE_DIR = _CONFIG_DIR.parent
_ROOT = _PACKAGE_DIR.parent
_ENV_PATH = _ROOT / ".env"


def load_sync_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides set variables."""
    load_dotenv(_ENV_PATH)


def get_env_str(name: str, default: str = "") -> str:
    load_sync_env()
    return (os.getenv(name) or default).strip()


def get_env_int(name: str, default: int) -> int:
    raw = get_env_str(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def get_env_float(name: str, default: float) -> float:
    raw = get_env_str(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def get_rpc_url() -> str:
    """Return STARKNET_RPC_URL; raise ConfigurationError when unset."""
    url = get_env_str("STARKNET_RPC_URL")
    if not url:
        raise ConfigurationError("Missing STARKNET_RPC_URL (set it in the environment or .env)")
    return url


def get_facilitators_path() -> Path | None:
    raw = get_env_str("FACILITATORS_PATH")
    return Path(raw) if raw else None


def mask_url(url: str) -> str:
    """Hide API keys embedded in RPC URLs (query string or trailing path key)."""
    if "api-key=" in url:
        return url.split("api-key=")[0] + "api-key=***"
    if "/v0_" in url and url.rstrip("/").count("/") > 5:
        # e.g. .../starknet/version/rpc/v0_9/<key>
        return url.rstrip("/").rsplit("/", 1)[0] + "/***"
    return url
