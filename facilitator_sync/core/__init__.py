"""
Core utilities: exception taxonomy shared by ingestion, transport, runner and tools.
"""

from facilitator_sync.core.exceptions import (
    CacheConsistencyError,
    ConfigurationError,
    DecodeError,
    FeltError,
    PaginationError,
    RateLimitError,
    RemoteCallError,
    RemoteResponseError,
    SyncError,
    SyncTimeoutError,
    UnresolvedKeyError,
)

__all__ = [
    "CacheConsistencyError",
    "ConfigurationError",
    "DecodeError",
    "FeltError",
    "PaginationError",
    "RateLimitError",
    "RemoteCallError",
    "RemoteResponseError",
    "SyncError",
    "SyncTimeoutError",
    "UnresolvedKeyError",
]
