"""
Application-level exceptions.

One hierarchy for the ingestion pipeline so the runner and the external
scheduler can classify a failed window:

- ConfigurationError: fatal before any network I/O.
- RemoteCallError (and RateLimitError, RemoteResponseError): remote node failures.
- PaginationError: a page could not be fetched; the window is aborted.
- DecodeError (and FeltError): one malformed event; skipped, never fatal.
- CacheConsistencyError / UnresolvedKeyError: programming errors.
- SyncTimeoutError: the window exceeded its maximum duration.
"""

from __future__ import annotations

from typing import Any


class SyncError(Exception):
    """Base exception for all facilitator_sync errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(SyncError):
    """Missing or invalid settings (e.g. no facilitator address)."""


class RemoteCallError(SyncError):
    """A call to the remote node failed (network, HTTP or JSON-RPC error)."""

    def __init__(
        self,
        message: str,
        method: str | None = None,
        code: int | None = None,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.method = method
        self.code = code
        self.status_code = status_code

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update({
            "method": self.method,
            "code": self.code,
            "status_code": self.status_code,
        })
        return data

    def __str__(self) -> str:
        parts = [self.message]
        if self.method:
            parts.append(f"[method={self.method}]")
        if self.code is not None:
            parts.append(f"[code={self.code}]")
        if self.status_code is not None:
            parts.append(f"[status={self.status_code}]")
        return " ".join(parts)


class RateLimitError(RemoteCallError):
    """Remote call rejected by provider rate limiting (HTTP 429, -32097, compute units)."""


class RemoteResponseError(RemoteCallError):
    """Remote answered but the payload does not have the expected shape."""


class PaginationError(SyncError):
    """An event page could not be fetched after retries; the window is aborted."""


class DecodeError(SyncError):
    """A single raw event could not be decoded into a transfer."""


class FeltError(DecodeError):
    """Value cannot be interpreted as a field element."""


class CacheConsistencyError(SyncError):
    """A resolution cache key was written twice."""


class UnresolvedKeyError(SyncError, KeyError):
    """A cache key was read that was never looked up."""

    def __str__(self) -> str:
        return self.message


class SyncTimeoutError(SyncError):
    """A window did not finish within max_duration_seconds."""
