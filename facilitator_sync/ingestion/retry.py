"""
Bounded retry with exponential backoff for rate-limited remote calls.

Only rate-limit failures are retried (HTTP 429, provider code -32097,
"compute units per second" throttling). Any other error is treated as
non-transient and re-raised at once. When attempts run out the executor
returns None instead of raising, so callers can degrade (e.g. record an
absent cache entry) rather than abort the whole window.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Awaitable, Callable, TypeVar

from facilitator_sync.config.settings import CONSERVATIVE_PROFILE, RetryProfile
from facilitator_sync.core.exceptions import RateLimitError
from facilitator_sync.sync_logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RATE_LIMIT_SIGNATURES = ("rate limit", "compute units")
RATE_LIMIT_CODES = (429, -32097)
# Codes only count as whole tokens; hashes and echoed bodies often contain "429"
_RATE_LIMIT_CODE_RE = re.compile(r"(?<![\w-])(?:429|-32097)(?![\w-])")


def is_rate_limit_error(exc: BaseException) -> bool:
    """True if the error looks like provider throttling."""
    if isinstance(exc, RateLimitError):
        return True
    if getattr(exc, "status_code", None) == 429 or getattr(exc, "code", None) in RATE_LIMIT_CODES:
        return True
    text = str(exc).lower()
    if any(sig in text for sig in RATE_LIMIT_SIGNATURES):
        return True
    return _RATE_LIMIT_CODE_RE.search(text) is not None


class RetryExecutor:
    """
    Run an async operation under a RetryProfile.

    attempt i (0-based) that hits a rate limit sleeps
    base_delay_seconds * backoff_factor**i before the next attempt.
    """

    def __init__(
        self,
        profile: RetryProfile = CONSERVATIVE_PROFILE,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        if profile.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self._profile = profile
        self._sleep = sleep

    @property
    def profile(self) -> RetryProfile:
        return self._profile

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        key: Any = None,
    ) -> T | None:
        """Return the operation's result, or None once rate-limit retries are exhausted."""
        attempts = self._profile.max_attempts
        for attempt in range(attempts):
            try:
                return await operation()
            except Exception as e:
                if not is_rate_limit_error(e):
                    raise
                if attempt < attempts - 1:
                    delay = self._profile.delay_for(attempt)
                    logger.info(
                        "retry_rate_limited",
                        key=key,
                        attempt=attempt + 1,
                        max_attempts=attempts,
                        delay_sec=round(delay, 3),
                    )
                    await self._sleep(delay)
                    continue
                logger.warning(
                    "retry_exhausted",
                    key=key,
                    max_attempts=attempts,
                    error=str(e)[:100],
                )
        return None
