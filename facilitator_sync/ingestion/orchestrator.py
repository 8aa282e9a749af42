"""
Window orchestrator: one time window in, filtered NormalizedTransfers out.

IDLE -> ESTIMATING_RANGE -> PAGINATING -> RESOLVING -> DECODING -> FILTERING -> DONE

Any unrecoverable error (configuration, non-transient pagination failure)
moves to ABORTED and propagates. Resolution misses and per-event decode
failures are absorbed downstream with fallbacks and warnings. The result is
returned only after decode and filter complete, never incrementally.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable

from facilitator_sync.config.settings import SyncConfig
from facilitator_sync.core.exceptions import ConfigurationError
from facilitator_sync.ingestion.block_range import (
    AverageIntervalEstimator,
    BlockRange,
    BlockRangeEstimator,
)
from facilitator_sync.ingestion.cache import ResolutionCache
from facilitator_sync.ingestion.decoder import EventDecoder
from facilitator_sync.ingestion.facilitator_filter import FacilitatorFilter
from facilitator_sync.ingestion.paginator import EventPaginator, EventQuery, PaginationResult
from facilitator_sync.ingestion.retry import RetryExecutor
from facilitator_sync.ingestion.scheduler import BoundedScheduler
from facilitator_sync.starknet.models import NormalizedTransfer
from facilitator_sync.starknet.transport import EventTransport
from facilitator_sync.sync_logging import get_logger

logger = get_logger(__name__)


class WindowState(str, Enum):
    IDLE = "idle"
    ESTIMATING_RANGE = "estimating_range"
    PAGINATING = "paginating"
    RESOLVING = "resolving"
    DECODING = "decoding"
    FILTERING = "filtering"
    DONE = "done"
    ABORTED = "aborted"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


class WindowOrchestrator:
    """
    Drives paginator, resolution cache, decoder and filter for one window per call.

    A fresh ResolutionCache is built for every run(); nothing is carried
    between windows. Calls on one instance must not overlap.
    """

    def __init__(
        self,
        config: SyncConfig,
        transport: EventTransport,
        *,
        estimator: BlockRangeEstimator | None = None,
        clock: Callable[[], datetime] = _utc_now,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._transport = transport
        self._clock = clock
        self._sleep = sleep
        self._estimator = estimator
        self._running = False
        self.state = WindowState.IDLE
        self.block_range: BlockRange | None = None
        self.last_pagination: PaginationResult | None = None
        self.last_cache_stats: dict[str, int] = {}
        self._log_context = {"chain": config.chain, "facilitator_id": config.facilitator.id}

    def _transition(self, state: WindowState) -> None:
        logger.debug("window_state", state=state.value, previous=self.state.value, **self._log_context)
        self.state = state

    async def run(self, since: datetime, now: datetime) -> list[NormalizedTransfer]:
        if self._running:
            raise RuntimeError("WindowOrchestrator.run is not reentrant")
        self._running = True
        self.state = WindowState.IDLE
        self.block_range = None
        self.last_pagination = None
        self.last_cache_stats = {}
        try:
            result = await self._run(_as_utc(since), _as_utc(now))
        except BaseException as e:
            failed_in = self.state
            self._transition(WindowState.ABORTED)
            logger.error(
                "window_aborted",
                failed_in=failed_in.value,
                error_type=type(e).__name__,
                error=str(e),
                **self._log_context,
            )
            raise
        finally:
            self._running = False
        self._transition(WindowState.DONE)
        return result

    async def _run(self, since: datetime, now: datetime) -> list[NormalizedTransfer]:
        config = self._config
        config.validate()
        if since >= now:
            raise ConfigurationError(f"window start {since.isoformat()} is not before end {now.isoformat()}")
        facilitator_filter = FacilitatorFilter(config.facilitator.address)
        decoder = EventDecoder(config, clock=self._clock)
        retry = RetryExecutor(config.retry, sleep=self._sleep)
        estimator = self._estimator or AverageIntervalEstimator(
            config.block_interval_seconds, clock=self._clock
        )
        logger.info(
            "window_started",
            since=since.isoformat(),
            now=now.isoformat(),
            provider=config.provider.value,
            token=config.token.address,
            **self._log_context,
        )

        self._transition(WindowState.ESTIMATING_RANGE)
        latest = await self._transport.get_latest_block_number()
        self.block_range = estimator(latest, since, now)
        logger.info(
            "window_block_range_estimated",
            latest_block=latest,
            from_block=self.block_range.from_block,
            to_block=self.block_range.to_block,
            approximate=True,
            **self._log_context,
        )

        self._transition(WindowState.PAGINATING)
        paginator = EventPaginator(
            self._transport,
            retry,
            max_chunk_size=config.max_chunk_size,
            log_context=self._log_context,
        )
        pagination = await paginator.paginate(
            EventQuery(
                from_block=self.block_range.from_block,
                to_block=self.block_range.to_block,
                contract_address=config.token.address,
                event_selectors=[config.event_selector],
                page_size=config.limit,
                max_results=config.limit,
                max_pages=config.max_pages,
            )
        )
        self.last_pagination = pagination
        events = pagination.events

        self._transition(WindowState.RESOLVING)
        cache = ResolutionCache(
            self._transport,
            retry,
            BoundedScheduler(config.concurrency),
            log_context=self._log_context,
        )
        await cache.resolve_blocks(e.block_number for e in events)
        await cache.resolve_transactions(e.transaction_hash for e in events)
        self.last_cache_stats = cache.stats()
        logger.info("resolution_completed", **self.last_cache_stats, **self._log_context)

        self._transition(WindowState.DECODING)
        decoded = decoder.decode_batch(events, cache)

        self._transition(WindowState.FILTERING)
        kept = facilitator_filter.apply(decoded)
        logger.info(
            "window_completed",
            fetched=len(events),
            decoded=len(decoded),
            transfers=len(kept),
            truncated=pagination.truncated,
            **self._log_context,
        )
        return kept
