"""
Paginated event retrieval over a block-number window.

Follows continuation tokens until the node reports none, the results cap is
reached, or the page cap is reached. Stopping on a cap while the node still
has data is reported (warning + truncated=True), never silent.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from facilitator_sync.config.settings import DEFAULT_MAX_CHUNK_SIZE
from facilitator_sync.core.exceptions import ConfigurationError, PaginationError
from facilitator_sync.ingestion.retry import RetryExecutor
from facilitator_sync.starknet.models import EventPage, RawEvent
from facilitator_sync.starknet.transport import EventTransport
from facilitator_sync.sync_logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class EventQuery:
    from_block: int
    to_block: int
    contract_address: str
    event_selectors: Sequence[str]
    page_size: int
    max_results: int
    max_pages: int


@dataclass
class PaginationResult:
    """
    Accumulated events of one pagination run.

    truncated is True when a cap stopped pagination while the node still
    returned a continuation token; that token is kept in continuation_token.
    """

    events: list[RawEvent] = field(default_factory=list)
    pages: int = 0
    continuation_token: str | None = None
    truncated: bool = False


class EventPaginator:
    def __init__(
        self,
        transport: EventTransport,
        retry: RetryExecutor,
        *,
        max_chunk_size: int = DEFAULT_MAX_CHUNK_SIZE,
        log_context: dict | None = None,
    ) -> None:
        if max_chunk_size < 1:
            raise ValueError("max_chunk_size must be >= 1")
        self._transport = transport
        self._retry = retry
        self._max_chunk_size = max_chunk_size
        self._log_context = log_context or {}

    def chunk_size_for(self, page_size: int) -> int:
        """Page size actually requested: never above the node's chunk limit."""
        return max(1, min(page_size, self._max_chunk_size))

    @staticmethod
    def _validate(query: EventQuery) -> None:
        if query.from_block < 0 or query.to_block < 0:
            raise ConfigurationError("block range must be non-negative")
        if query.from_block > query.to_block:
            raise ConfigurationError(
                f"from_block {query.from_block} is after to_block {query.to_block}"
            )
        if query.page_size < 1 or query.max_results < 1 or query.max_pages < 1:
            raise ConfigurationError("page_size, max_results and max_pages must be >= 1")
        if not query.event_selectors:
            raise ConfigurationError("at least one event selector is required")

    async def paginate(self, query: EventQuery) -> PaginationResult:
        self._validate(query)
        chunk_size = self.chunk_size_for(query.page_size)
        result = PaginationResult()
        token: str | None = None

        while True:
            page_number = result.pages + 1
            logger.info(
                "pagination_page_requested",
                page=page_number,
                with_continuation=token is not None,
                from_block=query.from_block,
                to_block=query.to_block,
                **self._log_context,
            )
            page = await self._fetch_page(query, chunk_size, token, page_number)
            result.events.extend(page.events)
            result.pages = page_number
            token = page.continuation_token
            logger.info(
                "pagination_page_fetched",
                page=page_number,
                events=len(page.events),
                total=len(result.events),
                **self._log_context,
            )

            if not token:
                break
            if len(result.events) >= query.max_results or result.pages >= query.max_pages:
                result.truncated = True
                result.continuation_token = token
                logger.warning(
                    "pagination_cap_reached",
                    events=len(result.events),
                    pages=result.pages,
                    max_results=query.max_results,
                    max_pages=query.max_pages,
                    more_data_available=True,
                    **self._log_context,
                )
                break

        logger.info(
            "pagination_completed",
            events=len(result.events),
            pages=result.pages,
            truncated=result.truncated,
            **self._log_context,
        )
        return result

    async def _fetch_page(
        self,
        query: EventQuery,
        chunk_size: int,
        token: str | None,
        page_number: int,
    ) -> EventPage:
        page = await self._retry.run(
            lambda: self._transport.get_events(
                query.from_block,
                query.to_block,
                query.contract_address,
                list(query.event_selectors),
                chunk_size,
                token,
            ),
            key=f"events_page_{page_number}",
        )
        if page is None:
            raise PaginationError(
                f"events page {page_number} could not be fetched: rate limit retries exhausted",
                context={"page": page_number, "from_block": query.from_block, "to_block": query.to_block},
            )
        return page
