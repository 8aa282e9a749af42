"""
Tests for EventPaginator: continuation tokens, caps, chunk size, retry exhaustion.
"""

from __future__ import annotations

import asyncio

import pytest

from facilitator_sync.config.settings import RetryProfile, TRANSFER_EVENT_SELECTOR
from facilitator_sync.core.exceptions import ConfigurationError, PaginationError, RateLimitError, RemoteCallError
from facilitator_sync.ingestion.paginator import EventPaginator, EventQuery
from facilitator_sync.ingestion.retry import RetryExecutor
from facilitator_sync.starknet.models import EventPage

SEL = TRANSFER_EVENT_SELECTOR


def _query(**overrides):
    params = dict(
        from_block=100,
        to_block=200,
        contract_address="0x123",
        event_selectors=[SEL],
        page_size=2000,
        max_results=2000,
        max_pages=10,
    )
    params.update(overrides)
    return EventQuery(**params)


def _pages(event_factory, sizes, tokens):
    pages = []
    n = 0
    for size, token in zip(sizes, tokens):
        events = []
        for _ in range(size):
            n += 1
            events.append(event_factory([SEL, "0x1", "0x2"], ["0x1", "0x0"], tx_hash=hex(n)))
        pages.append(EventPage(events=events, continuation_token=token))
    return pages


def _paginator(transport, sleep, profile=None, **kwargs):
    retry = RetryExecutor(profile or RetryProfile(3, 1.0, 2.0), sleep=sleep)
    return EventPaginator(transport, retry, **kwargs)


def test_follows_tokens_until_exhausted(transport_factory, event_factory, recording_sleep):
    """3 pages with a continuation token, then a 4th without: exactly 4 calls, all events kept."""
    pages = _pages(event_factory, [3, 3, 3, 2], ["t1", "t2", "t3", None])
    transport = transport_factory(pages=pages)
    result = asyncio.run(_paginator(transport, recording_sleep).paginate(_query()))
    assert transport.calls["get_events"] == 4
    assert len(result.events) == 11
    assert result.pages == 4
    assert result.truncated is False
    assert result.continuation_token is None
    tokens = [r["continuation_token"] for r in transport.events_requests]
    assert tokens == [None, "t1", "t2", "t3"]


def test_results_cap_stops_early_and_flags_truncation(transport_factory, event_factory, recording_sleep):
    pages = _pages(event_factory, [5, 5, 5], ["t1", "t2", None])
    transport = transport_factory(pages=pages)
    result = asyncio.run(_paginator(transport, recording_sleep).paginate(_query(page_size=5, max_results=7)))
    assert transport.calls["get_events"] == 2
    assert len(result.events) == 10
    assert result.truncated is True
    assert result.continuation_token == "t2"


def test_page_cap_stops_early_and_flags_truncation(transport_factory, event_factory, recording_sleep):
    pages = _pages(event_factory, [1, 1, 1, 1], ["t1", "t2", "t3", None])
    transport = transport_factory(pages=pages)
    result = asyncio.run(_paginator(transport, recording_sleep).paginate(_query(max_pages=2)))
    assert transport.calls["get_events"] == 2
    assert result.pages == 2
    assert result.truncated is True


def test_cap_hit_on_final_page_is_not_truncation(transport_factory, event_factory, recording_sleep):
    """The node returned no token, so nothing was left behind."""
    pages = _pages(event_factory, [2], [None])
    transport = transport_factory(pages=pages)
    result = asyncio.run(_paginator(transport, recording_sleep).paginate(_query(max_results=2, max_pages=1)))
    assert result.truncated is False


def test_chunk_size_never_exceeds_node_limit(transport_factory, recording_sleep):
    transport = transport_factory(pages=[EventPage()])
    paginator = _paginator(transport, recording_sleep)
    assert paginator.chunk_size_for(5000) == 1000
    assert paginator.chunk_size_for(20) == 20
    asyncio.run(paginator.paginate(_query(page_size=5000, max_results=5000)))
    assert transport.events_requests[0]["chunk_size"] == 1000


def test_request_carries_window_and_selector(transport_factory, recording_sleep):
    transport = transport_factory(pages=[EventPage()])
    asyncio.run(_paginator(transport, recording_sleep).paginate(_query()))
    req = transport.events_requests[0]
    assert req["from_block"] == 100
    assert req["to_block"] == 200
    assert req["contract_address"] == "0x123"
    assert req["event_selectors"] == [SEL]


def test_rate_limited_page_is_retried(transport_factory, event_factory, recording_sleep):
    pages = _pages(event_factory, [2], [None])
    transport = transport_factory(pages=pages, failures={"get_events": [RateLimitError("429")]})
    result = asyncio.run(_paginator(transport, recording_sleep).paginate(_query()))
    assert len(result.events) == 2
    assert transport.calls["get_events"] == 2
    assert recording_sleep.delays == [1.0]


def test_exhausted_retries_raise_pagination_error(transport_factory, recording_sleep):
    transport = transport_factory(failures={"get_events": [RateLimitError("429")] * 3})
    with pytest.raises(PaginationError):
        asyncio.run(_paginator(transport, recording_sleep).paginate(_query()))


def test_non_transient_error_propagates(transport_factory, recording_sleep):
    transport = transport_factory(failures={"get_events": [RemoteCallError("invalid block range", code=-32602)]})
    with pytest.raises(RemoteCallError, match="invalid block range"):
        asyncio.run(_paginator(transport, recording_sleep).paginate(_query()))
    assert transport.calls["get_events"] == 1


@pytest.mark.parametrize(
    "overrides",
    [
        {"from_block": 300},
        {"from_block": -1},
        {"page_size": 0},
        {"max_pages": 0},
        {"event_selectors": []},
    ],
)
def test_invalid_query_rejected_before_any_call(transport_factory, recording_sleep, overrides):
    transport = transport_factory()
    with pytest.raises(ConfigurationError):
        asyncio.run(_paginator(transport, recording_sleep).paginate(_query(**overrides)))
    assert transport.total_calls() == 0
