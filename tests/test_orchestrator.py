"""
End-to-end tests for WindowOrchestrator over an in-memory transport.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from facilitator_sync.config.settings import FacilitatorConfig, TRANSFER_EVENT_SELECTOR
from facilitator_sync.core.exceptions import ConfigurationError, PaginationError, RateLimitError
from facilitator_sync.ingestion.block_range import BlockRange
from facilitator_sync.ingestion.orchestrator import WindowOrchestrator, WindowState
from facilitator_sync.starknet.models import EventPage

SEL = TRANSFER_EVENT_SELECTOR
NOW = datetime(2024, 1, 2, tzinfo=timezone.utc)
SINCE = NOW - timedelta(days=1)


def _orchestrator(config, transport, recording_sleep, **kwargs):
    kwargs.setdefault("clock", lambda: NOW)
    return WindowOrchestrator(config, transport, sleep=recording_sleep, **kwargs)


def test_mixed_encodings_end_to_end(sync_config, transport_factory, event_factory, recording_sleep):
    """Indexed transfer from the facilitator is kept; packed transfer from someone else is dropped."""
    events = [
        event_factory([SEL, "0xAAA", "0xBBB"], ["0x64", "0x0"], tx_hash="0x101", block_number=90_000),
        event_factory([SEL], ["0xCCC", "0xDDD", "0xC8", "0x0"], tx_hash="0x102", block_number=90_001),
    ]
    transport = transport_factory(
        latest_block=100_000,
        pages=[EventPage(events=events)],
        blocks={90_000: 1_704_100_000, 90_001: 1_704_100_006},
        transactions={"0x101": "0xAAA", "0x102": "0xCCC"},
    )
    orch = _orchestrator(sync_config, transport, recording_sleep)
    result = asyncio.run(orch.run(SINCE, NOW))

    assert len(result) == 1
    t = result[0]
    assert t.amount == 100
    assert t.sender == "0xaaa"
    assert t.recipient == "0xbbb"
    assert t.tx_hash == "0x101"
    assert t.block_timestamp == datetime.fromtimestamp(1_704_100_000, tz=timezone.utc)
    assert orch.state is WindowState.DONE
    assert orch.last_pagination.truncated is False
    assert orch.last_cache_stats["blocks_resolved"] == 2


def test_block_range_spans_the_window(sync_config, transport_factory, recording_sleep):
    """One day at 6s per block with wall clock == now: 14400 blocks back from the head."""
    transport = transport_factory(latest_block=100_000, pages=[EventPage()])
    orch = _orchestrator(sync_config, transport, recording_sleep)
    assert asyncio.run(orch.run(SINCE, NOW)) == []
    assert orch.block_range == BlockRange(from_block=85_600, to_block=100_000)
    req = transport.events_requests[0]
    assert (req["from_block"], req["to_block"]) == (85_600, 100_000)
    assert req["contract_address"] == sync_config.token.address
    assert req["event_selectors"] == [SEL]


def test_custom_estimator_is_used(sync_config, transport_factory, recording_sleep):
    transport = transport_factory(latest_block=500, pages=[EventPage()])
    seen = []

    def estimator(latest, since, now):
        seen.append(latest)
        return BlockRange(10, 20)

    orch = _orchestrator(sync_config, transport, recording_sleep, estimator=estimator)
    asyncio.run(orch.run(SINCE, NOW))
    assert seen == [500]
    assert transport.events_requests[0]["from_block"] == 10


def test_block_lookups_are_memoized_across_events(sync_config, transport_factory, event_factory, recording_sleep):
    events = [
        event_factory([SEL, "0xAAA", hex(0x100 + i)], [hex(i + 1), "0x0"], tx_hash=hex(0x200 + i), block_number=99_990 + i % 2)
        for i in range(6)
    ]
    transport = transport_factory(
        pages=[EventPage(events=events)],
        blocks={99_990: 1_704_150_000, 99_991: 1_704_150_006},
        transactions={hex(0x200 + i): "0xAAA" for i in range(6)},
    )
    result = asyncio.run(_orchestrator(sync_config, transport, recording_sleep).run(SINCE, NOW))
    assert len(result) == 6
    assert transport.calls["get_block"] == 2
    assert transport.calls["get_transaction"] == 6


def test_failing_block_lookups_do_not_drop_transfers(sync_config, transport_factory, event_factory, recording_sleep):
    events = [event_factory([SEL, "0xAAA", "0xBBB"], ["0x5", "0x0"], tx_hash="0x1", block_number=99_999)]
    transport = transport_factory(pages=[EventPage(events=events)], blocks={}, transactions={"0x1": "0xAAA"})
    result = asyncio.run(_orchestrator(sync_config, transport, recording_sleep).run(SINCE, NOW))
    assert len(result) == 1
    assert result[0].block_timestamp == NOW


def test_invalid_config_fails_before_any_transport_call(sync_config, transport_factory, recording_sleep):
    config = replace(sync_config, facilitator=FacilitatorConfig(id="fac-1", address=""))
    transport = transport_factory()
    orch = _orchestrator(config, transport, recording_sleep)
    with pytest.raises(ConfigurationError):
        asyncio.run(orch.run(SINCE, NOW))
    assert transport.total_calls() == 0
    assert orch.state is WindowState.ABORTED


def test_non_positive_interval_fails_before_any_transport_call(sync_config, transport_factory, recording_sleep):
    config = replace(sync_config, block_interval_seconds=0)
    transport = transport_factory()
    with pytest.raises(ConfigurationError):
        asyncio.run(_orchestrator(config, transport, recording_sleep).run(SINCE, NOW))
    assert transport.total_calls() == 0


def test_empty_window_is_rejected(sync_config, transport_factory, recording_sleep):
    transport = transport_factory()
    with pytest.raises(ConfigurationError):
        asyncio.run(_orchestrator(sync_config, transport, recording_sleep).run(NOW, NOW))
    assert transport.total_calls() == 0


def test_pagination_failure_aborts_window(sync_config, transport_factory, recording_sleep):
    transport = transport_factory(failures={"get_events": [RateLimitError("429")] * 3})
    orch = _orchestrator(sync_config, transport, recording_sleep)
    with pytest.raises(PaginationError):
        asyncio.run(orch.run(SINCE, NOW))
    assert orch.state is WindowState.ABORTED
    assert recording_sleep.delays == [1.5, 3.0]
    assert transport.calls["get_block"] == 0


def test_orchestrator_can_run_again_after_abort(sync_config, transport_factory, recording_sleep):
    transport = transport_factory(pages=[EventPage()], failures={"get_latest_block_number": [ConfigurationError("boom")]})
    orch = _orchestrator(sync_config, transport, recording_sleep)
    with pytest.raises(ConfigurationError):
        asyncio.run(orch.run(SINCE, NOW))
    assert asyncio.run(orch.run(SINCE, NOW)) == []
    assert orch.state is WindowState.DONE


def test_concurrent_runs_on_one_instance_are_rejected(sync_config, transport_factory, recording_sleep):
    transport = transport_factory(pages=[EventPage()])
    orch = _orchestrator(sync_config, transport, recording_sleep)

    async def _both():
        return await asyncio.gather(orch.run(SINCE, NOW), orch.run(SINCE, NOW), return_exceptions=True)

    first, second = asyncio.run(_both())
    assert first == []
    assert isinstance(second, RuntimeError)


def test_naive_datetimes_are_treated_as_utc(sync_config, transport_factory, recording_sleep):
    transport = transport_factory(latest_block=100_000, pages=[EventPage()])
    orch = _orchestrator(sync_config, transport, recording_sleep)
    asyncio.run(orch.run(SINCE.replace(tzinfo=None), NOW.replace(tzinfo=None)))
    assert orch.block_range == BlockRange(from_block=85_600, to_block=100_000)


def test_decimal_facilitator_address_keeps_its_transfers(sync_config, transport_factory, event_factory, recording_sleep):
    config = replace(sync_config, facilitator=FacilitatorConfig(id="fac-1", address=str(0xAAA)))
    events = [event_factory([SEL, "0xAAA", "0xBBB"], ["0x64", "0x0"], tx_hash="0x101", block_number=99_000)]
    transport = transport_factory(pages=[EventPage(events=events)], blocks={99_000: 1_704_100_000}, transactions={"0x101": "0xAAA"})
    result = asyncio.run(_orchestrator(config, transport, recording_sleep).run(SINCE, NOW))
    assert [t.amount for t in result] == [100]
