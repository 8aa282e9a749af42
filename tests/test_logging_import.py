"""
Test that sync_logging can be imported without circular import and logger works.
"""

from __future__ import annotations


def test_logging_import():
    """Import get_logger from sync_logging and use the logger."""
    from facilitator_sync.sync_logging import get_logger

    logger = get_logger("test")
    assert logger is not None
    assert hasattr(logger, "info")
    assert hasattr(logger, "debug")
    assert hasattr(logger, "warning")
    assert hasattr(logger, "error")
    # Smoke test: call info (should not raise)
    logger.info("test_message", key="value")


def test_bind_window_smoke():
    from facilitator_sync.sync_logging import bind_window

    log = bind_window("starknet", "fac-1")
    log.warning("pagination_cap_reached", pages=10, more_data_available=True)


def test_normalize_event_renames_event_key():
    from facilitator_sync.sync_logging.logger import _normalize_event

    out = _normalize_event(None, "info", {"event": "window_completed", "transfers": 3})
    assert out["event_type"] == "window_completed"
    assert out["message"] == "window_completed"
    assert "event" not in out


def test_large_ints_are_logged_as_strings():
    from facilitator_sync.sync_logging.logger import _stringify_big_ints

    out = _stringify_big_ints(None, "info", {"amount": 2**200, "page": 3, "ok": True})
    assert out == {"amount": str(2**200), "page": 3, "ok": True}


def test_api_keys_are_masked():
    from facilitator_sync.sync_logging.logger import _mask_api_keys

    out = _mask_api_keys(None, "info", {"rpc_url": "https://node.test/rpc?api-key=s3cret&x=1", "tx_hash": "0x1"})
    assert out["rpc_url"] == "https://node.test/rpc?api-key=***&x=1"
    assert out["tx_hash"] == "0x1"
