"""
structlog setup for the sync pipeline.

Every record carries timestamp, level, logger and event_type, plus the
keyword fields of the call site (chain, facilitator_id, tx_hash, page, ...).
JSON by default so a scheduler can ship stdout straight to log aggregation;
LOG_FORMAT=console for local runs.

Two pipeline-specific processors run before rendering:
- u256 amounts and felts above 2**53 are emitted as strings, since most JSON
  consumers parse numbers as doubles;
- fields that may hold an RPC URL have embedded api keys masked.

Imports only stdlib logging and structlog, so any facilitator_sync module can
import it without cycles.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from datetime import datetime, timezone
from typing import Any

import structlog

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_LEVEL_VALUE = getattr(logging, LOG_LEVEL, logging.INFO)
LOG_FORMAT = os.getenv("LOG_FORMAT", "json").strip().lower()
LOG_FORMATS = ("json", "console")

# Largest integer a double represents exactly
_MAX_SAFE_INT = 2**53
_URL_FIELDS = ("rpc_url", "url", "endpoint")
_API_KEY_RE = re.compile(r"(api[-_]?key=)[^&\s]+", re.IGNORECASE)


def _add_timestamp(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
    return event_dict


def _normalize_event(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Rename structlog 'event' to event_type; keep message if present."""
    if "event" in event_dict and "event_type" not in event_dict:
        event_dict["event_type"] = event_dict.pop("event")
    if "message" not in event_dict and "event_type" in event_dict:
        event_dict["message"] = str(event_dict["event_type"])
    return event_dict


def _stringify_big_ints(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, int) and not isinstance(value, bool) and abs(value) > _MAX_SAFE_INT:
            event_dict[key] = str(value)
    return event_dict


def _mask_api_keys(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in _URL_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = _API_KEY_RE.sub(r"\1***", value)
    return event_dict


def _processors(fmt: str) -> list[Any]:
    chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _add_timestamp,
        _normalize_event,
        _stringify_big_ints,
        _mask_api_keys,
    ]
    if fmt == "json":
        chain.append(structlog.processors.JSONRenderer())
    else:
        chain.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return chain


def configure_structlog(log_format: str | None = None, level: int | None = None) -> None:
    """
    (Re)configure structlog. Called once on import; the CLI tools call it again
    for --log-format before anything logs, since loggers cache on first use.
    """
    structlog.configure(
        processors=_processors((log_format or LOG_FORMAT).strip().lower()),
        wrapper_class=structlog.make_filtering_bound_logger(level or LOG_LEVEL_VALUE),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


if not structlog.is_configured():
    configure_structlog()


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Logger for a module; pass __name__.

        logger = get_logger(__name__)
        logger.info("window_completed", chain="starknet", transfers=12)
    """
    return structlog.get_logger(name).bind(logger=name)


def bind_window(chain: str, facilitator_id: str) -> structlog.BoundLogger:
    """Logger with chain and facilitator_id bound, for everything logged about one window."""
    return get_logger("facilitator_sync.window").bind(chain=chain, facilitator_id=facilitator_id)
