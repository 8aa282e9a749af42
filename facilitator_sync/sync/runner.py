"""
Window sync runner: one bounded run per facilitator, persisted on success.

The external scheduler (cron, systemd timer, CI job) calls run_sync() every
few minutes. Each facilitator gets its own WindowOrchestrator invocation
bounded by max_duration_seconds; a window is upserted only after the
orchestrator returns, so a failed or timed-out window writes nothing.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Sequence

from facilitator_sync.config.settings import FacilitatorConfig, SyncConfig
from facilitator_sync.core.exceptions import SyncError, SyncTimeoutError
from facilitator_sync.database.transfers import upsert_transfers
from facilitator_sync.ingestion.orchestrator import WindowOrchestrator
from facilitator_sync.starknet.models import NormalizedTransfer
from facilitator_sync.starknet.transport import EventTransport
from facilitator_sync.sync_logging import bind_window, get_logger

logger = get_logger(__name__)

Persist = Callable[[Iterable[NormalizedTransfer]], tuple[int, int]]


@dataclass
class WindowOutcome:
    """Result of one facilitator window."""

    facilitator_id: str
    transfers: list[NormalizedTransfer] = field(default_factory=list)
    inserted: int = 0
    updated: int = 0
    truncated: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def run_sync_window(
    config: SyncConfig,
    transport: EventTransport,
    *,
    since: datetime | None = None,
    now: datetime | None = None,
    persist: Persist | None = upsert_transfers,
    orchestrator: WindowOrchestrator | None = None,
) -> WindowOutcome:
    """
    Run one window for config.facilitator and persist the result.

    since defaults to now - time_window_seconds. persist=None is a dry run.
    Raises whatever the orchestrator raises, or SyncTimeoutError when the
    window exceeds max_duration_seconds.
    """
    now = now or _utc_now()
    since = since or now - timedelta(seconds=config.time_window_seconds)
    orch = orchestrator or WindowOrchestrator(config, transport)
    log = bind_window(config.chain, config.facilitator.id)

    try:
        transfers = await asyncio.wait_for(orch.run(since, now), timeout=config.max_duration_seconds)
    except asyncio.TimeoutError as e:
        log.error("sync_window_timeout", max_duration_sec=config.max_duration_seconds)
        raise SyncTimeoutError(
            f"window exceeded {config.max_duration_seconds}s",
            context={"facilitator_id": config.facilitator.id, "chain": config.chain},
        ) from e

    outcome = WindowOutcome(
        facilitator_id=config.facilitator.id,
        transfers=transfers,
        truncated=bool(orch.last_pagination and orch.last_pagination.truncated),
    )
    if persist is None:
        log.info("sync_window_dry_run", transfers=len(transfers))
        return outcome

    outcome.inserted, outcome.updated = persist(transfers)
    log.info(
        "sync_window_persisted",
        transfers=len(transfers),
        inserted=outcome.inserted,
        updated=outcome.updated,
        truncated=outcome.truncated,
    )
    return outcome


async def run_sync(
    config: SyncConfig,
    transport: EventTransport,
    facilitators: Sequence[FacilitatorConfig] | None = None,
    *,
    since: datetime | None = None,
    now: datetime | None = None,
    persist: Persist | None = upsert_transfers,
) -> list[WindowOutcome]:
    """
    Sync every facilitator in turn (config.facilitator when none are given).

    A failing facilitator is logged and reported in its WindowOutcome; the
    others still run. Programming errors (anything that is not a SyncError)
    propagate.
    """
    targets = list(facilitators) if facilitators else [config.facilitator]
    now = now or _utc_now()
    outcomes: list[WindowOutcome] = []
    for fac in targets:
        fac_config = config.for_facilitator(fac)
        try:
            outcome = await run_sync_window(fac_config, transport, since=since, now=now, persist=persist)
        except SyncError as e:
            logger.error(
                "sync_window_failed",
                chain=fac_config.chain,
                facilitator_id=fac.id,
                error_type=type(e).__name__,
                error=str(e),
            )
            outcome = WindowOutcome(facilitator_id=fac.id, error=f"{type(e).__name__}: {e}")
        outcomes.append(outcome)
    failed = sum(1 for o in outcomes if not o.ok)
    logger.info(
        "sync_run_completed",
        chain=config.chain,
        facilitators=len(outcomes),
        failed=failed,
        transfers=sum(len(o.transfers) for o in outcomes),
    )
    return outcomes
