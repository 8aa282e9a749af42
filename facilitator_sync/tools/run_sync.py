"""
Run one windowed Transfer sync for the configured facilitator(s).

How to run:
    From project root (with .env configured):
        python -m facilitator_sync.tools.run_sync --provider starknet-rpc --hours 24
        python -m facilitator_sync.tools.run_sync --facilitators facilitators.json --dry-run
        python -m facilitator_sync.tools.run_sync --dry-run --log-format console

Required env vars:
    STARKNET_RPC_URL      Starknet JSON-RPC endpoint (no default)
    TOKEN_ADDRESS         token contract emitting Transfer events
    FACILITATOR_ID / FACILITATOR_ADDRESS
                          single facilitator, unless --facilitators / FACILITATORS_PATH is given

Optional:
    SYNC_PROVIDER, SYNC_LIMIT, SYNC_MAX_PAGES, SYNC_CONCURRENCY, RETRY_*,
    BLOCK_TIME_SECONDS, SYNC_WINDOW_HOURS, SYNC_MAX_DURATION_SEC,
    SYNC_DB_URL / DATABASE_URL / SYNC_DB_PATH, LOG_LEVEL, LOG_FORMAT

Exit code is 0 when every facilitator window succeeded, 1 otherwise.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import replace

from facilitator_sync.config.env import load_sync_env, mask_url
from facilitator_sync.config.settings import QueryProvider, get_settings, load_facilitators
from facilitator_sync.core.exceptions import SyncError
from facilitator_sync.database.transfers import init_db, upsert_transfers
from facilitator_sync.starknet.rpc_client import StarknetRpcTransport
from facilitator_sync.sync.runner import WindowOutcome, run_sync
from facilitator_sync.sync_logging import LOG_FORMATS, configure_structlog, get_logger

logger = get_logger(__name__)


async def run(
    provider: str | None = None,
    hours: float | None = None,
    facilitators_path: str | None = None,
    dry_run: bool = False,
) -> list[WindowOutcome]:
    load_sync_env()
    config = get_settings(provider=provider)
    if hours is not None:
        config = replace(config, time_window_seconds=int(hours * 3600))
    facilitators = load_facilitators(facilitators_path)
    logger.info(
        "run_sync_started",
        chain=config.chain,
        provider=config.provider.value,
        rpc_url=mask_url(config.rpc_url),
        facilitators=len(facilitators) or 1,
        window_hours=round(config.time_window_seconds / 3600, 2),
        dry_run=dry_run,
    )
    if not dry_run:
        init_db()
    async with StarknetRpcTransport(config.rpc_url) as transport:
        return await run_sync(
            config,
            transport,
            facilitators,
            persist=None if dry_run else upsert_transfers,
        )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Sync Starknet Transfer events sent by facilitators over a recent time window.",
    )
    parser.add_argument(
        "--provider",
        choices=[p.value for p in QueryProvider],
        default=None,
        help="Provider profile (default: SYNC_PROVIDER or starknet-rpc)",
    )
    parser.add_argument("--hours", type=float, default=None, help="Window length in hours (default: SYNC_WINDOW_HOURS or 24)")
    parser.add_argument("--facilitators", default=None, help="JSON file listing facilitators (default: FACILITATORS_PATH)")
    parser.add_argument("--dry-run", action="store_true", help="Fetch and decode but do not write to the database")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default=None, help="Log renderer (default: LOG_FORMAT or json)")
    args = parser.parse_args(argv)
    if args.log_format:
        configure_structlog(args.log_format)
    try:
        outcomes = asyncio.run(
            run(
                provider=args.provider,
                hours=args.hours,
                facilitators_path=args.facilitators,
                dry_run=args.dry_run,
            )
        )
    except SyncError as e:
        logger.error("run_sync_failed", error_type=type(e).__name__, error=str(e))
        print("ERROR:", e, file=sys.stderr)
        return 1

    for o in outcomes:
        if o.ok:
            suffix = " (truncated: more data available)" if o.truncated else ""
            print(f"{o.facilitator_id}: {len(o.transfers)} transfers, inserted={o.inserted} updated={o.updated}{suffix}")
        else:
            print(f"{o.facilitator_id}: FAILED {o.error}", file=sys.stderr)
    return 0 if all(o.ok for o in outcomes) else 1


if __name__ == "__main__":
    sys.exit(main())
