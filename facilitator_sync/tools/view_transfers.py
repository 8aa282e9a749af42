"""
Print a summary of recently synced transfers.

How to run:
    python -m facilitator_sync.tools.view_transfers --chain starknet --limit 100
    python -m facilitator_sync.tools.view_transfers --log-format console

Reads SYNC_DB_URL / DATABASE_URL / SYNC_DB_PATH like the sync itself.
"""

from __future__ import annotations

import argparse
import sys
from typing import Any

from facilitator_sync.config.env import load_sync_env
from facilitator_sync.database.transfers import init_db, summarize_transfers
from facilitator_sync.sync_logging import LOG_FORMATS, configure_structlog, get_logger

logger = get_logger(__name__)

PREVIEW_ROWS = 10


def format_amount(raw: int | str, decimals: int) -> str:
    """Raw token units -> human amount, exact for any u256 (no float or Decimal rounding)."""
    value, decimals = int(raw), int(decimals)
    if decimals <= 0:
        return str(value)
    whole, frac = divmod(value, 10**decimals)
    return f"{whole}.{frac:0{decimals}d}"


def render_summary(summary: dict[str, Any]) -> str:
    rows = summary["rows"]
    decimals = rows[0]["decimals"] if rows else 0
    lines = [
        f"Transfers:            {summary['transfers']}",
        f"Total amount:         {format_amount(summary['total_amount'], decimals)}",
        f"Unique facilitators:  {summary['unique_facilitators']}",
        f"Unique senders:       {summary['unique_senders']}",
        f"Unique recipients:    {summary['unique_recipients']}",
    ]
    if rows:
        lines.append("")
        lines.append(f"Most recent {min(PREVIEW_ROWS, len(rows))}:")
        for r in rows[:PREVIEW_ROWS]:
            ts = r["block_timestamp"].isoformat() if r["block_timestamp"] else "-"
            lines.append(
                f"  {ts}  {r['facilitator_id']}  {r['sender']} -> {r['recipient']}  "
                f"{format_amount(r['amount'], r['decimals'])}  {r['tx_hash']}"
            )
        lines.append("")
        lines.append("By facilitator:")
        for fac_id, stats in sorted(summary["by_facilitator"].items()):
            lines.append(f"  {fac_id}: {stats['count']} transfers, {format_amount(stats['amount'], decimals)}")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Summarize recently synced facilitator transfers.")
    parser.add_argument("--chain", default=None, help="Only this chain (default: all)")
    parser.add_argument("--limit", type=int, default=50, help="Number of most recent transfers to summarize (default: 50)")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default=None, help="Log renderer (default: LOG_FORMAT or json)")
    args = parser.parse_args(argv)
    if args.log_format:
        configure_structlog(args.log_format)
    load_sync_env()
    try:
        init_db()
        summary = summarize_transfers(args.chain, args.limit)
    except Exception as e:
        logger.exception("view_transfers_failed", error=str(e))
        print("ERROR:", e, file=sys.stderr)
        return 1
    print(render_summary(summary))
    return 0


if __name__ == "__main__":
    sys.exit(main())
