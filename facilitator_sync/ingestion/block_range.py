"""
Time window -> block range estimation.

Starknet has no timestamp-indexed block lookup, so the window is mapped to
blocks by walking back from the latest block at an average block interval.
This is an estimate: the range can be off by a number of blocks whenever the
real block cadence drifts from the configured interval. Callers that need
exact bounds can pass their own estimator to WindowOrchestrator.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    def __post_init__(self) -> None:
        if self.from_block < 0 or self.to_block < 0:
            raise ValueError("block numbers must be non-negative")
        if self.from_block > self.to_block:
            raise ValueError(f"from_block {self.from_block} is after to_block {self.to_block}")


class BlockRangeEstimator(Protocol):
    def __call__(self, latest_block: int, since: datetime, now: datetime) -> BlockRange:
        ...


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def estimate_block_range(
    latest_block: int,
    since: datetime,
    now: datetime,
    *,
    wall_clock: datetime,
    block_interval_seconds: float,
) -> BlockRange:
    """
    Blocks elapsed between a timestamp and wall_clock are estimated as
    floor(seconds / block_interval_seconds) and subtracted from latest_block.
    Both ends are clamped at 0.
    """
    if block_interval_seconds <= 0:
        raise ValueError("block_interval_seconds must be positive")
    now_offset = math.floor((wall_clock - now).total_seconds() / block_interval_seconds)
    since_offset = math.floor((wall_clock - since).total_seconds() / block_interval_seconds)
    to_block = max(0, latest_block - now_offset)
    from_block = max(0, latest_block - since_offset)
    # now slightly ahead of wall_clock would put to_block past the head
    to_block = min(to_block, latest_block)
    from_block = min(from_block, to_block)
    return BlockRange(from_block=from_block, to_block=to_block)


class AverageIntervalEstimator:
    """Default estimator: fixed average block interval, wall clock read at call time."""

    def __init__(
        self,
        block_interval_seconds: float,
        *,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        if block_interval_seconds <= 0:
            raise ValueError("block_interval_seconds must be positive")
        self.block_interval_seconds = block_interval_seconds
        self._clock = clock

    def __call__(self, latest_block: int, since: datetime, now: datetime) -> BlockRange:
        return estimate_block_range(
            latest_block,
            since,
            now,
            wall_clock=self._clock(),
            block_interval_seconds=self.block_interval_seconds,
        )
