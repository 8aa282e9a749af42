"""
Bounded-concurrency runner for independent async units of work.

Used by the resolution cache to fetch distinct blocks and transactions with
at most N requests in flight against the node.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Hashable, Mapping, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class BoundedScheduler:
    """Run keyed units with at most `concurrency` in flight; results come back by key."""

    def __init__(self, concurrency: int) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._concurrency = concurrency
        self._in_flight = 0
        self.max_in_flight = 0

    @property
    def concurrency(self) -> int:
        return self._concurrency

    async def run(self, units: Mapping[K, Callable[[], Awaitable[V]]]) -> dict[K, V]:
        """
        Run every unit to completion and return {key: result}.

        If any unit raised, the first failure (in key order) is re-raised after
        all other units have finished; no unit is left running.
        """
        if not units:
            return {}
        sem = asyncio.Semaphore(self._concurrency)

        async def _guarded(unit: Callable[[], Awaitable[V]]) -> V:
            async with sem:
                self._in_flight += 1
                self.max_in_flight = max(self.max_in_flight, self._in_flight)
                try:
                    return await unit()
                finally:
                    self._in_flight -= 1

        keys = list(units.keys())
        results: list[Any] = await asyncio.gather(
            *[_guarded(units[k]) for k in keys],
            return_exceptions=True,
        )
        out: dict[K, V] = {}
        for k, res in zip(keys, results):
            if isinstance(res, BaseException):
                raise res
            out[k] = res
        return out
