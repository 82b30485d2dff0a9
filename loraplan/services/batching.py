"""Bounded-concurrency fan-out helpers.

Third-party elevation APIs are rate limited, so work is never fanned out all
at once: N items run concurrently, are joined, and the next N start.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Generic, List, Optional, Sequence, TypeVar

from ..core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchOutcome(Generic[R]):
    results: Dict[int, R] = field(default_factory=dict)
    failures: Dict[int, BaseException] = field(default_factory=dict)
    skipped: List[int] = field(default_factory=list)

    @property
    def deadline_hit(self) -> bool:
        return bool(self.skipped)


async def run_in_batches(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    batch_size: int,
    deadline: Optional[float] = None,
    pause_s: float = 0.0,
    clock: Callable[[], float] = time.monotonic,
) -> BatchOutcome[R]:
    """Run ``worker`` over ``items`` in batches of ``batch_size``.

    ``deadline`` is an absolute ``clock()`` value. Batches not started before
    it are skipped; tasks still running when it passes are cancelled and
    reported as skipped too. Results are keyed by the item's index, so
    completion order does not matter.
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    outcome: BatchOutcome[R] = BatchOutcome()

    for start in range(0, len(items), batch_size):
        indices = list(range(start, min(start + batch_size, len(items))))

        remaining = None if deadline is None else deadline - clock()
        if remaining is not None and remaining <= 0:
            outcome.skipped.extend(range(start, len(items)))
            logger.warning("Deadline reached, skipping %d remaining items", len(items) - start)
            break

        tasks = {asyncio.ensure_future(worker(items[i])): i for i in indices}
        done, pending = await asyncio.wait(tasks, timeout=remaining)

        for task in pending:
            task.cancel()
            outcome.skipped.append(tasks[task])
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            index = tasks[task]
            exc = task.exception()
            if exc is not None:
                outcome.failures[index] = exc
            else:
                outcome.results[index] = task.result()

        if pending:
            outcome.skipped.extend(range(indices[-1] + 1, len(items)))
            logger.warning("Deadline reached mid-batch, %d items abandoned", len(outcome.skipped))
            break

        if pause_s > 0 and indices[-1] + 1 < len(items):
            await asyncio.sleep(pause_s)

    outcome.skipped.sort()
    return outcome


async def gather_bounded(
    factories: Sequence[Callable[[], Awaitable[R]]],
    limit: int,
) -> List[R]:
    """Await coroutine factories with at most ``limit`` in flight; results keep input order.

    The first exception propagates after the current batch has settled.
    """
    if limit < 1:
        raise ValueError("limit must be >= 1")

    results: List[R] = []
    for start in range(0, len(factories), limit):
        batch = factories[start:start + limit]
        settled = await asyncio.gather(*(factory() for factory in batch), return_exceptions=True)
        for item in settled:
            if isinstance(item, BaseException):
                raise item
        results.extend(settled)
    return results
