from __future__ import annotations

import asyncio
import time

import pytest

from loraplan.services.batching import gather_bounded, run_in_batches


class ConcurrencyProbe:
    def __init__(self):
        self.active = 0
        self.peak = 0

    async def work(self, item, delay=0.001):
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await asyncio.sleep(delay)
            return item * 2
        finally:
            self.active -= 1


def test_run_in_batches_collects_results_by_index():
    probe = ConcurrencyProbe()
    outcome = asyncio.run(run_in_batches(list(range(10)), probe.work, batch_size=3))

    assert outcome.results == {i: i * 2 for i in range(10)}
    assert outcome.failures == {}
    assert outcome.skipped == []
    assert not outcome.deadline_hit
    assert probe.peak <= 3


def test_run_in_batches_records_failures():
    async def worker(item):
        if item == 2:
            raise RuntimeError("boom")
        return item

    outcome = asyncio.run(run_in_batches([0, 1, 2, 3], worker, batch_size=2))
    assert set(outcome.results) == {0, 1, 3}
    assert isinstance(outcome.failures[2], RuntimeError)


def test_run_in_batches_skips_after_deadline():
    async def slow(item):
        await asyncio.sleep(1.0)
        return item

    async def run():
        return await run_in_batches(list(range(8)), slow, batch_size=4, deadline=time.monotonic() + 0.05)

    started = time.monotonic()
    outcome = asyncio.run(run())

    assert time.monotonic() - started < 0.9
    assert outcome.results == {}
    assert outcome.skipped == list(range(8))
    assert outcome.deadline_hit


def test_run_in_batches_expired_deadline_runs_nothing():
    calls = []

    async def worker(item):
        calls.append(item)
        return item

    outcome = asyncio.run(run_in_batches([1, 2, 3], worker, batch_size=2, deadline=time.monotonic() - 1))
    assert calls == []
    assert outcome.skipped == [0, 1, 2]


def test_run_in_batches_rejects_zero_batch():
    async def worker(item):
        return item

    with pytest.raises(ValueError):
        asyncio.run(run_in_batches([1], worker, batch_size=0))


def test_gather_bounded_preserves_order_and_limit():
    probe = ConcurrencyProbe()
    delays = [0.005, 0.001, 0.003, 0.0, 0.002]
    factories = [lambda i=i, d=d: probe.work(i, d) for i, d in enumerate(delays)]

    results = asyncio.run(gather_bounded(factories, limit=2))
    assert results == [0, 2, 4, 6, 8]
    assert probe.peak <= 2


def test_gather_bounded_propagates_errors():
    async def fail():
        raise ValueError("bad chunk")

    async def ok():
        return 1

    with pytest.raises(ValueError, match="bad chunk"):
        asyncio.run(gather_bounded([ok, fail, ok], limit=2))
