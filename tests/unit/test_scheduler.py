import asyncio
import logging

import pytest

from hunterkit.core.config import HunterConfig
from hunterkit.core.time import ManualClock
from hunterkit.runtime.pipeline import CycleState
from hunterkit.runtime.scheduler import HuntingScheduler
from tests.helpers import StaticFetcher, make_pipeline, task

pytestmark = pytest.mark.unit


async def _spin_until(pred, rounds: int = 1000) -> None:
    for _ in range(rounds):
        if pred():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


class _CrashOnce:
    """Pipeline stand-in whose first cycle blows up."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = 0

    async def run_cycle(self):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("boom")
        return await self.inner.run_cycle()


@pytest.mark.asyncio
async def test_run_once_runs_a_single_cycle():
    fetcher = StaticFetcher([task(1)])
    sched = HuntingScheduler(HunterConfig(), make_pipeline(fetcher), clock=ManualClock())
    result = await sched.run_once()
    assert result.state is CycleState.DONE
    assert sched.cycles_run == 1
    assert sched.last_result is result
    assert fetcher.fetches == 1


@pytest.mark.asyncio
async def test_loop_repeats_after_the_hunting_interval():
    clock = ManualClock(start_ms=0)
    cfg = HunterConfig(hunting_interval_sec=900)
    sched = HuntingScheduler(cfg, make_pipeline(StaticFetcher([task(1)])), clock=clock)

    await sched.start()
    try:
        await _spin_until(lambda: sched.cycles_run >= 3)
    finally:
        await sched.stop()

    assert not sched.running
    # at least two jittered sleeps of 900 s +/- 10 %
    assert clock.now_ms() >= 2 * 810_000


@pytest.mark.asyncio
async def test_disabled_hunter_never_starts():
    sched = HuntingScheduler(
        HunterConfig(activate_hunter=False), make_pipeline(StaticFetcher([task(1)])), clock=ManualClock()
    )
    await sched.start()
    assert not sched.running
    await asyncio.sleep(0)
    assert sched.cycles_run == 0
    await sched.stop()


@pytest.mark.asyncio
async def test_crashed_cycle_is_logged_and_the_loop_continues(caplog):
    caplog.set_level(logging.DEBUG, logger="hunterkit")
    pipeline = _CrashOnce(make_pipeline(StaticFetcher([task(1)])))
    sched = HuntingScheduler(HunterConfig(), pipeline, clock=ManualClock())

    await sched.start()
    try:
        await _spin_until(lambda: sched.cycles_run >= 1)
    finally:
        await sched.stop()

    assert pipeline.calls >= 2
    crashed = [r for r in caplog.records if getattr(r, "event", None) == "scheduler.cycle.crashed"]
    assert len(crashed) == 1
    assert crashed[0].exc_info[0] is RuntimeError
