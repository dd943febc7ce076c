# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Periodic driver for the admission pipeline.

Cycles never overlap: the loop awaits each cycle before sleeping for the
(jittered) hunting interval.
"""

import asyncio

from ..core.config import HunterConfig
from ..core.log import get_logger
from ..core.time import Clock, SystemClock
from ..core.utils import jitter_ms
from ..observability.tracing import trace
from .pipeline import AdmissionPipeline, CycleResult


class HuntingScheduler:
    """
    Usage:
        sched = HuntingScheduler(cfg, pipeline)
        await sched.start()
        ...
        await sched.stop()
    """

    def __init__(
        self,
        cfg: HunterConfig,
        pipeline: AdmissionPipeline,
        *,
        clock: Clock | None = None,
        jitter_pct: float = 0.10,
    ) -> None:
        self.cfg = cfg
        self.pipeline = pipeline
        self.clock: Clock = clock or SystemClock()
        self.jitter_pct = jitter_pct
        self.cycles_run = 0
        self.last_result: CycleResult | None = None
        self._loop_task: asyncio.Task | None = None
        self._running = False
        self.log = get_logger("scheduler")

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        if self._running:
            return
        if not self.cfg.activate_hunter:
            self.log.info("scheduler.disabled", event="scheduler.disabled")
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._loop(), name="hunterkit-scheduler")
        self.log.debug("scheduler.started", event="scheduler.started", interval_ms=self.cfg.hunting_interval_ms)

    async def stop(self) -> None:
        self._running = False
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
        self._loop_task = None
        self.log.debug("scheduler.stopped", event="scheduler.stopped", cycles=self.cycles_run)

    @trace("scheduler.run_once")
    async def run_once(self) -> CycleResult:
        result = await self.pipeline.run_cycle()
        self.cycles_run += 1
        self.last_result = result
        return result

    async def _loop(self) -> None:
        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except Exception:
                self.log.error("scheduler.cycle.crashed", event="scheduler.cycle.crashed", exc_info=True)
            await self.clock.sleep_ms(jitter_ms(self.cfg.hunting_interval_ms, pct=self.jitter_pct, floor_ms=1))
