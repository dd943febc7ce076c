# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Admission pipeline.

One cycle = fetch the task list, learn the coordinator's addresses, settle the
client's public IPv4 then IPv6 address, read the execution history once, then
decide every task in uniformly random order and hand admitted tasks to the
execution subsystem.

The cycle is an explicit state machine. Each state has one async handler that
awaits at most one external call and returns the next state; all per-cycle
data lives in a `CycleContext` passed to every handler.

    FETCHING -> LOCATING -> RESOLVING_V4 -> RESOLVING_V6 -> QUERYING -> DECIDING -> DONE
        |                                                      |
        +--> DONE (empty batch)                                 +--> FAILED
        +--> FAILED (fetch failure)
"""

import random
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum

from ..api.errors import (
    ConnectFailure,
    DecodeError,
    EmptyReplyFailure,
    FetchFailure,
    HistoryStoreError,
    HttpStatusFailure,
    PolicyDefect,
)
from ..core.config import HunterConfig
from ..core.log import get_logger, log_context
from ..core.time import Clock, ServerClock, SystemClock
from ..core.types import EpochSeconds, IPVersion, TaskId
from ..core.utils import nanoid
from ..observability.metrics import PipelineMetrics
from ..observability.tracing import span
from ..protocol.records import Admission, CoordinatorIdentity, HuntingTask, PublicIdentity
from ..storage.history import HistoryKey, HistoryStore
from ..transport.fetcher import FetchReply, TaskListFetcher
from .execution import ExecutionSubsystem
from .notify import LoggingNotifier, Notifier
from .policy import AdmissionPolicy, decide_admission

__all__ = ["AdmissionPipeline", "CycleContext", "CycleResult", "CycleState"]


class CycleState(str, Enum):
    FETCHING = "fetching"
    LOCATING = "locating"
    RESOLVING_V4 = "resolving_v4"
    RESOLVING_V6 = "resolving_v6"
    QUERYING = "querying"
    DECIDING = "deciding"
    DONE = "done"
    FAILED = "failed"


_TERMINAL = frozenset({CycleState.DONE, CycleState.FAILED})


@dataclass
class CycleContext:
    """Everything one cycle knows. Created fresh per cycle, never shared."""

    cycle_id: str
    cooldown: int
    state: CycleState = CycleState.FETCHING
    tasks: list[HuntingTask] = field(default_factory=list)
    task_ids: set[TaskId] = field(default_factory=set)
    coordinator: CoordinatorIdentity = field(default_factory=CoordinatorIdentity)
    identity: PublicIdentity = field(default_factory=PublicIdentity)
    history: Mapping[HistoryKey, EpochSeconds] = field(default_factory=dict)
    order: list[TaskId] = field(default_factory=list)
    admitted: list[TaskId] = field(default_factory=list)
    skipped: list[TaskId] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class CycleResult:
    cycle_id: str
    state: CycleState
    order: tuple[TaskId, ...]
    admitted: tuple[TaskId, ...]
    skipped: tuple[TaskId, ...]
    failures: tuple[str, ...]
    identity: PublicIdentity

    @property
    def ok(self) -> bool:
        return self.state is CycleState.DONE

    @classmethod
    def from_context(cls, ctx: CycleContext) -> CycleResult:
        return cls(
            cycle_id=ctx.cycle_id,
            state=ctx.state,
            order=tuple(ctx.order),
            admitted=tuple(ctx.admitted),
            skipped=tuple(ctx.skipped),
            failures=tuple(ctx.failures),
            identity=replace(ctx.identity),
        )


def _failure_kind(exc: FetchFailure) -> str:
    if isinstance(exc, ConnectFailure):
        return "transport"
    if isinstance(exc, HttpStatusFailure):
        return "http_status"
    if isinstance(exc, EmptyReplyFailure):
        return "empty_reply"
    if isinstance(exc, DecodeError):
        return "decode"
    return "fetch"


class AdmissionPipeline:
    """
    Decide, cycle by cycle, which fetched hunting tasks may run now.

    `rng` defaults to `random.SystemRandom()`; tests pass a seeded
    `random.Random`. `clock` drives both cycle timing and the server clock
    unless a `server_clock` is given.
    """

    def __init__(
        self,
        cfg: HunterConfig,
        *,
        fetcher: TaskListFetcher,
        subsystem: ExecutionSubsystem,
        history: HistoryStore,
        notifier: Notifier | None = None,
        clock: Clock | None = None,
        server_clock: ServerClock | None = None,
        policy: AdmissionPolicy = decide_admission,
        rng: random.Random | None = None,
        metrics: PipelineMetrics | None = None,
    ) -> None:
        self.cfg = cfg
        self.fetcher = fetcher
        self.subsystem = subsystem
        self.history = history
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.clock: Clock = clock or SystemClock()
        self.server_clock = server_clock or ServerClock(self.clock)
        self.policy = policy
        self.rng = rng or random.SystemRandom()
        self.metrics = metrics or PipelineMetrics.isolated()
        self.log = get_logger("pipeline")

        self._handlers: dict[CycleState, Callable[[CycleContext], Awaitable[CycleState]]] = {
            CycleState.FETCHING: self._on_fetching,
            CycleState.LOCATING: self._on_locating,
            CycleState.RESOLVING_V4: self._on_resolving_v4,
            CycleState.RESOLVING_V6: self._on_resolving_v6,
            CycleState.QUERYING: self._on_querying,
            CycleState.DECIDING: self._on_deciding,
        }

    # ---- driver

    async def run_cycle(self) -> CycleResult:
        """Run one complete cycle. Overlapping calls are the caller's problem."""
        ctx = CycleContext(cycle_id=nanoid(), cooldown=int(self.cfg.task_reexecution_interval_sec))
        started = self.clock.mono_ms()
        with log_context(cycle_id=ctx.cycle_id), span("pipeline.cycle", cycle_id=ctx.cycle_id):
            while ctx.state not in _TERMINAL:
                current = ctx.state
                with span(f"pipeline.{current.value}"):
                    ctx.state = await self._handlers[current](ctx)
                self.log.debug(
                    "pipeline.transition", event="pipeline.transition", src=current.value, dst=ctx.state.value
                )

            elapsed = (self.clock.mono_ms() - started) / 1000.0
            self.metrics.cycle_finished(ctx.state.value, elapsed)
            self.log.info(
                "pipeline.cycle.finished",
                event="pipeline.cycle.finished",
                state=ctx.state.value,
                tasks=len(ctx.tasks),
                admitted=len(ctx.admitted),
                skipped=len(ctx.skipped),
                failures=len(ctx.failures),
            )
        return CycleResult.from_context(ctx)

    # ---- reporting

    def _report_failure(self, ctx: CycleContext, message: str, *, fatal: bool, kind: str) -> None:
        ctx.failures.append(message)
        self.metrics.failure(kind)
        self.notifier.technical_failure(message, fatal=fatal)

    # ---- handlers

    async def _on_fetching(self, ctx: CycleContext) -> CycleState:
        self.notifier.information("Pulling hunting tasks from the coordinator")
        try:
            reply = await self.fetcher.fetch()
        except FetchFailure as e:
            self._report_failure(ctx, f"Task list request failed: {e}", fatal=e.fatal, kind=_failure_kind(e))
            return CycleState.FAILED

        self._absorb_reply(ctx, reply)
        self.notifier.information(f"Received {len(ctx.tasks)} tasks from the coordinator.")
        if not ctx.tasks:
            return CycleState.DONE
        return CycleState.LOCATING

    def _absorb_reply(self, ctx: CycleContext, reply: FetchReply) -> None:
        for rec in reply.unknown:
            self._report_failure(
                ctx,
                f"Received unknown record from the coordinator (type {rec.type_code}, {len(rec.payload)} bytes)",
                fatal=True,
                kind="unknown_record",
            )
        if reply.server_time is not None:
            self.server_clock.calibrate(reply.server_time)
        for version in sorted(reply.public_ips):
            notification = reply.public_ips[version]
            ctx.identity.set(version, notification.public_ip)
            self.subsystem.add_public_ip(notification)
        ctx.tasks = list(reply.tasks)
        ctx.task_ids = set(reply.task_ids)

    async def _on_locating(self, ctx: CycleContext) -> CycleState:
        ctx.coordinator = await self.subsystem.request_coordinator_addresses()
        return CycleState.RESOLVING_V4

    async def _on_resolving_v4(self, ctx: CycleContext) -> CycleState:
        await self._settle_public_ip(ctx, 4)
        return CycleState.RESOLVING_V6

    async def _on_resolving_v6(self, ctx: CycleContext) -> CycleState:
        await self._settle_public_ip(ctx, 6)
        return CycleState.QUERYING

    async def _settle_public_ip(self, ctx: CycleContext, version: IPVersion) -> None:
        server_addr = ctx.coordinator.address_for(version)
        if server_addr is None:
            # coordinator unreachable over this family: nothing can run over it
            ctx.identity.set(version, None)
            self.log.debug("pipeline.resolve.unsupported", event="pipeline.resolve.unsupported", ip_version=version)
            return
        if not any(t.ip_version == version for t in ctx.tasks):
            self.log.debug("pipeline.resolve.not_needed", event="pipeline.resolve.not_needed", ip_version=version)
            return
        if ctx.identity.known(version):
            return

        address = await self.subsystem.request_public_ip(server_addr, version)
        ctx.identity.set(version, address)
        self.log.debug(
            "pipeline.resolve.done",
            event="pipeline.resolve.done",
            ip_version=version,
            resolved=address is not None,
        )

    async def _on_querying(self, ctx: CycleContext) -> CycleState:
        try:
            ctx.history = await self.history.last_executions(ctx.task_ids, ctx.identity.candidates())
        except HistoryStoreError as e:
            self._report_failure(ctx, f"Could not read the execution history: {e}", fatal=True, kind="history")
            return CycleState.FAILED
        return CycleState.DECIDING

    async def _on_deciding(self, ctx: CycleContext) -> CycleState:
        now = self.server_clock.now()
        remaining = list(ctx.tasks)
        while remaining:
            # uniform draw without replacement: swap the pick to the end, pop it
            idx = self.rng.randrange(len(remaining))
            remaining[idx], remaining[-1] = remaining[-1], remaining[idx]
            task = remaining.pop()
            ctx.order.append(task.task_id)
            with log_context(task_id=task.task_id, ip_version=task.ip_version):
                self._decide(ctx, task, now)

        self.notifier.information(f"Task list processed. {len(ctx.admitted)} tasks have been accepted.")
        return CycleState.DONE

    def _decide(self, ctx: CycleContext, task: HuntingTask, now: EpochSeconds) -> None:
        public_ip = ctx.identity.address_for(task.ip_version)
        last = ctx.history.get((task.task_id, public_ip)) if public_ip is not None else None
        try:
            decision = self.policy(public_ip, last, now=now, cooldown=ctx.cooldown)
        except Exception as e:
            self.log.error("pipeline.policy.crashed", event="pipeline.policy.crashed", exc_info=True)
            self._report_failure(
                ctx, f"Admission policy failed for task {task.task_id}: {e}", fatal=True, kind="policy"
            )
            return

        if decision is Admission.SKIP:
            ctx.skipped.append(task.task_id)
            self.metrics.decision(Admission.SKIP.value)
            self.notifier.information(f"Skipping execution of task {task.task_id}")
        elif decision is Admission.ADMIT:
            try:
                self.subsystem.add_task(task)
            except Exception as e:
                self.log.error("pipeline.handoff.failed", event="pipeline.handoff.failed", exc_info=True)
                self._report_failure(
                    ctx, f"Could not hand task {task.task_id} to the execution subsystem: {e}", fatal=True, kind="handoff"
                )
                return
            ctx.admitted.append(task.task_id)
            self.metrics.decision(Admission.ADMIT.value)
        else:
            defect = PolicyDefect(f"Admission policy returned an unknown value ({decision!r}) for task {task.task_id}")
            self._report_failure(ctx, str(defect), fatal=defect.fatal, kind="policy")
