# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Execution subsystem seam.

The admission pipeline talks to the component that runs probes through the
`ExecutionSubsystem` protocol: it asks it for addresses and hands it admitted
tasks and public-IP notifications. `Hunter` is the stock implementation; it
resolves addresses with `AddressResolver` and queues admitted tasks for
whatever prober consumes `next_task()`.
"""

import asyncio
from typing import Protocol, runtime_checkable

from ..core.config import HunterConfig
from ..core.log import get_logger
from ..core.types import IPAddress, IPVersion
from ..protocol.records import CoordinatorIdentity, HuntingTask, PublicIPNotification
from ..resolver.addresses import AddressResolver

__all__ = ["ExecutionSubsystem", "Hunter"]


@runtime_checkable
class ExecutionSubsystem(Protocol):
    async def request_coordinator_addresses(self) -> CoordinatorIdentity: ...
    async def request_public_ip(self, target_host: IPAddress, ip_version: IPVersion) -> IPAddress | None: ...
    def add_task(self, task: HuntingTask) -> None: ...
    def add_public_ip(self, notification: PublicIPNotification) -> None: ...


class Hunter:
    """
    Queue-backed execution subsystem.

    `add_task` never blocks: tasks go onto an unbounded queue and the caller
    moves on. Public IP notifications are kept (latest per version) so results
    can be tagged with the address and HMAC the coordinator issued.
    """

    def __init__(self, cfg: HunterConfig, *, resolver: AddressResolver | None = None) -> None:
        self.cfg = cfg
        self.resolver = resolver or AddressResolver(cfg)
        self._queue: asyncio.Queue[HuntingTask] = asyncio.Queue()
        self._notifications: dict[IPVersion, PublicIPNotification] = {}
        self.log = get_logger("hunter")

    async def request_coordinator_addresses(self) -> CoordinatorIdentity:
        return await self.resolver.resolve_coordinator_addresses(self.cfg.server_host)

    async def request_public_ip(self, target_host: IPAddress, ip_version: IPVersion) -> IPAddress | None:
        return await self.resolver.resolve_public_ip(target_host, ip_version)

    def add_task(self, task: HuntingTask) -> None:
        self._queue.put_nowait(task)
        self.log.debug("hunter.task.queued", event="hunter.task.queued", task_id=task.task_id, depth=self._queue.qsize())

    def add_public_ip(self, notification: PublicIPNotification) -> None:
        self._notifications[notification.ip_version] = notification
        self.resolver.remember_public_ip(notification)

    def public_ip_notification(self, ip_version: IPVersion) -> PublicIPNotification | None:
        return self._notifications.get(ip_version)

    def pending(self) -> int:
        return self._queue.qsize()

    async def next_task(self) -> HuntingTask:
        return await self._queue.get()

    async def aclose(self) -> None:
        await self.resolver.aclose()
