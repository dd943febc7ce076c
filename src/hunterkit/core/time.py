from __future__ import annotations

"""
hunterkit.core.time
===================

Clock abstractions:
- Clock Protocol for dependency injection and testing.
- SystemClock: production default.
- ManualClock: deterministic time for tests.
- ServerClock: local clock corrected by the offset to the coordinator's clock.
"""

import asyncio
import time
from datetime import UTC, datetime
from typing import Protocol

from .types import EpochSeconds, Millis


class Clock(Protocol):
    """Minimal clock protocol used across the project."""

    def now_dt(self) -> datetime: ...
    def now_ms(self) -> Millis: ...
    def mono_ms(self) -> Millis: ...
    async def sleep_ms(self, ms: Millis) -> None: ...


class SystemClock:
    """Default clock backed by system time."""

    def now_dt(self) -> datetime:
        return datetime.now(UTC)

    def now_ms(self) -> Millis:
        """Epoch milliseconds (wall clock)."""
        return time.time_ns() // 1_000_000

    def mono_ms(self) -> Millis:
        """Process-local monotonic milliseconds."""
        return time.monotonic_ns() // 1_000_000

    async def sleep_ms(self, ms: Millis) -> None:
        await asyncio.sleep(max(0.0, ms / 1000.0))


class ManualClock(SystemClock):
    """
    Controllable clock for tests.

    Wall and monotonic time start at `start_ms` and only move on `sleep_ms`
    or `advance`.
    """

    def __init__(self, start_ms: Millis = 0) -> None:
        self._wall: Millis = start_ms
        self._mono: Millis = start_ms

    def now_dt(self) -> datetime:
        return datetime.fromtimestamp(self._wall / 1000.0, tz=UTC)

    def now_ms(self) -> Millis:
        return self._wall

    def mono_ms(self) -> Millis:
        return self._mono

    def advance(self, ms: Millis) -> None:
        inc = max(0, int(ms))
        self._wall += inc
        self._mono += inc

    async def sleep_ms(self, ms: Millis) -> None:
        self.advance(ms)
        await asyncio.sleep(0)


class ServerClock:
    """
    Coordinator-aligned wall clock.

    Admission decisions compare execution timestamps that the coordinator
    issued, so "now" must be the coordinator's now. Every task list carries the
    server time; `calibrate()` stores the difference to the local clock and
    `now()` applies it. Before the first calibration the local clock is used
    unchanged.
    """

    def __init__(self, clock: Clock | None = None) -> None:
        self._clock: Clock = clock or SystemClock()
        self._offset_ms: Millis = 0
        self._calibrated = False

    @property
    def calibrated(self) -> bool:
        return self._calibrated

    @property
    def offset_ms(self) -> Millis:
        return self._offset_ms

    def calibrate(self, server_time: EpochSeconds) -> None:
        self._offset_ms = int(server_time) * 1000 - self._clock.now_ms()
        self._calibrated = True

    def now(self) -> EpochSeconds:
        """Current coordinator time in epoch seconds."""
        return (self._clock.now_ms() + self._offset_ms) // 1000
