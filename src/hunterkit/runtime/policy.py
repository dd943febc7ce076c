from __future__ import annotations

from typing import Protocol

from ..core.types import EpochSeconds, IPAddress
from ..protocol.records import Admission


class AdmissionPolicy(Protocol):
    def __call__(
        self,
        public_ip: IPAddress | None,
        last_execution: EpochSeconds | None,
        *,
        now: EpochSeconds,
        cooldown: int,
    ) -> Admission: ...


def decide_admission(
    public_ip: IPAddress | None,
    last_execution: EpochSeconds | None,
    *,
    now: EpochSeconds,
    cooldown: int,
) -> Admission:
    """
    Decide whether a task may run now.

    Args:
        public_ip: The client's public address of the task's IP version, or
            None when the client has none (the task cannot be executed at all).
        last_execution: Coordinator time of the last execution of this task
            from exactly `public_ip`, or None if it never ran from there.
        now: Current coordinator time (epoch seconds).
        cooldown: Minimum seconds between two executions from one address.
    """
    if public_ip is None:
        return Admission.SKIP
    if last_execution is not None and last_execution + cooldown > now:
        return Admission.SKIP
    return Admission.ADMIT
