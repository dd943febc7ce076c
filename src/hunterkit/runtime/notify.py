from __future__ import annotations

from typing import Protocol, runtime_checkable

from ..core.log import get_logger


@runtime_checkable
class Notifier(Protocol):
    """
    Front-end sink for what the hunter wants a user (or operator) to see.
    `fatal=True` marks failures worth surfacing; `False` means log-only.
    """

    def information(self, message: str) -> None: ...
    def technical_failure(self, message: str, *, fatal: bool) -> None: ...


class LoggingNotifier:
    """Default sink: everything goes to the `hunterkit.notify` logger."""

    def __init__(self) -> None:
        self.log = get_logger("notify")

    def information(self, message: str) -> None:
        self.log.info(message, event="notify.information")

    def technical_failure(self, message: str, *, fatal: bool) -> None:
        if fatal:
            self.log.error(message, event="notify.technical_failure", fatal=True)
        else:
            self.log.warning(message, event="notify.technical_failure", fatal=False)
