# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Error taxonomy for hunterkit.

Fetch-stage errors end the current cycle without side effects; every class
carries a `fatal` flag that tells the front-end whether the failure is worth
surfacing to the user or only to the log. Address incapability is not an
error at all (an unsupported IP version is a normal policy input).
"""


class HunterError(Exception):
    """Base class for all hunterkit errors."""

    fatal: bool = True


class FetchFailure(HunterError):
    """The task list could not be retrieved or understood; the cycle is aborted."""


class ConnectFailure(FetchFailure):
    """
    No HTTP exchange happened (timeout, refused connection, TLS failure).
    Reported as status 0, like a request that never completed.
    """

    fatal = False
    status = 0


class HttpStatusFailure(FetchFailure):
    """The coordinator answered with a non-2xx status."""

    def __init__(self, status: int, reason: str = "") -> None:
        super().__init__(f"HTTP-STATUS: {status}:{reason}")
        self.status = status
        self.reason = reason


class EmptyReplyFailure(FetchFailure):
    """The coordinator answered 2xx with an empty body."""


class DecodeError(FetchFailure):
    """The reply body is not a well-formed sequence of records."""


class ResolutionError(HunterError):
    """An address lookup failed. Callers map this to "unsupported"."""

    fatal = False


class HistoryStoreError(HunterError):
    """The local execution history could not be queried."""


class PolicyDefect(HunterError):
    """The admission policy produced a value that is neither ADMIT nor SKIP."""
