from __future__ import annotations

"""
Task-list retrieval over HTTPS.

`TaskListFetcher.fetch()` performs exactly one GET against the coordinator's
task-list endpoint and sorts the decoded records into a `FetchReply`. It does
not report anything itself: failures are raised as `FetchFailure` subclasses
and the caller decides how to surface them.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

import httpx

from ..api.errors import ConnectFailure, DecodeError, EmptyReplyFailure, HttpStatusFailure
from ..codec.wire import decode_records
from ..core.config import HunterConfig
from ..core.log import get_logger
from ..core.types import IPVersion, TaskId
from ..protocol.records import (
    CurrentServerTime,
    HuntingTask,
    PublicIPNotification,
    Record,
    UnknownRecord,
)

__all__ = ["FetchReply", "TaskListFetcher", "build_client"]

Decoder = Callable[[bytes], list[Record]]


@dataclass
class FetchReply:
    """Records of one task-list reply, grouped by kind (task order preserved)."""

    tasks: list[HuntingTask] = field(default_factory=list)
    task_ids: set[TaskId] = field(default_factory=set)
    server_time: int | None = None
    public_ips: dict[IPVersion, PublicIPNotification] = field(default_factory=dict)
    unknown: list[UnknownRecord] = field(default_factory=list)

    @classmethod
    def from_records(cls, records: list[Record]) -> FetchReply:
        reply = cls()
        for rec in records:
            if isinstance(rec, HuntingTask):
                reply.tasks.append(rec)
                reply.task_ids.add(rec.task_id)
            elif isinstance(rec, CurrentServerTime):
                reply.server_time = rec.server_time
            elif isinstance(rec, PublicIPNotification):
                reply.public_ips[rec.ip_version] = rec
            else:
                reply.unknown.append(rec)
        return reply


def build_client(cfg: HunterConfig) -> httpx.AsyncClient:
    """HTTPS client with certificate verification and the configured timeouts."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(cfg.request_timeout_sec, connect=cfg.connect_timeout_sec),
        verify=cfg.verify_tls,
        follow_redirects=False,
        headers={"Accept": "application/octet-stream"},
    )


class TaskListFetcher:
    """
    Fetch and decode the coordinator's current hunting task list.

    `client` is injectable (tests pass an `httpx.AsyncClient` on a
    `MockTransport`); when omitted the fetcher owns one and `aclose()` closes it.
    """

    def __init__(
        self,
        cfg: HunterConfig,
        *,
        client: httpx.AsyncClient | None = None,
        decode: Decoder = decode_records,
    ) -> None:
        self.cfg = cfg
        self._owns_client = client is None
        self._client = client or build_client(cfg)
        self._decode = decode
        self.log = get_logger("transport.fetcher")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch(self) -> FetchReply:
        """
        Raises:
            ConnectFailure: timeout or transport error (no HTTP status).
            HttpStatusFailure: non-2xx answer.
            EmptyReplyFailure: 2xx with no body.
            DecodeError: body is not a valid record sequence.
        """
        url = self.cfg.task_list_url
        try:
            resp = await self._client.get(url)
        except httpx.TimeoutException as e:
            raise ConnectFailure(f"could not connect to {self.cfg.server_host} (connection timed out)") from e
        except httpx.TransportError as e:
            raise ConnectFailure(f"could not connect to {self.cfg.server_host} ({type(e).__name__})") from e

        if not resp.is_success:
            raise HttpStatusFailure(resp.status_code, resp.reason_phrase)

        body = resp.content
        if not body:
            raise EmptyReplyFailure(f"empty reply from {self.cfg.server_host} when asking for the task list")

        try:
            records = self._decode(body)
        except DecodeError:
            raise
        except (ValueError, TypeError) as e:
            raise DecodeError(f"undecodable task list: {e}") from e

        reply = FetchReply.from_records(records)
        self.log.debug(
            "fetcher.reply",
            event="fetcher.reply",
            bytes=len(body),
            tasks=len(reply.tasks),
            unknown=len(reply.unknown),
            public_ips=sorted(reply.public_ips),
        )
        return reply
