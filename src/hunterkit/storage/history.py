# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Execution history store (engine-agnostic interface + two implementations).

Responsibilities:
- Answer "when was each of these tasks last executed from one of these public
  addresses?" with one query per cycle.
- Accept new execution rows from the execution side (the admission pipeline
  only reads).

Results are keyed by (task_id, public_ip) so a caller can look up the row for
the exact address relevant to a task and never mix history across addresses.
"""

import asyncio
import sqlite3
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..api.errors import HistoryStoreError
from ..core.types import EpochSeconds, IPAddress, StrPath, TaskId

__all__ = [
    "ExecutionRecord",
    "HistoryKey",
    "HistoryStore",
    "InMemoryHistoryStore",
    "SqliteHistoryStore",
]

HistoryKey = tuple[TaskId, IPAddress]


@dataclass(frozen=True)
class ExecutionRecord:
    """
    One execution of a task.

    Attributes:
        task_id: Coordinator-assigned task identifier.
        public_ip: Client public address the task was executed from.
        server_time_of_execution: Coordinator time of the execution (epoch s).
    """

    task_id: TaskId
    public_ip: IPAddress
    server_time_of_execution: EpochSeconds


@runtime_checkable
class HistoryStore(Protocol):
    """
    Async read access to execution history.

    Notes:
        - `None` candidates never match a stored row.
        - Tasks with no matching row are absent from the result.
    """

    async def last_executions(
        self,
        task_ids: Iterable[TaskId],
        candidate_ips: Iterable[IPAddress | None],
    ) -> Mapping[HistoryKey, EpochSeconds]: ...


def _usable(candidate_ips: Iterable[IPAddress | None]) -> list[IPAddress]:
    return sorted({ip for ip in candidate_ips if ip})


class InMemoryHistoryStore:
    """Append-only list of records; handy for tests and ephemeral clients."""

    def __init__(self, records: Iterable[ExecutionRecord] = ()) -> None:
        self._rows: list[ExecutionRecord] = list(records)
        self.queries = 0

    async def record(self, rec: ExecutionRecord) -> None:
        self._rows.append(rec)

    async def last_executions(
        self,
        task_ids: Iterable[TaskId],
        candidate_ips: Iterable[IPAddress | None],
    ) -> dict[HistoryKey, EpochSeconds]:
        self.queries += 1
        wanted = set(task_ids)
        ips = set(_usable(candidate_ips))
        out: dict[HistoryKey, EpochSeconds] = {}
        for row in self._rows:
            if row.task_id not in wanted or row.public_ip not in ips:
                continue
            key = (row.task_id, row.public_ip)
            if key not in out or row.server_time_of_execution > out[key]:
                out[key] = row.server_time_of_execution
        return out


class SqliteHistoryStore:
    """
    SQLite-backed history (`performed_tasks` table).

    sqlite3 calls are blocking, so every operation runs in a worker thread; a
    lock serialises access to the single connection.
    """

    _SCHEMA = (
        "CREATE TABLE IF NOT EXISTS performed_tasks ("
        " task_id INTEGER NOT NULL,"
        " public_ip TEXT NOT NULL,"
        " server_time_of_execution INTEGER NOT NULL)",
        "CREATE INDEX IF NOT EXISTS ix_performed_tasks_task_ip ON performed_tasks (task_id, public_ip)",
    )

    def __init__(self, db_path: StrPath = ":memory:") -> None:
        self.db_path = str(db_path)
        self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
        self._connection.row_factory = sqlite3.Row
        self._lock = asyncio.Lock()

    def close(self) -> None:
        self._connection.close()

    def init_schema(self) -> None:
        with self._connection:
            for stmt in self._SCHEMA:
                self._connection.execute(stmt)

    async def _run(self, fn, *args):
        async with self._lock:
            try:
                return await asyncio.to_thread(fn, *args)
            except sqlite3.Error as e:
                raise HistoryStoreError(f"history store failure: {e}") from e

    def _insert(self, rec: ExecutionRecord) -> None:
        with self._connection:
            self._connection.execute(
                "INSERT INTO performed_tasks (task_id, public_ip, server_time_of_execution) VALUES (?, ?, ?)",
                (rec.task_id, rec.public_ip, rec.server_time_of_execution),
            )

    def _select(self, task_ids: list[TaskId], ips: list[IPAddress]) -> dict[HistoryKey, EpochSeconds]:
        tid_marks = ",".join("?" for _ in task_ids)
        ip_marks = ",".join("?" for _ in ips)
        sql = (
            "SELECT task_id, public_ip, MAX(server_time_of_execution) AS last_execution_time "
            f"FROM performed_tasks WHERE task_id IN ({tid_marks}) AND public_ip IN ({ip_marks}) "
            "GROUP BY task_id, public_ip"
        )
        rows = self._connection.execute(sql, [*task_ids, *ips]).fetchall()
        return {(int(r["task_id"]), str(r["public_ip"])): int(r["last_execution_time"]) for r in rows}

    async def record(self, rec: ExecutionRecord) -> None:
        await self._run(self._insert, rec)

    async def last_executions(
        self,
        task_ids: Iterable[TaskId],
        candidate_ips: Iterable[IPAddress | None],
    ) -> dict[HistoryKey, EpochSeconds]:
        ids = sorted(set(task_ids))
        ips = _usable(candidate_ips)
        if not ids or not ips:
            return {}
        return await self._run(self._select, ids, ips)
