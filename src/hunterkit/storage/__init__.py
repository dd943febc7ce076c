# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Storage interfaces used by the admission pipeline.
"""

from .history import (
    ExecutionRecord,
    HistoryKey,
    HistoryStore,
    InMemoryHistoryStore,
    SqliteHistoryStore,
)

__all__ = [
    "ExecutionRecord",
    "HistoryKey",
    "HistoryStore",
    "InMemoryHistoryStore",
    "SqliteHistoryStore",
]
