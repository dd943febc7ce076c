# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Coordinator transport: task-list retrieval over HTTPS.
"""

from .fetcher import FetchReply, TaskListFetcher, build_client

__all__ = [
    "FetchReply",
    "TaskListFetcher",
    "build_client",
]
