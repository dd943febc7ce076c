# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
hunterkit public API: error taxonomy shared by the pipeline and its collaborators.
"""

from .errors import (
    ConnectFailure,
    DecodeError,
    EmptyReplyFailure,
    FetchFailure,
    HistoryStoreError,
    HttpStatusFailure,
    HunterError,
    PolicyDefect,
    ResolutionError,
)

__all__ = [
    "ConnectFailure",
    "DecodeError",
    "EmptyReplyFailure",
    "FetchFailure",
    "HistoryStoreError",
    "HttpStatusFailure",
    "HunterError",
    "PolicyDefect",
    "ResolutionError",
]
