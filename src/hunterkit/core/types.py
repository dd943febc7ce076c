from __future__ import annotations

"""
hunterkit.core.types
====================

Shared aliases and constants. Keep this module tiny and import-free of
application models.
"""

import os
from pathlib import Path
from typing import Final, Literal, Union

# ---- Paths -------------------------------------------------------------------

StrPath = Union[str, os.PathLike[str], Path]

# ---- Time --------------------------------------------------------------------

Millis = int
Seconds = float
EpochSeconds = int  # wall-clock epoch timestamp (s), the unit the coordinator speaks

# ---- Identifiers -------------------------------------------------------------

TaskId = int
IPVersion = Literal[4, 6]
IPAddress = str
CycleId = str

# ---- Constants ---------------------------------------------------------------

IP_VERSIONS: Final[tuple[IPVersion, ...]] = (4, 6)

# Length of the HMAC the coordinator attaches to public IP notifications.
PUBLIC_IP_HMAC_SIZE: Final[int] = 32

# Known-certificate hashes in hunting tasks are SHA-256 digests.
CERT_HASH_SIZE: Final[int] = 32

DEFAULT_NANOID_ALPHABET: Final[str] = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ_abcdefghijklmnopqrstuvwxyz-"
DEFAULT_NANOID_SIZE: Final[int] = 12


__all__ = [
    "StrPath",
    "Millis",
    "Seconds",
    "EpochSeconds",
    "TaskId",
    "IPVersion",
    "IPAddress",
    "CycleId",
    "IP_VERSIONS",
    "PUBLIC_IP_HMAC_SIZE",
    "CERT_HASH_SIZE",
    "DEFAULT_NANOID_ALPHABET",
    "DEFAULT_NANOID_SIZE",
]
