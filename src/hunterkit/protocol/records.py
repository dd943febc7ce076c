# src/hunterkit/protocol/records.py
from __future__ import annotations

"""
Hunter protocol records
=======================

Typed records found in a coordinator task-list reply, plus the small per-cycle
identity values derived from them.

Design principles:
- One closed set of record kinds: `HuntingTask`, `CurrentServerTime`,
  `PublicIPNotification`. Anything else decodes to `UnknownRecord` so callers
  can report it and move on.
- Pydantic v2 models, frozen, with `extra="forbid"`.
- Timestamps are **epoch seconds** as issued by the coordinator.
"""

import ipaddress
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.types import IP_VERSIONS, IPAddress, IPVersion, TaskId

# --------------------------------------------------------------------------- #
# Enums
# --------------------------------------------------------------------------- #


class RecordKind(IntEnum):
    """Wire tag of a record (first byte of every frame)."""

    PUBLIC_IP_NOTIF4 = 0
    PUBLIC_IP_NOTIF6 = 1
    CURRENT_SERVER_TIME = 5
    IPV4_SHA256_TASK = 10
    IPV6_SHA256_TASK = 11


class Admission(str, Enum):
    """Outcome of the admission policy for one task."""

    ADMIT = "admit"
    SKIP = "skip"


def _check_address(value: str, version: int) -> str:
    addr = ipaddress.ip_address(value)
    if addr.version != version:
        raise ValueError(f"expected an IPv{version} address, got {value!r}")
    return addr.compressed


# --------------------------------------------------------------------------- #
# Records
# --------------------------------------------------------------------------- #


class HuntingTask(BaseModel):
    """
    A measurement job issued by the coordinator.

    Fields:
        task_id: Stable coordinator-assigned identifier.
        ip_version: Which of the client's public addresses the probe needs.
        target_ip: Address of the probe target (same family as `ip_version`).
        target_port: TCP port of the target.
        known_cert_hashes: Hex SHA-256 of certificates the coordinator already
            knows for this target.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["hunting_task"] = "hunting_task"
    task_id: TaskId = Field(ge=0)
    ip_version: IPVersion
    target_ip: IPAddress
    target_port: int = Field(ge=0, le=65535)
    known_cert_hashes: tuple[str, ...] = ()

    @field_validator("target_ip")
    @classmethod
    def _target_matches_version(cls, v: str, info) -> str:
        version = info.data.get("ip_version")
        if version is None:
            return v
        return _check_address(v, version)


class CurrentServerTime(BaseModel):
    """The coordinator's clock at the time it built the reply."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["current_server_time"] = "current_server_time"
    server_time: int = Field(ge=0)


class PublicIPNotification(BaseModel):
    """
    The client's public address as observed by the coordinator.

    `hmac` authenticates the address towards the coordinator when it is echoed
    back with measurement results; the client treats it as opaque.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["public_ip"] = "public_ip"
    ip_version: IPVersion
    public_ip: IPAddress
    hmac: bytes = b""

    @field_validator("public_ip")
    @classmethod
    def _ip_matches_version(cls, v: str, info) -> str:
        version = info.data.get("ip_version")
        if version is None:
            return v
        return _check_address(v, version)


class UnknownRecord(BaseModel):
    """A frame with a tag this client does not understand."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["unknown"] = "unknown"
    type_code: int
    payload: bytes = b""


Record = Union[HuntingTask, CurrentServerTime, PublicIPNotification, UnknownRecord]


# --------------------------------------------------------------------------- #
# Per-cycle identities
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class CoordinatorIdentity:
    """
    The coordinator's own addresses. A missing address for a version means the
    client cannot reach the coordinator over that family, so that version is
    not exercised this cycle.
    """

    ipv4: IPAddress | None = None
    ipv6: IPAddress | None = None

    def address_for(self, version: IPVersion) -> IPAddress | None:
        return self.ipv4 if version == 4 else self.ipv6


@dataclass
class PublicIdentity:
    """
    The client's public addresses for one cycle; `None` = unknown/unsupported.
    Only the address-resolution stages of the pipeline write to it.
    """

    ipv4: IPAddress | None = None
    ipv6: IPAddress | None = None

    def address_for(self, version: IPVersion) -> IPAddress | None:
        return self.ipv4 if version == 4 else self.ipv6

    def set(self, version: IPVersion, address: IPAddress | None) -> None:
        if version not in IP_VERSIONS:
            raise ValueError(f"unsupported IP version: {version!r}")
        if version == 4:
            self.ipv4 = address
        else:
            self.ipv6 = address

    def known(self, version: IPVersion) -> bool:
        return self.address_for(version) is not None

    def candidates(self) -> tuple[IPAddress | None, IPAddress | None]:
        return (self.ipv4, self.ipv6)


__all__ = [
    "Admission",
    "CoordinatorIdentity",
    "CurrentServerTime",
    "HuntingTask",
    "PublicIPNotification",
    "PublicIdentity",
    "Record",
    "RecordKind",
    "UnknownRecord",
]
