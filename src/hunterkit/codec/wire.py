from __future__ import annotations

"""
hunterkit.codec.wire
====================

Binary framing of coordinator replies.

A reply body is a plain concatenation of frames:

    type:u8 | length:u16 (big endian, includes the 3 header bytes) | content

Contents per type:
    IPV4/IPV6_SHA256_TASK   task_id:u32 | n:u8 | target_ip (4|16) | port:u16 | n x sha256(32)
    CURRENT_SERVER_TIME     seconds:u32
    PUBLIC_IP_NOTIF4/6      hmac(32) | ip (4|16)

Unknown types are returned as `UnknownRecord` (not an error); structural
damage anywhere in the body raises `DecodeError` and nothing is returned.
"""

import ipaddress
import struct
from collections.abc import Iterable
from typing import Final

from pydantic import ValidationError

from ..api.errors import DecodeError
from ..core.types import CERT_HASH_SIZE, PUBLIC_IP_HMAC_SIZE
from ..protocol.records import (
    CurrentServerTime,
    HuntingTask,
    PublicIPNotification,
    Record,
    RecordKind,
    UnknownRecord,
)

__all__ = ["decode_records", "encode_record", "encode_records", "HEADER_SIZE"]

HEADER_SIZE: Final[int] = 3
_HEADER = struct.Struct(">BH")
_TASK_HEAD = struct.Struct(">IB")
_PORT = struct.Struct(">H")
_U32 = struct.Struct(">I")

_ADDR_LEN: Final[dict[int, int]] = {4: 4, 6: 16}

_TASK_KIND_BY_VERSION: Final[dict[int, RecordKind]] = {4: RecordKind.IPV4_SHA256_TASK, 6: RecordKind.IPV6_SHA256_TASK}
_NOTIF_KIND_BY_VERSION: Final[dict[int, RecordKind]] = {4: RecordKind.PUBLIC_IP_NOTIF4, 6: RecordKind.PUBLIC_IP_NOTIF6}


# ---- decoding ----------------------------------------------------------------


def _decode_task(version: int, content: bytes) -> HuntingTask:
    addr_len = _ADDR_LEN[version]
    if len(content) < _TASK_HEAD.size + addr_len + _PORT.size:
        raise DecodeError(f"hunting task frame too short ({len(content)} bytes)")
    task_id, n_hashes = _TASK_HEAD.unpack_from(content, 0)
    pos = _TASK_HEAD.size
    target = ipaddress.ip_address(content[pos : pos + addr_len])
    pos += addr_len
    (port,) = _PORT.unpack_from(content, pos)
    pos += _PORT.size
    if len(content) != pos + n_hashes * CERT_HASH_SIZE:
        raise DecodeError(f"hunting task {task_id}: expected {n_hashes} certificate hashes")
    hashes = tuple(
        content[pos + i * CERT_HASH_SIZE : pos + (i + 1) * CERT_HASH_SIZE].hex() for i in range(n_hashes)
    )
    return HuntingTask(
        task_id=task_id,
        ip_version=version,
        target_ip=target.compressed,
        target_port=port,
        known_cert_hashes=hashes,
    )


def _decode_server_time(content: bytes) -> CurrentServerTime:
    if len(content) != _U32.size:
        raise DecodeError(f"server time frame has {len(content)} bytes, expected {_U32.size}")
    (seconds,) = _U32.unpack(content)
    return CurrentServerTime(server_time=seconds)


def _decode_public_ip(version: int, content: bytes) -> PublicIPNotification:
    expected = PUBLIC_IP_HMAC_SIZE + _ADDR_LEN[version]
    if len(content) != expected:
        raise DecodeError(f"public IPv{version} frame has {len(content)} bytes, expected {expected}")
    hmac = content[:PUBLIC_IP_HMAC_SIZE]
    addr = ipaddress.ip_address(content[PUBLIC_IP_HMAC_SIZE:])
    return PublicIPNotification(ip_version=version, public_ip=addr.compressed, hmac=hmac)


def _decode_frame(type_code: int, content: bytes) -> Record:
    try:
        kind = RecordKind(type_code)
    except ValueError:
        return UnknownRecord(type_code=type_code, payload=content)

    try:
        if kind is RecordKind.IPV4_SHA256_TASK:
            return _decode_task(4, content)
        if kind is RecordKind.IPV6_SHA256_TASK:
            return _decode_task(6, content)
        if kind is RecordKind.CURRENT_SERVER_TIME:
            return _decode_server_time(content)
        if kind is RecordKind.PUBLIC_IP_NOTIF4:
            return _decode_public_ip(4, content)
        if kind is RecordKind.PUBLIC_IP_NOTIF6:
            return _decode_public_ip(6, content)
    except ValidationError as e:
        raise DecodeError(f"{kind.name} frame failed validation: {e.error_count()} error(s)") from e
    return UnknownRecord(type_code=type_code, payload=content)


def decode_records(data: bytes) -> list[Record]:
    """
    Split `data` into frames and decode each one.

    Raises:
        DecodeError: empty input, a truncated header/frame, or a known frame
            whose content does not match its type.
    """
    if not data:
        raise DecodeError("empty reply body")
    view = memoryview(data)
    out: list[Record] = []
    pos = 0
    while pos < len(view):
        if len(view) - pos < HEADER_SIZE:
            raise DecodeError(f"truncated frame header at offset {pos}")
        type_code, length = _HEADER.unpack_from(view, pos)
        if length < HEADER_SIZE or pos + length > len(view):
            raise DecodeError(f"invalid frame length {length} at offset {pos}")
        content = bytes(view[pos + HEADER_SIZE : pos + length])
        out.append(_decode_frame(type_code, content))
        pos += length
    return out


# ---- encoding ----------------------------------------------------------------


def _frame(kind: int, content: bytes) -> bytes:
    length = HEADER_SIZE + len(content)
    if length > 0xFFFF:
        raise ValueError(f"record too large for a single frame ({length} bytes)")
    return _HEADER.pack(kind, length) + content


def encode_record(record: Record) -> bytes:
    """Encode one record into its frame (the coordinator side of `decode_records`)."""
    if isinstance(record, HuntingTask):
        content = (
            _TASK_HEAD.pack(record.task_id, len(record.known_cert_hashes))
            + ipaddress.ip_address(record.target_ip).packed
            + _PORT.pack(record.target_port)
            + b"".join(bytes.fromhex(h) for h in record.known_cert_hashes)
        )
        return _frame(_TASK_KIND_BY_VERSION[record.ip_version], content)
    if isinstance(record, CurrentServerTime):
        return _frame(RecordKind.CURRENT_SERVER_TIME, _U32.pack(record.server_time))
    if isinstance(record, PublicIPNotification):
        hmac = record.hmac.ljust(PUBLIC_IP_HMAC_SIZE, b"\0")[:PUBLIC_IP_HMAC_SIZE]
        content = hmac + ipaddress.ip_address(record.public_ip).packed
        return _frame(_NOTIF_KIND_BY_VERSION[record.ip_version], content)
    if isinstance(record, UnknownRecord):
        return _frame(record.type_code, record.payload)
    raise TypeError(f"cannot encode {type(record).__name__}")


def encode_records(records: Iterable[Record]) -> bytes:
    return b"".join(encode_record(r) for r in records)
