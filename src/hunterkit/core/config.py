from __future__ import annotations

"""
hunterkit.core.config
=====================

Strongly-typed hunter configuration.
- Optional JSON file, then env overrides, then explicit overrides.
- Derives millisecond fields from seconds to avoid repeated conversions.

If no config file is given (or it does not exist) the defaults are used.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .log import get_logger

_log = get_logger("config")

# env var -> (field, converter)
_ENV_FIELDS: dict[str, tuple[str, Any]] = {
    "HUNTERKIT_SERVER_HOST": ("server_host", str),
    "HUNTERKIT_SERVER_PORT": ("server_port", int),
    "HUNTERKIT_REEXECUTION_INTERVAL_SEC": ("task_reexecution_interval_sec", int),
    "HUNTERKIT_HUNTING_INTERVAL_SEC": ("hunting_interval_sec", float),
}


def _load_json(path: Path | None) -> dict[str, Any]:
    if not path or not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        _log.warning("config.file.unreadable", event="config.file.unreadable", path=str(path), error=str(e))
        return {}
    if not isinstance(data, dict):
        _log.warning("config.file.not_an_object", event="config.file.invalid", path=str(path))
        return {}
    return data


def _env_overrides() -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name, (field_name, conv) in _ENV_FIELDS.items():
        raw = os.getenv(name)
        if raw:
            out[field_name] = conv(raw)
    return out


# ---------------------------------------------------------------------------


@dataclass
class HunterConfig:
    """Hunter configuration: coordinator endpoint, timings and cache validities."""

    # ---- Coordinator endpoint
    server_host: str = "coordinator.example.net"
    server_port: int = 443
    task_list_path: str = "/getHuntingTaskList.jsp"
    public_ip_path: str = "/getPublicIP.jsp"
    verify_tls: bool = True
    request_timeout_sec: float = 30.0
    connect_timeout_sec: float = 10.0

    # ---- Hunting
    activate_hunter: bool = True
    hunting_interval_sec: float = 900.0
    task_reexecution_interval_sec: int = 21600

    # ---- Address caches (seconds)
    public_ip_cache_validity_sec: int = 60
    server_ip_cache_validity_sec: int = 3600

    # ---- Derived (ms)
    hunting_interval_ms: int = 0
    public_ip_cache_validity_ms: int = 0
    server_ip_cache_validity_ms: int = 0

    # ---- Methods ------------------------------------------------------------

    def __post_init__(self) -> None:
        if not self.server_host:
            raise ValueError("server_host must be a non-empty string")
        if not (0 < int(self.server_port) < 65536):
            raise ValueError("server_port must be in 1..65535")
        for p in (self.task_list_path, self.public_ip_path):
            if not p.startswith("/"):
                raise ValueError(f"endpoint path must start with '/': {p!r}")
        if self.task_reexecution_interval_sec < 0:
            raise ValueError("task_reexecution_interval_sec must be non-negative")
        if self.hunting_interval_sec <= 0:
            raise ValueError("hunting_interval_sec must be positive")
        if self.request_timeout_sec <= 0 or self.connect_timeout_sec <= 0:
            raise ValueError("timeouts must be positive")
        self._derive_ms()

    def _derive_ms(self) -> None:
        self.hunting_interval_ms = int(self.hunting_interval_sec * 1000)
        self.public_ip_cache_validity_ms = int(self.public_ip_cache_validity_sec * 1000)
        self.server_ip_cache_validity_ms = int(self.server_ip_cache_validity_sec * 1000)

    @property
    def task_list_url(self) -> str:
        port = "" if self.server_port == 443 else f":{self.server_port}"
        return f"https://{self.server_host}{port}{self.task_list_path}"

    def public_ip_url(self, address: str) -> str:
        """URL of the public-IP echo endpoint reached through a literal coordinator address."""
        host = f"[{address}]" if ":" in address else address
        port = "" if self.server_port == 443 else f":{self.server_port}"
        return f"https://{host}{port}{self.public_ip_path}"

    @classmethod
    def load(cls, path: Path | str | None = None, *, overrides: dict[str, Any] | None = None) -> HunterConfig:
        """
        Load config from a JSON file (if provided), then apply env and overrides.

        Env overrides:
          - HUNTERKIT_SERVER_HOST
          - HUNTERKIT_SERVER_PORT
          - HUNTERKIT_REEXECUTION_INTERVAL_SEC
          - HUNTERKIT_HUNTING_INTERVAL_SEC
        """
        data: dict[str, Any] = {}
        data.update(_load_json(Path(path) if path else None))
        data.update(_env_overrides())
        if overrides:
            data.update(overrides)
        return cls(**data)
