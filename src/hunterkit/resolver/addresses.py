from __future__ import annotations

"""
hunterkit.resolver.addresses
============================

Address lookups used by the hunter:
- the coordinator's own IPv4/IPv6 addresses (DNS);
- the client's public IPv4/IPv6 address as seen by the coordinator, obtained
  by calling the coordinator's public-IP endpoint through its literal address
  of that family.

Both are cached per IP version (validity from config). Failures never raise:
a version that cannot be resolved is reported as `None` ("unsupported").
"""

import asyncio
import socket
from dataclasses import dataclass

import httpx

from ..api.errors import DecodeError, ResolutionError
from ..codec.wire import decode_records
from ..core.config import HunterConfig
from ..core.log import get_logger
from ..core.time import Clock, SystemClock
from ..core.types import IPAddress, IPVersion, Millis
from ..protocol.records import CoordinatorIdentity, PublicIPNotification

__all__ = ["AddressResolver"]

_FAMILIES: dict[int, IPVersion] = {socket.AF_INET: 4, socket.AF_INET6: 6}


@dataclass
class _Cached:
    value: IPAddress | None
    expires_ms: Millis


class AddressResolver:
    """Resolve and cache coordinator and public addresses per IP version."""

    def __init__(
        self,
        cfg: HunterConfig,
        *,
        client: httpx.AsyncClient | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.cfg = cfg
        self.clock: Clock = clock or SystemClock()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(cfg.request_timeout_sec, connect=cfg.connect_timeout_sec),
            verify=cfg.verify_tls,
        )
        self._server_ips: dict[str, tuple[CoordinatorIdentity, Millis]] = {}
        self._public_ips: dict[IPVersion, _Cached] = {}
        self.log = get_logger("resolver")

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ---- coordinator addresses

    async def resolve_coordinator_addresses(self, hostname: str) -> CoordinatorIdentity:
        now = self.clock.now_ms()
        hit = self._server_ips.get(hostname)
        if hit is not None and hit[1] > now:
            return hit[0]

        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(hostname, self.cfg.server_port, type=socket.SOCK_STREAM)
        except OSError as e:
            self.log.warning(
                "resolver.dns.failed", event="resolver.dns.failed", host=hostname, error=str(e)
            )
            return CoordinatorIdentity()

        found: dict[IPVersion, IPAddress] = {}
        for family, _type, _proto, _canon, sockaddr in infos:
            version = _FAMILIES.get(family)
            if version is not None and version not in found:
                found[version] = sockaddr[0]

        identity = CoordinatorIdentity(ipv4=found.get(4), ipv6=found.get(6))
        self._server_ips[hostname] = (identity, now + self.cfg.server_ip_cache_validity_ms)
        self.log.debug(
            "resolver.dns.ok", event="resolver.dns.ok", host=hostname, ipv4=identity.ipv4, ipv6=identity.ipv6
        )
        return identity

    # ---- public addresses

    def remember_public_ip(self, notification: PublicIPNotification) -> None:
        """Seed the cache with an address the coordinator already reported."""
        self._public_ips[notification.ip_version] = _Cached(
            value=notification.public_ip,
            expires_ms=self.clock.now_ms() + self.cfg.public_ip_cache_validity_ms,
        )

    def cached_public_ip(self, ip_version: IPVersion) -> IPAddress | None:
        hit = self._public_ips.get(ip_version)
        if hit is None or hit.expires_ms <= self.clock.now_ms():
            return None
        return hit.value

    async def resolve_public_ip(self, target_host: IPAddress, ip_version: IPVersion) -> IPAddress | None:
        """
        Ask the coordinator (reached at `target_host`, a literal address of
        family `ip_version`) which public address it sees for us.
        """
        cached = self.cached_public_ip(ip_version)
        if cached is not None:
            return cached
        try:
            notification = await self._ask_public_ip(target_host, ip_version)
        except ResolutionError as e:
            self.log.info(
                "resolver.public_ip.unsupported",
                event="resolver.public_ip.unsupported",
                ip_version=ip_version,
                reason=str(e),
            )
            return None
        self.remember_public_ip(notification)
        return notification.public_ip

    async def _ask_public_ip(self, target_host: IPAddress, ip_version: IPVersion) -> PublicIPNotification:
        url = self.cfg.public_ip_url(target_host)
        try:
            resp = await self._client.get(
                url,
                headers={"Host": self.cfg.server_host},
                extensions={"sni_hostname": self.cfg.server_host},
            )
        except httpx.HTTPError as e:
            raise ResolutionError(f"{target_host} unreachable ({type(e).__name__})") from e

        if not resp.is_success:
            raise ResolutionError(f"HTTP-STATUS: {resp.status_code}:{resp.reason_phrase}")
        if not resp.content:
            raise ResolutionError("empty reply")

        try:
            records = decode_records(resp.content)
        except DecodeError as e:
            raise ResolutionError(f"undecodable reply: {e}") from e

        for rec in records:
            if isinstance(rec, PublicIPNotification) and rec.ip_version == ip_version:
                return rec
        raise ResolutionError(f"reply carries no IPv{ip_version} notification")
