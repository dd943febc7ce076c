import asyncio
import socket

import httpx
import pytest
import pytest_asyncio

from hunterkit.core.config import HunterConfig
from hunterkit.core.time import ManualClock
from hunterkit.resolver import AddressResolver
from tests.helpers import PUBLIC_V4, PUBLIC_V6, body, mock_client, notif, raising, replying, server_time

pytestmark = pytest.mark.unit

CFG = HunterConfig(server_host="coordinator.test")

_INFOS = [
    (socket.AF_INET6, socket.SOCK_STREAM, 6, "", ("2001:db8::1", 443, 0, 0)),
    (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("198.51.100.1", 443)),
    (socket.AF_INET, socket.SOCK_STREAM, 6, "", ("198.51.100.2", 443)),
]


@pytest_asyncio.fixture
async def dns(monkeypatch):
    """Replace the running loop's getaddrinfo; returns the list of looked-up hosts."""
    calls: list[str] = []
    answers = {"infos": list(_INFOS), "error": None}

    async def fake_getaddrinfo(host, port, *, family=0, type=0, proto=0, flags=0):
        calls.append(host)
        if answers["error"] is not None:
            raise answers["error"]
        return answers["infos"]

    monkeypatch.setattr(asyncio.get_running_loop(), "getaddrinfo", fake_getaddrinfo)
    return calls, answers


# ───────────────────────── coordinator addresses ─────────────────────────


@pytest.mark.asyncio
async def test_first_address_of_each_family_is_used(dns):
    calls, _ = dns
    r = AddressResolver(CFG, client=mock_client(replying()), clock=ManualClock())
    ident = await r.resolve_coordinator_addresses("coordinator.test")
    assert ident.ipv4 == "198.51.100.1"
    assert ident.ipv6 == "2001:db8::1"
    assert calls == ["coordinator.test"]


@pytest.mark.asyncio
async def test_ipv4_only_coordinator(dns):
    _, answers = dns
    answers["infos"] = [i for i in _INFOS if i[0] == socket.AF_INET]
    r = AddressResolver(CFG, client=mock_client(replying()), clock=ManualClock())
    ident = await r.resolve_coordinator_addresses("coordinator.test")
    assert ident.address_for(4) == "198.51.100.1"
    assert ident.address_for(6) is None


@pytest.mark.asyncio
async def test_dns_failure_means_both_versions_unsupported(dns):
    _, answers = dns
    answers["error"] = socket.gaierror(socket.EAI_NONAME, "Name or service not known")
    r = AddressResolver(CFG, client=mock_client(replying()), clock=ManualClock())
    ident = await r.resolve_coordinator_addresses("coordinator.test")
    assert ident.ipv4 is None and ident.ipv6 is None


@pytest.mark.asyncio
async def test_coordinator_addresses_are_cached(dns):
    calls, _ = dns
    clock = ManualClock(start_ms=0)
    r = AddressResolver(CFG, client=mock_client(replying()), clock=clock)

    await r.resolve_coordinator_addresses("coordinator.test")
    clock.advance(CFG.server_ip_cache_validity_ms - 1)
    await r.resolve_coordinator_addresses("coordinator.test")
    assert len(calls) == 1

    clock.advance(1)
    await r.resolve_coordinator_addresses("coordinator.test")
    assert len(calls) == 2


# ───────────────────────── public addresses ─────────────────────────


@pytest.mark.asyncio
async def test_public_ip_is_asked_through_the_literal_address():
    seen: list[httpx.Request] = []
    r = AddressResolver(CFG, client=mock_client(replying(body(server_time(1), notif(6)), seen=seen)), clock=ManualClock())

    assert await r.resolve_public_ip("2001:db8::1", 6) == PUBLIC_V6

    [request] = seen
    assert request.url.host == "2001:db8::1"
    assert request.url.path == "/getPublicIP.jsp"
    assert request.headers["host"] == "coordinator.test"
    assert request.extensions["sni_hostname"] == "coordinator.test"


@pytest.mark.asyncio
async def test_public_ip_cache_expires():
    seen: list[httpx.Request] = []
    clock = ManualClock(start_ms=0)
    r = AddressResolver(CFG, client=mock_client(replying(body(notif(4)), seen=seen)), clock=clock)

    assert await r.resolve_public_ip("198.51.100.1", 4) == PUBLIC_V4
    assert await r.resolve_public_ip("198.51.100.1", 4) == PUBLIC_V4
    assert len(seen) == 1

    clock.advance(CFG.public_ip_cache_validity_ms)
    assert r.cached_public_ip(4) is None
    assert await r.resolve_public_ip("198.51.100.1", 4) == PUBLIC_V4
    assert len(seen) == 2


@pytest.mark.asyncio
async def test_remembered_notification_avoids_the_request():
    seen: list[httpx.Request] = []
    r = AddressResolver(CFG, client=mock_client(replying(seen=seen)), clock=ManualClock())
    r.remember_public_ip(notif(4, "203.0.113.99"))
    assert await r.resolve_public_ip("198.51.100.1", 4) == "203.0.113.99"
    assert seen == []


@pytest.mark.parametrize(
    "handler",
    [
        raising(httpx.ConnectError),
        raising(httpx.ReadTimeout),
        replying(status=503),
        replying(b""),
        replying(b"\xff\xff"),
        replying(body(notif(4))),  # answered, but for the other family
    ],
    ids=["refused", "timeout", "http-503", "empty", "garbage", "wrong-family"],
)
@pytest.mark.asyncio
async def test_any_failure_means_unsupported(handler):
    r = AddressResolver(CFG, client=mock_client(handler), clock=ManualClock())
    assert await r.resolve_public_ip("2001:db8::1", 6) is None
    assert r.cached_public_ip(6) is None
