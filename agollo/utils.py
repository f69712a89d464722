"""Small helpers shared across the client."""

from __future__ import annotations

import functools
import ipaddress
import socket
from typing import Any

EMPTY = ""

# Connecting a UDP socket sends nothing; it only asks the kernel for a route.
_ROUTE_PROBE = ("10.255.255.255", 1)


def _is_usable_ipv4(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return ip.version == 4 and not ip.is_loopback


def _host_addresses() -> list[str]:
    try:
        infos = socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET)
    except OSError:
        return []
    return [info[4][0] for info in infos]


def _route_address() -> str:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
            probe.connect(_ROUTE_PROBE)
            return probe.getsockname()[0]
    except OSError:
        return EMPTY


@functools.lru_cache(maxsize=None)
def get_internal_ip() -> str:
    """Return a non-loopback IPv4 address of this host, or an empty string."""
    internal_ip = EMPTY
    for address in _host_addresses():
        if _is_usable_ipv4(address):
            internal_ip = address
    if internal_ip:
        return internal_ip
    routed = _route_address()
    return routed if _is_usable_ipv4(routed) else EMPTY


def is_nil_object(obj: Any) -> bool:
    """Return True when the object is absent."""
    return obj is None


def is_not_nil(obj: Any) -> bool:
    """Return True when the object is present."""
    return not is_nil_object(obj)