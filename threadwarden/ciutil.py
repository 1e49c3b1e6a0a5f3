"""Check whether a request address belongs to a known CI provider."""

from __future__ import annotations

import ipaddress
import json
import logging
import threading
import urllib.request
from collections.abc import Callable, Iterable

logger = logging.getLogger(__name__)

IPNetwork = ipaddress.IPv4Network | ipaddress.IPv6Network
IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

# https://www.appveyor.com/docs/build-environment/#ip-addresses
APPVEYOR_ADDRESSES = (
    "74.205.54.20",
    "104.197.110.30",
    "104.197.145.181",
    "146.148.85.29",
    "67.225.139.254",
    "67.225.138.82",
    "67.225.139.144",
    "138.91.141.243",
)

TRAVIS_IP_ENDPOINT = "https://dnsjson.com/nat.travisci.net/A.json"

Fetcher = Callable[[], Iterable[str]]


def parse_networks(entries: Iterable[str]) -> frozenset[IPNetwork]:
    networks: set[IPNetwork] = set()
    for entry in entries:
        text = entry.strip()
        if not text:
            continue
        networks.add(ipaddress.ip_network(text, strict=False))
    return frozenset(networks)


def parse_address(address: str) -> IPAddress | None:
    """Parse ``host``, ``host:port`` or ``[v6]:port`` into an address."""
    text = address.strip()
    if text.startswith("["):
        text = text[1:].split("]", 1)[0]
    elif text.count(":") == 1:
        text = text.split(":", 1)[0]
    try:
        return ipaddress.ip_address(text)
    except ValueError:
        return None


def fetch_travis_addresses(endpoint: str = TRAVIS_IP_ENDPOINT, timeout_seconds: float = 10.0) -> list[str]:
    req = urllib.request.Request(endpoint, headers={"Accept": "application/json"}, method="GET")
    with urllib.request.urlopen(req, timeout=timeout_seconds) as response:
        body = json.loads(response.read().decode("utf-8"))
    records = (body.get("results") or {}).get("records") or []
    if not isinstance(records, list):
        raise ValueError("Travis CI address list has unexpected shape")
    return [str(record) for record in records]


class CIAllowList:
    """Static AppVeyor ranges plus a refreshable Travis CI address list."""

    def __init__(
        self,
        static_networks: Iterable[str] = APPVEYOR_ADDRESSES,
        *,
        travis_endpoint: str = TRAVIS_IP_ENDPOINT,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._static = parse_networks(static_networks)
        self._travis: frozenset[IPNetwork] = frozenset()
        self._lock = threading.Lock()
        self.travis_endpoint = travis_endpoint
        self.timeout_seconds = timeout_seconds

    @property
    def travis_networks(self) -> frozenset[IPNetwork]:
        with self._lock:
            return self._travis

    def refresh(self, fetcher: Fetcher | None = None) -> int:
        if fetcher is None:
            addresses = fetch_travis_addresses(self.travis_endpoint, self.timeout_seconds)
        else:
            addresses = list(fetcher())
        networks = parse_networks(addresses)
        with self._lock:
            self._travis = networks
        logger.info("Refreshed Travis CI address list (%s entries)", len(networks))
        return len(networks)

    def override(self, addresses: Iterable[str]) -> None:
        networks = parse_networks(addresses)
        with self._lock:
            self._travis = networks

    def is_from_appveyor(self, address: str) -> bool:
        return _contains(self._static, parse_address(address))

    def is_from_travis(self, address: str) -> bool:
        return _contains(self.travis_networks, parse_address(address))

    def is_from_ci(self, address: str) -> bool:
        return self.is_from_travis(address) or self.is_from_appveyor(address)


def _contains(networks: frozenset[IPNetwork], ip: IPAddress | None) -> bool:
    if ip is None:
        return False
    return any(ip.version == network.version and ip in network for network in networks)

