"""
Test-server registry entries and client IP metadata.

``TestServer`` describes one host of the multi-connection registry, which
follows the ``/__down?bytes=N`` and ``/__up`` path convention.  The IP
lookup is a best-effort convenience for the CLI; callers of the engine may
supply ``IpMetadata`` themselves.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Tuple

import aiohttp

from .constants import COMMON_HEADERS, IP_LOOKUP_TIMEOUT, IP_LOOKUP_URL, TEST_SERVERS

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TestServer:
    """A single multi-connection test server."""

    __test__ = False  # not a test case, despite the name

    name: str
    base_url: str
    location: str = ""

    # -- Constructors -------------------------------------------------------

    @classmethod
    def from_dict(cls, data: dict) -> TestServer:
        return cls(
            name=data.get("name", ""),
            base_url=data.get("base_url", data.get("url", "")).rstrip("/"),
            location=data.get("location", ""),
        )

    # -- Derived URLs -------------------------------------------------------

    def download_url(self, size: int) -> str:
        return f"{self.base_url}/__down?bytes={size}"

    @property
    def upload_url(self) -> str:
        return f"{self.base_url}/__up"

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "base_url": self.base_url,
            "location": self.location,
        }


def default_test_servers(rows: Iterable[Tuple[str, str, str]] = TEST_SERVERS) -> Tuple[TestServer, ...]:
    return tuple(TestServer(name, url, location) for name, url, location in rows)


@dataclass
class IpMetadata:
    """ISP and location of the measuring client."""

    isp: str = ""
    ip: str = ""
    country: str = ""
    region: str = ""

    @classmethod
    def from_ipinfo(cls, data: dict) -> IpMetadata:
        return cls(
            isp=data.get("org", "") or "",
            ip=data.get("ip", "") or "",
            country=data.get("country", "") or "",
            region=data.get("region", "") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isp": self.isp,
            "ip": self.ip,
            "country": self.country,
            "region": self.region,
        }


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

async def lookup_ip_metadata(
    url: str = IP_LOOKUP_URL,
    timeout: float = IP_LOOKUP_TIMEOUT,
) -> IpMetadata:
    """Fetch the client's public IP / ISP / region.  Never raises."""
    client_timeout = aiohttp.ClientTimeout(total=timeout)

    try:
        async with aiohttp.ClientSession(headers=COMMON_HEADERS, timeout=client_timeout) as session:
            async with session.get(url) as resp:
                resp.raise_for_status()
                data = await resp.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as exc:
        logger.warning("IP metadata lookup via %s failed: %s", url, exc)
        return IpMetadata()

    if not isinstance(data, dict):
        logger.warning("IP metadata lookup via %s returned %s", url, type(data).__name__)
        return IpMetadata()

    return IpMetadata.from_ipinfo(data)


def servers_from_dicts(rows: List[dict]) -> Tuple[TestServer, ...]:
    return tuple(TestServer.from_dict(r) for r in rows)
