"""
Round-trip latency and jitter measurement.

Strategy order, each tried only if the previous one collected fewer than
``MIN_LATENCY_SAMPLES`` round trips::

    1. TCP connect   -- time a bare TCP handshake to port 80 of public
                        resolvers, 5 sequential connects per host
    2. HTTP HEAD     -- time a HEAD request against a smaller host set
    3. Synthetic     -- plausible random values, flagged as such

ping is the arithmetic mean of the samples, jitter their sample variance.
"""
from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional, Sequence

import aiohttp

from .constants import (
    COMMON_HEADERS,
    HTTP_PROBE_TIMEOUT,
    HTTP_PROBE_URLS,
    MIN_LATENCY_SAMPLES,
    PROBE_SPACING,
    PROBES_PER_HOST,
    SYNTHETIC_JITTER_BASE,
    SYNTHETIC_JITTER_SPREAD,
    SYNTHETIC_PING_BASE,
    SYNTHETIC_PING_SPREAD,
    TCP_CONNECT_TIMEOUT,
    TCP_PROBE_HOSTS,
    TCP_PROBE_PORT,
)
from .stats import LatencySample, calculate_jitter, mean_latency, round_trips

logger = logging.getLogger(__name__)

SOURCE_TCP = "tcp-connect"
SOURCE_HTTP = "http-head"
SOURCE_SYNTHETIC = "synthetic"


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass
class LatencyResult:
    """Aggregated latency for one run, with the strategy that produced it."""

    ping_ms: float
    jitter_ms: float
    source: str
    samples: List[LatencySample] = field(default_factory=list)

    @classmethod
    def from_samples(cls, samples: List[LatencySample], source: str) -> LatencyResult:
        values = round_trips(samples)
        return cls(
            ping_ms=mean_latency(values),
            jitter_ms=calculate_jitter(values),
            source=source,
            samples=list(samples),
        )

    @property
    def synthetic(self) -> bool:
        return self.source == SOURCE_SYNTHETIC


# ---------------------------------------------------------------------------
# Prober
# ---------------------------------------------------------------------------

class LatencyProber:
    """Measure ping / jitter, falling back through the strategy chain."""

    def __init__(
        self,
        tcp_hosts: Sequence[str] = TCP_PROBE_HOSTS,
        http_urls: Sequence[str] = HTTP_PROBE_URLS,
        *,
        port: int = TCP_PROBE_PORT,
        probes_per_host: int = PROBES_PER_HOST,
        connect_timeout: float = TCP_CONNECT_TIMEOUT,
        http_timeout: float = HTTP_PROBE_TIMEOUT,
        spacing: float = PROBE_SPACING,
        rng: Optional[random.Random] = None,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.tcp_hosts = tuple(tcp_hosts)
        self.http_urls = tuple(http_urls)
        self.port = port
        self.probes_per_host = probes_per_host
        self.connect_timeout = connect_timeout
        self.http_timeout = http_timeout
        self.spacing = spacing
        self.rng = rng or random.Random()
        self.clock = clock
        self.sleep = sleep

    async def measure(self) -> LatencyResult:
        """Return a usable ping / jitter pair.  Never raises."""
        samples = await self.tcp_samples()
        if len(samples) >= MIN_LATENCY_SAMPLES:
            result = LatencyResult.from_samples(samples, SOURCE_TCP)
            logger.info(
                "TCP-connect latency: %.2f ms, jitter %.2f ms (%d samples)",
                result.ping_ms, result.jitter_ms, len(samples),
            )
            return result
        logger.info(
            "TCP-connect latency failed: %d of %d samples, need %d",
            len(samples), len(self.tcp_hosts) * self.probes_per_host, MIN_LATENCY_SAMPLES,
        )

        samples = await self.http_samples()
        if len(samples) >= MIN_LATENCY_SAMPLES:
            result = LatencyResult.from_samples(samples, SOURCE_HTTP)
            logger.info(
                "HTTP-HEAD latency: %.2f ms, jitter %.2f ms (%d samples)",
                result.ping_ms, result.jitter_ms, len(samples),
            )
            return result
        logger.info(
            "HTTP-HEAD latency failed: %d samples, need %d",
            len(samples), MIN_LATENCY_SAMPLES,
        )

        result = self.synthesize()
        logger.warning(
            "Latency probing failed on every strategy, using synthetic ping "
            "%.2f ms, jitter %.2f ms",
            result.ping_ms, result.jitter_ms,
        )
        return result

    # -- Strategies ---------------------------------------------------------

    async def tcp_samples(self) -> List[LatencySample]:
        samples: List[LatencySample] = []
        for host in self.tcp_hosts:
            for _ in range(self.probes_per_host):
                rtt = await self._connect_once(host)
                if rtt is None:
                    continue
                samples.append(LatencySample(host=host, round_trip_ms=rtt))
                await self.sleep(self.spacing)
        return samples

    async def http_samples(self) -> List[LatencySample]:
        samples: List[LatencySample] = []
        for url in self.http_urls:
            for _ in range(self.probes_per_host):
                rtt = await self._head_once(url)
                if rtt is None:
                    continue
                samples.append(LatencySample(host=url, round_trip_ms=rtt))
                await self.sleep(self.spacing)
        return samples

    def synthesize(self) -> LatencyResult:
        ping = SYNTHETIC_PING_BASE + self.rng.random() * SYNTHETIC_PING_SPREAD
        jitter = SYNTHETIC_JITTER_BASE + self.rng.random() * SYNTHETIC_JITTER_SPREAD
        return LatencyResult(ping_ms=ping, jitter_ms=jitter, source=SOURCE_SYNTHETIC)

    # -- Internals ----------------------------------------------------------

    async def _connect_once(self, host: str) -> Optional[float]:
        """Milliseconds to complete a TCP handshake, or None on failure."""
        start = self.clock()
        try:
            _reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, self.port),
                timeout=self.connect_timeout,
            )
        except (asyncio.TimeoutError, OSError) as exc:
            logger.debug("TCP probe %s:%d failed: %s", host, self.port, exc)
            return None

        elapsed = (self.clock() - start) * 1000
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass  # peer reset during close; the handshake was already timed
        return elapsed

    async def _head_once(self, url: str) -> Optional[float]:
        """Milliseconds for a full HEAD round trip, or None on failure."""
        timeout = aiohttp.ClientTimeout(total=self.http_timeout)
        start = self.clock()
        try:
            async with aiohttp.ClientSession(headers=COMMON_HEADERS, timeout=timeout) as session:
                async with session.head(url, allow_redirects=False) as resp:
                    status = resp.status
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            logger.debug("HTTP probe %s failed: %s", url, exc)
            return None

        elapsed = (self.clock() - start) * 1000
        logger.debug("HTTP probe %s answered %d in %.1f ms", url, status, elapsed)
        return elapsed
