"""
Single bounded-duration transfers and the fallback chain runner.

``ThroughputSampler`` moves bytes against one endpoint and turns
bytes / elapsed time into Mbps.  ``ThroughputChain`` is the shared base of
the download and upload chains: it walks an ordered list of strategies and
returns the first one that produces a speed.
"""
from __future__ import annotations

import abc
import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Tuple

import aiohttp

from .api import TestServer
from .config import Endpoints
from .constants import (
    CHUNK_SIZE,
    COMMON_HEADERS,
    CONNECT_TIMEOUT,
    MAX_READ_SECONDS,
    MIN_DOWNLOAD_BYTES,
    MIN_DOWNLOAD_SECONDS,
    MIN_UPLOAD_SECONDS,
    MULTI_CONNECTIONS,
    RESPONSE_HEADER_TIMEOUT,
    TLS_HANDSHAKE_TIMEOUT,
)
from .errors import (
    InsufficientSample,
    MeasurementError,
    ServerRejected,
    StrategiesExhausted,
    TransportFailure,
)
from .stats import ThroughputObservation, scaled_median, throughput_mbps

logger = logging.getLogger(__name__)

TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, OSError)

STRATEGY_PRIMARY = "primary"
STRATEGY_SMALL = "small-object"
STRATEGY_ALTERNATIVE = "alternative"
STRATEGY_MULTI = "multi-connection"
STRATEGY_SYNTHETIC = "synthetic"

Strategy = Tuple[str, Callable[[], Awaitable[float]]]


# ---------------------------------------------------------------------------
# Results / accumulators
# ---------------------------------------------------------------------------

@dataclass
class ThroughputResult:
    """Speed for one direction and the strategy that produced it."""

    mbps: float
    source: str
    failed: List[str] = field(default_factory=list)


class TransferTally:
    """Byte and error accumulator shared by concurrent transfers."""

    def __init__(self) -> None:
        self.bytes_total = 0
        self.errors: List[MeasurementError] = []
        self._lock = asyncio.Lock()

    async def add_bytes(self, n: int) -> None:
        async with self._lock:
            self.bytes_total += n

    async def add_error(self, exc: MeasurementError) -> None:
        async with self._lock:
            self.errors.append(exc)


# ---------------------------------------------------------------------------
# Sampler
# ---------------------------------------------------------------------------

class ThroughputSampler:
    """Perform one transfer against one endpoint and measure it."""

    def __init__(
        self,
        *,
        connect_timeout: float = CONNECT_TIMEOUT,
        tls_timeout: float = TLS_HANDSHAKE_TIMEOUT,
        header_timeout: float = RESPONSE_HEADER_TIMEOUT,
        max_read_seconds: float = MAX_READ_SECONDS,
        chunk_size: int = CHUNK_SIZE,
        clock: Callable[[], float] = time.perf_counter,
        payload_factory: Callable[[int], bytes] = os.urandom,
    ) -> None:
        self.connect_timeout = connect_timeout
        self.tls_timeout = tls_timeout
        self.header_timeout = header_timeout
        self.max_read_seconds = max_read_seconds
        self.chunk_size = chunk_size
        self.clock = clock
        self.payload_factory = payload_factory

    def client_timeout(self, total: float, *, bound_reads: bool = True) -> aiohttp.ClientTimeout:
        # ``connect`` covers the TCP dial plus the TLS handshake;
        # ``sock_read`` bounds the wait for headers and for each chunk.
        # aiohttp runs the ``sock_read`` timer while a request body is still
        # being written, so uploads pass ``bound_reads=False``.
        return aiohttp.ClientTimeout(
            total=total,
            connect=self.connect_timeout + self.tls_timeout,
            sock_connect=self.connect_timeout,
            sock_read=self.header_timeout if bound_reads else None,
        )

    def _session(self, total: float, *, bound_reads: bool = True) -> aiohttp.ClientSession:
        return aiohttp.ClientSession(
            headers=COMMON_HEADERS,
            timeout=self.client_timeout(total, bound_reads=bound_reads),
        )

    # -- Download -----------------------------------------------------------

    async def observe_download(self, url: str, timeout: float) -> ThroughputObservation:
        """GET *url* and read until EOF or the wall-clock cap."""
        total = 0
        start = self.clock()
        try:
            async with self._session(timeout) as session:
                async with session.get(url) as resp:
                    if not 200 <= resp.status < 300:
                        raise ServerRejected(resp.status, endpoint=url)

                    while self.clock() - start <= self.max_read_seconds:
                        chunk = await resp.content.read(self.chunk_size)
                        if not chunk:
                            break
                        total += len(chunk)
        except TRANSPORT_ERRORS as exc:
            raise TransportFailure(_describe(exc), endpoint=url) from exc

        return ThroughputObservation(total, self.clock() - start)

    async def download(
        self,
        url: str,
        timeout: float,
        *,
        min_seconds: float = MIN_DOWNLOAD_SECONDS,
        min_bytes: int = MIN_DOWNLOAD_BYTES,
    ) -> float:
        obs = await self.observe_download(url, timeout)
        if not obs.is_usable(min_seconds, min_bytes):
            raise InsufficientSample(
                f"test too short or insufficient data: {obs.bytes_transferred} bytes "
                f"in {obs.elapsed_seconds:.3f}s",
                endpoint=url,
            )
        logger.debug("Downloaded %d bytes from %s in %.2fs", obs.bytes_transferred, url, obs.elapsed_seconds)
        return obs.mbps

    # -- Upload -------------------------------------------------------------

    async def observe_upload(self, url: str, payload_size: int, timeout: float) -> ThroughputObservation:
        """POST *payload_size* random bytes; timed until the response headers."""
        payload = self.payload_factory(payload_size)
        headers = {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(len(payload)),
        }

        start = self.clock()
        try:
            async with self._session(timeout, bound_reads=False) as session:
                async with session.post(url, data=payload, headers=headers) as resp:
                    elapsed = self.clock() - start
                    if not 200 <= resp.status < 300:
                        raise ServerRejected(resp.status, endpoint=url)
        except TRANSPORT_ERRORS as exc:
            raise TransportFailure(_describe(exc), endpoint=url) from exc

        return ThroughputObservation(len(payload), elapsed)

    async def upload(
        self,
        url: str,
        payload_size: int,
        timeout: float,
        *,
        min_seconds: float = MIN_UPLOAD_SECONDS,
    ) -> float:
        obs = await self.observe_upload(url, payload_size, timeout)
        if not obs.is_usable(min_seconds):
            raise InsufficientSample(
                f"upload test too short: {obs.elapsed_seconds:.3f}s", endpoint=url,
            )
        logger.debug("Uploaded %d bytes to %s in %.2fs", obs.bytes_transferred, url, obs.elapsed_seconds)
        return obs.mbps

    # -- Multi-connection workers --------------------------------------------

    async def stream_into(self, tally: TransferTally, url: str, timeout: float) -> None:
        """Download *url*, adding bytes to *tally* as they arrive."""
        try:
            async with self._session(timeout) as session:
                async with session.get(url) as resp:
                    if not 200 <= resp.status < 300:
                        raise ServerRejected(resp.status, endpoint=url)
                    while True:
                        chunk = await resp.content.read(self.chunk_size)
                        if not chunk:
                            break
                        await tally.add_bytes(len(chunk))
        except ServerRejected as exc:
            await tally.add_error(exc)
        except TRANSPORT_ERRORS as exc:
            await tally.add_error(TransportFailure(_describe(exc), endpoint=url))

    async def send_into(self, tally: TransferTally, url: str, payload_size: int, timeout: float) -> None:
        """Upload a random payload to *url*, crediting *tally* once accepted."""
        payload = self.payload_factory(payload_size)
        headers = {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(len(payload)),
        }
        try:
            async with self._session(timeout, bound_reads=False) as session:
                async with session.post(url, data=payload, headers=headers) as resp:
                    if not 200 <= resp.status < 300:
                        raise ServerRejected(resp.status, endpoint=url)
                    await tally.add_bytes(len(payload))
                    try:
                        await resp.read()
                    except TRANSPORT_ERRORS as exc:
                        # payload already accepted
                        logger.debug("Ignoring error draining reply from %s: %s", url, _describe(exc))
        except ServerRejected as exc:
            await tally.add_error(exc)
        except TRANSPORT_ERRORS as exc:
            await tally.add_error(TransportFailure(_describe(exc), endpoint=url))


def _describe(exc: BaseException) -> str:
    # asyncio.TimeoutError has an empty message
    return str(exc) or type(exc).__name__


# ---------------------------------------------------------------------------
# Chain runner
# ---------------------------------------------------------------------------

class ThroughputChain(abc.ABC):
    """Ordered fallback across throughput strategies for one direction."""

    direction = "throughput"

    def __init__(
        self,
        sampler: Optional[ThroughputSampler] = None,
        endpoints: Optional[Endpoints] = None,
        *,
        connections: int = MULTI_CONNECTIONS,
        clock: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.sampler = sampler or ThroughputSampler()
        self.endpoints = endpoints or Endpoints()
        self.connections = connections
        self.clock = clock

    @abc.abstractmethod
    def strategies(self, multi_connection: bool) -> List[Strategy]:
        """Ordered ``(name, step)`` pairs for the requested mode."""

    async def measure(self, multi_connection: bool = False) -> ThroughputResult:
        """Return the first strategy's speed; raise when all of them fail."""
        failed: List[str] = []

        for name, step in self.strategies(multi_connection):
            logger.info("Attempting %s %s test", name, self.direction)
            try:
                mbps = await step()
            except MeasurementError as exc:
                logger.info("%s %s test failed: %s", name.capitalize(), self.direction, exc)
                failed.append(name)
                continue

            logger.info("%s %s test successful: %.2f Mbps", name.capitalize(), self.direction, mbps)
            return ThroughputResult(mbps=mbps, source=name, failed=failed)

        raise StrategiesExhausted(
            f"all {self.direction} strategies failed ({', '.join(failed) or 'none configured'})",
        )

    # -- Strategy building blocks ---------------------------------------------

    async def first_success(
        self,
        strategy: str,
        urls: Sequence[str],
        attempt: Callable[[str], Awaitable[float]],
    ) -> float:
        """Try *urls* in order; the first positive speed wins."""
        last_error: Optional[MeasurementError] = None

        for url in urls:
            try:
                mbps = await attempt(url)
            except MeasurementError as exc:
                exc.strategy = exc.strategy or strategy
                logger.debug("%s %s candidate failed: %s", strategy, self.direction, exc)
                last_error = exc
                continue
            if mbps > 0:
                return mbps

        if last_error is not None:
            raise last_error
        raise InsufficientSample("no endpoint produced a sample", strategy=strategy)

    async def scaled_median_of(
        self,
        strategy: str,
        urls: Sequence[str],
        attempt: Callable[[str], Awaitable[float]],
        factor: float,
        attempts_per_url: int = 1,
    ) -> float:
        """Median of one successful speed per URL, times *factor*."""
        speeds: List[float] = []
        last_error: Optional[MeasurementError] = None

        for url in urls:
            for _ in range(attempts_per_url):
                try:
                    mbps = await attempt(url)
                except MeasurementError as exc:
                    exc.strategy = exc.strategy or strategy
                    logger.debug("%s %s candidate failed: %s", strategy, self.direction, exc)
                    last_error = exc
                    continue
                speeds.append(mbps)
                break

        if not speeds:
            if last_error is not None:
                raise last_error
            raise InsufficientSample("no endpoint produced a sample", strategy=strategy)

        result = scaled_median(speeds, factor)
        logger.debug(
            "%s %s: median of %s x %.1f = %.2f Mbps",
            strategy, self.direction, [round(s, 2) for s in speeds], factor, result,
        )
        return result

    async def parallel(
        self,
        transfer: Callable[[TransferTally, TestServer], Awaitable[None]],
        servers: Iterable[TestServer],
    ) -> float:
        """Run ``self.connections`` transfers at once; aggregate bytes / span."""
        registry = tuple(servers)
        if not registry:
            raise InsufficientSample("no test servers configured", strategy=STRATEGY_MULTI)

        tally = TransferTally()
        start = self.clock()
        outcomes = await asyncio.gather(
            *(transfer(tally, registry[i % len(registry)]) for i in range(self.connections)),
            return_exceptions=True,
        )
        elapsed = self.clock() - start

        for outcome in outcomes:
            if isinstance(outcome, BaseException):
                raise outcome

        for exc in tally.errors:
            logger.info("%s connection failed: %s", self.direction.capitalize(), exc)

        if len(tally.errors) >= self.connections:
            raise TransportFailure(
                f"all {self.direction} connections failed", strategy=STRATEGY_MULTI,
            )

        mbps = throughput_mbps(tally.bytes_total, elapsed)
        if mbps <= 0:
            raise InsufficientSample(
                f"no bytes moved across {self.connections} connections", strategy=STRATEGY_MULTI,
            )

        logger.debug(
            "%s: %d bytes over %d connections in %.2fs (%d failed)",
            self.direction, tally.bytes_total, self.connections, elapsed, len(tally.errors),
        )
        return mbps
