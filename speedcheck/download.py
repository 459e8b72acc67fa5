"""
Download throughput chain.

Single connection::

    primary       large static files, first success wins
    small-object  logos / favicons, median x 2.5
    alternative   small objects without minimum thresholds, median x 1.5

Multi-connection::

    multi-connection  4 parallel ``__down`` transfers, aggregate bytes / span
    alternative       as above
"""
from __future__ import annotations

import functools
from typing import List

from .api import TestServer
from .constants import (
    ALTERNATIVE_DOWNLOAD_TIMEOUT,
    ALTERNATIVE_SCALE,
    MULTI_DOWNLOAD_BYTES,
    MULTI_TIMEOUT,
    PRIMARY_TIMEOUT,
    SMALL_DOWNLOAD_ATTEMPTS,
    SMALL_DOWNLOAD_SCALE,
    SMALL_DOWNLOAD_TIMEOUT,
)
from .sampler import (
    STRATEGY_ALTERNATIVE,
    STRATEGY_MULTI,
    STRATEGY_PRIMARY,
    STRATEGY_SMALL,
    Strategy,
    ThroughputChain,
    TransferTally,
)


class DownloadChain(ThroughputChain):
    """Download speed via ordered fallback strategies."""

    direction = "download"

    def strategies(self, multi_connection: bool) -> List[Strategy]:
        if multi_connection:
            return [
                (STRATEGY_MULTI, self.multi_connection),
                (STRATEGY_ALTERNATIVE, self.alternative),
            ]
        return [
            (STRATEGY_PRIMARY, self.primary),
            (STRATEGY_SMALL, self.small_objects),
            (STRATEGY_ALTERNATIVE, self.alternative),
        ]

    # -- Strategies ---------------------------------------------------------

    async def primary(self) -> float:
        attempt = functools.partial(self.sampler.download, timeout=PRIMARY_TIMEOUT)
        return await self.first_success(
            STRATEGY_PRIMARY, self.endpoints.primary_download_urls, attempt,
        )

    async def small_objects(self) -> float:
        attempt = functools.partial(self.sampler.download, timeout=SMALL_DOWNLOAD_TIMEOUT)
        return await self.scaled_median_of(
            STRATEGY_SMALL,
            self.endpoints.small_download_urls,
            attempt,
            SMALL_DOWNLOAD_SCALE,
            attempts_per_url=SMALL_DOWNLOAD_ATTEMPTS,
        )

    async def alternative(self) -> float:
        attempt = functools.partial(
            self.sampler.download,
            timeout=ALTERNATIVE_DOWNLOAD_TIMEOUT,
            min_seconds=0.0,
            min_bytes=0,
        )
        return await self.scaled_median_of(
            STRATEGY_ALTERNATIVE,
            self.endpoints.alternative_download_urls,
            attempt,
            ALTERNATIVE_SCALE,
        )

    async def multi_connection(self) -> float:
        async def _worker(tally: TransferTally, server: TestServer) -> None:
            url = server.download_url(MULTI_DOWNLOAD_BYTES)
            await self.sampler.stream_into(tally, url, MULTI_TIMEOUT)

        return await self.parallel(_worker, self.endpoints.test_servers)
