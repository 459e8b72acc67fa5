"""
Upload throughput chain.

Mirrors the download chain: a 3 MiB POST to echo endpoints, then smaller
scaled posts, then the multi-connection ``__up`` batch when requested.
"""
from __future__ import annotations

import functools
from typing import List

from .api import TestServer
from .constants import (
    ALTERNATIVE_SCALE,
    ALTERNATIVE_UPLOAD_BYTES,
    ALTERNATIVE_UPLOAD_TIMEOUT,
    MULTI_TIMEOUT,
    MULTI_UPLOAD_BYTES,
    PRIMARY_TIMEOUT,
    PRIMARY_UPLOAD_BYTES,
    SMALL_UPLOAD_ATTEMPTS,
    SMALL_UPLOAD_BYTES,
    SMALL_UPLOAD_SCALE,
    SMALL_UPLOAD_TIMEOUT,
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


class UploadChain(ThroughputChain):
    """Upload speed via ordered fallback strategies."""

    direction = "upload"

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
        attempt = functools.partial(
            self.sampler.upload,
            payload_size=PRIMARY_UPLOAD_BYTES,
            timeout=PRIMARY_TIMEOUT,
        )
        return await self.first_success(STRATEGY_PRIMARY, self.endpoints.upload_urls, attempt)

    async def small_objects(self) -> float:
        attempt = functools.partial(
            self.sampler.upload,
            payload_size=SMALL_UPLOAD_BYTES,
            timeout=SMALL_UPLOAD_TIMEOUT,
        )
        return await self.scaled_median_of(
            STRATEGY_SMALL,
            self.endpoints.small_upload_urls,
            attempt,
            SMALL_UPLOAD_SCALE,
            attempts_per_url=SMALL_UPLOAD_ATTEMPTS,
        )

    async def alternative(self) -> float:
        attempt = functools.partial(
            self.sampler.upload,
            payload_size=ALTERNATIVE_UPLOAD_BYTES,
            timeout=ALTERNATIVE_UPLOAD_TIMEOUT,
            min_seconds=0.0,
        )
        return await self.scaled_median_of(
            STRATEGY_ALTERNATIVE,
            self.endpoints.alternative_upload_urls,
            attempt,
            ALTERNATIVE_SCALE,
        )

    async def multi_connection(self) -> float:
        async def _worker(tally: TransferTally, server: TestServer) -> None:
            await self.sampler.send_into(tally, server.upload_url, MULTI_UPLOAD_BYTES, MULTI_TIMEOUT)

        return await self.parallel(_worker, self.endpoints.test_servers)
