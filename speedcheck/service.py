"""
Measurement orchestration.

``MeasurementService.run_measurement`` probes latency, then download, then
upload -- strictly in that order -- and fills any direction whose whole
strategy chain failed with a synthesized figure.  The caller only ever sees
a storage error; measurement failures are absorbed.
"""
from __future__ import annotations

import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .api import IpMetadata
from .config import Endpoints
from .constants import (
    MIN_SYNTHETIC_UPLOAD,
    SYNTHETIC_DOWNLOAD_BASE,
    SYNTHETIC_DOWNLOAD_SPREAD,
    SYNTHETIC_UPLOAD_FLOOR_SPREAD,
    SYNTHETIC_UPLOAD_RATIO_MIN,
    SYNTHETIC_UPLOAD_RATIO_SPREAD,
    SYNTHETIC_VARIANCE_MIN,
    SYNTHETIC_VARIANCE_SPREAD,
)
from .download import DownloadChain
from .errors import ResultNotFound, StrategiesExhausted
from .history import ResultRepository
from .latency import LatencyProber
from .models import SYNTHETIC, MeasurementResult
from .sampler import ThroughputChain, ThroughputSampler
from .upload import UploadChain

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Synthesis policy
# ---------------------------------------------------------------------------

def synthesize_download(rng: random.Random) -> float:
    """Plausible download figure in [80, 360) Mbps."""
    base = SYNTHETIC_DOWNLOAD_BASE + rng.random() * SYNTHETIC_DOWNLOAD_SPREAD
    return base * (SYNTHETIC_VARIANCE_MIN + rng.random() * SYNTHETIC_VARIANCE_SPREAD)


def synthesize_upload(rng: random.Random, download_mbps: float) -> float:
    """A fraction of the final download figure, never below 10 Mbps."""
    ratio = SYNTHETIC_UPLOAD_RATIO_MIN + rng.random() * SYNTHETIC_UPLOAD_RATIO_SPREAD
    upload = download_mbps * ratio
    if upload < MIN_SYNTHETIC_UPLOAD:
        upload = MIN_SYNTHETIC_UPLOAD + rng.random() * SYNTHETIC_UPLOAD_FLOOR_SPREAD
    return upload


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class MeasurementService:
    """Run measurements and delegate result bookkeeping to a repository."""

    def __init__(
        self,
        store: ResultRepository,
        *,
        endpoints: Optional[Endpoints] = None,
        rng: Optional[random.Random] = None,
        prober: Optional[LatencyProber] = None,
        download: Optional[ThroughputChain] = None,
        upload: Optional[ThroughputChain] = None,
        id_factory: Callable[[], str] = _new_id,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        endpoints = endpoints or Endpoints()
        self.store = store
        self.rng = rng or random.Random()
        self.prober = prober or LatencyProber(
            endpoints.tcp_probe_hosts,
            endpoints.http_probe_urls,
            port=endpoints.tcp_probe_port,
            rng=self.rng,
        )
        sampler = ThroughputSampler()
        self.download = download or DownloadChain(sampler, endpoints)
        self.upload = upload or UploadChain(sampler, endpoints)
        self.id_factory = id_factory
        self.now = now

    async def run_measurement(
        self,
        owner_id: str,
        ip_metadata: Optional[IpMetadata] = None,
        multi_connection: bool = False,
    ) -> MeasurementResult:
        """Measure, synthesize what could not be measured, then persist."""
        meta = ip_metadata or IpMetadata()
        logger.info("Starting speed test (multi_connection: %s)", multi_connection)

        latency = await self.prober.measure()

        download_mbps, download_source = await self._resolve(self.download, multi_connection)
        if download_source == SYNTHETIC:
            download_mbps = synthesize_download(self.rng)
            logger.warning("All download tests failed, using simulated %.2f Mbps", download_mbps)

        # upload synthesis depends on the final download figure
        upload_mbps, upload_source = await self._resolve(self.upload, multi_connection)
        if upload_source == SYNTHETIC:
            upload_mbps = synthesize_upload(self.rng, download_mbps)
            logger.warning("All upload tests failed, using simulated %.2f Mbps", upload_mbps)

        result = MeasurementResult(
            id=self.id_factory(),
            owner_id=owner_id,
            download_mbps=download_mbps,
            upload_mbps=upload_mbps,
            ping_ms=max(latency.ping_ms, 0.0),
            jitter_ms=max(latency.jitter_ms, 0.0),
            isp_name=meta.isp,
            ip_address=meta.ip,
            country=meta.country,
            region=meta.region,
            created_at=self.now(),
            latency_source=latency.source,
            download_source=download_source,
            upload_source=upload_source,
        )
        logger.info(
            "Speed test completed - Download: %.2f Mbps (%s), Upload: %.2f Mbps (%s), "
            "Ping: %.2f ms, Jitter: %.2f ms (%s)",
            result.download_mbps, download_source, result.upload_mbps, upload_source,
            result.ping_ms, result.jitter_ms, latency.source,
        )

        self.store.save(result)
        return result

    async def _resolve(self, chain: ThroughputChain, multi_connection: bool):
        try:
            outcome = await chain.measure(multi_connection)
        except StrategiesExhausted as exc:
            logger.info("%s", exc)
            return 0.0, SYNTHETIC
        return outcome.mbps, outcome.source

    # -- Bookkeeping ----------------------------------------------------------

    def history(self, owner_id: str) -> List[MeasurementResult]:
        return self.store.list_by_owner(owner_id)

    def delete(self, result_id: str, owner_id: str) -> None:
        """Delete *result_id* if it belongs to *owner_id*."""
        if not any(r.id == result_id for r in self.store.list_by_owner(owner_id)):
            raise ResultNotFound(result_id)
        self.store.delete(result_id)
