"""
The measurement result record.

A ``MeasurementResult`` is produced exactly once per run and never changed
afterwards.  Besides the figures it records where each figure came from, so
a synthesized value can always be told apart from a measured one.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict

SYNTHETIC = "synthetic"


@dataclass(frozen=True)
class MeasurementResult:
    """Final output of one measurement run."""

    id: str
    owner_id: str
    download_mbps: float
    upload_mbps: float
    ping_ms: float
    jitter_ms: float
    isp_name: str = ""
    ip_address: str = ""
    country: str = ""
    region: str = ""
    created_at: datetime = datetime.fromtimestamp(0, tz=timezone.utc)
    latency_source: str = ""
    download_source: str = ""
    upload_source: str = ""

    @property
    def synthetic(self) -> bool:
        """True if any figure is a synthesized stand-in."""
        return SYNTHETIC in (self.latency_source, self.download_source, self.upload_source)

    # -- Serialisation ------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "download_mbps": round(self.download_mbps, 2),
            "upload_mbps": round(self.upload_mbps, 2),
            "ping_ms": round(self.ping_ms, 2),
            "jitter_ms": round(self.jitter_ms, 2),
            "isp_name": self.isp_name,
            "ip_address": self.ip_address,
            "country": self.country,
            "region": self.region,
            "created_at": self.created_at.isoformat(),
            "provenance": {
                "latency": self.latency_source,
                "download": self.download_source,
                "upload": self.upload_source,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> MeasurementResult:
        provenance = data.get("provenance") or {}
        try:
            created = datetime.fromisoformat(data.get("created_at", ""))
        except (TypeError, ValueError):
            created = datetime.fromtimestamp(0, tz=timezone.utc)
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)

        return cls(
            id=str(data.get("id", "")),
            owner_id=str(data.get("owner_id", "")),
            download_mbps=float(data.get("download_mbps", 0)),
            upload_mbps=float(data.get("upload_mbps", 0)),
            ping_ms=float(data.get("ping_ms", 0)),
            jitter_ms=float(data.get("jitter_ms", 0)),
            isp_name=data.get("isp_name", ""),
            ip_address=data.get("ip_address", ""),
            country=data.get("country", ""),
            region=data.get("region", ""),
            created_at=created,
            latency_source=provenance.get("latency", ""),
            download_source=provenance.get("download", ""),
            upload_source=provenance.get("upload", ""),
        )
