"""
Measurement statistics.

Pure functions and small frozen dataclasses -- no I/O, no side effects.
Everything here is deterministic and easy to unit-test.
"""
from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Iterable, List, Sequence


# ---------------------------------------------------------------------------
# Samples
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LatencySample:
    """One successful connect-and-measure attempt."""

    host: str
    round_trip_ms: float


@dataclass(frozen=True)
class ThroughputObservation:
    """Bytes moved and time spent for one transfer against one endpoint."""

    bytes_transferred: int
    elapsed_seconds: float

    @property
    def mbps(self) -> float:
        return throughput_mbps(self.bytes_transferred, self.elapsed_seconds)

    def is_usable(self, min_seconds: float = 0.0, min_bytes: int = 0) -> bool:
        """True when the transfer was long and large enough to trust."""
        if self.elapsed_seconds <= 0 or self.bytes_transferred <= 0:
            return False
        return self.elapsed_seconds >= min_seconds and self.bytes_transferred >= min_bytes


# ---------------------------------------------------------------------------
# Pure helper functions
# ---------------------------------------------------------------------------

def throughput_mbps(bytes_transferred: int, elapsed_seconds: float) -> float:
    """Decimal megabits per second: ``bytes * 8 / 10**6 / seconds``."""
    if elapsed_seconds <= 0:
        return 0.0
    return (bytes_transferred * 8 / 1_000_000) / elapsed_seconds


def mean_latency(samples: Sequence[float]) -> float:
    if not samples:
        return 0.0
    return statistics.mean(samples)


def calculate_jitter(samples: Sequence[float]) -> float:
    """Sample variance of the round-trip times (Bessel-corrected, no sqrt)."""
    if len(samples) < 2:
        return 0.0
    return statistics.variance(samples)


def round_trips(samples: Iterable[LatencySample]) -> List[float]:
    return [s.round_trip_ms for s in samples]


def scaled_median(speeds: Sequence[float], factor: float) -> float:
    """Upper median of *speeds* multiplied by *factor*.

    The upper median picks an observed value for even-sized inputs.
    """
    if not speeds:
        return 0.0
    return statistics.median_high(speeds) * factor


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def format_speed(speed_mbps: float) -> str:
    """Human-readable speed string."""
    if speed_mbps >= 1000:
        return f"{speed_mbps / 1000:.2f} Gbps"
    return f"{speed_mbps:.2f} Mbps"


def format_latency(latency_ms: float) -> str:
    """Human-readable latency string."""
    if latency_ms >= 1000:
        return f"{latency_ms / 1000:.2f} s"
    return f"{latency_ms:.1f} ms"
