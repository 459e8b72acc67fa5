"""
Error taxonomy for the measurement engine.

Every strategy failure is one of the ``MeasurementError`` subclasses below.
They are caught by the next layer up and turned into the next fallback;
only ``StorageError`` ever reaches the caller of a measurement run.
"""
from __future__ import annotations

from typing import Optional


class MeasurementError(Exception):
    """Base class for a failed measurement step."""

    kind = "measurement-error"

    def __init__(self, message: str, *, strategy: str = "", endpoint: str = "") -> None:
        super().__init__(message)
        self.strategy = strategy
        self.endpoint = endpoint

    def __str__(self) -> str:
        parts = [self.kind]
        if self.strategy:
            parts.append(self.strategy)
        if self.endpoint:
            parts.append(self.endpoint)
        return f"[{' '.join(parts)}] {super().__str__()}"


class InsufficientSample(MeasurementError):
    """Transfer too short or too small to be dominated by throughput."""

    kind = "insufficient-sample"


class TransportFailure(MeasurementError):
    """Connection, DNS, TLS or timeout error."""

    kind = "transport-failure"


class ServerRejected(MeasurementError):
    """Endpoint answered with a non-2xx status."""

    kind = "server-rejected"

    def __init__(self, status: int, *, strategy: str = "", endpoint: str = "") -> None:
        super().__init__(f"HTTP error: {status}", strategy=strategy, endpoint=endpoint)
        self.status = status


class StrategiesExhausted(MeasurementError):
    """Every strategy of a chain failed; triggers synthesis."""

    kind = "all-strategies-exhausted"


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class StorageError(Exception):
    """The result store could not read or write its backing file."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        super().__init__(message)
        self.path = path


class ResultNotFound(LookupError):
    """No stored result with the requested id (for this owner)."""
