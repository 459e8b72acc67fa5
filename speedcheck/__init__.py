"""Speed measurement engine -- latency probing, throughput chains, synthesis."""

from .api import IpMetadata, TestServer, lookup_ip_metadata
from .config import Endpoints, endpoints_from_config
from .download import DownloadChain
from .errors import (
    InsufficientSample,
    MeasurementError,
    ResultNotFound,
    ServerRejected,
    StorageError,
    StrategiesExhausted,
    TransportFailure,
)
from .history import ResultRepository, ResultStore
from .latency import LatencyProber, LatencyResult
from .models import MeasurementResult
from .sampler import ThroughputResult, ThroughputSampler, TransferTally
from .service import MeasurementService, synthesize_download, synthesize_upload
from .stats import (
    LatencySample,
    ThroughputObservation,
    calculate_jitter,
    format_latency,
    format_speed,
    mean_latency,
    scaled_median,
    throughput_mbps,
)
from .upload import UploadChain

__version__ = "0.1.0"

__all__ = [
    "DownloadChain",
    "Endpoints",
    "InsufficientSample",
    "IpMetadata",
    "LatencyProber",
    "LatencyResult",
    "LatencySample",
    "MeasurementError",
    "MeasurementResult",
    "MeasurementService",
    "ResultNotFound",
    "ResultRepository",
    "ResultStore",
    "ServerRejected",
    "StorageError",
    "StrategiesExhausted",
    "TestServer",
    "ThroughputObservation",
    "ThroughputResult",
    "ThroughputSampler",
    "TransferTally",
    "TransportFailure",
    "UploadChain",
    "calculate_jitter",
    "endpoints_from_config",
    "format_latency",
    "format_speed",
    "lookup_ip_metadata",
    "mean_latency",
    "scaled_median",
    "synthesize_download",
    "synthesize_upload",
    "throughput_mbps",
]
