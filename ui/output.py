"""
Output formatting -- JSON export, plain text, and CSV.
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict

from speedcheck.models import MeasurementResult


def create_result_json(result: MeasurementResult) -> Dict[str, Any]:
    """JSON-serialisable dict with a top-level ``synthetic`` flag."""
    data = result.to_dict()
    data["synthetic"] = result.synthetic
    return data


def save_json(result: Dict[str, Any], filepath: str) -> None:
    """Write *result* to *filepath* atomically (write-tmp then rename)."""
    dir_path = os.path.dirname(filepath) or "."
    tmp = os.path.join(dir_path, f".tmp_{os.path.basename(filepath)}")

    try:
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(result, fh, indent=2, ensure_ascii=False)
        os.replace(tmp, filepath)
    except (IOError, OSError) as exc:
        # Clean up partial temp file
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise IOError(f"Failed to save JSON to {filepath}: {exc}") from exc


# ---------------------------------------------------------------------------
# Plain-text / CSV helpers
# ---------------------------------------------------------------------------

def format_text_result(result: MeasurementResult) -> str:
    sep = "=" * 50
    mid = "-" * 50
    note = "\n(contains synthesized figures)" if result.synthetic else ""
    return (
        f"{sep}\n"
        f"Speed Test Results\n"
        f"{sep}\n"
        f"ID: {result.id}\n"
        f"ISP: {result.isp_name}\n"
        f"IP: {result.ip_address}\n"
        f"{mid}\n"
        f"Ping: {result.ping_ms:.1f} ms (jitter: {result.jitter_ms:.2f}) [{result.latency_source}]\n"
        f"Download: {result.download_mbps:.2f} Mbps [{result.download_source}]\n"
        f"Upload: {result.upload_mbps:.2f} Mbps [{result.upload_source}]\n"
        f"{sep}{note}"
    )


def _csv_escape(value: str) -> str:
    """Quote a CSV field if it contains commas, quotes, or newlines."""
    if any(c in value for c in (",", '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def format_csv_header() -> str:
    return (
        "timestamp,id,isp,ip,ping_ms,jitter_ms,download_mbps,upload_mbps,"
        "latency_source,download_source,upload_source"
    )


def format_csv_row(result: MeasurementResult) -> str:
    fields = [
        result.created_at.isoformat(),
        result.id,
        _csv_escape(result.isp_name),
        _csv_escape(result.ip_address),
        f"{result.ping_ms:.1f}",
        f"{result.jitter_ms:.2f}",
        f"{result.download_mbps:.2f}",
        f"{result.upload_mbps:.2f}",
        result.latency_source,
        result.download_source,
        result.upload_source,
    ]
    return ",".join(fields)


def append_csv(path: str, result: MeasurementResult) -> None:
    """Append a single CSV row, writing the header if the file is new."""
    write_header = not os.path.isfile(path) or os.path.getsize(path) == 0
    with open(path, "a", encoding="utf-8") as fh:
        if write_header:
            fh.write(format_csv_header() + "\n")
        fh.write(format_csv_row(result) + "\n")
