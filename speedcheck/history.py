"""
Result persistence.

Results are stored as JSON-lines in ``~/.speedcheck/history.jsonl``.
Each line is a self-contained JSON object, so the file can be appended to
safely (no need to parse the whole file to add a record).  Deleting a
record rewrites the file through a temporary copy.
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Protocol

from .config import default_history_path
from .errors import ResultNotFound, StorageError
from .models import MeasurementResult


class ResultRepository(Protocol):
    """What the measurement service needs from a storage backend."""

    def save(self, result: MeasurementResult) -> None: ...

    def list_by_owner(self, owner_id: str) -> List[MeasurementResult]: ...

    def delete(self, result_id: str) -> None: ...


class ResultStore:
    """JSON-lines implementation of ``ResultRepository``."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or default_history_path()

    # -- Write --------------------------------------------------------------

    def save(self, result: MeasurementResult) -> None:
        """Append *result* as a single JSON line."""
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as fh:
                fh.write(json.dumps(result.to_dict(), ensure_ascii=False) + "\n")
        except OSError as exc:
            raise StorageError(f"Failed to save result {result.id}: {exc}", self.path) from exc

    def delete(self, result_id: str) -> None:
        records = self._read_records()
        kept = [r for r in records if r.get("id") != result_id]
        if len(kept) == len(records):
            raise ResultNotFound(result_id)

        tmp = f"{self.path}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as fh:
                for record in kept:
                    fh.write(json.dumps(record, ensure_ascii=False) + "\n")
            os.replace(tmp, self.path)
        except OSError as exc:
            try:
                os.unlink(tmp)
            except OSError:
                pass
            raise StorageError(f"Failed to delete result {result_id}: {exc}", self.path) from exc

    # -- Read ---------------------------------------------------------------

    def list_by_owner(self, owner_id: str) -> List[MeasurementResult]:
        """All results of *owner_id*, newest first."""
        results = [
            MeasurementResult.from_dict(r)
            for r in self._read_records()
            if r.get("owner_id") == owner_id
        ]
        results.sort(key=lambda r: r.created_at, reverse=True)
        return results

    def _read_records(self) -> List[Dict[str, Any]]:
        if not os.path.isfile(self.path):
            return []

        records: List[Dict[str, Any]] = []
        try:
            with open(self.path, encoding="utf-8") as fh:
                for line in fh:
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        record = json.loads(line)
                    except json.JSONDecodeError:
                        continue  # skip corrupt lines
                    if isinstance(record, dict):
                        records.append(record)
        except OSError as exc:
            raise StorageError(f"Failed to read history: {exc}", self.path) from exc
        return records


# ---------------------------------------------------------------------------
# Display helpers
# ---------------------------------------------------------------------------

def format_history_table(results: List[MeasurementResult]) -> List[dict]:
    """Flatten results into dicts suitable for tabular display."""
    rows = []
    for r in results:
        rows.append({
            "id": r.id,
            "timestamp": r.created_at.astimezone().strftime("%Y-%m-%d %H:%M"),
            "ping": r.ping_ms,
            "jitter": r.jitter_ms,
            "download": r.download_mbps,
            "upload": r.upload_mbps,
            "isp": r.isp_name,
            "synthetic": r.synthetic,
        })
    return rows


def sparkline(values: List[float]) -> str:
    """Single-line Unicode sparkline chart."""
    if not values:
        return ""
    bars = "▁▂▃▄▅▆▇█"
    lo, hi = min(values), max(values)
    span = hi - lo if hi > lo else 1.0
    return "".join(
        bars[min(int((v - lo) / span * (len(bars) - 1)), len(bars) - 1)]
        for v in values
    )

