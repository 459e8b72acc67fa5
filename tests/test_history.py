"""Tests for speedcheck.history -- JSON-lines result store."""

import json
import os
import tempfile
import unittest
from datetime import datetime, timedelta, timezone

from speedcheck.errors import ResultNotFound, StorageError
from speedcheck.history import ResultStore, format_history_table, sparkline
from speedcheck.models import MeasurementResult

BASE = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)


def _result(rid, owner="alice", minutes=0, download=100.0, source="primary"):
    return MeasurementResult(
        id=rid,
        owner_id=owner,
        download_mbps=download,
        upload_mbps=20.5,
        ping_ms=12.25,
        jitter_ms=1.5,
        isp_name="Example ISP",
        created_at=BASE + timedelta(minutes=minutes),
        latency_source="tcp-connect",
        download_source=source,
        upload_source="primary",
    )


class StoreCase(unittest.TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "history.jsonl")
        self.store = ResultStore(self.path)

    def tearDown(self):
        self.tmp.cleanup()


class TestSaveAndList(StoreCase):
    def test_empty_store(self):
        self.assertEqual(self.store.list_by_owner("alice"), [])

    def test_round_trip(self):
        original = _result("r1")
        self.store.save(original)
        self.assertEqual(self.store.list_by_owner("alice"), [original])

    def test_one_line_per_result(self):
        self.store.save(_result("r1"))
        self.store.save(_result("r2"))
        with open(self.path) as fh:
            lines = fh.read().splitlines()
        self.assertEqual(len(lines), 2)
        self.assertEqual(json.loads(lines[1])["id"], "r2")

    def test_newest_first(self):
        self.store.save(_result("old", minutes=0))
        self.store.save(_result("new", minutes=30))
        self.store.save(_result("mid", minutes=10))
        ids = [r.id for r in self.store.list_by_owner("alice")]
        self.assertEqual(ids, ["new", "mid", "old"])

    def test_owner_filter(self):
        self.store.save(_result("a", owner="alice"))
        self.store.save(_result("b", owner="bob"))
        self.assertEqual([r.id for r in self.store.list_by_owner("bob")], ["b"])

    def test_provenance_survives(self):
        self.store.save(_result("r1", source="synthetic"))
        loaded = self.store.list_by_owner("alice")[0]
        self.assertEqual(loaded.download_source, "synthetic")
        self.assertTrue(loaded.synthetic)

    def test_corrupt_lines_skipped(self):
        self.store.save(_result("r1"))
        with open(self.path, "a") as fh:
            fh.write("NOT JSON\n\n[1, 2]\n")
        self.store.save(_result("r2", minutes=5))
        self.assertEqual([r.id for r in self.store.list_by_owner("alice")], ["r2", "r1"])

    def test_unwritable_path_raises_storage_error(self):
        # a directory in place of the file
        os.makedirs(self.path)
        with self.assertRaises(StorageError) as ctx:
            self.store.save(_result("r1"))
        self.assertEqual(ctx.exception.path, self.path)


class TestDelete(StoreCase):
    def test_delete_removes_only_that_record(self):
        self.store.save(_result("r1"))
        self.store.save(_result("r2", minutes=1))
        self.store.delete("r1")
        self.assertEqual([r.id for r in self.store.list_by_owner("alice")], ["r2"])
        self.assertFalse(os.path.exists(self.path + ".tmp"))

    def test_delete_missing(self):
        self.store.save(_result("r1"))
        with self.assertRaises(ResultNotFound):
            self.store.delete("nope")

    def test_delete_on_empty_store(self):
        with self.assertRaises(ResultNotFound):
            self.store.delete("r1")


class TestDisplayHelpers(unittest.TestCase):
    def test_history_table(self):
        rows = format_history_table([_result("r1", source="synthetic")])
        self.assertEqual(rows[0]["id"], "r1")
        self.assertEqual(rows[0]["download"], 100.0)
        self.assertTrue(rows[0]["synthetic"])

    def test_sparkline_empty(self):
        self.assertEqual(sparkline([]), "")

    def test_sparkline_range(self):
        line = sparkline([0.0, 50.0, 100.0])
        self.assertEqual(len(line), 3)
        self.assertEqual(line[0], "▁")
        self.assertEqual(line[-1], "█")

    def test_sparkline_flat(self):
        self.assertEqual(sparkline([5.0, 5.0]), "▁▁")


if __name__ == "__main__":
    unittest.main()
