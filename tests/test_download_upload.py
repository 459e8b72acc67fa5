"""Tests for the download / upload fallback chains."""

import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer as LocalServer

from speedcheck.api import TestServer
from speedcheck.config import Endpoints
from speedcheck.download import DownloadChain
from speedcheck.errors import (
    InsufficientSample,
    MeasurementError,
    ServerRejected,
    StrategiesExhausted,
    TransportFailure,
)
from speedcheck.sampler import ThroughputChain, ThroughputSampler
from speedcheck.upload import UploadChain


def _two_tick_clock():
    ticks = iter([0.0, 1.0])
    return lambda: next(ticks)


class ScriptedSampler:
    """Stands in for ThroughputSampler; answers per URL from a script.

    A script entry is either a speed or an exception instance; a list of
    entries is consumed one call at a time.
    """

    def __init__(self, script=None, stream_bytes=1_000_000):
        self.script = dict(script or {})
        self.calls = []
        self.stream_bytes = stream_bytes

    def _answer(self, url):
        entry = self.script.get(url, TransportFailure("unreachable", endpoint=url))
        if isinstance(entry, list):
            entry = entry.pop(0) if len(entry) > 1 else entry[0]
        if isinstance(entry, Exception):
            raise entry
        return entry

    async def download(self, url, timeout, min_seconds=1.0, min_bytes=1024 * 1024):
        self.calls.append(("download", url, timeout, min_seconds, min_bytes))
        return self._answer(url)

    async def upload(self, url, payload_size, timeout, min_seconds=0.5):
        self.calls.append(("upload", url, payload_size, timeout, min_seconds))
        return self._answer(url)

    async def stream_into(self, tally, url, timeout):
        self.calls.append(("stream", url, timeout))
        if "bad" in url:
            await tally.add_error(TransportFailure("refused", endpoint=url))
        else:
            await tally.add_bytes(self.stream_bytes)

    async def send_into(self, tally, url, payload_size, timeout):
        self.calls.append(("send", url, payload_size, timeout))
        if "bad" in url:
            await tally.add_error(ServerRejected(500, endpoint=url))
        else:
            await tally.add_bytes(payload_size)


ENDPOINTS = Endpoints(
    primary_download_urls=("p1", "p2", "p3"),
    small_download_urls=("s1", "s2", "s3"),
    alternative_download_urls=("a1", "a2", "a3"),
    upload_urls=("u1", "u2"),
    small_upload_urls=("su1", "su2", "su3"),
    alternative_upload_urls=("au1", "au2", "au3"),
    test_servers=(
        TestServer("one", "http://one"),
        TestServer("two", "http://two"),
        TestServer("three", "http://three"),
        TestServer("bad", "http://bad"),
    ),
)


class TestDownloadChain(unittest.IsolatedAsyncioTestCase):
    async def test_primary_first_success_wins(self):
        sampler = ScriptedSampler({"p2": 80.0, "p3": 500.0})
        result = await DownloadChain(sampler, ENDPOINTS).measure()
        self.assertEqual(result.mbps, 80.0)
        self.assertEqual(result.source, "primary")
        self.assertEqual([c[1] for c in sampler.calls], ["p1", "p2"])
        self.assertEqual(sampler.calls[0][2], 15.0)

    async def test_small_objects_median_times_two_and_a_half(self):
        sampler = ScriptedSampler({"s1": 10.0, "s2": 20.0, "s3": 30.0})
        result = await DownloadChain(sampler, ENDPOINTS).measure()
        self.assertAlmostEqual(result.mbps, 50.0)
        self.assertEqual(result.source, "small-object")
        self.assertEqual(result.failed, ["primary"])

    async def test_small_objects_retry_each_url(self):
        failure = InsufficientSample("short")
        sampler = ScriptedSampler({"s1": [failure, failure, 40.0]})
        chain = DownloadChain(sampler, ENDPOINTS)
        self.assertAlmostEqual(await chain.small_objects(), 100.0)
        attempts = [c[1] for c in sampler.calls]
        self.assertEqual(attempts.count("s1"), 3)
        self.assertEqual(attempts.count("s2"), 3)
        self.assertTrue(all(c[2] == 5.0 for c in sampler.calls))

    async def test_alternative_median_times_one_and_a_half(self):
        sampler = ScriptedSampler({"a1": 10.0, "a2": 20.0, "a3": 30.0})
        result = await DownloadChain(sampler, ENDPOINTS).measure()
        self.assertAlmostEqual(result.mbps, 30.0)
        self.assertEqual(result.source, "alternative")
        self.assertEqual(result.failed, ["primary", "small-object"])

    async def test_alternative_drops_minimum_thresholds(self):
        sampler = ScriptedSampler({"a1": 10.0})
        await DownloadChain(sampler, ENDPOINTS).alternative()
        _, _, timeout, min_seconds, min_bytes = sampler.calls[0]
        self.assertEqual((timeout, min_seconds, min_bytes), (5.0, 0.0, 0))

    async def test_everything_fails(self):
        sampler = ScriptedSampler()
        with self.assertRaises(StrategiesExhausted) as ctx:
            await DownloadChain(sampler, ENDPOINTS).measure()
        self.assertEqual(ctx.exception.kind, "all-strategies-exhausted")

    async def test_strategy_error_carries_context(self):
        sampler = ScriptedSampler()
        with self.assertRaises(MeasurementError) as ctx:
            await DownloadChain(sampler, ENDPOINTS).primary()
        self.assertEqual(ctx.exception.strategy, "primary")
        self.assertEqual(ctx.exception.endpoint, "p3")


class TestChainBase(unittest.TestCase):
    def test_base_needs_strategies(self):
        with self.assertRaises(TypeError):
            ThroughputChain(ScriptedSampler(), ENDPOINTS)

    def test_chains_list_their_strategies(self):
        names = [name for name, _ in DownloadChain(ScriptedSampler(), ENDPOINTS).strategies(False)]
        self.assertEqual(names, ["primary", "small-object", "alternative"])
        names = [name for name, _ in UploadChain(ScriptedSampler(), ENDPOINTS).strategies(True)]
        self.assertEqual(names, ["multi-connection", "alternative"])


class TestMultiConnectionDownload(unittest.IsolatedAsyncioTestCase):
    async def test_round_robin_server_selection(self):
        sampler = ScriptedSampler()
        endpoints = Endpoints(test_servers=ENDPOINTS.test_servers[:3])
        chain = DownloadChain(sampler, endpoints, clock=_two_tick_clock())
        await chain.multi_connection()
        urls = [c[1] for c in sampler.calls]
        self.assertEqual(
            urls,
            [
                "http://one/__down?bytes=10000000",
                "http://two/__down?bytes=10000000",
                "http://three/__down?bytes=10000000",
                "http://one/__down?bytes=10000000",
            ],
        )

    async def test_one_failed_connection_still_measures(self):
        sampler = ScriptedSampler(stream_bytes=10_000_000)
        chain = DownloadChain(sampler, ENDPOINTS, clock=_two_tick_clock())
        # 3 connections x 10 MB over the 1 s batch span
        self.assertAlmostEqual(await chain.multi_connection(), 240.0)

    async def test_all_connections_failed(self):
        bad = Endpoints(test_servers=(TestServer("bad", "http://bad"),))
        chain = DownloadChain(ScriptedSampler(), bad, clock=_two_tick_clock())
        with self.assertRaises(TransportFailure):
            await chain.multi_connection()

    async def test_multi_mode_falls_back_to_alternative(self):
        bad = Endpoints(
            alternative_download_urls=("a1",),
            test_servers=(TestServer("bad", "http://bad"),),
        )
        sampler = ScriptedSampler({"a1": 20.0})
        result = await DownloadChain(sampler, bad, clock=_two_tick_clock()).measure(multi_connection=True)
        self.assertEqual(result.source, "alternative")
        self.assertAlmostEqual(result.mbps, 30.0)
        self.assertEqual(result.failed, ["multi-connection"])
        self.assertFalse(any(c[0] == "download" and c[1].startswith("p") for c in sampler.calls))

    async def test_no_servers_configured(self):
        chain = DownloadChain(ScriptedSampler(), Endpoints(test_servers=()))
        with self.assertRaises(InsufficientSample):
            await chain.multi_connection()


class TestUploadChain(unittest.IsolatedAsyncioTestCase):
    async def test_primary_sends_three_mebibytes(self):
        sampler = ScriptedSampler({"u1": 42.0})
        result = await UploadChain(sampler, ENDPOINTS).measure()
        self.assertEqual(result.mbps, 42.0)
        self.assertEqual(sampler.calls[0], ("upload", "u1", 3 * 1024 * 1024, 15.0, 0.5))

    async def test_small_uploads_median_times_three(self):
        sampler = ScriptedSampler({"su1": 10.0, "su2": 20.0, "su3": 30.0})
        result = await UploadChain(sampler, ENDPOINTS).measure()
        self.assertAlmostEqual(result.mbps, 60.0)
        self.assertEqual(result.source, "small-object")

    async def test_alternative_one_mebibyte_median(self):
        sampler = ScriptedSampler({"au1": 10.0, "au2": 20.0, "au3": 30.0})
        result = await UploadChain(sampler, ENDPOINTS).measure()
        self.assertAlmostEqual(result.mbps, 30.0)
        self.assertEqual(result.source, "alternative")
        last = sampler.calls[-1]
        self.assertEqual(last[2:], (1024 * 1024, 15.0, 0.0))

    async def test_multi_connection_upload(self):
        sampler = ScriptedSampler()
        chain = UploadChain(sampler, ENDPOINTS, clock=_two_tick_clock())
        result = await chain.measure(multi_connection=True)
        self.assertEqual(result.source, "multi-connection")
        # 3 accepted 2 MiB payloads over 1 s
        self.assertAlmostEqual(result.mbps, 3 * 2 * 1024 * 1024 * 8 / 1_000_000)
        self.assertIn(("send", "http://bad/__up", 2 * 1024 * 1024, 20.0), sampler.calls)

    async def test_everything_fails(self):
        with self.assertRaises(StrategiesExhausted):
            await UploadChain(ScriptedSampler(), ENDPOINTS).measure()


class TestMultiConnectionAgainstLocalServer(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        async def _down(request):
            size = int(request.query["bytes"])
            return web.Response(body=b"\0" * size)

        async def _broken(request):
            return web.Response(status=500)

        app = web.Application()
        app.router.add_get("/ok/__down", _down)
        app.router.add_get("/broken/__down", _broken)
        self.server = LocalServer(app)
        await self.server.start_server()

    async def asyncTearDown(self):
        await self.server.close()

    async def test_three_of_four_connections(self):
        ok = str(self.server.make_url("/ok"))
        broken = str(self.server.make_url("/broken"))
        endpoints = Endpoints(
            test_servers=(
                TestServer("a", ok),
                TestServer("b", ok),
                TestServer("c", ok),
                TestServer("d", broken),
            )
        )
        chain = DownloadChain(ThroughputSampler(), endpoints, clock=_two_tick_clock())
        self.assertAlmostEqual(await chain.multi_connection(), 240.0)

    async def test_four_of_four_failing(self):
        broken = str(self.server.make_url("/broken"))
        endpoints = Endpoints(test_servers=(TestServer("d", broken),))
        chain = DownloadChain(ThroughputSampler(), endpoints)
        with self.assertRaises(TransportFailure):
            await chain.multi_connection()


if __name__ == "__main__":
    unittest.main()
