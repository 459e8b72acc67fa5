"""Tests for speedcheck.latency against local TCP / HTTP servers."""

import asyncio
import random
import unittest

from aiohttp import web
from aiohttp.test_utils import TestServer as LocalServer

from speedcheck.latency import (
    SOURCE_HTTP,
    SOURCE_SYNTHETIC,
    SOURCE_TCP,
    LatencyProber,
    LatencyResult,
)
from speedcheck.stats import LatencySample

# Nothing listens on port 1 of the loopback interface.
CLOSED_PORT = 1
CLOSED_URL = "http://127.0.0.1:1/"


async def _no_sleep(_delay):
    return None


class SequenceRandom(random.Random):
    def __init__(self, values):
        super().__init__(0)
        self._values = list(values)

    def random(self):
        return self._values.pop(0)


class TestLatencyResult(unittest.TestCase):
    def test_from_samples(self):
        samples = [LatencySample("h", v) for v in (10.0, 20.0, 30.0)]
        result = LatencyResult.from_samples(samples, SOURCE_TCP)
        self.assertAlmostEqual(result.ping_ms, 20.0)
        self.assertAlmostEqual(result.jitter_ms, 100.0)
        self.assertEqual(result.source, SOURCE_TCP)
        self.assertFalse(result.synthetic)

    def test_single_sample_has_zero_jitter(self):
        result = LatencyResult.from_samples([LatencySample("h", 12.0)], SOURCE_HTTP)
        self.assertEqual(result.jitter_ms, 0.0)

    def test_source_must_be_given(self):
        with self.assertRaises(TypeError):
            LatencyResult(ping_ms=1.0, jitter_ms=0.5)
        self.assertFalse(LatencyResult(1.0, 0.5, SOURCE_TCP).synthetic)


class TestSynthesize(unittest.TestCase):
    def test_lower_bounds(self):
        prober = LatencyProber(rng=SequenceRandom([0.0, 0.0]))
        result = prober.synthesize()
        self.assertEqual(result.ping_ms, 15.0)
        self.assertEqual(result.jitter_ms, 2.0)
        self.assertTrue(result.synthetic)

    def test_upper_bounds_exclusive(self):
        prober = LatencyProber(rng=SequenceRandom([0.999999, 0.999999]))
        result = prober.synthesize()
        self.assertLess(result.ping_ms, 25.0)
        self.assertLess(result.jitter_ms, 7.0)


class TestTcpStrategy(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        async def _accept(reader, writer):
            writer.close()

        self.server = await asyncio.start_server(_accept, "127.0.0.1", 0)
        self.port = self.server.sockets[0].getsockname()[1]

    async def asyncTearDown(self):
        self.server.close()
        await self.server.wait_closed()

    async def test_tcp_connect_used_when_reachable(self):
        prober = LatencyProber(
            ["127.0.0.1"], [CLOSED_URL], port=self.port, sleep=_no_sleep,
        )
        result = await prober.measure()
        self.assertEqual(result.source, SOURCE_TCP)
        self.assertEqual(len(result.samples), 5)
        self.assertGreaterEqual(result.ping_ms, 0.0)
        self.assertGreaterEqual(result.jitter_ms, 0.0)

    async def test_samples_spaced_after_each_success(self):
        delays = []

        async def _record(delay):
            delays.append(delay)

        prober = LatencyProber(["127.0.0.1"], [], port=self.port, sleep=_record)
        await prober.tcp_samples()
        self.assertEqual(delays, [0.1] * 5)


class TestHttpFallback(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.heads = 0

        async def _head(request):
            self.heads += 1
            return web.Response()

        app = web.Application()
        app.router.add_route("HEAD", "/", _head)
        self.server = LocalServer(app)
        await self.server.start_server()

    async def asyncTearDown(self):
        await self.server.close()

    async def test_head_used_when_tcp_fails(self):
        prober = LatencyProber(
            ["127.0.0.1"],
            [str(self.server.make_url("/"))],
            port=CLOSED_PORT,
            sleep=_no_sleep,
        )
        result = await prober.measure()
        self.assertEqual(result.source, SOURCE_HTTP)
        self.assertEqual(len(result.samples), 5)
        self.assertEqual(self.heads, 5)


class TestSyntheticFallback(unittest.IsolatedAsyncioTestCase):
    async def test_everything_unreachable(self):
        for seed in range(5):
            prober = LatencyProber(
                ["127.0.0.1"],
                [CLOSED_URL],
                port=CLOSED_PORT,
                rng=random.Random(seed),
                sleep=_no_sleep,
            )
            result = await prober.measure()
            self.assertEqual(result.source, SOURCE_SYNTHETIC)
            self.assertGreaterEqual(result.ping_ms, 15.0)
            self.assertLess(result.ping_ms, 25.0)
            self.assertGreaterEqual(result.jitter_ms, 2.0)
            self.assertLess(result.jitter_ms, 7.0)

    async def test_two_samples_are_not_enough(self):
        prober = LatencyProber(rng=random.Random(1))

        async def _two():
            return [LatencySample("h", 10.0), LatencySample("h", 11.0)]

        prober.tcp_samples = _two
        prober.http_samples = _two
        result = await prober.measure()
        self.assertTrue(result.synthetic)


if __name__ == "__main__":
    unittest.main()
