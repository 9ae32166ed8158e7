import pytest

from stub import StubServer
from textproto import RoundTrip

EPOCH = 1_700_000_000.0


class FakeClock:
    """Shared fake time for the pacer, the reporter and scripted round trips."""

    def __init__(self):
        self.ns = 0
        self.sleeps = []

    def perf_ns(self):
        return self.ns

    def monotonic(self):
        return self.ns / 1e9

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.ns += round(seconds * 1e9)

    def advance_us(self, us):
        self.ns += us * 1000


class ScriptedClient:
    """Stands in for TextClient: each round trip takes the next scripted latency."""

    def __init__(self, clock, latencies, hit=True, on_trip=None):
        self.clock = clock
        self.latencies = iter(latencies)
        self.hit = hit
        self.on_trip = on_trip
        self.keys = []
        self.starts_ns = []

    def roundtrip(self, key):
        latency_us = next(self.latencies)
        self.keys.append(key)
        start_ns = self.clock.ns
        self.starts_ns.append(start_ns)
        self.clock.advance_us(latency_us)
        if self.on_trip:
            self.on_trip(len(self.keys))
        return RoundTrip(EPOCH + start_ns / 1e9, start_ns, latency_us, self.hit)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stub_server():
    server = StubServer(("127.0.0.1", 0), prefix="k", key_max=10)
    server.start_in_thread()
    yield server
    server.shutdown()
    server.server_close()
