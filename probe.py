# probe.py
import logging
import signal
import time
from enum import Enum

from buckets import Tally
from pacer import Pacer
from report import Reporter
from samples import SampleStore
from workload import KeyGenerator

log = logging.getLogger(__name__)


class Interrupted(Exception):
    pass


class State(Enum):
    RUNNING = 1
    DRAINING = 2
    TERMINATED = 3


class Probe:
    # key -> round trip -> bucket -> pace -> store -> maybe report, one request
    # in flight at a time. A signal sets the stop flag; if it lands while a
    # round trip is in flight it also abandons that round trip, which is never
    # recorded. Counters are only touched outside the in-flight window.

    def __init__(self, client, keys, pacer, report_s=0, count=0, out=None, clock=time.monotonic):
        self.client = client
        self.keys = keys
        self.pacer = pacer
        self.count = count

        self.tally = Tally()
        self.samples = SampleStore()
        self.reporter = Reporter(self.tally, self.samples, report_s, out=out, clock=clock)

        self.hits = 0
        self.misses = 0
        self.state = State.RUNNING
        self.stop_reason = None
        self._prev_handlers = {}
        self._in_flight = False

    @classmethod
    def from_config(cls, config, client, out=None):
        return cls(
            client,
            KeyGenerator(config.key_max, random_order=config.random_keys),
            Pacer(config.pace_us),
            report_s=config.report_s,
            count=config.count,
            out=out,
        )

    def request_stop(self, reason="interrupt"):
        if self.stop_reason is None:
            self.stop_reason = reason

    def install_signal_handlers(self):
        def on_signal(signum, frame):
            self.request_stop(signal.Signals(signum).name)
            if self._in_flight:
                raise Interrupted()

        for signum in (signal.SIGINT, signal.SIGTERM):
            self._prev_handlers[signum] = signal.signal(signum, on_signal)

    def restore_signal_handlers(self):
        while self._prev_handlers:
            signum, handler = self._prev_handlers.popitem()
            signal.signal(signum, handler)

    def step(self):
        key = next(self.keys)
        self._in_flight = True
        try:
            rt = self.client.roundtrip(key)
        finally:
            self._in_flight = False

        self.tally.record(rt.latency_us)
        self.pacer.pace(rt.start_ns)
        self.samples.append(rt.start_time, rt.latency_us)

        if rt.hit:
            self.hits += 1
        else:
            self.misses += 1

        if self.count and len(self.samples) >= self.count:
            self.request_stop("count reached")

        self.reporter.maybe_report()

    def run(self):
        try:
            while self.stop_reason is None:
                self.step()
        except Interrupted:
            log.info("abandoned the round trip in flight")

        self.state = State.DRAINING
        log.info("draining (%s): %d samples, %d hits, %d misses",
                 self.stop_reason, len(self.samples), self.hits, self.misses)
        log.debug("tally holds %d samples", self.tally.total())
        self.reporter.final()
        self.state = State.TERMINATED
