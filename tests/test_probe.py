import io
import os
import signal
import socket
import threading

import pytest

from config import RunConfig
from conftest import ScriptedClient
from pacer import Pacer
from probe import Probe, State
from textproto import TextClient
from workload import KeyGenerator


def make_probe(clock, client, pace_us=0, report_s=0, count=0, key_max=1):
    return Probe(
        client,
        KeyGenerator(key_max),
        Pacer(pace_us, clock=clock.perf_ns, sleep=clock.sleep),
        report_s=report_s,
        count=count,
        out=io.StringIO(),
        clock=clock.monotonic,
    )


def test_hundred_round_trips_land_in_hundred_us_bucket(clock):
    client = ScriptedClient(clock, [500] * 100)
    probe = make_probe(clock, client, report_s=1.0, count=100)

    probe.run()

    assert probe.state is State.TERMINATED
    assert probe.stop_reason == "count reached"
    assert len(probe.samples) == 100
    assert probe.tally.cumulative[2] == 100
    assert probe.tally.cumulative.total() == 100
    assert probe.tally.oob == 0
    assert client.keys == [1] * 100


def test_periodic_windows_and_growing_cumulative(clock):
    client = ScriptedClient(clock, [500] * 5000)
    probe = make_probe(clock, client, report_s=1.0, count=5000)

    windows = []
    report = probe.reporter.report

    def recording_report():
        interval = probe.tally.interval[2]
        report()
        windows.append((interval, probe.tally.cumulative[2]))

    probe.reporter.report = recording_report
    probe.run()

    # 500us per trip, one report per 2000 trips
    assert windows == [(2000, 2000), (2000, 4000)]
    assert probe.tally.cumulative[2] == 5000


def test_pacing_spaces_requests_without_inflating_latency(clock):
    client = ScriptedClient(clock, [100] * 50)
    probe = make_probe(clock, client, pace_us=2000, count=50)

    probe.run()

    gaps = [b - a for a, b in zip(client.starts_ns, client.starts_ns[1:])]
    assert all(gap >= 2_000_000 for gap in gaps)
    assert {s.latency_us for s in probe.samples} == {100}
    assert probe.tally.cumulative[2] == 50
    assert probe.tally.cumulative[3] == 0


def test_slow_requests_are_not_paced(clock):
    client = ScriptedClient(clock, [3000] * 5)
    probe = make_probe(clock, client, pace_us=2000, count=5)

    probe.run()

    assert clock.sleeps == []


def test_out_of_bounds_samples_are_still_stored(clock):
    latencies = [100_000_000, 1_000_000_000, 7, 2_000_000_000]
    client = ScriptedClient(clock, latencies, hit=False)
    probe = make_probe(clock, client, count=len(latencies))

    probe.run()

    assert len(probe.samples) == 4
    assert probe.tally.cumulative[8] == 1
    assert probe.tally.cumulative[0] == 1
    assert probe.tally.oob == 2
    assert probe.tally.cumulative.total() + probe.tally.oob == len(probe.samples)
    assert probe.misses == 4
    assert "OOB: 2" in probe.reporter.out.getvalue()


def test_stop_mid_flight_keeps_the_in_flight_sample(clock):
    probe = None

    def on_trip(n):
        if n == 3:
            probe.request_stop()

    client = ScriptedClient(clock, [250] * 100, on_trip=on_trip)
    probe = make_probe(clock, client)
    probe.run()

    assert probe.stop_reason == "interrupt"
    assert len(probe.samples) == 3
    assert probe.tally.cumulative[2] == 3

    dump = probe.reporter.out.getvalue().splitlines()
    assert "FINAL (global)" in dump
    assert len([l for l in dump if "," in l]) == 3


def test_first_stop_reason_wins(clock):
    probe = make_probe(clock, ScriptedClient(clock, []))
    probe.request_stop("SIGINT")
    probe.request_stop("SIGTERM")
    assert probe.stop_reason == "SIGINT"


def test_sigint_mid_round_trip_abandons_it(clock):
    probe = None

    def on_trip(n):
        if n == 2:
            os.kill(os.getpid(), signal.SIGINT)

    client = ScriptedClient(clock, [40] * 100, on_trip=on_trip)
    probe = make_probe(clock, client)
    before = signal.getsignal(signal.SIGINT)
    probe.install_signal_handlers()
    try:
        probe.run()
    finally:
        probe.restore_signal_handlers()

    assert probe.stop_reason == "SIGINT"
    assert probe.state is State.TERMINATED
    assert len(probe.samples) == 1
    assert probe.tally.cumulative.total() == 1
    assert signal.getsignal(signal.SIGINT) is before


def test_from_config_wires_the_toggle():
    probe = Probe.from_config(RunConfig(key_max=4, random_keys=False, pace_us=10), client=None)

    assert [next(probe.keys) for _ in range(5)] == [1, 2, 3, 4, 1]
    assert probe.pacer.pace_us == 10


@pytest.mark.parametrize("count", [1, 17])
def test_sample_count_matches_round_trips(clock, count):
    client = ScriptedClient(clock, [10, 10_000, 10 ** 10] * count)
    probe = make_probe(clock, client, count=count)

    probe.run()

    assert len(probe.samples) == count == len(client.keys)


def test_sigint_between_round_trips_keeps_the_sample(clock):
    def sleep_then_signal(seconds):
        clock.sleep(seconds)
        os.kill(os.getpid(), signal.SIGINT)

    client = ScriptedClient(clock, [100] * 100)
    probe = Probe(
        client,
        KeyGenerator(1),
        Pacer(2000, clock=clock.perf_ns, sleep=sleep_then_signal),
        out=io.StringIO(),
        clock=clock.monotonic,
    )
    probe.install_signal_handlers()
    try:
        probe.run()
    finally:
        probe.restore_signal_handlers()

    assert probe.stop_reason == "SIGINT"
    assert len(probe.samples) == 1
    assert probe.tally.cumulative[2] == 1


def test_sigint_ends_a_round_trip_the_server_never_answers():
    listener = socket.socket()
    listener.bind(("127.0.0.1", 0))
    listener.listen(1)
    port = listener.getsockname()[1]
    got_request = threading.Event()
    conns = []

    def accept_and_stall():
        conn, _ = listener.accept()
        conns.append(conn)
        conn.recv(64)
        got_request.set()

    t = threading.Thread(target=accept_and_stall, daemon=True)
    t.start()

    # the io timeout only turns a regression into a failure instead of a hang
    client = TextClient.connect("127.0.0.1", port, io_timeout=5.0)
    probe = Probe(client, KeyGenerator(1), Pacer(0), out=io.StringIO())

    def interrupt_when_stalled():
        if got_request.wait(5):
            signal.pthread_kill(threading.main_thread().ident, signal.SIGINT)

    killer = threading.Thread(target=interrupt_when_stalled, daemon=True)
    probe.install_signal_handlers()
    killer.start()
    try:
        probe.run()
    finally:
        probe.restore_signal_handlers()
        killer.join(5)
        client.close()
        t.join(5)
        for conn in conns:
            conn.close()
        listener.close()

    assert probe.stop_reason == "SIGINT"
    assert probe.state is State.TERMINATED
    assert len(probe.samples) == 0
    out = probe.reporter.out.getvalue().splitlines()
    assert "FINAL (global)" in out
    assert "OOB: 0" in out
