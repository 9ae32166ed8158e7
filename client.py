# client.py
# Latency probe: hammers a key-value server with `get` requests, one at a
# time, and prints decade histograms of the round-trip times.
import argparse
import logging
import sys

from config import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_PREFIX, RunConfig
from probe import Probe
from report import plot_samples
from textproto import ConnectError, ProtocolError, TextClient

log = logging.getLogger("bubbleprobe")


def non_negative(kind):
    def parse(text):
        value = kind(text)
        if value < 0:
            raise argparse.ArgumentTypeError(f"must be >= 0, got {text}")
        return value
    return parse


def positive_int(text):
    value = int(text)
    if value < 1:
        raise argparse.ArgumentTypeError(f"must be >= 1, got {text}")
    return value


def build_parser():
    parser = argparse.ArgumentParser(description="Measure get latency against a text-protocol key-value store")
    parser.add_argument("-s", "--server", default=DEFAULT_HOST)
    parser.add_argument("-p", "--port", type=int, default=DEFAULT_PORT)
    parser.add_argument("--prefix", default=DEFAULT_PREFIX, help="prepended to every key")
    parser.add_argument("-k", "--key-max", type=positive_int, default=1000, help="keys are drawn from [1, key-max]")
    parser.add_argument("-P", "--pace", type=non_negative(int), default=0, help="minimum us between requests (0 = unpaced)")
    parser.add_argument("-r", "--report", type=non_negative(float), default=1.0, help="seconds between reports (0 = final only)")
    parser.add_argument("--sequential", action="store_true", help="walk keys in order instead of at random")
    parser.add_argument("--connect-timeout", type=non_negative(float), default=5.0)
    parser.add_argument("--io-timeout", type=non_negative(float), default=0.0, help="seconds to wait on a response (0 = forever)")
    parser.add_argument("--n", type=non_negative(int), default=0, help="stop after N requests (0 = until interrupted)")
    parser.add_argument("--plot", default="", help="save a latency plot to this file at shutdown")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def config_from_args(args):
    return RunConfig(
        host=args.server,
        port=args.port,
        prefix=args.prefix,
        key_max=args.key_max,
        pace_us=args.pace,
        report_s=args.report,
        random_keys=not args.sequential,
        connect_timeout_s=args.connect_timeout,
        io_timeout_s=args.io_timeout,
        count=args.n,
        plot_path=args.plot,
    )


def run(config, out=None):
    try:
        client = TextClient.connect(
            config.host,
            config.port,
            prefix=config.prefix,
            connect_timeout=config.connect_timeout_s,
            io_timeout=config.io_timeout_s,
        )
    except ConnectError as e:
        log.error("%s", e)
        return 1

    with client:
        probe = Probe.from_config(config, client, out=out)
        probe.install_signal_handlers()
        try:
            probe.run()
        except ProtocolError as e:
            log.error("connection lost after %d samples: %s", len(probe.samples), e)
            return 2
        finally:
            probe.restore_signal_handlers()

    if config.plot_path:
        plot_samples(probe.samples, probe.tally.cumulative, config.plot_path)
        log.info("plot saved to %s", config.plot_path)
    return 0


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s [%(name)s] %(asctime)s - %(message)s",
        stream=sys.stderr,
    )
    return run(config_from_args(args))


if __name__ == "__main__":
    raise SystemExit(main())
