# stub.py
# Stub key-value server speaking the memcached text protocol (`get` only),
# with injected delays to produce latency bubbles or steady noise.
import argparse
import os
import random
import socketserver
import threading
import time

MODES = ("none", "bubble", "noise")


class Handler(socketserver.StreamRequestHandler):

    def handle(self):
        while True:
            line = self.rfile.readline()
            if not line:
                return
            parts = line.split()
            if not parts:
                continue

            if parts[0] != b"get" or len(parts) < 2:
                self.wfile.write(b"ERROR\r\n")
                continue

            delay = self.server.pick_delay()
            if delay > 0:
                time.sleep(delay)

            self.wfile.write(self.server.lookup(parts[1:]))


class StubServer(socketserver.ThreadingTCPServer):
    allow_reuse_address = True
    daemon_threads = True

    # bubble mode: a few requests hit a long stall, like lock contention
    stall_rate = 0.05
    stall_s = 0.1

    def __init__(self, address, prefix="", key_max=1000, mode="none",
                 base_delay_us=0, miss_ratio=0.0, value_size=64, seed=None):
        if mode not in MODES:
            raise ValueError(f"unknown mode {mode!r}, expected one of {MODES}")
        self.mode = mode
        self.base_s = base_delay_us / 1_000_000
        self.rng = random.Random(seed)
        self.rng_lock = threading.Lock()

        value = b"x" * value_size
        self.store = {
            f"{prefix}{i}".encode(): value
            for i in range(1, key_max + 1)
            if self.rng.random() >= miss_ratio
        }

        self.metrics = {
            "requests_total": 0,
            "hits": 0,
            "misses": 0,
            "stalls": 0,
        }
        self.metrics_lock = threading.Lock()

        super().__init__(address, Handler)

    def pick_delay(self):
        with self.rng_lock:
            r = self.rng.random()

        if self.mode == "bubble" and r < self.stall_rate:
            with self.metrics_lock:
                self.metrics["stalls"] += 1
            return self.stall_s
        if self.mode == "noise":
            # jitter between 1x and 10x the base delay
            return self.base_s * (1 + 9 * r)
        return self.base_s

    def lookup(self, keys):
        out = []
        hits = 0
        for key in keys:
            value = self.store.get(key)
            if value is not None:
                hits += 1
                out.append(b"VALUE %s 0 %d\r\n%s\r\n" % (key, len(value), value))
        out.append(b"END\r\n")

        with self.metrics_lock:
            self.metrics["requests_total"] += 1
            self.metrics["hits"] += hits
            self.metrics["misses"] += len(keys) - hits
        return b"".join(out)

    def snapshot(self):
        with self.metrics_lock:
            return dict(self.metrics)

    def start_in_thread(self):
        t = threading.Thread(target=self.serve_forever, name="stub-server", daemon=True)
        t.start()
        return t


def main(argv=None):
    parser = argparse.ArgumentParser(description="Stub key-value server for bubbleprobe")
    parser.add_argument("--host", default=os.environ.get("STUB_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("STUB_PORT", "11211")))
    parser.add_argument("--prefix", default="")
    parser.add_argument("--key-max", type=int, default=1000)
    parser.add_argument("--mode", choices=MODES, default="none")
    parser.add_argument("--delay-us", type=int, default=100, help="base per-request delay")
    parser.add_argument("--miss-ratio", type=float, default=0.0)
    args = parser.parse_args(argv)

    server = StubServer(
        (args.host, args.port),
        prefix=args.prefix,
        key_max=args.key_max,
        mode=args.mode,
        base_delay_us=args.delay_us,
        miss_ratio=args.miss_ratio,
    )
    print(f"Stub server listening on {args.host}:{args.port} (mode={args.mode}, {len(server.store)} keys)")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        pass
    finally:
        server.server_close()
        print(f"Stub metrics: {server.snapshot()}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
