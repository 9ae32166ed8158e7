# textproto.py
# Blocking client for the memcached-style text protocol. Only `get` is issued.
import logging
import socket
import time
from collections import namedtuple

log = logging.getLogger(__name__)

VALUE_MARKER = b"VALUE"
END_MARKER = b"END"

# start_time is wall clock (epoch seconds), start_ns is perf_counter_ns at send
RoundTrip = namedtuple("RoundTrip", ("start_time", "start_ns", "latency_us", "hit"))


class ProbeError(Exception):
    pass


class ConnectError(ProbeError):
    """Could not reach the server at startup."""


class ProtocolError(ProbeError):
    """The connection broke (EOF, socket error, read timeout) mid-run."""


class TextClient:
    """One blocking connection; each round trip consumes the whole response."""

    def __init__(self, sock, prefix=""):
        self.sock = sock
        self.prefix = prefix
        self.rfile = sock.makefile("rb")

    @classmethod
    def connect(cls, host, port, prefix="", connect_timeout=5.0, io_timeout=0.0):
        try:
            sock = socket.create_connection((host, port), timeout=connect_timeout)
        except OSError as e:
            raise ConnectError(f"cannot connect to {host}:{port}: {e}") from e

        # Disable Nagle so small requests go out immediately
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        except OSError:
            log.debug("TCP_NODELAY not supported on this socket")

        sock.settimeout(io_timeout if io_timeout > 0 else None)
        log.info("connected to %s:%d", host, port)
        return cls(sock, prefix)

    def _readline(self):
        try:
            line = self.rfile.readline()
        except OSError as e:
            raise ProtocolError(f"read failed: {e}") from e
        if not line:
            raise ProtocolError("server closed the connection")
        return line.rstrip(b"\r\n")

    def roundtrip(self, key):
        request = f"get {self.prefix}{key}\r\n".encode()

        start_time = time.time()
        start_ns = time.perf_counter_ns()
        try:
            self.sock.sendall(request)
        except OSError as e:
            raise ProtocolError(f"write failed: {e}") from e

        # Anything other than VALUE (END, ERROR, garbage) ends the response.
        # The value body is never parsed, only drained up to END.
        line = self._readline()
        hit = line.startswith(VALUE_MARKER)
        if hit:
            while self._readline() != END_MARKER:
                pass
        end_ns = time.perf_counter_ns()

        latency_us = max(1, (end_ns - start_ns) // 1000)
        return RoundTrip(start_time, start_ns, latency_us, hit)

    def fetch(self, key):
        """Do one round trip for `key` and return its latency in microseconds."""
        return self.roundtrip(key).latency_us

    def close(self):
        self.rfile.close()
        self.sock.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
