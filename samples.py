# samples.py
from collections import namedtuple

import numpy as np

Sample = namedtuple("Sample", ("start_time", "latency_us"))


class SampleStore:
    """Append-only log of every round trip, read back in full at shutdown."""

    def __init__(self):
        self._samples = []

    def append(self, start_time, latency_us):
        self._samples.append(Sample(start_time, latency_us))

    def __len__(self):
        return len(self._samples)

    def __iter__(self):
        return iter(self._samples)

    def lines(self):
        for s in self._samples:
            yield f"{s.start_time:.6f},{s.latency_us}"

    def as_arrays(self):
        """(start_times, latencies_us) as numpy arrays, for plotting."""
        if not self._samples:
            return np.empty(0), np.empty(0, dtype=np.int64)
        starts, lats = zip(*self._samples)
        return np.asarray(starts, dtype=float), np.asarray(lats, dtype=np.int64)
