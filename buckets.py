# buckets.py
# Decade bucketing of microsecond latencies: bucket i holds [10^i, 10^(i+1)).
import math

import numpy as np

MAX_BUCKET = 8
LABELS = ("1us", "10us", "100us", "1ms", "10ms", "100ms", "1s", "10s", "100s")


def bucket_index(latency_us):
    """floor(log10(latency_us)), exact for any integer >= 1 (0 is clamped to 1)."""
    latency_us = max(1, int(latency_us))
    i = int(math.log10(latency_us))
    # float log10 can land on the wrong side of a power of ten for large ints
    if 10 ** i > latency_us:
        i -= 1
    elif 10 ** (i + 1) <= latency_us:
        i += 1
    return i


class DecadeHistogram:
    def __init__(self):
        self.counts = np.zeros(MAX_BUCKET + 1, dtype=np.int64)

    def add(self, index):
        self.counts[index] += 1

    def absorb(self, other):
        """Fold `other` into this histogram and zero `other`."""
        self.counts += other.counts
        other.counts[:] = 0

    def total(self):
        return int(self.counts.sum())

    def __getitem__(self, index):
        return int(self.counts[index])

    def rows(self):
        return list(zip(LABELS, (int(c) for c in self.counts)))


class Tally:
    # Interval and cumulative histograms plus the out-of-bounds counter.
    # Owned by the probe loop and only touched from it.

    def __init__(self):
        self.interval = DecadeHistogram()
        self.cumulative = DecadeHistogram()
        self.oob = 0

    def record(self, latency_us):
        """Count one sample. Returns False if it was out of bounds."""
        i = bucket_index(latency_us)
        if i > MAX_BUCKET:
            self.oob += 1
            return False
        self.interval.add(i)
        return True

    def flush(self):
        self.cumulative.absorb(self.interval)

    def total(self):
        return self.interval.total() + self.cumulative.total() + self.oob
