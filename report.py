# report.py
import sys
import time

import matplotlib.pyplot as plt
import numpy as np

from buckets import LABELS, MAX_BUCKET


def format_table(hist):
    return [f"{label:>6} {count:>12}" for label, count in hist.rows()]


class Reporter:
    """Periodic interval tables, folded into the cumulative one; full dump at shutdown."""

    def __init__(self, tally, samples, report_s, out=None, clock=time.monotonic):
        self.tally = tally
        self.samples = samples
        self.report_s = report_s
        self.out = out or sys.stdout
        self.clock = clock
        self.last_report = clock()

    def _print(self, line=""):
        print(line, file=self.out)

    def maybe_report(self):
        if not self.report_s:
            return False

        now = self.clock()
        if now - self.last_report < self.report_s:
            return False

        self.report()
        self.last_report = now
        return True

    def report(self):
        self._print("=" * 19)
        for line in format_table(self.tally.interval):
            self._print(line)
        if self.tally.oob:
            self._print(f"OOB: {self.tally.oob}")
        self.tally.flush()
        self.out.flush()

    def final(self):
        self.tally.flush()

        self._print("=" * 19)
        self._print("FINAL (global)")
        for line in format_table(self.tally.cumulative):
            self._print(line)
        self._print(f"OOB: {self.tally.oob}")

        for line in self.samples.lines():
            self._print(line)
        self.out.flush()


def plot_samples(samples, cumulative, path):
    """Save a latency-over-time scatter and the decade histogram to `path`."""
    starts, lats = samples.as_arrays()
    offsets = starts - starts[0] if len(starts) else starts

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(16, 6), gridspec_kw={"width_ratios": [3, 1]})

    # Latency bubbles over time
    ax1.scatter(offsets, lats, s=4, alpha=0.5, color='#2196F3', edgecolors='none')
    ax1.set_yscale('log')
    for i in range(MAX_BUCKET + 2):
        ax1.axhline(10 ** i, color='gray', alpha=0.2, linewidth=1)
    ax1.set_xlabel('Time (seconds)', fontsize=11, fontweight='bold')
    ax1.set_ylabel('Latency (us)', fontsize=11, fontweight='bold')
    ax1.set_title(f'Round-trip latency ({len(samples)} samples)', fontsize=12, fontweight='bold')
    ax1.grid(True, alpha=0.3, axis='x')

    # Decade counts
    x_pos = np.arange(len(LABELS))
    ax2.bar(x_pos, cumulative.counts, color='#FF9800', alpha=0.8, edgecolor='black')
    ax2.set_xticks(x_pos)
    ax2.set_xticklabels(LABELS, rotation=45)
    ax2.set_ylabel('Count', fontsize=11, fontweight='bold')
    ax2.set_title('Decade buckets', fontsize=12, fontweight='bold')
    ax2.grid(True, alpha=0.3, axis='y')

    fig.savefig(path, dpi=150, bbox_inches='tight')
    plt.close(fig)
