# pacer.py
import time


class Pacer:
    """Keeps request starts at least `pace_us` apart. Only ever adds delay."""

    def __init__(self, pace_us, clock=time.perf_counter_ns, sleep=time.sleep):
        self.pace_us = pace_us
        self.clock = clock
        self.sleep = sleep

    def pace(self, start_ns):
        """Sleep until `pace_us` has passed since `start_ns`. Returns the µs slept."""
        if not self.pace_us:
            return 0

        elapsed_us = (self.clock() - start_ns) // 1000
        if elapsed_us >= self.pace_us:
            return 0

        wait_us = self.pace_us - elapsed_us
        self.sleep(wait_us / 1_000_000)
        return wait_us
