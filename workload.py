# workload.py
import random


class KeyGenerator:
    # random: uniform over [1, key_max]; sequential: 1..key_max, wrapping

    def __init__(self, key_max, random_order=True, rng=None):
        if key_max < 1:
            raise ValueError(f"key_max must be >= 1, got {key_max}")
        self.key_max = key_max
        self.random_order = random_order
        self.rng = rng or random.Random()
        self._last = 0

    def __iter__(self):
        return self

    def __next__(self):
        if self.random_order:
            return self.rng.randint(1, self.key_max)
        self._last = self._last % self.key_max + 1
        return self._last
