"""
seeded_random.py
================
Reproducible random source shared by every galaxy-generation stage.

A single ``SeededRandom`` is created per generation run and consumed
sequentially.  It wraps numpy's PCG64 ``Generator`` so that an identical seed
yields an identical stream of doubles on every platform.
"""

from __future__ import annotations

import math
from typing import Sequence, Tuple, TypeVar

import numpy as np

T = TypeVar("T")

_SEED_MASK = (1 << 64) - 1


class SeededRandom:
    """Sequential stream of uniform draws derived from a 64-bit seed.

    Parameters
    ----------
    seed : int
        Any Python int; reduced modulo 2**64 so negative seeds are accepted.
    """

    def __init__(self, seed: int) -> None:
        self.seed = int(seed) & _SEED_MASK
        self._rng = np.random.default_rng(self.seed)
        self.draws = 0

    def next(self) -> float:
        """Uniform double in [0, 1)."""
        self.draws += 1
        return float(self._rng.random())

    def range(self, lo: float, hi: float) -> float:
        return lo + self.next() * (hi - lo)

    def int_range(self, lo: int, hi: int) -> int:
        """Uniform integer in [lo, hi] inclusive."""
        if hi < lo:
            raise ValueError(f"int_range bounds reversed: {lo} > {hi}")
        return min(hi, lo + int(self.next() * (hi - lo + 1)))

    def boolean(self, probability: float = 0.5) -> bool:
        return self.next() < probability

    def weighted_choice(self, options: Sequence[Tuple[T, float]]) -> T:
        """Roulette-wheel pick over ``(item, weight)`` pairs.

        Consumes exactly one draw.  Weights need not sum to one; if the draw
        falls past the cumulative total the first item is returned.
        """
        if not options:
            raise ValueError("weighted_choice() on empty options")
        value = self.next()
        cumulative = 0.0
        for item, weight in options:
            cumulative += weight
            if value < cumulative:
                return item
        return options[0][0]

    def point_in_disk(self, radius: float) -> Tuple[float, float]:
        """Uniform-area point inside a disk centred on the origin.

        The square root on the radial draw keeps areal density uniform.
        """
        angle = self.range(0.0, 2.0 * math.pi)
        r = math.sqrt(self.next()) * radius
        return r * math.cos(angle), r * math.sin(angle)
