"""Injectable random sources.

Every random decision made during generation goes through a ``RandomSource``
so that a floor is reproducible from its seed (or from a scripted stream in
tests). Module-level ``random`` is never used by the generator.
"""
from __future__ import annotations

import random
from abc import ABC, abstractmethod
from typing import Iterable, List, MutableSequence, Sequence, TypeVar

T = TypeVar("T")


class RandomSource(ABC):
    @abstractmethod
    def rand_int(self, n: int) -> int:
        """Return a uniform integer in [0, n). ``n`` must be positive."""

    def rand_range(self, lo: int, hi: int) -> int:
        """Uniform integer in [lo, hi); returns ``lo`` when the range is empty."""
        if hi <= lo:
            return lo
        return lo + self.rand_int(hi - lo)

    def chance(self, percent: int) -> bool:
        if percent <= 0:
            return False
        if percent >= 100:
            return True
        return self.rand_int(100) < percent

    def choice(self, seq: Sequence[T]) -> T:
        return seq[self.rand_int(len(seq))]

    def shuffle(self, seq: MutableSequence[T]) -> None:
        """Fisher-Yates shuffle in place."""
        for i in range(len(seq) - 1, 0, -1):
            j = self.rand_int(i + 1)
            seq[i], seq[j] = seq[j], seq[i]


class SeededRandom(RandomSource):
    """Random source backed by a private ``random.Random`` instance."""

    def __init__(self, seed: int | None = None):
        if seed is None:
            seed = random.randint(1, 1_000_000)
        self.seed = seed
        self._rng = random.Random(seed)

    def rand_int(self, n: int) -> int:
        if n <= 0:
            raise ValueError(f"rand_int bound must be positive, got {n}")
        return self._rng.randrange(n)


class ScriptedRandom(RandomSource):
    """Replays a fixed stream of values (each reduced modulo the bound).

    Once the script is exhausted it keeps cycling from the start. Every value
    handed out is appended to ``consumed`` so tests can assert on the draw count.
    """

    def __init__(self, values: Iterable[int]):
        self.values: List[int] = list(values) or [0]
        self.position = 0
        self.consumed: List[int] = []

    def rand_int(self, n: int) -> int:
        if n <= 0:
            raise ValueError(f"rand_int bound must be positive, got {n}")
        v = self.values[self.position % len(self.values)] % n
        self.position += 1
        self.consumed.append(v)
        return v


__all__ = ["RandomSource", "SeededRandom", "ScriptedRandom"]
