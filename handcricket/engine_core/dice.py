"""
Dice - Injectable random source for the computer's moves and totals.

Both engines draw through a DiceSource so tests can script outcomes and
deployments can seed a game for reproducibility.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
import random
import threading


class DiceSource(ABC):
    """Source of uniform integer draws."""

    @abstractmethod
    def roll(self, low: int, high: int) -> int:
        """Return an integer uniformly drawn from [low, high] inclusive."""

    @abstractmethod
    def below(self, bound: int) -> int:
        """Return an integer uniformly drawn from [0, bound)."""


class RandomDice(DiceSource):
    """
    DiceSource backed by the OS entropy pool, or by a seeded
    random.Random when a seed is given for reproducible games.

    Shared across request workers, so draws are serialized on an internal
    lock.
    """

    def __init__(self, seed: int | None = None):
        self.seeded = seed is not None
        self._rng = random.Random(seed) if self.seeded else random.SystemRandom()
        self._lock = threading.Lock()

    def roll(self, low: int, high: int) -> int:
        with self._lock:
            return self._rng.randint(low, high)

    def below(self, bound: int) -> int:
        with self._lock:
            return self._rng.randrange(bound)
