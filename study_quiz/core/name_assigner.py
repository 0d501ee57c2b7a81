"""Utility for assigning anonymous display names to participants."""

from __future__ import annotations

from collections import deque
import random

_DEFAULT_NAMES = [
    "Ada Lovelace",
    "Alan Turing",
    "Grace Hopper",
    "Marie Curie",
    "Rosalind Franklin",
    "Isaac Newton",
    "Emmy Noether",
    "Niels Bohr",
    "Katherine Johnson",
    "Carl Linnaeus",
    "Charles Darwin",
    "Dorothy Hodgkin",
    "Srinivasa Ramanujan",
    "Hypatia",
    "Galileo Galilei",
    "Lise Meitner",
    "Nikola Tesla",
    "Barbara McClintock",
    "Johannes Kepler",
    "Chien-Shiung Wu",
    "Gregor Mendel",
    "Jane Goodall",
    "Leonhard Euler",
    "Sofia Kovalevskaya",
]


class NameAssigner:
    """Provides randomized, non-repeating aliases for participants who join without a name."""

    def __init__(self, names: list[str] | None = None, rng: random.Random | None = None):
        cleaned = [name.strip() for name in (names or _DEFAULT_NAMES) if name.strip()]
        if not cleaned:
            raise ValueError("Name list cannot be empty.")
        self._names = cleaned
        self._pool: deque[str] = deque()
        self._rng = rng or random.Random()
        self._refill_pool()

    def next_name(self) -> str:
        if not self._pool:
            self._refill_pool()
        return self._pool.popleft()

    def _refill_pool(self) -> None:
        shuffled = list(self._names)
        self._rng.shuffle(shuffled)
        self._pool.extend(shuffled)
