from __future__ import annotations

import math
import random
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")


class SeededRng:
    """Seeded RNG wrapper so every random draw comes from one explicit stream."""

    def __init__(self, seed: int) -> None:
        self._seed = int(seed)
        self._rng = random.Random(self._seed)

    @property
    def seed(self) -> int:
        return self._seed

    def randint(self, a: int, b: int) -> int:
        return self._rng.randint(a, b)

    def choice(self, seq: Sequence[T]) -> T:
        return self._rng.choice(seq)


def new_seed() -> int:
    return random.SystemRandom().randint(1, 2**31 - 1)


def round_half_up(x: float) -> int:
    # Percentages shown to the player round .5 upwards, not to even.
    return int(math.floor(x + 0.5))
