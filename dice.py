"""
Dice
Injectable random source used by every roll the engine makes
"""

import numpy as np
from typing import List, Optional, Sequence, TypeVar

T = TypeVar('T')


class Dice:
    """Random source backed by a numpy Generator.

    Pass a seed (or an existing Generator) to replay a battle exactly.
    """

    def __init__(self, seed: Optional[int] = None,
                 rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def d6(self) -> int:
        """Roll one six-sided die"""
        return int(self.rng.integers(1, 7))

    def d3(self) -> int:
        """Roll one three-sided die"""
        return int(self.rng.integers(1, 4))

    def roll(self, count: int) -> List[int]:
        """Roll count d6"""
        return [self.d6() for _ in range(count)]

    def pick(self, items: Sequence[T]) -> T:
        """Uniformly choose one element of a non-empty sequence"""
        return items[int(self.rng.integers(0, len(items)))]

    def uniform(self, low: float, high: float) -> float:
        return float(self.rng.uniform(low, high))

    def coin(self) -> bool:
        """Fair coin flip (roll-offs)"""
        return bool(self.rng.random() < 0.5)
