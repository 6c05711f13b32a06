"""
Shared pytest fixtures: scripted dice, an empty game state and unit builders
"""

from collections import deque
from typing import Iterable, List, Optional

import pytest

from army_parser import SpecialRules, SubUnitDefinition, UnitGroup, Weapon
from battlefield import GameState, Side, UnitCluster
from dice import Dice
from geometry import Position, footprint_size
from unit_factory import create_unit_cluster


class ScriptedDice(Dice):
    """
    Dice that replay queued results before falling back to a seeded generator.

    pick() returns the first candidate unless pick_first is turned off.
    """

    def __init__(self, d6: Iterable[int] = (), d3: Iterable[int] = (),
                 uniforms: Iterable[float] = (), coins: Iterable[bool] = (), seed: int = 0):
        super().__init__(seed)
        self.d6_queue = deque(d6)
        self.d3_queue = deque(d3)
        self.uniform_queue = deque(uniforms)
        self.coin_queue = deque(coins)
        self.pick_first = True
        self.rolled: List[int] = []

    def queue_d6(self, *rolls: int):
        self.d6_queue.extend(rolls)

    def queue_d3(self, *rolls: int):
        self.d3_queue.extend(rolls)

    def d6(self) -> int:
        roll = self.d6_queue.popleft() if self.d6_queue else super().d6()
        self.rolled.append(roll)
        return roll

    def d3(self) -> int:
        return self.d3_queue.popleft() if self.d3_queue else super().d3()

    def uniform(self, low: float, high: float) -> float:
        return self.uniform_queue.popleft() if self.uniform_queue else super().uniform(low, high)

    def coin(self) -> bool:
        return self.coin_queue.popleft() if self.coin_queue else super().coin()

    def pick(self, items):
        if self.pick_first:
            return items[0]
        return super().pick(items)


@pytest.fixture
def dice():
    return ScriptedDice()


@pytest.fixture
def state(dice):
    return GameState(dice=dice)


def build_sub_unit(name: str = "Trooper", models: int = 1, quality: int = 4, defense: int = 4,
                   points: int = 10, weapons: Optional[List[Weapon]] = None,
                   keywords: Optional[List[str]] = None, **rules) -> SubUnitDefinition:
    return SubUnitDefinition(
        name=name,
        models=models,
        quality=quality,
        defense=defense,
        points=points,
        weapons=weapons or [],
        special=SpecialRules(**rules),
        keywords=keywords or [],
    )


def place_cluster(state: GameState, sub_units: List[SubUnitDefinition], side: Side,
                  x: float, y: float, name: Optional[str] = None) -> UnitCluster:
    group = UnitGroup(name=name or " + ".join(su.name for su in sub_units), sub_units=list(sub_units))
    width, height = footprint_size(group.total_models)
    cluster = create_unit_cluster(group, side, Position(x, y), Position(x - width / 2, y - height / 2))
    state.add_cluster(cluster)
    return cluster


@pytest.fixture
def make_sub_unit():
    return build_sub_unit


@pytest.fixture
def make_cluster(state):
    def _make(sub_units, side=Side.ATTACKERS, x=36.0, y=24.0, name=None):
        if isinstance(sub_units, SubUnitDefinition):
            sub_units = [sub_units]
        return place_cluster(state, sub_units, side, x, y, name)
    return _make
