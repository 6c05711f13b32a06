"""
Core Rules Engine
Wound allocation, morale tests, objective control, movement values and cover
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from battlefield import GameState, Objective, Side, TerrainFeature, UnitCluster
from geometry import OBJECTIVE_RANGE, is_in_range
from unit_factory import refresh_loadout, relayout_models


# ============================================================================
# WOUND APPLICATION
# ============================================================================

@dataclass
class WoundApplicationResult:
    """Result of applying wound packets to a cluster"""
    models_killed: int = 0
    wasted_packets: int = 0  # Packets left over once every model is dead
    log: List[str] = field(default_factory=list)


def apply_wounds(cluster: UnitCluster, packets: List[int]) -> WoundApplicationResult:
    """
    Allocate wound packets, non-heroes first, each group in ascending Tough order.

    A packet that meets the current model's remaining wounds kills it; any
    excess on that packet is lost. Otherwise the packet's damage is kept on
    the current model.
    """
    result = WoundApplicationResult()
    allocation = (
        sorted((s for s in cluster.sub_unit_states if not s.is_hero and s.alive),
               key=lambda s: s.wounds_per_model) +
        sorted((s for s in cluster.sub_unit_states if s.is_hero and s.alive),
               key=lambda s: s.wounds_per_model)
    )

    for idx, packet in enumerate(packets, start=1):
        target = next((s for s in allocation if s.alive), None)
        if target is None:
            result.wasted_packets += 1
            continue

        remaining = target.wounds_per_model - target.wounds_on_current
        if packet >= remaining:
            result.models_killed += 1
            cluster.current_models -= 1
            target.current_models -= 1
            target.wounds_on_current = 0
            result.log.append(f"  Packet#{idx}: {packet} -> {target.name} model killed")
        else:
            target.wounds_on_current += packet
            result.log.append(
                f"  Packet#{idx}: {packet} -> applied to {target.name}, "
                f"now {target.wounds_on_current}/{target.wounds_per_model}")

        if target.definition.models > 1 and target.current_models < target.definition.models:
            refresh_loadout(target)
        elif not target.alive:
            target.effective_weapons = []

    for state in cluster.sub_unit_states:
        if state.current_models == 0:
            result.log.append(f"  Sub-unit {state.name} wiped out")

    cluster.current_models = max(0, cluster.current_models)
    if cluster.current_models > 0:
        relayout_models(cluster)
    return result


def needs_casualty_morale_test(cluster: UnitCluster) -> bool:
    """Half strength or worse, or a lone model at half its wounds or worse"""
    if cluster.total_models > 1:
        return cluster.current_models <= cluster.total_models / 2

    state = next((s for s in cluster.sub_unit_states if s.alive), None)
    if state is None:
        return False
    remaining = state.wounds_per_model - state.wounds_on_current
    return remaining <= state.wounds_per_model / 2


# ============================================================================
# MORALE
# ============================================================================

class MoraleOutcome(Enum):
    """How a morale test ended"""
    PASSED = "passed"
    SHAKEN = "shaken"
    ROUTED = "routed"
    DESTROYED = "destroyed"


def is_fearless(cluster: UnitCluster) -> bool:
    """More than half the unit's original models are Fearless"""
    fearless_models = sum(su.models for su in cluster.group.sub_units if su.special.fearless)
    return fearless_models > cluster.total_models / 2


def holds_the_line(cluster: UnitCluster) -> bool:
    """Hold the Line on any surviving sub-unit, or a Robot majority"""
    living = [s for s in cluster.sub_unit_states if s.alive]
    if any(s.definition.special.hold_the_line for s in living):
        return True
    robots = sum(1 for s in living if s.definition.special.robot)
    return bool(living) and robots > len(living) / 2


def is_half_strength(cluster: UnitCluster) -> bool:
    """Half strength or worse for melee routing"""
    if cluster.current_models <= cluster.total_models / 2:
        return True
    if cluster.current_models == 1:
        state = next((s for s in cluster.sub_unit_states if s.alive), None)
        return state is not None and state.wounds_on_current >= state.wounds_per_model / 2
    return False


def perform_morale_test(state: GameState, cluster: UnitCluster,
                        reason: str = "due to game rule", melee_test: bool = False) -> Optional[MoraleOutcome]:
    """
    Take a morale test and apply its outcome.

    Args:
        state: Game state (dice, rosters, log)
        cluster: Unit taking the test
        reason: Text for the log
        melee_test: True when testing for losing a melee

    Returns:
        The outcome, or None if the unit was already gone
    """
    if cluster is None or cluster.current_models <= 0:
        return None

    dice = state.dice
    state.log('morale', f"--- {cluster.name} must take a Morale Test ({reason}) ---", side=cluster.side)

    if cluster.shaken:
        state.log('morale', f"  {cluster.name} is already Shaken and automatically fails. DESTROYED!",
                  side=cluster.side)
        state.remove_cluster(cluster)
        state.notify_changed()
        return MoraleOutcome.DESTROYED

    quality = cluster.group.sub_units[0].quality if cluster.group.sub_units else 6
    roll = dice.d6()
    passed = roll == 6 or (roll > 1 and roll >= quality)
    state.log('morale', f"  Morale Test (Q{quality}+): Rolled {roll}. {'PASSED' if passed else 'FAILED'}!",
              side=cluster.side)
    if passed:
        return MoraleOutcome.PASSED

    if is_fearless(cluster):
        fearless_roll = dice.d6()
        if fearless_roll >= 4:
            state.log('morale', f"  Fearless roll: {fearless_roll}. The morale test is now considered passed.",
                      side=cluster.side)
            return MoraleOutcome.PASSED
        state.log('morale', f"  Fearless roll: {fearless_roll}. The morale test remains failed.",
                  side=cluster.side)

    if holds_the_line(cluster):
        wounds_to_destroy = sum(s.remaining_wounds for s in cluster.sub_unit_states if s.alive)
        rolls = dice.roll(wounds_to_destroy)
        damage = sum(1 for r in rolls if r <= 3)
        state.log('morale', f"  Hold the Line! Test counts as passed. Rolls [{', '.join(map(str, rolls))}] "
                  f"-> {damage} wounds.", damage_dealt=damage, side=cluster.side)
        if damage > 0:
            wounds = apply_wounds(cluster, [1] * damage)
            if cluster.current_models <= 0:
                state.log('morale', f"  {cluster.name} DESTROYED holding the line!",
                          models_killed=wounds.models_killed, side=cluster.side)
                state.remove_cluster(cluster)
                state.notify_changed()
                return MoraleOutcome.DESTROYED
        state.notify_changed()
        return MoraleOutcome.PASSED

    if melee_test and is_half_strength(cluster):
        state.log('morale', "  Unit is at half strength or less and failed melee morale. ROUTED!",
                  side=cluster.side)
        state.remove_cluster(cluster)
        outcome = MoraleOutcome.ROUTED
    else:
        state.log('morale', f"  {cluster.name} failed morale and is now SHAKEN.", side=cluster.side)
        cluster.shaken = True
        outcome = MoraleOutcome.SHAKEN

    state.notify_changed()
    return outcome


# ============================================================================
# OBJECTIVES
# ============================================================================

def units_near_objective(units: List[UnitCluster], objective: Objective) -> List[UnitCluster]:
    """Non-shaken units with a model within 3 inches"""
    return [u for u in units if not u.shaken and u.is_near(objective.position, OBJECTIVE_RANGE)]


def is_any_friendly_near_objective(state: GameState, objective: Objective, side: Side) -> bool:
    return bool(units_near_objective(state.units(side), objective))


def is_objective_under_ai_control(state: GameState, objective: Objective,
                                  side: Optional[Side] = None) -> bool:
    """Held by side already, or more of its non-shaken units are near than the enemy's"""
    side = side or state.current_turn
    if objective.controller == side:
        return True
    if objective.controller is not None:
        return False

    ours = len(units_near_objective(state.units(side), objective))
    theirs = len(units_near_objective(state.units(side.opponent), objective))
    return ours > theirs


def update_objective_control(state: GameState):
    """Exclusive presence seizes an objective; presence of both sides clears it"""
    for objective in state.objectives:
        attackers_near = bool(units_near_objective(state.units(Side.ATTACKERS), objective))
        defenders_near = bool(units_near_objective(state.units(Side.DEFENDERS), objective))

        previous = objective.controller
        if attackers_near and not defenders_near:
            objective.controller = Side.ATTACKERS
        elif defenders_near and not attackers_near:
            objective.controller = Side.DEFENDERS
        elif attackers_near and defenders_near:
            objective.controller = None

        if objective.controller != previous:
            holder = objective.controller.value if objective.controller else "nobody"
            state.log('objective', f"{objective.name} is now held by {holder}")


# ============================================================================
# MOVEMENT AND RANGE
# ============================================================================

# move type -> (base distance, Fast/Slow modifier)
MOVE_DISTANCES = {
    'charge': (12, 4),
    'rush': (12, 4),
    'advance': (6, 2),
}


def move_value(cluster: UnitCluster, move_type: str) -> int:
    """Move distance in inches for 'charge', 'rush' or 'advance'"""
    if move_type not in MOVE_DISTANCES:
        return 0
    base, modifier = MOVE_DISTANCES[move_type]
    if not cluster.group.sub_units:
        return base

    first = cluster.group.sub_units[0]
    keywords = [str(k).lower() for k in first.keywords]
    distance = base
    if 'fast' in keywords or first.special.fast:
        distance += modifier
    if 'slow' in keywords or first.special.slow:
        distance -= modifier
    return max(0, distance)


def charge_range(cluster: UnitCluster) -> int:
    return move_value(cluster, 'charge')


def advance_distance(cluster: UnitCluster) -> int:
    return move_value(cluster, 'advance')


def rush_distance(cluster: UnitCluster) -> int:
    return move_value(cluster, 'rush')


def is_unit_in_range_of_target(actor, target, range_inches: float) -> bool:
    return is_in_range(actor, target, range_inches)


def is_in_cover(shape, terrain: List[TerrainFeature]) -> bool:
    """More than half the models stand inside cover terrain"""
    if not shape.models:
        return False
    covered = sum(1 for m in shape.models
                  if any(t.cover and t.contains(m) for t in terrain))
    return covered > len(shape.models) / 2


def update_cover(state: GameState, cluster: UnitCluster):
    cluster.in_cover = is_in_cover(cluster, state.terrain)
