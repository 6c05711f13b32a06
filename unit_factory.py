"""
Unit Factory
Turns parsed unit groups into battlefield clusters and keeps their loadouts current
"""

import itertools
from typing import List, Optional

from army_parser import SubUnitDefinition, UnitGroup, Weapon
from battlefield import Side, SubUnitState, UnitCluster, UnitType
from geometry import Position, footprint_size, grid_positions

_cluster_ids = itertools.count(1)


def weapon_goodness(weapon: Weapon) -> float:
    """Rough damage potential used to rank weapons"""
    total_attacks = weapon.attacks * weapon.amount
    blast = weapon.blast or 1
    deadly = weapon.deadly or 1
    ap_multiplier = 1 + (weapon.ap or 0) * 0.25
    return total_attacks * blast * deadly * ap_multiplier


def recompute_loadout(definition: SubUnitDefinition, surviving_models: int) -> List[Weapon]:
    """
    Weapons still carried once a sub-unit is down to surviving_models.

    Weapon copies are dealt round-robin (best first) onto one virtual slot
    per original model; casualties are taken from the weakest slots.
    """
    original_models = definition.models
    if surviving_models <= 0:
        return []
    if surviving_models >= original_models:
        return [w.with_amount(w.amount) for w in definition.weapons]

    copies = [w.with_amount(1) for w in definition.weapons for _ in range(w.amount)]
    copies.sort(key=weapon_goodness, reverse=True)

    slots = [[] for _ in range(original_models)]
    for index, weapon in enumerate(copies):
        slots[index % original_models].append(weapon)

    slots.sort(key=lambda slot: sum(weapon_goodness(w) for w in slot))
    kept = slots[original_models - surviving_models:]

    merged = {}
    for weapon in (w for slot in kept for w in slot):
        key = weapon.profile_key
        if key in merged:
            merged[key].amount += 1
        else:
            merged[key] = weapon.with_amount(1)
    return list(merged.values())


def refresh_loadout(state: SubUnitState) -> List[Weapon]:
    """Recompute a sub-unit's effective weapons, memoised on its model count"""
    if state.current_models not in state.loadout_cache:
        state.loadout_cache[state.current_models] = recompute_loadout(
            state.definition, state.current_models)
    state.effective_weapons = state.loadout_cache[state.current_models]
    return state.effective_weapons


def classify_unit_type(group: UnitGroup) -> UnitType:
    """Melee / shooting role by comparing weapon goodness"""
    melee = 0.0
    ranged = 0.0
    for sub_unit in group.sub_units:
        for weapon in sub_unit.weapons:
            if weapon.range > 0:
                ranged += weapon_goodness(weapon)
            else:
                melee += weapon_goodness(weapon)

    if ranged == 0 and melee > 0:
        return UnitType.MELEE
    if melee == 0 and ranged > 0:
        return UnitType.SHOOTING
    return UnitType.MELEE_FOCUS if melee > ranged else UnitType.SHOOTING_FOCUS


def max_weapon_range(group: UnitGroup) -> int:
    return max([0] + [w.range or 0 for su in group.sub_units for w in su.weapons])


def create_unit_cluster(group: UnitGroup, side: Side, center: Position,
                        origin: Position) -> Optional[UnitCluster]:
    """Instantiate a group on the board; None if the group has no sub-units"""
    if not group or not group.sub_units:
        return None

    model_count = group.total_models
    width, height = footprint_size(model_count)
    cluster_id = f"{side.value}-{group.name.replace(' ', '_')}-{next(_cluster_ids)}"

    states = []
    for sub_unit in group.sub_units:
        state = SubUnitState(
            definition=sub_unit,
            current_models=sub_unit.models,
            wounds_per_model=sub_unit.special.tough or 1,
            is_hero=sub_unit.special.hero,
        )
        refresh_loadout(state)
        states.append(state)

    return UnitCluster(
        id=cluster_id,
        side=side,
        name=group.name,
        unit_type=classify_unit_type(group),
        best_range=max_weapon_range(group),
        center=center,
        origin=origin,
        width=width,
        height=height,
        models=grid_positions(origin, model_count),
        group=group,
        sub_unit_states=states,
        total_models=model_count,
        current_models=model_count,
    )


def relayout_models(cluster: UnitCluster):
    """Regrid the surviving models around the unchanged centre"""
    count = max(cluster.current_models, 0)
    if count == 0:
        cluster.models = []
        return
    cluster.width, cluster.height = footprint_size(count)
    cluster.origin = Position(cluster.center.x - cluster.width / 2,
                              cluster.center.y - cluster.height / 2)
    cluster.models = grid_positions(cluster.origin, count)
