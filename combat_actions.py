"""
Combat Orchestrators
Shooting and melee actions between two clusters, including post-charge separation
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from army_parser import SubUnitDefinition, Weapon
from attack_sequence import ActionContext, resolve_attack
from battlefield import GameState, MovementEvent, Side, UnitCluster
from core_rules import (
    apply_wounds, is_unit_in_range_of_target, needs_casualty_morale_test,
    perform_morale_test, update_cover,
)
from geometry import clusters_colliding, direction


@dataclass
class MeleeResult:
    """Damage dealt each way and who won the combat"""
    attacker_damage: int = 0
    defender_damage: int = 0
    winner: Optional[Side] = None


def select_defender_for_saves(cluster: UnitCluster) -> Optional[SubUnitDefinition]:
    """
    Statline the target saves with.

    The last sub-unit of a joined group, unless a living hero is joined to
    living non-heroes, in which case the first living non-hero saves.
    """
    if not cluster.group.sub_units:
        return None
    defender = cluster.group.sub_units[-1]

    hero_alive = any(s.is_hero and s.alive for s in cluster.sub_unit_states)
    first_other = next((s for s in cluster.sub_unit_states if not s.is_hero and s.alive), None)
    if hero_alive and first_other:
        defender = first_other.definition
    return defender


def _apply_and_report(state: GameState, target: UnitCluster, packets: List[int],
                      destroyed_text: str, suffix: str = "") -> int:
    """Apply packets to target, log losses, remove it if wiped out; returns models killed"""
    wounds = apply_wounds(target, packets)
    if wounds.models_killed > 0:
        state.log('status', f"  {target.name} lost {wounds.models_killed} models{suffix}.",
                  models_killed=wounds.models_killed, side=target.side)
    state.log('status', f"{target.name} now has {target.current_models}/{target.total_models} "
              f"models remaining{suffix}.", side=target.side)

    if target.current_models <= 0:
        state.log('status', f"{target.name} {destroyed_text}", side=target.side)
        state.remove_cluster(target)
    else:
        update_cover(state, target)
    state.notify_changed()
    return wounds.models_killed


# ============================================================================
# SHOOTING
# ============================================================================

def shootable_weapons(shooter: UnitCluster, target: UnitCluster) -> List[Tuple[SubUnitDefinition, Weapon]]:
    """Ranged weapons whose range reaches the target's nearest model"""
    weapons = []
    for sub_state in shooter.sub_unit_states:
        for weapon in sub_state.effective_weapons:
            if weapon.range > 0 and is_unit_in_range_of_target(shooter, target, weapon.range):
                weapons.append((sub_state.definition, weapon))
    return weapons


def execute_shooting(state: GameState, shooter: UnitCluster, target: UnitCluster,
                     context: Optional[ActionContext] = None) -> int:
    """Shoot every weapon in range at target; returns total damage inflicted"""
    context = context or ActionContext()
    if shooter is None or target is None or not shooter.group.sub_units:
        state.log('status', f"{shooter.name if shooter else 'Shooter'} cannot perform shoot action.")
        return 0

    defender = select_defender_for_saves(target)
    if defender is None:
        state.log('status', f"Target {target.name} has no sub-units to be targeted.")
        return 0

    weapons = shootable_weapons(shooter, target)
    if not weapons:
        state.log('shooting', f"{shooter.name} has no weapons in range of {target.name}.")
        return 0

    lines = [f"{shooter.name} shoots at {target.name}:"]
    packets: List[int] = []
    for index, (sub_unit, weapon) in enumerate(weapons):
        result = resolve_attack(
            sub_unit, weapon, defender, target.name, target.current_models, context, state.dice,
            target_in_cover=target.in_cover, attacker_fatigued=False, attacker_group=shooter.group,
        )
        lines.extend(result.log)
        packets.extend(result.wound_packets)
        if index < len(weapons) - 1:
            lines.append("   ")

    damage = sum(packets)
    state.log('shooting', "\n".join(lines), damage_dealt=damage)

    if not packets:
        state.log('shooting', f"  No damage inflicted on {target.name}.")
        return 0

    _apply_and_report(state, target, packets, "DESTROYED!")
    if target.current_models > 0:
        survivor = next((s for s in target.sub_unit_states if s.alive), None)
        if survivor:
            state.log('status', f"  Current model in {survivor.name} (Tough {survivor.wounds_per_model}) "
                      f"has {survivor.wounds_on_current} wounds.", side=target.side)
        if needs_casualty_morale_test(target):
            perform_morale_test(state, target, "due to taking heavy casualties from shooting", False)
    return damage


# ============================================================================
# MELEE
# ============================================================================

def _strike(state: GameState, striker: UnitCluster, target: UnitCluster, save_profile: SubUnitDefinition,
            context: ActionContext, fatigued: bool) -> Tuple[int, List[int], List[str]]:
    """Every living sub-unit swings its melee weapons; returns (weapons used, packets, log)"""
    used = 0
    packets: List[int] = []
    lines: List[str] = []
    for sub_state in striker.sub_unit_states:
        if not sub_state.alive:
            continue
        for weapon in sub_state.effective_weapons:
            if not weapon.is_melee:
                continue
            used += 1
            result = resolve_attack(
                sub_state.definition, weapon, save_profile, target.name, target.current_models,
                context, state.dice, target_in_cover=False, attacker_fatigued=fatigued,
                attacker_group=striker.group,
            )
            lines.extend(result.log)
            packets.extend(result.wound_packets)
    return used, packets, lines


def fear_bonus(cluster: UnitCluster) -> int:
    return sum(s.definition.special.fear for s in cluster.sub_unit_states if s.alive)


def execute_melee(state: GameState, attacker: UnitCluster, defender: UnitCluster,
                  action_name: str = "Charge") -> MeleeResult:
    """
    Full melee exchange: strike, return strike, then combat resolution.

    The return strike saves against the attacker's first sub-unit.
    """
    result = MeleeResult()
    if attacker is None or defender is None or not attacker.group.sub_units:
        state.log('status', f"{attacker.name if attacker else 'Attacker'} cannot perform melee action.")
        return result

    save_profile = select_defender_for_saves(defender)
    if save_profile is None:
        state.log('status', f"Target {defender.name} has no sub-units to be targeted in melee.")
        return result

    context = ActionContext(is_melee=True, is_charge=action_name == "Charge")
    attacker_fatigued = attacker.has_fought or attacker.shaken
    used, packets, lines = _strike(state, attacker, defender, save_profile, context, attacker_fatigued)

    if used == 0:
        state.log('melee', f"{attacker.name} has no melee weapons to use against {defender.name}.")
        return result

    attacker.has_fought = True
    result.attacker_damage = sum(packets)
    state.log('melee', "\n".join([f"{attacker.name} attacks {defender.name} in melee (Action: {action_name}):"] +
                                 lines), damage_dealt=result.attacker_damage)
    if packets:
        _apply_and_report(state, defender, packets, "DESTROYED in melee!")
    else:
        state.log('melee', f"  No damage inflicted on {defender.name}.")

    # Return strike
    if defender.current_models > 0:
        state.log('melee', f"--- {defender.name} strikes back! ---", side=defender.side)
        defender_fatigued = defender.has_fought or defender.shaken
        defender.has_fought = True
        used, packets, lines = _strike(
            state, defender, attacker, attacker.group.sub_units[0],
            ActionContext(is_melee=True), defender_fatigued,
        )
        if used > 0:
            result.defender_damage = sum(packets)
            state.log('melee', "\n".join(lines), damage_dealt=result.defender_damage, side=defender.side)
            if packets:
                _apply_and_report(state, attacker, packets, "DESTROYED by return strike!",
                                  suffix=" after return strike")
            else:
                state.log('melee', f"  No damage inflicted on {attacker.name} by return strike.",
                          side=defender.side)

    # Combat resolution
    if attacker.current_models > 0 and defender.current_models > 0:
        attacker_score = result.attacker_damage + fear_bonus(attacker)
        defender_score = result.defender_damage + fear_bonus(defender)
        state.log('melee', "--- Melee Combat Resolution ---")
        if attacker_score > defender_score:
            result.winner = attacker.side
            state.log('melee', f"  {attacker.name} wins the melee!")
            perform_morale_test(state, defender, "for losing the melee combat", True)
        elif defender_score > attacker_score:
            result.winner = defender.side
            state.log('melee', f"  {defender.name} wins the melee!")
            perform_morale_test(state, attacker, "for losing the melee combat", True)
        else:
            state.log('melee', "  Melee is a tie. No morale tests from combat outcome.")

    return result


def resolve_post_charge_separation(state: GameState, charger: UnitCluster, target: UnitCluster):
    """Push the charged unit back 1 inch if the two footprints still overlap"""
    if charger is None or target is None or target.current_models <= 0:
        return
    if not clusters_colliding(charger, target, -0.1):
        return

    dx, dy, length = direction(charger.center, target.center)
    if length == 0:
        dx, dy = 1.0, 0.0
    start = target.center
    target.translate(dx * 1.0, dy * 1.0)
    update_cover(state, target)
    state.log('movement', f'{target.name} pushed back 1" after charge.', side=target.side)
    state.notify_changed(MovementEvent(target.id, start, target.center, 1.0))
