"""
Tests for wound allocation, morale, objective control, movement values and cover
"""

from army_parser import Weapon
from battlefield import Objective, Side, TerrainFeature
from core_rules import (
    MoraleOutcome, advance_distance, apply_wounds, charge_range, is_in_cover,
    is_objective_under_ai_control, needs_casualty_morale_test, perform_morale_test, rush_distance,
    update_objective_control,
)
from geometry import Position

# ============================================================================
# WOUNDS
# ============================================================================


def _model_total(cluster):
    return sum(s.current_models for s in cluster.sub_unit_states)


def test_wounds_hit_non_heroes_before_heroes(make_cluster, make_sub_unit):
    hero = make_sub_unit(name="Sergeant", hero=True, tough=3)
    squad = make_sub_unit(name="Squad", models=3)
    cluster = make_cluster([hero, squad])

    result = apply_wounds(cluster, [1, 1, 2, 1])

    assert result.models_killed == 3
    assert cluster.current_models == _model_total(cluster) == 1
    assert cluster.sub_unit_states[1].current_models == 0
    assert cluster.sub_unit_states[0].wounds_on_current == 1


def test_model_count_invariant_after_every_call(make_cluster, make_sub_unit):
    cluster = make_cluster([make_sub_unit(models=4, tough=2), make_sub_unit(models=2, tough=1)])
    for packets in ([1], [3, 1], [1, 1, 1], [2], [5, 5, 5, 5]):
        apply_wounds(cluster, packets)
        assert cluster.current_models == _model_total(cluster)
    assert cluster.current_models == 0


def test_lower_tough_sub_unit_takes_wounds_first(make_cluster, make_sub_unit):
    cluster = make_cluster([make_sub_unit(name="Big", models=1, tough=3), make_sub_unit(name="Small", models=1)])
    apply_wounds(cluster, [1])
    assert [s.current_models for s in cluster.sub_unit_states] == [1, 0]


def test_excess_packets_are_wasted(make_cluster, make_sub_unit):
    cluster = make_cluster(make_sub_unit())
    result = apply_wounds(cluster, [1, 1, 1])
    assert result.models_killed == 1
    assert result.wasted_packets == 2
    assert cluster.current_models == 0


def test_loadout_shrinks_with_casualties(make_cluster, make_sub_unit):
    rifle = Weapon(name="Rifle", amount=5, range=24, attacks=1)
    cluster = make_cluster(make_sub_unit(models=5, weapons=[rifle]))
    apply_wounds(cluster, [1, 1])
    assert cluster.sub_unit_states[0].effective_weapons[0].amount == 3
    assert len(cluster.models) == 3


def test_casualty_test_thresholds(make_cluster, make_sub_unit):
    squad = make_cluster(make_sub_unit(models=4))
    apply_wounds(squad, [1])
    assert not needs_casualty_morale_test(squad)
    apply_wounds(squad, [1])
    assert needs_casualty_morale_test(squad)

    monster = make_cluster(make_sub_unit(tough=6))
    apply_wounds(monster, [2])
    assert not needs_casualty_morale_test(monster)
    apply_wounds(monster, [1])
    assert needs_casualty_morale_test(monster)


# ============================================================================
# MORALE
# ============================================================================

def test_morale_pass_and_fail(state, dice, make_cluster, make_sub_unit):
    cluster = make_cluster(make_sub_unit(quality=4))

    dice.queue_d6(5)
    assert perform_morale_test(state, cluster) == MoraleOutcome.PASSED
    assert not cluster.shaken

    dice.queue_d6(2)
    assert perform_morale_test(state, cluster) == MoraleOutcome.SHAKEN
    assert cluster.shaken


def test_shaken_unit_failing_again_is_removed(state, dice, make_cluster, make_sub_unit):
    cluster = make_cluster(make_sub_unit(models=5), side=Side.DEFENDERS)
    cluster.shaken = True

    assert perform_morale_test(state, cluster, "second failure") == MoraleOutcome.DESTROYED
    assert cluster.current_models == 0
    assert cluster not in state.units(Side.DEFENDERS)


def test_fearless_reroll(state, dice, make_cluster, make_sub_unit):
    cluster = make_cluster(make_sub_unit(models=3, fearless=True))
    dice.queue_d6(2, 4)
    assert perform_morale_test(state, cluster) == MoraleOutcome.PASSED


def test_half_strength_melee_failure_routs(state, dice, make_cluster, make_sub_unit):
    cluster = make_cluster(make_sub_unit(models=2))
    apply_wounds(cluster, [1])
    dice.queue_d6(2)

    assert perform_morale_test(state, cluster, "lost melee", melee_test=True) == MoraleOutcome.ROUTED
    assert not state.is_on_board(cluster)


def test_hold_the_line_takes_wounds_instead(state, dice, make_cluster, make_sub_unit):
    cluster = make_cluster(make_sub_unit(tough=3, hold_the_line=True))
    dice.queue_d6(2, 1, 5, 6)

    assert perform_morale_test(state, cluster) == MoraleOutcome.PASSED
    assert not cluster.shaken
    assert cluster.sub_unit_states[0].wounds_on_current == 1


def test_robot_majority_takes_wounds_instead_of_shaking(state, dice, make_cluster, make_sub_unit):
    drones = make_cluster(make_sub_unit(name="Drones", models=3, robot=True))
    # failed morale, then one d6 per remaining wound: only the 1 hurts
    dice.queue_d6(2, 1, 5, 6)

    assert perform_morale_test(state, drones) == MoraleOutcome.PASSED
    assert not drones.shaken
    assert drones.current_models == 2
    assert _model_total(drones) == 2


def test_robot_minority_is_shaken(state, dice, make_cluster, make_sub_unit):
    mixed = make_cluster([make_sub_unit(name="Drone", robot=True), make_sub_unit(name="Pilot")])
    dice.queue_d6(2)

    assert perform_morale_test(state, mixed) == MoraleOutcome.SHAKEN
    assert mixed.shaken
    assert mixed.current_models == 2
    assert dice.rolled == [2]


# ============================================================================
# OBJECTIVES
# ============================================================================

def test_objective_control_by_majority(state, make_cluster, make_sub_unit):
    objective = Objective(name="Objective 1", position=Position(36, 24))
    state.objectives = [objective]
    make_cluster(make_sub_unit(), Side.ATTACKERS, 35, 23)
    make_cluster(make_sub_unit(), Side.ATTACKERS, 37, 25)
    make_cluster(make_sub_unit(), Side.DEFENDERS, 36, 26)

    assert is_objective_under_ai_control(state, objective, Side.ATTACKERS)
    assert not is_objective_under_ai_control(state, objective, Side.DEFENDERS)


def test_shaken_units_do_not_count(state, make_cluster, make_sub_unit):
    objective = Objective(name="Objective 1", position=Position(36, 24))
    state.objectives = [objective]
    make_cluster(make_sub_unit(), Side.ATTACKERS, 36, 23)
    defender = make_cluster(make_sub_unit(), Side.DEFENDERS, 36, 25)
    defender.shaken = True

    update_objective_control(state)
    assert objective.controller == Side.ATTACKERS


def test_contested_objective_resets(state, make_cluster, make_sub_unit):
    objective = Objective(name="Objective 1", position=Position(36, 24), controller=Side.DEFENDERS)
    state.objectives = [objective]
    make_cluster(make_sub_unit(), Side.ATTACKERS, 36, 23)
    make_cluster(make_sub_unit(), Side.DEFENDERS, 36, 25)

    update_objective_control(state)
    assert objective.controller is None
    assert state.battle_log[-1].event_type == 'objective'


def test_unattended_objective_keeps_controller(state):
    objective = Objective(name="Objective 1", position=Position(36, 24), controller=Side.ATTACKERS)
    state.objectives = [objective]
    update_objective_control(state)
    assert objective.controller == Side.ATTACKERS


# ============================================================================
# MOVEMENT AND COVER
# ============================================================================

def test_move_values(make_cluster, make_sub_unit):
    normal = make_cluster(make_sub_unit())
    fast = make_cluster(make_sub_unit(fast=True))
    slow = make_cluster(make_sub_unit(slow=True))
    keyword_fast = make_cluster(make_sub_unit(keywords=["Fast"]))

    assert (charge_range(normal), rush_distance(normal), advance_distance(normal)) == (12, 12, 6)
    assert (charge_range(fast), rush_distance(fast), advance_distance(fast)) == (16, 16, 8)
    assert (charge_range(slow), rush_distance(slow), advance_distance(slow)) == (8, 8, 4)
    assert advance_distance(keyword_fast) == 8


def test_cover_needs_majority_of_models(make_cluster, make_sub_unit):
    cluster = make_cluster(make_sub_unit(models=4), x=10, y=10)
    ruin = TerrainFeature(name="Ruin", x=5, y=5, width=10, height=10, cover=True)
    wall = TerrainFeature(name="Wall", x=5, y=5, width=10, height=10, blocking=True)
    sliver = TerrainFeature(name="Sliver", x=0, y=0, width=9.5, height=20, cover=True)

    assert is_in_cover(cluster, [ruin])
    assert not is_in_cover(cluster, [wall])
    # Only the left column of the 2x2 grid stands inside
    assert not is_in_cover(cluster, [sliver])
