"""
Tests for the shooting and melee orchestrators
"""

import pytest

from ai_engine import Action, AIDecision, AIDecisionEngine
from army_parser import Weapon
from battlefield import Side
from combat_actions import (
    execute_melee, execute_shooting, resolve_post_charge_separation, select_defender_for_saves,
)
from core_rules import apply_wounds

CLAWS = Weapon(name="Claws", attacks=3)
KNIFE = Weapon(name="Knife", attacks=1)
RIFLE = Weapon(name="Rifle", range=24, attacks=2)


def test_charge_kills_lone_model_and_wastes_excess_packets(state, dice, make_cluster, make_sub_unit):
    monster = make_cluster(make_sub_unit(name="Monster", quality=4, defense=4, tough=3, weapons=[CLAWS]),
                           Side.ATTACKERS, 30, 24)
    victim = make_cluster(make_sub_unit(name="Victim", defense=4), Side.DEFENDERS, 36, 24)
    state.current_turn = Side.ATTACKERS
    dice.queue_d6(6, 6, 6, 1, 1, 1)

    AIDecisionEngine(state).execute(monster, AIDecision(Action.CHARGE, victim))

    assert victim.current_models == 0
    assert victim not in state.units(Side.DEFENDERS)
    assert monster.activated and monster.has_fought
    assert any("DESTROYED in melee" in e.description for e in state.battle_log)
    assert dice.rolled == [6, 6, 6, 1, 1, 1]


def test_two_of_three_packets_are_wasted_on_a_single_model(make_cluster, make_sub_unit):
    victim = make_cluster(make_sub_unit(name="Victim", defense=4), Side.DEFENDERS)
    assert apply_wounds(victim, [1, 1, 1]).wasted_packets == 2


def test_melee_winner_forces_morale_on_loser(state, dice, make_cluster, make_sub_unit):
    attacker = make_cluster(make_sub_unit(name="Raider", weapons=[KNIFE]), Side.ATTACKERS, 30, 24)
    defender = make_cluster(make_sub_unit(name="Pair", models=2, quality=4, weapons=[KNIFE]),
                            Side.DEFENDERS, 31.5, 24)
    # hit, failed save, return strike misses, morale roll fails at half strength
    dice.queue_d6(6, 1, 1, 2)

    result = execute_melee(state, attacker, defender)

    assert result.attacker_damage == 1
    assert result.defender_damage == 0
    assert result.winner == Side.ATTACKERS
    assert not state.is_on_board(defender)
    assert defender.has_fought


def test_return_strike_saves_against_charger_first_profile(state, dice, make_cluster, make_sub_unit):
    charger = make_cluster([make_sub_unit(name="Armoured", defense=2, weapons=[KNIFE]),
                            make_sub_unit(name="Light", defense=6, models=3)], Side.ATTACKERS, 30, 24)
    defender = make_cluster(make_sub_unit(name="Guard", models=3, weapons=[KNIFE]), Side.DEFENDERS, 33, 24)
    # charger misses; return strike hits and the 2+ save succeeds on a 2
    dice.queue_d6(1, 6, 2)

    result = execute_melee(state, charger, defender)

    assert result.defender_damage == 0
    assert charger.current_models == 4


def test_fatigued_attacker_only_hits_on_six(state, dice, make_cluster, make_sub_unit):
    attacker = make_cluster(make_sub_unit(quality=2, weapons=[KNIFE]), Side.ATTACKERS, 30, 24)
    defender = make_cluster(make_sub_unit(models=5), Side.DEFENDERS, 32, 24)
    attacker.has_fought = True
    dice.queue_d6(5)

    result = execute_melee(state, attacker, defender, "Fight")
    assert result.attacker_damage == 0
    assert defender.current_models == 5


def test_no_melee_weapons(state, make_cluster, make_sub_unit):
    attacker = make_cluster(make_sub_unit(weapons=[RIFLE]), Side.ATTACKERS, 30, 24)
    defender = make_cluster(make_sub_unit(), Side.DEFENDERS, 32, 24)
    result = execute_melee(state, attacker, defender)
    assert result.winner is None
    assert not attacker.has_fought


def test_shooting_out_of_range(state, make_cluster, make_sub_unit):
    shooter = make_cluster(make_sub_unit(weapons=[RIFLE]), Side.ATTACKERS, 5, 24)
    target = make_cluster(make_sub_unit(), Side.DEFENDERS, 60, 24)
    assert execute_shooting(state, shooter, target) == 0
    assert "no weapons in range" in state.battle_log[-1].description


def test_shooting_casualties_trigger_morale(state, dice, make_cluster, make_sub_unit):
    shooter = make_cluster(make_sub_unit(weapons=[RIFLE]), Side.ATTACKERS, 20, 24)
    target = make_cluster(make_sub_unit(models=2, quality=4), Side.DEFENDERS, 30, 24)
    # two hits, one failed save, morale roll of 2 fails
    dice.queue_d6(6, 6, 1, 6, 2)

    assert execute_shooting(state, shooter, target) == 1
    assert target.current_models == 1
    assert target.shaken


def test_defender_profile_for_saves(make_cluster, make_sub_unit):
    hero = make_sub_unit(name="Hero", hero=True, defense=3)
    guard = make_sub_unit(name="Guard", defense=5, models=3)
    joined = make_cluster([hero, guard])
    assert select_defender_for_saves(joined).name == "Guard"

    reversed_group = make_cluster([guard, make_sub_unit(name="Heavy", defense=2)])
    assert select_defender_for_saves(reversed_group).name == "Heavy"


def test_post_charge_separation_pushes_target(state, make_cluster, make_sub_unit):
    charger = make_cluster(make_sub_unit(), Side.ATTACKERS, 30, 24)
    target = make_cluster(make_sub_unit(), Side.DEFENDERS, 30.5, 24)
    movements = []
    state.listeners.append(lambda s, movement: movements.append(movement))

    resolve_post_charge_separation(state, charger, target)

    assert target.center.x == pytest.approx(31.5)
    assert target.models[0].x == pytest.approx(31.5)
    assert movements[-1].cluster_id == target.id
