"""
Tests for unit creation, role classification and loadout recomputation
"""

from army_parser import UnitGroup, Weapon, parse_unit
from battlefield import Side, SubUnitState, UnitType
from geometry import Position
from unit_factory import (
    classify_unit_type, create_unit_cluster, max_weapon_range, recompute_loadout, refresh_loadout,
    relayout_models,
)

RIFLE = Weapon(name="Rifle", amount=4, range=24, attacks=1)
PLASMA = Weapon(name="Plasma", amount=1, range=24, attacks=1, ap=4)
CLAWS = Weapon(name="Claws", amount=1, attacks=3)


def _loadout(weapons):
    return {w.name: w.amount for w in weapons}


def test_full_strength_keeps_every_weapon(make_sub_unit):
    squad = make_sub_unit(models=5, weapons=[RIFLE, PLASMA])
    assert _loadout(recompute_loadout(squad, 5)) == {"Rifle": 4, "Plasma": 1}


def test_casualties_drop_weakest_slots_first(make_sub_unit):
    squad = make_sub_unit(models=5, weapons=[RIFLE, PLASMA])
    assert _loadout(recompute_loadout(squad, 3)) == {"Rifle": 2, "Plasma": 1}
    assert _loadout(recompute_loadout(squad, 1)) == {"Plasma": 1}
    assert recompute_loadout(squad, 0) == []


def test_recompute_does_not_touch_definition(make_sub_unit):
    squad = make_sub_unit(models=5, weapons=[RIFLE, PLASMA])
    recompute_loadout(squad, 2)
    assert [w.amount for w in squad.weapons] == [4, 1]
    assert RIFLE.amount == 4


def test_refresh_loadout_is_memoised(make_sub_unit):
    state = SubUnitState(definition=make_sub_unit(models=5, weapons=[RIFLE, PLASMA]), current_models=2)
    first = refresh_loadout(state)
    second = refresh_loadout(state)
    assert first is second
    assert state.effective_weapons is first
    assert 2 in state.loadout_cache


def test_classification(make_sub_unit):
    def group(*weapons):
        return UnitGroup(name="G", sub_units=[make_sub_unit(weapons=list(weapons))])

    assert classify_unit_type(group(CLAWS)) == UnitType.MELEE
    assert classify_unit_type(group(RIFLE)) == UnitType.SHOOTING
    assert classify_unit_type(group(Weapon(name="Pistol", range=12), CLAWS)) == UnitType.MELEE_FOCUS
    assert classify_unit_type(group(Weapon(name="Knife"), RIFLE)) == UnitType.SHOOTING_FOCUS
    # Unarmed units tie at zero and fall to the shooting side
    assert classify_unit_type(group()) == UnitType.SHOOTING_FOCUS


def test_max_weapon_range(make_sub_unit):
    group = UnitGroup(name="G", sub_units=[make_sub_unit(weapons=[RIFLE]),
                                           make_sub_unit(weapons=[Weapon(name="Cannon", range=36)])])
    assert max_weapon_range(group) == 36


def test_create_unit_cluster(make_sub_unit):
    hero = make_sub_unit(name="Captain", hero=True, tough=3, weapons=[CLAWS])
    squad = make_sub_unit(name="Squad", models=5, weapons=[RIFLE])
    group = UnitGroup(name="Captain + Squad", sub_units=[hero, squad])

    cluster = create_unit_cluster(group, Side.DEFENDERS, Position(30, 30), Position(28, 28))

    assert cluster.side == Side.DEFENDERS
    assert cluster.total_models == cluster.current_models == 6
    assert len(cluster.models) == 6
    assert cluster.center == Position(30, 30)
    assert cluster.best_range == 24
    assert [s.is_hero for s in cluster.sub_unit_states] == [True, False]
    assert cluster.sub_unit_states[0].wounds_per_model == 3
    assert cluster.sub_unit_states[1].wounds_per_model == 1


def test_empty_group_makes_no_cluster():
    assert create_unit_cluster(UnitGroup(name="Empty"), Side.ATTACKERS, Position(0, 0), Position(0, 0)) is None


def test_relayout_keeps_centre(make_cluster, make_sub_unit):
    cluster = make_cluster(make_sub_unit(models=9), x=20, y=20)
    cluster.current_models = 4
    relayout_models(cluster)
    assert cluster.center == Position(20, 20)
    assert len(cluster.models) == 4
    assert cluster.width < 3 * 1.26 + 1e-9


def test_zero_model_header_counts_as_one_model_everywhere():
    lone = parse_unit("Lone Walker [0] Q4+ D3+ | 60pts | Tough(6)", '1x Cannon(30", A2, AP(2))')
    assert lone.models == 1

    group = UnitGroup(name=lone.name, sub_units=[lone])
    cluster = create_unit_cluster(group, Side.ATTACKERS, Position(10, 10), Position(9.37, 9.37))

    assert group.total_models == 1
    assert cluster.total_models == cluster.current_models == 1
    assert cluster.current_models == sum(s.current_models for s in cluster.sub_unit_states)
    assert len(cluster.models) == 1
