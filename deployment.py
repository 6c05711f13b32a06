"""
Deployment
Board setup before the first round: objectives, terrain, roll-off and unit placement
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple

from army_parser import ArmyList, UnitGroup
from battle_simulator import SimulationConfig
from battlefield import GameState, Objective, Side, UnitCluster
from core_rules import update_cover
from geometry import (
    BOARD_HEIGHT, BOARD_WIDTH, DEPLOYMENT_MARGIN, MODEL_DIAMETER, Footprint, Position,
    clusters_colliding, direction, footprint_size,
)
from terrain_manager import TerrainManager
from unit_factory import create_unit_cluster

PLACEMENT_ROWS = 20  # Rows tried, stepping back from the deployment line
PLACEMENT_COLUMNS = 10  # Random x positions tried per row
PLACEMENT_SEPARATION = 0.5
PLACEMENT_RETRY_LIMIT = 5  # Failed placements before a unit is left in reserve
SCOUT_MOVE = 12.0


@dataclass
class DeploymentPlan:
    """Who deploys first, on which edge, and what is left to place"""
    first: Side
    edges: Dict[Side, str]  # 'top' or 'bottom'
    queues: Dict[Side, Deque[UnitGroup]] = field(default_factory=dict)
    scouts: Dict[Side, Deque[UnitGroup]] = field(default_factory=dict)
    not_deployed: List[str] = field(default_factory=list)


def is_scout_group(group: UnitGroup) -> bool:
    """Every sub-unit has Scout"""
    return bool(group.sub_units) and all(su.special.scout for su in group.sub_units)


def deployment_cost(group: UnitGroup) -> int:
    return group.sub_units[0].points if group.sub_units else 0


# ============================================================================
# OBJECTIVES AND TERRAIN
# ============================================================================

def random_objectives(state: GameState) -> List[Objective]:
    """D3+2 markers anywhere across the width, inside the no-man's-land band"""
    count = state.dice.d3() + 2
    band_top = DEPLOYMENT_MARGIN
    band_bottom = BOARD_HEIGHT - DEPLOYMENT_MARGIN
    return [
        Objective(
            name=f"Objective {i + 1}",
            position=Position(state.dice.uniform(0, BOARD_WIDTH), state.dice.uniform(band_top, band_bottom)),
        )
        for i in range(count)
    ]


def setup_objectives(state: GameState, objective_set: Optional[str] = None,
                     manager: Optional[TerrainManager] = None):
    """Place objectives from a named preset, or randomly when no preset is given"""
    if objective_set:
        manager = manager or TerrainManager()
        state.objectives = manager.get_objectives(objective_set)
    else:
        state.objectives = random_objectives(state)
    state.log('deployment', f"--- Placed {len(state.objectives)} objective markers. ---")


def setup_terrain(state: GameState, layout_name: Optional[str] = None,
                  manager: Optional[TerrainManager] = None):
    if not layout_name:
        state.terrain = []
        return
    manager = manager or TerrainManager()
    state.terrain = manager.get_terrain_layout(layout_name)
    state.log('deployment', f"--- Placed {len(state.terrain)} terrain features "
              f"({manager.get_layout_description(layout_name)}). ---")


# ============================================================================
# PLACEMENT
# ============================================================================

def find_valid_placement_in_section(group: UnitGroup, edge: str, existing: List[UnitCluster],
                                    section: int, state: GameState) -> Optional[Tuple[Position, Position]]:
    """
    Find a free spot for a group inside one third of its deployment zone.

    Rows start on the deployment line and step back toward the board edge by
    half a model diameter. Each row tries random x positions that keep the
    whole footprint inside the section. The search ends at the first row
    that would push the footprint off the board.

    Returns:
        (center, origin) of the placed footprint, or None
    """
    model_count = group.total_models or 1
    width, height = footprint_size(model_count)
    half_w, half_h = width / 2, height / 2

    if edge == 'top':
        y_start, y_step = DEPLOYMENT_MARGIN - half_h, -MODEL_DIAMETER / 2
    else:
        y_start, y_step = BOARD_HEIGHT - DEPLOYMENT_MARGIN + half_h, MODEL_DIAMETER / 2

    section_width = BOARD_WIDTH / 3
    x_min = section * section_width
    x_max = (section + 1) * section_width

    for row in range(PLACEMENT_ROWS):
        cy = y_start + row * y_step
        # Footprint must stay on the board
        if cy - half_h < 0 or cy + half_h > BOARD_HEIGHT:
            break
        for _ in range(PLACEMENT_COLUMNS):
            cx = x_min + section_width * state.dice.uniform(0, 1)
            if cx < x_min + half_w or cx > x_max - half_w:
                continue
            candidate = Footprint(center=Position(cx, cy), width=width, height=height)
            if not any(clusters_colliding(candidate, other, PLACEMENT_SEPARATION) for other in existing):
                return Position(cx, cy), Position(cx - half_w, cy - half_h)
    return None


def move_scout_forward(state: GameState, cluster: UnitCluster):
    """Scouts move up to 12 inches straight at the nearest objective after deploying"""
    if not state.objectives:
        return
    nearest = min(state.objectives, key=lambda o: cluster.center.distance_to(o.position))
    dx, dy, dist = direction(cluster.center, nearest.position)
    move = min(SCOUT_MOVE, dist)
    if move <= 0:
        return
    cluster.translate(dx * move, dy * move)
    update_cover(state, cluster)
    state.log('deployment', f'   > Scout {cluster.name} moves {move:.1f}" towards objective.', side=cluster.side)


def plan_deployment(state: GameState, armies: Dict[Side, ArmyList]) -> DeploymentPlan:
    """Roll off for first placement and split each army into main and scout queues"""
    winner = Side.ATTACKERS if state.dice.coin() else Side.DEFENDERS
    plan = DeploymentPlan(first=winner, edges={winner: 'top', winner.opponent: 'bottom'})

    for side, army in armies.items():
        groups = list(army.units.values())
        plan.queues[side] = deque(sorted((g for g in groups if not is_scout_group(g)), key=deployment_cost))
        plan.scouts[side] = deque(g for g in groups if is_scout_group(g))

    state.log('deployment', f"--- Starting Deployment Phase. {winner.value} to place first. ---", side=winner)
    return plan


def _deploy_phase(state: GameState, plan: DeploymentPlan, queues: Dict[Side, Deque[UnitGroup]],
                  scout_phase: bool):
    """Alternate single placements until both queues are empty"""
    player = plan.first
    failures: Dict[int, int] = {}

    while queues[Side.ATTACKERS] or queues[Side.DEFENDERS]:
        if not queues[player]:
            player = player.opponent
            continue

        group = queues[player].popleft()
        section = state.dice.d3() - 1
        placement = find_valid_placement_in_section(group, plan.edges[player], state.all_units(), section, state)
        cluster = None
        if placement:
            center, origin = placement
            cluster = create_unit_cluster(group, player, center, origin)

        if cluster is not None:
            state.add_cluster(cluster)
            update_cover(state, cluster)
            state.log('deployment', f"{cluster.name} deployed on the {plan.edges[player]} edge.", side=player)
            if scout_phase:
                move_scout_forward(state, cluster)
            state.notify_changed()
        else:
            failures[id(group)] = failures.get(id(group), 0) + 1
            if failures[id(group)] >= PLACEMENT_RETRY_LIMIT:
                state.log('deployment', f"Warning: Could not place {group.name}; it is not deployed.", side=player)
                plan.not_deployed.append(group.name)
            else:
                state.log('deployment', f"Warning: Could not place {group.name}, re-queueing.", side=player)
                queues[player].appendleft(group)

        player = player.opponent


def deploy_armies(state: GameState, attackers: ArmyList, defenders: ArmyList) -> DeploymentPlan:
    """
    Place both armies on the board.

    Non-scout groups go first, cheapest first, alternating sides from the
    roll-off winner. Scout groups follow the same way and then move toward
    the nearest objective.
    """
    plan = plan_deployment(state, {Side.ATTACKERS: attackers, Side.DEFENDERS: defenders})
    _deploy_phase(state, plan, plan.queues, scout_phase=False)

    if plan.scouts[Side.ATTACKERS] or plan.scouts[Side.DEFENDERS]:
        state.log('deployment', "--- Main deployment complete. Starting Scout deployment. ---")
        _deploy_phase(state, plan, plan.scouts, scout_phase=True)

    state.deployment_complete = True
    state.log('deployment', "--- All units deployed. Deployment Complete! ---")
    state.notify_changed()
    return plan


def setup_battle(state: GameState, attackers: ArmyList, defenders: ArmyList,
                 config: Optional[SimulationConfig] = None,
                 manager: Optional[TerrainManager] = None) -> DeploymentPlan:
    """Terrain, objectives and deployment for a fresh game"""
    config = config or SimulationConfig()
    if (config.terrain_layout or config.objective_set) and manager is None:
        manager = TerrainManager()

    state.reset()
    state.army_names[Side.ATTACKERS] = attackers.name
    state.army_names[Side.DEFENDERS] = defenders.name

    setup_terrain(state, config.terrain_layout, manager)
    setup_objectives(state, config.objective_set, manager)
    return deploy_armies(state, attackers, defenders)
