"""
AI Decision Engine
Chooses one action per unit activation and carries it out
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple

from attack_sequence import ActionContext
from battlefield import (
    GameState, MovementEvent, Objective, Target, UnitCluster, UnitType, Waypoint, target_position,
)
from combat_actions import execute_melee, execute_shooting, resolve_post_charge_separation
from core_rules import (
    advance_distance, charge_range, is_any_friendly_near_objective, is_objective_under_ai_control,
    rush_distance, update_cover,
)
from geometry import (
    MODEL_DIAMETER, OBJECTIVE_RANGE, Footprint, Position, direction, effective_radius, is_in_range,
    min_model_distance, point_to_segment_distance, shifted_footprint,
)

logger = logging.getLogger(__name__)

PATH_BLOCK_DISTANCE = 6.0  # Enemy model this close to the path blocks it
STANDOFF_GAP = 1.0  # Gap kept from an enemy when not charging


class Action(Enum):
    """What a unit does with its activation"""
    IDLE = "Idle"
    HOLD = "Hold"
    ADVANCE = "Advance"
    RUSH = "Rush"
    CHARGE = "Charge"


@dataclass
class AIDecision:
    """The action chosen for one activation"""
    action: Action
    target: Optional[Target] = None
    shoot_target: Optional[UnitCluster] = None
    reason: str = ""


@dataclass
class AdvantageousSpot:
    """A stopping point that can shoot an enemy outside that enemy's reach"""
    position: Position
    distance: float
    target_enemy: UnitCluster


def target_name(target: Optional[Target]) -> str:
    if target is None:
        return "nothing"
    if isinstance(target, Objective):
        return f"{target.name} ({target.position.x:.1f},{target.position.y:.1f})"
    return target.name


def movement_destination(unit: UnitCluster, target: Target, base_distance: float,
                         mode: Action) -> Tuple[Position, float]:
    """
    Where a move aims and how far it may go.

    Points (objectives, waypoints) are approached directly. Enemies are
    approached to a 1 inch stand-off on Advance/Rush, or into base contact
    on a Charge.
    """
    if isinstance(target, (Objective, Waypoint)):
        point = target.position
        return point, min(base_distance, unit.center.distance_to(point))

    own_radius = effective_radius(unit)
    enemy_radius = effective_radius(target)
    dx, dy, actual = direction(unit.center, target.center)

    if mode != Action.CHARGE:
        required = own_radius + enemy_radius + STANDOFF_GAP
        if actual > required:
            point = Position(target.center.x - dx * required, target.center.y - dy * required)
            return point, min(base_distance, unit.center.distance_to(point))
        return unit.center, 0.0

    point = unit.center
    if actual > 0:
        point = Position(target.center.x - dx * enemy_radius, target.center.y - dy * enemy_radius)
    return point, min(base_distance, max(0.0, actual - (own_radius + enemy_radius)))


class AIDecisionEngine:
    """Heuristic planner for the side whose turn it is"""

    def __init__(self, state: GameState):
        self.state = state

    # ========================================================================
    # TARGET SELECTION
    # ========================================================================

    def nearest_enemies(self, unit: UnitCluster) -> List[Tuple[UnitCluster, float]]:
        """Enemies by centre distance, not-yet-activated first on ties"""
        ranked = [(enemy, unit.center.distance_to(enemy.center)) for enemy in self.state.enemy_units]
        ranked.sort(key=lambda item: (item[1], item[0].activated))
        return ranked

    def nearest_enemy(self, unit: UnitCluster) -> Optional[UnitCluster]:
        ranked = self.nearest_enemies(unit)
        return ranked[0][0] if ranked else None

    def best_shoot_target(self, shooter) -> Optional[UnitCluster]:
        """Closest enemy in range, preferring targets out of cover and not yet activated"""
        if not shooter.best_range:
            return None
        shootable = [e for e in self.state.enemy_units
                     if e.models and is_in_range(shooter, e, shooter.best_range)]
        shootable.sort(key=lambda e: (e.in_cover, e.activated, min_model_distance(shooter, e)))
        return shootable[0] if shootable else None

    def best_charge_target(self, unit: UnitCluster) -> Optional[UnitCluster]:
        """Closest enemy within charge range, not yet activated first"""
        reach = charge_range(unit)
        chargeable = [e for e in self.state.enemy_units
                      if e.models and min_model_distance(unit, e) <= reach]
        chargeable.sort(key=lambda e: (e.activated, min_model_distance(unit, e)))
        return chargeable[0] if chargeable else None

    def shoot_target_after_advance(self, unit: UnitCluster, move: float,
                                   destination: Optional[Target]) -> Optional[UnitCluster]:
        """Best shoot target from where a straight move toward destination would end"""
        if destination is None:
            return None
        dx, dy, length = direction(unit.center, target_position(destination))
        step = min(move, length)
        return self.best_shoot_target(shifted_footprint(unit, dx * step, dy * step))

    def find_advantageous_position(self, unit: UnitCluster) -> Optional[AdvantageousSpot]:
        """Longest advance that can shoot some enemy while staying outside its range"""
        if not unit.best_range:
            return None

        best = None
        move = advance_distance(unit)
        for enemy in self.state.enemy_units:
            dx, dy, dist = direction(unit.center, enemy.center)
            if dist < 0.1:
                continue
            for step in range(20, 0, -1):
                amount = min(move * step / 20, dist)
                travel = max(0.0, amount - 0.1)
                spot = Position(unit.center.x + dx * travel, unit.center.y + dy * travel)
                future = Footprint(center=spot, width=unit.width, height=unit.height, models=[spot])

                can_shoot = is_in_range(future, enemy, unit.best_range)
                enemy_can_shoot = enemy.best_range > 0 and is_in_range(enemy, future, enemy.best_range)
                if can_shoot and not enemy_can_shoot:
                    if best is None or amount > best.distance:
                        best = AdvantageousSpot(spot, amount, enemy)
                    break
        return best

    # ========================================================================
    # OBJECTIVE REASONING
    # ========================================================================

    def is_objective_contested(self, objective: Objective, unit: UnitCluster) -> bool:
        """An enemy is within 3 inches and unit is the only friendly there"""
        point = objective.position
        enemy_near = any(e.center.distance_to(point) <= OBJECTIVE_RANGE for e in self.state.enemy_units)
        friendlies = [u for u in self.state.ai_units if u.center.distance_to(point) <= OBJECTIVE_RANGE]
        return enemy_near and len(friendlies) == 1 and friendlies[0] is unit

    def actionable_objectives(self, unit: UnitCluster) -> List[Objective]:
        side = self.state.current_turn
        return [
            o for o in self.state.objectives
            if not is_objective_under_ai_control(self.state, o, side) and
            (not is_any_friendly_near_objective(self.state, o, side) or self.is_objective_contested(o, unit))
        ]

    def enemies_on_path(self, unit: UnitCluster, objective: Objective) -> bool:
        return any(
            point_to_segment_distance(model, unit.center, objective.position) <= PATH_BLOCK_DISTANCE
            for enemy in self.state.enemy_units for model in enemy.models
        )

    def can_secure_objective_with_rush(self, unit: UnitCluster, objective: Objective) -> bool:
        rush = rush_distance(unit)
        current = unit.center.distance_to(objective.position)
        if current > rush + OBJECTIVE_RANGE + unit.width / 2:
            return False
        dx, dy, _ = direction(unit.center, objective.position)
        step = min(rush, current)
        future = Position(unit.center.x + dx * step, unit.center.y + dy * step)
        return future.distance_to(objective.position) <= OBJECTIVE_RANGE + max(unit.width, unit.height) / 2

    def can_secure_objective_with_charge(self, unit: UnitCluster, objective: Objective,
                                         enemy: UnitCluster) -> bool:
        """Would charging enemy leave the unit within reach of the objective"""
        dx, dy, current = direction(unit.center, enemy.center)
        step = min(charge_range(unit), current + MODEL_DIAMETER)
        future = Position(unit.center.x + dx * step, unit.center.y + dy * step)
        return future.distance_to(objective.position) <= OBJECTIVE_RANGE + max(unit.width, unit.height) / 2

    # ========================================================================
    # DECISIONS
    # ========================================================================

    def decide(self, unit: UnitCluster) -> AIDecision:
        """Pick the action for one activation; always returns a decision"""
        if unit.shaken:
            logger.debug("%s is shaken. Idling to recover.", unit.name)
            return AIDecision(Action.IDLE, reason="Shaken unit recovers.")

        logger.debug("Unit %s (%s) at (%.1f, %.1f) range %s\" charge %s\" advance %s\" rush %s\"",
                     unit.name, unit.unit_type.value, unit.center.x, unit.center.y, unit.best_range,
                     charge_range(unit), advance_distance(unit), rush_distance(unit))

        objectives = self.actionable_objectives(unit)
        objective = None
        objective_distance = float('inf')
        if objectives:
            objective = min(objectives, key=lambda o: unit.center.distance_to(o.position))
            objective_distance = unit.center.distance_to(objective.position)
            logger.debug("  nearest actionable objective %s at %.1f\"", objective.name, objective_distance)

        if objective and self.is_objective_contested(objective, unit):
            return self._decide_contested(unit, objective)

        shoot_candidate = self.best_shoot_target(unit)
        relentless = any(su.special.relentless for su in unit.group.sub_units)
        if relentless and shoot_candidate:
            return AIDecision(Action.HOLD, shoot_candidate, shoot_candidate, "Relentless unit: Hold and shoot.")

        decision = None
        if unit.unit_type == UnitType.HYBRID:
            decision = self._decide_hybrid(unit, objective, objective_distance)
        elif unit.unit_type in (UnitType.SHOOTING, UnitType.SHOOTING_FOCUS):
            decision = self._decide_shooting(unit, objective, objective_distance)
        elif unit.unit_type in (UnitType.MELEE, UnitType.MELEE_FOCUS):
            decision = self._decide_melee(unit, objective)

        if decision is None:
            decision = AIDecision(Action.HOLD, shoot_candidate, shoot_candidate, "Default fallback: Hold.")
        logger.debug("  decision: %s -> %s (%s)", decision.action.value, target_name(decision.target),
                     decision.reason)
        return decision

    def _decide_contested(self, unit: UnitCluster, objective: Objective) -> AIDecision:
        """Sole defender of a contested objective fights from where it stands"""
        decision = AIDecision(Action.HOLD, objective, reason="Contested objective; holding position to defend.")

        if unit.unit_type in (UnitType.MELEE, UnitType.MELEE_FOCUS, UnitType.HYBRID):
            candidate = self.best_charge_target(unit)
            if candidate and candidate.center.distance_to(objective.position) <= OBJECTIVE_RANGE:
                decision = AIDecision(Action.CHARGE, candidate,
                                      reason="Contested objective; charging enemy within objective range.")

        ranged = unit.unit_type in (UnitType.SHOOTING, UnitType.SHOOTING_FOCUS)
        if ranged or (unit.unit_type == UnitType.HYBRID and decision.action != Action.CHARGE):
            candidate = self.best_shoot_target(unit)
            if candidate and candidate.center.distance_to(objective.position) <= OBJECTIVE_RANGE:
                decision = AIDecision(
                    Action.HOLD, objective, candidate,
                    "Contested objective; holding position and shooting enemy within objective range.")

        logger.debug("  %s", decision.reason)
        return decision

    def _decide_no_objective(self, unit: UnitCluster) -> AIDecision:
        """Nothing to take: charge, outmanoeuvre, close in, or hold"""
        charge = self.best_charge_target(unit)
        if charge:
            return AIDecision(Action.CHARGE, charge, reason="No objective; enemy is in charge range.")

        spot = self.find_advantageous_position(unit)
        if spot:
            return AIDecision(
                Action.ADVANCE, Waypoint(f"Adv. Pos vs {spot.target_enemy.name}", spot.position),
                spot.target_enemy, f"Advancing to gain shooting advantage on {spot.target_enemy.name}.")

        nearest = self.nearest_enemy(unit)
        if nearest is None:
            return AIDecision(Action.HOLD, reason="No objective and no enemy.")

        shot = self.shoot_target_after_advance(unit, advance_distance(unit), nearest)
        if shot:
            return AIDecision(Action.ADVANCE, nearest, shot, "No objectives: advancing to enemy to secure a shot.")
        return AIDecision(Action.RUSH, nearest, reason="No objectives: enemy near but no shot available, rushing.")

    def _advantageous_toward(self, unit: UnitCluster, objective: Objective,
                             objective_distance: float) -> Optional[AIDecision]:
        spot = self.find_advantageous_position(unit)
        if spot and spot.position.distance_to(objective.position) < objective_distance:
            name = f"Adv. Pos near Obj ({objective.position.x:.1f},{objective.position.y:.1f})"
            return AIDecision(
                Action.ADVANCE, Waypoint(name, spot.position), spot.target_enemy,
                f"Advancing to advantageous position near objective versus {spot.target_enemy.name}.")
        return None

    def _advance_or_rush(self, unit: UnitCluster, objective: Objective,
                         advance_reason: str, rush_reason: str) -> AIDecision:
        shot = self.shoot_target_after_advance(unit, advance_distance(unit), objective)
        if shot:
            return AIDecision(Action.ADVANCE, objective, shot, advance_reason)
        return AIDecision(Action.RUSH, objective, reason=rush_reason)

    def _decide_shooting(self, unit: UnitCluster, objective: Optional[Objective],
                         objective_distance: float) -> AIDecision:
        if objective is None:
            return self._decide_no_objective(unit)

        decision = self._advantageous_toward(unit, objective, objective_distance)
        if decision:
            return decision
        return self._advance_or_rush(unit, objective, "Advance to objective and shoot.",
                                     "Advance to objective fails to yield shot; rushing instead.")

    def _decide_melee(self, unit: UnitCluster, objective: Optional[Objective]) -> AIDecision:
        if objective is None:
            return self._decide_no_objective(unit)

        blocked = self.enemies_on_path(unit, objective)
        charge = self.best_charge_target(unit)
        logger.debug("  charge candidate %s, path blocked %s",
                     charge.name if charge else None, blocked)

        if blocked and charge and self.can_secure_objective_with_charge(unit, objective, charge):
            return AIDecision(Action.CHARGE, charge, reason="Objective blocked and charge secures it.")
        if blocked and charge:
            return AIDecision(Action.CHARGE, charge, reason="Objective path blocked: charging enemy.")
        if blocked:
            nearest = self.nearest_enemy(unit)
            if nearest:
                return AIDecision(Action.RUSH, nearest, reason="Objective path blocked, rushing enemy.")
            return AIDecision(Action.RUSH, objective, reason="Objective blocked (fallback rush).")
        return AIDecision(Action.RUSH, objective, reason="Objective not blocked; rushing to secure it.")

    def _decide_hybrid(self, unit: UnitCluster, objective: Optional[Objective],
                       objective_distance: float) -> AIDecision:
        if objective is None:
            return self._decide_no_objective(unit)

        charge = self.best_charge_target(unit)
        if self.enemies_on_path(unit, objective):
            if charge:
                return AIDecision(Action.CHARGE, charge, reason="Enemies block objective, charging enemy.")
            return self._advance_or_rush(unit, objective, "Advance along blocked path; can shoot enemy.",
                                         "Advance to objective blocked and no shot; rushing instead.")

        if (self.can_secure_objective_with_rush(unit, objective) and
                objective_distance > advance_distance(unit)):
            return AIDecision(Action.RUSH, objective, reason="Objective in rush range but not in advance range.")

        decision = self._advantageous_toward(unit, objective, objective_distance)
        if decision:
            return decision
        return self._advance_or_rush(unit, objective, "Clear path to obj: advance and shoot.",
                                     "Clear path to obj but no shot; rushing to secure it.")

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def move_unit(self, unit: UnitCluster, destination: Position, distance: float):
        """Commit a straight move; the final position is set before anyone reads it"""
        dx, dy, length = direction(unit.center, destination)
        step = min(distance, length)
        if length < 0.01 or step <= 0:
            return

        start = unit.center
        unit.translate(dx * step, dy * step)
        update_cover(self.state, unit)
        self.state.log('movement', f'{unit.name} moves {step:.1f}" to ({unit.center.x:.1f}, {unit.center.y:.1f})',
                       side=unit.side)
        self.state.notify_changed(MovementEvent(unit.id, start, unit.center, step))

    def execute(self, unit: UnitCluster, decision: AIDecision):
        """Carry out a decision to completion"""
        state = self.state
        state.active_unit = unit
        action = decision.action
        target = decision.target
        state.log('activation', f"{unit.name}: {action.value} -> {target_name(target)} ({decision.reason})",
                  side=unit.side)

        if action == Action.IDLE:
            unit.shaken = False

        elif action == Action.HOLD:
            if decision.shoot_target and state.is_on_board(decision.shoot_target):
                execute_shooting(state, unit, decision.shoot_target, ActionContext(is_hold=True))

        elif action in (Action.ADVANCE, Action.RUSH):
            base = advance_distance(unit) if action == Action.ADVANCE else rush_distance(unit)
            if target is not None:
                destination, distance = movement_destination(unit, target, base, action)
                self.move_unit(unit, destination, distance)
            if action == Action.ADVANCE:
                shoot_at = decision.shoot_target or (target if isinstance(target, UnitCluster) else None)
                if shoot_at and state.is_on_board(shoot_at):
                    execute_shooting(state, unit, shoot_at)

        elif action == Action.CHARGE:
            if isinstance(target, UnitCluster):
                destination, distance = movement_destination(unit, target, charge_range(unit), action)
                self.move_unit(unit, destination, distance)
                if state.is_on_board(target):
                    execute_melee(state, unit, target, action.value)

        unit.activated = True
        unit.last_action = action.value
        if action == Action.CHARGE and isinstance(target, UnitCluster) and unit.current_models > 0:
            resolve_post_charge_separation(state, unit, target)
        state.notify_changed()

    def take_turn(self, unit: UnitCluster, force_idle: bool = False) -> AIDecision:
        """Decide and execute in one step"""
        decision = AIDecision(Action.IDLE, reason="Shaken unit recovers.") if force_idle else self.decide(unit)
        self.execute(unit, decision)
        return decision
