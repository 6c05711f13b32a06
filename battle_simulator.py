"""
OPR Skirmish Battle Simulator
Alternating activations, round progression and the full battle loop
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from ai_engine import AIDecision, AIDecisionEngine
from army_parser import ArmyList
from battlefield import GameState, Side, UnitCluster
from core_rules import update_objective_control
from dice import Dice
from geometry import section_index

MAX_SELECTION_ATTEMPTS = 10


@dataclass
class SimulationConfig:
    """Options for one simulated battle"""
    seed: Optional[int] = None
    max_rounds: int = 4
    terrain_layout: Optional[str] = None  # Name in terrain_layouts.json, None for open ground
    objective_set: Optional[str] = None  # Preset name, None for D3+2 random markers


class BattleSimulator:
    """Drives activations for both sides until the battle ends"""

    def __init__(self, state: GameState):
        self.state = state
        self.engine = AIDecisionEngine(state)
        self.round_history: List[Dict] = []

    # ========================================================================
    # ACTIVATION
    # ========================================================================

    def select_unit_to_activate(self) -> Optional[UnitCluster]:
        """
        Pick the next unit for the side to act.

        Units are grouped by board third; a D3 picks the third (falling
        through to the next non-empty one) and a unit is drawn from it.
        Shaken units are only picked once no other unactivated unit remains.
        """
        state = self.state
        units = state.ai_units
        side = state.current_turn.value
        if not units:
            state.log('status', f"{side} has no units to activate this turn.")
            return None

        candidates = [u for u in units if not u.activated and not u.shaken]
        activating_shaken = False
        if not candidates:
            candidates = [u for u in units if not u.activated and u.shaken]
            activating_shaken = True
        if not candidates:
            state.log('status', f"{side} has no more units to activate this round.")
            return None

        sections: List[List[UnitCluster]] = [[], [], []]
        for unit in candidates:
            sections[section_index(unit.center.x)].append(unit)

        chosen = state.dice.d3() - 1
        if not sections[chosen]:
            for offset in (1, 2):
                if sections[(chosen + offset) % 3]:
                    chosen = (chosen + offset) % 3
                    break

        pool = sections[chosen]
        unit = None
        for _ in range(MAX_SELECTION_ATTEMPTS):
            unit = state.dice.pick(pool)
            if not unit.activated and (activating_shaken or not unit.shaken):
                return unit

        state.log('status', f"Could not select an eligible unit after {MAX_SELECTION_ATTEMPTS} "
                  f"attempts for {side}.")
        return None

    def activate_single_unit(self) -> Optional[AIDecision]:
        """Select, decide and execute one activation for the current side"""
        unit = self.select_unit_to_activate()
        if unit is None:
            return None
        decision = self.engine.take_turn(unit, force_idle=unit.shaken)
        self.state.log('activation', f"--- {unit.name} finished {decision.action.value.upper()} ---",
                       side=unit.side)
        return decision

    def finalize_turn(self) -> bool:
        """
        Score objectives and hand the turn over.

        Returns True when this call started a new round.
        """
        state = self.state
        update_objective_control(state)

        finished = state.current_turn
        current_done = all(u.activated for u in state.units(finished))
        opponent_done = all(u.activated for u in state.units(finished.opponent))
        round_over = False

        if current_done and state.finished_first is None:
            state.finished_first = finished

        if current_done and opponent_done:
            round_over = True
            self._record_round()
            state.current_round += 1
            for unit in state.all_units():
                unit.activated = False
                unit.has_fought = False
            state.current_turn = state.finished_first or state.started_round
            state.started_round = state.current_turn
            state.finished_first = None
        else:
            state.current_turn = finished.opponent

        state.active_unit = None
        if round_over:
            state.log('round', f"--- End of {finished.value}'s activation. Round {state.current_round} begins. "
                      f"Now {state.current_turn.value}'s turn. ---")
        else:
            state.log('round', f"--- End of {finished.value}'s activation. Now {state.current_turn.value}'s turn. ---")
        state.notify_changed()
        return round_over

    def play_full_round(self):
        """Alternate activations until every unit on both sides has acted"""
        state = self.state
        initial_round = state.current_round
        state.log('round', f"--- Playing Full Round {initial_round} ---")

        # Every pass either activates a unit or flips the side, so this bounds the loop
        guard = 2 * (len(state.all_units()) + 2)
        while state.current_round == initial_round:
            if guard <= 0:
                state.log('status', f"Round {initial_round} could not finish; forcing break.")
                break
            guard -= 1
            self.activate_single_unit()
            self.finalize_turn()

        state.log('round', f"--- Full Round {initial_round} Completed. Next round is {state.current_round}. ---")

    # ========================================================================
    # BATTLE
    # ========================================================================

    def is_battle_over(self, max_rounds: int) -> bool:
        state = self.state
        if state.current_round > max_rounds:
            return True
        return not state.units(Side.ATTACKERS) or not state.units(Side.DEFENDERS)

    def simulate_battle(self, max_rounds: int = 4) -> Dict:
        """Play rounds until max_rounds are done or one side is wiped out"""
        while not self.is_battle_over(max_rounds):
            self.play_full_round()
        return self.battle_report()

    def _record_round(self):
        state = self.state
        entry = {'round': state.current_round}
        for side in Side:
            entry[f'{side.value}_models'] = sum(u.current_models for u in state.units(side))
            entry[f'{side.value}_units'] = len(state.units(side))
            entry[f'{side.value}_objectives'] = sum(1 for o in state.objectives if o.controller == side)
        self.round_history.append(entry)

    def battle_report(self) -> Dict:
        """Final battle report"""
        state = self.state
        report = {
            'rounds_played': len(self.round_history),
            'round_history': list(self.round_history),
            'battle_log': state.battle_log,
            'winner': self.determine_winner(),
        }
        for side in Side:
            alive = state.units(side)
            report[f'{side.value}_army'] = state.army_names[side]
            report[f'{side.value}_objectives'] = sum(1 for o in state.objectives if o.controller == side)
            report[f'{side.value}_units_alive'] = len(alive)
            report[f'{side.value}_points_remaining'] = sum(u.points for u in alive)
        return report

    def determine_winner(self) -> str:
        """Most objectives held, then most points remaining"""
        state = self.state
        held = {side: sum(1 for o in state.objectives if o.controller == side) for side in Side}
        points = {side: sum(u.points for u in state.units(side)) for side in Side}

        for score in (held, points):
            if score[Side.ATTACKERS] > score[Side.DEFENDERS]:
                return state.army_names[Side.ATTACKERS]
            if score[Side.DEFENDERS] > score[Side.ATTACKERS]:
                return state.army_names[Side.DEFENDERS]
        return "Draw"


def run_battle(attacker_army: ArmyList, defender_army: ArmyList,
               config: Optional[SimulationConfig] = None, state: Optional[GameState] = None) -> Dict:
    """Set up, deploy and play a full battle between two parsed army lists"""
    from deployment import setup_battle

    config = config or SimulationConfig()
    state = state or GameState(dice=Dice(config.seed))
    setup_battle(state, attacker_army, defender_army, config)

    simulator = BattleSimulator(state)
    report = simulator.simulate_battle(config.max_rounds)
    report['state'] = state
    return report


if __name__ == "__main__":
    import sys
    from army_parser import parse_army_file

    if len(sys.argv) < 3:
        print("usage: python battle_simulator.py ATTACKERS.txt DEFENDERS.txt [seed]")
        sys.exit(1)

    seed = int(sys.argv[3]) if len(sys.argv) > 3 else None
    results = run_battle(parse_army_file(sys.argv[1]), parse_army_file(sys.argv[2]),
                         SimulationConfig(seed=seed))
    for event in results['battle_log']:
        print(f"[R{event.round}] {event.description}")
    print(f"\nWinner: {results['winner']}")
