"""
Battlefield state
Runtime units, objectives, terrain and the GameState aggregate the engine mutates
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

from army_parser import SubUnitDefinition, UnitGroup, Weapon
from dice import Dice
from geometry import Position, OBJECTIVE_RANGE, is_near_point


# ============================================================================
# ENUMS
# ============================================================================

class Side(Enum):
    """The two forces"""
    ATTACKERS = "attackers"
    DEFENDERS = "defenders"

    @property
    def opponent(self) -> 'Side':
        return Side.DEFENDERS if self is Side.ATTACKERS else Side.ATTACKERS


class UnitType(Enum):
    """Battlefield role derived from a unit's weapons"""
    MELEE = "melee"
    SHOOTING = "shooting"
    MELEE_FOCUS = "melee-focus"
    SHOOTING_FOCUS = "shooting-focus"
    HYBRID = "hybrid"  # Never produced by the classifier


# ============================================================================
# TERRAIN AND OBJECTIVES
# ============================================================================

@dataclass
class TerrainFeature:
    """Axis-aligned terrain rectangle; x, y is the top-left corner"""
    name: str
    x: float
    y: float
    width: float
    height: float
    cover: bool = False
    blocking: bool = False
    difficult: bool = False
    dangerous: bool = False

    @property
    def center(self) -> Position:
        return Position(self.x + self.width / 2, self.y + self.height / 2)

    @property
    def properties(self) -> List[str]:
        return [name for name in ('cover', 'blocking', 'difficult', 'dangerous')
                if getattr(self, name)]

    def contains(self, pos: Position) -> bool:
        return (self.x <= pos.x <= self.x + self.width and
                self.y <= pos.y <= self.y + self.height)


@dataclass(eq=False)
class Objective:
    """Objective marker"""
    name: str
    position: Position
    controller: Optional[Side] = None


@dataclass
class Waypoint:
    """A bare point on the board the AI wants to move to"""
    name: str
    position: Position


# ============================================================================
# UNITS
# ============================================================================

@dataclass(eq=False)
class SubUnitState:
    """Casualty tracking for one sub-unit of a cluster"""
    definition: SubUnitDefinition
    current_models: int
    wounds_per_model: int = 1  # Tough value
    wounds_on_current: int = 0  # Damage on the partially wounded model
    is_hero: bool = False
    effective_weapons: List[Weapon] = field(default_factory=list)
    loadout_cache: Dict[int, List[Weapon]] = field(default_factory=dict, repr=False)

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def alive(self) -> bool:
        return self.current_models > 0

    @property
    def remaining_wounds(self) -> int:
        """Hit points left to wipe the sub-unit out"""
        if self.current_models <= 0:
            return 0
        return (self.wounds_per_model - self.wounds_on_current +
                (self.current_models - 1) * self.wounds_per_model)


@dataclass(eq=False)
class UnitCluster:
    """The runtime battlefield entity for one unit group"""
    id: str
    side: Side
    name: str
    unit_type: UnitType
    best_range: int
    center: Position
    origin: Position
    width: float
    height: float
    models: List[Position]
    group: UnitGroup
    sub_unit_states: List[SubUnitState]
    total_models: int
    current_models: int

    # Per-activation flags
    activated: bool = False
    shaken: bool = False
    has_fought: bool = False  # Fought in melee this round (fatigue)
    in_cover: bool = False
    last_action: Optional[str] = None

    @property
    def is_destroyed(self) -> bool:
        return self.current_models <= 0

    @property
    def points(self) -> int:
        return self.group.points

    def translate(self, dx: float, dy: float):
        """Move centre, origin and every model together"""
        self.center = self.center.shifted(dx, dy)
        self.origin = self.origin.shifted(dx, dy)
        self.models = [m.shifted(dx, dy) for m in self.models]

    def is_near(self, point: Position, max_distance: float = OBJECTIVE_RANGE) -> bool:
        return is_near_point(self, point, max_distance)


# Anything the AI can move towards
Target = Union[Objective, Waypoint, UnitCluster]


def target_position(target: Target) -> Position:
    """Centre of a movement target"""
    if isinstance(target, UnitCluster):
        return target.center
    return target.position


# ============================================================================
# EVENTS
# ============================================================================

@dataclass
class BattleEvent:
    """An event that occurred during battle"""
    round: int
    side: Optional[Side]
    event_type: str  # 'deployment', 'movement', 'shooting', 'melee', 'morale', 'objective', 'round', 'status'
    description: str
    damage_dealt: int = 0
    models_killed: int = 0


@dataclass
class MovementEvent:
    """Start and end of a committed move, for renderers that animate"""
    cluster_id: str
    start: Position
    end: Position
    distance: float


Narrator = Callable[[str], None]
RenderListener = Callable[['GameState', Optional[MovementEvent]], None]


# ============================================================================
# GAME STATE
# ============================================================================

class GameState:
    """Everything the engine reads and mutates during one game"""

    def __init__(self, dice: Optional[Dice] = None,
                 objectives: Optional[List[Objective]] = None,
                 terrain: Optional[List[TerrainFeature]] = None):
        self.dice = dice or Dice()
        self.objectives: List[Objective] = objectives or []
        self.terrain: List[TerrainFeature] = terrain or []
        self.rosters: Dict[Side, List[UnitCluster]] = {Side.ATTACKERS: [], Side.DEFENDERS: []}
        self.army_names: Dict[Side, str] = {Side.ATTACKERS: "Attackers", Side.DEFENDERS: "Defenders"}

        # Turn/round state
        self.current_turn = Side.ATTACKERS
        self.current_round = 1
        self.finished_first: Optional[Side] = None
        self.started_round = Side.ATTACKERS
        self.active_unit: Optional[UnitCluster] = None
        self.deployment_complete = False

        self.battle_log: List[BattleEvent] = []
        self.narrators: List[Narrator] = []
        self.listeners: List[RenderListener] = []

    # ---- rosters ---------------------------------------------------------

    def units(self, side: Side) -> List[UnitCluster]:
        return self.rosters[side]

    @property
    def ai_units(self) -> List[UnitCluster]:
        """Units of the side currently acting"""
        return self.rosters[self.current_turn]

    @property
    def enemy_units(self) -> List[UnitCluster]:
        return self.rosters[self.current_turn.opponent]

    def all_units(self) -> List[UnitCluster]:
        return self.rosters[Side.ATTACKERS] + self.rosters[Side.DEFENDERS]

    def add_cluster(self, cluster: UnitCluster):
        self.rosters[cluster.side].append(cluster)

    def remove_cluster(self, cluster: UnitCluster):
        """Take a destroyed or routed unit off the board"""
        cluster.current_models = 0
        self.rosters[cluster.side] = [c for c in self.rosters[cluster.side] if c is not cluster]

    def is_on_board(self, cluster: UnitCluster) -> bool:
        return any(c is cluster for c in self.rosters[cluster.side])

    # ---- collaborators ---------------------------------------------------

    def log(self, event_type: str, description: str, damage_dealt: int = 0,
            models_killed: int = 0, side: Optional[Side] = None):
        """Record a battle event and hand its text to the narrators"""
        event = BattleEvent(
            round=self.current_round,
            side=side or self.current_turn,
            event_type=event_type,
            description=description,
            damage_dealt=damage_dealt,
            models_killed=models_killed,
        )
        self.battle_log.append(event)
        for narrator in self.narrators:
            narrator(description)

    def notify_changed(self, movement: Optional[MovementEvent] = None):
        """Tell renderers the state changed"""
        for listener in self.listeners:
            listener(self, movement)

    def snapshot(self) -> Dict:
        """Plain-data view of the board for renderers"""
        return {
            'round': self.current_round,
            'current_turn': self.current_turn.value,
            'active_unit': self.active_unit.id if self.active_unit else None,
            'units': [
                {
                    'id': c.id,
                    'name': c.name,
                    'side': c.side.value,
                    'type': c.unit_type.value,
                    'center': (c.center.x, c.center.y),
                    'origin': (c.origin.x, c.origin.y),
                    'width': c.width,
                    'height': c.height,
                    'models': [(m.x, m.y) for m in c.models],
                    'current_models': c.current_models,
                    'total_models': c.total_models,
                    'activated': c.activated,
                    'shaken': c.shaken,
                    'in_cover': c.in_cover,
                }
                for c in self.all_units()
            ],
            'objectives': [
                {
                    'name': o.name,
                    'position': (o.position.x, o.position.y),
                    'controller': o.controller.value if o.controller else None,
                }
                for o in self.objectives
            ],
            'terrain': [
                {
                    'name': t.name,
                    'x': t.x, 'y': t.y,
                    'width': t.width, 'height': t.height,
                    'properties': t.properties,
                }
                for t in self.terrain
            ],
        }

    def reset(self):
        """Start a new game on the same board"""
        self.rosters = {Side.ATTACKERS: [], Side.DEFENDERS: []}
        for objective in self.objectives:
            objective.controller = None
        self.current_turn = Side.ATTACKERS
        self.current_round = 1
        self.finished_first = None
        self.started_round = Side.ATTACKERS
        self.active_unit = None
        self.deployment_complete = False
        self.battle_log = []
