"""
Board geometry helpers
Distances, ranges and footprint collision tests (all values in inches)
"""

import numpy as np
from dataclasses import dataclass, field
from typing import List, Tuple


# ============================================================================
# BOARD CONSTANTS
# ============================================================================

BOARD_WIDTH = 72.0
BOARD_HEIGHT = 48.0
MODEL_DIAMETER = 1.26
DEPLOYMENT_MARGIN = 12.0
OBJECTIVE_RANGE = 3.0  # "near" an objective


@dataclass
class Position:
    """2D position on the board"""
    x: float
    y: float

    def distance_to(self, other: 'Position') -> float:
        """Calculate distance to another position"""
        return float(np.hypot(self.x - other.x, self.y - other.y))

    def shifted(self, dx: float, dy: float) -> 'Position':
        return Position(self.x + dx, self.y + dy)

    def __add__(self, other: 'Position') -> 'Position':
        return Position(self.x + other.x, self.y + other.y)

    def __sub__(self, other: 'Position') -> 'Position':
        return Position(self.x - other.x, self.y - other.y)


@dataclass
class Footprint:
    """
    Positional shape of a unit: centre, bounding box and model positions.

    UnitCluster carries the same attributes; a bare Footprint is used for
    hypothetical positions the AI evaluates before committing to a move.
    """
    center: Position
    width: float = 0.0
    height: float = 0.0
    models: List[Position] = field(default_factory=list)
    best_range: float = 0.0


# ============================================================================
# DISTANCES
# ============================================================================

def distance(a: Position, b: Position) -> float:
    return a.distance_to(b)


def direction(from_pos: Position, to_pos: Position) -> Tuple[float, float, float]:
    """Unit vector and length from one point to another (zero vector if coincident)"""
    dx = to_pos.x - from_pos.x
    dy = to_pos.y - from_pos.y
    length = float(np.hypot(dx, dy))
    if length == 0:
        return 0.0, 0.0, 0.0
    return dx / length, dy / length, length


def point_to_segment_distance(point: Position, seg_a: Position, seg_b: Position) -> float:
    """Shortest distance from a point to the segment a-b"""
    l2 = (seg_b.x - seg_a.x) ** 2 + (seg_b.y - seg_a.y) ** 2
    if l2 == 0:
        return point.distance_to(seg_a)

    t = ((point.x - seg_a.x) * (seg_b.x - seg_a.x) +
         (point.y - seg_a.y) * (seg_b.y - seg_a.y)) / l2
    t = float(np.clip(t, 0.0, 1.0))
    closest = Position(seg_a.x + t * (seg_b.x - seg_a.x),
                       seg_a.y + t * (seg_b.y - seg_a.y))
    return point.distance_to(closest)


# ============================================================================
# FOOTPRINTS
# ============================================================================

def grid_columns(model_count: int) -> int:
    """Columns of the near-square model grid"""
    return int(np.ceil(np.sqrt(max(model_count, 1))))


def footprint_size(model_count: int) -> Tuple[float, float]:
    """Width and height of a grid of model_count models"""
    cols = grid_columns(model_count)
    rows = int(np.ceil(max(model_count, 1) / cols))
    return cols * MODEL_DIAMETER, rows * MODEL_DIAMETER


def grid_positions(origin: Position, model_count: int) -> List[Position]:
    """Model centres laid out row by row from the top-left origin"""
    cols = grid_columns(model_count)
    half = MODEL_DIAMETER / 2
    return [
        Position(origin.x + (j % cols) * MODEL_DIAMETER + half,
                 origin.y + (j // cols) * MODEL_DIAMETER + half)
        for j in range(model_count)
    ]


def effective_radius(shape) -> float:
    """Radius of the circle used for collision and stand-off checks"""
    if not shape.width or not shape.height:
        return MODEL_DIAMETER / 2
    return max(shape.width, shape.height) / 2


def clusters_colliding(a, b, min_separation: float = 0.0) -> bool:
    """True when the two circular footprints (plus separation) overlap"""
    if a is None or b is None:
        return False
    return (a.center.distance_to(b.center) <
            effective_radius(a) + effective_radius(b) + min_separation)


def is_near_point(shape, point: Position, max_distance: float) -> bool:
    """True if any model of the shape is within max_distance of the point"""
    return any(model.distance_to(point) <= max_distance for model in shape.models)


def min_model_distance(a, b) -> float:
    """Smallest model-to-model distance between two shapes"""
    if not a.models or not b.models:
        return float('inf')
    return min(m1.distance_to(m2) for m1 in a.models for m2 in b.models)


def is_in_range(actor, target, range_inches: float) -> bool:
    """True if any model of the target is within range of any model of the actor"""
    return any(m1.distance_to(m2) <= range_inches
               for m1 in actor.models for m2 in target.models)


def shifted_footprint(shape, dx: float, dy: float) -> Footprint:
    """Copy of a shape translated by (dx, dy); centre and models move together"""
    return Footprint(
        center=shape.center.shifted(dx, dy),
        width=shape.width,
        height=shape.height,
        models=[m.shifted(dx, dy) for m in shape.models],
        best_range=getattr(shape, 'best_range', 0.0),
    )


def section_index(x: float, sections: int = 3) -> int:
    """Which vertical third of the board an x coordinate falls in"""
    width = BOARD_WIDTH / sections
    return int(np.clip(int(x // width), 0, sections - 1))
