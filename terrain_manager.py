"""
Terrain and Objective Manager
Loads terrain layouts and objective marker presets for the skirmish board
"""

import json
from pathlib import Path
from typing import Dict, List, Optional

from battlefield import Objective, TerrainFeature
from geometry import BOARD_HEIGHT, BOARD_WIDTH, Position

TERRAIN_PROPERTIES = ('cover', 'blocking', 'difficult', 'dangerous')


class TerrainManager:
    """Manages terrain layouts and objective presets"""

    def __init__(self, base_path: Optional[Path] = None):
        if base_path is None:
            base_path = Path(__file__).parent

        self.base_path = base_path
        self.terrain_layouts = self._load_terrain_layouts()

    def _load_terrain_layouts(self) -> Dict:
        """Load terrain layouts and objective presets from JSON"""
        terrain_file = self.base_path / "terrain_layouts.json"
        return json.loads(terrain_file.read_text(encoding='utf-8'))

    def get_terrain_layout(self, layout_name: str) -> List[TerrainFeature]:
        """
        Get terrain features for a specific layout

        Args:
            layout_name: e.g. 'open_ground', 'city_ruins'

        Returns:
            List of TerrainFeature rectangles
        """
        if layout_name not in self.terrain_layouts['layouts']:
            raise ValueError(f"Unknown terrain layout: {layout_name}")

        layout_data = self.terrain_layouts['layouts'][layout_name]
        piece_types = self.terrain_layouts['terrain_piece_types']
        terrain_pieces = []

        for piece_data in layout_data['pieces']:
            piece_type = piece_data['type']
            if piece_type not in piece_types:
                raise ValueError(f"Unknown terrain piece type '{piece_type}' in layout {layout_name}")
            dimensions = piece_types[piece_type]

            # Piece properties override the type's defaults
            properties = set(dimensions.get('properties', []))
            properties.update(piece_data.get('properties', []))
            unknown = properties.difference(TERRAIN_PROPERTIES)
            if unknown:
                raise ValueError(f"Unknown terrain properties {sorted(unknown)} in layout {layout_name}")

            width = piece_data.get('width', dimensions['width'])
            height = piece_data.get('height', dimensions['height'])
            x, y = piece_data['position']
            if x < 0 or y < 0 or x + width > BOARD_WIDTH or y + height > BOARD_HEIGHT:
                raise ValueError(f"Terrain piece {piece_type} at ({x}, {y}) is off the board in {layout_name}")

            terrain_pieces.append(TerrainFeature(
                name=f"{piece_type.replace('_', ' ').title()}-{len(terrain_pieces) + 1}",
                x=x,
                y=y,
                width=width,
                height=height,
                cover='cover' in properties,
                blocking='blocking' in properties,
                difficult='difficult' in properties,
                dangerous='dangerous' in properties,
            ))

        return terrain_pieces

    def get_objectives(self, objective_set: str) -> List[Objective]:
        """
        Get objective markers for a specific placement pattern

        Args:
            objective_set: e.g. 'center_line_3', 'diamond_4'

        Returns:
            List of uncontrolled Objective markers
        """
        if objective_set not in self.terrain_layouts['objective_placements']:
            raise ValueError(f"Unknown objective set: {objective_set}")

        obj_data = self.terrain_layouts['objective_placements'][objective_set]
        objectives = []
        for obj in obj_data['objectives']:
            objectives.append(Objective(
                name=obj.get('id', f"Objective {len(objectives) + 1}"),
                position=Position(obj['position'][0], obj['position'][1]),
            ))
        return objectives

    def list_available_layouts(self) -> List[str]:
        """Get list of available terrain layouts"""
        return list(self.terrain_layouts['layouts'].keys())

    def list_available_objectives(self) -> List[str]:
        """Get list of available objective placements"""
        return list(self.terrain_layouts['objective_placements'].keys())

    def get_layout_description(self, layout_name: str) -> str:
        """Get human-readable description of terrain layout"""
        if layout_name not in self.terrain_layouts['layouts']:
            return "Unknown layout"
        return self.terrain_layouts['layouts'][layout_name].get('name', layout_name)


# Example usage
if __name__ == "__main__":
    manager = TerrainManager()

    print("=== Available Terrain Layouts ===")
    for layout in manager.list_available_layouts():
        pieces = manager.get_terrain_layout(layout)
        print(f"  {layout}: {manager.get_layout_description(layout)} ({len(pieces)} pieces)")

    print("\n=== Available Objective Sets ===")
    for obj_set in manager.list_available_objectives():
        data = manager.terrain_layouts['objective_placements'][obj_set]
        print(f"  {obj_set}: {data['name']} ({len(data['objectives'])} objectives)")
