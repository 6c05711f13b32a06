"""
Tests for terrain layout and objective preset loading
"""

import json

import pytest

from geometry import BOARD_HEIGHT, BOARD_WIDTH
from terrain_manager import TerrainManager


def test_every_layout_loads_on_the_board():
    manager = TerrainManager()
    layouts = manager.list_available_layouts()
    assert "open_ground" in layouts

    for name in layouts:
        for piece in manager.get_terrain_layout(name):
            assert piece.x >= 0 and piece.y >= 0
            assert piece.x + piece.width <= BOARD_WIDTH
            assert piece.y + piece.height <= BOARD_HEIGHT
            assert piece.properties


def test_piece_properties_extend_type_defaults():
    pieces = TerrainManager().get_terrain_layout("city_ruins")
    swamps = [p for p in pieces if p.name.startswith("Swamp")]
    assert swamps and all(p.difficult and p.dangerous for p in swamps)
    assert any(p.blocking for p in pieces)


def test_objective_presets():
    manager = TerrainManager()
    for name in manager.list_available_objectives():
        objectives = manager.get_objectives(name)
        assert objectives
        assert all(o.controller is None for o in objectives)


def test_unknown_names_raise():
    manager = TerrainManager()
    with pytest.raises(ValueError):
        manager.get_terrain_layout("nowhere")
    with pytest.raises(ValueError):
        manager.get_objectives("nowhere")
    assert manager.get_layout_description("nowhere") == "Unknown layout"


def test_off_board_piece_is_rejected(tmp_path):
    data = {
        "terrain_piece_types": {"block": {"width": 10, "height": 10, "properties": ["blocking"]}},
        "layouts": {"broken": {"name": "Broken", "pieces": [{"type": "block", "position": [70, 0]}]}},
        "objective_placements": {},
    }
    (tmp_path / "terrain_layouts.json").write_text(json.dumps(data))

    with pytest.raises(ValueError):
        TerrainManager(base_path=tmp_path).get_terrain_layout("broken")
