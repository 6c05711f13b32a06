"""
Bokeh-based battlefield visualization for the skirmish battle simulator
Renders GameState snapshots: terrain, objectives, unit models and the active unit
"""

from typing import Dict, List, Optional

from bokeh.models import ColumnDataSource, HoverTool, Label
from bokeh.plotting import figure

from battlefield import GameState, MovementEvent
from geometry import BOARD_HEIGHT, BOARD_WIDTH, DEPLOYMENT_MARGIN, MODEL_DIAMETER

SIDE_COLORS = {'attackers': "#3c78d8", 'defenders': "#cc3333"}
LABEL_COLORS = {'attackers': "lightblue", 'defenders': "lightcoral"}

# First matching property picks the fill
TERRAIN_COLORS = [
    ('dangerous', "#cc0000"),
    ('blocking', "#555555"),
    ('difficult', "#006400"),
    ('cover', "#a0522d"),
]


def terrain_color(properties: List[str]) -> str:
    for name, color in TERRAIN_COLORS:
        if name in properties:
            return color
    return "#c8c8c8"


def objective_color(controller: Optional[str]) -> str:
    if controller is None:
        return "gold"
    return SIDE_COLORS[controller]


class SnapshotRecorder:
    """
    Render listener that keeps a snapshot after every state change.

    Register with ``state.listeners.append(recorder)``; the frames can then
    be replayed one by one in the front end.
    """

    def __init__(self, max_frames: int = 2000):
        self.max_frames = max_frames
        self.frames: List[Dict] = []
        self.movements: List[MovementEvent] = []

    def __call__(self, state: GameState, movement: Optional[MovementEvent] = None):
        if movement is not None:
            self.movements.append(movement)
        if len(self.frames) < self.max_frames:
            self.frames.append(state.snapshot())


def create_battlefield_bokeh(snapshot: Dict,
                             attacker_name: str = "Attackers",
                             defender_name: str = "Defenders",
                             show_units: bool = True,
                             show_deployment_lines: bool = True):
    """Create interactive battlefield map using Bokeh from a GameState snapshot"""

    fig_width = 1080
    fig_height = int(fig_width * (BOARD_HEIGHT / BOARD_WIDTH))

    # y grows downward like the board coordinates, so the range is reversed
    p = figure(
        width=fig_width,
        height=fig_height,
        title=f"Round {snapshot['round']} - {snapshot['current_turn']} to act "
              f"({int(BOARD_WIDTH)}\" x {int(BOARD_HEIGHT)}\")",
        tools="pan,wheel_zoom,box_zoom,reset,save",
        match_aspect=True,
        aspect_scale=1.0,
        x_range=(0, BOARD_WIDTH),
        y_range=(BOARD_HEIGHT, 0),
        background_fill_color="#1a1a1a",
        border_fill_color="#0e0e0e"
    )

    p.xaxis.axis_label = "Width (inches)"
    p.yaxis.axis_label = "Depth (inches)"
    p.xgrid.grid_line_color = "#333333"
    p.ygrid.grid_line_color = "#333333"
    p.xaxis.axis_label_text_color = "white"
    p.yaxis.axis_label_text_color = "white"
    p.xaxis.major_label_text_color = "white"
    p.yaxis.major_label_text_color = "white"
    p.title.text_color = "white"

    # Board boundary
    p.rect(x=[BOARD_WIDTH / 2], y=[BOARD_HEIGHT / 2],
           width=[BOARD_WIDTH], height=[BOARD_HEIGHT],
           fill_alpha=0.1, fill_color="white",
           line_color="white", line_width=2)

    # Deployment lines and board thirds
    if show_deployment_lines:
        for y in (DEPLOYMENT_MARGIN, BOARD_HEIGHT - DEPLOYMENT_MARGIN):
            p.line(x=[0, BOARD_WIDTH], y=[y, y], line_color="white", line_alpha=0.4, line_dash="dashed")
        for x in (BOARD_WIDTH / 3, 2 * BOARD_WIDTH / 3):
            p.line(x=[x, x], y=[0, BOARD_HEIGHT], line_color="white", line_alpha=0.15, line_dash="dotted")

    # Terrain
    for terrain in snapshot['terrain']:
        cx = terrain['x'] + terrain['width'] / 2
        cy = terrain['y'] + terrain['height'] / 2
        p.rect(x=[cx], y=[cy], width=[terrain['width']], height=[terrain['height']],
               fill_alpha=0.35, fill_color=terrain_color(terrain['properties']),
               line_color="gray", line_width=1)

        label = Label(x=cx, y=cy, text="\n".join(prop.upper() for prop in terrain['properties']),
                      text_color="white", text_alpha=0.8,
                      text_align="center", text_baseline="middle",
                      text_font_size="7pt")
        p.add_layout(label)

    # Objectives
    objectives = snapshot['objectives']
    if objectives:
        source = ColumnDataSource(data={
            'x': [o['position'][0] for o in objectives],
            'y': [o['position'][1] for o in objectives],
            'color': [objective_color(o['controller']) for o in objectives],
            'name': [o['name'] for o in objectives],
            'holder': [o['controller'] or "nobody" for o in objectives],
        })
        p.scatter(x='x', y='y', source=source, marker="star", size=22, color='color',
                  line_color="black", line_width=2)
        for obj in objectives:
            label = Label(x=obj['position'][0], y=obj['position'][1] - 1.5, text=obj['name'],
                          text_color="white", text_alpha=0.9,
                          text_align="center", text_baseline="bottom",
                          text_font_size="9pt")
            p.add_layout(label)

    # Units, one circle per model
    if show_units:
        army_names = {'attackers': attacker_name, 'defenders': defender_name}
        for side in ('attackers', 'defenders'):
            units = [u for u in snapshot['units'] if u['side'] == side and u['current_models'] > 0]
            if not units:
                continue

            data = {'x': [], 'y': [], 'unit': [], 'state': [], 'line': []}
            for unit in units:
                active = unit['id'] == snapshot['active_unit']
                status = []
                if unit['shaken']:
                    status.append("shaken")
                if unit['activated']:
                    status.append("activated")
                if unit['in_cover']:
                    status.append("in cover")
                for mx, my in unit['models']:
                    data['x'].append(mx)
                    data['y'].append(my)
                    data['unit'].append(f"{unit['name']} ({unit['current_models']}/{unit['total_models']})")
                    data['state'].append(", ".join(status) or "ready")
                    data['line'].append("yellow" if active else ("black" if unit['shaken'] else "white"))

                label = Label(x=unit['center'][0], y=unit['origin'][1] - 0.3,
                              text=f"{unit['name'][:18]} ({unit['current_models']})",
                              text_color=LABEL_COLORS[side], text_alpha=0.9,
                              text_align="center", text_baseline="bottom",
                              text_font_size="8pt")
                p.add_layout(label)

            p.circle(x='x', y='y', source=ColumnDataSource(data=data), radius=MODEL_DIAMETER / 2,
                     fill_color=SIDE_COLORS[side], line_color='line', line_width=2, alpha=0.85,
                     legend_label=army_names[side])

        if p.legend:
            p.legend.location = "top_left"
            p.legend.background_fill_alpha = 0.4

    hover = HoverTool(tooltips=[("Position", "($x, $y)"), ("Unit", "@unit"), ("State", "@state"),
                                ("Objective", "@name"), ("Held by", "@holder")])
    p.add_tools(hover)

    return p
