"""
OPR Skirmish Battle Simulator - Streamlit UI
Paste two army lists, play an AI-vs-AI battle and inspect the result
Includes batch simulation with win-rate analytics
"""

from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
import streamlit as st
import streamlit.components.v1 as components
from bokeh.embed import file_html
from bokeh.resources import CDN

from army_parser import ArmyList, parse_army_list
from battle_simulator import SimulationConfig, run_battle
from battlefield import GameState
from battlefield_bokeh import SnapshotRecorder, create_battlefield_bokeh
from dice import Dice
from terrain_manager import TerrainManager

EXAMPLE_DIR = Path(__file__).parent / "army_lists"

EVENT_ICONS = {
    'deployment': '🎯',
    'activation': '▶️',
    'movement': '🏃',
    'shooting': '🔫',
    'melee': '⚔️',
    'morale': '😰',
    'objective': '🏆',
    'round': '🔁',
    'status': '•',
}


# Page config
st.set_page_config(
    page_title="OPR Skirmish Simulator",
    page_icon="⚔️",
    layout="wide",
    initial_sidebar_state="expanded"
)


def load_example_lists() -> Dict[str, str]:
    """Example army lists shipped with the app, by file stem"""
    if not EXAMPLE_DIR.exists():
        return {}
    return {path.stem.replace('_', ' ').title(): path.read_text(encoding='utf-8')
            for path in sorted(EXAMPLE_DIR.glob("*.txt"))}


def battle_log_frame(battle_log) -> pd.DataFrame:
    """Battle events as a table"""
    return pd.DataFrame([
        {
            'round': event.round,
            'side': event.side.value,
            'type': event.event_type,
            'description': event.description,
            'damage': event.damage_dealt,
            'killed': event.models_killed,
        }
        for event in battle_log
    ], columns=['round', 'side', 'type', 'description', 'damage', 'killed'])


def run_single_battle(attackers: ArmyList, defenders: ArmyList, config: SimulationConfig) -> Dict:
    """Play one battle and keep every rendered frame"""
    state = GameState(dice=Dice(config.seed))
    recorder = SnapshotRecorder()
    state.listeners.append(recorder)

    results = run_battle(attackers, defenders, config, state=state)
    results['frames'] = recorder.frames
    results['movements'] = len(recorder.movements)
    results['final_snapshot'] = state.snapshot()
    return results


def run_batch_simulations(attacker_text: str, defender_text: str, config: SimulationConfig,
                          num_battles: int) -> pd.DataFrame:
    """Run many battles with consecutive seeds and collect one row per battle"""
    rows = []
    progress_bar = st.progress(0)
    status_text = st.empty()
    base_seed = config.seed if config.seed is not None else int(np.random.default_rng().integers(0, 2**31))

    for i in range(num_battles):
        status_text.text(f"Running battle {i + 1} of {num_battles}...")
        progress_bar.progress((i + 1) / num_battles)

        # Fresh parse each time so no state leaks between battles
        battle_config = SimulationConfig(
            seed=base_seed + i,
            max_rounds=config.max_rounds,
            terrain_layout=config.terrain_layout,
            objective_set=config.objective_set,
        )
        results = run_battle(parse_army_list(attacker_text), parse_army_list(defender_text), battle_config)
        rows.append({
            'seed': battle_config.seed,
            'winner': results['winner'],
            'rounds': results['rounds_played'],
            'attackers_objectives': results['attackers_objectives'],
            'defenders_objectives': results['defenders_objectives'],
            'attackers_points': results['attackers_points_remaining'],
            'defenders_points': results['defenders_points_remaining'],
        })

    progress_bar.empty()
    status_text.empty()
    return pd.DataFrame(rows)


def show_bokeh(fig):
    """Embed a Bokeh figure as standalone HTML"""
    components.html(file_html(fig, CDN), height=fig.height + 40)


def models_per_round_chart(round_history: List[Dict], attacker_name: str, defender_name: str) -> go.Figure:
    """Models remaining at the end of each round"""
    history = pd.DataFrame(round_history)
    fig = go.Figure()
    if history.empty:
        return fig
    fig.add_trace(go.Scatter(x=history['round'], y=history['attackers_models'],
                             mode='lines+markers', name=attacker_name, line=dict(color="#3c78d8")))
    fig.add_trace(go.Scatter(x=history['round'], y=history['defenders_models'],
                             mode='lines+markers', name=defender_name, line=dict(color="#cc3333")))
    fig.update_layout(title="Models remaining per round", xaxis_title="Round",
                      yaxis_title="Models", xaxis=dict(dtick=1))
    return fig


def create_analytics_dashboard(batch: pd.DataFrame, attacker_name: str, defender_name: str):
    """Win rates and end-of-battle distributions from a batch run"""
    st.header("📊 Batch Simulation Analytics")

    win_counts = batch['winner'].value_counts()
    total = len(batch)
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric(f"{attacker_name} wins", f"{win_counts.get(attacker_name, 0) / total:.1%}")
    with col2:
        st.metric(f"{defender_name} wins", f"{win_counts.get(defender_name, 0) / total:.1%}")
    with col3:
        st.metric("Draws", f"{win_counts.get('Draw', 0) / total:.1%}")

    fig = px.bar(win_counts.reset_index(), x='winner', y='count', title="Battle outcomes",
                 labels={'winner': 'Winner', 'count': 'Battles'})
    st.plotly_chart(fig, use_container_width=True)

    points = batch.melt(value_vars=['attackers_points', 'defenders_points'],
                        var_name='side', value_name='points')
    points['side'] = points['side'].map({'attackers_points': attacker_name, 'defenders_points': defender_name})
    fig = px.histogram(points, x='points', color='side', barmode='overlay', nbins=30,
                       title="Points remaining at the end of battle")
    st.plotly_chart(fig, use_container_width=True)

    with st.expander("Raw results"):
        st.dataframe(batch, use_container_width=True)


def army_input(label: str, key: str, examples: Dict[str, str], default_index: int) -> Optional[ArmyList]:
    """Sidebar text area for one army list; returns the parsed army or None"""
    st.subheader(label)
    options = ["(paste your own)"] + list(examples.keys())
    choice = st.selectbox("Example list", options, index=min(default_index, len(options) - 1), key=f"{key}_example")
    default_text = examples.get(choice, "")
    text = st.text_area("Army list", value=default_text, height=220, key=f"{key}_text_{choice}")
    st.session_state[f"{key}_raw"] = text
    if not text.strip():
        return None

    army = parse_army_list(text)
    if army.units:
        st.success(f"✓ {army.name}: {len(army.units)} units, {army.points_total} pts")
    else:
        st.warning("No units recognised in this list")
    return army


def main():
    st.title("⚔️ OPR Skirmish Battle Simulator")
    st.markdown("*AI vs AI skirmish battles with alternating activations and objective control*")

    if 'battle_results' not in st.session_state:
        st.session_state.battle_results = None
    if 'batch_results' not in st.session_state:
        st.session_state.batch_results = None

    terrain_mgr = TerrainManager()
    examples = load_example_lists()

    with st.sidebar:
        st.header("⚔️ Army Setup")

        sim_mode = st.radio(
            "Simulation Mode",
            ["Single Battle", "Batch Simulation (Analytics)"],
            help="Single battle for the full log and map, batch for win rates"
        )

        st.divider()
        attackers = army_input("Attackers", "attackers", examples, 1)
        st.divider()
        defenders = army_input("Defenders", "defenders", examples, 2)
        st.divider()

        st.subheader("🗺️ Board Setup")
        layout_names = terrain_mgr.list_available_layouts()
        selected_terrain = st.selectbox(
            "Terrain Layout", layout_names,
            format_func=terrain_mgr.get_layout_description,
        )
        objective_options = ["random (D3+2)"] + terrain_mgr.list_available_objectives()
        selected_objectives = st.selectbox("Objective Placement", objective_options)

        st.divider()
        st.subheader("⚔️ Battle Settings")
        max_rounds = st.slider("Rounds", 1, 8, 4)
        seed_text = st.text_input("Seed (blank for random)", value="")

        if sim_mode == "Batch Simulation (Analytics)":
            num_battles = st.slider("Number of Battles", 10, 1000, 100, step=10)
            run_batch = st.button(f"🎲 Run {num_battles} Battles", type="primary", use_container_width=True)
            run_single = False
        else:
            run_single = st.button("🎮 Run Battle", type="primary", use_container_width=True)
            run_batch = False

    seed = int(seed_text) if seed_text.strip().lstrip('-').isdigit() else None
    config = SimulationConfig(
        seed=seed,
        max_rounds=max_rounds,
        terrain_layout=selected_terrain,
        objective_set=None if selected_objectives.startswith("random") else selected_objectives,
    )

    if (run_single or run_batch) and (not attackers or not attackers.units or not defenders or not defenders.units):
        st.error("Both armies need at least one recognised unit")
        run_single = run_batch = False

    if run_single:
        with st.spinner("⚔️ Simulating battle..."):
            st.session_state.battle_results = run_single_battle(attackers, defenders, config)
        st.success(f"✅ Winner: {st.session_state.battle_results['winner']}")

    if run_batch:
        with st.spinner(f"⚔️ Running {num_battles} battles..."):
            st.session_state.batch_results = run_batch_simulations(
                st.session_state['attackers_raw'], st.session_state['defenders_raw'], config, num_battles)
        st.success(f"✅ Completed {num_battles} battles!")

    # Battlefield
    st.header("🗺️ Battlefield")
    results = st.session_state.battle_results
    if results:
        attacker_name = results['attackers_army']
        defender_name = results['defenders_army']
        frames = results['frames']
        snapshot = results['final_snapshot']
        if len(frames) > 1:
            frame_index = st.slider("Replay", 1, len(frames), len(frames))
            snapshot = frames[frame_index - 1]
        show_bokeh(create_battlefield_bokeh(snapshot, attacker_name, defender_name))
    else:
        preview = GameState()
        preview.terrain = terrain_mgr.get_terrain_layout(selected_terrain)
        if config.objective_set:
            preview.objectives = terrain_mgr.get_objectives(config.objective_set)
        show_bokeh(create_battlefield_bokeh(preview.snapshot(), show_units=False))

    if results:
        st.divider()
        st.header("📊 Battle Results")

        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Winner", results['winner'])
        with col2:
            st.metric(f"{attacker_name} objectives", results['attackers_objectives'])
        with col3:
            st.metric(f"{defender_name} objectives", results['defenders_objectives'])

        tab1, tab2 = st.tabs(["📊 Statistics", "📜 Battle Log"])

        with tab1:
            col1, col2 = st.columns(2)
            with col1:
                st.metric(f"{attacker_name} Units Surviving",
                          f"{results['attackers_units_alive']} ({results['attackers_points_remaining']} pts)")
            with col2:
                st.metric(f"{defender_name} Units Surviving",
                          f"{results['defenders_units_alive']} ({results['defenders_points_remaining']} pts)")
            st.plotly_chart(models_per_round_chart(results['round_history'], attacker_name, defender_name),
                            use_container_width=True)

        with tab2:
            log = battle_log_frame(results['battle_log'])
            event_types = st.multiselect("Event types", sorted(log['type'].unique()),
                                         default=sorted(log['type'].unique()))
            filtered = log[log['type'].isin(event_types)]
            st.dataframe(filtered, use_container_width=True, hide_index=True)

            with st.expander("Narrated log"):
                for event in results['battle_log'][-200:]:
                    icon = EVENT_ICONS.get(event.event_type, '•')
                    st.text(f"{icon} [R{event.round}] {event.description}")

    if st.session_state.batch_results is not None:
        st.divider()
        names = (attackers.name if attackers else "Attackers", defenders.name if defenders else "Defenders")
        create_analytics_dashboard(st.session_state.batch_results, *names)


if __name__ == "__main__":
    main()
