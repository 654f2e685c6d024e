"""
Gradio App for the 'Genre Atlas' Demo.

Allows users to:
1. Explore a synthetic library (Simulation Mode).
2. Explore a library exported from Spotify (Library Mode).

The map is simulated on the server and rendered as a still image after the
layout has settled. Drill-down, back and the time cursor drive the same
InteractionController an interactive canvas would.
"""
import argparse
import os

import gradio as gr
import matplotlib.pyplot as plt

from genre_atlas.aggregation import AggregationPipeline, summarize
from genre_atlas.classifier import dominant_category
from genre_atlas.interaction import InteractionController
from genre_atlas.layout import LayoutEngine, LayoutConfig
from genre_atlas.library_manager import LibraryManager
from genre_atlas.mock_data import MockLibraryGenerator
from genre_atlas.temporal import TemporalFilter
from genre_atlas.timeline import LibraryStoryteller, build_monthly_streams
from genre_atlas.visualization import GenreMapRenderer

current_dir = os.path.dirname(os.path.abspath(__file__))

# Global constants
EXPORTS_DIR = os.path.join(current_dir, "data/exports")
CANVAS_SIZE = 900
SETTLE_TICKS = 300
SLIDER_STEPS = 100

RENDERER = GenreMapRenderer()

# Session store (single-user demo)
_SESSIONS = {}


def get_session(session_id="default"):
    return _SESSIONS.get(session_id)


def set_session(session, session_id="default"):
    _SESSIONS[session_id] = session


def list_exports():
    if not os.path.isdir(EXPORTS_DIR):
        return []
    return LibraryManager.list_exports(EXPORTS_DIR)


# --- Analysis Logic ---

def build_session(tracks, artist_map, top_n):
    pipeline = AggregationPipeline(top_n=int(top_n), verbose=True)
    nodes = pipeline.build(tracks, artist_map)

    engine = LayoutEngine(CANVAS_SIZE, CANVAS_SIZE, LayoutConfig(seed=7))
    temporal = TemporalFilter()
    controller = InteractionController(engine, temporal)
    controller.load(nodes)

    session = {
        "nodes": nodes,
        "engine": engine,
        "controller": controller,
        "stats": summarize(nodes),
        "stream": build_monthly_streams(tracks, artist_map),
    }
    set_session(session)
    return session


def render_session(session):
    """Returns (map figure, stats markdown, drill choices, node table)."""
    engine = session["engine"]
    controller = session["controller"]
    engine.run(SETTLE_TICKS)

    fig_map = RENDERER.draw(engine.frame(), controller.camera)
    view = controller.view

    stats = session["stats"]
    lines = [
        f"**Genres**: {stats.genre_count} | **Artists**: {stats.artist_count} | "
        f"**Albums**: {stats.album_count} | **Contributions**: {stats.contribution_count}",
    ]
    if view.time_range is not None:
        lo, hi = view.time_range
        cursor = f"{view.cursor:%Y-%m-%d}" if view.cursor else "all"
        lines.append(f"**Range**: {lo:%Y-%m-%d} to {hi:%Y-%m-%d} | **Cursor**: {cursor}")
    lines.append(f"**View**: {' / '.join(('All genres',) + view.stack)} ({len(view.active)} nodes)")

    choices = [n.id for n in view.active if n.children]
    rows = [
        [n.name, dominant_category(n.parent or n.name), n.count, n.artist_count, ", ".join(t.name for t in n.top_tracks)]
        for n in view.active
    ]
    return fig_map, "\n\n".join(lines), gr.update(choices=choices, value=None), rows


def run_mock_analysis(num_artists, num_tracks, top_n):
    tracks, artist_map = MockLibraryGenerator.generate_library(
        num_artists=int(num_artists),
        num_tracks=int(num_tracks),
    )
    session = build_session(tracks, artist_map, top_n)
    return (*render_session(session), plot_stream(session), gr.update(value=SLIDER_STEPS))


def run_library_analysis(export_name, top_n):
    if not export_name:
        return None, "Select an export first.", gr.update(choices=[]), [], None, gr.update(value=SLIDER_STEPS)
    manager = LibraryManager(os.path.join(EXPORTS_DIR, export_name))
    tracks, artist_map = manager.load_library()
    session = build_session(tracks, artist_map, top_n)
    return (*render_session(session), plot_stream(session), gr.update(value=SLIDER_STEPS))


def plot_stream(session, highlight=None):
    stream = session["stream"]
    if stream is None:
        return None
    return LibraryStoryteller.plot_streamgraph(stream, highlight=highlight)


def _empty():
    return None, "Run an analysis first.", gr.update(choices=[]), []


def drill_into(genre_id):
    session = get_session()
    if not session:
        return _empty()
    if genre_id:
        session["controller"].drill(genre_id)
    return render_session(session)


def go_back():
    session = get_session()
    if not session:
        return _empty()
    session["controller"].back()
    return render_session(session)


def scrub(position):
    """Maps a 0..SLIDER_STEPS slider onto the library's time range."""
    session = get_session()
    if not session:
        return (*_empty(), None)
    controller = session["controller"]
    time_range = controller.view.time_range
    highlight = None
    if time_range is not None:
        lo, hi = time_range
        cursor = lo + (hi - lo) * (float(position) / SLIDER_STEPS)
        controller.set_cursor(cursor)
        highlight = cursor.date()
    plt.close("all")
    return (*render_session(session), plot_stream(session, highlight))


# --- UI Layout ---
with gr.Blocks(title="Genre Atlas") as demo:
    gr.Markdown("# Genre Atlas")

    with gr.Tabs():
        with gr.TabItem("Simulate"):
            with gr.Row():
                mock_artists = gr.Slider(10, 300, value=60, step=10, label="Artists")
                mock_tracks = gr.Slider(50, 5000, value=600, step=50, label="Tracks")
                mock_top = gr.Slider(10, 200, value=200, step=10, label="Top N Genres")
                mock_btn = gr.Button("Simulate", variant="primary")

        with gr.TabItem("Library"):
            with gr.Row():
                refresh_btn = gr.Button("Refresh Export List")
                export_dropdown = gr.Dropdown(label="Select Export", choices=list_exports())
                lib_top = gr.Slider(10, 200, value=200, step=10, label="Top N Genres")
            analyze_btn = gr.Button("Build Map", variant="primary")

    stats_markdown = gr.Markdown("Run an analysis to see the map.")

    with gr.Row():
        with gr.Column(scale=3):
            map_plot = gr.Plot(label="Genre Map")
        with gr.Column(scale=1):
            drill_dropdown = gr.Dropdown(label="Drill into genre", choices=[])
            back_btn = gr.Button("Back")
            time_slider = gr.Slider(0, SLIDER_STEPS, value=SLIDER_STEPS, step=1, label="Time Cursor (%)")

    node_table = gr.DataFrame(
        headers=["Name", "Category", "Tracks", "Artists", "Top Tracks"],
        interactive=False,
        wrap=True,
    )
    stream_plot = gr.Plot(label="Library Growth")

    # --- EVENT WIRING ---
    view_outputs = [map_plot, stats_markdown, drill_dropdown, node_table]

    mock_btn.click(
        run_mock_analysis,
        inputs=[mock_artists, mock_tracks, mock_top],
        outputs=view_outputs + [stream_plot, time_slider],
    )
    refresh_btn.click(lambda: gr.update(choices=list_exports()), outputs=export_dropdown)
    analyze_btn.click(
        run_library_analysis,
        inputs=[export_dropdown, lib_top],
        outputs=view_outputs + [stream_plot, time_slider],
    )
    drill_dropdown.select(drill_into, inputs=[drill_dropdown], outputs=view_outputs)
    back_btn.click(go_back, outputs=view_outputs)
    time_slider.release(scrub, inputs=[time_slider], outputs=view_outputs + [stream_plot])


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Genre Atlas Demo App")
    parser.add_argument("--share", action="store_true", help="Create a public share link")
    parser.add_argument("--server_name", type=str, default="0.0.0.0", help="Server name (default: 0.0.0.0)")
    parser.add_argument("--server_port", type=int, default=7860, help="Server port (default: 7860)")
    args = parser.parse_args()

    demo.launch(server_name=args.server_name, server_port=args.server_port, share=args.share)
