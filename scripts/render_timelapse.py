"""
Render Time-lapse Script.

Replays how a library grew: steps the time cursor from the first save to the
last, runs the layout between steps and writes one PNG per frame.

Usage:
    python scripts/render_timelapse.py --export_dir data/exports/me --out_dir out/frames
    python scripts/render_timelapse.py --mock --frames 120
"""
import os
import sys
import argparse

from tqdm import tqdm

# Add project root to python path
current_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.abspath(os.path.join(current_dir, ".."))
sys.path.insert(0, project_root)

from genre_atlas.aggregation import AggregationPipeline
from genre_atlas.interaction import InteractionController
from genre_atlas.layout import LayoutConfig, LayoutEngine
from genre_atlas.library_manager import LibraryManager
from genre_atlas.mock_data import MockLibraryGenerator
from genre_atlas.temporal import TemporalFilter
from genre_atlas.visualization import GenreMapRenderer


def render_timelapse(tracks, artist_map, out_dir, frames=60, ticks_per_frame=20, size=900, top_n=200, drill=None):
    """
    Writes `frames` PNGs to out_dir and returns their paths. With `drill`,
    the time-lapse is of one genre's artists instead of the whole map.
    """
    nodes = AggregationPipeline(top_n=top_n, verbose=True).build(tracks, artist_map)
    engine = LayoutEngine(size, size, LayoutConfig(seed=0))
    temporal = TemporalFilter()
    controller = InteractionController(engine, temporal)
    controller.load(nodes)
    if drill:
        controller.drill(drill)

    time_range = temporal.time_range
    if time_range is None:
        print("[render_timelapse] No dated tracks; rendering a single frame.")
        frames = 1

    os.makedirs(out_dir, exist_ok=True)
    renderer = GenreMapRenderer()
    paths = []
    for i in tqdm(range(frames), desc="Rendering frames"):
        if time_range is not None:
            lo, hi = time_range
            fraction = i / (frames - 1) if frames > 1 else 1.0
            controller.set_cursor(lo + (hi - lo) * fraction)
        engine.run(ticks_per_frame)
        path = os.path.join(out_dir, f"frame_{i:04d}.png")
        paths.append(renderer.save_frame(engine.frame(), path, controller.camera))

    print(f"[render_timelapse] Wrote {len(paths)} frames to {out_dir}")
    return paths


def main():
    parser = argparse.ArgumentParser(
        description="Render a time-lapse of library growth as PNG frames",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--export_dir", type=str, default=None, help="Directory with tracks.json and artists.json")
    parser.add_argument("--mock", action="store_true", help="Use a synthetic library instead of an export")
    parser.add_argument("--out_dir", type=str, default=os.path.join(project_root, "out", "frames"), help="Output directory")
    parser.add_argument("--frames", type=int, default=60, help="Number of frames")
    parser.add_argument("--ticks_per_frame", type=int, default=20, help="Simulation ticks between frames")
    parser.add_argument("--size", type=int, default=900, help="Canvas size in pixels")
    parser.add_argument("--top_n", type=int, default=200, help="Number of genres kept")
    parser.add_argument("--drill", type=str, default=None, help="Genre to drill into")
    args = parser.parse_args()

    if args.mock:
        tracks, artist_map = MockLibraryGenerator.generate_library()
    elif args.export_dir:
        tracks, artist_map = LibraryManager(args.export_dir).load_library()
    else:
        parser.error("Pass --export_dir or --mock.")

    if args.frames <= 0:
        parser.error("--frames must be positive.")

    render_timelapse(
        tracks,
        artist_map,
        args.out_dir,
        frames=args.frames,
        ticks_per_frame=args.ticks_per_frame,
        size=args.size,
        top_n=args.top_n,
        drill=args.drill,
    )


if __name__ == "__main__":
    main()
