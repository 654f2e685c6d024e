import unittest
import os
import tempfile
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.patches import Circle
from genre_atlas.aggregation import AggregationPipeline
from genre_atlas.categories import ANCHORS, POP, ROCK
from genre_atlas.interaction import Camera
from genre_atlas.layout import LayoutConfig, LayoutEngine, LayoutMode
from genre_atlas.mock_data import MockLibraryGenerator
from genre_atlas.visualization import GenreMapRenderer, ring_colors, wrap_label


class TestGenreMapRenderer(unittest.TestCase):
    def setUp(self):
        tracks, artist_map = MockLibraryGenerator.generate_library(num_artists=30, num_tracks=250)
        self.nodes = AggregationPipeline().build(tracks, artist_map)
        self.engine = LayoutEngine(600, 600, LayoutConfig(seed=2))
        self.engine.set_nodes(self.nodes)
        self.engine.run(120)
        self.renderer = GenreMapRenderer()

    def tearDown(self):
        plt.close("all")

    def test_one_circle_per_node(self):
        fig = self.renderer.draw(self.engine.frame())
        circles = [p for p in fig.axes[0].patches if isinstance(p, Circle)]
        self.assertEqual(len(circles), len(self.nodes))
        # Largest first
        radii = [c.get_radius() for c in circles]
        self.assertEqual(radii, sorted(radii, reverse=True))

    def test_ring_only_in_global_mode(self):
        fig = self.renderer.draw(self.engine.frame())
        self.assertEqual(len(fig.axes[0].collections), 1)

        self.engine.set_nodes(self.nodes[0].children, mode=LayoutMode.CLUSTER)
        self.engine.run(10)
        fig = self.renderer.draw(self.engine.frame())
        self.assertEqual(len(fig.axes[0].collections), 0)

    def test_camera_applied_at_draw_time(self):
        frame = self.engine.frame()
        plain = self.renderer.draw(frame)
        zoomed = self.renderer.draw(frame, Camera(x=-300, y=-300, k=2.0))
        r_plain = max(p.get_radius() for p in plain.axes[0].patches if isinstance(p, Circle))
        r_zoomed = max(p.get_radius() for p in zoomed.axes[0].patches if isinstance(p, Circle))
        self.assertAlmostEqual(r_zoomed, 2 * r_plain)
        # Physics state untouched
        self.assertEqual(frame.nodes, self.engine.frame().nodes)

    def test_empty_frame(self):
        engine = LayoutEngine(0, 0)
        fig = self.renderer.draw(engine.frame())
        self.assertEqual(len(fig.axes[0].patches), 0)

    def test_save_frame(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = self.renderer.save_frame(self.engine.frame(), os.path.join(tmp, "frame.png"))
            self.assertTrue(os.path.getsize(path) > 0)


class TestRenderingHelpers(unittest.TestCase):
    def test_ring_colors_hit_anchor_colors(self):
        anchors = list(ANCHORS.values())
        colors = ring_colors(anchors, np.array([ANCHORS[POP].angle, ANCHORS[ROCK].angle]))
        np.testing.assert_array_almost_equal(colors[0], np.array(ANCHORS[POP].color) / 255.0)
        np.testing.assert_array_almost_equal(colors[1], np.array(ANCHORS[ROCK].color) / 255.0)

    def test_ring_colors_blend_between_anchors(self):
        anchors = list(ANCHORS.values())
        # Pop sits at 3pi/2 and Rock just clockwise of it
        mid = (ANCHORS[POP].angle + ANCHORS[ROCK].angle) / 2
        color = ring_colors(anchors, np.array([mid]))[0]
        expected = (np.array(ANCHORS[POP].color) + np.array(ANCHORS[ROCK].color)) / 2 / 255.0
        np.testing.assert_array_almost_equal(color, expected)

    def test_wrap_label(self):
        wrapped = wrap_label("progressive electronic dance music", diameter=60, fontsize=8)
        self.assertGreater(wrapped.count("\n"), 0)
        self.assertEqual(wrap_label("pop", diameter=200, fontsize=8), "pop")


if __name__ == '__main__':
    unittest.main()
