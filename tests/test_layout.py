import unittest
import itertools
import math
from genre_atlas.categories import ANCHORS, CATEGORIES
from genre_atlas.core import Node, NodeSnapshot
from genre_atlas.layout import LayoutConfig, LayoutEngine, LayoutMode, Phase, draw_order, hit_test


def _genres(n, count=5):
    nodes = []
    for i in range(n):
        anchor = ANCHORS[CATEGORIES[i % len(CATEGORIES)]]
        nodes.append(Node(id=f"g{i}", name=f"Genre {i}", count=count + i, anchor=(anchor.x, anchor.y)))
    return nodes


def _snap(node_id, x, y, r):
    return NodeSnapshot(
        node=Node(id=node_id, name=node_id, count=1), x=x, y=y,
        radius=r, current_radius=r, current_scale=1.0, spawning=False,
    )


class TestLayoutEngine(unittest.TestCase):
    def setUp(self):
        self.engine = LayoutEngine(900, 900, LayoutConfig(seed=1))

    def test_empty_without_container(self):
        engine = LayoutEngine(0, 0)
        engine.set_nodes(_genres(5))
        self.assertIs(engine.phase, Phase.EMPTY)
        self.assertFalse(engine.tick())
        self.assertEqual(engine.snapshot(), ())
        engine.resize(800, 600)
        self.assertIs(engine.phase, Phase.INITIALIZING)
        self.assertEqual(len(engine.snapshot()), 5)

    def test_empty_without_nodes(self):
        self.engine.set_nodes([])
        self.assertIs(self.engine.phase, Phase.EMPTY)
        self.assertFalse(self.engine.tick())

    def test_phase_progression(self):
        self.engine.set_nodes(_genres(10))
        self.assertIs(self.engine.phase, Phase.INITIALIZING)
        self.assertEqual(self.engine.alpha, 1.0)
        self.engine.tick()
        self.assertIs(self.engine.phase, Phase.SETTLING)
        self.engine.run(250)
        self.assertIs(self.engine.phase, Phase.IDLE)
        # Keeps ticking at the idle alpha
        self.assertTrue(self.engine.tick())
        self.assertGreater(self.engine.alpha, 0.0)
        self.engine.reheat()
        self.assertIs(self.engine.phase, Phase.SETTLING)

    def test_enclosure_holds(self):
        self.engine.set_nodes(_genres(60, count=20))
        self.engine.run(150)
        cx, cy = self.engine.center
        limit = self.engine.container_radius
        for snap in self.engine.snapshot():
            reach = max(snap.radius, snap.current_radius)
            self.assertLessEqual(math.hypot(snap.x - cx, snap.y - cy) + reach, limit + 1e-6)

    def test_enclosure_holds_on_tiny_canvas(self):
        engine = LayoutEngine(2, 2, LayoutConfig(seed=1))
        engine.set_nodes(_genres(1))
        engine.run(300)
        cx, cy = engine.center
        snap = engine.snapshot()[0]
        self.assertLessEqual(snap.radius, engine.container_radius)
        self.assertLessEqual(math.hypot(snap.x - cx, snap.y - cy) + snap.radius, engine.container_radius + 1e-6)

    def test_nodes_separate_after_settling(self):
        self.engine.set_nodes(_genres(14))
        self.engine.run(400)
        snaps = self.engine.snapshot()
        for a, b in itertools.combinations(snaps, 2):
            d = math.hypot(a.x - b.x, a.y - b.y)
            self.assertGreaterEqual(d, 0.9 * (a.radius + b.radius), (a.id, b.id))

    def test_nodes_pulled_toward_anchor(self):
        self.engine.set_nodes(_genres(7))
        self.engine.run(300)
        cx, cy = self.engine.center
        for snap in self.engine.snapshot():
            ax, ay = snap.node.anchor
            tx = cx + ax * self.engine.attraction_radius
            ty = cy + ay * self.engine.attraction_radius
            self.assertLess(math.hypot(snap.x - tx, snap.y - ty), 0.25 * self.engine.container_radius)

    def test_radius_scales_with_count_and_set_size(self):
        small = self.engine.radius_for(100, 5)
        large = self.engine.radius_for(100, 150)
        self.assertGreater(small, large)
        self.assertGreater(self.engine.radius_for(400, 50), self.engine.radius_for(4, 50))
        # Capped relative to the container
        huge = self.engine.radius_for(10 ** 8, 5)
        self.assertAlmostEqual(huge, self.engine.container_radius_for(5) * 0.28)
        self.assertGreaterEqual(self.engine.radius_for(0, 200), 1.0)

    def test_container_grows_with_set_size(self):
        self.assertAlmostEqual(self.engine.container_radius_for(0), 900 * 0.25)
        self.assertAlmostEqual(self.engine.container_radius_for(200), 900 * 0.45)
        self.assertAlmostEqual(self.engine.container_radius_for(5000), 900 * 0.45)
        self.engine.set_nodes(_genres(3), mode=LayoutMode.CLUSTER)
        self.assertAlmostEqual(self.engine.container_radius, 900 * 0.45)

    def test_cluster_mode_pulls_to_center(self):
        nodes = [Node(id=f"a{i}", name=f"Artist {i}", count=3) for i in range(6)]
        self.engine.set_nodes(nodes, mode=LayoutMode.CLUSTER, origin=(100.0, 100.0))
        self.engine.run(300)
        cx, cy = self.engine.center
        for snap in self.engine.snapshot():
            self.assertLess(math.hypot(snap.x - cx, snap.y - cy), self.engine.container_radius)

    def test_state_carried_over_by_id(self):
        nodes = _genres(8)
        self.engine.set_nodes(nodes)
        self.engine.run(50)
        before = {s.id: s for s in self.engine.snapshot()}

        extra = Node(id="new", name="New", count=3, anchor=(0.0, -1.0))
        self.engine.set_nodes(nodes[:6] + [extra])
        self.assertIs(self.engine.phase, Phase.INITIALIZING)
        after = {s.id: s for s in self.engine.snapshot()}
        self.assertEqual(set(after), {n.id for n in nodes[:6]} | {"new"})
        for node_id in ("g0", "g5"):
            self.assertEqual((after[node_id].x, after[node_id].y), (before[node_id].x, before[node_id].y))
            self.assertEqual(after[node_id].current_radius, before[node_id].current_radius)
        self.assertTrue(after["new"].spawning)
        self.assertEqual(after["new"].current_radius, 0.0)

    def test_spawn_grows_in(self):
        self.engine.set_nodes(_genres(4))
        self.engine.run(200)
        for snap in self.engine.snapshot():
            self.assertFalse(snap.spawning)
            self.assertEqual(snap.current_radius, snap.radius)

    def test_recount_keeps_phase(self):
        nodes = _genres(5)
        self.engine.set_nodes(nodes)
        self.engine.run(250)
        self.assertIs(self.engine.phase, Phase.IDLE)
        same_ids = [Node(id=n.id, name=n.name, count=n.count, anchor=n.anchor) for n in nodes]
        self.engine.set_nodes(same_ids)
        self.assertIs(self.engine.phase, Phase.IDLE)
        grown = [Node(id=n.id, name=n.name, count=n.count * 4, anchor=n.anchor) for n in nodes]
        self.engine.set_nodes(grown)
        self.assertIs(self.engine.phase, Phase.SETTLING)

    def test_hover_scale_eases(self):
        self.engine.set_nodes(_genres(3))
        self.engine.run(100)
        self.engine.set_hovered("g1")
        self.engine.run(60)
        scales = {s.id: s.current_scale for s in self.engine.snapshot()}
        self.assertAlmostEqual(scales["g1"], 1.15, places=2)
        self.assertEqual(scales["g0"], 1.0)

    def test_find_uses_live_positions(self):
        self.engine.set_nodes(_genres(3))
        self.engine.run(200)
        snap = self.engine.snapshot()[0]
        self.assertEqual(self.engine.find(snap.x, snap.y).id, snap.id)
        self.assertIsNone(self.engine.find(-1000, -1000))

    def test_invalid_config(self):
        with self.assertRaises(ValueError):
            LayoutConfig(alpha_decay=-0.1)
        with self.assertRaises(ValueError):
            LayoutConfig(velocity_decay=0)
        with self.assertRaises(ValueError):
            LayoutConfig(container_min_ratio=0.6, container_max_ratio=0.4)


class TestHitTest(unittest.TestCase):
    def test_draw_order_largest_first(self):
        snaps = [_snap("small", 0, 0, 5), _snap("big", 0, 0, 50), _snap("mid", 0, 0, 20)]
        self.assertEqual([s.id for s in draw_order(snaps)], ["big", "mid", "small"])

    def test_topmost_wins(self):
        snaps = [_snap("big", 0, 0, 50), _snap("small", 5, 0, 10)]
        self.assertEqual(hit_test(snaps, 6, 0).id, "small")
        self.assertEqual(hit_test(snaps, -30, 0).id, "big")
        self.assertIsNone(hit_test(snaps, 100, 100))

    def test_hovered_node_preferred(self):
        snaps = [_snap("big", 0, 0, 50), _snap("small", 5, 0, 10)]
        self.assertEqual(hit_test(snaps, 6, 0, prefer="big").id, "big")
        # A preferred node that no longer contains the point does not win
        self.assertEqual(hit_test(snaps, 6, 0, prefer="gone").id, "small")

    def test_boundary_is_a_miss(self):
        self.assertIsNone(hit_test([_snap("a", 0, 0, 10)], 10, 0))


if __name__ == '__main__':
    unittest.main()
