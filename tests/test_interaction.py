import unittest
import datetime
from genre_atlas.aggregation import AggregationPipeline
from genre_atlas.core import ArtistGenreInfo, ArtistRef, Track
from genre_atlas.interaction import Camera, EventType, InteractionController, MAX_ZOOM, MIN_ZOOM
from genre_atlas.layout import LayoutConfig, LayoutEngine, LayoutMode
from genre_atlas.temporal import TemporalFilter

UTC = datetime.timezone.utc


def _library():
    artist_map = {
        "a": ArtistGenreInfo(name="Alpha", genres=("house", "techno")),
        "b": ArtistGenreInfo(name="Beta", genres=("house",)),
        "c": ArtistGenreInfo(name="Gamma", genres=("jazz",)),
    }
    tracks = []
    for i in range(12):
        artist = "abc"[i % 3]
        tracks.append(Track(
            id=f"t{i}",
            name=f"Track {i}",
            artists=(ArtistRef(artist, artist_map[artist].name),),
            album=f"Album {i % 2}",
            added_at=datetime.datetime(2020, 1 + i, 1, tzinfo=UTC),
        ))
    return tracks, artist_map


class TestInteractionController(unittest.TestCase):
    def setUp(self):
        tracks, artist_map = _library()
        self.nodes = AggregationPipeline().build(tracks, artist_map)
        self.engine = LayoutEngine(800, 800, LayoutConfig(seed=5))
        self.temporal = TemporalFilter()
        self.controller = InteractionController(self.engine, self.temporal)
        self.events = []
        self.controller.subscribe(self.events.append)
        self.controller.load(self.nodes)
        self.engine.run(200)

    def _screen_pos(self, node_id):
        snap = next(s for s in self.engine.snapshot() if s.id == node_id)
        return self.controller.camera.apply(snap.x, snap.y)

    def test_load_shows_top_level(self):
        view = self.controller.view
        self.assertEqual(view.stack, ())
        self.assertEqual({n.id for n in view.active}, {"house", "techno", "jazz"})
        self.assertIs(self.engine.mode, LayoutMode.GLOBAL)

    def test_drill_down_and_back(self):
        before = self.controller.view.active
        events = self.controller.click(*self._screen_pos("house"))
        self.assertEqual([e.type for e in events], [EventType.DRILL_DOWN])
        self.assertEqual(events[0].node.id, "house")

        view = self.controller.view
        self.assertEqual(view.stack, ("house",))
        house = next(n for n in self.nodes if n.id == "house")
        self.assertEqual(view.active, house.children)
        self.assertEqual({s.id for s in self.engine.snapshot()}, {c.id for c in house.children})
        self.assertIs(self.engine.mode, LayoutMode.CLUSTER)

        events = self.controller.back()
        self.assertEqual([e.type for e in events], [EventType.DRILL_UP])
        self.assertEqual(self.controller.view.stack, ())
        self.assertEqual(self.controller.view.active, before)
        self.assertEqual(self.controller.back(), [])

    def test_leaf_click_selects(self):
        self.controller.drill("house")
        self.engine.run(200)
        events = self.controller.click(*self._screen_pos("house/a"))
        self.assertEqual([e.type for e in events], [EventType.LEAF_SELECTED])
        self.assertEqual(self.controller.selected.id, "house/a")
        self.assertEqual(self.controller.view.stack, ("house",))

    def test_background_click_never_navigates(self):
        self.controller.drill("house")
        self.events.clear()
        events = self.controller.click(-5000, -5000)
        self.assertEqual([e.type for e in events], [EventType.BACKGROUND_CLICK])
        self.assertEqual(self.controller.view.stack, ("house",))
        self.assertIsNone(self.controller.selected)
        self.assertEqual(self.events, events)

    def test_hover_enter_and_leave(self):
        x, y = self._screen_pos("jazz")
        events = self.controller.pointer_move(x, y)
        self.assertEqual([e.type for e in events], [EventType.HOVER_ENTER])
        self.assertEqual(self.engine.hovered, "jazz")
        self.assertEqual(self.controller.pointer_move(x + 0.5, y), [])
        events = self.controller.pointer_move(-5000, -5000)
        self.assertEqual([e.type for e in events], [EventType.HOVER_LEAVE])
        self.assertIsNone(self.engine.hovered)

    def test_hit_test_respects_camera(self):
        x, y = self._screen_pos("jazz")
        self.controller.pan(5000, 5000)
        # The old screen position now points far outside the map
        self.assertEqual(self.controller.pointer_move(x, y), [])
        sx, sy = self._screen_pos("jazz")
        self.assertEqual(self.controller.pointer_move(sx, sy)[0].node.id, "jazz")

        self.controller.pan(-5000, -5000)
        self.controller.zoom(3.0, 400, 400)
        sx, sy = self._screen_pos("jazz")
        events = self.controller.pointer_move(sx, sy)
        self.assertEqual(self.controller.hovered.id, "jazz")
        self.assertEqual(events, [])

    def test_reload_reports_hover_leave(self):
        self.controller.pointer_move(*self._screen_pos("jazz"))
        self.events.clear()
        events = self.controller.load(self.nodes)
        self.assertEqual([e.type for e in events], [EventType.HOVER_LEAVE])
        self.assertEqual(events[0].node.id, "jazz")
        self.assertEqual(self.events, events)
        self.assertIsNone(self.controller.hovered)
        self.assertIsNone(self.engine.hovered)

    def test_vanished_node_is_a_miss(self):
        x, y = self._screen_pos("jazz")
        self.engine.set_nodes([])
        self.assertEqual([e.type for e in self.controller.click(x, y)], [EventType.BACKGROUND_CLICK])

    def test_cursor_below_minimum_empties_set(self):
        events = self.controller.set_cursor(datetime.datetime(2000, 1, 1, tzinfo=UTC))
        self.assertEqual(events[-1].type, EventType.CURSOR_CHANGED)
        self.assertEqual(self.controller.view.active, ())
        self.assertEqual(self.engine.snapshot(), ())

    def test_playback_advances_and_stops(self):
        self.controller.set_cursor(datetime.datetime(2020, 1, 1, tzinfo=UTC))
        self.assertEqual({n.id for n in self.controller.view.active}, {"house", "techno"})
        self.controller.set_playback(86400.0 * 70)
        events = self.controller.advance(1.0)
        self.assertIn(EventType.CURSOR_CHANGED, [e.type for e in events])
        self.assertIn("jazz", {n.id for n in self.controller.view.active})
        events = self.controller.advance(1000.0)
        self.assertEqual(events[-1].type, EventType.PLAYBACK_STOPPED)
        self.assertEqual(self.controller.advance(1.0), [])

    def test_back_restores_counts_at_cursor(self):
        self.controller.set_cursor(datetime.datetime(2020, 6, 15, tzinfo=UTC))
        before = self.controller.view.active
        self.controller.drill("house")
        self.controller.back()
        self.assertEqual(self.controller.view.active, before)

    def test_unsubscribe(self):
        unsubscribe = self.controller.subscribe(lambda e: None)
        unsubscribe()
        unsubscribe()
        self.events.clear()
        self.controller.click(-5000, -5000)
        self.assertEqual(len(self.events), 1)


class TestCamera(unittest.TestCase):
    def test_invert_round_trip(self):
        camera = Camera(x=30, y=-20, k=2.5)
        sx, sy = camera.apply(10, 40)
        px, py = camera.invert(sx, sy)
        self.assertAlmostEqual(px, 10)
        self.assertAlmostEqual(py, 40)

    def test_zoom_keeps_pointer_fixed(self):
        camera = Camera(x=10, y=10, k=1.0).scaled(2.0, 200, 150)
        self.assertAlmostEqual(camera.k, 2.0)
        before = Camera(x=10, y=10, k=1.0).invert(200, 150)
        after = camera.invert(200, 150)
        self.assertAlmostEqual(before[0], after[0])
        self.assertAlmostEqual(before[1], after[1])

    def test_zoom_clamped(self):
        self.assertEqual(Camera().scaled(1000, 0, 0).k, MAX_ZOOM)
        self.assertEqual(Camera().scaled(1e-6, 0, 0).k, MIN_ZOOM)

    def test_controller_zoom_rejects_non_positive(self):
        controller = InteractionController(LayoutEngine(100, 100))
        with self.assertRaises(ValueError):
            controller.zoom(0, 0, 0)


if __name__ == '__main__':
    unittest.main()
